"""Logging configuration for the distprov command line.

Console output goes through rich on stderr. When a log directory is configured
every run also writes a timestamped plain-text log file there.
"""

import logging
import os
from datetime import datetime
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "distprov"
DEBUG_ENV = "DISTPROV_DEBUG"
FILE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logging(log_dir: Path | None, *, verbose: bool = False) -> Path | None:
    """Install console and file handlers on the distprov logger.

    Calling it again replaces the handlers from the previous call.

    Returns:
        Path of the log file, or None when no log directory is configured
    """
    level = logging.DEBUG if verbose or os.environ.get(DEBUG_ENV) else logging.INFO
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(level)

    console = RichHandler(
        console=Console(stderr=True),
        show_path=False,
        markup=False,
        rich_tracebacks=True,
    )
    console.setLevel(level)
    logger.addHandler(console)

    if log_dir is None:
        return None

    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / f"distprov-{datetime.now().strftime('%Y%m%d-%H%M%S')}.log"
    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
    logger.addHandler(file_handler)
    logger.setLevel(logging.DEBUG)
    return log_file
