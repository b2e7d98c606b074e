"""Host checks that must pass before any guest is touched."""

import os
import shutil
from pathlib import Path

from distprov.core.config import ProvisioningConfig
from distprov.core.context import ProvisionContext


def _directory_problem(path: Path, purpose: str) -> str | None:
    """Check that path is, or can become, a writable directory."""
    existing = path
    while not existing.exists():
        if existing.parent == existing:
            return f"{purpose} directory {path} has no existing parent"
        existing = existing.parent
    if not existing.is_dir():
        return f"{purpose} path {existing} is not a directory"
    if not os.access(existing, os.W_OK):
        return f"{purpose} directory {existing} is not writable"
    return None


def check_environment(ctx: ProvisionContext, config: ProvisioningConfig) -> list[str]:
    """Return a list of problems; an empty list means provisioning may start."""
    problems: list[str] = []

    executable = config.settings.wsl_executable
    if shutil.which(executable) is None:
        problems.append(f"WSL executable not found: {executable}")
    else:
        try:
            result = ctx.wsl.status()
        except RuntimeError as e:
            problems.append(str(e))
        else:
            if not result.success:
                problems.append(
                    f"WSL is not ready ('{executable} --status' failed): {result.output}"
                )

    for path, purpose in (
        (config.paths.download_dir, "Download"),
        (config.paths.backup_dir, "Backup"),
    ):
        problem = _directory_problem(path.resolve(), purpose)
        if problem is not None:
            problems.append(problem)

    for problem in problems:
        ctx.logger.error("Preflight: %s", problem)
    return problems
