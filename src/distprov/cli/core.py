"""Helpers shared by the distprov commands."""

import logging
from collections.abc import Sequence
from typing import Protocol

import click

from distprov.cli.ensure import Ensure
from distprov.cli.logging_setup import LOGGER_NAME, configure_logging
from distprov.cli.output import user_output
from distprov.core.config import GuestDefinition, ProvisioningConfig
from distprov.core.context import Logger, ProvisionContext
from distprov.core.orchestrator import select_guests


class ContextFactory(Protocol):
    """Builds the provisioning context once the configuration is known.

    The click group stores one of these in ctx.obj; tests pass their own.
    """

    def __call__(
        self, config: ProvisioningConfig, *, dry_run: bool, logger: Logger
    ) -> ProvisionContext: ...


def open_context(
    factory: ContextFactory, config: ProvisioningConfig, *, dry_run: bool, verbose: bool
) -> ProvisionContext:
    log_file = configure_logging(config.paths.log_dir, verbose=verbose)
    logger = logging.getLogger(LOGGER_NAME)
    if log_file is not None:
        logger.info("Writing log to %s", log_file)
    return factory(config, dry_run=dry_run, logger=logger)


def selected_guests(config: ProvisioningConfig, names: Sequence[str]) -> list[GuestDefinition]:
    """Resolve --guest options, exiting on unknown names or an empty selection."""
    try:
        guests = select_guests(config, names)
    except ValueError as e:
        user_output(click.style("Error: ", fg="red") + str(e))
        raise SystemExit(1) from e
    return Ensure.truthy(guests, "No enabled distributions to process")
