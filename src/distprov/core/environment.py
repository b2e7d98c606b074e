"""Run post-setup commands that prepare the user's working environment.

These commands come straight from configuration (toolchain installs, dotfile
checkouts and the like). They run as the primary user after repositories are
available, and a failing command is reported but never stops provisioning.
"""

from distprov.core.config import EnvironmentConfig
from distprov.core.context import ProvisionContext
from distprov.core.results import CommandOutcome
from distprov.core.validator import run_shell_command


def run_setup_commands(
    ctx: ProvisionContext, guest_name: str, config: EnvironmentConfig, *, user: str
) -> list[CommandOutcome]:
    outcomes = []
    for command in config.commands:
        ctx.logger.info("Running setup command: %s", command)
        outcome = run_shell_command(ctx, guest_name, command, user=user)
        if not outcome.success:
            ctx.logger.warning("Setup command failed: %s: %s", command, outcome.output)
        outcomes.append(outcome)
    return outcomes
