"""Smoke-test a guest by running a battery of commands inside it."""

from distprov.core.context import ProvisionContext
from distprov.core.results import CommandOutcome, ValidationRun

SHELL = "bash"


def run_shell_command(
    ctx: ProvisionContext, guest_name: str, command: str, *, user: str
) -> CommandOutcome:
    """Run one shell command line inside the guest through a login shell."""
    try:
        result = ctx.wsl.run_in_guest(guest_name, [SHELL, "-lc", command], user=user)
    except RuntimeError as e:
        return CommandOutcome(command=command, success=False, output=str(e))
    return CommandOutcome(command=command, success=result.success, output=result.output)


def validate_guest(
    ctx: ProvisionContext, guest_name: str, commands: list[str], *, user: str = "root"
) -> ValidationRun:
    """Run every command in order; failures are recorded, never fatal."""
    outcomes: list[CommandOutcome] = []
    for command in commands:
        outcome = run_shell_command(ctx, guest_name, command, user=user)
        if outcome.success:
            ctx.logger.info("PASS %s", command)
        else:
            ctx.logger.warning("FAIL %s: %s", command, outcome.output)
        outcomes.append(outcome)

    run = ValidationRun(outcomes=tuple(outcomes))
    ctx.logger.info("Validation: %d/%d passed", run.passed, run.total)
    return run
