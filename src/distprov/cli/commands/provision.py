"""Provision command: run the full pipeline for the configured guests."""

from pathlib import Path

import click

from distprov.cli.core import ContextFactory, open_context, selected_guests
from distprov.cli.ensure import Ensure
from distprov.cli.output import print_report
from distprov.core.orchestrator import provision_all
from distprov.core.preflight import check_environment


@click.command("provision")
@click.option(
    "--config",
    "config_path",
    type=click.Path(path_type=Path, dir_okay=False),
    required=True,
    help="Configuration file (.toml, .yaml or .json)",
)
@click.option(
    "--dry-run",
    is_flag=True,
    default=False,
    help="Log every mutating command instead of running it",
)
@click.option(
    "--guest",
    "guest_names",
    multiple=True,
    help="Only provision this distribution (repeatable)",
)
@click.option(
    "--max-concurrent",
    type=click.IntRange(min=1),
    help="Override settings.max_concurrent_distributions",
)
@click.option(
    "--continue-on-error/--stop-on-error",
    default=None,
    help="Override settings.continue_on_error",
)
@click.option("--verbose", "-v", is_flag=True, default=False, help="Show debug logging")
@click.pass_obj
def provision_cmd(
    factory: ContextFactory,
    config_path: Path,
    dry_run: bool,
    guest_names: tuple[str, ...],
    max_concurrent: int | None,
    continue_on_error: bool | None,
    verbose: bool,
) -> None:
    """Download, import, configure, register and validate distributions.

    Examples:
        distprov provision --config config.toml
        distprov provision --config config.toml --dry-run
        distprov provision --config config.toml --guest RHEL9 --stop-on-error
    """
    config = Ensure.config_loaded(config_path)

    overrides: dict[str, object] = {}
    if max_concurrent is not None:
        overrides["max_concurrent_distributions"] = max_concurrent
    if continue_on_error is not None:
        overrides["continue_on_error"] = continue_on_error
    if overrides:
        config = config.model_copy(
            update={"settings": config.settings.model_copy(update=overrides)}
        )

    guests = selected_guests(config, guest_names)
    ctx = open_context(factory, config, dry_run=dry_run, verbose=verbose)
    if dry_run:
        ctx.logger.info("Preview mode: no changes will be made")

    problems = check_environment(ctx, config)
    Ensure.invariant(not problems, "Environment preflight failed:\n  " + "\n  ".join(problems))

    report = provision_all(ctx, config, guests)
    print_report(report, dry_run=dry_run)
    if report.exit_code != 0:
        raise SystemExit(report.exit_code)
