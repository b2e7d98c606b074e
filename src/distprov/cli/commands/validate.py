"""Validate command: rerun the validation battery against installed guests."""

from pathlib import Path

import click
from rich.console import Console
from rich.table import Table
from rich.text import Text

from distprov.cli.core import ContextFactory, open_context, selected_guests
from distprov.cli.ensure import Ensure
from distprov.core.orchestrator import validate_existing


@click.command("validate")
@click.option(
    "--config",
    "config_path",
    type=click.Path(path_type=Path, dir_okay=False),
    required=True,
    help="Configuration file (.toml, .yaml or .json)",
)
@click.option(
    "--guest",
    "guest_names",
    multiple=True,
    help="Only validate this distribution (repeatable)",
)
@click.option("--verbose", "-v", is_flag=True, default=False, help="Show debug logging")
@click.pass_obj
def validate_cmd(
    factory: ContextFactory, config_path: Path, guest_names: tuple[str, ...], verbose: bool
) -> None:
    """Run the configured validation commands without provisioning.

    Exits non-zero when a distribution is missing or any command fails.
    """
    config = Ensure.config_loaded(config_path)
    guests = selected_guests(config, guest_names)
    ctx = open_context(factory, config, dry_run=False, verbose=verbose)

    try:
        runs = validate_existing(ctx, config, guests)
    except RuntimeError as e:
        Ensure.invariant(False, str(e))
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("distribution", style="cyan", no_wrap=True)
    table.add_column("command")
    table.add_column("result", no_wrap=True)
    failures = 0
    for name, run in runs.items():
        if run is None:
            table.add_row(name, "", Text("NOT INSTALLED", style="yellow"))
            failures += 1
            continue
        for outcome in run.outcomes:
            style = "green" if outcome.success else "red"
            table.add_row(name, outcome.command, Text("PASS" if outcome.success else "FAIL", style))
        failures += run.total - run.passed
    Console().print(table)

    if failures:
        raise SystemExit(1)
