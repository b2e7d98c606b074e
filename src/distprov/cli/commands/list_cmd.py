"""List command: configured distributions and whether they are installed."""

from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from distprov.cli.core import ContextFactory, open_context
from distprov.cli.ensure import Ensure


@click.command("list")
@click.option(
    "--config",
    "config_path",
    type=click.Path(path_type=Path, dir_okay=False),
    required=True,
    help="Configuration file (.toml, .yaml or .json)",
)
@click.pass_obj
def list_cmd(factory: ContextFactory, config_path: Path) -> None:
    """Show configured distributions next to the installed ones."""
    config = Ensure.config_loaded(config_path)
    ctx = open_context(factory, config, dry_run=False, verbose=False)

    try:
        live = set(ctx.wsl.list_guests())
    except RuntimeError as e:
        Ensure.invariant(False, str(e))
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("distribution", style="cyan", no_wrap=True)
    table.add_column("version", no_wrap=True)
    table.add_column("enabled", no_wrap=True)
    table.add_column("installed", no_wrap=True)
    table.add_column("install path")
    for guest in config.distributions:
        table.add_row(
            guest.name,
            guest.version,
            "yes" if guest.enabled else "no",
            "[green]yes[/green]" if guest.name in live else "no",
            str(guest.install_path),
        )
    Console().print(table)
