import click

from distprov.cli.commands.list_cmd import list_cmd
from distprov.cli.commands.provision import provision_cmd
from distprov.cli.commands.validate import validate_cmd
from distprov.core.context import create_context

CONTEXT_SETTINGS = dict(help_option_names=["-h", "--help"])  # terse help flags


@click.group(context_settings=CONTEXT_SETTINGS)
@click.version_option(package_name="distprov")
@click.pass_context
def cli(ctx: click.Context) -> None:
    """Provision WSL distributions from disk images."""
    # Only install the real context factory if not already provided (e.g., by tests)
    if ctx.obj is None:
        ctx.obj = create_context


cli.add_command(provision_cmd)
cli.add_command(validate_cmd)
cli.add_command(list_cmd)


def main() -> None:
    """CLI entry point used by the `distprov` console script."""
    cli()
