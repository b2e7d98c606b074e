"""Output utilities for CLI commands with clear intent.

user_output() is for people (stderr), machine_output() is for pipes (stdout).
The provisioning summary is rendered with rich.
"""

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from distprov.core.results import GuestResult, ProvisioningReport, ValidationRun

STATUS_STYLES = {"SUCCESS": "green", "FAILED": "red", "SKIPPED": "yellow"}


def user_output(message: str) -> None:
    """Print a message meant for the operator to stderr."""
    click.echo(message, err=True)


def machine_output(message: str) -> None:
    """Print a message meant for scripts to stdout."""
    click.echo(message)


def format_duration(seconds: float) -> str:
    """Format a duration compactly.

    >>> format_duration(4.2)
    '4.2s'
    >>> format_duration(125)
    '2m 5s'
    """
    if seconds < 60:
        return f"{seconds:.1f}s"
    minutes, secs = divmod(int(seconds), 60)
    if minutes < 60:
        return f"{minutes}m {secs}s"
    hours, minutes = divmod(minutes, 60)
    return f"{hours}h {minutes}m"


def _validation_cell(validation: ValidationRun | None) -> str:
    if validation is None:
        return "-"
    return f"{validation.passed}/{validation.total}"


def _detail_cell(result: GuestResult) -> str:
    if result.error is not None:
        return str(result.error)
    if result.warnings:
        return f"{len(result.warnings)} warning(s)"
    return ""


def format_summary(report: ProvisioningReport, *, dry_run: bool) -> Table:
    """One row per guest, in configuration order."""
    title = "Provisioning summary (preview)" if dry_run else "Provisioning summary"
    table = Table(title=title, show_header=True, header_style="bold")
    table.add_column("distribution", style="cyan", no_wrap=True)
    table.add_column("status", no_wrap=True)
    table.add_column("stage", no_wrap=True)
    table.add_column("validation", no_wrap=True)
    table.add_column("time", no_wrap=True)
    table.add_column("detail")

    for result in report.results:
        status = Text(result.status, style=STATUS_STYLES[result.status])
        table.add_row(
            result.name,
            status,
            str(result.failed_stage) if result.failed_stage is not None else result.state.name,
            _validation_cell(result.validation),
            format_duration(result.duration_seconds) if result.started else "-",
            _detail_cell(result),
        )
    return table


def format_totals(report: ProvisioningReport) -> Panel:
    lines = [
        Text(f"Succeeded: {len(report.succeeded)}", style="green"),
        Text(f"Failed: {len(report.failed)}", style="red" if report.failed else ""),
        Text(f"Skipped: {len(report.skipped)}", style="yellow" if report.skipped else ""),
    ]
    if report.aborted:
        lines.append(Text("Run stopped after the first failure (continue_on_error is off)"))
    ok = report.exit_code == 0
    return Panel(
        Text("\n").join(lines),
        title="Done" if ok else "Completed with failures",
        border_style="green" if ok else "red",
    )


def print_report(report: ProvisioningReport, *, dry_run: bool) -> None:
    console = Console()
    console.print(format_summary(report, dry_run=dry_run))
    console.print(format_totals(report))
    for result in report.results:
        for warning in result.warnings:
            console.print(f"[yellow]warning[/yellow] {result.name}: {warning}", markup=True)
