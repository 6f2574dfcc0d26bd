"""
CLI for upload staging.

Commands:
    upcache cache PATH - Stage a local file in the cache
    upcache retrieve CACHE_NAME - Resolve a cache name to its staged path
    upcache reap - Remove stale cache entries
    upcache config - Show current configuration
    upcache version - Print version
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from upcache import __version__
from upcache.config import Settings, clear_settings_cache, get_settings
from upcache.exceptions import UpcacheError
from upcache.logging import setup_logging
from upcache.reaper import Reaper
from upcache.stager import Stager

app = typer.Typer(
    name="upcache",
    help="Stage uploaded files in a temporary cache and reap stale entries",
    no_args_is_help=True,
)

console = Console()
error_console = Console(stderr=True)


def _load_settings() -> Settings:
    """Load settings, exiting with a message if configuration is invalid."""
    try:
        clear_settings_cache()
        settings = get_settings()
    except ValidationError as e:
        error_console.print(
            f"[red]Error:[/red] Configuration is invalid:\n{escape(str(e))}"
        )
        raise typer.Exit(1)
    setup_logging(log_level=settings.LOG_LEVEL, log_file=settings.LOG_FILE)
    return settings


@app.command()
def cache(
    path: Annotated[Path, typer.Argument(help="File to stage")],
    move: Annotated[
        Optional[bool],
        typer.Option("--move/--copy", help="Move the file instead of copying it"),
    ] = None,
) -> None:
    """Stage a local file and print its cache name."""
    settings = _load_settings()
    stager = Stager(settings.staging_config())

    try:
        with path.open("rb") as handle:
            reference = stager.cache(handle, move_to_cache=move)
    except (UpcacheError, OSError) as e:
        error_console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1)

    console.print(
        Panel(
            f"[bold]Cache name:[/bold] {reference.cache_name}\n"
            f"[bold]Path:[/bold] {reference.path}",
            title="[bold green]Staged[/bold green]",
            border_style="green",
        )
    )


@app.command()
def retrieve(
    cache_name: Annotated[
        str, typer.Argument(help='Cache name of the form "<identifier>/<filename>"')
    ],
) -> None:
    """Resolve a cache name to the staged file's path."""
    settings = _load_settings()
    stager = Stager(settings.staging_config())

    try:
        reference = stager.retrieve(cache_name)
    except UpcacheError as e:
        error_console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1)

    console.print(f"[bold]Path:[/bold] {reference.path}")
    if reference.exists():
        console.print("[green]File exists[/green]")
    else:
        console.print("[yellow]File does not exist[/yellow]")


@app.command()
def reap(
    max_age: Annotated[
        Optional[int],
        typer.Option("--max-age", "-a", help="Maximum entry age in seconds"),
    ] = None,
) -> None:
    """Remove cache entries older than the maximum age."""
    settings = _load_settings()
    effective_max_age = max_age if max_age is not None else settings.MAX_AGE_SECONDS

    report = Reaper(settings.staging_config()).reap(max_age_seconds=effective_max_age)

    table = Table(title=f"Reaped {report.cache_root}", show_header=True)
    table.add_column("Entry", style="cyan")
    table.add_column("Result")
    for name in report.removed:
        table.add_row(name, "[green]removed[/green]")
    for name, error in report.failures.items():
        table.add_row(name, f"[red]failed: {escape(error)}[/red]")
    console.print(table)
    console.print(
        f"[dim]Removed {len(report.removed)}, kept {len(report.kept)}, "
        f"failed {len(report.failures)}[/dim]"
    )

    if not report.ok:
        raise typer.Exit(1)


@app.command()
def config() -> None:
    """Show current configuration."""
    settings = _load_settings()

    table = Table(title="Settings", show_header=True)
    table.add_column("Setting", style="cyan", no_wrap=True)
    table.add_column("Value", style="green")

    for key, value in settings.display().items():
        display_value = str(value) if value is not None else "[dim]not set[/dim]"
        table.add_row(key, display_value)

    console.print(table)


@app.command()
def version() -> None:
    """Print the version number."""
    console.print(f"upcache version {__version__}")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
