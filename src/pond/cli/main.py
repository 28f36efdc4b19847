"""
CLI for the pond cache.

Commands:
    pond clean - Delete expired entries
    pond get KEY - Print the value stored under a key
    pond stats - Show row counts for the cache file
    pond config - Show current configuration
    pond version - Print version
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Any, Optional

import orjson
import typer
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from pond import __version__
from pond.cache import Cache
from pond.config import Settings, clear_settings_cache, get_settings
from pond.exceptions import CacheError
from pond.logging import setup_logging

app = typer.Typer(
    name="pond",
    help="pond - durable disk-backed key-value cache with TTL expiration",
    no_args_is_help=True,
)

console = Console()
error_console = Console(stderr=True)

DbOption = Annotated[
    Optional[Path],
    typer.Option("--db", "-d", help="Cache database file (defaults to POND_DB_PATH)"),
]


def _load_settings() -> Settings:
    """Load settings, exiting with a readable message if they are invalid."""
    try:
        clear_settings_cache()
        return get_settings()
    except ValidationError as e:
        error_console.print(f"[red]Error:[/red] Configuration is invalid.\n{e}")
        raise typer.Exit(1) from e


def _open_cache(db: Path | None) -> Cache:
    """Open an existing cache file; commands never create one."""
    settings = _load_settings()
    setup_logging(settings.LOG_LEVEL, settings.LOG_FILE)
    location = db if db is not None else settings.DB_PATH
    if not location.is_file():
        error_console.print(f"[red]Error:[/red] No cache file at {location}")
        raise typer.Exit(1)
    try:
        return Cache.from_settings(settings, location=location, create_dirs=False)
    except CacheError as e:
        error_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e


def _render(value: Any) -> str:
    if isinstance(value, bytes):
        return repr(value)
    if isinstance(value, str):
        return value
    return orjson.dumps(value, default=str, option=orjson.OPT_INDENT_2).decode("utf-8")


@app.command()
def clean(db: DbOption = None) -> None:
    """Delete every expired entry from the cache file."""
    cache = _open_cache(db)
    try:
        before = cache.stats()
        cache.clean()
    except CacheError as e:
        error_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e

    console.print(
        f"Removed [bold]{before.expired}[/bold] expired entries from {cache.location}"
    )


@app.command()
def get(
    key: Annotated[str, typer.Argument(help="Cache key (text, or a UUID for the uuid strategy)")],
    db: DbOption = None,
) -> None:
    """Print the value stored under KEY.

    Exits with status 1 when the key is missing or expired.
    """
    cache = _open_cache(db)
    try:
        value = cache.get(key)
    except (CacheError, ValueError) as e:
        error_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e

    if value is None:
        error_console.print(f"[yellow]No live entry for key {key!r}[/yellow]")
        raise typer.Exit(1)

    console.print(_render(value), markup=False, highlight=False)


@app.command()
def stats(db: DbOption = None) -> None:
    """Show total, expired and live row counts."""
    cache = _open_cache(db)
    try:
        snapshot = cache.stats()
    except CacheError as e:
        error_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e

    table = Table(title=str(cache.location), show_header=True)
    table.add_column("Rows", style="cyan")
    table.add_column("Count", style="green", justify="right")
    for label, count in snapshot.to_dict().items():
        table.add_row(label, str(count))

    console.print(table)


@app.command()
def config() -> None:
    """Show current configuration."""
    settings = _load_settings()

    table = Table(title="Settings", show_header=True)
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    for key, value in settings.display_items().items():
        table.add_row(f"POND_{key}", str(value))

    console.print(table)


@app.command()
def version() -> None:
    """Print the version number."""
    console.print(f"pond-cache version {__version__}")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
