"""
CLI for the request cache.

Commands operate on the SQLite medium at RCACHE_DB_PATH:
    rcache stats - Show ledger entries and storage usage
    rcache get URL - Print a cached result
    rcache put URL DATA - Cache a JSON result
    rcache remove URL - Remove a cached result
    rcache clear - Remove everything
    rcache config - Show current configuration
    rcache version - Print version
"""

from __future__ import annotations

from typing import Annotated, Optional

import orjson
import typer
from rich.console import Console
from rich.table import Table

from rcache import __version__
from rcache.cache.storage import SQLiteStorage
from rcache.config import Settings, clear_settings_cache, get_settings
from rcache.logging import setup_logging
from rcache.request.cache import RequestCache
from rcache.types import RequestOptions
from rcache.utils.dates import format_ms

app = typer.Typer(
    name="rcache",
    help="Request cache - inspect and manage the persistent request cache",
    no_args_is_help=True,
)

console = Console()
error_console = Console(stderr=True)

ParamOption = Annotated[
    Optional[list[str]],
    typer.Option("--param", "-p", help="Request parameter as name=value (repeatable)"),
]


def _get_settings_safe() -> Settings | None:
    """Get settings, returning None if configuration is invalid."""
    try:
        clear_settings_cache()
        return get_settings()
    except Exception:
        return None


def _parse_params(raw: list[str] | None) -> dict[str, str]:
    params: dict[str, str] = {}
    for item in raw or []:
        name, sep, value = item.partition("=")
        if not sep or not name:
            error_console.print(f"[red]Error:[/red] Invalid parameter '{item}', expected name=value")
            raise typer.Exit(2)
        params[name] = value
    return params


def _open_cache() -> tuple[RequestCache, SQLiteStorage]:
    settings = _get_settings_safe()
    if settings is None:
        error_console.print(
            "[red]Error:[/red] Configuration is invalid. "
            "Run 'rcache config' to see the effective values."
        )
        raise typer.Exit(1)
    settings.ensure_directories()
    setup_logging(settings.LOG_LEVEL)
    storage = SQLiteStorage(settings.DB_PATH, capacity=settings.CAPACITY_BYTES)
    if not storage.is_usable():
        storage.close()
        error_console.print(f"[red]Error:[/red] Cache database is not writable: {settings.DB_PATH}")
        raise typer.Exit(1)
    return RequestCache.from_settings(storage, settings), storage


@app.command()
def stats() -> None:
    """Show ledger entries, least likely to be evicted last."""
    cache, storage = _open_cache()
    try:
        entries = cache.store.ledger.entries()
        ranked = cache.store.ledger.rank_for_eviction(len(entries))

        table = Table(title="Cache Entries", show_header=True)
        table.add_column("Key", style="cyan")
        table.add_column("Frequency", justify="right", style="green")
        table.add_column("Last Access", style="dim")
        for key in ranked:
            entry = entries[key]
            table.add_row(key, str(entry.frequency), format_ms(entry.last_access_time))

        console.print(table)
        console.print(
            f"[bold]Entries:[/bold] {len(entries)}  "
            f"[bold]Used:[/bold] {storage.size():,} / {storage.capacity:,} bytes"
        )
    finally:
        storage.close()


@app.command()
def get(
    url: Annotated[str, typer.Argument(help="Request URL")],
    param: ParamOption = None,
    force: Annotated[
        bool,
        typer.Option("--force", "-f", help="Return soft-expired entries too"),
    ] = False,
) -> None:
    """Print the cached result for a request."""
    cache, storage = _open_cache()
    try:
        result = cache.read(url, _parse_params(param), RequestOptions(fallback_to_cache=force))
    finally:
        storage.close()

    if not result.hit:
        reason = result.reason.value if result.reason else "miss"
        error_console.print(f"[yellow]No cached result[/yellow] ({reason})")
        raise typer.Exit(1)
    console.print_json(orjson.dumps(result.value).decode("utf-8"))


@app.command()
def put(
    url: Annotated[str, typer.Argument(help="Request URL")],
    data: Annotated[str, typer.Argument(help="Result as a JSON document")],
    param: ParamOption = None,
) -> None:
    """Cache a JSON result for a request."""
    try:
        value = orjson.loads(data)
    except orjson.JSONDecodeError as e:
        error_console.print(f"[red]Error:[/red] DATA is not valid JSON: {e}")
        raise typer.Exit(2)

    cache, storage = _open_cache()
    try:
        result = cache.write(url, _parse_params(param), value)
    finally:
        storage.close()

    if not result.hit:
        reason = result.reason.value if result.reason else str(result.error)
        error_console.print(f"[yellow]Not cached[/yellow] ({reason})")
        raise typer.Exit(1)
    console.print(f"[green]Cached[/green] {result.key}")


@app.command()
def remove(
    url: Annotated[str, typer.Argument(help="Request URL")],
    param: ParamOption = None,
) -> None:
    """Remove the cached result for a request."""
    cache, storage = _open_cache()
    try:
        params = _parse_params(param)
        cache.remove_cache(url, params)
        console.print(f"Removed {cache.key_for(url, params)}")
    finally:
        storage.close()


@app.command()
def clear(
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation")] = False,
) -> None:
    """Remove every cached result and the eviction ledger."""
    if not yes:
        typer.confirm("Remove every cached result?", abort=True)
    cache, storage = _open_cache()
    try:
        cache.clear()
    finally:
        storage.close()
    console.print("[green]Cache cleared[/green]")


@app.command()
def config() -> None:
    """Show current configuration."""
    settings = _get_settings_safe()
    if settings is None:
        error_console.print("[red]Configuration is invalid.[/red] Check RCACHE_* variables.")
        raise typer.Exit(1)

    table = Table(title="Settings", show_header=True)
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")
    for key, value in settings.display().items():
        table.add_row(key, str(value))
    console.print(table)


@app.command()
def version() -> None:
    """Print the version number."""
    console.print(f"request-cache version {__version__}")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
