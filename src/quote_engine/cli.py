"""Click-based CLI for quote-engine.

Thin wrapper around the resolution service. Zero business logic: every
command delegates to QuoteService.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import click
from rich.console import Console
from rich.table import Table

from quote_engine.core.exceptions import QuoteEngineError
from quote_engine.core.models import Period

console = Console(stderr=True)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run_async(coro):
    """Run an async coroutine from synchronous Click code."""
    return asyncio.run(coro)


def _load_config(ctx: click.Context):
    """Load config lazily, caching on first call."""
    if "config" not in ctx.obj:
        from quote_engine.core import load_config

        ctx.obj["config"] = load_config(config_path=ctx.obj.get("config_path"))
    return ctx.obj["config"]


@asynccontextmanager
async def _open_service(config) -> AsyncIterator:
    """Wire store, remote client, engine and service; close them on exit."""
    from quote_engine.prices import YahooQuoteClient, create_quote_store
    from quote_engine.resolution import QuoteResolutionEngine, QuoteService

    store = await create_quote_store(config.storage)
    try:
        async with YahooQuoteClient(config.remote) as client:
            engine = QuoteResolutionEngine(client, store)
            yield QuoteService(engine, client, store)
    finally:
        await store.close()


def _fail(exc: Exception) -> None:
    console.print(f"[red]Error: {exc}[/red]")
    raise SystemExit(1)


def _stale_marker(stale: bool) -> str:
    return "[yellow]stale[/yellow]" if stale else "[green]fresh[/green]"


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True),
    envvar="QUOTE_ENGINE_CONFIG",
    default=None,
    help="Path to quote-engine.yml config file.",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    default=False,
    help="Enable verbose output.",
)
@click.version_option(package_name="quote-engine")
@click.pass_context
def cli(ctx: click.Context, config: str | None, verbose: bool) -> None:
    """Quote Engine: local-first stock quote resolution."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config
    ctx.obj["verbose"] = verbose
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# ---------------------------------------------------------------------------
# price
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("symbols", nargs=-1, required=True)
@click.option("--json", "as_json", is_flag=True, default=False, help="Output JSON.")
@click.pass_context
def price(ctx: click.Context, symbols: tuple[str, ...], as_json: bool) -> None:
    """Resolve the current price of one or more SYMBOLS."""
    config = _load_config(ctx)

    async def _run():
        async with _open_service(config) as service:
            return await service.get_multiple_prices(list(symbols))

    try:
        prices = _run_async(_run())
    except QuoteEngineError as exc:
        _fail(exc)

    if as_json:
        click.echo(json.dumps([p.model_dump(mode="json") for p in prices], indent=2))
        return

    table = Table(title="Current Prices")
    table.add_column("Symbol", style="bold")
    table.add_column("Price", justify="right")
    table.add_column("Date")
    table.add_column("Source")
    table.add_column("Status")
    for p in prices:
        table.add_row(
            p.symbol, f"{p.price:.2f}", str(p.data_date), p.source.value,
            _stale_marker(p.stale),
        )
    console.print(table)


# ---------------------------------------------------------------------------
# series
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("symbol")
@click.option(
    "--period",
    "-p",
    type=click.Choice([p.value for p in Period], case_sensitive=False),
    default=Period.ONE_MONTH.value,
    help="Series window.",
)
@click.option("--json", "as_json", is_flag=True, default=False, help="Output JSON.")
@click.pass_context
def series(ctx: click.Context, symbol: str, period: str, as_json: bool) -> None:
    """Resolve the historical price series of SYMBOL."""
    config = _load_config(ctx)

    async def _run():
        async with _open_service(config) as service:
            return await service.get_series(symbol, period)

    try:
        result = _run_async(_run())
    except QuoteEngineError as exc:
        _fail(exc)

    if as_json:
        click.echo(json.dumps(result.model_dump(mode="json"), indent=2))
        return

    table = Table(title=f"{result.symbol} {result.period} ({result.source.value})")
    table.add_column("Date")
    table.add_column("Close", justify="right")
    table.add_column("Volume", justify="right")
    for point in result.points:
        table.add_row(
            str(point.date),
            f"{point.price:.2f}",
            f"{point.volume:,}" if point.volume is not None else "-",
        )
    console.print(table)
    if result.stale:
        console.print("[yellow]Remote source unavailable; showing stored data.[/yellow]")


# ---------------------------------------------------------------------------
# search
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("query")
@click.option("--limit", "-l", type=click.IntRange(min=1), default=10, help="Max results.")
@click.option("--json", "as_json", is_flag=True, default=False, help="Output JSON.")
@click.pass_context
def search(ctx: click.Context, query: str, limit: int, as_json: bool) -> None:
    """Search equity symbols matching QUERY."""
    config = _load_config(ctx)

    async def _run():
        async with _open_service(config) as service:
            return await service.search_symbols(query, limit)

    try:
        suggestions = _run_async(_run())
    except QuoteEngineError as exc:
        _fail(exc)

    if as_json:
        click.echo(json.dumps([s.model_dump(mode="json") for s in suggestions], indent=2))
        return

    if not suggestions:
        console.print(f"[yellow]No equities found for {query!r}.[/yellow]")
        return

    table = Table(title=f"Search: {query}")
    table.add_column("Symbol", style="bold")
    table.add_column("Name")
    table.add_column("Exchange")
    for s in suggestions:
        table.add_row(s.symbol, s.name, s.exchange or "-")
    console.print(table)


# ---------------------------------------------------------------------------
# update
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("symbols", nargs=-1, required=True)
@click.pass_context
def update(ctx: click.Context, symbols: tuple[str, ...]) -> None:
    """Fetch and store today's price for SYMBOLS lacking one."""
    config = _load_config(ctx)

    async def _run():
        async with _open_service(config) as service:
            return await service.update_stock_data_bulk(list(symbols))

    try:
        updated = _run_async(_run())
    except QuoteEngineError as exc:
        _fail(exc)

    console.print(
        f"[green]✓[/green] Updated {updated} of {len(symbols)} symbols"
    )


# ---------------------------------------------------------------------------
# cleanup
# ---------------------------------------------------------------------------


@cli.command()
@click.option(
    "--days",
    "-d",
    type=click.IntRange(min=1),
    default=None,
    help="Days of history to keep. Default: cleanup.days_to_keep from config.",
)
@click.pass_context
def cleanup(ctx: click.Context, days: int | None) -> None:
    """Delete stored quotes older than the retention window."""
    config = _load_config(ctx)
    days_to_keep = days if days is not None else config.cleanup.days_to_keep

    async def _run():
        async with _open_service(config) as service:
            return await service.cleanup_old_data(days_to_keep)

    try:
        deleted = _run_async(_run())
    except QuoteEngineError as exc:
        _fail(exc)

    console.print(
        f"[green]✓[/green] Deleted {deleted} quotes older than {days_to_keep} days"
    )


# ---------------------------------------------------------------------------
# stats
# ---------------------------------------------------------------------------


@cli.command()
@click.pass_context
def stats(ctx: click.Context) -> None:
    """Show quote store statistics."""
    config = _load_config(ctx)

    async def _run():
        async with _open_service(config) as service:
            return await service.get_statistics()

    try:
        result = _run_async(_run())
    except QuoteEngineError as exc:
        _fail(exc)

    table = Table(title="Quote Store")
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")
    table.add_row("Database path", config.storage.sqlite_path)
    table.add_section()
    table.add_row("Total records", str(result.total_records))
    table.add_row("Unique symbols", str(result.unique_symbols))
    table.add_row(
        "Date range",
        f"{result.date_range_start} → {result.date_range_end}"
        if result.total_records > 0
        else "N/A",
    )
    console.print(table)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main() -> None:
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
