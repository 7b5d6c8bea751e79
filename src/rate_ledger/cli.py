"""Click-based CLI for rate-ledger.

Thin wrapper around library modules. Every operation delegates to the
ingestion pipeline, the store, or the exporter.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import sys

import click
from rich.console import Console
from rich.table import Table

from rate_ledger.core.exceptions import RateLedgerError
from rate_ledger.core.models import HistoryFormat

console = Console(stderr=True)

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run_async(coro):
    """Run an async coroutine from synchronous Click code."""
    try:
        return asyncio.run(coro)
    except RateLedgerError as exc:
        console.print(f"[red]{type(exc).__name__}: {exc}[/red]")
        raise SystemExit(1) from exc


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format=_LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stderr)],
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def _load_config(ctx: click.Context):
    """Load config lazily, caching on first call."""
    if "config" not in ctx.obj:
        from rate_ledger.core import ConfigError, load_config

        try:
            ctx.obj["config"] = load_config(config_path=ctx.obj.get("config_path"))
        except ConfigError as exc:
            console.print(f"[red]ConfigError: {exc}[/red]")
            raise SystemExit(1) from exc
    return ctx.obj["config"]


async def _create_store_async(config):
    """Create and initialize storage from config."""
    from rate_ledger.ingestion import create_store

    return await create_store(config.storage, config.source.currencies)


def _format_day(timestamp: int) -> str:
    from rate_ledger.ingestion import from_timestamp

    return from_timestamp(timestamp).isoformat()


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True),
    envvar="RATE_LEDGER_CONFIG",
    default=None,
    help="Path to rate-ledger.yml config file.",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    default=False,
    help="Enable verbose output.",
)
@click.version_option(package_name="rate-ledger")
@click.pass_context
def cli(ctx: click.Context, config: str | None, verbose: bool) -> None:
    """rate-ledger: daily FX reference rate history."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config
    ctx.obj["verbose"] = verbose
    ctx.obj["console"] = console
    _setup_logging(verbose)


# ---------------------------------------------------------------------------
# sync
# ---------------------------------------------------------------------------


@cli.command()
@click.pass_context
def sync(ctx: click.Context) -> None:
    """Fetch every configured series and merge new days into the store."""
    config = _load_config(ctx)

    async def _run():
        from rate_ledger.ingestion import IngestionPipeline, SeriesAligner, SourceReader

        source = config.source
        store = await _create_store_async(config)
        try:
            async with SourceReader(source) as reader:
                pipeline = IngestionPipeline(
                    reader=reader,
                    aligner=SeriesAligner(source.currencies, source.alignment),
                    store=store,
                    sources=source.series,
                )
                with console.status("Syncing reference rates..."):
                    result = await pipeline.run()
        finally:
            await store.close()

        fetched = ", ".join(f"{c}={n}" for c, n in result.fetched.items())
        console.print(
            f"[green]✓[/green] Inserted {result.inserted} new records "
            f"({result.aligned} aligned from {fetched})"
            + (f", {result.skipped} skipped" if result.skipped else "")
        )
        if result.latest_timestamp is not None:
            console.print(f"Latest day: {_format_day(result.latest_timestamp)}")

    _run_async(_run())


# ---------------------------------------------------------------------------
# history
# ---------------------------------------------------------------------------


@cli.command()
@click.option(
    "--format",
    "-f",
    "output_format",
    type=click.Choice([f.value for f in HistoryFormat], case_sensitive=False),
    default=HistoryFormat.TABLE.value,
    help="Output format.",
)
@click.option("--limit", "-n", type=int, default=None, help="Show only the last N days.")
@click.pass_context
def history(ctx: click.Context, output_format: str, limit: int | None) -> None:
    """Show stored rate history, oldest first."""
    config = _load_config(ctx)

    async def _run():
        store = await _create_store_async(config)
        try:
            records = await store.ordered_history()
        finally:
            await store.close()

        if limit is not None:
            records = records[-limit:] if limit > 0 else []

        currencies = config.source.currencies
        if output_format == HistoryFormat.JSON:
            _output_history_json(records, currencies)
        elif output_format == HistoryFormat.CSV:
            _output_history_csv(records, currencies)
        else:
            if not records:
                console.print("[yellow]No rates stored. Run 'sync' first.[/yellow]")
                return
            _output_history_table(records, currencies)

    _run_async(_run())


def _output_history_table(records, currencies) -> None:
    """Render history as a Rich table."""
    table = Table(title="Reference Rates")
    table.add_column("Date", style="bold")
    for currency in currencies:
        table.add_column(currency, justify="right")

    for r in records:
        table.add_row(
            r.day.isoformat(),
            *(f"{r.values[c]:.4f}" for c in currencies),
        )

    Console().print(table)


def _output_history_json(records, currencies) -> None:
    """Write history as JSON to stdout."""
    output = [
        {"date": r.day.isoformat(), "timestamp": r.timestamp,
         **{c: r.values[c] for c in currencies}}
        for r in records
    ]
    click.echo(json.dumps(output, indent=2))


def _output_history_csv(records, currencies) -> None:
    """Write history as CSV to stdout."""
    import csv
    import io

    buf = io.StringIO()
    writer = csv.writer(buf)
    writer.writerow(["date", *currencies])
    for r in records:
        writer.writerow([r.day.isoformat(), *(r.values[c] for c in currencies)])
    click.echo(buf.getvalue(), nl=False)


# ---------------------------------------------------------------------------
# latest
# ---------------------------------------------------------------------------


@cli.command()
@click.pass_context
def latest(ctx: click.Context) -> None:
    """Show the most recent stored day."""
    config = _load_config(ctx)

    async def _run():
        store = await _create_store_async(config)
        try:
            ts = await store.max_timestamp()
        finally:
            await store.close()

        if ts is None:
            console.print("[yellow]No rates stored.[/yellow]")
            return
        click.echo(f"{_format_day(ts)} ({ts})")

    _run_async(_run())


# ---------------------------------------------------------------------------
# export
# ---------------------------------------------------------------------------


@cli.command()
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, writable=True),
    default=None,
    help="Target .xlsx file. Default: export.filename from config.",
)
@click.pass_context
def export(ctx: click.Context, output: str | None) -> None:
    """Write stored history to an Excel workbook."""
    config = _load_config(ctx)
    target = output or config.export.filename

    async def _run():
        from rate_ledger.export import TableExporter, XlsxWriter

        store = await _create_store_async(config)
        try:
            exporter = TableExporter(config.source.currencies)
            rows = await exporter.export(
                store, XlsxWriter(config.export.sheet_title), target
            )
        finally:
            await store.close()

        console.print(f"[green]✓[/green] Wrote {rows} rows to {target}")

    _run_async(_run())


# ---------------------------------------------------------------------------
# reset
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--yes", "-y", is_flag=True, default=False, help="Skip confirmation.")
@click.pass_context
def reset(ctx: click.Context, yes: bool) -> None:
    """Delete all stored rates."""
    config = _load_config(ctx)
    if not yes:
        click.confirm("Delete all stored rates?", abort=True)

    async def _run():
        store = await _create_store_async(config)
        try:
            await store.reset()
        finally:
            await store.close()
        console.print("[green]✓[/green] Cleared stored rates")

    _run_async(_run())


# ---------------------------------------------------------------------------
# serve
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--host", type=str, default=None, help="Bind address. Default: api.host.")
@click.option("--port", "-p", type=int, default=None, help="Port number. Default: api.port.")
@click.option("--reload", is_flag=True, default=False, help="Auto-reload on code changes.")
@click.pass_context
def serve(ctx: click.Context, host: str | None, port: int | None, reload: bool) -> None:
    """Start the REST API server."""
    import uvicorn

    config = _load_config(ctx)
    host = host or config.api.host
    port = port or config.api.port

    # The app factory loads its own config; point it at the same file
    if ctx.obj.get("config_path"):
        os.environ["RATE_LEDGER_CONFIG"] = os.path.abspath(ctx.obj["config_path"])

    console.print(f"Starting rate-ledger API on [bold]{host}:{port}[/bold]")
    console.print(f"API docs: http://{host}:{port}/docs")

    uvicorn.run(
        "rate_ledger.api.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
    )
