"""
dexarb CLI
==========
Typer + Rich command-line interface.

Commands:
    dexarb replay events.jsonl
    dexarb replay events.jsonl --execute --min-divergence 2.5
    dexarb config
"""

import asyncio
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table

from dexarb.config.settings import ArbitrageConfig, Settings
from dexarb.core import ArbitrageEngine, DebounceScheduler, ExecutionGate, OpportunityStore
from dexarb.execution.router import paper_router
from dexarb.feeds.listener import ReplayListener, VenueListener
from dexarb.feeds.price_update import Venue
from dexarb.feeds.quote_fetcher import StaticQuoteFetcher
from dexarb.monitoring.reporter import Reporter
from dexarb.system.logging import Logger, setup_logging

app = typer.Typer(
    name="dexarb",
    help="Cross-venue Solana DEX arbitrage monitor (PumpSwap, Meteora DAMM v2, Meteora DLMM)",
    add_completion=False,
    rich_markup_mode="rich",
)

console = Console()


def build_engine(
    config: ArbitrageConfig,
    execute: bool = False,
    quote_fetcher: Optional[StaticQuoteFetcher] = None,
) -> ArbitrageEngine:
    """Wire store, scheduler, gate, reporter and (paper) executor into an engine."""
    store = OpportunityStore()
    return ArbitrageEngine(
        store=store,
        scheduler=DebounceScheduler(),
        gate=ExecutionGate(
            cooldown_ms=config.execution_cooldown_ms,
            hold_timeout_ms=config.execution_hold_timeout_ms,
        ),
        reporter=Reporter(store, min_percent=config.min_divergence_percent),
        executor=paper_router() if execute else None,
        quote_fetcher=quote_fetcher,
        config=config,
    )


async def _monitor(engine: ArbitrageEngine, interval_s: float) -> None:
    """Periodic summary and idle-opportunity eviction."""
    while True:
        await asyncio.sleep(interval_s)
        engine.housekeeping()
        if engine.reporter is not None:
            digest = engine.reporter.summary()
            if digest:
                Logger.info(f"[REPORT] {digest}")


async def run_listeners(
    engine: ArbitrageEngine,
    listeners: List[VenueListener],
    monitor_interval_s: float = 30.0,
) -> None:
    """Run every listener concurrently against one engine until they finish."""
    monitor = asyncio.create_task(_monitor(engine, monitor_interval_s))
    try:
        await asyncio.gather(*(listener.run(engine.on_venue_update) for listener in listeners))
        await engine.drain()
    finally:
        monitor.cancel()
        await asyncio.gather(monitor, return_exceptions=True)
        await engine.close()


@app.command()
def replay(
    events_file: Path = typer.Argument(
        ..., exists=True, dir_okay=False, readable=True, help="JSON-lines file of decoded venue swaps"
    ),
    min_divergence: Optional[float] = typer.Option(
        None, "--min-divergence", help="Report/trade threshold in percent"
    ),
    execute: bool = typer.Option(
        Settings.ENABLE_EXECUTION, "--execute/--no-execute", help="Dispatch paper trades"
    ),
    delay_ms: float = typer.Option(0.0, "--delay-ms", help="Pause between replayed events"),
    debounce_ms: Optional[int] = typer.Option(None, "--debounce-ms", help="Refresh debounce window"),
):
    """
    Replay recorded venue swaps through the arbitrage engine.

    \b
    Examples:
        dexarb replay data/sample_swaps.jsonl
        dexarb replay data/sample_swaps.jsonl --execute --min-divergence 2.5
    """
    setup_logging(Settings.LOG_LEVEL, Settings.LOG_DIR)
    Logger.set_level(Settings.LOG_LEVEL)
    Logger.set_silent(Settings.SILENT_MODE)

    try:
        config = ArbitrageConfig.from_settings(
            min_divergence_percent=min_divergence,
            debounce_delay_ms=debounce_ms,
        )
    except ValueError as e:
        console.print(f"[red]❌ Invalid configuration: {e}[/red]")
        raise typer.Exit(code=1)

    Logger.section("dexarb replay")
    Logger.info(f"[ENGINE] {events_file} | threshold {config.min_divergence_percent}% | execute={execute}")

    engine = build_engine(config, execute=execute)
    listeners = [
        ReplayListener(venue, str(events_file), delay_s=delay_ms / 1000, retry_delay_s=config.listener_retry_delay_s)
        for venue in Venue
    ]

    try:
        asyncio.run(run_listeners(engine, listeners))
    except KeyboardInterrupt:
        Logger.info("🛑 Stopped by user")

    _print_stats(engine)


def _print_stats(engine: ArbitrageEngine) -> None:
    table = Table(title="📊 Engine Stats")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    for key, value in engine.get_stats().items():
        table.add_row(key, str(value))
    console.print(table)

    if engine.reporter is not None:
        digest = engine.reporter.summary()
        console.print(digest or "[dim]No opportunities above threshold[/dim]")


@app.command()
def config():
    """Show the effective configuration (.env + environment)."""
    try:
        cfg = ArbitrageConfig.from_settings()
    except ValueError as e:
        console.print(f"[red]❌ Invalid configuration: {e}[/red]")
        raise typer.Exit(code=1)

    table = Table(title="⚙️ dexarb configuration")
    table.add_column("Option", style="cyan")
    table.add_column("Value", justify="right")
    for key, value in cfg.to_dict().items():
        table.add_row(key, str(value))
    table.add_row("enable_execution", str(Settings.ENABLE_EXECUTION))
    table.add_row("log_dir", Settings.LOG_DIR)
    console.print(table)


if __name__ == "__main__":
    app()
