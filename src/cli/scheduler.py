"""
Live paper-trading scheduler: fixed-interval poll loop around the orchestrator.

Each tick settles paper positions against the latest quotes (stop/target
hits), then runs one orchestrator cycle. Analytics and entries only happen
when a new bar has appeared; trade management runs every tick.
Ctrl+C for graceful shutdown.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Callable, Sequence

import click

from cli.output import format_cycle
from execution import PaperExecutor
from vwap_core.orchestrator import CycleResult, Orchestrator
from vwap_core.ports import MarketDataProvider

logger = logging.getLogger("vwap.scheduler")


def settle_positions(
    executor: PaperExecutor,
    market_data: MarketDataProvider,
    instruments: Sequence[str],
) -> int:
    """Mark every instrument's paper positions to its latest quote. Returns number closed."""
    closed = 0
    for symbol in instruments:
        try:
            quote = market_data.quote(symbol)
        except Exception as exc:
            logger.warning("%s: quote fetch failed during settle: %s", symbol, exc)
            continue
        if quote is None:
            continue
        for trade in executor.settle(quote):
            click.echo(f"  Paper {trade.reason} hit: {trade.symbol} {trade.side} @ {trade.close_price}"
                       f"  PnL ${trade.pnl:+.2f}")
            closed += 1
    return closed


def run_tick(
    orchestrator: Orchestrator,
    executor: PaperExecutor,
    market_data: MarketDataProvider,
    instruments: Sequence[str],
    now: datetime | None = None,
) -> CycleResult:
    """One scheduler tick: settle, then orchestrate."""
    settle_positions(executor, market_data, instruments)
    return orchestrator.run_cycle(now or datetime.now(timezone.utc))


def run_live_loop(
    orchestrator: Orchestrator,
    *,
    executor: PaperExecutor,
    market_data: MarketDataProvider,
    instruments: Sequence[str],
    poll_seconds: float,
    events=None,
    max_cycles: int | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> int:
    """
    Main loop: tick, sleep ``poll_seconds``, repeat.
    Returns the number of completed ticks.
    """
    cycles = 0

    click.echo(f"Live paper trading started: {', '.join(instruments)}")
    click.echo(f"Polling every {poll_seconds:g}s  |  Ctrl+C to stop\n")

    try:
        while max_cycles is None or cycles < max_cycles:
            try:
                result = run_tick(orchestrator, executor, market_data, instruments)
            except Exception as exc:
                logger.exception("Cycle failed")
                if events is not None:
                    events.error("cycle failed", detail=str(exc))
            else:
                if result.new_bar or result.stop_updates or result.closed:
                    click.echo(format_cycle(result))
            cycles += 1
            if max_cycles is not None and cycles >= max_cycles:
                break
            sleep(poll_seconds)

    except KeyboardInterrupt:
        click.echo(f"\n\nShutting down after {cycles} cycle(s). Goodbye.")

    if events is not None:
        events.shutdown(cycles)
    return cycles
