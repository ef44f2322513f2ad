"""
Orchestrator: drives one engine cycle across every tracked instrument.

Cycle order:
    1. Drawdown governor:  equity -> halted?
    2. Bar detection:      latest bar open time vs last_processed_bar_time
    3. Venue reconcile:    open-trade flags from the venue's live positions
    4. On a new bar:       VWAP + ADR + volume profile refresh per instrument,
                           then entry evaluation (unless halted or the
                           position list is unavailable)
    5. Every cycle:        trade manager over open positions, then reconcile
                           open-trade flags against the venue

Heavy analytics run once per completed bar; position management runs on
every call. Collaborator failures are logged and degrade the cycle; the
next call simply tries again.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Sequence

from vwap_core.adr import compute_adr
from vwap_core.contracts import (
    Analytics,
    Bar,
    Importance,
    InstrumentSpec,
    InstrumentState,
    Position,
    Quote,
    StopUpdate,
)
from vwap_core.drawdown import DrawdownGovernor
from vwap_core.errors import DataUnavailable, DegenerateRange
from vwap_core.events import EventSink, NullEventSink
from vwap_core.filters import FrequencyFilter, NewsFilter, TimeFilter, parse_weekdays
from vwap_core.ports import (
    AccountInfoProvider,
    CalendarService,
    ExecutionService,
    InstrumentSpecProvider,
    MarketDataProvider,
)
from vwap_core.risk_engine import RiskSizer
from vwap_core.session import day_start, parse_timeframe, weekly_anchor
from vwap_core.signals import SignalEngine
from vwap_core.trade_manager import TradeManager, reconcile
from vwap_core.volume_profile import compute_levels
from vwap_core.vwap import compute_vwap

if TYPE_CHECKING:
    from config.engine_config import EngineConfig

logger = logging.getLogger("vwap.orchestrator")

DAILY_TIMEFRAME = "1d"


@dataclass(frozen=True)
class CycleResult:
    """Summary of one orchestrator cycle, for output and tests."""

    now: datetime
    new_bar: bool
    halted: bool
    bar_time: datetime | None = None
    entries: list[str] = field(default_factory=list)
    stop_updates: list[StopUpdate] = field(default_factory=list)
    closed: list[str] = field(default_factory=list)


def _utc(ts: datetime) -> datetime:
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


class Orchestrator:
    """Owns per-instrument state and wires the engines together.

    Parameters
    ----------
    instruments:
        Symbols to track. The first one is the reference for new-bar detection.
    market_data, account, specs, execution, calendar:
        External collaborators (see ``vwap_core.ports``).
    config:
        Engine configuration.
    timeframe:
        Bar timeframe for VWAP, the volume profile and trade spacing.
    events:
        Optional event sink for structured output.
    now:
        Startup time; fixes the weekly session anchor.
    """

    def __init__(
        self,
        instruments: Sequence[str],
        *,
        market_data: MarketDataProvider,
        account: AccountInfoProvider,
        specs: InstrumentSpecProvider,
        execution: ExecutionService,
        config: EngineConfig,
        timeframe: str = "15m",
        calendar: CalendarService | None = None,
        events: EventSink | None = None,
        now: datetime | None = None,
    ) -> None:
        if not instruments:
            raise ValueError("At least one instrument is required")
        parse_timeframe(timeframe)

        self._market_data = market_data
        self._account = account
        self._specs = specs
        self._execution = execution
        self._config = config
        self._timeframe = timeframe
        self._events = events or NullEventSink()

        self._states: dict[str, InstrumentState] = {
            symbol: InstrumentState(symbol=symbol) for symbol in instruments
        }
        self._reference = instruments[0]
        self.session_anchor = weekly_anchor(_utc(now or datetime.now(timezone.utc)))
        self.last_processed_bar_time: datetime | None = None

        self._drawdown = DrawdownGovernor(max_drawdown_pct=config.risk.max_daily_drawdown_pct)

        tf_cfg = config.time_filter
        news_cfg = config.news_filter
        filters = [
            TimeFilter(
                enabled=tf_cfg.enabled,
                allowed_weekdays=parse_weekdays(tf_cfg.allowed_weekdays),
                start_hour=tf_cfg.start_hour,
                end_hour=tf_cfg.end_hour,
            ),
            NewsFilter(
                calendar,
                enabled=news_cfg.enabled,
                window=timedelta(minutes=news_cfg.window_minutes),
                min_importance=Importance[news_cfg.min_importance],
            ),
            FrequencyFilter(
                min_bars=config.frequency.min_bars_between_trades,
                timeframe=timeframe,
            ),
        ]
        self._signals = SignalEngine(
            execution,
            RiskSizer(config.risk.risk_pct_per_trade),
            filters,
            config,
            self._events,
        )
        self._trades = TradeManager(
            execution,
            specs,
            crossover_exit=config.trade_management.crossover_exit,
            stop_adr_fraction=config.trade_management.stop_adr_fraction,
            events=self._events,
        )

    @property
    def states(self) -> dict[str, InstrumentState]:
        return self._states

    @property
    def drawdown(self) -> DrawdownGovernor:
        return self._drawdown

    # ------------------------------------------------------------------
    # Cycle
    # ------------------------------------------------------------------

    def run_cycle(self, now: datetime | None = None) -> CycleResult:
        """Run one poll cycle. Never raises for collaborator failures."""
        now = _utc(now or datetime.now(timezone.utc))

        equity = self._fetch_equity()
        was_halted = self._drawdown.halted
        if equity is not None:
            status = self._drawdown.update(equity, now)
            if status.halted and not was_halted:
                self._events.emit("trading_halted", reason=status.reason,
                                  drawdown_pct=round(status.drawdown_pct, 2))
        halted = self._drawdown.halted

        bar_time = self._latest_bar_time(now)
        new_bar = bar_time is not None and bar_time != self.last_processed_bar_time
        entries: list[str] = []

        positions = self._fetch_positions()
        if positions is not None:
            reconcile(self._states, positions)

        if new_bar:
            self.last_processed_bar_time = bar_time
            self._events.emit("cycle_start", bar_open=bar_time.isoformat(),
                              instruments=len(self._states))
            for symbol in self._states:
                self.refresh_analytics(symbol, now)
            if halted:
                logger.info("Entries suppressed: drawdown breaker active")
            elif equity is None:
                logger.info("Entries suppressed: account equity unavailable")
            elif positions is None:
                logger.info("Entries suppressed: venue positions unavailable")
            else:
                entries = self._evaluate_entries(equity, bar_time, now)
                if entries:
                    positions = self._fetch_positions()

        stop_updates: list[StopUpdate] = []
        closed: list[str] = []
        if positions is not None:
            quotes = self._quotes_for(positions)
            managed = self._trades.manage(self._states, quotes, positions)
            stop_updates, closed = managed.stop_updates, managed.closed
            live = self._fetch_positions() if managed.closed else positions
            if live is not None:
                reconcile(self._states, live)

        if new_bar:
            self._events.emit("cycle_complete", entries=len(entries),
                              stop_updates=len(stop_updates), closed=len(closed))
        return CycleResult(
            now=now,
            new_bar=new_bar,
            halted=halted,
            bar_time=bar_time,
            entries=entries,
            stop_updates=stop_updates,
            closed=closed,
        )

    # ------------------------------------------------------------------
    # Analytics
    # ------------------------------------------------------------------

    def refresh_analytics(self, symbol: str, now: datetime) -> Analytics:
        """Recompute VWAP, ADR and profile levels for *symbol*.

        The new snapshot replaces the old one in a single assignment. When a
        fetch fails or a value comes out unavailable, the previous VWAP, ADR
        or levels are kept.
        """
        state = self._states[symbol]
        previous = state.analytics
        spec = self._spec(symbol)
        if spec is None:
            return previous

        bars = self._fetch_bars(symbol, self._timeframe, self.session_anchor, now)
        vwap = compute_vwap(bars, spec.price_precision)
        if vwap <= 0:
            logger.warning("%s: VWAP unavailable (%d bars since %s), keeping %s",
                           symbol, len(bars), self.session_anchor.isoformat(), previous.vwap)
            vwap = previous.vwap

        adr = compute_adr(self._daily_bars(symbol, now), self._config.adr.period,
                          spec.price_increment)
        if adr <= 0:
            logger.warning("%s: ADR unavailable, keeping %s", symbol, previous.adr)
            adr = previous.adr

        levels = previous.levels
        try:
            levels = compute_levels(bars, self._config.volume_profile.bin_count,
                                    spec.price_precision)
        except (DataUnavailable, DegenerateRange) as exc:
            logger.warning("%s: volume profile not updated, keeping previous levels: %s",
                           symbol, exc)

        state.analytics = Analytics(vwap=vwap, adr=adr, levels=levels, updated_at=now)
        self._events.emit(
            "analytics_updated",
            instrument=symbol,
            vwap=vwap,
            adr=adr,
            poc=levels.poc_price if levels else None,
            hvn=[levels.hvn_lower, levels.hvn_upper] if levels else None,
            lvn=[levels.lvn_lower, levels.lvn_upper] if levels else None,
        )
        return state.analytics

    def _daily_bars(self, symbol: str, now: datetime) -> list[Bar]:
        today = day_start(now)
        # Calendar-day buffer so weekends and holidays still leave `period` trading days.
        lookback = timedelta(days=self._config.adr.period * 2 + 7)
        bars = self._fetch_bars(symbol, DAILY_TIMEFRAME, today - lookback, today)
        return [b for b in bars if _utc(b.timestamp) < today]

    # ------------------------------------------------------------------
    # Entries
    # ------------------------------------------------------------------

    def _evaluate_entries(self, equity: float, bar_time: datetime, now: datetime) -> list[str]:
        entered: list[str] = []
        for symbol, state in self._states.items():
            if state.has_open_trade:
                continue
            spec = self._spec(symbol)
            quote = self._fetch_quote(symbol)
            if spec is None or quote is None:
                continue
            result = self._signals.process(
                state, quote, spec, equity=equity, bar_time=bar_time, now=now,
            )
            if result is not None and result.success:
                entered.append(symbol)
        return entered

    # ------------------------------------------------------------------
    # Collaborator access (failures degrade, never raise)
    # ------------------------------------------------------------------

    def _latest_bar_time(self, now: datetime) -> datetime | None:
        step = parse_timeframe(self._timeframe)
        bars = self._fetch_bars(self._reference, self._timeframe, now - step * 3, now)
        if not bars:
            return None
        return _utc(bars[-1].timestamp)

    def _fetch_bars(self, symbol: str, timeframe: str, start: datetime, end: datetime) -> list[Bar]:
        try:
            bars = list(self._market_data.bars(symbol, timeframe, start, end))
        except Exception as exc:
            logger.warning("%s %s: bar fetch failed: %s", symbol, timeframe, exc)
            return []
        if not bars:
            logger.debug("%s %s: no bars in [%s, %s]", symbol, timeframe,
                         start.isoformat(), end.isoformat())
        return bars

    def _fetch_quote(self, symbol: str) -> Quote | None:
        try:
            quote = self._market_data.quote(symbol)
        except Exception as exc:
            logger.warning("%s: quote fetch failed: %s", symbol, exc)
            return None
        if quote is None:
            logger.debug("%s: no quote available", symbol)
        return quote

    def _quotes_for(self, positions: Sequence[Position]) -> dict[str, Quote]:
        quotes: dict[str, Quote] = {}
        for symbol in {p.symbol for p in positions}:
            quote = self._fetch_quote(symbol)
            if quote is not None:
                quotes[symbol] = quote
        return quotes

    def _fetch_equity(self) -> float | None:
        try:
            return float(self._account.equity())
        except Exception as exc:
            logger.warning("Account equity unavailable: %s", exc)
            return None

    def _fetch_positions(self) -> list[Position] | None:
        try:
            return list(self._execution.positions())
        except Exception as exc:
            logger.warning("Position list unavailable: %s", exc)
            return None

    def _spec(self, symbol: str) -> InstrumentSpec | None:
        try:
            return self._specs.spec(symbol)
        except KeyError:
            logger.error("%s: no instrument spec configured", symbol)
            return None
