"""
Signal engine: live quote vs VWAP and volume-profile bands -> entry.

Long : ask > vwap and (bid > hvn_upper or bid > lvn_upper)
Short: bid < vwap and (ask < hvn_lower or ask < lvn_lower)

Long is evaluated first, so it wins if both conditions ever hold.
Stop and target are fractions of ADR (0.10 and 0.50 by default),
converted from price increments to price.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Sequence

from vwap_core.contracts import (
    EntryDecision,
    ExecutionResult,
    InstrumentSpec,
    InstrumentState,
    Quote,
    Side,
)
from vwap_core.errors import ConstraintViolation
from vwap_core.events import EventSink, NullEventSink
from vwap_core.filters import EntryFilter, apply_filters
from vwap_core.ports import ExecutionService
from vwap_core.risk_engine import RiskSizer

if TYPE_CHECKING:
    from config.engine_config import EngineConfig

logger = logging.getLogger("vwap.signals")

# Tolerance for comparing price distances that were rounded to precision.
_PRICE_EPS = 1e-9


def entry_side(state: InstrumentState, quote: Quote) -> Side | None:
    """Direction implied by the quote vs VWAP and the profile bands."""
    levels = state.levels
    if levels is None or state.vwap <= 0:
        return None
    if quote.ask > state.vwap and (quote.bid > levels.hvn_upper or quote.bid > levels.lvn_upper):
        return Side.LONG
    if quote.bid < state.vwap and (quote.ask < levels.hvn_lower or quote.ask < levels.lvn_lower):
        return Side.SHORT
    return None


def decide_entry(
    state: InstrumentState,
    quote: Quote,
    spec: InstrumentSpec,
    *,
    stop_adr_fraction: float = 0.10,
    target_adr_fraction: float = 0.50,
) -> EntryDecision | None:
    """Build the entry candidate for the current quote, if any.

    Returns None when there is no signal or analytics are unavailable.

    Raises
    ------
    ConstraintViolation
        If the stop or target sits closer to the execution price than the
        instrument's minimum stop distance.
    """
    if not state.analytics.is_tradeable():
        return None
    side = entry_side(state, quote)
    if side is None:
        return None

    stop_increments = stop_adr_fraction * state.adr
    stop_distance = stop_increments * spec.price_increment
    target_distance = target_adr_fraction * state.adr * spec.price_increment
    digits = spec.price_precision

    if side == Side.LONG:
        entry = quote.ask
        stop = round(entry - stop_distance, digits)
        target = round(entry + target_distance, digits)
    else:
        entry = quote.bid
        stop = round(entry + stop_distance, digits)
        target = round(entry - target_distance, digits)

    for label, level in (("stop", stop), ("target", target)):
        if abs(entry - level) + _PRICE_EPS < spec.min_stop_distance:
            raise ConstraintViolation(
                f"{spec.symbol} {side.value}: {label} {level} within minimum "
                f"distance {spec.min_stop_distance} of entry {entry}"
            )

    return EntryDecision(
        symbol=state.symbol,
        side=side,
        entry_price=entry,
        stop_loss=stop,
        take_profit=target,
        stop_increments=stop_increments,
    )


class SignalEngine:
    """Per-bar entry state machine for one instrument at a time.

    Analytics check -> filters -> decision -> sizing -> order. State is
    only touched after the venue confirms the order, so a rejected order
    is simply retried on the next bar.
    """

    def __init__(
        self,
        execution: ExecutionService,
        sizer: RiskSizer,
        filters: Sequence[EntryFilter],
        config: EngineConfig,
        events: EventSink | None = None,
    ) -> None:
        self._execution = execution
        self._sizer = sizer
        self._filters = list(filters)
        self._config = config
        self._events = events or NullEventSink()

    def process(
        self,
        state: InstrumentState,
        quote: Quote,
        spec: InstrumentSpec,
        *,
        equity: float,
        bar_time: datetime,
        now: datetime,
    ) -> ExecutionResult | None:
        """Evaluate one instrument on a new bar; place an order if warranted.

        Returns the venue's ExecutionResult when an order was attempted,
        None when no order was attempted.
        """
        if state.has_open_trade:
            return None
        if not state.analytics.is_tradeable():
            logger.debug("%s: analytics unavailable (vwap=%.5f adr=%.2f), skipping",
                         state.symbol, state.vwap, state.adr)
            return None

        gate = apply_filters(self._filters, state, now, bar_time)
        if not gate.passed:
            logger.info("%s: entry blocked: %s", state.symbol, "; ".join(gate.reasons))
            self._events.emit("entry_blocked", instrument=state.symbol, reasons=gate.reasons)
            return None

        tm = self._config.trade_management
        try:
            decision = decide_entry(
                state, quote, spec,
                stop_adr_fraction=tm.stop_adr_fraction,
                target_adr_fraction=tm.target_adr_fraction,
            )
        except ConstraintViolation as exc:
            logger.info("Signal rejected: %s", exc)
            self._events.emit("signal_rejected", instrument=state.symbol, reason=str(exc))
            return None
        if decision is None:
            return None

        size = self._sizer.size(equity, decision.stop_increments, spec)
        if size <= 0:
            reason = "computed size is zero (instrument misconfigured or no equity)"
            logger.warning("%s: %s", state.symbol, reason)
            self._events.emit("signal_rejected", instrument=state.symbol, reason=reason)
            return None

        self._events.emit(
            "signal_detected",
            instrument=state.symbol,
            direction=decision.side.value,
            entry=decision.entry_price,
            stop=decision.stop_loss,
            target=decision.take_profit,
            size=size,
        )
        result = self._place(decision, size)
        if result.success:
            state.has_open_trade = True
            state.last_trade_bar_time = bar_time
            self._events.emit(
                "trade_submitted",
                instrument=state.symbol,
                direction=decision.side.value,
                qty=size,
                stop=decision.stop_loss,
                target=decision.take_profit,
                position_id=result.position_id,
            )
        else:
            logger.warning("%s: order rejected: %s", state.symbol, result.reason)
            self._events.emit("order_rejected", instrument=state.symbol, reason=result.reason)
        return result

    def _place(self, decision: EntryDecision, size: float) -> ExecutionResult:
        open_order = (
            self._execution.open_long if decision.side == Side.LONG else self._execution.open_short
        )
        try:
            return open_order(
                decision.symbol, size, decision.entry_price,
                decision.stop_loss, decision.take_profit,
            )
        except Exception as exc:
            logger.error("%s: execution venue error: %s", decision.symbol, exc)
            return ExecutionResult(success=False, reason=f"venue error: {exc}")
