"""
Trade manager: staged trailing-stop ladder and VWAP crossover exit.

Runs every cycle over every open position. Profit is measured in R, where
1R = stop_adr_fraction * ADR (in price increments) of the instrument:

    profit >= 1R -> stop to breakeven
    profit >= 2R -> stop locks +1R
    profit >= 3R -> stop locks +2R
    profit >= 4R -> stop locks +3R

Mirrored for shorts. Stops only ever tighten. Candidate stops inside the
venue's minimum distance, or less than one price increment away from the
current stop, are dropped.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Mapping, Sequence

from vwap_core.contracts import (
    InstrumentState,
    Position,
    Quote,
    Side,
    StopUpdate,
)
from vwap_core.events import EventSink, NullEventSink
from vwap_core.ports import ExecutionService, InstrumentSpecProvider

logger = logging.getLogger("vwap.trade_manager")

LADDER_STAGES = 4
_PRICE_EPS = 1e-9


@dataclass(frozen=True)
class ManageResult:
    """What the trade manager asked the venue to do this cycle."""

    stop_updates: list[StopUpdate] = field(default_factory=list)
    closed: list[str] = field(default_factory=list)


def profit_distance(position: Position, quote: Quote) -> float:
    """Open profit in price units, marked at the side the position would close on."""
    if position.side == Side.LONG:
        return quote.bid - position.open_price
    return position.open_price - quote.ask


def ladder_stop(position: Position, r_price: float, profit: float) -> tuple[int, float] | None:
    """Highest ladder stage reached and the stop it locks, or None below 1R."""
    if r_price <= 0:
        return None
    stage = 0
    for k in range(1, LADDER_STAGES + 1):
        if profit + _PRICE_EPS >= k * r_price:
            stage = k
    if stage == 0:
        return None
    locked = (stage - 1) * r_price
    if position.side == Side.LONG:
        return stage, position.open_price + locked
    return stage, position.open_price - locked


def crossed_vwap(position: Position, quote: Quote, vwap: float) -> bool:
    """True when the quote side that opened the position is back across VWAP.

    Longs open on ``ask > vwap`` and exit on ``ask < vwap``; shorts open on
    ``bid < vwap`` and exit on ``bid > vwap``. A quote straddling VWAP is not
    a crossover.
    """
    if vwap <= 0:
        return False
    if position.side == Side.LONG:
        return quote.ask < vwap
    return quote.bid > vwap


class TradeManager:
    """Position maintenance against an injected execution venue."""

    def __init__(
        self,
        execution: ExecutionService,
        specs: InstrumentSpecProvider,
        *,
        crossover_exit: bool = False,
        stop_adr_fraction: float = 0.10,
        events: EventSink | None = None,
    ) -> None:
        self._execution = execution
        self._specs = specs
        self._crossover_exit = crossover_exit
        self._stop_adr_fraction = stop_adr_fraction
        self._events = events or NullEventSink()

    def manage(
        self,
        states: Mapping[str, InstrumentState],
        quotes: Mapping[str, Quote],
        positions: Sequence[Position],
    ) -> ManageResult:
        """Apply the crossover exit and the stop ladder to *positions*."""
        result = ManageResult()
        for position in positions:
            state = states.get(position.symbol)
            quote = quotes.get(position.symbol)
            if state is None:
                logger.debug("Position %s on untracked %s ignored", position.id, position.symbol)
                continue
            if quote is None:
                logger.info("%s: no quote, position %s not managed this cycle",
                            position.symbol, position.id)
                continue

            if self._crossover_exit and crossed_vwap(position, quote, state.vwap):
                if self._close(position, state, quote):
                    result.closed.append(position.id)
                continue

            update = self._trail(position, state, quote)
            if update is not None:
                result.stop_updates.append(update)
        return result

    def _close(self, position: Position, state: InstrumentState, quote: Quote) -> bool:
        try:
            res = self._execution.close_position(position.id)
        except Exception as exc:
            logger.error("%s: close of %s failed: %s", position.symbol, position.id, exc)
            return False
        if not res.success:
            logger.warning("%s: close of %s rejected: %s", position.symbol, position.id, res.reason)
            self._events.emit("order_rejected", instrument=position.symbol, reason=res.reason)
            return False
        state.has_open_trade = False
        logger.info("%s: closed %s on VWAP crossover (vwap=%s bid=%s ask=%s)",
                    position.symbol, position.id, state.vwap, quote.bid, quote.ask)
        self._events.emit(
            "position_closed",
            instrument=position.symbol,
            position_id=position.id,
            reason="vwap_crossover",
            vwap=state.vwap,
        )
        return True

    def _trail(self, position: Position, state: InstrumentState, quote: Quote) -> StopUpdate | None:
        try:
            spec = self._specs.spec(position.symbol)
        except KeyError:
            logger.warning("%s: no instrument spec, stop not managed", position.symbol)
            return None

        r_price = self._stop_adr_fraction * state.adr * spec.price_increment
        rung = ladder_stop(position, r_price, profit_distance(position, quote))
        if rung is None:
            return None
        stage, raw_stop = rung
        candidate = round(raw_stop, spec.price_precision)
        current = position.stop_loss

        if current is not None:
            tighter = candidate > current if position.side == Side.LONG else candidate < current
            if not tighter:
                return None
            if abs(candidate - current) + _PRICE_EPS < spec.price_increment:
                return None

        if position.side == Side.LONG:
            gap = quote.bid - candidate
        else:
            gap = candidate - quote.ask
        if gap + _PRICE_EPS < spec.min_stop_distance or gap <= 0:
            logger.debug("%s: stage %d stop %s too close to market (gap %.6f)",
                         position.symbol, stage, candidate, gap)
            return None

        try:
            res = self._execution.modify_stop(position.id, candidate, position.take_profit)
        except Exception as exc:
            logger.error("%s: modify of %s failed: %s", position.symbol, position.id, exc)
            return None
        if not res.success:
            logger.warning("%s: modify of %s rejected: %s", position.symbol, position.id, res.reason)
            self._events.emit("order_rejected", instrument=position.symbol, reason=res.reason)
            return None

        update = StopUpdate(
            position_id=position.id,
            symbol=position.symbol,
            old_stop=current,
            new_stop=candidate,
            stage=stage,
        )
        self._events.emit(
            "stop_moved",
            instrument=position.symbol,
            position_id=position.id,
            stage=stage,
            old_stop=current,
            new_stop=candidate,
        )
        return update


def reconcile(states: Mapping[str, InstrumentState], positions: Sequence[Position]) -> list[str]:
    """Align ``has_open_trade`` with the venue's live positions.

    Returns the symbols whose flag changed.
    """
    open_symbols = {p.symbol for p in positions}
    changed: list[str] = []
    for symbol, state in states.items():
        live = symbol in open_symbols
        if state.has_open_trade != live:
            logger.info("%s: open-trade flag %s -> %s (venue reconcile)",
                        symbol, state.has_open_trade, live)
            state.has_open_trade = live
            changed.append(symbol)
    return changed
