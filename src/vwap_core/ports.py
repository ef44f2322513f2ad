"""
Collaborator contracts consumed by vwap-core.

Market data, account equity, instrument specs, order execution and the
economic calendar all live outside the core. Implementations are injected
(see ``data``, ``execution``); tests substitute in-memory fakes.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol, Sequence

from vwap_core.contracts import (
    Bar,
    CalendarEvent,
    ExecutionResult,
    InstrumentSpec,
    Position,
    Quote,
)


class MarketDataProvider(Protocol):
    """Bars and quotes. May return empty bars on failure, or raise."""

    def bars(self, symbol: str, timeframe: str, start: datetime, end: datetime) -> Sequence[Bar]:
        """Bars with open time in [start, end], oldest first."""
        ...

    def quote(self, symbol: str) -> Quote | None:
        """Latest bid/ask, or None when unavailable."""
        ...


class AccountInfoProvider(Protocol):
    def equity(self) -> float:
        ...


class InstrumentSpecProvider(Protocol):
    def spec(self, symbol: str) -> InstrumentSpec:
        """Raise KeyError for unknown instruments."""
        ...


class ExecutionService(Protocol):
    """Order placement and position maintenance at the venue."""

    def open_long(self, symbol: str, size: float, entry: float, stop: float, target: float) -> ExecutionResult:
        ...

    def open_short(self, symbol: str, size: float, entry: float, stop: float, target: float) -> ExecutionResult:
        ...

    def modify_stop(self, position_id: str, new_stop: float, target: float | None) -> ExecutionResult:
        ...

    def close_position(self, position_id: str) -> ExecutionResult:
        ...

    def positions(self) -> Sequence[Position]:
        """All currently open positions."""
        ...


class CalendarService(Protocol):
    def events(self, currency: str, start: datetime, end: datetime) -> Sequence[CalendarEvent]:
        ...
