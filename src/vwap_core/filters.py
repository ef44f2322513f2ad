"""
Entry filters: independent gating predicates applied before any entry.

Implemented filters:
    TimeFilter: allowed UTC weekdays and [start_hour, end_hour) window.
    NewsFilter: block around moderate-or-higher economic events for
        the instrument's base or quote currency.
    FrequencyFilter: minimum completed bars between trades per instrument.

Every filter returns a reason string when it blocks and None when it
passes. ``apply_filters`` runs all of them so every block reason is
reported; an entry needs all of them to pass.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Iterable, Protocol

from vwap_core.contracts import Importance, InstrumentState
from vwap_core.ports import CalendarService
from vwap_core.session import bars_between

logger = logging.getLogger("vwap.filters")

WEEKDAY_NAMES = ("MON", "TUE", "WED", "THU", "FRI", "SAT", "SUN")


class EntryFilter(Protocol):
    name: str

    def check(self, state: InstrumentState, now: datetime, bar_time: datetime) -> str | None:
        ...


@dataclass(frozen=True)
class FilterResult:
    """Outcome of the filter stage for one instrument."""

    passed: bool
    reasons: list[str] = field(default_factory=list)


def parse_weekdays(names: Iterable[str]) -> frozenset[int]:
    """Map weekday names ("MON".."SUN") to ``datetime.weekday()`` numbers."""
    days: set[int] = set()
    for name in names:
        key = name.strip().upper()[:3]
        if key not in WEEKDAY_NAMES:
            raise ValueError(f"Unknown weekday {name!r}; expected one of {WEEKDAY_NAMES}")
        days.add(WEEKDAY_NAMES.index(key))
    return frozenset(days)


def currency_codes(symbol: str) -> tuple[str, str]:
    """Base and quote currency of a symbol like 'EURUSD' or 'EUR/USD'."""
    compact = symbol.replace("/", "").upper()
    return compact[0:3], compact[3:6]


class TimeFilter:
    """Trade only on allowed UTC weekdays within [start_hour, end_hour)."""

    name = "time"

    def __init__(
        self,
        *,
        enabled: bool = False,
        allowed_weekdays: Iterable[int] = range(5),
        start_hour: int = 0,
        end_hour: int = 24,
    ) -> None:
        self._enabled = enabled
        self._weekdays = frozenset(allowed_weekdays)
        self._start_hour = start_hour
        self._end_hour = end_hour

    def check(self, state: InstrumentState, now: datetime, bar_time: datetime) -> str | None:
        if not self._enabled:
            return None
        if now.weekday() not in self._weekdays:
            return f"time: {WEEKDAY_NAMES[now.weekday()]} is not an allowed trading day"
        if not (self._start_hour <= now.hour < self._end_hour):
            return (
                f"time: hour {now.hour:02d} UTC outside "
                f"[{self._start_hour:02d}, {self._end_hour:02d})"
            )
        return None


class NewsFilter:
    """Block entries near scheduled high-impact releases.

    Queries the calendar for the base and quote currency within
    ``window`` either side of now. A calendar failure blocks trading: an
    unknown schedule is treated like a risky one.
    """

    name = "news"

    def __init__(
        self,
        calendar: CalendarService | None,
        *,
        enabled: bool = False,
        window: timedelta = timedelta(hours=1),
        min_importance: Importance = Importance.MODERATE,
    ) -> None:
        self._calendar = calendar
        self._enabled = enabled
        self._window = window
        self._min_importance = min_importance

    def check(self, state: InstrumentState, now: datetime, bar_time: datetime) -> str | None:
        if not self._enabled:
            return None
        if self._calendar is None:
            return "news: filter enabled but no calendar configured"

        start, end = now - self._window, now + self._window
        for currency in currency_codes(state.symbol):
            try:
                events = self._calendar.events(currency, start, end)
            except Exception as exc:
                logger.warning("Calendar lookup failed for %s: %s", currency, exc)
                return f"news: calendar unavailable for {currency}"
            for event in events:
                if event.importance >= self._min_importance:
                    return (
                        f"news: {event.importance.name} {currency} event "
                        f"'{event.title}' at {event.time.isoformat()}"
                    )
        return None


class FrequencyFilter:
    """Require ``min_bars`` completed bars since the instrument's last trade."""

    name = "frequency"

    def __init__(self, *, min_bars: int, timeframe: str) -> None:
        self._min_bars = min_bars
        self._timeframe = timeframe

    def check(self, state: InstrumentState, now: datetime, bar_time: datetime) -> str | None:
        if state.last_trade_bar_time is None:
            return None
        elapsed = bars_between(state.last_trade_bar_time, bar_time, self._timeframe)
        if elapsed < self._min_bars:
            return f"frequency: {elapsed} bar(s) since last trade, need {self._min_bars}"
        return None


def apply_filters(
    filters: Iterable[EntryFilter],
    state: InstrumentState,
    now: datetime,
    bar_time: datetime,
) -> FilterResult:
    """Run every filter; pass only if none of them blocks."""
    reasons: list[str] = []
    for f in filters:
        reason = f.check(state, now, bar_time)
        if reason is not None:
            reasons.append(reason)
    return FilterResult(passed=not reasons, reasons=reasons)
