"""
Data contracts for vwap-core: bars, quotes, instrument specs, volume
profile, per-instrument state and positions.

vwap-core consumes Bar/Quote/InstrumentSpec and produces analytics,
EntryDecisions and stop updates. No I/O; these are plain dataclasses.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, IntEnum


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class Side(str, Enum):
    """Direction of a position or entry signal."""

    LONG = "LONG"
    SHORT = "SHORT"


class Importance(IntEnum):
    """Economic-event impact, ordered so comparisons work."""

    NONE = 0
    LOW = 1
    MODERATE = 2
    HIGH = 3


# ---------------------------------------------------------------------------
# Market data
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Bar:
    """OHLCV bar; ``timestamp`` is the bar open time in UTC."""

    open: float
    high: float
    low: float
    close: float
    volume: int
    timestamp: datetime
    symbol: str
    bar_index: int | None = None

    def typical_price(self) -> float:
        """(high + low + close) / 3."""
        return (self.high + self.low + self.close) / 3.0

    def bar_range(self) -> float:
        """Full extent of the candle: high - low."""
        return self.high - self.low


@dataclass(frozen=True)
class Quote:
    """Top-of-book snapshot."""

    symbol: str
    bid: float
    ask: float
    timestamp: datetime

    def mid(self) -> float:
        return (self.bid + self.ask) / 2.0


@dataclass(frozen=True)
class InstrumentSpec:
    """Venue trading specification for one instrument.

    ``increment_value`` is the account-currency value of one price
    increment for a position of size 1. ``min_stop_distance`` is in price
    units.
    """

    symbol: str
    price_increment: float
    increment_value: float
    size_step: float
    min_size: float
    max_size: float
    min_stop_distance: float = 0.0
    price_precision: int = 5


# ---------------------------------------------------------------------------
# Volume profile
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PriceBin:
    """One fixed-width price bucket and the volume traded in it."""

    lower_price: float
    volume: int


@dataclass(frozen=True)
class VolumeProfile:
    """Equal-width bins covering [session_low, session_high]."""

    session_low: float
    session_high: float
    bin_width: float
    bins: list[PriceBin] = field(default_factory=list)

    def total_volume(self) -> int:
        return sum(b.volume for b in self.bins)


@dataclass(frozen=True)
class ProfileLevels:
    """Published volume-profile prices: POC plus HVN/LVN bands."""

    poc_price: float
    hvn_lower: float
    hvn_upper: float
    lvn_lower: float
    lvn_upper: float


# ---------------------------------------------------------------------------
# Per-instrument state
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Analytics:
    """Analytics snapshot for one instrument.

    Replaced as a whole on every bar update so VWAP, ADR and the profile
    levels always come from the same refresh.
    """

    vwap: float = 0.0
    adr: float = 0.0
    levels: ProfileLevels | None = None
    updated_at: datetime | None = None

    def is_tradeable(self) -> bool:
        """False while VWAP or ADR hold the 0.0 "unavailable" sentinel."""
        return self.vwap > 0 and self.adr > 0 and self.levels is not None


@dataclass
class InstrumentState:
    """Mutable bookkeeping for one tracked instrument."""

    symbol: str
    analytics: Analytics = field(default_factory=Analytics)
    has_open_trade: bool = False
    last_trade_bar_time: datetime | None = None

    @property
    def vwap(self) -> float:
        return self.analytics.vwap

    @property
    def adr(self) -> float:
        return self.analytics.adr

    @property
    def levels(self) -> ProfileLevels | None:
        return self.analytics.levels


# ---------------------------------------------------------------------------
# Trading
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Position:
    """Open position as reported by the execution venue."""

    id: str
    symbol: str
    side: Side
    size: float
    open_price: float
    stop_loss: float | None = None
    take_profit: float | None = None


@dataclass(frozen=True)
class EntryDecision:
    """Accepted entry candidate, before sizing."""

    symbol: str
    side: Side
    entry_price: float
    stop_loss: float
    take_profit: float
    stop_increments: float


@dataclass(frozen=True)
class ExecutionResult:
    """Outcome of a request to the execution venue."""

    success: bool
    position_id: str | None = None
    reason: str = ""


@dataclass(frozen=True)
class StopUpdate:
    """A stop modification the trade manager requested."""

    position_id: str
    symbol: str
    old_stop: float | None
    new_stop: float
    stage: int


@dataclass(frozen=True)
class CalendarEvent:
    """Scheduled economic release affecting one currency."""

    currency: str
    time: datetime
    importance: Importance
    title: str = ""
