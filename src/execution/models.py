"""Order, Fill, ClosedTrade for paper execution. Open positions use vwap_core.contracts.Position."""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class Order:
    id: str
    symbol: str
    side: str  # "buy" | "sell"
    size: float
    order_type: str  # "market" | "close"
    timestamp: datetime
    position_id: str | None = None


@dataclass
class Fill:
    id: str
    order_id: str
    symbol: str
    side: str
    size: float
    price: float
    timestamp: datetime


@dataclass
class ClosedTrade:
    position_id: str
    symbol: str
    side: str  # "LONG" | "SHORT"
    size: float
    open_price: float
    close_price: float
    pnl: float
    reason: str  # "stop" | "target" | "manual"
    closed_at: datetime
