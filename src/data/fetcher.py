"""
Market-data providers. Configurable adapter; sync, one call per request.

``MarketDataProvider`` (vwap_core.ports) is the contract; this module holds
the in-memory implementation used by tests and offline replays.
"""

from collections import defaultdict
from datetime import datetime, timezone
from typing import Iterable

from vwap_core.contracts import Bar, Quote
from vwap_core.ports import MarketDataProvider

__all__ = ["InMemoryMarketData", "MarketDataProvider"]


def _utc(ts: datetime) -> datetime:
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


class InMemoryMarketData:
    """Serves bars and quotes from memory. For tests and replays."""

    def __init__(self) -> None:
        self._bars: dict[tuple[str, str], list[Bar]] = defaultdict(list)
        self._quotes: dict[str, Quote] = {}

    def add_bars(self, symbol: str, timeframe: str, bars: Iterable[Bar]) -> None:
        key = (symbol, timeframe)
        merged = {_utc(b.timestamp): b for b in self._bars[key]}
        for b in bars:
            merged[_utc(b.timestamp)] = b
        self._bars[key] = [merged[ts] for ts in sorted(merged)]

    def set_quote(self, quote: Quote) -> None:
        self._quotes[quote.symbol] = quote

    def bars(self, symbol: str, timeframe: str, start: datetime, end: datetime) -> list[Bar]:
        start, end = _utc(start), _utc(end)
        return [b for b in self._bars.get((symbol, timeframe), []) if start <= _utc(b.timestamp) <= end]

    def quote(self, symbol: str) -> Quote | None:
        return self._quotes.get(symbol)
