"""
Data collaborators: market data (bars/quotes), instrument specs, calendar.

Depends on vwap_core.contracts for Bar/Quote; no dependency from vwap_core back to data.
"""

from data.bar_store import BarStore, StoreMarketData
from data.calendar import StaticCalendar, load_calendar
from data.fetcher import InMemoryMarketData
from data.instruments import StaticInstrumentSpecs

__all__ = [
    "BarStore",
    "InMemoryMarketData",
    "StaticCalendar",
    "StaticInstrumentSpecs",
    "StoreMarketData",
    "load_calendar",
]


def get_alpaca_market_data(api_key: str, api_secret: str):
    """Lazy import to avoid requiring alpaca-py when not used."""
    from data.alpaca_fetcher import AlpacaMarketData

    return AlpacaMarketData(api_key, api_secret)
