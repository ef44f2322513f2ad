"""
Alpaca market data: implements the MarketDataProvider contract using alpaca-py.

Maps Alpaca Bar objects to vwap_core.contracts.Bar (OHLCV, UTC open time,
symbol) and latest quotes to vwap_core.contracts.Quote.

Pair symbols written with a slash (``BTC/USD``) go to the crypto data API;
anything else is treated as a US equity ticker. Alpaca carries no forex
data, so FX pairs such as EURUSD need the ``store`` source fed from another
provider. Free tier equities use IEX data; SIP requires Algo Trader Plus.
"""

import logging
from datetime import datetime, timezone

from vwap_core.contracts import Bar, Quote

logger = logging.getLogger(__name__)

_TIMEFRAME_MAP = {
    "1m": ("Minute", 1),
    "5m": ("Minute", 5),
    "15m": ("Minute", 15),
    "30m": ("Minute", 30),
    "1h": ("Hour", 1),
    "4h": ("Hour", 4),
    "1d": ("Day", 1),
}


def _parse_timeframe(tf_str: str):
    """Convert string timeframe to Alpaca TimeFrame object."""
    from alpaca.data.timeframe import TimeFrame, TimeFrameUnit

    if tf_str not in _TIMEFRAME_MAP:
        raise ValueError(
            f"Unsupported timeframe '{tf_str}'. Supported: {list(_TIMEFRAME_MAP.keys())}"
        )
    unit_str, amount = _TIMEFRAME_MAP[tf_str]
    unit = getattr(TimeFrameUnit, unit_str)
    return TimeFrame(amount, unit)


def _utc(ts: datetime) -> datetime:
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def is_crypto_pair(symbol: str) -> bool:
    """Alpaca crypto symbols are written BASE/QUOTE."""
    return "/" in symbol


class AlpacaMarketData:
    """
    Fetch OHLCV bars and latest quotes from Alpaca Market Data API.

    Uses StockHistoricalDataClient for equity tickers and
    CryptoHistoricalDataClient for BASE/QUOTE pairs.
    API keys via constructor (typically from AppConfig, sourced from env vars).
    """

    def __init__(self, api_key: str, api_secret: str, *, feed: str = "iex") -> None:
        if not api_key or not api_secret:
            raise ValueError(
                "Alpaca API key and secret are required. "
                "Set APCA_API_KEY_ID and APCA_API_SECRET_KEY environment variables."
            )
        try:
            from alpaca.data.historical import CryptoHistoricalDataClient, StockHistoricalDataClient
        except ImportError:
            raise ImportError(
                "alpaca-py is required for AlpacaMarketData. "
                "Install with: pip install 'vwap-engine[data]'"
            )
        self._client = StockHistoricalDataClient(api_key, api_secret)
        self._crypto_client = CryptoHistoricalDataClient(api_key, api_secret)
        self._feed = feed

    def bars(self, symbol: str, timeframe: str, start: datetime, end: datetime) -> list[Bar]:
        """Fetch bars from Alpaca; normalize timestamps to UTC."""
        if is_crypto_pair(symbol):
            from alpaca.data.requests import CryptoBarsRequest

            request_params = CryptoBarsRequest(
                symbol_or_symbols=symbol,
                timeframe=_parse_timeframe(timeframe),
                start=start,
                end=end,
            )
            response = self._crypto_client.get_crypto_bars(request_params)
        else:
            from alpaca.data.enums import DataFeed
            from alpaca.data.requests import StockBarsRequest

            request_params = StockBarsRequest(
                symbol_or_symbols=symbol,
                timeframe=_parse_timeframe(timeframe),
                start=start,
                end=end,
                feed=DataFeed(self._feed.lower()),
            )
            response = self._client.get_stock_bars(request_params)
        raw_bars = response.data.get(symbol, []) if hasattr(response, "data") else response.get(symbol, [])
        bars: list[Bar] = []
        for i, alpaca_bar in enumerate(raw_bars):
            bars.append(
                Bar(
                    open=float(alpaca_bar.open),
                    high=float(alpaca_bar.high),
                    low=float(alpaca_bar.low),
                    close=float(alpaca_bar.close),
                    volume=int(alpaca_bar.volume),
                    timestamp=_utc(alpaca_bar.timestamp),
                    symbol=symbol,
                    bar_index=i,
                )
            )
        logger.info("Fetched %d bars for %s %s", len(bars), symbol, timeframe)
        return bars

    def quote(self, symbol: str) -> Quote | None:
        """Latest NBBO-style quote; None if Alpaca returns nothing usable."""
        if is_crypto_pair(symbol):
            from alpaca.data.requests import CryptoLatestQuoteRequest

            response = self._crypto_client.get_crypto_latest_quote(
                CryptoLatestQuoteRequest(symbol_or_symbols=symbol)
            )
        else:
            from alpaca.data.enums import DataFeed
            from alpaca.data.requests import StockLatestQuoteRequest

            request_params = StockLatestQuoteRequest(
                symbol_or_symbols=symbol,
                feed=DataFeed(self._feed.lower()),
            )
            response = self._client.get_stock_latest_quote(request_params)
        raw = response.get(symbol)
        if raw is None or not raw.bid_price or not raw.ask_price:
            return None
        return Quote(
            symbol=symbol,
            bid=float(raw.bid_price),
            ask=float(raw.ask_price),
            timestamp=_utc(raw.timestamp),
        )
