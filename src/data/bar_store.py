"""
Local SQLite cache of OHLCV bars per (instrument, timeframe), filled by
`vwap ingest` and read back by the engine. Timestamps stored as UTC ISO strings.

StoreMarketData serves stored bars, plus a synthetic quote around the last
close, through the MarketDataProvider contract.
"""

import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Sequence

from vwap_core.contracts import Bar, Quote


def _utc_ts(ts: datetime) -> datetime:
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


class BarStore:
    """SQLite-backed bar storage keyed by symbol, timeframe and bar open time.

    Intraday bars feed VWAP and the volume profile; ``1d`` bars feed ADR.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    def _conn(self) -> sqlite3.Connection:
        return sqlite3.connect(str(self._path))

    def _init_schema(self) -> None:
        with self._conn() as c:
            c.execute(
                """
                CREATE TABLE IF NOT EXISTS bars (
                    symbol TEXT NOT NULL,
                    timeframe TEXT NOT NULL,
                    ts_utc TEXT NOT NULL,
                    open REAL NOT NULL,
                    high REAL NOT NULL,
                    low REAL NOT NULL,
                    close REAL NOT NULL,
                    volume INTEGER NOT NULL,
                    PRIMARY KEY (symbol, timeframe, ts_utc)
                )
                """
            )

    def write_bars(self, symbol: str, timeframe: str, bars: Sequence[Bar]) -> int:
        """Upsert bars; re-ingesting an overlapping range replaces the stored rows.

        Returns the number of rows written.
        """
        rows = [
            (symbol, timeframe, _utc_ts(b.timestamp).isoformat(), b.open, b.high, b.low, b.close, b.volume)
            for b in bars
        ]
        with self._conn() as c:
            c.executemany(
                """
                INSERT OR REPLACE INTO bars (symbol, timeframe, ts_utc, open, high, low, close, volume)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                rows,
            )
        return len(rows)

    def get_bars(
        self,
        symbol: str,
        timeframe: str,
        *,
        since: datetime | None = None,
        until: datetime | None = None,
        limit: int | None = None,
    ) -> list[Bar]:
        """Bars with open time in [since, until], oldest first. Bounds are inclusive."""
        with self._conn() as c:
            q = "SELECT ts_utc, open, high, low, close, volume FROM bars WHERE symbol = ? AND timeframe = ?"
            params: list = [symbol, timeframe]
            if since is not None:
                q += " AND ts_utc >= ?"
                params.append(_utc_ts(since).isoformat())
            if until is not None:
                q += " AND ts_utc <= ?"
                params.append(_utc_ts(until).isoformat())
            q += " ORDER BY ts_utc ASC"
            if limit is not None:
                q += " LIMIT ?"
                params.append(limit)
            rows = c.execute(q, params).fetchall()
        return self._rows_to_bars(rows, symbol)

    def count_bars(self, symbol: str, timeframe: str) -> int:
        """Number of stored bars for a symbol/timeframe pair (used by `vwap health`)."""
        with self._conn() as c:
            row = c.execute(
                "SELECT COUNT(*) FROM bars WHERE symbol = ? AND timeframe = ?",
                (symbol, timeframe),
            ).fetchone()
        return row[0] if row else 0

    def get_last_bars(
        self,
        symbol: str,
        timeframe: str,
        n: int,
        *,
        until: datetime | None = None,
    ) -> list[Bar]:
        """Last n bars up to *until*, oldest first. Backs the synthetic quote."""
        with self._conn() as c:
            q = (
                "SELECT ts_utc, open, high, low, close, volume FROM bars "
                "WHERE symbol = ? AND timeframe = ?"
            )
            params: list = [symbol, timeframe]
            if until is not None:
                q += " AND ts_utc <= ?"
                params.append(_utc_ts(until).isoformat())
            q += " ORDER BY ts_utc DESC LIMIT ?"
            params.append(n)
            rows = c.execute(q, params).fetchall()
        rows = list(reversed(rows))
        return self._rows_to_bars(rows, symbol)

    def _rows_to_bars(self, rows: list, symbol: str) -> list[Bar]:
        out: list[Bar] = []
        for i, (ts_utc, o, h, l, c, vol) in enumerate(rows):
            # ts_utc is an ISO string
            ts = datetime.fromisoformat(ts_utc.replace("Z", "+00:00"))
            if ts.tzinfo is None:
                ts = ts.replace(tzinfo=timezone.utc)
            out.append(
                Bar(
                    open=o,
                    high=h,
                    low=l,
                    close=c,
                    volume=vol,
                    timestamp=ts,
                    symbol=symbol,
                    bar_index=i,
                )
            )
        return out


class StoreMarketData:
    """MarketDataProvider backed by a BarStore.

    Quotes are synthesized from the last stored close of the quote
    timeframe: bid/ask = close -/+ spread / 2.
    """

    def __init__(self, store: BarStore, *, quote_timeframe: str, spread: float = 0.0) -> None:
        self._store = store
        self._quote_timeframe = quote_timeframe
        self._half_spread = spread / 2.0

    def bars(self, symbol: str, timeframe: str, start: datetime, end: datetime) -> list[Bar]:
        return self._store.get_bars(symbol, timeframe, since=start, until=end)

    def quote(self, symbol: str) -> Quote | None:
        last = self._store.get_last_bars(symbol, self._quote_timeframe, 1)
        if not last:
            return None
        bar = last[-1]
        return Quote(
            symbol=symbol,
            bid=bar.close - self._half_spread,
            ask=bar.close + self._half_spread,
            timestamp=bar.timestamp,
        )
