"""
Paper executor: single-writer position/cash state, restart-safe (SQLite).

Implements the ExecutionService and AccountInfoProvider contracts. Orders
fill immediately at the requested entry price. ``settle(quote)`` marks
positions to the latest quote and closes any whose stop or target was
crossed. PnL = price move / price_increment * increment_value * size.
"""

import logging
import sqlite3
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Mapping

from vwap_core.contracts import ExecutionResult, InstrumentSpec, Position, Quote, Side

from execution.models import ClosedTrade, Fill, Order

logger = logging.getLogger(__name__)


def _utc(ts: datetime) -> datetime:
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def _now_iso() -> str:
    return _utc(datetime.now(timezone.utc)).isoformat()


def _parse_ts(raw: str) -> datetime:
    return datetime.fromisoformat(raw.replace("Z", "+00:00"))


class PaperExecutor:
    """
    Track orders, open positions and cash in SQLite.
    Single writer (one process). One open position per symbol.
    """

    def __init__(
        self,
        state_path: str | Path,
        *,
        specs: Mapping[str, InstrumentSpec],
        initial_cash: float = 100_000.0,
    ) -> None:
        self._path = Path(state_path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._specs = {sym.upper(): spec for sym, spec in specs.items()}
        self._initial_cash = initial_cash
        self._marks: dict[str, Quote] = {}
        self._init_schema()

    def _conn(self) -> sqlite3.Connection:
        return sqlite3.connect(str(self._path), timeout=10.0)

    def _init_schema(self) -> None:
        with self._conn() as c:
            c.execute(
                """
                CREATE TABLE IF NOT EXISTS orders (
                    id TEXT PRIMARY KEY,
                    symbol TEXT NOT NULL,
                    side TEXT NOT NULL,
                    size REAL NOT NULL,
                    order_type TEXT NOT NULL,
                    ts_utc TEXT NOT NULL,
                    position_id TEXT
                )
                """
            )
            c.execute(
                """
                CREATE TABLE IF NOT EXISTS fills (
                    id TEXT PRIMARY KEY,
                    order_id TEXT NOT NULL,
                    symbol TEXT NOT NULL,
                    side TEXT NOT NULL,
                    size REAL NOT NULL,
                    price REAL NOT NULL,
                    ts_utc TEXT NOT NULL
                )
                """
            )
            c.execute(
                """
                CREATE TABLE IF NOT EXISTS positions (
                    id TEXT PRIMARY KEY,
                    symbol TEXT NOT NULL,
                    side TEXT NOT NULL,
                    size REAL NOT NULL,
                    open_price REAL NOT NULL,
                    stop_loss REAL,
                    take_profit REAL,
                    opened_at TEXT NOT NULL
                )
                """
            )
            c.execute(
                """
                CREATE TABLE IF NOT EXISTS closed_trades (
                    position_id TEXT PRIMARY KEY,
                    symbol TEXT NOT NULL,
                    side TEXT NOT NULL,
                    size REAL NOT NULL,
                    open_price REAL NOT NULL,
                    close_price REAL NOT NULL,
                    pnl REAL NOT NULL,
                    reason TEXT NOT NULL,
                    closed_at TEXT NOT NULL
                )
                """
            )
            c.execute(
                """
                CREATE TABLE IF NOT EXISTS cash (
                    id INTEGER PRIMARY KEY CHECK (id = 1),
                    balance REAL NOT NULL
                )
                """
            )
            c.execute("INSERT OR IGNORE INTO cash (id, balance) VALUES (1, ?)", (self._initial_cash,))

    # ------------------------------------------------------------------
    # Account
    # ------------------------------------------------------------------

    def cash(self) -> float:
        with self._conn() as c:
            row = c.execute("SELECT balance FROM cash WHERE id = 1").fetchone()
            return float(row[0]) if row else self._initial_cash

    def equity(self) -> float:
        """Cash plus unrealized PnL of open positions at the last marked quote."""
        total = self.cash()
        for pos in self.positions():
            quote = self._marks.get(pos.symbol)
            if quote is None:
                continue
            total += self._pnl(pos, self._exit_price(pos, quote))
        return total

    # ------------------------------------------------------------------
    # ExecutionService
    # ------------------------------------------------------------------

    def open_long(self, symbol: str, size: float, entry: float, stop: float, target: float) -> ExecutionResult:
        return self._open(symbol, Side.LONG, size, entry, stop, target)

    def open_short(self, symbol: str, size: float, entry: float, stop: float, target: float) -> ExecutionResult:
        return self._open(symbol, Side.SHORT, size, entry, stop, target)

    def _open(
        self,
        symbol: str,
        side: Side,
        size: float,
        entry: float,
        stop: float,
        target: float,
    ) -> ExecutionResult:
        symbol = symbol.upper()
        if symbol not in self._specs:
            return ExecutionResult(False, reason=f"unknown instrument {symbol}")
        if size <= 0:
            return ExecutionResult(False, reason="size must be positive")
        if side == Side.LONG and not (stop < entry < target):
            return ExecutionResult(False, reason="long requires stop < entry < target")
        if side == Side.SHORT and not (target < entry < stop):
            return ExecutionResult(False, reason="short requires target < entry < stop")

        with self._conn() as c:
            existing = c.execute("SELECT id FROM positions WHERE symbol = ?", (symbol,)).fetchone()
            if existing:
                return ExecutionResult(False, reason=f"position already open for {symbol}")
            position_id = str(uuid.uuid4())
            order_id = str(uuid.uuid4())
            ts = _now_iso()
            order_side = "buy" if side == Side.LONG else "sell"
            c.execute(
                """INSERT INTO orders (id, symbol, side, size, order_type, ts_utc, position_id)
                   VALUES (?, ?, ?, ?, ?, ?, ?)""",
                (order_id, symbol, order_side, size, "market", ts, position_id),
            )
            c.execute(
                """INSERT INTO fills (id, order_id, symbol, side, size, price, ts_utc) VALUES (?, ?, ?, ?, ?, ?, ?)""",
                (str(uuid.uuid4()), order_id, symbol, order_side, size, entry, ts),
            )
            c.execute(
                """INSERT INTO positions (id, symbol, side, size, open_price, stop_loss, take_profit, opened_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
                (position_id, symbol, side.value, size, entry, stop, target, ts),
            )
        logger.info("Paper %s %s size=%s @ %s (sl=%s tp=%s)", side.value, symbol, size, entry, stop, target)
        return ExecutionResult(True, position_id=position_id)

    def modify_stop(self, position_id: str, new_stop: float, target: float | None) -> ExecutionResult:
        with self._conn() as c:
            cur = c.execute(
                "UPDATE positions SET stop_loss = ?, take_profit = COALESCE(?, take_profit) WHERE id = ?",
                (new_stop, target, position_id),
            )
            if cur.rowcount == 0:
                return ExecutionResult(False, position_id=position_id, reason="unknown position")
        return ExecutionResult(True, position_id=position_id)

    def close_position(self, position_id: str) -> ExecutionResult:
        """Close at the last marked quote (bid for longs, ask for shorts), else at the open price."""
        pos = self.get_position(position_id)
        if pos is None:
            return ExecutionResult(False, position_id=position_id, reason="unknown position")
        quote = self._marks.get(pos.symbol)
        price = self._exit_price(pos, quote) if quote is not None else pos.open_price
        self._close(pos, price, "manual")
        return ExecutionResult(True, position_id=position_id)

    def positions(self) -> list[Position]:
        with self._conn() as c:
            rows = c.execute(
                "SELECT id, symbol, side, size, open_price, stop_loss, take_profit FROM positions ORDER BY opened_at"
            ).fetchall()
        return [self._row_to_position(r) for r in rows]

    # ------------------------------------------------------------------
    # Paper-only
    # ------------------------------------------------------------------

    def get_position(self, position_id: str) -> Position | None:
        with self._conn() as c:
            row = c.execute(
                "SELECT id, symbol, side, size, open_price, stop_loss, take_profit FROM positions WHERE id = ?",
                (position_id,),
            ).fetchone()
        return self._row_to_position(row) if row else None

    def settle(self, quote: Quote) -> list[ClosedTrade]:
        """Mark to ``quote``; close positions whose stop or target was crossed."""
        symbol = quote.symbol.upper()
        self._marks[symbol] = quote
        closed: list[ClosedTrade] = []
        for pos in self.positions():
            if pos.symbol != symbol:
                continue
            hit = self._triggered(pos, quote)
            if hit is None:
                continue
            reason, price = hit
            closed.append(self._close(pos, price, reason))
        return closed

    def list_fills(self, symbol: str | None = None, limit: int = 100) -> list[Fill]:
        with self._conn() as c:
            if symbol:
                rows = c.execute(
                    "SELECT id, order_id, symbol, side, size, price, ts_utc FROM fills WHERE symbol = ? ORDER BY ts_utc DESC LIMIT ?",
                    (symbol, limit),
                ).fetchall()
            else:
                rows = c.execute(
                    "SELECT id, order_id, symbol, side, size, price, ts_utc FROM fills ORDER BY ts_utc DESC LIMIT ?",
                    (limit,),
                ).fetchall()
        return [
            Fill(id=r[0], order_id=r[1], symbol=r[2], side=r[3], size=r[4], price=r[5], timestamp=_parse_ts(r[6]))
            for r in rows
        ]

    def list_orders(self, limit: int = 100) -> list[Order]:
        with self._conn() as c:
            rows = c.execute(
                "SELECT id, symbol, side, size, order_type, ts_utc, position_id FROM orders ORDER BY ts_utc DESC LIMIT ?",
                (limit,),
            ).fetchall()
        return [
            Order(id=r[0], symbol=r[1], side=r[2], size=r[3], order_type=r[4], timestamp=_parse_ts(r[5]), position_id=r[6])
            for r in rows
        ]

    def closed_trades(self, limit: int = 100) -> list[ClosedTrade]:
        with self._conn() as c:
            rows = c.execute(
                """SELECT position_id, symbol, side, size, open_price, close_price, pnl, reason, closed_at
                   FROM closed_trades ORDER BY closed_at DESC LIMIT ?""",
                (limit,),
            ).fetchall()
        return [
            ClosedTrade(
                position_id=r[0],
                symbol=r[1],
                side=r[2],
                size=r[3],
                open_price=r[4],
                close_price=r[5],
                pnl=r[6],
                reason=r[7],
                closed_at=_parse_ts(r[8]),
            )
            for r in rows
        ]

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _row_to_position(row) -> Position:
        return Position(
            id=row[0],
            symbol=row[1],
            side=Side(row[2]),
            size=row[3],
            open_price=row[4],
            stop_loss=row[5],
            take_profit=row[6],
        )

    @staticmethod
    def _exit_price(pos: Position, quote: Quote) -> float:
        return quote.bid if pos.side == Side.LONG else quote.ask

    @staticmethod
    def _triggered(pos: Position, quote: Quote) -> tuple[str, float] | None:
        if pos.side == Side.LONG:
            if pos.stop_loss is not None and quote.bid <= pos.stop_loss:
                return "stop", pos.stop_loss
            if pos.take_profit is not None and quote.bid >= pos.take_profit:
                return "target", pos.take_profit
        else:
            if pos.stop_loss is not None and quote.ask >= pos.stop_loss:
                return "stop", pos.stop_loss
            if pos.take_profit is not None and quote.ask <= pos.take_profit:
                return "target", pos.take_profit
        return None

    def _pnl(self, pos: Position, price: float) -> float:
        spec = self._specs[pos.symbol]
        move = price - pos.open_price if pos.side == Side.LONG else pos.open_price - price
        return move / spec.price_increment * spec.increment_value * pos.size

    def _close(self, pos: Position, price: float, reason: str) -> ClosedTrade:
        pnl = round(self._pnl(pos, price), 2)
        ts = _now_iso()
        order_id = str(uuid.uuid4())
        order_side = "sell" if pos.side == Side.LONG else "buy"
        with self._conn() as c:
            c.execute(
                """INSERT INTO orders (id, symbol, side, size, order_type, ts_utc, position_id)
                   VALUES (?, ?, ?, ?, ?, ?, ?)""",
                (order_id, pos.symbol, order_side, pos.size, "close", ts, pos.id),
            )
            c.execute(
                """INSERT INTO fills (id, order_id, symbol, side, size, price, ts_utc) VALUES (?, ?, ?, ?, ?, ?, ?)""",
                (str(uuid.uuid4()), order_id, pos.symbol, order_side, pos.size, price, ts),
            )
            c.execute("DELETE FROM positions WHERE id = ?", (pos.id,))
            c.execute(
                """INSERT INTO closed_trades
                   (position_id, symbol, side, size, open_price, close_price, pnl, reason, closed_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (pos.id, pos.symbol, pos.side.value, pos.size, pos.open_price, price, pnl, reason, ts),
            )
            c.execute("UPDATE cash SET balance = balance + ? WHERE id = 1", (pnl,))
        logger.info("Paper close %s %s @ %s (%s) pnl=%.2f", pos.side.value, pos.symbol, price, reason, pnl)
        return ClosedTrade(
            position_id=pos.id,
            symbol=pos.symbol,
            side=pos.side.value,
            size=pos.size,
            open_price=pos.open_price,
            close_price=price,
            pnl=pnl,
            reason=reason,
            closed_at=_parse_ts(ts),
        )
