"""Pytest fixtures: instrument specs, engine config, and in-memory fakes for every collaborator."""

from datetime import datetime, timezone

import pytest

from config.engine_config import EngineConfig, load_engine_config
from vwap_core.contracts import (
    Analytics,
    Bar,
    ExecutionResult,
    InstrumentSpec,
    InstrumentState,
    Position,
    ProfileLevels,
    Side,
)


def _ts(year: int, month: int, day: int, hour: int = 0, minute: int = 0) -> datetime:
    return datetime(year, month, day, hour, minute, 0, tzinfo=timezone.utc)


class FakeExecution:
    """ExecutionService double: records calls, keeps an in-memory position list."""

    def __init__(self) -> None:
        self.calls: list[tuple] = []
        self.open_positions: list[Position] = []
        self.succeed = True
        self.raise_on_open = False
        self.raise_on_positions = False
        self._next_id = 1

    def _open(self, side: Side, symbol: str, size: float, entry: float, stop: float, target: float) -> ExecutionResult:
        self.calls.append((f"open_{side.value.lower()}", symbol, size, entry, stop, target))
        if self.raise_on_open:
            raise ConnectionError("venue offline")
        if not self.succeed:
            return ExecutionResult(False, reason="rejected by venue")
        pid = f"P{self._next_id}"
        self._next_id += 1
        self.open_positions.append(Position(pid, symbol, side, size, entry, stop, target))
        return ExecutionResult(True, position_id=pid)

    def open_long(self, symbol, size, entry, stop, target):
        return self._open(Side.LONG, symbol, size, entry, stop, target)

    def open_short(self, symbol, size, entry, stop, target):
        return self._open(Side.SHORT, symbol, size, entry, stop, target)

    def modify_stop(self, position_id, new_stop, target):
        self.calls.append(("modify_stop", position_id, new_stop, target))
        if not self.succeed:
            return ExecutionResult(False, position_id=position_id, reason="rejected by venue")
        self.open_positions = [
            Position(p.id, p.symbol, p.side, p.size, p.open_price, new_stop, p.take_profit)
            if p.id == position_id else p
            for p in self.open_positions
        ]
        return ExecutionResult(True, position_id=position_id)

    def close_position(self, position_id):
        self.calls.append(("close_position", position_id))
        if not self.succeed:
            return ExecutionResult(False, position_id=position_id, reason="rejected by venue")
        self.open_positions = [p for p in self.open_positions if p.id != position_id]
        return ExecutionResult(True, position_id=position_id)

    def positions(self):
        if self.raise_on_positions:
            raise ConnectionError("venue offline")
        return list(self.open_positions)

    def calls_named(self, name: str) -> list[tuple]:
        return [c for c in self.calls if c[0] == name]


class FakeAccount:
    def __init__(self, equity: float = 10_000.0) -> None:
        self.value = equity
        self.fail = False

    def equity(self) -> float:
        if self.fail:
            raise ConnectionError("account service down")
        return self.value


class FakeSpecs:
    def __init__(self, *specs: InstrumentSpec) -> None:
        self._specs = {s.symbol: s for s in specs}

    def spec(self, symbol: str) -> InstrumentSpec:
        return self._specs[symbol]


@pytest.fixture
def eurusd() -> InstrumentSpec:
    return InstrumentSpec(
        symbol="EURUSD",
        price_increment=0.0001,
        increment_value=1.0,
        size_step=0.01,
        min_size=0.01,
        max_size=100.0,
        min_stop_distance=0.0,
        price_precision=5,
    )


@pytest.fixture
def engine_config() -> EngineConfig:
    return load_engine_config()


@pytest.fixture
def execution() -> FakeExecution:
    return FakeExecution()


@pytest.fixture
def account() -> FakeAccount:
    return FakeAccount()


@pytest.fixture
def specs(eurusd: InstrumentSpec) -> FakeSpecs:
    return FakeSpecs(eurusd)


@pytest.fixture
def tradeable_state() -> InstrumentState:
    """EURUSD with VWAP 1.1000, ADR 100 increments, HVN 1.0990-1.1010, LVN 1.0980-1.1020."""
    return InstrumentState(
        symbol="EURUSD",
        analytics=Analytics(
            vwap=1.1000,
            adr=100.0,
            levels=ProfileLevels(
                poc_price=1.1000,
                hvn_lower=1.0990,
                hvn_upper=1.1010,
                lvn_lower=1.0980,
                lvn_upper=1.1020,
            ),
            updated_at=_ts(2024, 1, 3, 10),
        ),
    )


@pytest.fixture
def session_bars() -> list[Bar]:
    """Four 15m EURUSD bars from Monday 2024-01-01."""
    return [
        Bar(1.1000, 1.1010, 1.0995, 1.1005, 100, _ts(2024, 1, 1, 8, 0), "EURUSD"),
        Bar(1.1005, 1.1020, 1.1000, 1.1015, 300, _ts(2024, 1, 1, 8, 15), "EURUSD"),
        Bar(1.1015, 1.1030, 1.1010, 1.1025, 200, _ts(2024, 1, 1, 8, 30), "EURUSD"),
        Bar(1.1025, 1.1040, 1.1020, 1.1035, 100, _ts(2024, 1, 1, 8, 45), "EURUSD"),
    ]
