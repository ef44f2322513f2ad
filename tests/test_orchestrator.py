"""Tests for the orchestrator cycle: bar detection, analytics refresh, entries, management."""

from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from data.fetcher import InMemoryMarketData
from vwap_core.contracts import Bar, Position, Quote, Side
from vwap_core.events import RecordingEventSink
from vwap_core.orchestrator import Orchestrator
from vwap_core.volume_profile import compute_levels
from vwap_core.vwap import compute_vwap

NOW = datetime(2024, 1, 3, 10, 5, tzinfo=timezone.utc)  # Wednesday
MONDAY = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _daily_bars() -> list[Bar]:
    start = datetime(2023, 12, 20, tzinfo=timezone.utc)
    return [
        Bar(1.1000, 1.1100, 1.1000, 1.1050, 50_000, start + timedelta(days=i), "EURUSD")
        for i in range(14)
    ]


class FlakyMarketData(InMemoryMarketData):
    """In-memory feed whose bar fetches raise for the timeframes in ``failing``."""

    def __init__(self) -> None:
        super().__init__()
        self.failing: set[str] = set()

    def bars(self, symbol, timeframe, start, end):
        if timeframe in self.failing:
            raise ConnectionError("feed down")
        return super().bars(symbol, timeframe, start, end)


@pytest.fixture
def intraday_bars(session_bars: list[Bar]) -> list[Bar]:
    return session_bars + [
        Bar(1.1030, 1.1045, 1.1025, 1.1040, 200, datetime(2024, 1, 3, 10, 0, tzinfo=timezone.utc), "EURUSD"),
    ]


@pytest.fixture
def market(intraday_bars: list[Bar]) -> FlakyMarketData:
    md = FlakyMarketData()
    md.add_bars("EURUSD", "15m", intraday_bars)
    md.add_bars("EURUSD", "1d", _daily_bars())
    return md


@pytest.fixture
def events() -> RecordingEventSink:
    return RecordingEventSink()


@pytest.fixture
def orchestrator(market, account, specs, execution, engine_config, events) -> Orchestrator:
    return Orchestrator(
        ["EURUSD"],
        market_data=market,
        account=account,
        specs=specs,
        execution=execution,
        config=engine_config,
        timeframe="15m",
        events=events,
        now=NOW,
    )


def _long_quote() -> Quote:
    return Quote("EURUSD", 1.2000, 1.2001, NOW)


class TestConstruction:
    def test_weekly_anchor_fixed_at_startup(self, orchestrator: Orchestrator) -> None:
        assert orchestrator.session_anchor == MONDAY
        orchestrator.run_cycle(NOW + timedelta(days=6))
        assert orchestrator.session_anchor == MONDAY

    def test_requires_instruments(self, market, account, specs, execution, engine_config) -> None:
        with pytest.raises(ValueError):
            Orchestrator([], market_data=market, account=account, specs=specs,
                         execution=execution, config=engine_config)

    def test_states_keyed_by_instrument(self, orchestrator: Orchestrator) -> None:
        assert list(orchestrator.states) == ["EURUSD"]
        assert not orchestrator.states["EURUSD"].has_open_trade


class TestAnalytics:
    def test_new_bar_refreshes_analytics(self, orchestrator: Orchestrator, intraday_bars, events) -> None:
        result = orchestrator.run_cycle(NOW)
        assert result.new_bar
        a = orchestrator.states["EURUSD"].analytics
        assert a.vwap == compute_vwap(intraday_bars, 5)
        assert a.adr == 100.0
        assert a.levels == compute_levels(intraday_bars, 24, 5)
        assert a.updated_at == NOW
        assert events.of_type("analytics_updated")

    def test_last_processed_bar_time_tracked(self, orchestrator: Orchestrator) -> None:
        orchestrator.run_cycle(NOW)
        assert orchestrator.last_processed_bar_time == datetime(2024, 1, 3, 10, 0, tzinfo=timezone.utc)

    def test_same_bar_not_reprocessed(self, orchestrator: Orchestrator, events) -> None:
        orchestrator.run_cycle(NOW)
        second = orchestrator.run_cycle(NOW + timedelta(minutes=5))
        assert not second.new_bar
        assert len(events.of_type("analytics_updated")) == 1

    def test_no_bars_no_cycle(self, account, specs, execution, engine_config) -> None:
        orch = Orchestrator(["EURUSD"], market_data=InMemoryMarketData(), account=account,
                            specs=specs, execution=execution, config=engine_config, now=NOW)
        result = orch.run_cycle(NOW)
        assert not result.new_bar
        assert orch.states["EURUSD"].analytics.vwap == 0.0

    def test_degenerate_profile_keeps_previous_levels(self, orchestrator: Orchestrator, market) -> None:
        orchestrator.run_cycle(NOW)
        before = orchestrator.states["EURUSD"].levels
        assert before is not None
        flat = InMemoryMarketData()
        flat_bar = Bar(1.1, 1.1, 1.1, 1.1, 100, datetime(2024, 1, 8, 10, 0, tzinfo=timezone.utc), "EURUSD")
        flat.add_bars("EURUSD", "15m", [flat_bar])
        orchestrator._market_data = flat
        orchestrator.refresh_analytics("EURUSD", datetime(2024, 1, 8, 10, 5, tzinfo=timezone.utc))
        # The flat feed holds a single zero-range bar.
        assert orchestrator.states["EURUSD"].levels == before

    def test_daily_fetch_failure_keeps_adr(self, orchestrator: Orchestrator, market) -> None:
        orchestrator.run_cycle(NOW)
        assert orchestrator.states["EURUSD"].adr == 100.0
        market.failing.add("1d")
        later = NOW + timedelta(minutes=15)
        orchestrator.refresh_analytics("EURUSD", later)
        a = orchestrator.states["EURUSD"].analytics
        assert a.adr == 100.0
        assert a.updated_at == later

    def test_intraday_fetch_failure_keeps_vwap_and_levels(self, orchestrator: Orchestrator, market) -> None:
        orchestrator.run_cycle(NOW)
        before = orchestrator.states["EURUSD"].analytics
        market.failing.add("15m")
        orchestrator.refresh_analytics("EURUSD", NOW + timedelta(minutes=15))
        after = orchestrator.states["EURUSD"].analytics
        assert after.vwap == before.vwap > 0
        assert after.levels == before.levels
        assert after.is_tradeable()


class TestEntries:
    def test_long_entry_on_new_bar(self, orchestrator: Orchestrator, market, execution, events) -> None:
        market.set_quote(_long_quote())
        result = orchestrator.run_cycle(NOW)
        assert result.entries == ["EURUSD"]
        (call,) = execution.calls_named("open_long")
        assert call[1:] == ("EURUSD", 10.0, 1.2001, 1.1991, 1.2051)
        assert orchestrator.states["EURUSD"].has_open_trade
        assert events.of_type("trade_submitted")

    def test_no_entry_without_quote(self, orchestrator: Orchestrator, execution) -> None:
        result = orchestrator.run_cycle(NOW)
        assert result.entries == []
        assert execution.calls == []

    def test_no_entry_when_bar_unchanged(self, orchestrator: Orchestrator, market, execution) -> None:
        orchestrator.run_cycle(NOW)
        market.set_quote(_long_quote())
        orchestrator.run_cycle(NOW + timedelta(minutes=5))
        assert execution.calls_named("open_long") == []

    def test_equity_failure_suppresses_entries(self, orchestrator: Orchestrator, market, account, execution) -> None:
        account.fail = True
        market.set_quote(_long_quote())
        result = orchestrator.run_cycle(NOW)
        assert result.new_bar
        assert result.entries == []
        assert orchestrator.states["EURUSD"].vwap > 0

    def test_existing_venue_position_blocks_first_entry(self, orchestrator: Orchestrator, market, execution) -> None:
        execution.open_positions.append(Position("OLD", "EURUSD", Side.LONG, 1.0, 1.1000, 1.0990, 1.2500))
        market.set_quote(_long_quote())
        result = orchestrator.run_cycle(NOW)
        assert result.new_bar
        assert result.entries == []
        assert execution.calls_named("open_long") == []
        assert execution.calls_named("open_short") == []
        assert [p.id for p in execution.positions()] == ["OLD"]
        assert orchestrator.states["EURUSD"].has_open_trade

    def test_unknown_positions_suppress_entries(self, orchestrator: Orchestrator, market, execution) -> None:
        execution.raise_on_positions = True
        market.set_quote(_long_quote())
        result = orchestrator.run_cycle(NOW)
        assert result.new_bar
        assert result.entries == []
        assert execution.calls_named("open_long") == []

    def test_drawdown_halts_entries(self, orchestrator: Orchestrator, market, account, execution, events) -> None:
        orchestrator.run_cycle(NOW)  # seeds high-water mark at 10000
        account.value = 9_000  # 10% > 5% limit
        market.add_bars("EURUSD", "15m", [
            Bar(1.1040, 1.1050, 1.1035, 1.1045, 100, datetime(2024, 1, 3, 10, 15, tzinfo=timezone.utc), "EURUSD"),
        ])
        market.set_quote(_long_quote())
        result = orchestrator.run_cycle(NOW + timedelta(minutes=15))
        assert result.halted and result.new_bar
        assert execution.calls_named("open_long") == []
        assert events.of_type("trading_halted")


class TestManagement:
    def test_reconcile_adopts_venue_position(self, orchestrator: Orchestrator, execution) -> None:
        execution.open_positions.append(Position("X1", "EURUSD", Side.LONG, 1.0, 1.1000, 1.0990, 1.1050))
        orchestrator.run_cycle(NOW)
        assert orchestrator.states["EURUSD"].has_open_trade

    def test_reconcile_clears_closed_position(self, orchestrator: Orchestrator, market, execution) -> None:
        market.set_quote(_long_quote())
        orchestrator.run_cycle(NOW)
        execution.open_positions.clear()
        orchestrator.run_cycle(NOW + timedelta(minutes=1))
        assert not orchestrator.states["EURUSD"].has_open_trade

    def test_stops_managed_between_bars(self, orchestrator: Orchestrator, market, execution) -> None:
        orchestrator.run_cycle(NOW)
        execution.open_positions.append(Position("X1", "EURUSD", Side.LONG, 1.0, 1.1000, 1.0990, 1.1200))
        market.set_quote(Quote("EURUSD", 1.1010, 1.1011, NOW))
        result = orchestrator.run_cycle(NOW + timedelta(minutes=1))
        assert not result.new_bar
        assert [u.new_stop for u in result.stop_updates] == [1.1]

    def test_venue_outage_does_not_raise(self, orchestrator: Orchestrator, execution) -> None:
        execution.raise_on_positions = True
        result = orchestrator.run_cycle(NOW)
        assert result.new_bar
        assert result.stop_updates == []

    def test_crossover_exit(self, market, account, specs, execution, engine_config) -> None:
        cfg = replace(engine_config, trade_management=replace(engine_config.trade_management, crossover_exit=True))
        orch = Orchestrator(["EURUSD"], market_data=market, account=account, specs=specs,
                            execution=execution, config=cfg, now=NOW)
        orch.run_cycle(NOW)
        execution.open_positions.append(Position("X1", "EURUSD", Side.LONG, 1.0, 1.1000, 1.0900, 1.1200))
        market.set_quote(Quote("EURUSD", 1.0950, 1.0951, NOW))
        result = orch.run_cycle(NOW + timedelta(minutes=1))
        assert result.closed == ["X1"]
        assert not orch.states["EURUSD"].has_open_trade
