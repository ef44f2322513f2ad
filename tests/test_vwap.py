"""Tests for session VWAP."""

from datetime import datetime, timezone

import pytest

from vwap_core.contracts import Bar
from vwap_core.vwap import compute_vwap


def _ts(h: int, mi: int = 0) -> datetime:
    return datetime(2024, 1, 1, h, mi, tzinfo=timezone.utc)


class TestComputeVwap:
    def test_two_bar_example(self) -> None:
        bars = [
            Bar(1.1030, 1.1050, 1.1020, 1.1040, 100, _ts(8), "EURUSD"),
            Bar(1.1040, 1.1060, 1.1030, 1.1055, 200, _ts(8, 15), "EURUSD"),
        ]
        assert compute_vwap(bars, precision=4) == 1.1044
        assert compute_vwap(bars, precision=5) == 1.10444

    def test_single_bar_is_typical_price(self) -> None:
        bar = Bar(1.2, 1.3, 1.1, 1.2, 50, _ts(8), "EURUSD")
        assert compute_vwap([bar]) == pytest.approx(1.2)

    def test_no_bars_returns_sentinel(self) -> None:
        assert compute_vwap([]) == 0.0

    def test_zero_volume_returns_sentinel(self) -> None:
        bars = [Bar(1.1, 1.2, 1.0, 1.1, 0, _ts(8), "EURUSD")]
        assert compute_vwap(bars) == 0.0

    def test_within_session_range(self, session_bars: list[Bar]) -> None:
        vwap = compute_vwap(session_bars)
        assert min(b.low for b in session_bars) <= vwap <= max(b.high for b in session_bars)

    def test_heavier_bar_pulls_vwap(self) -> None:
        low_bar = Bar(1.0, 1.0, 1.0, 1.0, 900, _ts(8), "X")
        high_bar = Bar(2.0, 2.0, 2.0, 2.0, 100, _ts(9), "X")
        assert compute_vwap([low_bar, high_bar]) == pytest.approx(1.1)
