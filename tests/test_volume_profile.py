"""Tests for the volume profile: binning, POC, HVN/LVN bands."""

from datetime import datetime, timezone

import pytest

from vwap_core.contracts import Bar
from vwap_core.errors import DataUnavailable, DegenerateRange
from vwap_core.volume_profile import (
    bin_index,
    build_profile,
    compute_levels,
    derive_levels,
    point_of_control,
)


def _ts(h: int, mi: int = 0) -> datetime:
    return datetime(2024, 1, 1, h, mi, tzinfo=timezone.utc)


class TestBinIndex:
    def test_example_midpoint(self) -> None:
        # Range [1.1000, 1.1010] in 10 bins -> width 0.0001; 1.1005 lands in bin 5.
        width = (1.1010 - 1.1000) / 10
        assert bin_index(1.1005, 1.1000, width, 10) == 5

    def test_session_high_clamped_to_last_bin(self) -> None:
        assert bin_index(1.1010, 1.1000, 0.0001, 10) == 9

    def test_below_low_clamped_to_first_bin(self) -> None:
        assert bin_index(1.0990, 1.1000, 0.0001, 10) == 0


class TestBuildProfile:
    def test_volumes_conserved(self, session_bars: list[Bar]) -> None:
        profile = build_profile(session_bars, 3)
        assert len(profile.bins) == 3
        assert profile.total_volume() == sum(b.volume for b in session_bars)

    def test_bins_cover_session_range(self, session_bars: list[Bar]) -> None:
        profile = build_profile(session_bars, 3)
        assert profile.session_low == 1.0995
        assert profile.session_high == 1.1040
        assert profile.bins[0].lower_price == 1.0995
        assert profile.bin_width == pytest.approx(0.0015)

    def test_bar_volume_goes_to_typical_price_bin(self, session_bars: list[Bar]) -> None:
        profile = build_profile(session_bars, 3)
        assert [b.volume for b in profile.bins] == [100, 500, 100]

    def test_no_bars(self) -> None:
        with pytest.raises(DataUnavailable):
            build_profile([], 10)

    def test_zero_width_range(self) -> None:
        bars = [Bar(1.1, 1.1, 1.1, 1.1, 100, _ts(8), "EURUSD")] * 3
        with pytest.raises(DegenerateRange):
            build_profile(bars, 10)

    def test_zero_volume(self) -> None:
        bars = [
            Bar(1.1, 1.2, 1.0, 1.1, 0, _ts(8), "EURUSD"),
            Bar(1.1, 1.3, 1.1, 1.2, 0, _ts(9), "EURUSD"),
        ]
        with pytest.raises(DegenerateRange):
            build_profile(bars, 10)

    def test_bad_bin_count(self, session_bars: list[Bar]) -> None:
        with pytest.raises(ValueError):
            build_profile(session_bars, 0)


class TestLevels:
    def test_poc_hvn_lvn(self, session_bars: list[Bar]) -> None:
        levels = compute_levels(session_bars, 3, precision=5)
        assert levels.poc_price == 1.1010
        assert levels.hvn_lower == 1.1010
        assert levels.hvn_upper == 1.1010
        assert levels.lvn_lower == 1.0995
        assert levels.lvn_upper == 1.1025

    def test_poc_inside_hvn_band(self, session_bars: list[Bar]) -> None:
        for bin_count in (1, 2, 5, 24):
            levels = compute_levels(session_bars, bin_count)
            assert levels.hvn_lower <= levels.poc_price <= levels.hvn_upper

    def test_poc_tie_prefers_lowest_bin(self) -> None:
        bars = [
            Bar(1.1000, 1.1010, 1.1000, 1.1005, 100, _ts(8), "EURUSD"),
            Bar(1.1010, 1.1020, 1.1010, 1.1015, 100, _ts(9), "EURUSD"),
        ]
        profile = build_profile(bars, 2)
        assert point_of_control(profile).lower_price == 1.1000

    def test_no_bin_above_mean_collapses_hvn_to_poc(self) -> None:
        bars = [
            Bar(1.1000, 1.1010, 1.1000, 1.1005, 100, _ts(8), "EURUSD"),
            Bar(1.1010, 1.1020, 1.1010, 1.1015, 100, _ts(9), "EURUSD"),
        ]
        levels = derive_levels(build_profile(bars, 2))
        assert levels.hvn_lower == levels.hvn_upper == levels.poc_price == 1.1000
        assert (levels.lvn_lower, levels.lvn_upper) == (1.1000, 1.1010)
