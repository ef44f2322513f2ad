"""
Volume profile: fixed-width price bins over the session range, the point
of control (POC) and the high/low-volume node (HVN/LVN) bands.

Each bar contributes its whole volume to the bin containing its typical
price, so the sum of bin volumes always equals the session volume.

    bin_width = (session_high - session_low) / bin_count
    index     = floor((typical_price - session_low) / bin_width), clamped
    threshold = total_volume / bin_count
    HVN       = bins with volume >  threshold (band seeded at the POC)
    LVN       = bins with volume <= threshold

Pure functions; no I/O. A degenerate session raises ``DegenerateRange`` so
the caller can keep the previous levels instead of publishing zeros.
"""

from __future__ import annotations

import math
from typing import Sequence

from vwap_core.contracts import Bar, PriceBin, ProfileLevels, VolumeProfile
from vwap_core.errors import DataUnavailable, DegenerateRange

# Quotients are rounded to this many digits before flooring so that a price
# sitting exactly on a bin edge is not pushed into the lower bin by float noise.
_EDGE_DIGITS = 9


def bin_index(price: float, session_low: float, bin_width: float, bin_count: int) -> int:
    """Return the bin holding *price*, clamped to [0, bin_count - 1]."""
    raw = math.floor(round((price - session_low) / bin_width, _EDGE_DIGITS))
    return max(0, min(bin_count - 1, raw))


def build_profile(bars: Sequence[Bar], bin_count: int) -> VolumeProfile:
    """Bucket session volume into ``bin_count`` equal-width bins.

    Raises
    ------
    ValueError
        If ``bin_count`` is less than 1.
    DataUnavailable
        If there are no bars.
    DegenerateRange
        If the session range has zero width or total volume is zero.
    """
    if bin_count < 1:
        raise ValueError(f"bin_count must be >= 1, got {bin_count}")
    if not bars:
        raise DataUnavailable("no bars for volume profile")

    session_low = min(b.low for b in bars)
    session_high = max(b.high for b in bars)
    if session_high <= session_low:
        raise DegenerateRange(
            f"zero-width session range [{session_low}, {session_high}]"
        )

    total_volume = sum(b.volume for b in bars)
    if total_volume <= 0:
        raise DegenerateRange("zero total session volume")

    bin_width = (session_high - session_low) / bin_count
    volumes = [0] * bin_count
    for bar in bars:
        idx = bin_index(bar.typical_price(), session_low, bin_width, bin_count)
        volumes[idx] += bar.volume

    bins = [
        PriceBin(lower_price=session_low + i * bin_width, volume=vol)
        for i, vol in enumerate(volumes)
    ]
    return VolumeProfile(
        session_low=session_low,
        session_high=session_high,
        bin_width=bin_width,
        bins=bins,
    )


def point_of_control(profile: VolumeProfile) -> PriceBin:
    """Bin with the greatest volume; the lowest-priced one wins ties."""
    poc = profile.bins[0]
    for b in profile.bins[1:]:
        if b.volume > poc.volume:
            poc = b
    return poc


def derive_levels(profile: VolumeProfile, precision: int = 5) -> ProfileLevels:
    """Derive POC, HVN and LVN prices from a built profile."""
    total = profile.total_volume()
    if total <= 0:
        raise DegenerateRange("zero total session volume")

    threshold = total / len(profile.bins)
    poc = point_of_control(profile)

    hvn_lower = hvn_upper = poc.lower_price
    lvn_prices: list[float] = []
    for b in profile.bins:
        if b.volume > threshold:
            hvn_lower = min(hvn_lower, b.lower_price)
            hvn_upper = max(hvn_upper, b.lower_price)
        else:
            lvn_prices.append(b.lower_price)

    if lvn_prices:
        lvn_lower, lvn_upper = min(lvn_prices), max(lvn_prices)
    else:
        lvn_lower, lvn_upper = profile.session_low, profile.session_high

    return ProfileLevels(
        poc_price=round(poc.lower_price, precision),
        hvn_lower=round(hvn_lower, precision),
        hvn_upper=round(hvn_upper, precision),
        lvn_lower=round(lvn_lower, precision),
        lvn_upper=round(lvn_upper, precision),
    )


def compute_levels(bars: Sequence[Bar], bin_count: int, precision: int = 5) -> ProfileLevels:
    """build_profile + derive_levels in one call."""
    return derive_levels(build_profile(bars, bin_count), precision)
