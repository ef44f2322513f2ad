"""
Session-anchored volume-weighted average price.

VWAP = sum(typical_price * volume) / sum(volume)
typical_price = (high + low + close) / 3

Pure function; no I/O. 0.0 is the "unavailable" sentinel and must never
be traded against.
"""

from __future__ import annotations

from typing import Sequence

from vwap_core.contracts import Bar


def compute_vwap(bars: Sequence[Bar], precision: int = 5) -> float:
    """Compute VWAP over *bars* (ordered, anchor to now).

    Parameters
    ----------
    bars:
        Bars spanning the session window.
    precision:
        Instrument price precision (decimal digits) for rounding.

    Returns
    -------
    float
        Rounded VWAP, or 0.0 when there are no bars or zero total volume.
    """
    total_pv = 0.0
    total_volume = 0
    for bar in bars:
        total_pv += bar.typical_price() * bar.volume
        total_volume += bar.volume

    if total_volume <= 0:
        return 0.0
    return round(total_pv / total_volume, precision)
