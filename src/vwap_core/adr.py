"""
Average Daily Range (ADR) computation.

ADR(n) = mean(high - low) over the last n daily bars that could be
retrieved, expressed in price-increment units and rounded to 2 digits.
Missing days are skipped rather than counted as zero-range days.

Pure function; no I/O.
"""

from __future__ import annotations

from typing import Sequence

from vwap_core.contracts import Bar


def compute_adr(daily_bars: Sequence[Bar], period: int, price_increment: float) -> float:
    """Compute ADR over the last ``period`` daily bars.

    Parameters
    ----------
    daily_bars:
        Completed daily bars (oldest first), ending the prior day.
    period:
        Lookback in days. Fewer bars than ``period`` is fine.
    price_increment:
        Instrument minimum price increment used to convert to increments.

    Returns
    -------
    float
        ADR in price increments, or 0.0 if no valid days are available.
    """
    if period <= 0 or price_increment <= 0:
        return 0.0

    window = list(daily_bars)[-period:]
    ranges = [b.bar_range() for b in window if b.high >= b.low]
    if not ranges:
        return 0.0

    mean_range = sum(ranges) / len(ranges)
    return round(mean_range / price_increment, 2)
