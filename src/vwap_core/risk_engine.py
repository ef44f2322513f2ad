"""
Risk sizer: account risk percentage + stop distance -> order size.

    risk_amount = equity * risk_pct / 100
    size        = risk_amount / (stop_increments * increment_value)

The raw size is rounded to the nearest multiple of the instrument's size
step and clamped to [min_size, max_size]. 0.0 is the "do not place the
order" sentinel for misconfigured instruments or nonsensical inputs.
"""

from __future__ import annotations

import logging
from decimal import Decimal

from vwap_core.contracts import InstrumentSpec

logger = logging.getLogger("vwap.risk")


def _step_decimals(step: float) -> int:
    exponent = Decimal(str(step)).normalize().as_tuple().exponent
    return max(0, -int(exponent))


def round_to_step(value: float, step: float) -> float:
    """Round *value* to the nearest multiple of *step*, without float residue."""
    return round(round(value / step) * step, _step_decimals(step))


def compute_size(
    equity: float,
    risk_pct: float,
    stop_increments: float,
    spec: InstrumentSpec,
) -> float:
    """Compute order size from the risk budget.

    Parameters
    ----------
    equity:
        Current account equity.
    risk_pct:
        Percent of equity risked per trade (1.0 = 1%).
    stop_increments:
        Stop distance in price increments.
    spec:
        Instrument spec (increment value, size step and limits).

    Returns
    -------
    float
        Size in lots/units, or 0.0 when the order must not be placed.
    """
    if spec.increment_value <= 0:
        logger.warning("%s: non-positive increment value %.6f, refusing to size",
                       spec.symbol, spec.increment_value)
        return 0.0
    if spec.size_step <= 0 or stop_increments <= 0 or equity <= 0 or risk_pct <= 0:
        return 0.0

    risk_amount = equity * risk_pct / 100.0
    raw_size = risk_amount / (stop_increments * spec.increment_value)
    size = round_to_step(raw_size, spec.size_step)
    size = max(spec.min_size, min(spec.max_size, size))
    return round(size, _step_decimals(spec.size_step))


class RiskSizer:
    """``compute_size`` bound to a configured risk percentage."""

    def __init__(self, risk_pct: float) -> None:
        self._risk_pct = risk_pct

    @property
    def risk_pct(self) -> float:
        return self._risk_pct

    def size(self, equity: float, stop_increments: float, spec: InstrumentSpec) -> float:
        return compute_size(equity, self._risk_pct, stop_increments, spec)
