"""
Drawdown governor: equity high-water mark and daily drawdown breaker.

Evaluated first on every cycle. When drawdown from the high-water mark
exceeds the threshold, new entries are halted until the next reset.
Position management keeps running while halted.

Resets happen once per ``reset_interval`` (24h) measured from the last
reset, not at calendar midnight.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

logger = logging.getLogger("vwap.drawdown")


@dataclass(frozen=True)
class DrawdownStatus:
    halted: bool
    drawdown_pct: float = 0.0
    reason: str = ""


class DrawdownGovernor:
    """Process-wide drawdown breaker.

    Parameters
    ----------
    max_drawdown_pct:
        Halt when drawdown from the high-water mark exceeds this percent.
    reset_interval:
        Time between high-water-mark resets.
    """

    def __init__(
        self,
        *,
        max_drawdown_pct: float,
        reset_interval: timedelta = timedelta(hours=24),
    ) -> None:
        self._max_drawdown_pct = max_drawdown_pct
        self._reset_interval = reset_interval
        self._high_water_mark: float | None = None
        self._reset_timestamp: datetime | None = None
        self._halted = False

    @property
    def halted(self) -> bool:
        return self._halted

    @property
    def equity_high_water_mark(self) -> float | None:
        return self._high_water_mark

    @property
    def reset_timestamp(self) -> datetime | None:
        return self._reset_timestamp

    def _reset(self, equity: float, now: datetime) -> None:
        self._high_water_mark = equity
        self._reset_timestamp = now
        self._halted = False
        logger.info("Drawdown window reset: high-water mark %.2f at %s", equity, now.isoformat())

    def update(self, equity: float, now: datetime) -> DrawdownStatus:
        """Feed the current equity; returns whether new entries are halted."""
        if self._reset_timestamp is None or now >= self._reset_timestamp + self._reset_interval:
            self._reset(equity, now)
            return DrawdownStatus(halted=False)

        if equity > self._high_water_mark:
            self._high_water_mark = equity

        hwm = self._high_water_mark
        drawdown_pct = (hwm - equity) / hwm * 100.0 if hwm > 0 else 0.0

        if drawdown_pct > self._max_drawdown_pct and not self._halted:
            self._halted = True
            logger.warning("Drawdown %.2f%% exceeds %.2f%%: new entries halted until %s",
                           drawdown_pct, self._max_drawdown_pct,
                           (self._reset_timestamp + self._reset_interval).isoformat())

        if self._halted:
            return DrawdownStatus(
                halted=True,
                drawdown_pct=drawdown_pct,
                reason=f"Daily drawdown breached: {drawdown_pct:.2f}% "
                       f"(limit {self._max_drawdown_pct}%)",
            )
        return DrawdownStatus(halted=False, drawdown_pct=drawdown_pct)
