"""
Session anchoring and bar-time arithmetic.

The weekly anchor (most recent Monday 00:00 UTC) bounds "this week's"
bars for VWAP and the volume profile.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

_TIMEFRAME_UNITS = {
    "m": timedelta(minutes=1),
    "h": timedelta(hours=1),
    "d": timedelta(days=1),
}


def _utc(ts: datetime) -> datetime:
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def weekly_anchor(now: datetime) -> datetime:
    """Return the most recent Monday 00:00 UTC at or before *now*."""
    now = _utc(now)
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    return midnight - timedelta(days=midnight.weekday())


def day_start(now: datetime) -> datetime:
    """Return 00:00 UTC of the day containing *now*."""
    return _utc(now).replace(hour=0, minute=0, second=0, microsecond=0)


def parse_timeframe(timeframe: str) -> timedelta:
    """Convert a timeframe string like '15m', '1h' or '1d' to a timedelta."""
    tf = timeframe.strip().lower()
    if len(tf) < 2 or tf[-1] not in _TIMEFRAME_UNITS or not tf[:-1].isdigit():
        raise ValueError(f"Unsupported timeframe: {timeframe!r} (use e.g. '15m', '1h', '1d')")
    amount = int(tf[:-1])
    if amount <= 0:
        raise ValueError(f"Unsupported timeframe: {timeframe!r} (amount must be positive)")
    return _TIMEFRAME_UNITS[tf[-1]] * amount


def bars_between(earlier: datetime, later: datetime, timeframe: str) -> int:
    """Number of completed bars from the bar opened at *earlier* to the one at *later*."""
    step = parse_timeframe(timeframe)
    elapsed = _utc(later) - _utc(earlier)
    if elapsed <= timedelta(0):
        return 0
    return int(elapsed // step)
