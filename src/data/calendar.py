"""
Economic calendar: scheduled releases per currency, loaded from YAML.

File format (times ISO-8601, UTC assumed when no offset is given):

    events:
      - currency: USD
        time: "2026-02-17T13:30:00Z"
        importance: HIGH
        title: "CPI m/m"
"""

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable

import yaml

from vwap_core.contracts import CalendarEvent, Importance

logger = logging.getLogger(__name__)


def _utc(ts: datetime) -> datetime:
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


class StaticCalendar:
    """CalendarService over a fixed list of events."""

    def __init__(self, events: Iterable[CalendarEvent] = ()) -> None:
        self._events = sorted(events, key=lambda e: _utc(e.time))

    def __len__(self) -> int:
        return len(self._events)

    def events(self, currency: str, start: datetime, end: datetime) -> list[CalendarEvent]:
        start, end = _utc(start), _utc(end)
        code = currency.upper()
        return [
            e for e in self._events
            if e.currency.upper() == code and start <= _utc(e.time) <= end
        ]


def _parse_event(raw: dict) -> CalendarEvent:
    time_raw = raw["time"]
    if isinstance(time_raw, datetime):
        ts = time_raw
    else:
        ts = datetime.fromisoformat(str(time_raw).replace("Z", "+00:00"))
    return CalendarEvent(
        currency=str(raw["currency"]).upper(),
        time=_utc(ts),
        importance=Importance[str(raw.get("importance", "LOW")).upper()],
        title=str(raw.get("title", "")),
    )


def load_calendar(path: str | Path) -> StaticCalendar:
    """Load a StaticCalendar from a YAML events file."""
    cal_path = Path(path)
    if not cal_path.exists():
        raise FileNotFoundError(f"Calendar file not found: {cal_path}")
    with open(cal_path) as f:
        raw = yaml.safe_load(f) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"Calendar file must be a YAML mapping, got {type(raw).__name__}")

    events: list[CalendarEvent] = []
    for i, item in enumerate(raw.get("events", []) or []):
        try:
            events.append(_parse_event(item))
        except (KeyError, ValueError, TypeError) as exc:
            raise ValueError(f"Calendar event #{i} is invalid: {exc}") from exc
    logger.info("Loaded %d calendar events from %s", len(events), cal_path.name)
    return StaticCalendar(events)
