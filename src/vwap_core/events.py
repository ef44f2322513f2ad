"""
Event emission port.

The core reports what it decided (signals, orders, stop moves, halts)
through an ``EventSink`` without knowing where the events end up. The CLI
plugs in ``cli.structured_log.StructuredEventLogger``.
"""

from __future__ import annotations

from typing import Any, Protocol


class EventSink(Protocol):
    """Anything that accepts named events with keyword fields."""

    def emit(self, event_type: str, **fields: Any) -> dict:
        ...


class NullEventSink:
    """Discards events; returns the record for testability."""

    def emit(self, event_type: str, **fields: Any) -> dict:
        return {"event": event_type, **fields}


class RecordingEventSink:
    """Keeps every event in memory. Handy in tests and replays."""

    def __init__(self) -> None:
        self.records: list[dict] = []

    def emit(self, event_type: str, **fields: Any) -> dict:
        record = {"event": event_type, **fields}
        self.records.append(record)
        return record

    def of_type(self, event_type: str) -> list[dict]:
        return [r for r in self.records if r["event"] == event_type]
