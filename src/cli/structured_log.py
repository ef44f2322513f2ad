"""
Structured JSON event logger for Docker observability.

Emits one JSON object per line to stderr. Events are designed to be
parsed by log aggregators (Grafana Loki, CloudWatch, ELK).

Implements the vwap_core ``EventSink`` port, so the orchestrator, signal
engine and trade manager report through it directly.

Optional webhook: when configured, trade-level events (signal_detected,
trade_submitted, order_rejected, trading_halted, error) are POSTed to the URL.
"""

from __future__ import annotations

import json
import logging
import sys
import urllib.request
from datetime import datetime, timezone
from typing import Any

logger = logging.getLogger("vwap.events")

ALERT_EVENTS = frozenset(
    {
        "signal_detected",
        "trade_submitted",
        "order_rejected",
        "trading_halted",
        "error",
    }
)


def _jsonable(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if hasattr(value, "value"):  # Enum
        return value.value
    return str(value)


class StructuredEventLogger:
    """Emit structured JSON events to stderr and optional webhook."""

    def __init__(
        self,
        *,
        enabled: bool = True,
        webhook_url: str = "",
        stream: Any = None,
    ) -> None:
        self._enabled = enabled
        self._webhook_url = webhook_url.strip()
        self._stream = stream or sys.stderr

    def emit(self, event_type: str, **fields: Any) -> dict:
        record = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "event": event_type,
            **fields,
        }
        if self._enabled:
            self._stream.write(json.dumps(record, default=_jsonable) + "\n")
            self._stream.flush()

        if self._webhook_url and event_type in ALERT_EVENTS:
            self._post_webhook(record)

        return record

    def _post_webhook(self, record: dict) -> None:
        try:
            data = json.dumps(record, default=_jsonable).encode("utf-8")
            req = urllib.request.Request(
                self._webhook_url,
                data=data,
                headers={"Content-Type": "application/json"},
                method="POST",
            )
            urllib.request.urlopen(req, timeout=5)
        except Exception as exc:
            logger.warning("Webhook POST failed: %s", exc)

    def error(self, message: str, detail: str = "") -> dict:
        return self.emit("error", message=message, detail=detail)

    def shutdown(self, cycles: int) -> dict:
        return self.emit("shutdown", cycles=cycles)
