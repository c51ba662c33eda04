"""
Log Formatters.

JsonlFormatter writes one JSON object per line for the rotating file
handler:

    {"ts":"2026-10-19T14:30:05+02:00","level":2,"tag":"INFO","message":"cache",
     "request_id":"a1b2c3d4e5f6","extra":{"format":"telephony","result":"hit"}}

ColoredConsoleFormatter writes a compact human-readable line:

    14:30:05 [ INFO  ] (a1b2c3d4e5f6) cache format=telephony result=hit 0.001s

Durations are colored green/yellow/red below 0.5s, below 3s, and above.
Provider calls routinely take a second or two, so the thresholds are
looser than for local work. Cache results and fallbacks get their own
colors so misses and degraded responses stand out in a tail.
"""
from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any, Dict

from . import colors
from .colors import Colors, get_tag_color


class JsonlFormatter(logging.Formatter):
    """Format records as single-line JSON objects."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created).astimezone().isoformat(),
            "level": getattr(record, "numeric_level", 2),
            "tag": getattr(record, "tag", record.levelname),
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", "-"),
        }

        event = getattr(record, "event", None)
        if event:
            payload["event"] = event

        seconds = getattr(record, "seconds", None)
        if seconds is not None:
            payload["seconds"] = seconds

        extra_data = getattr(record, "extra_data", None)
        if extra_data:
            payload["extra"] = extra_data

        return json.dumps(payload, ensure_ascii=False, default=str)


class ColoredConsoleFormatter(logging.Formatter):
    """Format records as `HH:MM:SS [ TAG ] (rid) message k=v 0.123s`."""

    def format(self, record: logging.LogRecord) -> str:
        tag = getattr(record, "tag", record.levelname)
        rid = getattr(record, "request_id", "-")

        parts = [
            colors.colorize(datetime.fromtimestamp(record.created).strftime("%H:%M:%S"), Colors.DIM),
            colors.colorize(f"[{tag:^7}]", get_tag_color(tag)),
        ]
        if rid != "-":
            parts.append(colors.colorize(f"({rid})", Colors.DIM + Colors.CYAN))
        parts.append(record.getMessage())

        event = getattr(record, "event", None)
        if event:
            parts.append(colors.colorize(f"event={event}", Colors.BLUE))

        extra_data = getattr(record, "extra_data", None)
        if extra_data:
            for k, v in extra_data.items():
                parts.append(colors.colorize(f"{k}={v}", self._field_color(k, v)))

        seconds = getattr(record, "seconds", None)
        if seconds is not None:
            parts.append(colors.colorize(f"{seconds:.3f}s", self._duration_color(seconds)))

        return " ".join(parts)

    @staticmethod
    def _duration_color(seconds: float) -> str:
        if seconds < 0.5:
            return Colors.GREEN
        if seconds < 3.0:
            return Colors.YELLOW
        return Colors.RED

    @staticmethod
    def _field_color(key: str, value: Any) -> str:
        if key in ("cache", "result"):
            if value == "hit":
                return Colors.GREEN
            if value == "miss":
                return Colors.YELLOW
        if key == "fallback" and value:
            return Colors.MAGENTA
        if key == "status" and isinstance(value, int):
            if value >= 500:
                return Colors.RED
            if value >= 400:
                return Colors.YELLOW
            return Colors.GREEN
        return Colors.DIM
