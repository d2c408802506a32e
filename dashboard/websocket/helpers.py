"""
Helper utilities for the push channel and series labels.
"""

import time
from datetime import datetime
from typing import Any

LABEL_FORMAT = "%H:%M:%S"


def _wall_clock_ms() -> float:
    """Current wall clock time in milliseconds."""
    return time.time() * 1000


def _coerce_datetime(value: Any) -> datetime | None:
    """Coerce an ISO string, epoch millis or datetime to a local datetime."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(value, str):
        try:
            dt = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    if dt.tzinfo is not None:
        # Labels are shown in the viewer's local time.
        return dt.astimezone().replace(tzinfo=None)
    return dt


def _time_label(now_ms: float) -> str:
    """Series label for a wall clock time in milliseconds."""
    return datetime.fromtimestamp(now_ms / 1000).strftime(LABEL_FORMAT)


def _label_for(timestamp: Any, fallback_ms: float) -> str:
    """Series label for a backend timestamp, or the fallback time if unreadable."""
    dt = _coerce_datetime(timestamp)
    if dt is None:
        return _time_label(fallback_ms)
    return dt.strftime(LABEL_FORMAT)
