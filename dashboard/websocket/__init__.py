"""
Push/poll transport package for real-time console telemetry.

This package provides:
- Helpers: label formatting, timestamp coercion, wall clock
- Transport: the websocket push channel, the poll fallback and message routing
"""

from .helpers import (
    _coerce_datetime,
    _label_for,
    _time_label,
    _wall_clock_ms,
)

from .transport import TransportManager

__all__ = [
    # Helpers
    "_coerce_datetime",
    "_label_for",
    "_time_label",
    "_wall_clock_ms",
    # Transport
    "TransportManager",
]
