"""
Log Models
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class LogLevel(str, Enum):
    """Console log levels."""

    INFO = "info"
    SUCCESS = "success"
    WARN = "warn"
    ERROR = "error"


_LEVEL_ALIASES = {
    "warning": LogLevel.WARN,
    "warn": LogLevel.WARN,
    "err": LogLevel.ERROR,
    "error": LogLevel.ERROR,
    "fatal": LogLevel.ERROR,
    "critical": LogLevel.ERROR,
    "success": LogLevel.SUCCESS,
    "ok": LogLevel.SUCCESS,
    "info": LogLevel.INFO,
    "debug": LogLevel.INFO,
}


def normalize_level(value: Any) -> LogLevel:
    """Map a backend level name (``INFO``, ``WARNING``, ...) to a LogLevel."""
    if isinstance(value, LogLevel):
        return value
    return _LEVEL_ALIASES.get(str(value or "").strip().lower(), LogLevel.INFO)


def now_label() -> str:
    """Timestamp in the backend's log format."""
    return datetime.now().strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]


class LogEntry(BaseModel):
    """A single console log line."""

    model_config = ConfigDict(frozen=True)

    timestamp: str = Field(default_factory=now_label, description="When it was logged")
    level: LogLevel = Field(LogLevel.INFO, description="Severity")
    message: str = Field("", description="Log text")

    @field_validator("level", mode="before")
    @classmethod
    def _normalize_level(cls, value: Any) -> LogLevel:
        return normalize_level(value)

    @field_validator("timestamp", mode="before")
    @classmethod
    def _stringify_timestamp(cls, value: Any) -> Any:
        if value is None:
            return now_label()
        return str(value)

    @field_validator("message", mode="before")
    @classmethod
    def _stringify_message(cls, value: Any) -> Any:
        if value is None:
            return ""
        return str(value)
