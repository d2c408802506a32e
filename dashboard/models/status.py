"""
Status Models

Benchmark lifecycle states and the values derived from them.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class BenchmarkStatus(str, Enum):
    """Benchmark engine status as reported by the server."""

    IDLE = "IDLE"
    INITIALIZED = "INITIALIZED"
    LOADING = "LOADING"
    LOADED = "LOADED"
    RUNNING = "RUNNING"
    STOPPING = "STOPPING"
    STOPPED = "STOPPED"
    ERROR = "ERROR"
    CANCELLED = "CANCELLED"


class StatusEvent(str, Enum):
    """Notifications raised by a status transition."""

    LOAD_SUCCEEDED = "load-succeeded"
    LOAD_CANCELLED = "load-cancelled"
    LOAD_FAILED = "load-failed"
    RUN_COMPLETED = "run-completed"
    GENERIC_ERROR = "generic-error"


class ConnectionState(str, Enum):
    """Push channel state."""

    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


class CapabilityFlags(BaseModel):
    """Which console controls are enabled for the current status."""

    model_config = ConfigDict(frozen=True)

    can_start: bool = Field(True, description="Start button enabled")
    can_stop: bool = Field(False, description="Stop button enabled")
    can_load: bool = Field(True, description="Load button enabled")
    can_clean: bool = Field(True, description="Clean button enabled")
    can_edit_config: bool = Field(True, description="Config dialog enabled")
    can_cancel_load: bool = Field(False, description="Cancel-load enabled")

    @classmethod
    def for_status(
        cls, status: BenchmarkStatus | None, *, cancel_armed: bool = False
    ) -> "CapabilityFlags":
        running = status == BenchmarkStatus.RUNNING
        loading = status == BenchmarkStatus.LOADING
        stopping = status == BenchmarkStatus.STOPPING
        idle_enough = not running and not loading
        return cls(
            can_start=idle_enough,
            can_stop=running,
            can_load=idle_enough,
            can_clean=idle_enough,
            can_edit_config=idle_enough and not stopping,
            can_cancel_load=cancel_armed,
        )


class ProgressState(BaseModel):
    """Data-load progress indicator."""

    model_config = ConfigDict(frozen=True)

    active: bool = Field(False, description="Indicator visible")
    percent: float = Field(0.0, description="Progress 0-100")
    message: str = Field("", description="Progress message")
    failed: bool = Field(False, description="Backend reported a negative progress")
