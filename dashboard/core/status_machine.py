"""
Status Machine

Tracks the last benchmark status seen by the console and reacts to changes.

The backend owns the real lifecycle, so transitions are not validated; the
console only decides which transitions deserve a notification, which
controls are enabled, and when the data-load progress indicator is shown.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from dashboard.core.sinks import DashboardSink
from dashboard.models import (
    BenchmarkStatus,
    CapabilityFlags,
    ProgressState,
    StatusEvent,
    parse_status,
)

logger = logging.getLogger(__name__)

PROGRESS_GRACE_SECONDS = 3.0

_TRANSITION_EVENTS: dict[tuple[BenchmarkStatus, BenchmarkStatus], StatusEvent] = {
    (BenchmarkStatus.LOADING, BenchmarkStatus.LOADED): StatusEvent.LOAD_SUCCEEDED,
    (BenchmarkStatus.LOADING, BenchmarkStatus.CANCELLED): StatusEvent.LOAD_CANCELLED,
    (BenchmarkStatus.LOADING, BenchmarkStatus.ERROR): StatusEvent.LOAD_FAILED,
    (BenchmarkStatus.RUNNING, BenchmarkStatus.STOPPED): StatusEvent.RUN_COMPLETED,
}

# (level, title, message) shown for each event.
EVENT_NOTIFICATIONS: dict[StatusEvent, tuple[str, str, str]] = {
    StatusEvent.LOAD_SUCCEEDED: (
        "success",
        "Data Loaded",
        "TPC-C data has been loaded successfully",
    ),
    StatusEvent.LOAD_CANCELLED: (
        "warning",
        "Load Cancelled",
        "Data loading was cancelled by user",
    ),
    StatusEvent.LOAD_FAILED: (
        "error",
        "Load Failed",
        "Data loading failed, check logs for details",
    ),
    StatusEvent.RUN_COMPLETED: (
        "info",
        "Benchmark Complete",
        "Benchmark has finished running",
    ),
    StatusEvent.GENERIC_ERROR: (
        "error",
        "Error",
        "An error occurred, check logs for details",
    ),
}

# Statuses after which the progress indicator is hidden (after the grace delay).
_PROGRESS_TERMINAL = frozenset(
    {
        BenchmarkStatus.LOADED,
        BenchmarkStatus.ERROR,
        BenchmarkStatus.INITIALIZED,
        BenchmarkStatus.CANCELLED,
    }
)

# Events that hide the progress indicator immediately.
_HIDES_PROGRESS = frozenset({StatusEvent.LOAD_SUCCEEDED, StatusEvent.LOAD_CANCELLED})


def transition_event(
    previous: Optional[BenchmarkStatus], new: BenchmarkStatus
) -> Optional[StatusEvent]:
    """
    Event for ``previous -> new``, or None.

    No event is raised for the first status ever seen, for anything leaving
    IDLE (the boot state), or for a repeated status.
    """
    if previous is None or previous == new or previous == BenchmarkStatus.IDLE:
        return None
    event = _TRANSITION_EVENTS.get((previous, new))
    if event is not None:
        return event
    if new == BenchmarkStatus.ERROR:
        return StatusEvent.GENERIC_ERROR
    return None


class StatusMachine:
    def __init__(
        self,
        sink: Optional[DashboardSink] = None,
        grace_seconds: float = PROGRESS_GRACE_SECONDS,
    ):
        self._sink = sink
        self.grace_seconds = grace_seconds

        self.status: Optional[BenchmarkStatus] = None
        self.cancel_armed: bool = False
        self.flags: CapabilityFlags = CapabilityFlags.for_status(None)
        self.progress: ProgressState = ProgressState()
        self.last_event: Optional[StatusEvent] = None

        self._grace_handle: Optional[asyncio.TimerHandle] = None

    def update(self, status: BenchmarkStatus | str | None) -> Optional[StatusEvent]:
        """
        Apply an observed status.

        Returns the transition event (if any). Flags are recomputed and
        published on every call, including repeats.
        """
        new = parse_status(status)
        if new is None:
            return None

        previous = self.status
        self.status = new
        event = transition_event(previous, new)

        if new == BenchmarkStatus.LOADING:
            self.cancel_armed = True
            self._cancel_grace()
            self._set_progress(self.progress.model_copy(update={"active": True}))
        else:
            self.cancel_armed = False
            if new in _PROGRESS_TERMINAL:
                self._schedule_grace()

        self._publish_flags()

        if event is not None:
            self._emit(event, previous, new)
        return event

    def _emit(
        self, event: StatusEvent, previous: BenchmarkStatus, new: BenchmarkStatus
    ) -> None:
        self.last_event = event
        logger.info("Status %s -> %s: %s", previous.value, new.value, event.value)
        if event in _HIDES_PROGRESS:
            self.hide_progress()
        if self._sink is not None:
            level, title, message = EVENT_NOTIFICATIONS[event]
            self._sink.on_notification(level, title, message)

    # -- progress indicator -------------------------------------------------

    def update_progress(self, percent: float, message: str | None = None) -> ProgressState:
        """Show the indicator with a new value; negative percent means failure."""
        failed = percent < 0
        self._set_progress(
            ProgressState(
                active=True,
                percent=0.0 if failed else float(percent),
                message=message or "",
                failed=failed,
            )
        )
        return self.progress

    def arm_progress(self, message: str = "Starting...") -> None:
        """Show the indicator at 0% before a load request is sent."""
        self.cancel_armed = True
        self._publish_flags()
        self.update_progress(0, message)

    def disarm_cancel(self) -> None:
        self.cancel_armed = False
        self._publish_flags()

    def _publish_flags(self) -> None:
        self.flags = CapabilityFlags.for_status(self.status, cancel_armed=self.cancel_armed)
        if self._sink is not None:
            self._sink.on_status_changed(self.status, self.flags)

    def hide_progress(self) -> None:
        self._cancel_grace()
        if self.progress.active:
            self._set_progress(self.progress.model_copy(update={"active": False}))

    def _set_progress(self, progress: ProgressState) -> None:
        self.progress = progress
        if self._sink is not None:
            self._sink.on_progress(progress)

    def _schedule_grace(self) -> None:
        self._cancel_grace()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop (synchronous caller): nothing can revert us in between.
            self._grace_expired()
            return
        self._grace_handle = loop.call_later(self.grace_seconds, self._grace_expired)

    def _grace_expired(self) -> None:
        self._grace_handle = None
        if self.status != BenchmarkStatus.LOADING:
            self.hide_progress()

    def _cancel_grace(self) -> None:
        if self._grace_handle is not None:
            self._grace_handle.cancel()
            self._grace_handle = None

    @property
    def grace_pending(self) -> bool:
        return self._grace_handle is not None

    def close(self) -> None:
        """Drop the pending grace timer (teardown)."""
        self._cancel_grace()
