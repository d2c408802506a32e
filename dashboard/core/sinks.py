"""
Visualization Sinks

The console core never renders anything itself; it publishes to sinks.
``DashboardSink`` defines every callback with a no-op body so a sink only
overrides what it draws. ``SinkHub`` fans a callback out to many sinks and
isolates the core from sink failures.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Sequence

from dashboard.models import (
    BenchmarkStatus,
    CapabilityFlags,
    ChannelSample,
    ConnectionState,
    DatabaseMetrics,
    HostMetrics,
    LogEntry,
    ProgressState,
    TransactionMetrics,
    TransactionTypeMetrics,
)

logger = logging.getLogger(__name__)


class DashboardSink:
    """Base sink: every callback is optional."""

    def on_series_updated(self, series: str, points: Sequence[ChannelSample]) -> None:
        pass

    def on_status_changed(self, status: BenchmarkStatus, flags: CapabilityFlags) -> None:
        pass

    def on_log_appended(self, entry: LogEntry) -> None:
        pass

    def on_log_history_replaced(self, entries: Sequence[LogEntry]) -> None:
        pass

    def on_progress(self, progress: ProgressState) -> None:
        pass

    def on_connection_changed(self, state: ConnectionState) -> None:
        pass

    def on_notification(self, level: str, title: str, message: str) -> None:
        pass

    def on_transaction_totals(self, tx: TransactionMetrics) -> None:
        pass

    def on_transaction_table(self, rows: Sequence[TransactionTypeMetrics]) -> None:
        pass

    def on_host_metrics(self, host: HostMetrics) -> None:
        pass

    def on_database_metrics(self, db: DatabaseMetrics) -> None:
        pass

    def on_config(self, config: dict[str, Any]) -> None:
        pass


class SinkHub(DashboardSink):
    """
    Fan-out sink.

    A failing sink is logged and skipped; the remaining sinks still receive
    the callback and the caller never sees the exception.
    """

    def __init__(self, sinks: Iterable[DashboardSink] = ()) -> None:
        self._sinks: list[DashboardSink] = list(sinks)

    def add(self, sink: DashboardSink) -> None:
        if sink not in self._sinks:
            self._sinks.append(sink)

    def remove(self, sink: DashboardSink) -> None:
        if sink in self._sinks:
            self._sinks.remove(sink)

    def __len__(self) -> int:
        return len(self._sinks)

    def _dispatch(self, callback: str, *args: Any) -> None:
        for sink in list(self._sinks):
            try:
                getattr(sink, callback)(*args)
            except Exception as e:
                logger.warning(
                    "Sink %s failed in %s: %s", type(sink).__name__, callback, e
                )

    def on_series_updated(self, series, points) -> None:
        self._dispatch("on_series_updated", series, points)

    def on_status_changed(self, status, flags) -> None:
        self._dispatch("on_status_changed", status, flags)

    def on_log_appended(self, entry) -> None:
        self._dispatch("on_log_appended", entry)

    def on_log_history_replaced(self, entries) -> None:
        self._dispatch("on_log_history_replaced", entries)

    def on_progress(self, progress) -> None:
        self._dispatch("on_progress", progress)

    def on_connection_changed(self, state) -> None:
        self._dispatch("on_connection_changed", state)

    def on_notification(self, level, title, message) -> None:
        self._dispatch("on_notification", level, title, message)

    def on_transaction_totals(self, tx) -> None:
        self._dispatch("on_transaction_totals", tx)

    def on_transaction_table(self, rows) -> None:
        self._dispatch("on_transaction_table", rows)

    def on_host_metrics(self, host) -> None:
        self._dispatch("on_host_metrics", host)

    def on_database_metrics(self, db) -> None:
        self._dispatch("on_database_metrics", db)

    def on_config(self, config) -> None:
        self._dispatch("on_config", config)


class LoggingSink(DashboardSink):
    """Writes status changes, notifications and log lines to the process log."""

    def __init__(self, name: str = "dashboard.console") -> None:
        self._log = logging.getLogger(name)
        self._last_status: BenchmarkStatus | None = None

    def on_status_changed(self, status, flags) -> None:
        if status == self._last_status:
            return
        self._last_status = status
        self._log.info(
            "Status: %s (start=%s stop=%s load=%s)",
            status.value,
            flags.can_start,
            flags.can_stop,
            flags.can_load,
        )

    def on_log_appended(self, entry) -> None:
        self._log.info("[%s] [%s] %s", entry.timestamp, entry.level.value, entry.message)

    def on_notification(self, level, title, message) -> None:
        log_level = logging.ERROR if level == "error" else logging.INFO
        self._log.log(log_level, "%s: %s", title, message)

    def on_connection_changed(self, state) -> None:
        self._log.info("Push channel %s", state.value)

    def on_progress(self, progress) -> None:
        if progress.active:
            self._log.info("Load progress %.0f%% %s", progress.percent, progress.message)

    def on_transaction_totals(self, tx) -> None:
        self._log.debug(
            "tps=%.2f total=%d success=%.1f%% avg=%.2fms",
            tx.tps or 0.0,
            tx.total_transactions,
            tx.overall_success_rate,
            tx.avg_latency_ms,
        )
