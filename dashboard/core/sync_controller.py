"""
Sync Controller

Top-level coordinator of the console telemetry core:

- builds the stores and the transport for one console instance
- hydrates them from the REST API before live updates begin
- forwards console commands (start, stop, load, ...) to the server
- exposes read-only views to the UI layer

No public method raises: failures are converted into console log lines and
notifications.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from pydantic import ValidationError

from dashboard.config import Settings, settings as default_settings
from dashboard.connectors.benchmark_api import BenchmarkApiClient
from dashboard.core.log_store import LogStore
from dashboard.core.rates import RateCalculator
from dashboard.core.sinks import DashboardSink, SinkHub
from dashboard.core.status_machine import StatusMachine
from dashboard.core.timeseries import RUN_SCOPED_SERIES, SERIES_TPS, TimeSeriesBuffer
from dashboard.errors import ConfigValidationError, describe_failure
from dashboard.models import (
    BenchmarkConfig,
    BenchmarkStatus,
    CapabilityFlags,
    ChannelSample,
    CommandResult,
    ConnectionState,
    HistoryPoint,
    LogEntry,
    LogLevel,
    MetricSnapshot,
    ProgressState,
    TransactionMetrics,
    TransactionTypeMetrics,
)
from dashboard.websocket.helpers import _label_for, _wall_clock_ms
from dashboard.websocket.transport import TransportManager

logger = logging.getLogger(__name__)

# Statuses for which the throughput trend is restored after a reload.
_BACKFILL_STATUSES = frozenset({BenchmarkStatus.RUNNING, BenchmarkStatus.STOPPED})


class SyncController:
    def __init__(
        self,
        cfg: Optional[Settings] = None,
        *,
        api: Optional[BenchmarkApiClient] = None,
        sinks: Tuple[DashboardSink, ...] = (),
        connect: Optional[Callable[[str], Any]] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.settings = cfg or default_settings
        self.sink = SinkHub(sinks)
        self.api = api or BenchmarkApiClient(
            self.settings.BASE_URL, timeout=self.settings.HTTP_TIMEOUT_SECONDS
        )

        self.series = TimeSeriesBuffer(self.settings.SERIES_CAPACITY, sink=self.sink)
        self.rates = RateCalculator()
        self.log_store = LogStore(
            self.settings.LOG_HISTORY_LIMIT,
            self.settings.LOG_TAIL_LIMIT,
            sink=self.sink,
        )
        self.status_machine = StatusMachine(
            sink=self.sink, grace_seconds=self.settings.PROGRESS_GRACE_SECONDS
        )
        self.transport = TransportManager(
            api=self.api,
            series=self.series,
            rates=self.rates,
            logs=self.log_store,
            status=self.status_machine,
            sink=self.sink,
            ws_url=self.settings.ws_url,
            poll_interval=self.settings.POLL_INTERVAL_SECONDS,
            reconnect_delay=self.settings.RECONNECT_DELAY_SECONDS,
            connect=connect,
            clock=clock,
        )
        self._clock = clock or _wall_clock_ms
        self.config: Dict[str, Any] = {}

    # -- lifecycle -----------------------------------------------------------

    async def start(self) -> None:
        """Hydrate the stores, then begin live updates."""
        await self.load_initial_state()
        await self.transport.start()

    async def close(self) -> None:
        await self.transport.stop()
        self.status_machine.close()
        await self.api.aclose()

    async def __aenter__(self) -> "SyncController":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def load_initial_state(self) -> bool:
        """
        Fetch config, current metrics and recent logs concurrently and apply
        them in order: config, status, metrics, history backfill, logs.

        Status goes first because the throughput series only advances while
        RUNNING.
        """
        try:
            config, snapshot, logs = await asyncio.gather(
                self.api.get_config(),
                self.api.get_current_metrics(),
                self.api.get_logs(limit=self.settings.INITIAL_LOG_LIMIT),
            )
        except Exception as e:
            message = describe_failure("Failed to load initial state", e)
            logger.error(message)
            self.log_store.note(message, LogLevel.ERROR)
            return False

        self._apply_config(config)

        if snapshot.status is not None:
            self.status_machine.update(snapshot.status)

        self.transport.apply_snapshot(snapshot)

        restored = 0
        if snapshot.status in _BACKFILL_STATUSES:
            restored = await self._backfill_tps()

        if snapshot.loading:
            self.status_machine.update_progress(
                snapshot.load_progress or 0, snapshot.load_message or "Loading..."
            )

        self.log_store.replace_history(logs)
        self.log_store.seed_tail(logs)

        # Seeding replaces the tail, so local notes come after it.
        if restored:
            self.log_store.note(f"Restored {restored} chart data points")
        self.log_store.note("Dashboard initialized", LogLevel.SUCCESS)
        logger.info(
            "Dashboard initialized: status=%s logs=%d",
            snapshot.status.value if snapshot.status else None,
            len(logs),
        )
        return True

    async def restore_history(self) -> int:
        """Refill the throughput series so a reload keeps the visible trend."""
        restored = await self._backfill_tps()
        if restored:
            self.log_store.note(f"Restored {restored} chart data points")
        return restored

    async def _backfill_tps(self) -> int:
        try:
            history: List[HistoryPoint] = await self.api.get_metrics_history(
                limit=self.settings.HISTORY_POINTS
            )
        except Exception as e:
            logger.warning(describe_failure("Failed to restore chart history", e))
            return 0

        if not history:
            return 0

        now_ms = self._clock()
        points = history[-self.settings.HISTORY_POINTS :]
        self.series.reset(SERIES_TPS)
        self.series.extend(
            SERIES_TPS,
            (ChannelSample(_label_for(p.timestamp, now_ms), p.tps) for p in points),
        )
        return len(points)

    def _apply_config(self, config: Dict[str, Any]) -> None:
        self.config = dict(config or {})
        self.sink.on_config(self.config)

    def reset_run_state(self) -> None:
        """Clear run-scoped series and counter state for a clean run boundary."""
        for name in RUN_SCOPED_SERIES:
            self.series.reset(name)
        self.rates.reset_all()

    # -- commands ------------------------------------------------------------

    async def _command(
        self,
        name: str,
        body: Optional[Dict[str, Any]] = None,
        *,
        failure_title: str = "Operation Failed",
        request: Optional[Awaitable[CommandResult]] = None,
    ) -> CommandResult:
        try:
            if request is None:
                request = self.api.send_command(name, body)
            result = await request
        except Exception as e:
            reason = describe_failure(name, e)
            logger.warning("Command %s failed: %s", name, reason)
            self.log_store.note(f"Request failed: {reason}", LogLevel.ERROR)
            self.sink.on_notification("error", "Request Failed", reason)
            return CommandResult.failure(reason)

        if result.success:
            if result.message:
                self.log_store.note(result.message, LogLevel.SUCCESS)
            if result.status is not None:
                self.status_machine.update(result.status)
        else:
            error = result.error or "Unknown error"
            self.log_store.note(f"Error: {error}", LogLevel.ERROR)
            self.sink.on_notification("error", failure_title, error)
        return result

    async def start_benchmark(self) -> CommandResult:
        self.reset_run_state()
        self.log_store.note("Starting benchmark...")
        result = await self._command("start")
        if result.success:
            self.sink.on_notification(
                "success", "Benchmark Started", "Benchmark is now running"
            )
        return result

    async def stop_benchmark(self) -> CommandResult:
        self.log_store.note("Stopping benchmark...")
        result = await self._command("stop")
        if result.success:
            self.sink.on_notification(
                "info", "Benchmark Stopped", "Benchmark has been stopped"
            )
        return result

    async def load_data(self) -> CommandResult:
        self.log_store.note("Starting data load... this may take several minutes")
        self.status_machine.arm_progress("Starting...")
        return await self._command("load")

    async def cancel_load(self) -> CommandResult:
        self.log_store.note("Cancelling data load...", LogLevel.WARN)
        self.status_machine.disarm_cancel()
        result = await self._command("cancel-load")
        if result.success:
            self.sink.on_notification(
                "warning", "Cancelling", "Data loading is being cancelled..."
            )
        return result

    async def clean_data(self) -> CommandResult:
        self.log_store.note("Cleaning test data...")
        result = await self._command("clean")
        if result.success:
            self.sink.on_notification(
                "success", "Data Cleaned", "All TPC-C tables have been dropped"
            )
        return result

    async def save_config(self, config: BenchmarkConfig | Dict[str, Any]) -> CommandResult:
        """
        Validate and save a configuration.

        Invalid configurations never reach the server.
        """
        try:
            validated = validate_config(config)
        except ConfigValidationError as e:
            self.sink.on_notification("error", "Invalid Configuration", str(e))
            return CommandResult.failure(str(e))

        result = await self._command(
            "save-config",
            failure_title="Save Failed",
            request=self.api.save_config(validated.to_payload()),
        )
        if result.success:
            if result.config is not None:
                self._apply_config(result.config)
            self.sink.on_notification(
                "success",
                "Configuration Saved",
                "Benchmark configuration has been updated",
            )
        return result

    async def test_connection(self, database: Dict[str, Any]) -> CommandResult:
        try:
            result = await self.api.test_connection(database)
        except Exception as e:
            reason = describe_failure("Connection test", e)
            self.sink.on_notification("error", "Connection Test Failed", reason)
            return CommandResult.failure(reason)

        if result.success:
            self.sink.on_notification(
                "success",
                "Connection Successful",
                f"Connected to {result.database or database.get('type', 'database')}",
            )
        else:
            suggestion = result.suggestion or "Check your connection settings"
            self.sink.on_notification(
                "error",
                "Connection Failed",
                f"{result.error}\n\nSuggestion: {suggestion}",
            )
        return result

    async def clear_logs(self) -> bool:
        try:
            await self.api.clear_logs()
        except Exception as e:
            self.log_store.note(
                describe_failure("Failed to clear logs", e), LogLevel.ERROR
            )
            return False
        self.log_store.clear()
        self.log_store.note("Logs cleared")
        return True

    async def open_log_history(self) -> List[LogEntry]:
        """Refresh the full-history viewer from the server (up to the history limit)."""
        try:
            entries = await self.api.get_logs(limit=self.settings.LOG_HISTORY_LIMIT)
        except Exception as e:
            logger.warning(describe_failure("Failed to load logs", e))
        else:
            self.log_store.replace_history(entries)
        return list(self.log_store.history())

    # -- read-only views -----------------------------------------------------

    def series_points(self, name: str) -> Tuple[ChannelSample, ...]:
        return self.series.snapshot(name)

    def logs(self, text_filter: str = "", level_filter: str = "all") -> List[LogEntry]:
        return self.log_store.query(text_filter, level_filter)

    def live_tail(self) -> Tuple[LogEntry, ...]:
        return self.log_store.tail()

    @property
    def status(self) -> Optional[BenchmarkStatus]:
        return self.status_machine.status

    @property
    def flags(self) -> CapabilityFlags:
        return self.status_machine.flags

    @property
    def progress(self) -> ProgressState:
        return self.status_machine.progress

    @property
    def connection_state(self) -> ConnectionState:
        return self.transport.state

    @property
    def transaction_totals(self) -> Optional[TransactionMetrics]:
        return self.transport.transaction_totals

    @property
    def transaction_table(self) -> Tuple[TransactionTypeMetrics, ...]:
        return self.transport.transaction_table

    def apply_snapshot(self, snapshot: MetricSnapshot) -> None:
        """Apply an externally obtained snapshot through the live routing path."""
        self.transport.apply_snapshot(snapshot)


def validate_config(config: BenchmarkConfig | Dict[str, Any]) -> BenchmarkConfig:
    """
    Raises:
        ConfigValidationError: with the first validation message
    """
    if isinstance(config, BenchmarkConfig):
        # Re-validate: a model built with model_construct skips validators.
        config = config.model_dump(by_alias=True)
    try:
        return BenchmarkConfig.model_validate(config)
    except ValidationError as e:
        first = e.errors()[0]
        raise ConfigValidationError(first.get("msg", str(e))) from e
