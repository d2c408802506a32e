"""
Transport Manager

Owns the two ways telemetry reaches the console:

- push channel: a websocket the server streams snapshots, logs, progress and
  status changes over (preferred)
- poll channel: ``GET /api/metrics/current`` every few seconds, used only
  while the push channel is not open

Inbound messages are classified and merged into the console stores. Nothing
raised while receiving or applying a message escapes this module.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Optional, Tuple, assert_never

import websockets

from dashboard.config import settings
from dashboard.connectors.benchmark_api import BenchmarkApiClient
from dashboard.core.log_store import LogStore
from dashboard.core.rates import RateCalculator
from dashboard.core.sinks import DashboardSink
from dashboard.core.status_machine import StatusMachine
from dashboard.core.timeseries import (
    SERIES_DB_CONNECTIONS,
    SERIES_DB_HOST_CPU,
    SERIES_DB_LOCK_WAITS,
    SERIES_DISK_READ,
    SERIES_DISK_WRITE,
    SERIES_NET_RECV,
    SERIES_NET_SENT,
    SERIES_OS_CPU,
    SERIES_TPS,
    TimeSeriesBuffer,
)
from dashboard.errors import MalformedMessageError, describe_failure
from dashboard.models import (
    BenchmarkStatus,
    ConnectionState,
    DatabaseMetrics,
    DbHostMetrics,
    HostMetrics,
    LogLevel,
    LogMessage,
    MetricSnapshot,
    MetricsMessage,
    ProgressMessage,
    StatusMessage,
    TransactionMetrics,
    TransactionTypeMetrics,
    parse_message,
)
from dashboard.websocket.helpers import _time_label, _wall_clock_ms

logger = logging.getLogger(__name__)


class TransportManager:
    def __init__(
        self,
        *,
        api: BenchmarkApiClient,
        series: TimeSeriesBuffer,
        rates: RateCalculator,
        logs: LogStore,
        status: StatusMachine,
        sink: Optional[DashboardSink] = None,
        ws_url: Optional[str] = None,
        poll_interval: Optional[float] = None,
        reconnect_delay: Optional[float] = None,
        connect: Optional[Callable[[str], Any]] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        """
        Args:
            api: REST client used by the poll channel
            series, rates, logs, status: stores updated by inbound messages
            sink: receives connection and snapshot-level callbacks
            ws_url: push channel URL (defaults to ``settings.ws_url``)
            poll_interval: seconds between poll ticks
            reconnect_delay: seconds between a close and the next connect
            connect: ``websockets.connect``-compatible factory
            clock: wall clock in milliseconds, used for labels and rates
        """
        self._api = api
        self._series = series
        self._rates = rates
        self._logs = logs
        self._status = status
        self._sink = sink

        self.ws_url = ws_url or settings.ws_url
        self.poll_interval = (
            settings.POLL_INTERVAL_SECONDS if poll_interval is None else poll_interval
        )
        self.reconnect_delay = (
            settings.RECONNECT_DELAY_SECONDS
            if reconnect_delay is None
            else reconnect_delay
        )
        self._connect = connect or websockets.connect
        self._clock = clock or _wall_clock_ms

        self.state: ConnectionState = ConnectionState.CLOSED
        self.transaction_totals: Optional[TransactionMetrics] = None
        self.transaction_table: Tuple[TransactionTypeMetrics, ...] = ()
        self.host: Optional[HostMetrics] = None
        self.database: Optional[DatabaseMetrics] = None

        self._running = False
        self._push_task: Optional[asyncio.Task] = None
        self._poll_task: Optional[asyncio.Task] = None
        self._reconnect_handle: Optional[asyncio.TimerHandle] = None

    # -- lifecycle -----------------------------------------------------------

    @property
    def running(self) -> bool:
        return self._running

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect_handle is not None

    async def start(self) -> None:
        """Open the push channel and start the poll timer."""
        if self._running:
            return
        self._running = True
        self._open_push_channel()
        self._poll_task = asyncio.create_task(self._poll_loop(), name="dashboard-poll")
        logger.info(
            "Transport started: ws=%s poll=%.1fs reconnect=%.1fs",
            self.ws_url,
            self.poll_interval,
            self.reconnect_delay,
        )

    async def stop(self) -> None:
        """Cancel the reconnection timer, the poll timer and the push channel."""
        self._running = False
        if self._reconnect_handle is not None:
            self._reconnect_handle.cancel()
            self._reconnect_handle = None

        tasks = [t for t in (self._push_task, self._poll_task) if t is not None]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._push_task = None
        self._poll_task = None
        self._set_state(ConnectionState.CLOSED)
        logger.info("Transport stopped")

    # -- push channel --------------------------------------------------------

    def _open_push_channel(self) -> None:
        self._reconnect_handle = None
        if not self._running:
            return
        self._set_state(ConnectionState.CONNECTING)
        self._push_task = asyncio.create_task(
            self._run_push_channel(), name="dashboard-push"
        )

    async def _run_push_channel(self) -> None:
        try:
            async with self._connect(self.ws_url) as ws:
                self._on_open()
                async for raw in ws:
                    self.handle_raw(raw)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            # Handshake failures and abnormal closes land here.
            logger.warning("Push channel error: %s", e)
        self._on_close()

    def _on_open(self) -> None:
        self._set_state(ConnectionState.OPEN)
        logger.info("Push channel connected: %s", self.ws_url)
        self._logs.note("WebSocket connected", LogLevel.SUCCESS)

    def _on_close(self) -> None:
        self._set_state(ConnectionState.CLOSED)
        if not self._running:
            return
        logger.warning(
            "Push channel closed, reconnecting in %.1fs", self.reconnect_delay
        )
        self._logs.note("WebSocket disconnected, reconnecting...", LogLevel.WARN)
        self._schedule_reconnect()

    def _schedule_reconnect(self) -> None:
        if not self._running or self._reconnect_handle is not None:
            return
        loop = asyncio.get_running_loop()
        self._reconnect_handle = loop.call_later(
            self.reconnect_delay, self._open_push_channel
        )

    def _set_state(self, state: ConnectionState) -> None:
        if state == self.state:
            return
        self.state = state
        if self._sink is not None:
            self._sink.on_connection_changed(state)

    def handle_raw(self, raw: Any) -> bool:
        """
        Parse and apply one push frame.

        Returns False when the frame was dropped.
        """
        try:
            message = parse_message(raw)
        except MalformedMessageError as e:
            logger.warning("Dropping malformed push message: %s", e)
            return False

        try:
            self.apply_message(message)
        except Exception as e:
            logger.exception("Failed to apply %s message: %s", message.type, e)
            return False
        return True

    def apply_message(
        self, message: LogMessage | ProgressMessage | StatusMessage | MetricsMessage
    ) -> None:
        if isinstance(message, LogMessage):
            self._logs.append(message.log)
        elif isinstance(message, ProgressMessage):
            self._status.update_progress(message.progress, message.message)
            if message.status is not None:
                self._status.update(message.status)
        elif isinstance(message, StatusMessage):
            logger.info("Status change received: %s", message.status.value)
            self._status.update(message.status)
        elif isinstance(message, MetricsMessage):
            self.apply_snapshot(message.snapshot)
        else:
            assert_never(message)

    # -- snapshot routing ----------------------------------------------------

    def apply_snapshot(
        self, snapshot: MetricSnapshot, now_ms: Optional[float] = None
    ) -> None:
        """Merge a metrics snapshot into the series, tables and status."""
        now_ms = self._clock() if now_ms is None else now_ms
        label = _time_label(now_ms)
        status = snapshot.status or self._status.status

        if snapshot.transaction is not None:
            self._apply_transaction(snapshot.transaction, status, label)
        if snapshot.os is not None:
            self._apply_host(snapshot.os, label)
        if snapshot.database is not None:
            self._apply_database(snapshot.database, label)
        if snapshot.db_host is not None:
            self._apply_db_host(snapshot.db_host, label, now_ms)

        if snapshot.status is not None:
            self._status.update(snapshot.status)
        if snapshot.loading and snapshot.load_progress is not None:
            self._status.update_progress(
                snapshot.load_progress, snapshot.load_message or "Loading..."
            )

    def _apply_transaction(
        self,
        tx: TransactionMetrics,
        status: Optional[BenchmarkStatus],
        label: str,
    ) -> None:
        self.transaction_totals = tx
        if self._sink is not None:
            self._sink.on_transaction_totals(tx)

        # Idle periods would otherwise draw a flat trailing line.
        if status != BenchmarkStatus.RUNNING:
            return
        if tx.tps is not None:
            self._series.push(SERIES_TPS, label, tx.tps)
        if tx.transactions:
            self.transaction_table = tuple(tx.transactions)
            if self._sink is not None:
                self._sink.on_transaction_table(self.transaction_table)

    def _apply_host(self, host: HostMetrics, label: str) -> None:
        self.host = host
        if self._sink is not None:
            self._sink.on_host_metrics(host)
        self._series.push(SERIES_OS_CPU, label, host.cpu_usage)
        self._series.push(SERIES_NET_RECV, label, host.network_recv_bytes_per_sec)
        self._series.push(SERIES_NET_SENT, label, host.network_sent_bytes_per_sec)

    def _apply_database(self, db: DatabaseMetrics, label: str) -> None:
        self.database = db
        if self._sink is not None:
            self._sink.on_database_metrics(db)
        self._series.push(SERIES_DB_CONNECTIONS, label, db.active_connections)
        self._series.push(SERIES_DB_LOCK_WAITS, label, db.lock_waits)

    def _apply_db_host(self, host: DbHostMetrics, label: str, now_ms: float) -> None:
        if host.cpu_usage is not None:
            self._series.push(SERIES_DB_HOST_CPU, label, host.cpu_usage)

        if host.disk_read_bytes is None or host.disk_write_bytes is None:
            return
        read_rate = self._rates.rate(SERIES_DISK_READ, host.disk_read_bytes, now_ms)
        write_rate = self._rates.rate(SERIES_DISK_WRITE, host.disk_write_bytes, now_ms)
        if read_rate is not None:
            self._series.push(SERIES_DISK_READ, label, read_rate)
        if write_rate is not None:
            self._series.push(SERIES_DISK_WRITE, label, write_rate)

    # -- poll channel --------------------------------------------------------

    async def _poll_loop(self) -> None:
        while True:
            await asyncio.sleep(self.poll_interval)
            await self.poll_once()

    async def poll_once(self) -> bool:
        """
        One poll tick.

        Returns False without fetching while the push channel is open;
        the push channel already delivers the same snapshots.
        """
        if self.state == ConnectionState.OPEN:
            return False

        try:
            snapshot = await self._api.get_current_metrics()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(describe_failure("Status poll failed", e))
            return True

        previous = self._status.status
        try:
            self.apply_snapshot(snapshot)
        except Exception as e:
            logger.exception("Failed to apply polled snapshot: %s", e)
            return True

        if snapshot.status is not None and snapshot.status != previous:
            self._logs.note(f"Status changed to: {snapshot.status.value}")
        return True
