"""
Metrics Models

Pydantic models for the snapshots streamed by the benchmark server.
Wire payloads use camelCase keys; the models expose snake_case fields and
accept either spelling.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from dashboard.models.status import BenchmarkStatus

logger = logging.getLogger(__name__)

_SNAPSHOT_CONFIG = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)


@dataclass(frozen=True, slots=True)
class ChannelSample:
    """One plotted point of a named series."""

    label: str
    value: float


class TransactionTypeMetrics(BaseModel):
    """Per-transaction-type breakdown row (NewOrder, Payment, ...)."""

    model_config = _SNAPSHOT_CONFIG

    name: str = Field(..., description="Transaction type name")
    count: int = Field(0, description="Executed transactions")
    success: int = Field(0, description="Successful transactions")
    failure: int = Field(0, description="Failed transactions")
    success_rate: float = Field(0.0, alias="successRate", description="Success %")
    avg_latency_ms: float = Field(0.0, alias="avgLatencyMs", description="Avg latency")
    min_latency_ms: float = Field(0.0, alias="minLatencyMs", description="Min latency")
    max_latency_ms: float = Field(0.0, alias="maxLatencyMs", description="Max latency")


class TransactionMetrics(BaseModel):
    """Transaction throughput block of a snapshot."""

    model_config = _SNAPSHOT_CONFIG

    tps: Optional[float] = Field(None, description="Transactions per second")
    total_transactions: int = Field(
        0, alias="totalTransactions", description="Total transactions"
    )
    total_success: int = Field(0, alias="totalSuccess", description="Successful")
    total_failure: int = Field(0, alias="totalFailure", description="Failed")
    overall_success_rate: float = Field(
        0.0, alias="overallSuccessRate", description="Overall success %"
    )
    avg_latency_ms: float = Field(0.0, alias="avgLatencyMs", description="Avg latency")
    elapsed_seconds: float = Field(
        0.0, alias="elapsedSeconds", description="Elapsed run time"
    )
    transactions: List[TransactionTypeMetrics] = Field(
        default_factory=list, description="Per-type breakdown"
    )


class HostMetrics(BaseModel):
    """OS statistics of the host running the benchmark."""

    model_config = _SNAPSHOT_CONFIG

    cpu_usage: float = Field(0.0, alias="cpuUsage", description="CPU %")
    memory_usage: float = Field(0.0, alias="memoryUsage", description="Memory %")
    load_avg1: float = Field(0.0, alias="loadAvg1", description="1 minute load")
    network_recv_bytes_per_sec: float = Field(
        0.0, alias="networkRecvBytesPerSec", description="Network receive rate"
    )
    network_sent_bytes_per_sec: float = Field(
        0.0, alias="networkSentBytesPerSec", description="Network send rate"
    )


# Upstream adapters report the same concept under different keys depending on
# the database engine. Order matters: the first present, non-null key wins.
DATABASE_KEY_ALIASES: dict[str, tuple[str, ...]] = {
    "active_connections": ("active_connections", "activeConnections"),
    "buffer_pool_hit_ratio": (
        "buffer_pool_hit_ratio",
        "cache_hit_ratio",
        "bufferPoolHitRatio",
    ),
    "lock_waits": ("row_lock_waits", "waiting_locks", "lock_waits", "lockWaits"),
    "slow_queries": ("slow_queries", "slowQueries"),
}


class DatabaseMetrics(BaseModel):
    """Canonical database engine statistics."""

    model_config = _SNAPSHOT_CONFIG

    active_connections: int = Field(0, description="Active sessions")
    buffer_pool_hit_ratio: float = Field(0.0, description="Buffer/cache hit %")
    lock_waits: int = Field(0, description="Row lock waits")
    slow_queries: int = Field(0, description="Slow queries")

    @model_validator(mode="before")
    @classmethod
    def _resolve_aliases(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        resolved: dict[str, Any] = {}
        for field_name, keys in DATABASE_KEY_ALIASES.items():
            for key in keys:
                value = data.get(key)
                if value is not None:
                    resolved[field_name] = value
                    break
        return resolved


class DbHostMetrics(BaseModel):
    """OS statistics of the database host; disk counters are cumulative."""

    model_config = _SNAPSHOT_CONFIG

    cpu_usage: Optional[float] = Field(None, alias="cpuUsage", description="CPU %")
    disk_read_bytes: Optional[float] = Field(
        None, alias="diskReadBytes", description="Total bytes read"
    )
    disk_write_bytes: Optional[float] = Field(
        None, alias="diskWriteBytes", description="Total bytes written"
    )


class MetricSnapshot(BaseModel):
    """
    One point-in-time measurement as pushed by the server or returned by
    ``GET /api/metrics/current``.

    Every block is optional: the push channel and the REST endpoint include
    different subsets.
    """

    model_config = _SNAPSHOT_CONFIG

    transaction: Optional[TransactionMetrics] = None
    os: Optional[HostMetrics] = None
    database: Optional[DatabaseMetrics] = None
    db_host: Optional[DbHostMetrics] = Field(None, alias="dbHost")

    status: Optional[BenchmarkStatus] = None
    running: Optional[bool] = None
    loading: Optional[bool] = None
    load_progress: Optional[float] = Field(None, alias="loadProgress")
    load_message: Optional[str] = Field(None, alias="loadMessage")

    @field_validator("status", mode="before")
    @classmethod
    def _known_status(cls, value: Any) -> Any:
        return parse_status(value)


class HistoryPoint(BaseModel):
    """
    One throughput history point used to backfill the ``tps`` series.

    Accepts both the compact ``{timestamp, tps}`` form and full history
    snapshots carrying ``transactionMetrics``.
    """

    model_config = _SNAPSHOT_CONFIG

    # ISO string or epoch milliseconds, converted to a label at backfill time.
    timestamp: Optional[float | str] = None
    tps: float = 0.0

    @model_validator(mode="before")
    @classmethod
    def _flatten(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        tps = data.get("tps")
        if tps is None:
            tx = data.get("transactionMetrics") or data.get("transaction") or {}
            if isinstance(tx, dict):
                tps = tx.get("tps")
        ts = data.get("timestamp")
        return {"timestamp": ts, "tps": tps or 0.0}


def parse_status(value: Any) -> Optional[BenchmarkStatus]:
    """Map a wire status to the enum; unknown values are logged and dropped."""
    if value is None or isinstance(value, BenchmarkStatus):
        return value
    try:
        return BenchmarkStatus(str(value).strip().upper())
    except ValueError:
        logger.warning("Ignoring unknown benchmark status: %r", value)
        return None
