"""
Data models for the benchmark console.

This package contains Pydantic models for:
- Metric snapshots and series samples
- Benchmark status, capability flags and progress
- Log entries
- Push channel messages
- Benchmark configuration and command responses
"""

from dashboard.models.status import (
    BenchmarkStatus,
    StatusEvent,
    ConnectionState,
    CapabilityFlags,
    ProgressState,
)

from dashboard.models.metrics import (
    ChannelSample,
    TransactionTypeMetrics,
    TransactionMetrics,
    HostMetrics,
    DatabaseMetrics,
    DbHostMetrics,
    MetricSnapshot,
    HistoryPoint,
    parse_status,
)

from dashboard.models.logs import (
    LogLevel,
    LogEntry,
    normalize_level,
)

from dashboard.models.messages import (
    LogMessage,
    ProgressMessage,
    StatusMessage,
    MetricsMessage,
    TelemetryMessage,
    parse_message,
)

from dashboard.models.benchmark_config import (
    DatabaseSettings,
    WorkloadSettings,
    TransactionMix,
    BenchmarkConfig,
    CommandResult,
)

__all__ = [
    # status
    "BenchmarkStatus",
    "StatusEvent",
    "ConnectionState",
    "CapabilityFlags",
    "ProgressState",
    # metrics
    "ChannelSample",
    "TransactionTypeMetrics",
    "TransactionMetrics",
    "HostMetrics",
    "DatabaseMetrics",
    "DbHostMetrics",
    "MetricSnapshot",
    "HistoryPoint",
    "parse_status",
    # logs
    "LogLevel",
    "LogEntry",
    "normalize_level",
    # messages
    "LogMessage",
    "ProgressMessage",
    "StatusMessage",
    "MetricsMessage",
    "TelemetryMessage",
    "parse_message",
    # benchmark_config
    "DatabaseSettings",
    "WorkloadSettings",
    "TransactionMix",
    "BenchmarkConfig",
    "CommandResult",
]
