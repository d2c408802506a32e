"""
Console stores and the status machine.

``SyncController`` lives in ``dashboard.core.sync_controller``; it is not
re-exported here because it depends on the transport package, which in turn
depends on these stores.
"""

from dashboard.core.log_store import LogStore
from dashboard.core.rates import RateCalculator, RateState
from dashboard.core.sinks import DashboardSink, LoggingSink, SinkHub
from dashboard.core.status_machine import StatusMachine, transition_event
from dashboard.core.timeseries import RUN_SCOPED_SERIES, TimeSeriesBuffer

__all__ = [
    "LogStore",
    "RateCalculator",
    "RateState",
    "DashboardSink",
    "LoggingSink",
    "SinkHub",
    "StatusMachine",
    "transition_event",
    "RUN_SCOPED_SERIES",
    "TimeSeriesBuffer",
]
