"""
Time Series Buffer

Fixed-window history of (label, value) samples per named series.
"""

import logging
from collections import deque
from typing import Dict, Iterable, Optional, Tuple

from dashboard.core.sinks import DashboardSink
from dashboard.models import ChannelSample

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 60

# Series keys
SERIES_TPS = "tps"
SERIES_OS_CPU = "os.cpu"
SERIES_NET_RECV = "os.net.recv"
SERIES_NET_SENT = "os.net.sent"
SERIES_DB_CONNECTIONS = "db.connections"
SERIES_DB_LOCK_WAITS = "db.lock_waits"
SERIES_DB_HOST_CPU = "db.host.cpu"
SERIES_DISK_READ = "db.disk.read"
SERIES_DISK_WRITE = "db.disk.write"

# Cleared when a new run starts. Host OS series keep running across runs.
RUN_SCOPED_SERIES = (
    SERIES_TPS,
    SERIES_DB_HOST_CPU,
    SERIES_DISK_READ,
    SERIES_DISK_WRITE,
    SERIES_DB_CONNECTIONS,
    SERIES_DB_LOCK_WAITS,
)


class TimeSeriesBuffer:
    """
    Bounded FIFO per series.

    Series are created lazily on first push. Pushing past ``capacity`` drops
    the oldest sample. Every mutation is published to the sink with the
    series' full contents so a chart can redraw per update.
    """

    def __init__(
        self,
        capacity: int = DEFAULT_CAPACITY,
        sink: Optional[DashboardSink] = None,
    ):
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self.capacity = capacity
        self._sink = sink
        self._series: Dict[str, deque] = {}

    def _buffer(self, series: str) -> deque:
        buf = self._series.get(series)
        if buf is None:
            buf = deque(maxlen=self.capacity)
            self._series[series] = buf
        return buf

    def _notify(self, series: str) -> None:
        if self._sink is not None:
            self._sink.on_series_updated(series, self.snapshot(series))

    def push(self, series: str, label: str, value: float) -> None:
        self._buffer(series).append(ChannelSample(label=label, value=float(value)))
        self._notify(series)

    def extend(self, series: str, samples: Iterable[ChannelSample]) -> None:
        for sample in samples:
            self.push(series, sample.label, sample.value)

    def snapshot(self, series: str) -> Tuple[ChannelSample, ...]:
        return tuple(self._series.get(series, ()))

    def latest(self, series: str) -> Optional[ChannelSample]:
        buf = self._series.get(series)
        if not buf:
            return None
        return buf[-1]

    def reset(self, series: str) -> None:
        self._buffer(series).clear()
        self._notify(series)

    def series_names(self) -> Tuple[str, ...]:
        return tuple(self._series)

    def __len__(self) -> int:
        return len(self._series)
