"""
Log Store

Bounded in-memory log buffers backing the console:

- history: the full-history viewer (mirrors the backend's persisted logs)
- live tail: the always-visible log pane
"""

import logging
from collections import deque
from typing import Iterable, List, Optional, Tuple

from dashboard.core.sinks import DashboardSink
from dashboard.models import LogEntry, LogLevel

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 1000
TAIL_LIMIT = 100
# How many of the fetched logs are shown in the tail after a reload.
TAIL_SEED_COUNT = 50

ALL_LEVELS = "all"


class LogStore:
    def __init__(
        self,
        history_limit: int = HISTORY_LIMIT,
        tail_limit: int = TAIL_LIMIT,
        sink: Optional[DashboardSink] = None,
    ):
        self.history_limit = history_limit
        self.tail_limit = tail_limit
        self._sink = sink
        self._history: deque[LogEntry] = deque(maxlen=history_limit)
        self._tail: deque[LogEntry] = deque(maxlen=tail_limit)

    def append(self, entry: LogEntry) -> None:
        """Record a backend log line in both buffers."""
        self._history.append(entry)
        self._tail.append(entry)
        if self._sink is not None:
            self._sink.on_log_appended(entry)

    def note(self, message: str, level: LogLevel | str = LogLevel.INFO) -> LogEntry:
        """
        Record a console-local event (connectivity, command outcome).

        Only the live tail gets it; the history mirrors the backend log store.
        """
        entry = LogEntry(level=level, message=message)
        self._tail.append(entry)
        if self._sink is not None:
            self._sink.on_log_appended(entry)
        return entry

    def query(self, text_filter: str = "", level_filter: str = ALL_LEVELS) -> List[LogEntry]:
        """History entries matching a level and a case-insensitive substring."""
        needle = (text_filter or "").lower()
        level = (level_filter or ALL_LEVELS).lower()
        return [
            e
            for e in self._history
            if (level == ALL_LEVELS or e.level.value == level)
            and (not needle or needle in e.message.lower())
        ]

    def replace_history(self, entries: Iterable[LogEntry]) -> None:
        """Swap the history for a backend fetch; the live tail is untouched."""
        self._history = deque(entries, maxlen=self.history_limit)
        if self._sink is not None:
            self._sink.on_log_history_replaced(self.history())

    def seed_tail(self, entries: Iterable[LogEntry], count: int = TAIL_SEED_COUNT) -> None:
        """Refill the live tail with the newest ``count`` entries after a reload."""
        newest = list(entries)[-count:] if count > 0 else []
        self._tail.clear()
        for entry in newest:
            self._tail.append(entry)
            if self._sink is not None:
                self._sink.on_log_appended(entry)

    def clear(self) -> None:
        self._history.clear()
        self._tail.clear()
        if self._sink is not None:
            self._sink.on_log_history_replaced(())

    def history(self) -> Tuple[LogEntry, ...]:
        return tuple(self._history)

    def tail(self) -> Tuple[LogEntry, ...]:
        return tuple(self._tail)
