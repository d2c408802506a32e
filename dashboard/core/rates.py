"""
Rate Calculator

Turns cumulative counters (total bytes read since boot, ...) into per-second
rates by differencing consecutive observations.
"""

from dataclasses import dataclass
from typing import Dict, Optional


@dataclass
class RateState:
    """Previous observation of one counter."""

    value: float
    time_ms: float


class RateCalculator:
    def __init__(self) -> None:
        self._state: Dict[str, RateState] = {}

    def rate(self, key: str, cumulative_value: float, now_ms: float) -> Optional[float]:
        """
        Per-second rate of ``key`` since its previous observation.

        Returns None on the first observation after construction or reset;
        a first delta against zero would be the counter's whole lifetime.
        Counter resets and clock skew clamp to 0.0.
        """
        prev = self._state.get(key)
        self._state[key] = RateState(value=float(cumulative_value), time_ms=float(now_ms))
        if prev is None:
            return None

        elapsed_seconds = (now_ms - prev.time_ms) / 1000
        if elapsed_seconds <= 0:
            return 0.0
        return max(0.0, (cumulative_value - prev.value) / elapsed_seconds)

    def reset(self, key: str) -> None:
        self._state.pop(key, None)

    def reset_all(self) -> None:
        self._state.clear()

    def has_state(self, key: str) -> bool:
        return key in self._state
