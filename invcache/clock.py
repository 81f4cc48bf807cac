"""
Time sources for TTL comparisons.
"""
import time
from typing import Callable

Clock = Callable[[], float]

# Monotonic so that wall-clock adjustments never resurrect or expire entries
monotonic_clock: Clock = time.monotonic


class ManualClock:
    """Clock that only moves when told to. Used to drive TTLs in tests."""

    def __init__(self, start: float = 0.0):
        self._now = start

    def __call__(self) -> float:
        return self._now

    def advance(self, seconds: float) -> float:
        """Move time forward and return the new reading."""
        if seconds < 0:
            raise ValueError("Clock cannot move backwards")
        self._now += seconds
        return self._now
