"""
Short-horizon store for live data, judged against a max age chosen per read.
"""
import logging
import threading
from typing import Any, Dict, Optional

from .clock import Clock, monotonic_clock
from .core import MISS, RealTimeEntry

logger = logging.getLogger("cache.realtime")


class RealTimeStore:
    """
    Live snapshots keyed by cache key.

    A read that finds a snapshot too old for its window leaves it in place,
    since a later read with a looser window (e.g. an outage fallback) may
    still accept it.
    """

    def __init__(self, clock: Clock = monotonic_clock):
        self._entries: Dict[str, RealTimeEntry] = {}
        self._lock = threading.RLock()
        self._clock = clock

    def set(self, key: str, value: Any) -> RealTimeEntry:
        entry = RealTimeEntry(value=value, inserted_at=self._clock())
        with self._lock:
            self._entries[key] = entry
        return entry

    def get(self, key: str, max_age: float) -> Any:
        """Return the value if it is younger than max_age seconds, else MISS."""
        if max_age is None or max_age <= 0:
            raise ValueError(f"max_age must be positive, got {max_age!r}")
        with self._lock:
            entry = self._entries.get(key)
        if entry is None or not entry.is_within(self._clock(), max_age):
            return MISS
        return entry.value

    def get_entry(self, key: str) -> Optional[RealTimeEntry]:
        """Raw snapshot or None."""
        with self._lock:
            return self._entries.get(key)

    def clear(self) -> int:
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
        if count:
            logger.info(f"Cleared {count} real-time entries")
        return count

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
