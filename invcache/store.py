"""
TTL entry store with lazy expiry.

There is no background sweeper: expired entries are only removed when a
read finds them, or by an explicit delete/clear.
"""
import logging
import threading
from typing import Any, Dict, Iterable, List, Optional

from .clock import Clock, monotonic_clock
from .core import MISS, CacheEntry

logger = logging.getLogger("cache.store")


def _check_ttl(ttl: float) -> None:
    if ttl is None or ttl <= 0:
        raise ValueError(f"TTL must be positive, got {ttl!r}")


class EntryStore:
    """
    Mapping from cache key to CacheEntry.

    Entries are frozen and swapped whole under the lock, so a reader never
    observes a half-written entry.
    """

    def __init__(self, default_ttl: float = 300.0, clock: Clock = monotonic_clock):
        """
        Args:
            default_ttl: Lifetime in seconds for entries set without a TTL
            clock: Source of "now"
        """
        _check_ttl(default_ttl)
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.RLock()
        self._clock = clock
        self.default_ttl = default_ttl

    def get(self, key: str) -> Any:
        """
        Return the fresh value for key, or MISS.

        A stale entry is removed as a side effect.
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return MISS
            if entry.is_fresh(self._clock()):
                return entry.value
            del self._entries[key]
        logger.debug(f"Evicted stale entry: {key}")
        return MISS

    def peek(self, key: str) -> Optional[CacheEntry]:
        """Return the raw entry regardless of freshness, without evicting it."""
        with self._lock:
            return self._entries.get(key)

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> CacheEntry:
        """Insert or replace an entry stamped with the current time."""
        ttl = self.default_ttl if ttl is None else ttl
        _check_ttl(ttl)
        entry = CacheEntry(value=value, inserted_at=self._clock(), ttl=ttl)
        with self._lock:
            self._entries[key] = entry
        return entry

    def delete(self, key: str) -> bool:
        """
        Remove a single entry.

        Returns:
            True if an entry was removed
        """
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self, pattern: Optional[str] = None) -> int:
        """
        Remove every entry whose key contains pattern.

        A missing or empty pattern removes all entries.

        Returns:
            Number of entries removed
        """
        if not pattern:
            with self._lock:
                count = len(self._entries)
                self._entries.clear()
            return count
        return self.clear_many([pattern])

    def clear_many(self, patterns: Iterable[str]) -> int:
        """Remove every entry whose key contains any of the patterns."""
        patterns = list(patterns)
        with self._lock:
            to_delete = [k for k in self._entries if any(p in k for p in patterns)]
            for key in to_delete:
                del self._entries[key]
        return len(to_delete)

    def keys(self) -> List[str]:
        """Snapshot of stored keys, fresh or not."""
        with self._lock:
            return list(self._entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries
