"""
Core cache data structures.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class CacheSource(Enum):
    """Where a returned value came from."""
    FRESH = "fresh"        # Entry store, within TTL
    UPSTREAM = "upstream"  # Fetched during this call
    STALE = "stale"        # Fetch failed, served last known value


class _Miss:
    """Sentinel for a cache miss. ``None`` is a legitimate cached value."""

    _instance: Optional["_Miss"] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "MISS"


MISS = _Miss()


@dataclass(frozen=True)
class CacheEntry:
    """
    A cached value with its TTL.

    Entries are immutable: a refresh replaces the whole entry.
    """
    value: Any
    inserted_at: float
    ttl: float

    def age(self, now: float) -> float:
        """Seconds since insertion."""
        return now - self.inserted_at

    def is_fresh(self, now: float) -> bool:
        """Check if the entry is within its TTL."""
        return self.age(now) < self.ttl


@dataclass(frozen=True)
class RealTimeEntry:
    """
    A live-data snapshot.

    Carries no TTL: each reader brings its own max age, so one snapshot can
    satisfy a strict interactive read and a loose fallback read.
    """
    value: Any
    inserted_at: float

    def age(self, now: float) -> float:
        """Seconds since insertion."""
        return now - self.inserted_at

    def is_within(self, now: float, max_age: float) -> bool:
        return self.age(now) < max_age


@dataclass(frozen=True)
class CacheResult:
    """
    Outcome of a facade fetch, so callers can tell fresh data from stale.
    """
    value: Any
    source: CacheSource
    age_seconds: float = 0.0
    error: Optional[BaseException] = None  # Set on stale fallbacks

    @property
    def stale(self) -> bool:
        return self.source is CacheSource.STALE

    def to_dict(self) -> dict:
        """Metadata for logging or API responses (value omitted)."""
        result = {
            "cacheSource": self.source.value,
            "stale": self.stale,
            "age": round(self.age_seconds, 1),
        }
        if self.error is not None:
            result["error"] = str(self.error)
        return result
