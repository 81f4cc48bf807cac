"""
Keyed fetch cache with request coalescing, TTL expiry, pattern invalidation
and stale fallback.
"""
from .clock import Clock, ManualClock, monotonic_clock
from .core import MISS, CacheEntry, CacheResult, CacheSource, RealTimeEntry
from .errors import CacheError, FetchFailed, InvalidKeyInput, NoFallbackAvailable
from .keys import build_key
from .store import EntryStore
from .realtime import RealTimeStore
from .coalescer import RequestCoalescer
from .manager import CacheEngine
from .namespaces import (
    NAMESPACE_TTL,
    get_cache,
    get_ttl_for_namespace,
    invalidate_everywhere,
    list_namespaces,
    reset_caches,
)

__all__ = [
    # Core types
    "MISS",
    "CacheEntry",
    "CacheResult",
    "CacheSource",
    "RealTimeEntry",
    "Clock",
    "ManualClock",
    "monotonic_clock",
    # Errors
    "CacheError",
    "FetchFailed",
    "InvalidKeyInput",
    "NoFallbackAvailable",
    # Building blocks
    "build_key",
    "EntryStore",
    "RealTimeStore",
    "RequestCoalescer",
    # Engine
    "CacheEngine",
    # Namespaces
    "NAMESPACE_TTL",
    "get_cache",
    "get_ttl_for_namespace",
    "invalidate_everywhere",
    "list_namespaces",
    "reset_caches",
]
