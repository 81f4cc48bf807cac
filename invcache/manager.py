"""
Main cache orchestration: TTL entries, request coalescing, stale fallback.
"""
import functools
import logging
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional

from .clock import Clock, monotonic_clock
from .coalescer import RequestCoalescer
from .core import CacheEntry, CacheResult, CacheSource, RealTimeEntry
from .errors import FetchFailed, NoFallbackAvailable
from .keys import ParamValue, build_key
from .realtime import RealTimeStore
from .store import EntryStore

logger = logging.getLogger("cache.manager")

DEFAULT_TTL = 300.0
DEFAULT_REALTIME_MAX_AGE = 30.0
DEFAULT_FALLBACK_MAX_AGE = 300.0

# Live reads get their own coalescing slot so they never join an
# entry-store fetch of the same key (and vice versa).
_REALTIME_SLOT = "realtime|"

Fetcher = Callable[[], Awaitable[Any]]


def _positive(name: str, value: float) -> float:
    if value is None or value <= 0:
        raise ValueError(f"{name} must be positive, got {value!r}")
    return value


class CacheEngine:
    """
    Cache for one feature namespace with:
    - TTL entries, expired lazily on read
    - Request coalescing for concurrent duplicate fetches
    - Optional stale fallback when a refresh fails
    - A separate real-time store for live data

    All state lives on the instance; build one per namespace and inject it
    (see ``invcache.namespaces.get_cache`` for the shared registry).
    """

    def __init__(
        self,
        namespace: str,
        default_ttl: float = DEFAULT_TTL,
        clock: Clock = monotonic_clock,
        realtime_max_age: float = DEFAULT_REALTIME_MAX_AGE,
        fallback_max_age: float = DEFAULT_FALLBACK_MAX_AGE,
        enabled: bool = True,
    ):
        """
        Initialize the engine.

        Args:
            namespace: Key prefix for this feature area
            default_ttl: Entry lifetime in seconds when no ttl is given
            clock: Source of "now", injectable for tests
            realtime_max_age: Default freshness window for live reads
            fallback_max_age: Oldest real-time snapshot usable as a fallback
            enabled: When False, reads always go upstream (still coalesced)
        """
        if not namespace:
            raise ValueError("Namespace must be a non-empty string")
        self.namespace = namespace
        self.realtime_max_age = _positive("realtime_max_age", realtime_max_age)
        self.fallback_max_age = _positive("fallback_max_age", fallback_max_age)
        self.enabled = enabled
        self._clock = clock

        self._store = EntryStore(default_ttl=default_ttl, clock=clock)
        self._realtime = RealTimeStore(clock=clock)
        self._coalescer = RequestCoalescer()

        # Bumped on every invalidation; fetches registered under an older
        # generation return their value but do not store it.
        self._generation = 0

        self._stats = {
            "hits_fresh": 0,
            "hits_stale": 0,
            "misses": 0,
            "fetch_errors": 0,
        }

    def __repr__(self) -> str:
        return (
            f"CacheEngine(namespace={self.namespace!r}, "
            f"default_ttl={self.default_ttl}, entries={len(self._store)})"
        )

    @property
    def default_ttl(self) -> float:
        return self._store.default_ttl

    def key(self, operation: str, params: Optional[Mapping[str, ParamValue]] = None) -> str:
        """Build a key scoped to this engine's namespace."""
        return build_key(self.namespace, operation, params)

    # ------------------------------------------------------------------
    # Fetch path
    # ------------------------------------------------------------------

    async def get_or_fetch(
        self,
        cache_key: str,
        fetch_fn: Fetcher,
        ttl: Optional[float] = None,
        use_cache: bool = True,
        fallback_on_error: bool = False,
        cache_if: Optional[Callable[[Any], bool]] = None,
    ) -> CacheResult:
        """
        Get data from cache or fetch it.

        Args:
            cache_key: Key, usually from key()
            fetch_fn: Zero-argument coroutine function producing the value
            ttl: Entry lifetime for a fetched value (default: engine's)
            use_cache: False skips the read path but still coalesces and
                stores the fetched value
            fallback_on_error: Serve the last known value if the fetch fails
            cache_if: Predicate deciding whether a fetched value is stored

        Returns:
            CacheResult; ``result.stale`` is True only for fallbacks

        Raises:
            FetchFailed: The fetch failed and no fallback was requested
            NoFallbackAvailable: The fetch failed and nothing is cached

        Coalesced callers share the ttl and cache_if of whichever caller
        started the fetch.
        """
        ttl = _positive("ttl", self.default_ttl if ttl is None else ttl)

        if use_cache and self.enabled:
            now = self._clock()
            entry = self._store.peek(cache_key)
            if entry is not None and entry.is_fresh(now):
                age = entry.age(now)
                logger.debug(f"CACHE HIT (fresh): {cache_key} [age={age:.1f}s]")
                self._stats["hits_fresh"] += 1
                return CacheResult(entry.value, CacheSource.FRESH, age)
            if entry is None:
                logger.info(f"CACHE MISS: {cache_key}")
            else:
                logger.info(f"CACHE EXPIRED: {cache_key} [age={entry.age(now):.1f}s]")
        else:
            logger.info(f"CACHE BYPASS: {cache_key}")

        self._stats["misses"] += 1
        factory = functools.partial(
            self._fetch_and_store, cache_key, fetch_fn, ttl, cache_if, self._generation
        )
        try:
            data = await self._coalescer.run(cache_key, factory)
        except FetchFailed as failure:
            if not fallback_on_error:
                raise
            return self._fallback(cache_key, failure)
        return CacheResult(data, CacheSource.UPSTREAM)

    async def _fetch_and_store(
        self,
        cache_key: str,
        fetch_fn: Fetcher,
        ttl: float,
        cache_if: Optional[Callable[[Any], bool]],
        generation: int,
    ) -> Any:
        data = await self._call_fetcher(cache_key, fetch_fn)

        if generation != self._generation:
            logger.info(f"Invalidated during fetch, not storing: {cache_key}")
        elif cache_if is not None and not cache_if(data):
            logger.debug(f"Result rejected by cache_if, not storing: {cache_key}")
        else:
            self._store.set(cache_key, data, ttl)
        return data

    async def _call_fetcher(self, cache_key: str, fetch_fn: Fetcher) -> Any:
        try:
            return await fetch_fn()
        except Exception as e:
            self._stats["fetch_errors"] += 1
            logger.warning(f"Fetch failed for {cache_key}: {e}")
            raise FetchFailed(cache_key, e) from e

    def _fallback(self, cache_key: str, failure: FetchFailed) -> CacheResult:
        """Newest known value for key, live snapshot or expired entry."""
        now = self._clock()
        candidates = []

        snapshot: Optional[RealTimeEntry] = self._realtime.get_entry(cache_key)
        if snapshot is not None and snapshot.is_within(now, self.fallback_max_age):
            candidates.append((snapshot.age(now), snapshot.value))

        entry: Optional[CacheEntry] = self._store.peek(cache_key)
        if entry is not None:
            candidates.append((entry.age(now), entry.value))

        if not candidates:
            logger.warning(f"No fallback available for {cache_key}")
            raise NoFallbackAvailable(cache_key, failure.cause) from failure

        age, value = min(candidates, key=lambda c: c[0])
        self._stats["hits_stale"] += 1
        logger.warning(f"Serving stale value for {cache_key} [age={age:.1f}s]")
        return CacheResult(value, CacheSource.STALE, age, error=failure)

    async def get_or_fetch_realtime(
        self,
        cache_key: str,
        fetch_fn: Fetcher,
        max_age: Optional[float] = None,
        fallback_max_age: Optional[float] = None,
    ) -> CacheResult:
        """
        Read live data.

        Serves a snapshot younger than max_age, otherwise fetches and
        records a new snapshot. If the fetch fails, a snapshot younger than
        fallback_max_age is served as stale.

        Raises:
            FetchFailed: The fetch failed and no usable snapshot exists
        """
        max_age = _positive("max_age", self.realtime_max_age if max_age is None else max_age)
        fallback_max_age = _positive(
            "fallback_max_age",
            self.fallback_max_age if fallback_max_age is None else fallback_max_age,
        )

        if self.enabled:
            now = self._clock()
            snapshot = self._realtime.get_entry(cache_key)
            if snapshot is not None and snapshot.is_within(now, max_age):
                age = snapshot.age(now)
                logger.debug(f"REALTIME HIT: {cache_key} [age={age:.1f}s]")
                self._stats["hits_fresh"] += 1
                return CacheResult(snapshot.value, CacheSource.FRESH, age)

        self._stats["misses"] += 1
        factory = functools.partial(self._fetch_realtime, cache_key, fetch_fn, self._generation)
        try:
            data = await self._coalescer.run(_REALTIME_SLOT + cache_key, factory)
        except FetchFailed as failure:
            now = self._clock()
            snapshot = self._realtime.get_entry(cache_key)
            if snapshot is None or not snapshot.is_within(now, fallback_max_age):
                raise
            age = snapshot.age(now)
            self._stats["hits_stale"] += 1
            logger.warning(f"Serving stale real-time value for {cache_key} [age={age:.1f}s]")
            return CacheResult(snapshot.value, CacheSource.STALE, age, error=failure)
        return CacheResult(data, CacheSource.UPSTREAM)

    async def _fetch_realtime(self, cache_key: str, fetch_fn: Fetcher, generation: int) -> Any:
        data = await self._call_fetcher(cache_key, fetch_fn)
        if generation == self._generation:
            self._realtime.set(cache_key, data)
        return data

    # ------------------------------------------------------------------
    # Direct access
    # ------------------------------------------------------------------

    def get(self, cache_key: str) -> Any:
        """Fresh value or MISS; a stale entry is evicted."""
        return self._store.get(cache_key)

    def set(self, cache_key: str, value: Any, ttl: Optional[float] = None) -> None:
        self._store.set(cache_key, value, ttl)

    def delete(self, cache_key: str) -> bool:
        """Drop one key. In-flight fetches will not write back afterwards."""
        self._generation += 1
        removed = self._store.delete(cache_key)
        if removed:
            logger.info(f"Invalidated cache: {cache_key}")
        return removed

    def clear(self, pattern: Optional[str] = None) -> int:
        """
        Invalidate entries whose key contains pattern.

        Without a pattern (or with an empty one) everything goes:
        entries, in-flight registrations and real-time snapshots.

        Returns:
            Number of entries removed from the entry store
        """
        self._generation += 1
        if not pattern:
            count = self._store.clear()
            self._coalescer.clear()
            self._realtime.clear()
            logger.info(f"Cleared {count} cache entries in '{self.namespace}'")
            return count

        count = self._store.clear(pattern)
        if count:
            logger.info(f"Invalidated {count} entries matching '{pattern}'")
        return count

    def clear_many(self, *patterns: str) -> int:
        """Invalidate entries whose key contains any of the patterns."""
        self._generation += 1
        count = self._store.clear_many(patterns)
        if count:
            logger.info(f"Invalidated {count} entries matching {list(patterns)}")
        return count

    def get_realtime(self, cache_key: str, max_age: Optional[float] = None) -> Any:
        """Live snapshot younger than max_age (default: engine's), or MISS."""
        return self._realtime.get(
            cache_key, self.realtime_max_age if max_age is None else max_age
        )

    def set_realtime(self, cache_key: str, value: Any) -> None:
        self._realtime.set(cache_key, value)

    def clear_realtime(self) -> int:
        return self._realtime.clear()

    def get_stats(self) -> Dict[str, Any]:
        """
        Counters since construction.

        The hit rate counts fresh hits against fresh hits plus upstream
        fetches; stale fallbacks come after a fetch and are not requests
        of their own.
        """
        counts = dict(self._stats)
        lookups = counts["hits_fresh"] + counts["misses"]
        fresh_rate = counts["hits_fresh"] / lookups * 100 if lookups else 0.0
        return {
            "namespace": self.namespace,
            "entries": len(self._store),
            "realtime_entries": len(self._realtime),
            **counts,
            "fresh_hit_rate_percent": round(fresh_rate, 1),
            "coalescer": self._coalescer.get_stats(),
        }
