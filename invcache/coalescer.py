"""
Request coalescing to prevent duplicate upstream fetches.

When multiple concurrent callers ask for the same key, only one fetch
runs and every caller shares its outcome.
"""
import asyncio
import functools
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict

logger = logging.getLogger("cache.coalescer")


@dataclass
class InFlightRequest:
    """Tracks an in-progress fetch."""
    key: str
    future: "asyncio.Future[Any]"
    started_at: float = field(default_factory=time.monotonic)
    waiter_count: int = 0
    # Holders of the raw future from get_or_create; never released
    external_holders: int = 0


class RequestCoalescer:
    """
    Ensures concurrent requests for the same cache key share one fetch.

    Pattern:
    - First request for a key schedules the fetch and registers it
      before yielding to the event loop
    - Subsequent requests for the same key await the registered future
    - When the fetch settles (value, error or cancellation) the key is
      unregistered, so the next request starts a new fetch

    Usage:
        coalescer = RequestCoalescer()
        result = await coalescer.run(
            "products:list",
            lambda: client.list_products(),
        )
    """

    def __init__(self):
        self._in_flight: Dict[str, InFlightRequest] = {}
        self._started = 0
        self._coalesced = 0

    def get_or_create(
        self,
        cache_key: str,
        factory: Callable[[], Awaitable[Any]],
    ) -> "asyncio.Future[Any]":
        """
        Return the in-flight future for key, or start one with factory.

        Must be called from a running event loop. A fetch handed out here
        is never abandoned when run() callers cancel; cancelling the
        returned future is the holder's own decision.
        """
        in_flight = self._register(cache_key, factory)
        in_flight.external_holders += 1
        return in_flight.future

    def _register(
        self,
        cache_key: str,
        factory: Callable[[], Awaitable[Any]],
    ) -> InFlightRequest:
        in_flight = self._in_flight.get(cache_key)
        if in_flight is not None and not in_flight.future.done():
            self._coalesced += 1
            logger.debug(
                f"Coalescing request for {cache_key} "
                f"(waiters: {in_flight.waiter_count + 1})"
            )
            return in_flight

        future = asyncio.ensure_future(factory())
        in_flight = InFlightRequest(key=cache_key, future=future)
        self._in_flight[cache_key] = in_flight
        future.add_done_callback(functools.partial(self._on_settled, in_flight))
        self._started += 1
        logger.debug(f"Initiating fetch for {cache_key}")
        return in_flight

    async def run(
        self,
        cache_key: str,
        factory: Callable[[], Awaitable[Any]],
    ) -> Any:
        """
        Either join an existing in-flight fetch or initiate a new one.

        A cancelled caller leaves the fetch running for the others; the
        fetch itself is cancelled only once every waiter has gone.

        Raises:
            Exception: Whatever the shared fetch raised, same instance for
                every caller
        """
        in_flight = self._register(cache_key, factory)
        in_flight.waiter_count += 1
        cancelled = False
        try:
            return await asyncio.shield(in_flight.future)
        except asyncio.CancelledError:
            cancelled = True
            raise
        finally:
            in_flight.waiter_count -= 1
            if (
                cancelled
                and in_flight.waiter_count <= 0
                and not in_flight.external_holders
                and not in_flight.future.done()
            ):
                self._abandon(in_flight)

    def _abandon(self, in_flight: InFlightRequest) -> None:
        if self._in_flight.get(in_flight.key) is in_flight:
            del self._in_flight[in_flight.key]
        in_flight.future.cancel()
        logger.info(f"All callers cancelled, abandoning fetch for {in_flight.key}")

    def _on_settled(self, in_flight: InFlightRequest, future: "asyncio.Future[Any]") -> None:
        if self._in_flight.get(in_flight.key) is in_flight:
            del self._in_flight[in_flight.key]

        elapsed = time.monotonic() - in_flight.started_at
        if future.cancelled():
            logger.debug(f"Fetch cancelled for {in_flight.key} after {elapsed:.3f}s")
            return
        # Marks the exception retrieved even if no caller is left to await it
        error = future.exception()
        if error is not None:
            logger.debug(f"Fetch for {in_flight.key} failed after {elapsed:.3f}s: {error}")
        else:
            logger.debug(f"Fetch for {in_flight.key} settled after {elapsed:.3f}s")

    def is_pending(self, cache_key: str) -> bool:
        in_flight = self._in_flight.get(cache_key)
        return in_flight is not None and not in_flight.future.done()

    def clear(self) -> int:
        """
        Forget every in-flight fetch.

        Callers already awaiting still receive their result; new callers
        start fresh fetches.
        """
        count = len(self._in_flight)
        self._in_flight.clear()
        if count:
            logger.info(f"Dropped {count} in-flight requests")
        return count

    @property
    def active_requests(self) -> int:
        """Number of currently in-flight requests."""
        return len(self._in_flight)

    def get_stats(self) -> Dict[str, Any]:
        """Get coalescer statistics."""
        return {
            "active_requests": len(self._in_flight),
            "active_keys": list(self._in_flight.keys()),
            "started": self._started,
            "coalesced": self._coalesced,
        }
