"""
Cache error taxonomy.
"""
from typing import Optional


class CacheError(Exception):
    """Base class for every error raised by the cache engine."""


class InvalidKeyInput(CacheError, ValueError):
    """Raised when key parameters cannot be serialized deterministically."""


class FetchFailed(CacheError):
    """
    The injected fetcher raised.

    One instance is shared by every caller coalesced onto the same fetch.
    """

    def __init__(self, key: str, cause: Optional[BaseException] = None):
        self.key = key
        self.cause = cause
        detail = f": {cause!r}" if cause is not None else ""
        super().__init__(f"Fetch failed for {key}{detail}")


class NoFallbackAvailable(FetchFailed):
    """Fallback was requested but nothing is cached for the key."""

    def __init__(self, key: str, cause: Optional[BaseException] = None):
        super().__init__(key, cause)
        self.args = (f"Fetch failed for {key} and no cached value is available",)
