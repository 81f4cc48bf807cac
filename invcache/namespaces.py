"""
Per-namespace TTL configuration and the shared engine registry.
"""
import logging
import threading
from typing import Dict, List, Optional

from config.settings import Settings, settings as default_settings

from .clock import Clock, monotonic_clock
from .manager import CacheEngine

logger = logging.getLogger("cache.namespaces")


# Default TTL by namespace (in seconds)
NAMESPACE_TTL: Dict[str, float] = {
    "products": 300,      # 5 minutes
    "stock": 60,          # 1 minute, changes with every movement
    "search": 30,         # 30 seconds
    "categories": 600,    # 10 minutes
    "inventory": 120,     # 2 minutes
    "users": 600,         # 10 minutes
    "dashboard": 120,     # 2 minutes, live widgets use the real-time store
    "settings": 1800,     # 30 minutes
    "reports": 300,       # 5 minutes
    "qr": 300,            # 5 minutes
}

_engines: Dict[str, CacheEngine] = {}
_lock = threading.Lock()


def get_ttl_for_namespace(namespace: str, config: Optional[Settings] = None) -> float:
    """
    Resolve the default TTL for a namespace.

    Order: settings override, NAMESPACE_TTL, settings default.
    """
    config = config or default_settings
    if namespace in config.namespace_ttls:
        return float(config.namespace_ttls[namespace])
    if namespace in NAMESPACE_TTL:
        return float(NAMESPACE_TTL[namespace])
    return float(config.default_ttl_seconds)


def get_cache(
    namespace: str,
    config: Optional[Settings] = None,
    clock: Clock = monotonic_clock,
) -> CacheEngine:
    """
    Get or create the shared engine for a namespace.

    config and clock only apply when the engine is first created.
    """
    with _lock:
        engine = _engines.get(namespace)
        if engine is None:
            config = config or default_settings
            engine = CacheEngine(
                namespace=namespace,
                default_ttl=get_ttl_for_namespace(namespace, config),
                clock=clock,
                realtime_max_age=config.realtime_max_age_seconds,
                fallback_max_age=config.fallback_max_age_seconds,
                enabled=config.cache_enabled,
            )
            _engines[namespace] = engine
            logger.debug(f"Created cache for '{namespace}' [ttl={engine.default_ttl}s]")
        return engine


def list_namespaces() -> List[str]:
    """List namespaces with a live engine."""
    with _lock:
        return sorted(_engines)


def invalidate_everywhere(pattern: str) -> int:
    """
    Invalidate matching entries in every registered engine.

    Returns:
        Total number of entries removed
    """
    with _lock:
        engines = list(_engines.values())
    total = sum(engine.clear(pattern) for engine in engines)
    if total:
        logger.info(f"Invalidated {total} entries matching '{pattern}' across {len(engines)} caches")
    return total


def reset_caches() -> None:
    """Clear and forget every engine."""
    with _lock:
        engines = list(_engines.values())
        _engines.clear()
    for engine in engines:
        engine.clear()
