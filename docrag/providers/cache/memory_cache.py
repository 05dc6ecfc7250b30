"""In-memory cache provider using cachetools.TTLCache.

Bounded by entry count and age, so a long-running worker cannot grow the
embedding cache without limit.
"""

from __future__ import annotations

import threading
from typing import Any

import structlog
from cachetools import TTLCache

from docrag.interfaces.cache_provider import ICacheProvider

logger = structlog.get_logger(logger_name=__name__)


class MemoryCacheProvider(ICacheProvider):
    """In-memory TTL cache backed by ``cachetools.TTLCache``.

    Parameters
    ----------
    max_size:
        Maximum number of entries before the least-recently-used entry
        is evicted.
    ttl:
        Time-to-live in seconds for cache entries.
    """

    def __init__(self, max_size: int = 10_000, ttl: int = 86_400) -> None:
        self._default_ttl = ttl
        self._cache: TTLCache[str, Any] = TTLCache(maxsize=max_size, ttl=ttl)
        # Local models encode in worker threads; TTLCache itself is not thread-safe.
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # ICacheProvider implementation
    # ------------------------------------------------------------------

    async def get(self, key: str) -> Any | None:
        """Retrieve the cached value for *key*, or ``None`` if missing/expired."""
        with self._lock:
            value = self._cache.get(key)
        logger.debug("cache_hit" if value is not None else "cache_miss", key_length=len(key))
        return value

    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        """Store *value* under *key*.

        The underlying ``TTLCache`` applies the uniform TTL set at
        construction time; *ttl* is accepted for interface compatibility.
        """
        with self._lock:
            self._cache[key] = value

    async def delete(self, key: str) -> None:
        """Remove *key* from the cache (no-op if absent)."""
        with self._lock:
            self._cache.pop(key, None)

    async def exists(self, key: str) -> bool:
        with self._lock:
            return key in self._cache

    def size(self) -> int:
        with self._lock:
            return len(self._cache)

    def clear(self) -> None:
        """Drop every entry."""
        with self._lock:
            self._cache.clear()
