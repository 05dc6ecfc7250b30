"""Cache providers.

MemoryCacheProvider is a bounded, TTL-evicting in-process cache.  It is not
shared across processes; for multi-worker deployments swap in a Redis
adapter implementing ICacheProvider without changing any service code.
"""

from docrag.providers.cache.memory_cache import MemoryCacheProvider

__all__ = ["MemoryCacheProvider"]
