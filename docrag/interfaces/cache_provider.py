"""Abstract base class for cache service providers.

Defines the contract for key-value caching.  The embedding cache is built on
top of it, so the in-memory backend can be swapped for a shared one (Redis)
without touching the embedder.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class ICacheProvider(ABC):
    """Contract for key-value cache services.

    All operations are async to allow for network-backed stores without
    blocking the event loop.
    """

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        """Return the value stored under *key*, or ``None`` if absent or expired."""

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        """Store *value* under *key*.  Last write wins."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove *key*; no-op if absent."""

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """Return ``True`` if *key* is present and not expired."""

    @abstractmethod
    def size(self) -> int:
        """Return the number of live entries."""
