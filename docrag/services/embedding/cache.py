"""Embedding cache keyed by normalized text.

Sits on top of an :class:`ICacheProvider` so the backing store (bounded
in-memory TTL cache by default) is chosen at wiring time.  Values are the
serialized vector text, the same representation the document store uses.
"""

from __future__ import annotations

from docrag.interfaces.cache_provider import ICacheProvider
from docrag.utils.vectors import deserialize_vector, serialize_vector


class EmbeddingCache:
    """Memoizes text → embedding.

    The key is the text truncated to the provider input limit and then
    whitespace-trimmed, so two inputs that differ only past the limit or in
    surrounding whitespace share one entry.  Concurrent writers race
    harmlessly: last write wins.
    """

    def __init__(self, cache: ICacheProvider, max_input_chars: int = 8191) -> None:
        self._cache = cache
        self._max_input_chars = max_input_chars

    def key_for(self, text: str) -> str:
        return text[: self._max_input_chars].strip()

    async def get(self, text: str) -> list[float] | None:
        """Return the cached vector for *text*, or ``None`` on a miss."""
        key = self.key_for(text)
        if not key:
            return None
        stored = await self._cache.get(key)
        vector = deserialize_vector(stored)
        return vector or None

    async def set(self, text: str, vector: list[float]) -> None:
        """Cache *vector* for *text*.  Empty vectors are never cached."""
        key = self.key_for(text)
        if not key or not vector:
            return
        await self._cache.set(key, serialize_vector(vector))

    def size(self) -> int:
        return self._cache.size()
