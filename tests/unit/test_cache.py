"""Unit tests for the in-memory cache provider and the embedding cache."""

from __future__ import annotations

import pytest

from docrag.providers.cache.memory_cache import MemoryCacheProvider
from docrag.services.embedding.cache import EmbeddingCache


class TestMemoryCacheProvider:
    @pytest.mark.asyncio
    async def test_set_get_delete(self) -> None:
        cache = MemoryCacheProvider(max_size=10, ttl=60)

        await cache.set("k", "v")
        assert await cache.get("k") == "v"
        assert await cache.exists("k") is True

        await cache.delete("k")
        assert await cache.get("k") is None
        assert await cache.exists("k") is False

    @pytest.mark.asyncio
    async def test_missing_key_returns_none(self) -> None:
        assert await MemoryCacheProvider().get("nope") is None

    @pytest.mark.asyncio
    async def test_bounded_by_max_size(self) -> None:
        cache = MemoryCacheProvider(max_size=3, ttl=60)
        for i in range(10):
            await cache.set(f"k{i}", i)

        assert cache.size() == 3
        assert await cache.get("k9") == 9
        assert await cache.get("k0") is None

    @pytest.mark.asyncio
    async def test_clear(self) -> None:
        cache = MemoryCacheProvider()
        await cache.set("a", 1)
        cache.clear()
        assert cache.size() == 0


class TestEmbeddingCache:
    @pytest.mark.asyncio
    async def test_round_trip(self, embedding_cache: EmbeddingCache) -> None:
        await embedding_cache.set("hello world", [0.1, 0.2])
        assert await embedding_cache.get("hello world") == [0.1, 0.2]
        assert embedding_cache.size() == 1

    @pytest.mark.asyncio
    async def test_key_ignores_surrounding_whitespace(
        self, embedding_cache: EmbeddingCache
    ) -> None:
        await embedding_cache.set("  padded text \n", [1.0])
        assert await embedding_cache.get("padded text") == [1.0]

    @pytest.mark.asyncio
    async def test_key_ignores_text_past_input_limit(self) -> None:
        cache = EmbeddingCache(MemoryCacheProvider(), max_input_chars=10)
        await cache.set("0123456789-first-tail", [0.5])

        assert await cache.get("0123456789-other-tail") == [0.5]
        assert cache.key_for("0123456789-xyz") == "0123456789"

    @pytest.mark.asyncio
    async def test_empty_vectors_and_blank_keys_not_cached(
        self, embedding_cache: EmbeddingCache
    ) -> None:
        await embedding_cache.set("text", [])
        await embedding_cache.set("   ", [1.0])

        assert await embedding_cache.get("text") is None
        assert await embedding_cache.get("   ") is None
        assert embedding_cache.size() == 0
