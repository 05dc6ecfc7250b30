"""Unit tests for ChromaDBCollection using an in-memory ChromaDB client."""

from __future__ import annotations

import uuid

import chromadb
import pytest

from docrag.providers.vector_store.chromadb_collection import ChromaDBCollection


@pytest.fixture
def collection() -> ChromaDBCollection:
    # Ephemeral clients share state within a process; isolate by name.
    return ChromaDBCollection(
        collection_name=f"chunks_{uuid.uuid4().hex[:8]}",
        client=chromadb.EphemeralClient(),
    )


async def _seed(collection: ChromaDBCollection) -> None:
    await collection.upsert(1, [1.0, 0.0, 0.0], "east", {"document_id": 10, "chunk_index": 0})
    await collection.upsert(
        2, [0.0, 1.0, 0.0], "north", {"document_id": 10, "chunk_index": 1, "user_id": 5}
    )
    await collection.upsert(
        3, [0.9, 0.1, 0.0], "mostly east", {"document_id": 20, "chunk_index": 0, "user_id": 6}
    )


class TestChromaDBCollection:
    def test_declares_native_capability(self, collection: ChromaDBCollection) -> None:
        assert collection.supports_vector_search()
        assert collection.name.startswith("chunks_")
        assert collection.get_provider_name() == "chromadb"

    @pytest.mark.asyncio
    async def test_query_ranks_by_similarity(self, collection: ChromaDBCollection) -> None:
        await _seed(collection)

        results = await collection.vector_query(
            "vector_index", [1.0, 0.0, 0.0], {"document_ids": [10, 20]}, candidates=10, limit=2
        )

        assert [sc.chunk.id for sc in results] == [1, 3]
        assert results[0].similarity == pytest.approx(1.0, abs=1e-3)
        assert results[0].chunk.content == "east"
        assert results[0].chunk.embedding is None

    @pytest.mark.asyncio
    async def test_document_filter(self, collection: ChromaDBCollection) -> None:
        await _seed(collection)

        results = await collection.vector_query(
            "vector_index", [1.0, 0.0, 0.0], {"document_ids": [10]}, candidates=10, limit=5
        )

        assert {sc.chunk.document_id for sc in results} == {10}

    @pytest.mark.asyncio
    async def test_user_filter_keeps_unowned_chunks(self, collection: ChromaDBCollection) -> None:
        await _seed(collection)

        results = await collection.vector_query(
            "vector_index",
            [1.0, 0.0, 0.0],
            {"document_ids": [10, 20], "user_id": 5},
            candidates=10,
            limit=5,
        )

        assert {sc.chunk.id for sc in results} == {1, 2}

    @pytest.mark.asyncio
    async def test_empty_collection(self, collection: ChromaDBCollection) -> None:
        assert await collection.vector_query("vector_index", [1.0], {}, 5, 5) == []

    @pytest.mark.asyncio
    async def test_upsert_replaces(self, collection: ChromaDBCollection) -> None:
        await collection.upsert(1, [1.0, 0.0], "old", {"document_id": 1})
        await collection.upsert(1, [0.0, 1.0], "new", {"document_id": 1})

        [hit] = await collection.vector_query("vector_index", [0.0, 1.0], {}, 5, 5)

        assert hit.chunk.content == "new"

    @pytest.mark.asyncio
    async def test_delete_by_document(self, collection: ChromaDBCollection) -> None:
        await _seed(collection)

        assert await collection.delete_by_document(10) == 2
        assert await collection.delete_by_document(10) == 0

        results = await collection.vector_query("vector_index", [1.0, 0.0, 0.0], {}, 10, 10)
        assert [sc.chunk.id for sc in results] == [3]


class TestTranslateFilter:
    def test_empty(self) -> None:
        assert ChromaDBCollection._translate_filter({}) is None

    def test_single_condition(self) -> None:
        assert ChromaDBCollection._translate_filter({"document_ids": [1, 2]}) == {
            "document_id": {"$in": [1, 2]}
        }

    def test_combined(self) -> None:
        where = ChromaDBCollection._translate_filter({"document_ids": [1], "user_id": 4})
        assert where == {
            "$and": [
                {"document_id": {"$in": [1]}},
                {"user_id": {"$in": [4, -1]}},
            ]
        }
