"""Unit tests for SQLiteDocumentStore against a temporary database."""

from __future__ import annotations

from pathlib import Path

import pytest
import pytest_asyncio

from docrag.models.document import MediaKind, ProcessingStatus
from docrag.providers.document_store.sqlite_document_store import SQLiteDocumentStore
from docrag.utils.errors import PersistenceError
from docrag.utils.vectors import serialize_vector


@pytest_asyncio.fixture
async def store(tmp_path: Path) -> SQLiteDocumentStore:
    s = SQLiteDocumentStore(db_path=tmp_path / "nested" / "documents.db")
    await s.initialize()
    return s


async def _document(store: SQLiteDocumentStore, conversation_id: int = 1) -> int:
    document = await store.create_document(
        conversation_id=conversation_id,
        file_name="report.txt",
        media_type="text/plain",
        byte_size=42,
        content="hello world",
    )
    return document.id


class TestDocuments:
    @pytest.mark.asyncio
    async def test_create_and_get(self, store: SQLiteDocumentStore) -> None:
        created = await store.create_document(
            conversation_id=3,
            file_name="report.txt",
            media_type="text/plain",
            byte_size=42,
            content="hello world",
            user_id=9,
        )

        loaded = await store.get_document(created.id)

        assert loaded is not None
        assert loaded.file_name == "report.txt"
        assert loaded.user_id == 9
        assert loaded.content == "hello world"
        assert loaded.processing_status is ProcessingStatus.PENDING
        assert loaded.metadata.media_type == "text/plain"

    @pytest.mark.asyncio
    async def test_missing_document(self, store: SQLiteDocumentStore) -> None:
        assert await store.get_document(404) is None
        assert await store.update_document_metadata(404, {"total_chunks": 1}) is None

    @pytest.mark.asyncio
    async def test_by_conversation(self, store: SQLiteDocumentStore) -> None:
        first = await _document(store, 1)
        await _document(store, 2)
        second = await _document(store, 1)

        docs = await store.get_documents_by_conversation(1)

        assert [d.id for d in docs] == [first, second]

    @pytest.mark.asyncio
    async def test_metadata_merge_keeps_other_fields(self, store: SQLiteDocumentStore) -> None:
        doc_id = await _document(store)
        await store.update_document_metadata(
            doc_id, {"processing_status": "processing", "total_chunks": 12}
        )

        updated = await store.update_document_metadata(
            doc_id, {"embedded_chunks": 4, "source": "upload"}
        )

        assert updated is not None
        assert updated.metadata.processing_status is ProcessingStatus.PROCESSING
        assert updated.metadata.total_chunks == 12
        assert updated.metadata.embedded_chunks == 4
        assert updated.metadata.extra == {"source": "upload"}

        reloaded = await store.get_document(doc_id)
        assert reloaded is not None
        assert reloaded.metadata == updated.metadata


class TestChunks:
    @pytest.mark.asyncio
    async def test_chunks_ordered_by_index(self, store: SQLiteDocumentStore) -> None:
        doc_id = await _document(store)
        await store.create_chunk(doc_id, 1, "second")
        await store.create_chunk(doc_id, 0, "first")

        chunks = await store.get_chunks_by_document(doc_id)

        assert [c.content for c in chunks] == ["first", "second"]
        assert all(c.embedding is None for c in chunks)

    @pytest.mark.asyncio
    async def test_embedding_roundtrip(self, store: SQLiteDocumentStore) -> None:
        doc_id = await _document(store)
        chunk = await store.create_chunk(doc_id, 0, "text")

        await store.update_chunk_embedding(chunk.id, serialize_vector([0.5, -0.25]))

        [loaded] = await store.get_chunks_by_document(doc_id)
        assert loaded.vector == [0.5, -0.25]

    @pytest.mark.asyncio
    async def test_update_missing_chunk_raises(self, store: SQLiteDocumentStore) -> None:
        with pytest.raises(PersistenceError):
            await store.update_chunk_embedding(999, "[1.0]")

    @pytest.mark.asyncio
    async def test_embedded_predicate(self, store: SQLiteDocumentStore) -> None:
        doc_id = await _document(store)
        chunks = [await store.create_chunk(doc_id, i, f"c{i}") for i in range(4)]
        await store.update_chunk_embedding(chunks[1].id, "")
        await store.update_chunk_embedding(chunks[2].id, "[]")
        await store.update_chunk_embedding(chunks[3].id, "[1.0, 0.0]")

        assert await store.count_embedded_chunks([doc_id]) == 1
        [embedded] = await store.get_embedded_chunks([doc_id])
        assert embedded.id == chunks[3].id

    @pytest.mark.asyncio
    async def test_empty_document_list(self, store: SQLiteDocumentStore) -> None:
        assert await store.count_embedded_chunks([]) == 0
        assert await store.get_embedded_chunks([]) == []

    @pytest.mark.asyncio
    async def test_sample_embedded_chunks(self, store: SQLiteDocumentStore) -> None:
        doc_id = await _document(store)
        other = await _document(store)
        for i in range(10):
            chunk = await store.create_chunk(doc_id, i, f"c{i}")
            await store.update_chunk_embedding(chunk.id, "[1.0]")
        foreign = await store.create_chunk(other, 0, "other")
        await store.update_chunk_embedding(foreign.id, "[1.0]")

        sample = await store.sample_embedded_chunks(doc_id, 4)

        assert len(sample) == 4
        assert len({c.id for c in sample}) == 4
        assert all(c.document_id == doc_id for c in sample)
        assert await store.sample_embedded_chunks(doc_id, 0) == []

    @pytest.mark.asyncio
    async def test_delete_chunks(self, store: SQLiteDocumentStore) -> None:
        doc_id = await _document(store)
        for i in range(3):
            await store.create_chunk(doc_id, i, "x")

        assert await store.delete_chunks_by_document(doc_id) == 3
        assert await store.get_chunks_by_document(doc_id) == []


class TestMedia:
    @pytest.mark.asyncio
    async def test_media_roundtrip(self, store: SQLiteDocumentStore) -> None:
        await store.create_media_item(
            1, MediaKind.IMAGE, "diagram.png", "Architecture diagram", embedding="[0.1]"
        )
        await store.create_media_item(2, MediaKind.AUDIO, "call.mp3", "Call")

        [item] = await store.get_media_by_conversation(1)

        assert item.kind is MediaKind.IMAGE
        assert item.description == "Architecture diagram"
        assert item.vector == [0.1]
