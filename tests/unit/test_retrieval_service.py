"""Unit tests for RetrievalService — cost avoidance, degradation and media matching."""

from __future__ import annotations

import asyncio

import pytest

from docrag.config.settings import Settings
from docrag.models.document import MediaKind
from docrag.services.embedding.cache import EmbeddingCache
from docrag.services.embedding.embedder import Embedder
from docrag.services.retrieval.context_assembler import ContextAssembler
from docrag.services.retrieval.retrieval_service import RetrievalService
from docrag.services.retrieval.vector_search import VectorStoreAdapter
from docrag.utils.vectors import serialize_vector
from tests.conftest import (
    FailingEmbeddingProvider,
    InMemoryDocumentStore,
    MockEmbeddingProvider,
    _hash_to_vector,
)


class SlowEmbeddingProvider(MockEmbeddingProvider):
    async def embed_single(self, text: str) -> list[float]:
        await asyncio.sleep(5)
        return await super().embed_single(text)


def _service(
    store: InMemoryDocumentStore,
    provider: MockEmbeddingProvider,
    cache: EmbeddingCache,
    settings: Settings,
) -> RetrievalService:
    embedder = Embedder([provider], cache)
    return RetrievalService(
        document_store=store,
        embedder=embedder,
        vector_store=VectorStoreAdapter(store, None, settings),
        assembler=ContextAssembler(max_chars=settings.context_max_chars),
        settings=settings,
    )


async def _add_document(
    store: InMemoryDocumentStore,
    paragraphs: list[str],
    conversation_id: int = 1,
    user_id: int | None = None,
    file_name: str = "notes.txt",
) -> int:
    document = await store.create_document(
        conversation_id=conversation_id,
        file_name=file_name,
        media_type="text/plain",
        byte_size=0,
        content="\n\n".join(paragraphs),
        user_id=user_id,
    )
    for index, text in enumerate(paragraphs):
        chunk = await store.create_chunk(document.id, index, text)
        await store.update_chunk_embedding(chunk.id, serialize_vector(_hash_to_vector(text)))
    return document.id


class TestCostAvoidance:
    @pytest.mark.asyncio
    async def test_empty_conversation_skips_embedding(
        self,
        memory_store: InMemoryDocumentStore,
        mock_embedding_provider: MockEmbeddingProvider,
        embedding_cache: EmbeddingCache,
        settings: Settings,
    ) -> None:
        service = _service(memory_store, mock_embedding_provider, embedding_cache, settings)

        context = await service.find_relevant_context("anything at all", conversation_id=1)

        assert context.is_empty
        assert mock_embedding_provider.call_count == 0

    @pytest.mark.asyncio
    async def test_other_users_documents_do_not_count(
        self,
        memory_store: InMemoryDocumentStore,
        mock_embedding_provider: MockEmbeddingProvider,
        embedding_cache: EmbeddingCache,
        settings: Settings,
    ) -> None:
        await _add_document(memory_store, ["private text"], user_id=2)
        service = _service(memory_store, mock_embedding_provider, embedding_cache, settings)

        context = await service.find_relevant_context("private text", 1, user_id=1)

        assert context.is_empty
        assert mock_embedding_provider.call_count == 0

    @pytest.mark.asyncio
    async def test_blank_query(
        self,
        memory_store: InMemoryDocumentStore,
        mock_embedding_provider: MockEmbeddingProvider,
        embedding_cache: EmbeddingCache,
        settings: Settings,
    ) -> None:
        await _add_document(memory_store, ["some text"])
        service = _service(memory_store, mock_embedding_provider, embedding_cache, settings)

        assert (await service.find_relevant_context("   ", 1)).is_empty
        assert mock_embedding_provider.call_count == 0


class TestRetrieval:
    @pytest.mark.asyncio
    async def test_best_chunk_first(
        self,
        memory_store: InMemoryDocumentStore,
        mock_embedding_provider: MockEmbeddingProvider,
        embedding_cache: EmbeddingCache,
        settings: Settings,
    ) -> None:
        doc_id = await _add_document(
            memory_store, ["alpha paragraph", "beta paragraph", "gamma paragraph"]
        )
        service = _service(memory_store, mock_embedding_provider, embedding_cache, settings)

        context = await service.find_relevant_context("beta paragraph", 1, limit=2)

        assert len(context.results) == 2
        top = context.results[0]
        assert top.chunk.content == "beta paragraph"
        assert top.similarity == pytest.approx(1.0)
        assert top.document.id == doc_id
        assert context.strategy == "manual"
        assert doc_id in context.documents_by_id

    @pytest.mark.asyncio
    async def test_user_filter_excludes_foreign_documents(
        self,
        memory_store: InMemoryDocumentStore,
        mock_embedding_provider: MockEmbeddingProvider,
        embedding_cache: EmbeddingCache,
        settings: Settings,
    ) -> None:
        mine = await _add_document(memory_store, ["shared words"], user_id=1)
        await _add_document(memory_store, ["shared words"], user_id=2)
        service = _service(memory_store, mock_embedding_provider, embedding_cache, settings)

        context = await service.find_relevant_context("shared words", 1, user_id=1)

        assert [r.document.id for r in context.results] == [mine]

    @pytest.mark.asyncio
    async def test_other_conversation_ignored(
        self,
        memory_store: InMemoryDocumentStore,
        mock_embedding_provider: MockEmbeddingProvider,
        embedding_cache: EmbeddingCache,
        settings: Settings,
    ) -> None:
        await _add_document(memory_store, ["elsewhere"], conversation_id=7)
        here = await _add_document(memory_store, ["here"], conversation_id=1)
        service = _service(memory_store, mock_embedding_provider, embedding_cache, settings)

        context = await service.find_relevant_context("elsewhere", 1)

        assert {r.document.id for r in context.results} == {here}


class TestDegradation:
    @pytest.mark.asyncio
    async def test_embedding_failure_returns_empty(
        self,
        memory_store: InMemoryDocumentStore,
        failing_embedding_provider: FailingEmbeddingProvider,
        embedding_cache: EmbeddingCache,
        settings: Settings,
    ) -> None:
        await _add_document(memory_store, ["text"])
        service = _service(memory_store, failing_embedding_provider, embedding_cache, settings)

        context = await service.find_relevant_context("text", 1)

        assert context.is_empty
        assert failing_embedding_provider.call_count == 1

    @pytest.mark.asyncio
    async def test_timeout_returns_empty(
        self,
        memory_store: InMemoryDocumentStore,
        embedding_cache: EmbeddingCache,
        settings: Settings,
    ) -> None:
        await _add_document(memory_store, ["text"])
        service = _service(memory_store, SlowEmbeddingProvider(), embedding_cache, settings)

        context = await service.find_relevant_context("text", 1, timeout=0.05)

        assert context.is_empty


class TestMediaMatching:
    @pytest.mark.asyncio
    async def test_embedded_media_scored(
        self,
        memory_store: InMemoryDocumentStore,
        mock_embedding_provider: MockEmbeddingProvider,
        embedding_cache: EmbeddingCache,
        settings: Settings,
    ) -> None:
        query = "system architecture"
        await memory_store.create_media_item(
            1,
            MediaKind.IMAGE,
            "arch.png",
            "Diagram",
            embedding=serialize_vector(_hash_to_vector(query)),
        )
        service = _service(memory_store, mock_embedding_provider, embedding_cache, settings)

        context = await service.find_relevant_context(query, 1)

        [match] = context.media_matches
        assert match.media.file_name == "arch.png"
        assert match.similarity == pytest.approx(1.0)
        assert context.results == []

    @pytest.mark.asyncio
    async def test_keyword_match_without_embedding(
        self,
        memory_store: InMemoryDocumentStore,
        mock_embedding_provider: MockEmbeddingProvider,
        embedding_cache: EmbeddingCache,
        settings: Settings,
    ) -> None:
        await memory_store.create_media_item(1, MediaKind.AUDIO, "call.mp3", "Revenue call recording")
        await memory_store.create_media_item(1, MediaKind.VIDEO, "cat.mp4", "A cat on a mat")
        service = _service(memory_store, mock_embedding_provider, embedding_cache, settings)

        context = await service.find_relevant_context("what was said about revenue", 1)

        [match] = context.media_matches
        assert match.media.file_name == "call.mp3"
        assert match.similarity is None

    @pytest.mark.asyncio
    async def test_media_excluded_on_request(
        self,
        memory_store: InMemoryDocumentStore,
        mock_embedding_provider: MockEmbeddingProvider,
        embedding_cache: EmbeddingCache,
        settings: Settings,
    ) -> None:
        await memory_store.create_media_item(1, MediaKind.AUDIO, "call.mp3", "Revenue call")
        service = _service(memory_store, mock_embedding_provider, embedding_cache, settings)

        context = await service.find_relevant_context("revenue", 1, include_media=False)

        assert context.is_empty
        assert mock_embedding_provider.call_count == 0


class TestBuildPromptContext:
    @pytest.mark.asyncio
    async def test_renders_block(
        self,
        memory_store: InMemoryDocumentStore,
        mock_embedding_provider: MockEmbeddingProvider,
        embedding_cache: EmbeddingCache,
        settings: Settings,
    ) -> None:
        await _add_document(memory_store, ["budget summary"], file_name="budget.txt")
        service = _service(memory_store, mock_embedding_provider, embedding_cache, settings)

        text = await service.build_prompt_context("budget summary", 1)

        assert text.startswith("### Context from your documents:")
        assert "[Document: budget.txt, Chunk 1]\nbudget summary" in text

    @pytest.mark.asyncio
    async def test_empty_when_nothing_found(
        self,
        memory_store: InMemoryDocumentStore,
        mock_embedding_provider: MockEmbeddingProvider,
        embedding_cache: EmbeddingCache,
        settings: Settings,
    ) -> None:
        service = _service(memory_store, mock_embedding_provider, embedding_cache, settings)
        assert await service.build_prompt_context("hello", 1) == ""
