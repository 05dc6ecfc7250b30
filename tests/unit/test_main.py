"""Unit tests for the composition root — provider selection and wiring."""

from __future__ import annotations

from pathlib import Path

import pytest

from docrag.config.settings import Settings
from docrag.main import (
    _build_embedding_strategies,
    _build_vector_collection,
    build_services,
    initialize_services,
)
from docrag.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
from docrag.providers.embedding.sentence_transformer_embedding_provider import (
    SentenceTransformerEmbeddingProvider,
)
from docrag.services.ingestion.ingestion_service import IngestionService
from docrag.services.retrieval.retrieval_service import RetrievalService
from docrag.utils.errors import ConfigurationError
from docrag.workers.worker import JobWorker


class TestProviderSelection:
    def test_local_only_without_keys(self, settings: Settings) -> None:
        strategies = _build_embedding_strategies(settings)

        assert len(strategies) == 1
        assert isinstance(strategies[0], SentenceTransformerEmbeddingProvider)

    def test_remote_first_when_key_set(self, settings: Settings) -> None:
        keyed = settings.model_copy(update={"openai_api_key": "sk-test"})

        strategies = _build_embedding_strategies(keyed)

        assert isinstance(strategies[0], OpenAIEmbeddingProvider)
        assert isinstance(strategies[-1], SentenceTransformerEmbeddingProvider)

    def test_no_collection_when_native_search_disabled(self, settings: Settings) -> None:
        assert _build_vector_collection(settings) is None

    def test_chromadb_collection_when_enabled(self, settings: Settings) -> None:
        native = settings.model_copy(update={"native_vector_search": True})

        collection = _build_vector_collection(native)

        assert collection is not None
        assert collection.name == settings.chromadb_collection
        assert collection.supports_vector_search()


class TestBuildServices:
    def test_components(self, settings: Settings) -> None:
        components = build_services(settings)

        assert components["settings"] is settings
        assert isinstance(components["ingestion_service"], IngestionService)
        assert isinstance(components["retrieval_service"], RetrievalService)
        assert isinstance(components["worker"], JobWorker)
        assert components["embedder"].health is components["provider_health"]
        assert not components["vector_store"].supports_native_search()

    @pytest.mark.parametrize(
        "update",
        [
            {"chunk_size": 200, "chunk_overlap": 200},
            {"large_chunk_overlap": -1},
        ],
    )
    def test_invalid_chunking_rejected(self, settings: Settings, update: dict[str, int]) -> None:
        with pytest.raises(ConfigurationError):
            build_services(settings.model_copy(update=update))

    def test_nothing_touches_disk_before_initialize(self, settings: Settings) -> None:
        build_services(settings)

        assert not Path(settings.document_db_path).exists()
        assert not Path(settings.job_db_path).exists()

    @pytest.mark.asyncio
    async def test_initialize_creates_databases(self, settings: Settings) -> None:
        components = build_services(settings)

        await initialize_services(components)

        assert Path(settings.document_db_path).exists()
        assert Path(settings.job_db_path).exists()
        assert await components["job_queue"].counts() == {"queued": 0, "active": 0, "failed": 0}
