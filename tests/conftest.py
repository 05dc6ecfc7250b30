"""Shared pytest fixtures for the docrag test suite."""

from __future__ import annotations

import hashlib
import itertools
import random
from pathlib import Path
from typing import Any

import pytest

from docrag.config.settings import Settings
from docrag.interfaces.document_store import IDocumentStore
from docrag.interfaces.embedding_provider import IEmbeddingProvider
from docrag.models.document import (
    Chunk,
    Document,
    DocumentMetadata,
    MediaItem,
    MediaKind,
    utc_now,
)
from docrag.providers.cache.memory_cache import MemoryCacheProvider
from docrag.providers.document_store.sqlite_document_store import SQLiteDocumentStore
from docrag.services.embedding.cache import EmbeddingCache
from docrag.utils.errors import EmbeddingError

# ---------------------------------------------------------------------------
# Embedding fakes
# ---------------------------------------------------------------------------

_EMBEDDING_DIM = 128


def _hash_to_vector(text: str, dim: int = _EMBEDDING_DIM) -> list[float]:
    """Generate a deterministic unit-length vector by hashing *text*.

    Each SHA-256 byte is mapped to [-1, 1]; the digest is re-hashed until
    it covers *dim* components.  Same text always gives the same vector.
    """
    raw = hashlib.sha256(text.encode("utf-8")).digest()
    while len(raw) < dim:
        raw += hashlib.sha256(raw).digest()
    values = [(b - 127.5) / 127.5 for b in raw[:dim]]
    magnitude = max(sum(v * v for v in values) ** 0.5, 1e-10)
    return [v / magnitude for v in values]


class MockEmbeddingProvider(IEmbeddingProvider):
    """In-memory deterministic embedding provider that records its calls."""

    def __init__(self, name: str = "mock-embedding", dim: int = _EMBEDDING_DIM) -> None:
        self._name = name
        self._dim = dim
        self.available = True
        self.batch_calls: list[list[str]] = []
        self.single_calls: list[str] = []

    async def embed(self, texts: list[str]) -> list[list[float]]:
        self.batch_calls.append(list(texts))
        return [_hash_to_vector(t, self._dim) for t in texts]

    async def embed_single(self, text: str) -> list[float]:
        self.single_calls.append(text)
        return _hash_to_vector(text, self._dim)

    @property
    def call_count(self) -> int:
        return len(self.batch_calls) + len(self.single_calls)

    def get_dimension(self) -> int:
        return self._dim

    def get_provider_name(self) -> str:
        return self._name

    def is_available(self) -> bool:
        return self.available


class FailingEmbeddingProvider(MockEmbeddingProvider):
    """Embedding provider whose every call raises :class:`EmbeddingError`."""

    def __init__(self, name: str = "failing-embedding", dim: int = _EMBEDDING_DIM) -> None:
        super().__init__(name=name, dim=dim)

    async def embed(self, texts: list[str]) -> list[list[float]]:
        self.batch_calls.append(list(texts))
        raise EmbeddingError("remote embedding unavailable", provider_name=self._name)

    async def embed_single(self, text: str) -> list[float]:
        self.single_calls.append(text)
        raise EmbeddingError("remote embedding unavailable", provider_name=self._name)


# ---------------------------------------------------------------------------
# Document store fake
# ---------------------------------------------------------------------------


class InMemoryDocumentStore(IDocumentStore):
    """Dict-backed :class:`IDocumentStore` for service-level tests."""

    def __init__(self) -> None:
        self.documents: dict[int, Document] = {}
        self.chunks: dict[int, Chunk] = {}
        self.media: dict[int, MediaItem] = {}
        self._ids = itertools.count(1)
        self.sample_calls: list[tuple[int, int]] = []

    async def initialize(self) -> None:
        return None

    async def create_document(
        self,
        conversation_id: int,
        file_name: str,
        media_type: str,
        byte_size: int,
        content: str,
        user_id: int | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> Document:
        document = Document(
            id=next(self._ids),
            conversation_id=conversation_id,
            user_id=user_id,
            file_name=file_name,
            media_type=media_type,
            byte_size=byte_size,
            content=content,
            metadata=SQLiteDocumentStore._merge_metadata(
                DocumentMetadata(media_type=media_type), metadata or {}
            ),
        )
        self.documents[document.id] = document
        return document

    async def get_document(self, document_id: int) -> Document | None:
        return self.documents.get(document_id)

    async def get_documents_by_conversation(self, conversation_id: int) -> list[Document]:
        return [d for d in self.documents.values() if d.conversation_id == conversation_id]

    async def update_document_metadata(
        self, document_id: int, updates: dict[str, Any]
    ) -> Document | None:
        document = self.documents.get(document_id)
        if document is None:
            return None
        merged = SQLiteDocumentStore._merge_metadata(document.metadata, updates)
        document = document.model_copy(update={"metadata": merged})
        self.documents[document_id] = document
        return document

    async def create_chunk(self, document_id: int, chunk_index: int, content: str) -> Chunk:
        chunk = Chunk(
            id=next(self._ids),
            document_id=document_id,
            chunk_index=chunk_index,
            content=content,
        )
        self.chunks[chunk.id] = chunk
        return chunk

    async def get_chunks_by_document(self, document_id: int) -> list[Chunk]:
        return sorted(
            (c for c in self.chunks.values() if c.document_id == document_id),
            key=lambda c: c.chunk_index,
        )

    async def delete_chunks_by_document(self, document_id: int) -> int:
        doomed = [cid for cid, c in self.chunks.items() if c.document_id == document_id]
        for cid in doomed:
            del self.chunks[cid]
        return len(doomed)

    async def update_chunk_embedding(self, chunk_id: int, embedding: str) -> None:
        chunk = self.chunks[chunk_id]
        self.chunks[chunk_id] = chunk.model_copy(update={"embedding": embedding})

    async def count_embedded_chunks(self, document_ids: list[int]) -> int:
        return len(await self.get_embedded_chunks(document_ids))

    async def get_embedded_chunks(self, document_ids: list[int]) -> list[Chunk]:
        wanted = set(document_ids)
        return [
            c for c in self.chunks.values() if c.document_id in wanted and c.vector
        ]

    async def sample_embedded_chunks(self, document_id: int, limit: int) -> list[Chunk]:
        self.sample_calls.append((document_id, limit))
        embedded = await self.get_embedded_chunks([document_id])
        return random.sample(embedded, min(limit, len(embedded)))

    async def create_media_item(
        self,
        conversation_id: int,
        kind: MediaKind,
        file_name: str,
        description: str,
        embedding: str | None = None,
        user_id: int | None = None,
    ) -> MediaItem:
        item = MediaItem(
            id=next(self._ids),
            conversation_id=conversation_id,
            user_id=user_id,
            kind=MediaKind(kind),
            file_name=file_name,
            description=description,
            embedding=embedding,
            created_at=utc_now(),
        )
        self.media[item.id] = item
        return item

    async def get_media_by_conversation(self, conversation_id: int) -> list[MediaItem]:
        return [m for m in self.media.values() if m.conversation_id == conversation_id]


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings isolated from the environment: no API keys, temp databases."""
    return Settings(
        _env_file=None,
        openai_api_key="",
        openai_base_url="",
        azure_openai_api_key="",
        azure_openai_endpoint="",
        native_vector_search=False,
        document_db_path=str(tmp_path / "documents.db"),
        job_db_path=str(tmp_path / "jobs.db"),
        chromadb_persist_dir=str(tmp_path / "chromadb"),
        job_backoff_base_seconds=0.0,
    )


@pytest.fixture
def mock_embedding_provider() -> MockEmbeddingProvider:
    """Deterministic hash-based embedding provider."""
    return MockEmbeddingProvider()


@pytest.fixture
def failing_embedding_provider() -> FailingEmbeddingProvider:
    """Embedding provider that always raises."""
    return FailingEmbeddingProvider()


@pytest.fixture
def memory_store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def embedding_cache() -> EmbeddingCache:
    return EmbeddingCache(MemoryCacheProvider(max_size=1000, ttl=3600))


@pytest.fixture
def sample_document_text() -> str:
    """Four paragraphs of plain prose separated by blank lines."""
    return (
        "Quarterly revenue grew by twelve percent. The growth came mostly from "
        "the subscription business. Hardware sales were flat.\n\n"
        "Operating costs rose because of new hiring in the support team. "
        "Management expects the hiring pace to slow next quarter.\n\n"
        "The board approved a share buyback. It will run for eighteen months "
        "and is funded from existing cash reserves.\n\n"
        "Risks include currency movements and supply chain delays. Dr. Smith "
        "noted that component lead times have already improved."
    )
