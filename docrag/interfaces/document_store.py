"""Abstract base class for the relational document store.

The store owns documents, chunks and media items.  The pipeline treats it as
an external collaborator: it only creates rows, reads them back, fills in
chunk embeddings and merges processing metadata.  Errors are never swallowed
here; callers of the ingest and retrieval APIs see them as
:class:`~docrag.utils.errors.PersistenceError`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from docrag.models.document import Chunk, Document, MediaItem, MediaKind


# Concrete implementation: SQLiteDocumentStore (docrag/providers/document_store/)
class IDocumentStore(ABC):
    """Contract for document, chunk and media persistence."""

    @abstractmethod
    async def initialize(self) -> None:
        """Create tables and indices if they don't exist."""

    # -- Documents ------------------------------------------------------------

    @abstractmethod
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
        """Insert a document row and return it with its assigned id."""

    @abstractmethod
    async def get_document(self, document_id: int) -> Document | None:
        """Return the document with *document_id*, or ``None``."""

    @abstractmethod
    async def get_documents_by_conversation(self, conversation_id: int) -> list[Document]:
        """Return all documents attached to a conversation, oldest first."""

    @abstractmethod
    async def update_document_metadata(
        self, document_id: int, updates: dict[str, Any]
    ) -> Document | None:
        """Merge *updates* into the document's metadata.

        Only the provided keys change; all other metadata fields are kept.

        Returns
        -------
        Document | None
            The updated document, or ``None`` if no such document exists.
        """

    # -- Chunks ---------------------------------------------------------------

    @abstractmethod
    async def create_chunk(self, document_id: int, chunk_index: int, content: str) -> Chunk:
        """Insert a chunk row without an embedding."""

    @abstractmethod
    async def get_chunks_by_document(self, document_id: int) -> list[Chunk]:
        """Return a document's chunks ordered by ``chunk_index``."""

    @abstractmethod
    async def delete_chunks_by_document(self, document_id: int) -> int:
        """Delete all chunks of a document; return how many were removed."""

    @abstractmethod
    async def update_chunk_embedding(self, chunk_id: int, embedding: str) -> None:
        """Store the serialized embedding for *chunk_id*.

        Raises
        ------
        docrag.utils.errors.PersistenceError
            If the chunk does not exist or the write fails.
        """

    @abstractmethod
    async def count_embedded_chunks(self, document_ids: list[int]) -> int:
        """Count chunks with a non-empty embedding across *document_ids*."""

    @abstractmethod
    async def get_embedded_chunks(self, document_ids: list[int]) -> list[Chunk]:
        """Return every chunk with a non-empty embedding across *document_ids*."""

    @abstractmethod
    async def sample_embedded_chunks(self, document_id: int, limit: int) -> list[Chunk]:
        """Return up to *limit* randomly chosen embedded chunks of one document."""

    # -- Media ----------------------------------------------------------------

    @abstractmethod
    async def create_media_item(
        self,
        conversation_id: int,
        kind: MediaKind,
        file_name: str,
        description: str,
        embedding: str | None = None,
        user_id: int | None = None,
    ) -> MediaItem:
        """Insert a media item (image / audio / video description)."""

    @abstractmethod
    async def get_media_by_conversation(self, conversation_id: int) -> list[MediaItem]:
        """Return all media items attached to a conversation."""
