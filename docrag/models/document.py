"""Document, chunk and media models for the docrag knowledge base.

Defines Pydantic v2 models for uploaded documents, their embedded chunks and
the media items (images, audio, video) whose textual descriptions can be
retrieved alongside document text.  All models are frozen: the pipeline
changes state through the document store, never by mutating a model that a
reader may be holding.

Lifecycle of a document:

    1. UPLOAD: the ingest API extracts text and stores a ``Document`` whose
       ``metadata.processing_status`` is ``pending``.
    2. CHUNK: the text is split into ``Chunk`` rows (``embedding=None``).
    3. EMBED: a background job (or the inline fast path) fills each chunk's
       serialized embedding; status moves ``processing -> complete|error``.
    4. RETRIEVE: chunks with an embedding become search candidates.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from docrag.utils.vectors import deserialize_vector


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ProcessingStatus(str, Enum):
    """Where a document is in the embedding pipeline."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETE = "complete"
    ERROR = "error"


class MediaKind(str, Enum):
    """Kinds of non-document media that carry a searchable description."""

    IMAGE = "image"
    AUDIO = "audio"
    VIDEO = "video"


class DocumentMetadata(BaseModel):
    """Free-form processing metadata stored alongside a document."""

    model_config = ConfigDict(frozen=True)

    processing_status: ProcessingStatus = Field(default=ProcessingStatus.PENDING)
    media_type: str = Field(default="", description="Declared MIME type at upload time.")
    extracted_at: datetime | None = None
    processing_started_at: datetime | None = None
    processing_completed_at: datetime | None = None
    error_message: str | None = Field(
        default=None,
        description="Last pipeline error, truncated to a bounded length.",
    )
    total_chunks: int = Field(default=0, ge=0)
    embedded_chunks: int = Field(default=0, ge=0)
    chunking_strategy: str | None = Field(
        default=None,
        description='"standard", "structural" or "sampled" (lossy, large documents).',
    )
    extra: dict[str, Any] = Field(default_factory=dict)


class Document(BaseModel):
    """An uploaded file and its extracted full text."""

    model_config = ConfigDict(frozen=True)

    id: int
    conversation_id: int
    user_id: int | None = None
    file_name: str
    media_type: str
    byte_size: int = Field(default=0, ge=0)
    content: str = Field(default="", description="Extracted full text.")
    metadata: DocumentMetadata = Field(default_factory=DocumentMetadata)
    created_at: datetime = Field(default_factory=utc_now)

    @property
    def processing_status(self) -> ProcessingStatus:
        return self.metadata.processing_status


class Chunk(BaseModel):
    """A bounded slice of a document's text, embedded independently.

    ``chunk_index`` is 0-based and dense per document.  ``embedding`` holds
    the serialized vector (JSON text) once computed and stays ``None`` until
    then; chunks without an embedding are never search candidates.
    """

    model_config = ConfigDict(frozen=True)

    id: int
    document_id: int
    chunk_index: int = Field(ge=0)
    content: str
    embedding: str | None = None
    created_at: datetime = Field(default_factory=utc_now)

    @property
    def has_embedding(self) -> bool:
        return bool(self.embedding)

    @property
    def vector(self) -> list[float]:
        """The parsed embedding, or ``[]`` when absent."""
        return deserialize_vector(self.embedding)


class MediaItem(BaseModel):
    """An image / audio / video attachment described in text."""

    model_config = ConfigDict(frozen=True)

    id: int
    conversation_id: int
    user_id: int | None = None
    kind: MediaKind
    file_name: str
    description: str
    embedding: str | None = None
    created_at: datetime = Field(default_factory=utc_now)

    @property
    def vector(self) -> list[float]:
        return deserialize_vector(self.embedding)


class IngestRequest(BaseModel):
    """Everything the upload route hands to the ingest API."""

    model_config = ConfigDict(frozen=True)

    data: bytes
    file_name: str
    media_type: str
    byte_size: int = Field(ge=0)
    conversation_id: int
    user_id: int | None = None
