"""Retrieval result models.

A query produces ranked :class:`SearchResult` tuples (chunk, similarity,
owning document) plus optional :class:`MediaMatch` entries, bundled into a
:class:`RetrievalContext` that the context assembler renders for the model.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from docrag.models.document import Chunk, Document, MediaItem


class ScoredChunk(BaseModel):
    """A chunk with its cosine similarity to the query vector."""

    model_config = ConfigDict(frozen=True)

    chunk: Chunk
    similarity: float


class SearchOutcome(BaseModel):
    """Ranked chunks plus the name of the strategy that produced them."""

    model_config = ConfigDict(frozen=True)

    results: list[ScoredChunk] = Field(default_factory=list)
    strategy: str = Field(default="none", description='"native", "manual" or "none".')


class SearchResult(BaseModel):
    """One ranked hit: chunk, similarity score and owning document."""

    model_config = ConfigDict(frozen=True)

    chunk: Chunk
    similarity: float
    document: Document


class MediaMatch(BaseModel):
    """A media description relevant to the query."""

    model_config = ConfigDict(frozen=True)

    media: MediaItem
    similarity: float | None = Field(
        default=None,
        description="Cosine similarity when the media item has an embedding.",
    )


class RetrievalContext(BaseModel):
    """Everything the chat route needs to build a RAG prompt section."""

    model_config = ConfigDict(frozen=True)

    results: list[SearchResult] = Field(default_factory=list)
    documents_by_id: dict[int, Document] = Field(default_factory=dict)
    media_matches: list[MediaMatch] = Field(default_factory=list)
    strategy: str = "none"

    @property
    def chunks(self) -> list[Chunk]:
        return [r.chunk for r in self.results]

    @property
    def is_empty(self) -> bool:
        return not self.results and not self.media_matches
