"""Abstract base class for a vector-capable chunk collection.

A collection mirrors embedded chunks into a store that may offer a native
nearest-neighbour index.  Whether it does is a declared capability, never
probed with a trial query.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from docrag.models.retrieval import ScoredChunk


# Concrete implementation: ChromaDBCollection (docrag/providers/vector_store/)
class IVectorCollection(ABC):
    """Contract for the native vector index used by the search adapter."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Collection name; the search adapter caches capability per name."""

    @abstractmethod
    def supports_vector_search(self) -> bool:
        """Return ``True`` if :meth:`vector_query` is backed by a real index."""

    @abstractmethod
    async def upsert(
        self,
        chunk_id: int,
        vector: list[float],
        content: str,
        metadata: dict[str, Any],
    ) -> None:
        """Insert or replace one chunk's vector, text and metadata."""

    @abstractmethod
    async def vector_query(
        self,
        index_name: str,
        vector: list[float],
        filter: dict[str, Any],
        candidates: int,
        limit: int,
    ) -> list[ScoredChunk]:
        """Query the named index.

        Parameters
        ----------
        index_name:
            Name of the vector index to query.
        vector:
            The query embedding.
        filter:
            Metadata filter clause, e.g.
            ``{"document_ids": [1, 2], "user_id": 7}``.
        candidates:
            Number of nearest neighbours the index should consider.
        limit:
            Maximum number of results to return.

        Returns
        -------
        list[ScoredChunk]
            Results ranked by similarity, highest first.

        Raises
        ------
        docrag.utils.errors.VectorStoreError
            If the query fails.
        """

    @abstractmethod
    async def delete_by_document(self, document_id: int) -> int:
        """Remove every mirrored chunk of *document_id*; return the count."""
