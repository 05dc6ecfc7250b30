"""ChromaDB collection adapter for native vector search.

Wraps ``chromadb.PersistentClient`` to implement :class:`IVectorCollection`.
The relational document store stays the source of truth for chunks; this
collection only mirrors embedded chunks so that queries can use ChromaDB's
HNSW index instead of scoring every candidate in Python.
"""

from __future__ import annotations

import os
from typing import Any

# Disable ChromaDB telemetry before importing chromadb.
os.environ["ANONYMIZED_TELEMETRY"] = "False"

import chromadb
import structlog

from docrag.interfaces.vector_collection import IVectorCollection
from docrag.models.document import Chunk
from docrag.models.retrieval import ScoredChunk
from docrag.utils.errors import VectorStoreError

logger = structlog.get_logger(logger_name=__name__)

# Chroma metadata values cannot be None.
_NO_USER = -1


class _NoopEmbeddingFunction(chromadb.EmbeddingFunction[list[str]]):
    """No-op embedding function that prevents ChromaDB from loading a model.

    Vectors are always computed by the embedder and passed explicitly, so
    ChromaDB's built-in embedding model is never needed.
    """

    def __call__(self, input: list[str]) -> list[list[float]]:
        raise NotImplementedError(
            "docrag uses pre-computed embeddings; "
            "ChromaDB's built-in embedding should never be called."
        )

    def name(self) -> str:
        """Return function name (required by ChromaDB's EmbeddingFunction protocol)."""
        return "noop_precomputed"


class ChromaDBCollection(IVectorCollection):
    """Chunk mirror backed by a persistent ChromaDB collection.

    Parameters
    ----------
    persist_directory:
        Directory ChromaDB persists to.
    collection_name:
        Name of the collection; also the key of the search adapter's
        capability cache.
    client:
        Optional pre-built ChromaDB client (tests pass an ephemeral one).
    """

    def __init__(
        self,
        persist_directory: str = "./data/chromadb",
        collection_name: str = "document_chunks",
        client: Any | None = None,
    ) -> None:
        self._collection_name = collection_name
        self._client = client or chromadb.PersistentClient(
            path=persist_directory,
            settings=chromadb.config.Settings(anonymized_telemetry=False),
        )
        # Collections created by an older ChromaDB with the default embedding
        # function reject a different one; reopen without it in that case.
        try:
            self._collection = self._client.get_or_create_collection(
                name=collection_name,
                metadata={"hnsw:space": "cosine"},
                embedding_function=_NoopEmbeddingFunction(),
            )
        except ValueError:
            self._collection = self._client.get_or_create_collection(
                name=collection_name,
                metadata={"hnsw:space": "cosine"},
            )

    @property
    def name(self) -> str:
        return self._collection_name

    def supports_vector_search(self) -> bool:
        return True

    async def upsert(
        self,
        chunk_id: int,
        vector: list[float],
        content: str,
        metadata: dict[str, Any],
    ) -> None:
        """Insert or replace one chunk in the collection."""
        clean_meta = {
            "document_id": int(metadata["document_id"]),
            "chunk_index": int(metadata.get("chunk_index", 0)),
            "user_id": _NO_USER if metadata.get("user_id") is None else int(metadata["user_id"]),
        }
        try:
            self._collection.upsert(
                ids=[str(chunk_id)],
                embeddings=[vector],
                documents=[content],
                metadatas=[clean_meta],
            )
        except Exception as exc:
            raise VectorStoreError(
                message=f"ChromaDB upsert failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    async def vector_query(
        self,
        index_name: str,
        vector: list[float],
        filter: dict[str, Any],
        candidates: int,
        limit: int,
    ) -> list[ScoredChunk]:
        """Query the collection's HNSW index.

        ChromaDB keeps one index per collection, so *index_name* is only
        logged.  Cosine distance is converted back to similarity.
        """
        where = self._translate_filter(filter)
        try:
            total = self._collection.count()
            if total == 0:
                return []

            kwargs: dict[str, Any] = {
                "query_embeddings": [vector],
                "n_results": max(1, min(candidates, total)),
                "include": ["documents", "metadatas", "distances"],
            }
            if where:
                kwargs["where"] = where
            results = self._collection.query(**kwargs)
        except Exception as exc:
            raise VectorStoreError(
                message=f"ChromaDB query failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        if not results["ids"] or not results["ids"][0]:
            return []

        ids = results["ids"][0]
        documents = results["documents"][0] if results["documents"] else [""] * len(ids)
        metadatas = results["metadatas"][0] if results["metadatas"] else [{}] * len(ids)
        distances = results["distances"][0] if results["distances"] else [1.0] * len(ids)

        scored: list[ScoredChunk] = []
        for raw_id, text, meta, distance in zip(ids, documents, metadatas, distances, strict=True):
            chunk = Chunk(
                id=int(raw_id),
                document_id=int(meta.get("document_id", 0)),
                chunk_index=int(meta.get("chunk_index", 0)),
                content=text or "",
            )
            similarity = max(-1.0, min(1.0, 1.0 - float(distance)))
            scored.append(ScoredChunk(chunk=chunk, similarity=similarity))

        scored.sort(key=lambda sc: sc.similarity, reverse=True)
        logger.info(
            "chromadb_vector_query",
            index=index_name,
            candidates=candidates,
            raw_results=len(ids),
            results_count=min(limit, len(scored)),
        )
        return scored[:limit]

    async def delete_by_document(self, document_id: int) -> int:
        """Delete every mirrored chunk belonging to *document_id*."""
        where = {"document_id": int(document_id)}
        try:
            existing = self._collection.get(where=where)
            count = len(existing["ids"]) if existing["ids"] else 0
            if count > 0:
                self._collection.delete(where=where)
        except Exception as exc:
            raise VectorStoreError(
                message=f"ChromaDB delete_by_document failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info("chromadb_delete_by_document", document_id=document_id, deleted_count=count)
        return count

    def get_provider_name(self) -> str:
        return "chromadb"

    @staticmethod
    def _translate_filter(filter: dict[str, Any]) -> dict[str, Any] | None:
        """Translate the adapter's filter dict into a ChromaDB ``where`` clause.

        ``document_ids`` becomes ``document_id $in [...]``; ``user_id`` keeps
        chunks owned by that user plus chunks with no owner.
        """
        conditions: list[dict[str, Any]] = []

        document_ids = filter.get("document_ids")
        if document_ids:
            conditions.append({"document_id": {"$in": [int(d) for d in document_ids]}})

        user_id = filter.get("user_id")
        if user_id is not None:
            conditions.append({"user_id": {"$in": [int(user_id), _NO_USER]}})

        if not conditions:
            return None
        if len(conditions) == 1:
            return conditions[0]
        return {"$and": conditions}
