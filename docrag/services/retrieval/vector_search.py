"""Vector store adapter with native and manual similarity search.

Chunks and their serialized embeddings live in the relational document
store.  When a native vector index is available (a ChromaDB collection
mirror), searches are delegated to it; otherwise, or when a native query
fails, candidates are scored in-process by cosine similarity.

Search strategies
-----------------
``NativeSearchStrategy``
    Asks the index for ``limit × native_candidate_multiplier`` neighbours
    filtered by document ids and user id, and keeps the best ``limit``.
``ManualSearchStrategy``
    Below ``manual_scan_threshold`` embedded chunks, every embedded chunk
    of the filtered documents is scored.  Above it, a stratified sample is
    drawn: ``max(min_per_document, sample_size // n_documents)`` chunks per
    document, so a small document in a multi-document conversation always
    contributes candidates.

The adapter tries its strategies in order.  A native error degrades to the
manual strategy for that call only; a manual error yields an empty result.
Whether native search is used is decided from configuration plus the
collection's declared capability, cached per collection name; it is never
probed with a trial query.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from docrag.config.settings import Settings
from docrag.interfaces.document_store import IDocumentStore
from docrag.interfaces.vector_collection import IVectorCollection
from docrag.models.document import Chunk
from docrag.models.retrieval import ScoredChunk, SearchOutcome
from docrag.utils.logging import get_logger
from docrag.utils.vectors import cosine_similarity, serialize_vector


def rank_by_similarity(
    query_vector: list[float], candidates: list[Chunk], limit: int
) -> list[ScoredChunk]:
    """Score *candidates* against *query_vector* and return the top *limit*.

    Candidates without an embedding are skipped.  Ties keep candidate order.
    """
    scored = [
        ScoredChunk(chunk=chunk, similarity=cosine_similarity(query_vector, chunk.vector))
        for chunk in candidates
        if chunk.has_embedding
    ]
    scored.sort(key=lambda sc: sc.similarity, reverse=True)
    return scored[: max(limit, 0)]


class SearchStrategy(ABC):
    """One way of answering a similarity query."""

    name: str = "strategy"

    @abstractmethod
    async def search(
        self,
        query_vector: list[float],
        document_ids: list[int],
        limit: int,
        user_id: int | None = None,
    ) -> list[ScoredChunk]:
        """Return up to *limit* chunks ranked by similarity, highest first."""


class NativeSearchStrategy(SearchStrategy):
    """Delegates to the collection's vector index."""

    name = "native"

    def __init__(
        self,
        collection: IVectorCollection,
        index_name: str = "vector_index",
        candidate_multiplier: int = 20,
    ) -> None:
        self._collection = collection
        self._index_name = index_name
        self._candidate_multiplier = candidate_multiplier

    async def search(
        self,
        query_vector: list[float],
        document_ids: list[int],
        limit: int,
        user_id: int | None = None,
    ) -> list[ScoredChunk]:
        filter_clause: dict[str, object] = {"document_ids": list(document_ids)}
        if user_id is not None:
            filter_clause["user_id"] = user_id
        results = await self._collection.vector_query(
            index_name=self._index_name,
            vector=query_vector,
            filter=filter_clause,
            candidates=limit * self._candidate_multiplier,
            limit=limit,
        )
        return sorted(results, key=lambda sc: sc.similarity, reverse=True)[:limit]


class ManualSearchStrategy(SearchStrategy):
    """Scores candidates from the document store in-process."""

    name = "manual"

    def __init__(
        self,
        document_store: IDocumentStore,
        scan_threshold: int = 1000,
        sample_size: int = 500,
        min_per_document: int = 10,
    ) -> None:
        self._store = document_store
        self._scan_threshold = scan_threshold
        self._sample_size = sample_size
        self._min_per_document = min_per_document
        self._logger = get_logger(__name__)

    async def search(
        self,
        query_vector: list[float],
        document_ids: list[int],
        limit: int,
        user_id: int | None = None,
    ) -> list[ScoredChunk]:
        if user_id is not None:
            document_ids = await self._visible_to(user_id, document_ids)
        if not document_ids:
            return []

        total = await self._store.count_embedded_chunks(document_ids)
        if total == 0:
            return []

        if total <= self._scan_threshold:
            candidates = await self._store.get_embedded_chunks(document_ids)
            mode = "full_scan"
        else:
            candidates = await self.stratified_sample(document_ids)
            mode = "stratified"

        self._logger.debug(
            "manual_search_candidates",
            mode=mode,
            embedded_chunks=total,
            candidates=len(candidates),
            documents=len(document_ids),
        )
        return rank_by_similarity(query_vector, candidates, limit)

    async def _visible_to(self, user_id: int, document_ids: list[int]) -> list[int]:
        """Keep documents owned by *user_id* or by nobody, like the native filter."""
        visible: list[int] = []
        for document_id in document_ids:
            document = await self._store.get_document(document_id)
            if document is not None and document.user_id in (None, user_id):
                visible.append(document_id)
        return visible

    def per_document_quota(self, document_count: int) -> int:
        """Chunks drawn per document; never below one."""
        if document_count <= 0:
            return 0
        return max(self._min_per_document, self._sample_size // document_count, 1)

    async def stratified_sample(self, document_ids: list[int]) -> list[Chunk]:
        """Draw up to :meth:`per_document_quota` embedded chunks from each document."""
        quota = self.per_document_quota(len(document_ids))
        sample: list[Chunk] = []
        for document_id in document_ids:
            sample.extend(await self._store.sample_embedded_chunks(document_id, quota))
        return sample


class VectorStoreAdapter:
    """Persists chunk embeddings and answers similarity queries.

    Parameters
    ----------
    document_store:
        Source of truth for chunks and their embeddings.
    collection:
        Optional native vector collection mirroring embedded chunks.
    settings:
        Supplies the native-search flag, index name and search thresholds.
    """

    def __init__(
        self,
        document_store: IDocumentStore,
        collection: IVectorCollection | None,
        settings: Settings,
    ) -> None:
        self._store = document_store
        self._collection = collection
        self._settings = settings
        # collection name → native search available; written once per name.
        self._capability_cache: dict[str, bool] = {}
        self._manual = ManualSearchStrategy(
            document_store,
            scan_threshold=settings.manual_scan_threshold,
            sample_size=settings.stratified_sample_size,
            min_per_document=settings.stratified_min_per_document,
        )
        self._native = (
            NativeSearchStrategy(
                collection,
                index_name=settings.vector_index_name,
                candidate_multiplier=settings.native_candidate_multiplier,
            )
            if collection is not None
            else None
        )
        self._logger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Capability
    # ------------------------------------------------------------------

    def supports_native_search(self) -> bool:
        """Return whether native search is enabled for the configured collection."""
        if self._collection is None:
            return False
        name = self._collection.name
        cached = self._capability_cache.get(name)
        if cached is None:
            cached = bool(
                self._settings.native_vector_search
                and self._collection.supports_vector_search()
            )
            self._capability_cache[name] = cached
            self._logger.info("vector_search_capability", collection=name, native=cached)
        return cached

    def strategies(self) -> list[SearchStrategy]:
        """The strategies a search will try, in order."""
        if self._native is not None and self.supports_native_search():
            return [self._native, self._manual]
        return [self._manual]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def upsert_chunk(
        self, chunk: Chunk, vector: list[float], user_id: int | None = None
    ) -> None:
        """Store *vector* as *chunk*'s embedding and mirror it to the index.

        Document-store errors propagate; a failed mirror write is logged
        and the manual strategy still sees the chunk.
        """
        await self._store.update_chunk_embedding(chunk.id, serialize_vector(vector))

        if self._collection is None or not self.supports_native_search():
            return
        try:
            await self._collection.upsert(
                chunk_id=chunk.id,
                vector=vector,
                content=chunk.content,
                metadata={
                    "document_id": chunk.document_id,
                    "chunk_index": chunk.chunk_index,
                    "user_id": user_id,
                },
            )
        except Exception as exc:
            self._logger.warning(
                "vector_mirror_upsert_failed",
                chunk_id=chunk.id,
                collection=self._collection.name,
                error=str(exc),
            )

    async def delete_document(self, document_id: int) -> None:
        """Remove a document's chunks from the native index, if any."""
        if self._collection is None or not self.supports_native_search():
            return
        try:
            await self._collection.delete_by_document(document_id)
        except Exception as exc:
            self._logger.warning(
                "vector_mirror_delete_failed", document_id=document_id, error=str(exc)
            )

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    async def search(
        self,
        query_vector: list[float],
        document_ids: list[int],
        limit: int = 5,
        user_id: int | None = None,
    ) -> SearchOutcome:
        """Return the chunks most similar to *query_vector*.

        Never raises: every strategy failing yields an empty outcome whose
        ``strategy`` is ``"none"``.
        """
        if not query_vector or not document_ids or limit <= 0:
            return SearchOutcome()

        for strategy in self.strategies():
            try:
                results = await strategy.search(query_vector, document_ids, limit, user_id)
            except Exception as exc:
                self._logger.warning(
                    "vector_search_strategy_failed",
                    strategy=strategy.name,
                    error=str(exc),
                )
                continue

            self._logger.info(
                "vector_search_complete",
                strategy=strategy.name,
                documents=len(document_ids),
                results_count=len(results),
                top_score=round(results[0].similarity, 4) if results else 0.0,
            )
            return SearchOutcome(results=results, strategy=strategy.name)

        return SearchOutcome()
