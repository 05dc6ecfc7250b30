"""Query-time retrieval: embed the query, search, and assemble context.

The chat-completion route calls :meth:`RetrievalService.find_relevant_context`
before every completion.  Retrieval must never block the conversation, so
everything after loading the conversation's documents degrades to an empty
result: a failed query embedding, a failed search, or the whole operation
overrunning its timeout.  Loading documents is a persistence call, and
persistence errors propagate to the caller.

Cost-avoidance contract: a conversation with no documents and no media
returns immediately without computing a query embedding.
"""

from __future__ import annotations

import asyncio
import re

from docrag.config.settings import Settings
from docrag.interfaces.document_store import IDocumentStore
from docrag.models.document import Document, MediaItem
from docrag.models.retrieval import MediaMatch, RetrievalContext, SearchResult
from docrag.services.embedding.embedder import Embedder
from docrag.services.retrieval.context_assembler import ContextAssembler
from docrag.services.retrieval.vector_search import VectorStoreAdapter
from docrag.utils.logging import get_logger
from docrag.utils.vectors import cosine_similarity

_KEYWORD = re.compile(r"[a-z0-9]{4,}")


class RetrievalService:
    """Finds the chunks (and media) most relevant to a chat message."""

    def __init__(
        self,
        document_store: IDocumentStore,
        embedder: Embedder,
        vector_store: VectorStoreAdapter,
        assembler: ContextAssembler,
        settings: Settings,
    ) -> None:
        self._store = document_store
        self._embedder = embedder
        self._vector_store = vector_store
        self._assembler = assembler
        self._settings = settings
        self._logger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def find_relevant_context(
        self,
        query_text: str,
        conversation_id: int,
        limit: int | None = None,
        user_id: int | None = None,
        include_media: bool = True,
        timeout: float | None = None,
    ) -> RetrievalContext:
        """Return the chunks most similar to *query_text* in a conversation.

        Parameters
        ----------
        query_text:
            The user's message.
        conversation_id:
            Only documents and media of this conversation are searched.
        limit:
            Maximum number of chunks (default ``retrieval_default_limit``).
        user_id:
            When given, documents owned by another user are excluded.
        include_media:
            Also match media descriptions against the query.
        timeout:
            Seconds allowed for embedding plus search (default
            ``retrieval_timeout_seconds``).

        Returns
        -------
        RetrievalContext
            Possibly empty; an empty context is a normal outcome.
        """
        limit = limit if limit is not None else self._settings.retrieval_default_limit
        timeout = timeout if timeout is not None else self._settings.retrieval_timeout_seconds

        documents = await self._store.get_documents_by_conversation(conversation_id)
        if user_id is not None:
            documents = [d for d in documents if d.user_id is None or d.user_id == user_id]
        media: list[MediaItem] = []
        if include_media:
            media = await self._store.get_media_by_conversation(conversation_id)
            if user_id is not None:
                media = [m for m in media if m.user_id is None or m.user_id == user_id]

        if not documents and not media:
            self._logger.debug("retrieval_skipped_empty_corpus", conversation_id=conversation_id)
            return RetrievalContext()
        if not query_text or not query_text.strip():
            return RetrievalContext()

        try:
            return await asyncio.wait_for(
                self._retrieve(query_text, documents, media, limit, user_id),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            self._logger.warning(
                "retrieval_timed_out",
                conversation_id=conversation_id,
                timeout=timeout,
            )
            return RetrievalContext()

    async def build_prompt_context(
        self,
        query_text: str,
        conversation_id: int,
        limit: int | None = None,
        user_id: int | None = None,
        include_media: bool = True,
        timeout: float | None = None,
    ) -> str:
        """Retrieve and render the context block; ``""`` when nothing matched."""
        context = await self.find_relevant_context(
            query_text,
            conversation_id,
            limit=limit,
            user_id=user_id,
            include_media=include_media,
            timeout=timeout,
        )
        return self._assembler.format_context(context)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _retrieve(
        self,
        query_text: str,
        documents: list[Document],
        media: list[MediaItem],
        limit: int,
        user_id: int | None,
    ) -> RetrievalContext:
        try:
            query_vector = await self._embedder.embed(query_text)
        except Exception as exc:
            self._logger.warning("query_embedding_failed", error=str(exc))
            return RetrievalContext()

        documents_by_id = {d.id: d for d in documents}
        results: list[SearchResult] = []
        strategy = "none"
        if documents:
            outcome = await self._vector_store.search(
                query_vector, list(documents_by_id), limit=limit, user_id=user_id
            )
            strategy = outcome.strategy
            results = [
                SearchResult(
                    chunk=sc.chunk,
                    similarity=sc.similarity,
                    document=documents_by_id[sc.chunk.document_id],
                )
                for sc in outcome.results
                if sc.chunk.document_id in documents_by_id
            ]

        media_matches = self._match_media(query_text, query_vector, media)

        self._logger.info(
            "context_retrieved",
            chunks=len(results),
            media=len(media_matches),
            strategy=strategy,
            provider=self._embedder.last_strategy,
        )
        return RetrievalContext(
            results=results,
            documents_by_id=documents_by_id,
            media_matches=media_matches,
            strategy=strategy,
        )

    def _match_media(
        self, query_text: str, query_vector: list[float], media: list[MediaItem]
    ) -> list[MediaMatch]:
        """Rank embedded media by similarity, then add keyword hits on the rest.

        Media without an embedding can only match on a shared keyword of four
        or more characters and carries no relevance score.
        """
        if not media:
            return []

        scored: list[MediaMatch] = []
        unscored: list[MediaMatch] = []
        query_terms = set(_KEYWORD.findall(query_text.lower()))
        for item in media:
            vector = item.vector
            if vector:
                similarity = cosine_similarity(query_vector, vector)
                if similarity >= self._settings.media_min_similarity:
                    scored.append(MediaMatch(media=item, similarity=similarity))
            elif query_terms & set(_KEYWORD.findall(item.description.lower())):
                unscored.append(MediaMatch(media=item))

        scored.sort(key=lambda m: m.similarity or 0.0, reverse=True)
        return (scored + unscored)[: self._settings.media_match_limit]
