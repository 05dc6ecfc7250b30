"""Document ingestion: the fast path of the upload route.

``ingest_document`` extracts text, stores the document and its chunk rows
and returns; embeddings are computed afterwards by background jobs.  Small
documents (at most ``inline_embedding_max_chunks`` chunks) are embedded
inline instead, so they are searchable as soon as the upload returns.  If
that inline attempt fails, the chunks are queued like any other document.

Persistence errors propagate to the caller; extraction and embedding
failures do not.
"""

from __future__ import annotations

from docrag.config.settings import Settings
from docrag.interfaces.document_store import IDocumentStore
from docrag.interfaces.job_queue import IJobQueue
from docrag.models.document import (
    Document,
    IngestRequest,
    MediaItem,
    MediaKind,
    ProcessingStatus,
    utc_now,
)
from docrag.models.jobs import Job, JobType
from docrag.services.embedding.embedder import Embedder
from docrag.services.extraction import ExtractionService
from docrag.services.ingestion.chunker import TextChunker
from docrag.services.ingestion.jobs import EmbedChunksHandler, EmbeddingJobScheduler
from docrag.utils.errors import JobError
from docrag.utils.logging import get_logger
from docrag.utils.vectors import serialize_vector


class IngestionService:
    """Turns uploads into stored documents and chunk rows."""

    def __init__(
        self,
        document_store: IDocumentStore,
        extraction: ExtractionService,
        chunker: TextChunker,
        queue: IJobQueue,
        scheduler: EmbeddingJobScheduler,
        embed_handler: EmbedChunksHandler,
        embedder: Embedder,
        settings: Settings,
    ) -> None:
        self._store = document_store
        self._extraction = extraction
        self._chunker = chunker
        self._queue = queue
        self._scheduler = scheduler
        self._embed_handler = embed_handler
        self._embedder = embedder
        self._settings = settings
        self._logger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def ingest_document(self, request: IngestRequest) -> Document:
        """Store an uploaded document and start its embedding.

        Parameters
        ----------
        request:
            Raw bytes plus upload metadata.

        Returns
        -------
        Document
            The stored document.  Its ``metadata.processing_status`` is
            ``complete`` when it was embedded inline, otherwise ``pending``
            until the background jobs run.
        """
        text = await self._extraction.extract(request.data, request.media_type, request.file_name)

        document = await self._store.create_document(
            conversation_id=request.conversation_id,
            file_name=request.file_name,
            media_type=request.media_type,
            byte_size=request.byte_size,
            content=text,
            user_id=request.user_id,
            metadata={
                "processing_status": ProcessingStatus.PENDING,
                "extracted_at": utc_now(),
            },
        )

        plan = self._chunker.chunk_document(text)
        chunks = [
            await self._store.create_chunk(document.id, index, chunk_text)
            for index, chunk_text in enumerate(plan.chunks)
        ]
        updates: dict[str, object] = {
            "total_chunks": len(chunks),
            "chunking_strategy": plan.strategy.value,
        }
        if not chunks:
            updates.update(
                processing_status=ProcessingStatus.COMPLETE,
                processing_completed_at=utc_now(),
            )
        document = await self._store.update_document_metadata(document.id, updates) or document

        self._logger.info(
            "document_ingested",
            document_id=document.id,
            conversation_id=document.conversation_id,
            file_name=document.file_name,
            chunks=len(chunks),
            strategy=plan.strategy.value,
        )

        if not chunks:
            return document

        if len(chunks) <= self._settings.inline_embedding_max_chunks:
            try:
                await self._embed_handler.process(document, chunks, eager=True)
            except Exception as exc:
                self._logger.warning(
                    "inline_embedding_failed",
                    document_id=document.id,
                    error=str(exc),
                )
                await self._scheduler.schedule(document, chunks)
        else:
            await self._scheduler.schedule(document, chunks)

        return await self._store.get_document(document.id) or document

    async def reprocess_document(self, document_id: int) -> Job:
        """Queue a full re-chunk and re-embed of a stored document.

        Raises
        ------
        JobError
            If the document does not exist.
        """
        document = await self._store.update_document_metadata(
            document_id,
            {"processing_status": ProcessingStatus.PENDING, "error_message": None},
        )
        if document is None:
            raise JobError(f"Document {document_id} not found")

        job = await self._queue.enqueue(
            JobType.INGEST_DOCUMENT,
            {"document_id": document_id},
            priority=self._settings.eager_job_priority,
        )
        self._logger.info("document_reprocess_queued", document_id=document_id, job_id=job.id)
        return job

    async def ingest_media(
        self,
        conversation_id: int,
        kind: MediaKind,
        file_name: str,
        description: str,
        user_id: int | None = None,
    ) -> MediaItem:
        """Store a media description, embedding it when a provider answers.

        A failed embedding leaves the item unembedded; it can still match a
        query by keyword.
        """
        embedding: str | None = None
        if description.strip():
            try:
                embedding = serialize_vector(await self._embedder.embed(description))
            except Exception as exc:
                self._logger.warning(
                    "media_embedding_failed", file_name=file_name, error=str(exc)
                )

        item = await self._store.create_media_item(
            conversation_id=conversation_id,
            kind=kind,
            file_name=file_name,
            description=description,
            embedding=embedding,
            user_id=user_id,
        )
        self._logger.info(
            "media_ingested",
            media_id=item.id,
            kind=MediaKind(kind).value,
            embedded=embedding is not None,
        )
        return item
