"""Background job handlers for the ingestion pipeline.

# ─── JOB TYPES ────────────────────────────────────────────────────────
#
#   ingest-document   payload {"document_id"}
#       (Re)chunk the stored document text, persist chunk rows without
#       embeddings, then schedule embed-chunks jobs.
#
#   embed-chunks      payload {"document_id", "user_id", "eager",
#                              "chunks": [[chunk_id, chunk_index, text], ...]}
#       Embed a bounded list of chunks in batches and store the vectors.
#       The eager job (the first chunks of a document) moves the document
#       to "complete"; follow-up jobs only advance the embedded count.
#
# Failure handling: an exception inside a handler is written to the
# document's metadata.error_message (truncated) and re-raised so the queue
# applies retry/backoff.  Only when the queue reports the job exhausted is
# the document marked "error".
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

from typing import Any

from docrag.config.settings import Settings
from docrag.interfaces.document_store import IDocumentStore
from docrag.interfaces.job_handler import IJobHandler
from docrag.interfaces.job_queue import IJobQueue
from docrag.models.document import Chunk, Document, ProcessingStatus, utc_now
from docrag.models.jobs import Job, JobType
from docrag.services.embedding.embedder import Embedder
from docrag.services.ingestion.chunker import TextChunker
from docrag.services.retrieval.vector_search import VectorStoreAdapter
from docrag.utils.errors import EmbeddingError, JobError
from docrag.utils.logging import get_logger


def truncate_error(exc: BaseException, max_length: int = 500) -> str:
    """Render *exc* for storage in document metadata, bounded in length."""
    message = str(exc) or exc.__class__.__name__
    if len(message) <= max_length:
        return message
    return message[: max(max_length - 3, 0)] + "..."


class EmbeddingJobScheduler:
    """Splits a document's chunks into eager and follow-up embed jobs.

    The first ``eager_embedding_chunks`` chunks go into one high-priority
    job so a large document becomes searchable quickly; the remainder is
    spread over lower-priority jobs of at most ``max_chunks_per_job``.
    """

    def __init__(self, queue: IJobQueue, settings: Settings) -> None:
        self._queue = queue
        self._settings = settings
        self._logger = get_logger(__name__)

    async def schedule(self, document: Document, chunks: list[Chunk]) -> list[Job]:
        if not chunks:
            return []

        eager_count = max(1, self._settings.eager_embedding_chunks)
        per_job = max(1, self._settings.max_chunks_per_job)

        jobs = [
            await self._queue.enqueue(
                JobType.EMBED_CHUNKS,
                self._payload(document, chunks[:eager_count], eager=True),
                priority=self._settings.eager_job_priority,
            )
        ]
        remainder = chunks[eager_count:]
        for start in range(0, len(remainder), per_job):
            jobs.append(
                await self._queue.enqueue(
                    JobType.EMBED_CHUNKS,
                    self._payload(document, remainder[start : start + per_job], eager=False),
                    priority=self._settings.follow_up_job_priority,
                )
            )

        self._logger.info(
            "embedding_jobs_scheduled",
            document_id=document.id,
            total_chunks=len(chunks),
            eager_chunks=min(eager_count, len(chunks)),
            jobs=len(jobs),
        )
        return jobs

    @staticmethod
    def _payload(document: Document, chunks: list[Chunk], eager: bool) -> dict[str, Any]:
        return {
            "document_id": document.id,
            "user_id": document.user_id,
            "eager": eager,
            "chunks": [[c.id, c.chunk_index, c.content] for c in chunks],
        }


class EmbedChunksHandler(IJobHandler):
    """Embeds chunks and stores their vectors (``embed-chunks`` jobs).

    Also used directly by the ingestion service for the inline fast path.
    """

    def __init__(
        self,
        document_store: IDocumentStore,
        embedder: Embedder,
        vector_store: VectorStoreAdapter,
        settings: Settings,
    ) -> None:
        self._store = document_store
        self._embedder = embedder
        self._vector_store = vector_store
        self._settings = settings
        self._logger = get_logger(__name__)

    async def handle(self, job: Job) -> None:
        try:
            document_id = int(job.payload["document_id"])
            raw_chunks = job.payload["chunks"]
            chunks = [
                Chunk(id=int(cid), document_id=document_id, chunk_index=int(idx), content=str(text))
                for cid, idx, text in raw_chunks
            ]
        except (KeyError, TypeError, ValueError) as exc:
            raise JobError(f"Malformed embed-chunks payload: {exc}") from exc

        document = await self._store.get_document(document_id)
        if document is None:
            self._logger.warning("embed_job_document_missing", document_id=document_id)
            return

        await self.process(document, chunks, eager=bool(job.payload.get("eager", False)))

    async def process(self, document: Document, chunks: list[Chunk], eager: bool) -> int:
        """Embed *chunks* of *document* and store the vectors.

        Returns
        -------
        int
            Number of chunks whose vector was stored.  Items that came back
            as empty sentinel vectors keep ``embedding=None``.

        Raises
        ------
        EmbeddingError
            If none of a non-empty chunk list could be embedded.
        """
        try:
            if document.processing_status is not ProcessingStatus.COMPLETE:
                await self._store.update_document_metadata(
                    document.id,
                    {
                        "processing_status": ProcessingStatus.PROCESSING,
                        "processing_started_at": utc_now(),
                    },
                )

            vectors = await self._embedder.embed_batch([c.content for c in chunks])
            stored = 0
            for chunk, vector in zip(chunks, vectors):
                if not vector:
                    continue
                await self._vector_store.upsert_chunk(chunk, vector, user_id=document.user_id)
                stored += 1

            if chunks and stored == 0:
                raise EmbeddingError(f"None of {len(chunks)} chunks could be embedded")

            updates: dict[str, Any] = {
                "embedded_chunks": await self._store.count_embedded_chunks([document.id]),
            }
            if eager:
                updates.update(
                    processing_status=ProcessingStatus.COMPLETE,
                    processing_completed_at=utc_now(),
                    error_message=None,
                )
            elif document.processing_status is ProcessingStatus.COMPLETE:
                # A retried follow-up succeeded; drop the message of its earlier attempt.
                updates["error_message"] = None
            await self._store.update_document_metadata(document.id, updates)
        except Exception as exc:
            await self._record_error(document.id, exc)
            raise

        self._logger.info(
            "chunks_embedded",
            document_id=document.id,
            requested=len(chunks),
            stored=stored,
            eager=eager,
            provider=self._embedder.last_strategy,
        )
        return stored

    async def on_failure(self, job: Job, exc: BaseException, exhausted: bool) -> None:
        if not exhausted:
            return
        document_id = job.payload.get("document_id")
        if document_id is None:
            return
        document = await self._store.get_document(int(document_id))
        if document is None:
            return
        # A failed follow-up job leaves an already searchable document complete.
        if job.payload.get("eager") or document.processing_status is not ProcessingStatus.COMPLETE:
            await mark_document_failed(self._store, document.id, exc, self._settings)

    async def _record_error(self, document_id: int, exc: BaseException) -> None:
        try:
            await self._store.update_document_metadata(
                document_id,
                {"error_message": truncate_error(exc, self._settings.error_message_max_length)},
            )
        except Exception as record_exc:
            self._logger.error(
                "document_error_record_failed",
                document_id=document_id,
                error=str(record_exc),
            )


class IngestDocumentHandler(IJobHandler):
    """Re-chunks a stored document and schedules its embedding (``ingest-document``)."""

    def __init__(
        self,
        document_store: IDocumentStore,
        chunker: TextChunker,
        vector_store: VectorStoreAdapter,
        scheduler: EmbeddingJobScheduler,
        settings: Settings,
    ) -> None:
        self._store = document_store
        self._chunker = chunker
        self._vector_store = vector_store
        self._scheduler = scheduler
        self._settings = settings
        self._logger = get_logger(__name__)

    async def handle(self, job: Job) -> None:
        try:
            document_id = int(job.payload["document_id"])
        except (KeyError, TypeError, ValueError) as exc:
            raise JobError(f"Malformed ingest-document payload: {exc}") from exc

        document = await self._store.get_document(document_id)
        if document is None:
            self._logger.warning("ingest_job_document_missing", document_id=document_id)
            return

        try:
            removed = await self._store.delete_chunks_by_document(document.id)
            await self._vector_store.delete_document(document.id)

            plan = self._chunker.chunk_document(document.content)
            chunks = [
                await self._store.create_chunk(document.id, index, text)
                for index, text in enumerate(plan.chunks)
            ]
            updates: dict[str, Any] = {
                "total_chunks": len(chunks),
                "embedded_chunks": 0,
                "chunking_strategy": plan.strategy.value,
            }
            if not chunks:
                updates.update(
                    processing_status=ProcessingStatus.COMPLETE,
                    processing_completed_at=utc_now(),
                    error_message=None,
                )
            document = await self._store.update_document_metadata(document.id, updates) or document
            await self._scheduler.schedule(document, chunks)
        except Exception as exc:
            await self._store.update_document_metadata(
                document_id,
                {"error_message": truncate_error(exc, self._settings.error_message_max_length)},
            )
            raise

        self._logger.info(
            "document_rechunked",
            document_id=document.id,
            removed_chunks=removed,
            chunks=len(chunks),
            strategy=plan.strategy.value,
        )

    async def on_failure(self, job: Job, exc: BaseException, exhausted: bool) -> None:
        document_id = job.payload.get("document_id")
        if exhausted and document_id is not None:
            await mark_document_failed(self._store, int(document_id), exc, self._settings)


async def mark_document_failed(
    store: IDocumentStore, document_id: int, exc: BaseException, settings: Settings
) -> None:
    """Move a document to the terminal ``error`` status."""
    await store.update_document_metadata(
        document_id,
        {
            "processing_status": ProcessingStatus.ERROR,
            "processing_completed_at": utc_now(),
            "error_message": truncate_error(exc, settings.error_message_max_length),
        },
    )
    get_logger(__name__).error(
        "document_processing_failed", document_id=document_id, error=str(exc)
    )
