"""docrag composition root.

Wires together all providers and services via dependency injection.  The
CLI and any embedding application (a chat server, a test harness) obtain a
fully assembled set of components from :func:`build_services` and must
``await initialize_services(components)`` once before use.

Provider selection follows a fixed priority:

    Embedding:  OpenAI / Azure OpenAI (if a key is set) -> sentence-transformers
    Vectors:    ChromaDB collection (if NATIVE_VECTOR_SEARCH) -> manual scan only
"""

from __future__ import annotations

from typing import Any

from docrag.config.settings import Settings
from docrag.interfaces.embedding_provider import IEmbeddingProvider
from docrag.interfaces.vector_collection import IVectorCollection
from docrag.models.jobs import JobType
from docrag.providers.cache.memory_cache import MemoryCacheProvider
from docrag.providers.document_store.sqlite_document_store import SQLiteDocumentStore
from docrag.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
from docrag.providers.embedding.sentence_transformer_embedding_provider import (
    SentenceTransformerEmbeddingProvider,
)
from docrag.providers.queue.sqlite_job_queue import SQLiteJobQueue
from docrag.services.embedding.cache import EmbeddingCache
from docrag.services.embedding.embedder import Embedder
from docrag.services.embedding.health import ProviderHealth
from docrag.services.extraction import ExtractionService
from docrag.services.ingestion.chunker import TextChunker
from docrag.services.ingestion.ingestion_service import IngestionService
from docrag.services.ingestion.jobs import (
    EmbedChunksHandler,
    EmbeddingJobScheduler,
    IngestDocumentHandler,
)
from docrag.services.retrieval.context_assembler import ContextAssembler
from docrag.services.retrieval.retrieval_service import RetrievalService
from docrag.services.retrieval.vector_search import VectorStoreAdapter
from docrag.utils.errors import ConfigurationError
from docrag.utils.logging import configure_logging, get_logger
from docrag.workers.worker import JobWorker

_logger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Provider selection
# ---------------------------------------------------------------------------


def _build_embedding_strategies(app_settings: Settings) -> list[IEmbeddingProvider]:
    """Return embedding providers in failover order.

    Priority: OpenAI / Azure OpenAI (if an API key is set) ->
              sentence-transformers (local, always last).
    """
    strategies: list[IEmbeddingProvider] = []
    if app_settings.has_remote_embedding():
        strategies.append(OpenAIEmbeddingProvider(settings=app_settings))
    strategies.append(
        SentenceTransformerEmbeddingProvider(
            model_name=app_settings.local_embedding_model,
            device=app_settings.local_embedding_device,
        )
    )
    return strategies


def _build_vector_collection(app_settings: Settings) -> IVectorCollection | None:
    """Return the native vector collection, or ``None`` when disabled.

    The ChromaDB import is deferred so deployments relying on the manual
    scan never load it.
    """
    if not app_settings.native_vector_search:
        return None

    from docrag.providers.vector_store.chromadb_collection import ChromaDBCollection

    return ChromaDBCollection(
        persist_directory=app_settings.chromadb_persist_dir,
        collection_name=app_settings.chromadb_collection,
    )


def _validate_settings(app_settings: Settings) -> None:
    """Reject chunking settings the chunker would refuse at first use."""
    pairs = [
        ("chunk", app_settings.chunk_size, app_settings.chunk_overlap),
        ("large_chunk", app_settings.large_chunk_size, app_settings.large_chunk_overlap),
    ]
    for prefix, size, overlap in pairs:
        if size <= 0 or overlap < 0 or overlap >= size:
            raise ConfigurationError(
                f"{prefix.upper()}_OVERLAP ({overlap}) must be >= 0 and smaller "
                f"than {prefix.upper()}_SIZE ({size})"
            )


# ---------------------------------------------------------------------------
# Full DI assembly
# ---------------------------------------------------------------------------


def build_services(app_settings: Settings | None = None) -> dict[str, Any]:
    """Construct every provider and service instance.

    Returns a flat dict of named components.  Nothing touches the disk or
    the network until :func:`initialize_services` runs.
    """
    app_settings = app_settings or Settings()
    _validate_settings(app_settings)

    # -- Persistence --
    document_store = SQLiteDocumentStore(db_path=app_settings.document_db_path)
    job_queue = SQLiteJobQueue(
        db_path=app_settings.job_db_path,
        max_attempts=app_settings.job_max_attempts,
        backoff_base=app_settings.job_backoff_base_seconds,
        max_failed_jobs=app_settings.job_max_failed_retained,
    )

    # -- Embedding --
    cache = EmbeddingCache(
        MemoryCacheProvider(
            max_size=app_settings.embedding_cache_size,
            ttl=app_settings.embedding_cache_ttl,
        ),
        max_input_chars=app_settings.embedding_max_input_chars,
    )
    health = ProviderHealth()
    embedder = Embedder.from_settings(
        app_settings,
        strategies=_build_embedding_strategies(app_settings),
        cache=cache,
        health=health,
    )

    # -- Vector search --
    vector_store = VectorStoreAdapter(
        document_store,
        _build_vector_collection(app_settings),
        app_settings,
    )

    # -- Ingestion --
    chunker = TextChunker.from_settings(app_settings)
    extraction = ExtractionService()
    scheduler = EmbeddingJobScheduler(job_queue, app_settings)
    embed_handler = EmbedChunksHandler(document_store, embedder, vector_store, app_settings)
    ingest_handler = IngestDocumentHandler(
        document_store, chunker, vector_store, scheduler, app_settings
    )
    ingestion_service = IngestionService(
        document_store=document_store,
        extraction=extraction,
        chunker=chunker,
        queue=job_queue,
        scheduler=scheduler,
        embed_handler=embed_handler,
        embedder=embedder,
        settings=app_settings,
    )

    # -- Retrieval --
    assembler = ContextAssembler(max_chars=app_settings.context_max_chars)
    retrieval_service = RetrievalService(
        document_store=document_store,
        embedder=embedder,
        vector_store=vector_store,
        assembler=assembler,
        settings=app_settings,
    )

    # -- Background worker --
    worker = JobWorker(
        job_queue,
        handlers={
            JobType.INGEST_DOCUMENT: ingest_handler,
            JobType.EMBED_CHUNKS: embed_handler,
        },
        concurrency=app_settings.worker_concurrency,
        poll_interval=app_settings.worker_poll_interval,
    )

    return {
        "settings": app_settings,
        "document_store": document_store,
        "job_queue": job_queue,
        "embedding_cache": cache,
        "provider_health": health,
        "embedder": embedder,
        "vector_store": vector_store,
        "chunker": chunker,
        "extraction": extraction,
        "ingestion_service": ingestion_service,
        "retrieval_service": retrieval_service,
        "context_assembler": assembler,
        "worker": worker,
    }


async def initialize_services(components: dict[str, Any]) -> None:
    """Create database tables and requeue jobs interrupted by a restart."""
    await components["document_store"].initialize()
    await components["job_queue"].initialize()

    _logger.info(
        "services_initialized",
        embedding_providers=components["embedder"].get_available_providers(),
        native_vector_search=components["vector_store"].supports_native_search(),
    )


def bootstrap(app_settings: Settings | None = None) -> dict[str, Any]:
    """Configure logging from settings and build the components."""
    app_settings = app_settings or Settings()
    configure_logging(
        log_level=app_settings.log_level,
        json_output=(app_settings.app_env == "production"),
    )
    return build_services(app_settings)
