"""Ingestion services: chunking, upload handling and background job handlers."""

from docrag.services.ingestion.chunker import ChunkingPlan, ChunkingStrategy, TextChunker
from docrag.services.ingestion.ingestion_service import IngestionService
from docrag.services.ingestion.jobs import (
    EmbedChunksHandler,
    EmbeddingJobScheduler,
    IngestDocumentHandler,
)

__all__ = [
    "ChunkingPlan",
    "ChunkingStrategy",
    "EmbedChunksHandler",
    "EmbeddingJobScheduler",
    "IngestDocumentHandler",
    "IngestionService",
    "TextChunker",
]
