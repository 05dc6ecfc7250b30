"""docrag domain models — re-exports all public model classes.

The models are organized across three submodules by concern:
    - document.py  — documents, chunks, media items, ingest requests
    - retrieval.py — scored chunks, search results, retrieval context
    - jobs.py      — background job bookkeeping
"""

from __future__ import annotations

from docrag.models.document import (
    Chunk,
    Document,
    DocumentMetadata,
    IngestRequest,
    MediaItem,
    MediaKind,
    ProcessingStatus,
)
from docrag.models.jobs import Job, JobOutcome, JobResult, JobState, JobType
from docrag.models.retrieval import (
    MediaMatch,
    RetrievalContext,
    ScoredChunk,
    SearchOutcome,
    SearchResult,
)

__all__ = [
    "Chunk",
    "Document",
    "DocumentMetadata",
    "IngestRequest",
    "Job",
    "JobOutcome",
    "JobResult",
    "JobState",
    "JobType",
    "MediaItem",
    "MediaKind",
    "MediaMatch",
    "ProcessingStatus",
    "RetrievalContext",
    "ScoredChunk",
    "SearchOutcome",
    "SearchResult",
]
