"""Background job models.

Jobs are owned by the queue.  A worker holds a :class:`Job` only while the
handler runs; every state change goes back through the queue, which is the
single source of truth for attempts, scheduling and terminal failures.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from docrag.models.document import utc_now


class JobType(str, Enum):
    INGEST_DOCUMENT = "ingest-document"
    EMBED_CHUNKS = "embed-chunks"


class JobState(str, Enum):
    QUEUED = "queued"
    ACTIVE = "active"
    FAILED = "failed"


class JobOutcome(str, Enum):
    """Result of one execution attempt."""

    SUCCESS = "success"
    # Failed, but will be retried after backoff.
    FAILURE = "failure"
    # Failed on the last allowed attempt; parked for inspection.
    EXHAUSTED = "exhausted"


class Job(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    job_type: JobType
    payload: dict[str, Any] = Field(default_factory=dict)
    priority: int = Field(default=0, description="Lower runs first.")
    attempts: int = Field(default=0, ge=0, description="Attempts started so far.")
    max_attempts: int = Field(default=3, ge=1)
    state: JobState = JobState.QUEUED
    run_at: datetime = Field(default_factory=utc_now)
    last_error: str | None = None
    created_at: datetime = Field(default_factory=utc_now)


class JobResult(BaseModel):
    """What the worker reports after running a job once."""

    model_config = ConfigDict(frozen=True)

    job_id: int
    job_type: JobType
    outcome: JobOutcome
    attempts: int
    error: str | None = None
