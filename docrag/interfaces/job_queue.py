"""Abstract base class for the durable background job queue.

Delivery is at-least-once: a job claimed by a worker that dies before
reporting back is handed out again after a restart.  Handlers must therefore
be idempotent (re-embedding a chunk simply overwrites its vector).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from docrag.models.jobs import Job, JobOutcome, JobType


# Concrete implementation: SQLiteJobQueue (docrag/providers/queue/)
class IJobQueue(ABC):
    """Contract for enqueueing, claiming and settling background jobs."""

    @abstractmethod
    async def initialize(self) -> None:
        """Prepare storage and return interrupted ``active`` jobs to the queue."""

    @abstractmethod
    async def enqueue(
        self,
        job_type: JobType,
        payload: dict[str, Any],
        priority: int = 0,
        max_attempts: int | None = None,
    ) -> Job:
        """Add a job.  Lower *priority* values run first."""

    @abstractmethod
    async def claim(self, limit: int = 1) -> list[Job]:
        """Atomically mark up to *limit* due jobs ``active`` and return them.

        Claiming starts an attempt: the returned jobs already carry the
        incremented ``attempts`` count.
        """

    @abstractmethod
    async def complete(self, job: Job) -> None:
        """Settle a successful job.  Succeeded jobs are discarded."""

    @abstractmethod
    async def fail(self, job: Job, error: str) -> JobOutcome:
        """Settle a failed attempt.

        Returns
        -------
        JobOutcome
            ``FAILURE`` if the job was rescheduled with backoff, ``EXHAUSTED``
            if it ran out of attempts and was parked as ``failed``.
        """

    @abstractmethod
    async def get_failed(self, limit: int = 50) -> list[Job]:
        """Return parked terminal failures, newest first."""

    @abstractmethod
    async def counts(self) -> dict[str, int]:
        """Return the number of jobs per state."""
