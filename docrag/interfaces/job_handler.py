"""Abstract base class for background job handlers.

The worker looks up one handler per :class:`~docrag.models.jobs.JobType`.
A handler raises to signal failure; the worker settles the job with the
queue and then gives the handler a chance to react through
:meth:`IJobHandler.on_failure`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from docrag.models.jobs import Job


class IJobHandler(ABC):
    """Contract for code that executes one job type."""

    @abstractmethod
    async def handle(self, job: Job) -> None:
        """Run *job*.  Any exception marks the attempt as failed."""

    async def on_failure(self, job: Job, exc: BaseException, exhausted: bool) -> None:
        """Called after a failed attempt has been recorded.

        *exhausted* is ``True`` when no retries remain.  The default does
        nothing.
        """
        return None
