"""Job worker: claims queued jobs and runs their handlers.

Each round claims up to ``concurrency`` due jobs and runs them concurrently,
so at most that many embedding jobs hit the remote provider at once.  A
handler exception never escapes the worker: the attempt is settled through
``queue.fail`` (which applies retry/backoff or parks the job), the handler's
``on_failure`` hook runs, and the worker moves on to the next job.  A
failing ``queue.complete`` is logged and reported on the job result.
"""

from __future__ import annotations

import asyncio

from docrag.interfaces.job_handler import IJobHandler
from docrag.interfaces.job_queue import IJobQueue
from docrag.models.jobs import Job, JobOutcome, JobResult, JobType
from docrag.utils.errors import JobError
from docrag.utils.logging import get_logger, job_context


class JobWorker:
    """Drains an :class:`IJobQueue` with bounded concurrency.

    Parameters
    ----------
    queue:
        The job queue to drain.
    handlers:
        One handler per job type.
    concurrency:
        Maximum number of jobs running at the same time.
    poll_interval:
        Seconds the background loop sleeps when the queue is empty.
    """

    def __init__(
        self,
        queue: IJobQueue,
        handlers: dict[JobType, IJobHandler],
        concurrency: int = 2,
        poll_interval: float = 1.0,
    ) -> None:
        self._queue = queue
        self._handlers = handlers
        self._concurrency = max(1, concurrency)
        self._poll_interval = poll_interval
        self._stop_event = asyncio.Event()
        self._task: asyncio.Task[None] | None = None
        self._logger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def run_once(self) -> list[JobResult]:
        """Claim and run one round of jobs; return their results."""
        jobs = await self._queue.claim(self._concurrency)
        if not jobs:
            return []
        return list(await asyncio.gather(*(self._run_job(job) for job in jobs)))

    async def run_until_idle(self, max_rounds: int | None = None) -> list[JobResult]:
        """Keep running rounds until no job is due.

        Jobs waiting out a backoff delay are not due and end the drain.
        """
        results: list[JobResult] = []
        rounds = 0
        while max_rounds is None or rounds < max_rounds:
            batch = await self.run_once()
            if not batch:
                break
            results.extend(batch)
            rounds += 1
        return results

    def start(self) -> None:
        """Start the background polling loop."""
        if self._task is not None and not self._task.done():
            return
        self._stop_event.clear()
        self._task = asyncio.create_task(self._loop())
        self._logger.info("worker_started", concurrency=self._concurrency)

    async def stop(self) -> None:
        """Stop the polling loop after the current round finishes."""
        self._stop_event.set()
        if self._task is not None:
            await self._task
            self._task = None
        self._logger.info("worker_stopped")

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                results = await self.run_once()
            except Exception as exc:
                # Queue storage errors: back off and keep the worker alive.
                self._logger.error("worker_round_failed", error=str(exc))
                results = []
            if results:
                continue
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self._poll_interval)
            except asyncio.TimeoutError:
                pass

    async def _run_job(self, job: Job) -> JobResult:
        with job_context(job_id=job.id, job_type=job.job_type.value):
            handler = self._handlers.get(job.job_type)
            try:
                if handler is None:
                    raise JobError(f"No handler registered for job type {job.job_type.value}")
                await handler.handle(job)
            except Exception as exc:
                return await self._settle_failure(job, handler, exc)

            error: str | None = None
            try:
                await self._queue.complete(job)
            except Exception as exc:
                # The row stays active until the next restart requeues it.
                error = str(exc) or exc.__class__.__name__
                self._logger.error("job_complete_failed", error=error)
            else:
                self._logger.info("job_completed", attempts=job.attempts)
            return JobResult(
                job_id=job.id,
                job_type=job.job_type,
                outcome=JobOutcome.SUCCESS,
                attempts=job.attempts,
                error=error,
            )

    async def _settle_failure(
        self, job: Job, handler: IJobHandler | None, exc: Exception
    ) -> JobResult:
        error = str(exc) or exc.__class__.__name__
        outcome = await self._queue.fail(job, error)
        exhausted = outcome is JobOutcome.EXHAUSTED
        if exhausted:
            self._logger.error("job_exhausted", attempts=job.attempts, error=error)
        else:
            self._logger.warning(
                "job_failed",
                attempts=job.attempts,
                max_attempts=job.max_attempts,
                error=error,
            )

        if handler is not None:
            try:
                await handler.on_failure(job, exc, exhausted)
            except Exception as hook_exc:
                self._logger.error("job_failure_hook_failed", error=str(hook_exc))

        return JobResult(
            job_id=job.id,
            job_type=job.job_type,
            outcome=outcome,
            attempts=job.attempts,
            error=error,
        )
