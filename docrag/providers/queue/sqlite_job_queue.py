"""SQLite-backed durable job queue.

Persists background jobs to a local SQLite database at ``data/jobs.db``.
Uses ``aiosqlite`` for async I/O.

Queue semantics:
    * at-least-once: ``initialize()`` returns jobs left ``active`` by a
      crashed process to ``queued``;
    * due jobs are claimed in ``(priority, id)`` order, lower priority first;
    * a failed attempt is rescheduled after ``backoff_base * 2**(attempts-1)``
      seconds until ``max_attempts`` is reached;
    * exhausted jobs are parked as ``failed`` (at most ``max_failed_jobs``
      are retained); succeeded jobs are deleted.
"""

from __future__ import annotations

import json
import time
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import aiosqlite
import structlog

from docrag.interfaces.job_queue import IJobQueue
from docrag.models.jobs import Job, JobOutcome, JobState, JobType
from docrag.utils.errors import PersistenceError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/jobs.db")

_CREATE_TABLE_SQL = """\
CREATE TABLE IF NOT EXISTS jobs (
    id            INTEGER PRIMARY KEY AUTOINCREMENT,
    job_type      TEXT    NOT NULL,
    payload       TEXT    NOT NULL DEFAULT '{}',
    priority      INTEGER NOT NULL DEFAULT 0,
    attempts      INTEGER NOT NULL DEFAULT 0,
    max_attempts  INTEGER NOT NULL DEFAULT 3,
    state         TEXT    NOT NULL DEFAULT 'queued',
    run_at        REAL    NOT NULL,
    last_error    TEXT,
    created_at    REAL    NOT NULL,
    updated_at    REAL    NOT NULL
);
"""

_CREATE_INDICES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_jobs_claim ON jobs(state, run_at, priority, id);",
    "CREATE INDEX IF NOT EXISTS idx_jobs_failed ON jobs(state, updated_at);",
]

_INSERT_SQL = """\
INSERT INTO jobs (job_type, payload, priority, max_attempts, state, run_at, created_at, updated_at)
VALUES (?, ?, ?, ?, 'queued', ?, ?, ?);
"""

# Single statement, so two workers can never claim the same row.
_CLAIM_SQL = """\
UPDATE jobs
SET state = 'active', attempts = attempts + 1, updated_at = ?
WHERE id IN (
    SELECT id FROM jobs
    WHERE state = 'queued' AND run_at <= ?
    ORDER BY priority ASC, id ASC
    LIMIT ?
)
RETURNING *;
"""

_REQUEUE_INTERRUPTED_SQL = """\
UPDATE jobs
SET state = 'queued', attempts = MAX(attempts - 1, 0), updated_at = ?
WHERE state = 'active';
"""

_RESCHEDULE_SQL = """\
UPDATE jobs
SET state = 'queued', run_at = ?, last_error = ?, updated_at = ?
WHERE id = ?;
"""

_PARK_FAILED_SQL = """\
UPDATE jobs
SET state = 'failed', last_error = ?, updated_at = ?
WHERE id = ?;
"""

_PRUNE_FAILED_SQL = """\
DELETE FROM jobs
WHERE state = 'failed' AND id NOT IN (
    SELECT id FROM jobs WHERE state = 'failed'
    ORDER BY updated_at DESC, id DESC
    LIMIT ?
);
"""


class SQLiteJobQueue(IJobQueue):
    """SQLite-backed durable job queue.

    Parameters
    ----------
    db_path:
        Location of the SQLite database file.
    max_attempts:
        Default attempt budget for jobs enqueued without an explicit one.
    backoff_base:
        Delay in seconds before the first retry; doubles on every retry.
    max_failed_jobs:
        Number of parked terminal failures kept for inspection.
    clock:
        Source of the current time in epoch seconds (tests inject a fake).
    """

    def __init__(
        self,
        db_path: str | Path = _DEFAULT_DB_PATH,
        max_attempts: int = 3,
        backoff_base: float = 1.0,
        max_failed_jobs: int = 50,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._db_path = Path(db_path)
        self._max_attempts = max_attempts
        self._backoff_base = backoff_base
        self._max_failed_jobs = max_failed_jobs
        self._clock = clock

    async def initialize(self) -> None:
        """Create the jobs table and requeue jobs interrupted mid-run."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                await db.execute(_CREATE_TABLE_SQL)
                for idx_sql in _CREATE_INDICES_SQL:
                    await db.execute(idx_sql)
                cursor = await db.execute(_REQUEUE_INTERRUPTED_SQL, (self._clock(),))
                requeued = cursor.rowcount
                await db.commit()
        except aiosqlite.Error as exc:
            raise PersistenceError(
                message=f"Failed to initialize job queue: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        logger.info("job_queue_initialized", path=str(self._db_path), requeued=requeued)

    async def enqueue(
        self,
        job_type: JobType,
        payload: dict[str, Any],
        priority: int = 0,
        max_attempts: int | None = None,
    ) -> Job:
        """Add a job that is due immediately."""
        now = self._clock()
        attempts_budget = max_attempts or self._max_attempts
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                db.row_factory = aiosqlite.Row
                cursor = await db.execute(
                    _INSERT_SQL,
                    (
                        JobType(job_type).value,
                        json.dumps(payload),
                        priority,
                        attempts_budget,
                        now,
                        now,
                        now,
                    ),
                )
                job_id = cursor.lastrowid
                await db.commit()
                cursor = await db.execute("SELECT * FROM jobs WHERE id = ?", (job_id,))
                row = await cursor.fetchone()
        except aiosqlite.Error as exc:
            raise PersistenceError(
                message=f"Failed to enqueue {job_type} job: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        job = self._row_to_job(row)
        logger.info(
            "job_enqueued",
            job_id=job.id,
            job_type=job.job_type.value,
            priority=priority,
        )
        return job

    async def claim(self, limit: int = 1) -> list[Job]:
        """Mark up to *limit* due jobs ``active`` and return them."""
        if limit <= 0:
            return []
        now = self._clock()
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                db.row_factory = aiosqlite.Row
                cursor = await db.execute(_CLAIM_SQL, (now, now, limit))
                rows = await cursor.fetchall()
                await db.commit()
        except aiosqlite.Error as exc:
            raise PersistenceError(
                message=f"Failed to claim jobs: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        # RETURNING does not preserve the subquery's order.
        jobs = sorted((self._row_to_job(r) for r in rows), key=lambda j: (j.priority, j.id))
        if jobs:
            logger.debug("jobs_claimed", job_ids=[j.id for j in jobs])
        return jobs

    async def complete(self, job: Job) -> None:
        """Delete a succeeded job."""
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                await db.execute("DELETE FROM jobs WHERE id = ?", (job.id,))
                await db.commit()
        except aiosqlite.Error as exc:
            raise PersistenceError(
                message=f"Failed to complete job {job.id}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    async def fail(self, job: Job, error: str) -> JobOutcome:
        """Reschedule *job* with backoff, or park it once attempts run out."""
        now = self._clock()
        exhausted = job.attempts >= job.max_attempts
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                if exhausted:
                    await db.execute(_PARK_FAILED_SQL, (error, now, job.id))
                    await db.execute(_PRUNE_FAILED_SQL, (self._max_failed_jobs,))
                else:
                    delay = self.backoff_delay(job.attempts)
                    await db.execute(_RESCHEDULE_SQL, (now + delay, error, now, job.id))
                await db.commit()
        except aiosqlite.Error as exc:
            raise PersistenceError(
                message=f"Failed to record failure of job {job.id}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        if exhausted:
            return JobOutcome.EXHAUSTED
        return JobOutcome.FAILURE

    def backoff_delay(self, attempts: int) -> float:
        """Seconds to wait before retrying a job that has made *attempts* attempts."""
        return self._backoff_base * (2 ** max(attempts - 1, 0))

    async def get_failed(self, limit: int = 50) -> list[Job]:
        """Return parked terminal failures, newest first."""
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                "SELECT * FROM jobs WHERE state = 'failed' "
                "ORDER BY updated_at DESC, id DESC LIMIT ?",
                (limit,),
            )
            rows = await cursor.fetchall()
        return [self._row_to_job(r) for r in rows]

    async def counts(self) -> dict[str, int]:
        """Return the number of jobs in each state."""
        result = {state.value: 0 for state in JobState}
        async with aiosqlite.connect(str(self._db_path)) as db:
            cursor = await db.execute("SELECT state, COUNT(*) FROM jobs GROUP BY state")
            rows = await cursor.fetchall()
        for state, count in rows:
            result[state] = count
        return result

    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this provider."""
        return "sqlite_job_queue"

    @staticmethod
    def _row_to_job(row: aiosqlite.Row) -> Job:
        r = dict(row)
        return Job(
            id=r["id"],
            job_type=JobType(r["job_type"]),
            payload=json.loads(r["payload"] or "{}"),
            priority=r["priority"],
            attempts=r["attempts"],
            max_attempts=r["max_attempts"],
            state=JobState(r["state"]),
            run_at=datetime.fromtimestamp(r["run_at"], tz=timezone.utc),
            last_error=r["last_error"],
            created_at=datetime.fromtimestamp(r["created_at"], tz=timezone.utc),
        )
