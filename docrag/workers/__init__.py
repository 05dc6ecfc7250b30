"""Background workers that drain the job queue."""

from docrag.workers.worker import JobWorker

__all__ = ["JobWorker"]
