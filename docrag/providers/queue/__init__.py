"""Job queue providers.

SQLiteJobQueue keeps jobs in a local SQLite database so queued work survives
process restarts.
"""

from docrag.providers.queue.sqlite_job_queue import SQLiteJobQueue

__all__ = ["SQLiteJobQueue"]
