"""Async job store.

Public API:
    - Database: engine and session lifecycle (connect / session / close)
    - JobStore: get_job, get_user, find_jobs, update_job, mark_notified,
      save_job, save_user, ping, subscribe_jobs
    - diff_snapshots: change computation used by the change feed
    - PersistenceError and subclasses

Example usage:
    >>> database = Database("sqlite+aiosqlite:///./data/print_notifier.db")
    >>> await database.connect()
    >>> store = JobStore(database)
    >>> jobs = await store.find_jobs(status="completed", notified=False)
"""

from .database import Database
from .exceptions import (
    DatabaseConnectionError,
    DataIntegrityError,
    PersistenceError,
    RecordNotFoundError,
)
from .feed import diff_snapshots
from .repositories import JobStore

__all__ = [
    "Database",
    "JobStore",
    "diff_snapshots",
    "PersistenceError",
    "DatabaseConnectionError",
    "RecordNotFoundError",
    "DataIntegrityError",
]
