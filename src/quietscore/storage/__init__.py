"""Persistence for samples and per-day summaries.

Modules:
    base    -- backend contract
    memory  -- in-process backend
    sql     -- SQLAlchemy/SQLite backend
    store   -- SummaryStore (upsert, range queries, weekly average)
"""

from quietscore.storage.base import StorageBackend
from quietscore.storage.memory import MemoryBackend
from quietscore.storage.sql import SqlBackend, open_engine
from quietscore.storage.store import SummaryStore

__all__ = [
    "StorageBackend",
    "MemoryBackend",
    "SqlBackend",
    "open_engine",
    "SummaryStore",
]
