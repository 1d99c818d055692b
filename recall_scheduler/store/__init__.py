"""
Schedule persistence.

- ScheduleStore: interface with per-key locking
- InMemoryScheduleStore: dict-backed store for tests and single processes
- SqlScheduleStore: SQLAlchemy store for production
"""

from .base import KeyedLock, RecordScan, ScheduleStore
from .memory import InMemoryScheduleStore
from .sql import SqlScheduleStore

__all__ = [
    "ScheduleStore",
    "KeyedLock",
    "RecordScan",
    "InMemoryScheduleStore",
    "SqlScheduleStore",
]
