"""
Recall Scheduler: spaced-repetition scheduling engine.

Decides, for every (learner, concept) pair, when the concept should next be
reviewed, using the SM-2 algorithm driven by 0-5 recall-quality feedback.

Components:
- ScheduleStore: keyed persistence (in-memory and SQLAlchemy)
- ReviewScheduler: per-key atomic SM-2 updates
- DueSetQuery: due concepts, most overdue first
- StatsAggregator: mastery and retention summaries
- ReviewEngine: facade wiring the above from settings
"""

from .due import DueSetQuery
from .engine import ReviewEngine, create_engine_from_settings, create_store_from_settings
from .errors import InvalidObservation, RecallSchedulerError, StorageFailure
from .models import PerformanceEntry, ReviewObservation, ScheduleKey, ScheduleRecord
from .scheduler import ReviewScheduler, SM2Config, SM2Scheduler
from .stats import ScheduleStats, StatsAggregator
from .store import InMemoryScheduleStore, ScheduleStore, SqlScheduleStore

__all__ = [
    # Data
    "ScheduleKey",
    "ScheduleRecord",
    "PerformanceEntry",
    "ReviewObservation",
    # Persistence
    "ScheduleStore",
    "InMemoryScheduleStore",
    "SqlScheduleStore",
    # Scheduling
    "SM2Config",
    "SM2Scheduler",
    "ReviewScheduler",
    # Queries
    "DueSetQuery",
    "StatsAggregator",
    "ScheduleStats",
    # Facade
    "ReviewEngine",
    "create_engine_from_settings",
    "create_store_from_settings",
    # Errors
    "RecallSchedulerError",
    "InvalidObservation",
    "StorageFailure",
]
