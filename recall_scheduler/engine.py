"""
In-process entry point for lesson-completion and review-session handlers.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from datetime import datetime

from loguru import logger

from config import Settings, get_settings

from .db.database import create_db_engine
from .due import DueSetQuery
from .models import ReviewObservation, ScheduleRecord, utc_now
from .scheduler import ReviewScheduler, SM2Config, SM2Scheduler
from .stats import ScheduleStats, StatsAggregator
from .store import InMemoryScheduleStore, ScheduleStore, SqlScheduleStore


class ReviewEngine:
    """
    Bundles the scheduler, due-set query and stats aggregator over one store.

    All three share the same clock so ``now`` is consistent between them.
    """

    def __init__(
        self,
        store: ScheduleStore,
        config: SM2Config | None = None,
        mastery_repetitions: int = 3,
        mastery_ease_factor: float = 2.5,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.scheduler = ReviewScheduler(store, SM2Scheduler(config), clock=clock)
        self.due_query = DueSetQuery(store, clock=clock)
        self.stats = StatsAggregator(
            store,
            mastery_repetitions=mastery_repetitions,
            mastery_ease_factor=mastery_ease_factor,
            clock=clock,
        )

    def record_review(
        self,
        user_id: str,
        concept_id: str,
        observation: ReviewObservation,
        now: datetime | None = None,
    ) -> ScheduleRecord:
        return self.scheduler.record_review(user_id, concept_id, observation, now=now)

    def record_reviews(
        self,
        user_id: str,
        reviews: Iterable[tuple[str, ReviewObservation]],
        now: datetime | None = None,
    ) -> list[ScheduleRecord]:
        return self.scheduler.record_reviews(user_id, reviews, now=now)

    def get_record(self, user_id: str, concept_id: str) -> ScheduleRecord | None:
        return self.store.get(user_id, concept_id)

    def get_due(
        self,
        user_id: str,
        now: datetime | None = None,
        limit: int | None = None,
    ) -> list[ScheduleRecord]:
        return self.due_query.get_due(user_id, now=now, limit=limit)

    def get_stats(self, user_id: str, now: datetime | None = None) -> ScheduleStats:
        return self.stats.get_stats(user_id, now=now)


def create_store_from_settings(settings: Settings) -> ScheduleStore:
    """Build the configured ScheduleStore."""
    if settings.store_backend == "memory":
        return InMemoryScheduleStore()

    engine = create_db_engine(settings.database_url, echo=settings.sql_echo)
    return SqlScheduleStore(engine)


def create_engine_from_settings(
    settings: Settings | None = None,
    clock: Callable[[], datetime] = utc_now,
) -> ReviewEngine:
    """Build a ReviewEngine from application settings."""
    settings = settings or get_settings()
    store = create_store_from_settings(settings)

    logger.info(f"ReviewEngine using {settings.store_backend} store")

    return ReviewEngine(
        store,
        config=SM2Config.from_settings(settings),
        mastery_repetitions=settings.mastery_repetitions,
        mastery_ease_factor=settings.mastery_ease_factor,
        clock=clock,
    )
