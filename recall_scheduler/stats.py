"""
Schedule statistics per learner.

Mastered: a concept that survived ``mastery_repetitions`` consecutive
successful reviews without its ease factor dropping below
``mastery_ease_factor`` (the neutral starting value).
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import asdict, dataclass
from datetime import datetime
from .models import ScheduleRecord, ensure_utc, utc_now
from .store.base import ScheduleStore


@dataclass(frozen=True)
class ScheduleStats:
    """Aggregate summary of one learner's schedule."""

    total_concepts: int
    due_now: int
    mastered_concepts: int
    retention_rate: float  # Percentage of concepts mastered, one decimal
    average_interval: float  # Days, one decimal

    def to_dict(self) -> dict[str, int | float]:
        return asdict(self)


class StatsAggregator:
    """Derives ScheduleStats from a single scan of a user's records."""

    def __init__(
        self,
        store: ScheduleStore,
        mastery_repetitions: int = 3,
        mastery_ease_factor: float = 2.5,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.mastery_repetitions = mastery_repetitions
        self.mastery_ease_factor = mastery_ease_factor
        self.clock = clock

    def is_mastered(self, record: ScheduleRecord) -> bool:
        return (
            record.repetitions >= self.mastery_repetitions
            and record.ease_factor >= self.mastery_ease_factor
        )

    def get_stats(self, user_id: str, now: datetime | None = None) -> ScheduleStats:
        now = ensure_utc(now if now is not None else self.clock())
        records = list(self.store.scan_by_user(user_id))

        total = len(records)
        due_now = sum(1 for r in records if r.is_due(now))
        mastered = sum(1 for r in records if self.is_mastered(r))

        if total == 0:
            return ScheduleStats(
                total_concepts=0,
                due_now=0,
                mastered_concepts=0,
                retention_rate=0.0,
                average_interval=0.0,
            )

        return ScheduleStats(
            total_concepts=total,
            due_now=due_now,
            mastered_concepts=mastered,
            retention_rate=round(mastered / total * 100, 1),
            average_interval=round(sum(r.interval for r in records) / total, 1),
        )
