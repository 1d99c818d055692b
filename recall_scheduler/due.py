"""
Due-set query: what should a learner review right now.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone

from loguru import logger

from .models import ScheduleRecord, ensure_utc, utc_now
from .store.base import ScheduleStore

_NEVER_SCHEDULED = datetime.min.replace(tzinfo=timezone.utc)


def _urgency(record: ScheduleRecord) -> tuple[datetime, str]:
    return (record.next_review or _NEVER_SCHEDULED, record.concept_id)


class DueSetQuery:
    """Read-only scan returning due records, most overdue first."""

    def __init__(self, store: ScheduleStore, clock: Callable[[], datetime] = utc_now):
        self.store = store
        self.clock = clock

    def get_due(
        self,
        user_id: str,
        now: datetime | None = None,
        limit: int | None = None,
    ) -> list[ScheduleRecord]:
        """
        Get records whose next review is at or before ``now``.

        Args:
            user_id: Learner identifier
            now: Query time (defaults to the clock)
            limit: Maximum records to return (None for all)

        Returns:
            Due records sorted ascending by next_review (ties by concept id)
        """
        now = ensure_utc(now if now is not None else self.clock())

        due = [r for r in self.store.scan_due(user_id, now) if r.is_due(now)]
        due.sort(key=_urgency)

        if limit is not None:
            due = due[: max(0, limit)]

        if due:
            logger.debug(
                f"Found {len(due)} due concepts for {user_id}, "
                f"most overdue by {due[0].days_overdue(now)}d"
            )
        else:
            logger.debug(f"No due concepts for {user_id}")
        return due
