"""
In-memory schedule store.

Used by tests and single-process deployments. Records are copied on the way
in and on the way out so callers can never mutate stored state.
"""

from __future__ import annotations

import threading

from loguru import logger

from ..models import ScheduleKey, ScheduleRecord
from .base import ScheduleStore


class InMemoryScheduleStore(ScheduleStore):
    """Dict-backed ScheduleStore keyed by ScheduleKey."""

    def __init__(self):
        super().__init__()
        self._records: dict[ScheduleKey, ScheduleRecord] = {}
        self._lock = threading.Lock()

        logger.debug("InMemoryScheduleStore initialized")

    def get(self, user_id: str, concept_id: str) -> ScheduleRecord | None:
        with self._lock:
            record = self._records.get(ScheduleKey(user_id, concept_id))
        return record.copy() if record is not None else None

    def put(self, record: ScheduleRecord) -> None:
        stored = record.copy()
        with self._lock:
            self._records[stored.key] = stored

    def _load_user_records(self, user_id: str) -> list[ScheduleRecord]:
        with self._lock:
            records = [r for key, r in self._records.items() if key.user_id == user_id]
        return [r.copy() for r in records]

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
