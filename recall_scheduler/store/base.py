"""
Schedule store interface and per-key locking.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from collections.abc import Callable, Hashable, Iterable, Iterator
from contextlib import contextmanager
from datetime import datetime

from ..models import ScheduleKey, ScheduleRecord


class KeyedLock:
    """
    One mutex per key, created on demand.

    Locks are reference counted and dropped once no thread holds or waits on
    them, so the registry only grows with the number of keys in use.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[Hashable, list] = {}  # key -> [lock, refcount]

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        with self._guard:
            entry = self._locks.get(key)
            if entry is None:
                entry = self._locks[key] = [threading.Lock(), 0]
            entry[1] += 1
        lock = entry[0]
        try:
            with lock:
                yield
        finally:
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[key]

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


class RecordScan:
    """Lazy, restartable view over a user's records; each iteration re-reads the store."""

    def __init__(self, loader: Callable[[], Iterable[ScheduleRecord]]):
        self._loader = loader

    def __iter__(self) -> Iterator[ScheduleRecord]:
        return iter(self._loader())


class ScheduleStore(ABC):
    """
    Durable keyed storage for ScheduleRecord.

    Implementations must:
    - return None from get() for a key never written
    - make put() replace the whole record for its key atomically
    - make update() a single read-modify-write that no other writer of the
      same key, in this process or another, can interleave with
    - never expose a partially written record to readers
    - surface storage errors as StorageFailure without retrying
    """

    def __init__(self):
        self._key_locks = KeyedLock()

    @abstractmethod
    def get(self, user_id: str, concept_id: str) -> ScheduleRecord | None:
        """Load the record for a key, or None if it has never been written."""

    @abstractmethod
    def put(self, record: ScheduleRecord) -> None:
        """Upsert the full record for its key."""

    @abstractmethod
    def _load_user_records(self, user_id: str) -> Iterable[ScheduleRecord]:
        """Read every record of a user once."""

    def scan_by_user(self, user_id: str) -> RecordScan:
        """All records of a user, in no particular order."""
        return RecordScan(lambda: self._load_user_records(user_id))

    def scan_due(self, user_id: str, now: datetime) -> RecordScan:
        """Records of a user whose next review is at or before ``now``."""
        return RecordScan(lambda: self._load_due_records(user_id, now))

    def _load_due_records(self, user_id: str, now: datetime) -> Iterable[ScheduleRecord]:
        return [r for r in self._load_user_records(user_id) if r.is_due(now)]

    def count_by_user(self, user_id: str) -> int:
        return sum(1 for _ in self.scan_by_user(user_id))

    @contextmanager
    def locked(self, user_id: str, concept_id: str) -> Iterator[None]:
        """Serialize read-modify-write sequences on a single key."""
        with self._key_locks.hold(ScheduleKey(user_id, concept_id)):
            yield

    def update(
        self,
        user_id: str,
        concept_id: str,
        fn: Callable[[ScheduleRecord | None], ScheduleRecord],
    ) -> ScheduleRecord:
        """
        Atomically replace the record for a key with ``fn(current)``.

        ``current`` is None for a key never written. Nothing is stored if
        ``fn`` raises.
        """
        with self.locked(user_id, concept_id):
            updated = fn(self.get(user_id, concept_id))
            self.put(updated)
            return updated
