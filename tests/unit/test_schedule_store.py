"""
Unit tests for the in-memory store, record helpers and per-key locking.
"""

import threading
from datetime import datetime, timedelta, timezone

import pytest

from recall_scheduler import ScheduleRecord
from recall_scheduler.models import PerformanceEntry
from recall_scheduler.store import InMemoryScheduleStore, KeyedLock

T0 = datetime(2024, 3, 1, tzinfo=timezone.utc)


def make_record(user="u1", concept="c1", **kwargs):
    defaults = {"interval": 1, "repetitions": 1, "next_review": T0, "last_review": T0}
    defaults.update(kwargs)
    return ScheduleRecord(user_id=user, concept_id=concept, **defaults)


class TestInMemoryScheduleStore:
    def test_unknown_key_is_absent_every_time(self):
        store = InMemoryScheduleStore()
        assert store.get("u1", "c1") is None
        assert store.get("u1", "c1") is None
        assert len(store) == 0

    def test_returned_records_are_copies(self):
        store = InMemoryScheduleStore()
        record = make_record(performance_history=[PerformanceEntry(quality=4, timestamp=T0)])
        store.put(record)

        record.performance_history.append(PerformanceEntry(quality=0, timestamp=T0))
        loaded = store.get("u1", "c1")
        loaded.interval = 99

        fresh = store.get("u1", "c1")
        assert len(fresh.performance_history) == 1
        assert fresh.interval == 1

    def test_keys_do_not_collide_on_concatenation(self):
        store = InMemoryScheduleStore()
        store.put(make_record(user="a_b", concept="c"))
        store.put(make_record(user="a", concept="b_c"))

        assert len(store) == 2
        assert store.count_by_user("a") == 1

    def test_scan_is_restartable(self):
        store = InMemoryScheduleStore()
        store.put(make_record(concept="c1"))
        scan = store.scan_by_user("u1")

        assert len(list(scan)) == 1
        store.put(make_record(concept="c2"))
        assert sorted(r.concept_id for r in scan) == ["c1", "c2"]

    def test_update_creates_and_advances_record(self):
        store = InMemoryScheduleStore()
        seen = []

        def bump(current):
            seen.append(current)
            base = current or make_record(repetitions=0)
            return make_record(repetitions=base.repetitions + 1)

        store.update("u1", "c1", bump)
        updated = store.update("u1", "c1", bump)

        assert seen[0] is None
        assert seen[1].repetitions == 1
        assert updated.repetitions == 2
        assert store.get("u1", "c1").repetitions == 2

    def test_update_stores_nothing_when_fn_raises(self):
        store = InMemoryScheduleStore()
        store.put(make_record())

        def fail(current):
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            store.update("u1", "c1", fail)
        assert store.get("u1", "c1").repetitions == 1

    def test_update_holds_the_key_lock(self):
        store = InMemoryScheduleStore()
        entered = threading.Event()

        def other_writer():
            with store.locked("u1", "c1"):
                entered.set()

        worker = threading.Thread(target=other_writer)

        def wait_for_writer(current):
            worker.start()
            assert not entered.wait(timeout=0.2)
            return make_record()

        store.update("u1", "c1", wait_for_writer)
        worker.join(timeout=2)
        assert entered.is_set()


class TestScheduleRecord:
    @pytest.mark.parametrize(
        "offset,expected",
        [
            (timedelta(hours=-1), 0),
            (timedelta(0), 0),
            (timedelta(hours=23, minutes=59), 0),
            (timedelta(days=1), 1),
            (timedelta(days=3, hours=12), 3),
        ],
    )
    def test_days_overdue(self, offset, expected):
        assert make_record().days_overdue(T0 + offset) == expected

    def test_unscheduled_record_is_due_but_not_overdue(self):
        record = make_record(next_review=None)
        assert record.is_due(T0)
        assert record.days_overdue(T0) == 0


class TestKeyedLock:
    def test_registry_is_emptied_after_use(self):
        locks = KeyedLock()
        with locks.hold(("u1", "c1")):
            assert len(locks) == 1
        assert len(locks) == 0

    def test_different_keys_do_not_block(self):
        locks = KeyedLock()
        entered = threading.Event()

        def other_key():
            with locks.hold(("u1", "c2")):
                entered.set()

        with locks.hold(("u1", "c1")):
            worker = threading.Thread(target=other_key)
            worker.start()
            assert entered.wait(timeout=2)
        worker.join()

    def test_same_key_waits(self):
        locks = KeyedLock()
        entered = threading.Event()

        def same_key():
            with locks.hold(("u1", "c1")):
                entered.set()

        with locks.hold(("u1", "c1")):
            worker = threading.Thread(target=same_key)
            worker.start()
            assert not entered.wait(timeout=0.2)
        worker.join(timeout=2)
        assert entered.is_set()
