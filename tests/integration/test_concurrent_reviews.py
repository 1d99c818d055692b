"""
Concurrency tests for ReviewScheduler.

Many workers recording reviews at once must never lose an update on the same
key, and must not serialize work on unrelated keys.
"""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from recall_scheduler import ReviewObservation, ReviewScheduler

WORKERS = 8


@pytest.mark.slow
def test_same_key_reviews_are_not_lost(store, clock):
    scheduler = ReviewScheduler(store, clock=clock)
    reviews = 40

    with ThreadPoolExecutor(max_workers=WORKERS) as pool:
        futures = [
            pool.submit(scheduler.record_review, "u1", "c1", ReviewObservation(quality=4))
            for _ in range(reviews)
        ]
        for future in futures:
            future.result()

    record = store.get("u1", "c1")
    assert record.repetitions == reviews
    assert len(record.performance_history) == reviews


@pytest.mark.slow
def test_different_keys_proceed_independently(store, clock):
    scheduler = ReviewScheduler(store, clock=clock)
    concepts = [f"c{i}" for i in range(10)]

    with ThreadPoolExecutor(max_workers=WORKERS) as pool:
        futures = [
            pool.submit(scheduler.record_review, "u1", concept, ReviewObservation(quality=5))
            for concept in concepts
            for _ in range(3)
        ]
        for future in futures:
            future.result()

    for concept in concepts:
        record = store.get("u1", concept)
        assert record.repetitions == 3
        assert record.interval == 16


def test_held_key_does_not_block_other_keys(memory_store, clock):
    scheduler = ReviewScheduler(memory_store, clock=clock)
    finished = threading.Event()

    def review_other_key():
        scheduler.record_review("u1", "c2", ReviewObservation(quality=5))
        finished.set()

    with memory_store.locked("u1", "c1"):
        worker = threading.Thread(target=review_other_key)
        worker.start()
        assert finished.wait(timeout=2)
    worker.join()

    assert memory_store.get("u1", "c2").repetitions == 1


def test_readers_see_whole_records_during_writes(memory_store, clock):
    scheduler = ReviewScheduler(memory_store, clock=clock)
    scheduler.record_review("u1", "c1", ReviewObservation(quality=4))
    stop = threading.Event()
    torn = []

    def read_loop():
        while not stop.is_set():
            for record in memory_store.scan_by_user("u1"):
                if record.repetitions != len(record.performance_history):
                    torn.append(record)

    reader = threading.Thread(target=read_loop)
    reader.start()
    for _ in range(200):
        scheduler.record_review("u1", "c1", ReviewObservation(quality=4))
    stop.set()
    reader.join()

    assert torn == []
