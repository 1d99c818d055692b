"""
SM-2 Spaced Repetition Scheduler.

Implements:
- SM-2 algorithm for review intervals and ease factors
- Per-key atomic record_review over a ScheduleStore
- Batch recording for completed lessons and review sessions

SM-2 Grade Scale:
0 - Complete blackout, wrong response
1 - Incorrect, but upon seeing answer remembered
2 - Incorrect, but answer seemed easy to recall
3 - Correct, but with significant difficulty
4 - Correct, with some hesitation
5 - Correct, with perfect recall
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from loguru import logger

from .errors import InvalidObservation
from .models import (
    PerformanceEntry,
    ReviewObservation,
    ScheduleRecord,
    ensure_utc,
    parse_is_correct,
    parse_response_time,
    utc_now,
)
from .store.base import ScheduleStore

if TYPE_CHECKING:
    from config import Settings

# =============================================================================
# SM-2 Algorithm
# =============================================================================


@dataclass
class SM2Config:
    """Configuration for SM-2 algorithm."""

    initial_ease_factor: float = 2.5
    minimum_ease_factor: float = 1.3
    first_interval: int = 1  # Days for first review
    second_interval: int = 6  # Days for second review
    success_threshold: int = 3  # Grades below this are lapses
    maximum_interval: int | None = 36500  # Cap in days, keeps due dates representable
    history_limit: int | None = None  # Newest N performance entries kept
    expected_response_ms: int = 10000  # Baseline for grading measured answers

    @classmethod
    def from_settings(cls, settings: Settings) -> SM2Config:
        return cls(
            initial_ease_factor=settings.sm2_initial_ease_factor,
            minimum_ease_factor=settings.sm2_minimum_ease_factor,
            first_interval=settings.sm2_first_interval,
            second_interval=settings.sm2_second_interval,
            success_threshold=settings.sm2_success_threshold,
            maximum_interval=settings.sm2_maximum_interval,
            history_limit=settings.sm2_history_limit,
            expected_response_ms=settings.sm2_expected_response_ms,
        )


class SM2Scheduler:
    """
    Implements the SM-2 spaced repetition algorithm.

    The SuperMemo 2 algorithm calculates review intervals from recall quality.
    Each record has:
    - Ease Factor (EF): How easy the concept is (2.5 default, min 1.3)
    - Interval: Days until next review
    - Repetitions: Consecutive successful recalls
    """

    def __init__(self, config: SM2Config | None = None):
        """
        Initialize SM-2 scheduler.

        Args:
            config: Custom configuration (uses defaults if None)
        """
        self.config = config or SM2Config()

    def new_record(self, user_id: str, concept_id: str) -> ScheduleRecord:
        """Default state for a pair that has never been reviewed."""
        return ScheduleRecord(
            user_id=user_id,
            concept_id=concept_id,
            ease_factor=self.config.initial_ease_factor,
            interval=0,
            repetitions=0,
        )

    def next_ease_factor(self, ease_factor: float, quality: int) -> float:
        # EF' = EF + (0.1 - (5 - q) * (0.08 + (5 - q) * 0.02))
        ef_delta = 0.1 - (5 - quality) * (0.08 + (5 - quality) * 0.02)
        return max(self.config.minimum_ease_factor, ease_factor + ef_delta)

    def apply(
        self,
        record: ScheduleRecord,
        quality: int,
        now: datetime,
        response_time_ms: float | None = None,
    ) -> ScheduleRecord:
        """
        Calculate the next schedule state after a review.

        The input record is not modified.

        Args:
            record: Current state for the (user, concept) pair
            quality: Clamped grade (0-5)
            now: Review time
            response_time_ms: Stored with the history entry only

        Returns:
            New ScheduleRecord with updated interval, ease factor and next_review
        """
        history = list(record.performance_history)
        history.append(PerformanceEntry(quality=quality, timestamp=now, response_time_ms=response_time_ms))
        if self.config.history_limit is not None:
            history = history[-self.config.history_limit :]

        if quality >= self.config.success_threshold:
            # Passed - advance
            if record.repetitions == 0:
                new_interval = self.config.first_interval
            elif record.repetitions == 1:
                new_interval = self.config.second_interval
            else:
                new_interval = round(record.interval * record.ease_factor)
            new_repetitions = record.repetitions + 1

            if self.config.maximum_interval is not None:
                new_interval = min(new_interval, self.config.maximum_interval)
        else:
            # Failed - reset to beginning
            new_repetitions = 0
            new_interval = self.config.first_interval

        return replace(
            record,
            ease_factor=self.next_ease_factor(record.ease_factor, quality),
            interval=new_interval,
            repetitions=new_repetitions,
            last_review=now,
            next_review=now + timedelta(days=new_interval),
            performance_history=history,
        )

    def grade_from_response(
        self,
        is_correct: bool,
        response_ms: float,
        expected_ms: float | None = None,
    ) -> int:
        """
        Convert a measured response to an SM-2 grade.

        Args:
            is_correct: Whether the answer was correct
            response_ms: Time taken to respond
            expected_ms: Expected response time (config default if None)

        Returns:
            Grade 0-5
        """
        if expected_ms is None:
            expected_ms = self.config.expected_response_ms

        # Speed band: 2 under half the expected time, 1 under it, 0 otherwise
        if response_ms < expected_ms * 0.5:
            speed = 2
        elif response_ms < expected_ms:
            speed = 1
        else:
            speed = 0

        # Correct answers grade 3-5, wrong ones 0-2 (a quick miss almost knew it)
        return (3 if is_correct else 0) + speed


# =============================================================================
# Review Scheduler
# =============================================================================


class ReviewScheduler:
    """
    Records reviews against a ScheduleStore.

    Each record_review call is a read-modify-write on one (user, concept) key,
    run as a single ScheduleStore.update; calls on different keys only wait on
    each other where the database locks more than one row (SQLite writes
    are database-wide). A missing record is created with default SM-2 state.
    """

    def __init__(
        self,
        store: ScheduleStore,
        sm2: SM2Scheduler | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        """
        Initialize the scheduler.

        Args:
            store: Persistence for schedule records
            sm2: SM2Scheduler (creates default if None)
            clock: Source of the current time
        """
        self.store = store
        self.sm2 = sm2 or SM2Scheduler()
        self.clock = clock

    def record_review(
        self,
        user_id: str,
        concept_id: str,
        observation: ReviewObservation,
        now: datetime | None = None,
    ) -> ScheduleRecord:
        """
        Record a review and update scheduling state.

        Args:
            user_id: Learner identifier
            concept_id: Reviewed concept identifier
            observation: Quality (0-5, clamped) and optional response time
            now: Review time (defaults to the scheduler clock)

        Returns:
            Updated ScheduleRecord, as persisted

        Raises:
            InvalidObservation: quality or response time unusable (nothing written)
            StorageFailure: the store failed (propagated unmodified)
        """
        quality, response_time_ms = self._validate(user_id, concept_id, observation)
        return self._apply(user_id, concept_id, quality, response_time_ms, now)

    def record_reviews(
        self,
        user_id: str,
        reviews: Iterable[tuple[str, ReviewObservation]],
        now: datetime | None = None,
    ) -> list[ScheduleRecord]:
        """
        Record several (concept_id, observation) reviews in order.

        Every observation is validated before any is applied, so a malformed
        one rejects the whole batch without writing anything.
        """
        parsed = [
            (concept_id, *self._validate(user_id, concept_id, observation))
            for concept_id, observation in reviews
        ]
        return [
            self._apply(user_id, concept_id, quality, response_time_ms, now)
            for concept_id, quality, response_time_ms in parsed
        ]

    def _validate(
        self,
        user_id: str,
        concept_id: str,
        observation: ReviewObservation,
    ) -> tuple[int, float | None]:
        try:
            if observation.is_measured:
                return self._grade_measured(observation)
            return observation.validated()
        except InvalidObservation as e:
            logger.warning(f"Rejected review for {user_id}/{concept_id}: {e}")
            raise

    def _grade_measured(self, observation: ReviewObservation) -> tuple[int, float]:
        is_correct = parse_is_correct(observation.is_correct)
        response_time_ms = parse_response_time(observation.response_time_ms)
        if response_time_ms is None:
            raise InvalidObservation(
                "response_time_ms", None, "required to grade a measured answer"
            )
        return self.sm2.grade_from_response(is_correct, response_time_ms), response_time_ms

    def _apply(
        self,
        user_id: str,
        concept_id: str,
        quality: int,
        response_time_ms: float | None,
        now: datetime | None,
    ) -> ScheduleRecord:
        review_time = ensure_utc(now if now is not None else self.clock())

        def advance(current: ScheduleRecord | None) -> ScheduleRecord:
            if current is None:
                current = self.sm2.new_record(user_id, concept_id)
            return self.sm2.apply(current, quality, review_time, response_time_ms)

        updated = self.store.update(user_id, concept_id, advance)

        if quality < self.sm2.config.success_threshold:
            logger.debug(f"Lapse for {user_id}/{concept_id}: quality={quality}, schedule reset")

        logger.info(
            f"Recorded review for {user_id}/{concept_id}: quality={quality}, "
            f"interval={updated.interval}d, ease_factor={updated.ease_factor:.2f}, "
            f"next_review={updated.next_review.isoformat()}"
        )

        return updated
