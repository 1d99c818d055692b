"""
Schedule state data classes.

One ScheduleRecord exists per (user, concept) pair. Records are born on the
first recorded review and carry the SM-2 state plus the append-only
performance history for that pair.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, NamedTuple

from .errors import InvalidObservation

MIN_QUALITY = 0
MAX_QUALITY = 5


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime; naive values are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class ScheduleKey(NamedTuple):
    """Structured (user, concept) key for a schedule record."""

    user_id: str
    concept_id: str


@dataclass(frozen=True)
class PerformanceEntry:
    """A single recorded review event."""

    quality: int  # 0-5 SM-2 scale, already clamped
    timestamp: datetime
    response_time_ms: float | None = None


@dataclass
class ScheduleRecord:
    """SM-2 scheduling state for one concept of one learner."""

    user_id: str
    concept_id: str
    ease_factor: float = 2.5
    interval: int = 0  # Days until next review, 0 before the first review
    repetitions: int = 0  # Consecutive successful reviews since the last lapse
    next_review: datetime | None = None
    last_review: datetime | None = None
    performance_history: list[PerformanceEntry] = field(default_factory=list)

    @property
    def key(self) -> ScheduleKey:
        return ScheduleKey(self.user_id, self.concept_id)

    def is_due(self, now: datetime) -> bool:
        """Check if this concept is due for review at ``now``."""
        if self.next_review is None:
            return True
        return self.next_review <= now

    def days_overdue(self, now: datetime) -> int:
        """Whole days past the scheduled review time."""
        if self.next_review is None or now < self.next_review:
            return 0
        return (now - self.next_review).days

    def copy(self) -> ScheduleRecord:
        """Return a copy that shares no mutable state with this record."""
        return replace(self, performance_history=list(self.performance_history))


@dataclass(frozen=True)
class ReviewObservation:
    """
    Raw review feedback as supplied by a caller.

    Either a 0-5 ``quality`` is given directly, or the answer was measured
    (``is_correct`` plus ``response_time_ms``) and the scheduler grades it.
    Values are kept as given and parsed on use, raising InvalidObservation
    for anything unusable.
    """

    quality: Any = None
    response_time_ms: Any = None
    is_correct: Any = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> ReviewObservation:
        """Build from a request body such as ``{"quality": 4, "responseTime": 3200}``."""
        return cls(
            quality=payload.get("quality"),
            response_time_ms=payload.get("responseTime", payload.get("response_time_ms")),
            is_correct=payload.get("isCorrect", payload.get("is_correct")),
        )

    @property
    def is_measured(self) -> bool:
        """True when the grade must be derived from correctness and timing."""
        return self.quality is None and self.is_correct is not None

    def validated(self) -> tuple[int, float | None]:
        """Return (clamped quality, response time) or raise InvalidObservation."""
        return parse_quality(self.quality), parse_response_time(self.response_time_ms)


def _parse_number(field_name: str, value: Any) -> float:
    if isinstance(value, bool) or value is None:
        raise InvalidObservation(field_name, value, "expected a number")

    if isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            raise InvalidObservation(field_name, value, "not a number") from None
    elif isinstance(value, (int, float)):
        number = float(value)
    else:
        raise InvalidObservation(field_name, value, f"unsupported type {type(value).__name__}")

    if not math.isfinite(number):
        raise InvalidObservation(field_name, value, "must be finite")
    return number


def parse_quality(value: Any) -> int:
    """
    Parse a recall-quality score.

    Numbers and numeric strings are accepted and clamped into [0, 5], then
    rounded to the nearest integer. Booleans, None, NaN and infinities are
    rejected.
    """
    number = _parse_number("quality", value)
    clamped = max(float(MIN_QUALITY), min(float(MAX_QUALITY), number))
    return int(round(clamped))


def parse_response_time(value: Any) -> float | None:
    """Parse an optional non-negative response time in milliseconds (numbers or numeric strings)."""
    if value is None:
        return None
    number = _parse_number("response_time_ms", value)
    if number < 0:
        raise InvalidObservation("response_time_ms", value, "must not be negative")
    return number


def parse_is_correct(value: Any) -> bool:
    if not isinstance(value, bool):
        raise InvalidObservation("is_correct", value, "expected true or false")
    return value
