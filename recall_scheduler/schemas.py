"""
JSON response models for the completion handler and review-session builder.

Field names follow the camelCase convention of the surrounding API layer.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from .models import PerformanceEntry, ScheduleRecord
from .stats import ScheduleStats


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_json_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class PerformanceEntrySchema(_CamelModel):
    """One observation in a record's performance history."""

    quality: int
    timestamp: datetime
    response_time: float | None = Field(default=None, alias="responseTime")

    @classmethod
    def from_entry(cls, entry: PerformanceEntry) -> PerformanceEntrySchema:
        return cls(
            quality=entry.quality,
            timestamp=entry.timestamp,
            response_time=entry.response_time_ms,
        )


class ScheduleRecordSchema(_CamelModel):
    """Serialized schedule for one concept."""

    user_id: str = Field(alias="userId")
    concept_id: str = Field(alias="conceptId")
    ease_factor: float = Field(alias="easeFactor")
    interval: int
    repetitions: int
    next_review: datetime | None = Field(default=None, alias="nextReview")
    last_review: datetime | None = Field(default=None, alias="lastReview")
    performance: list[PerformanceEntrySchema] = Field(default_factory=list)

    @classmethod
    def from_record(cls, record: ScheduleRecord) -> ScheduleRecordSchema:
        return cls(
            user_id=record.user_id,
            concept_id=record.concept_id,
            ease_factor=record.ease_factor,
            interval=record.interval,
            repetitions=record.repetitions,
            next_review=record.next_review,
            last_review=record.last_review,
            performance=[PerformanceEntrySchema.from_entry(e) for e in record.performance_history],
        )


class ScheduleStatsSchema(_CamelModel):
    """Serialized progress summary."""

    total_concepts: int = Field(alias="totalConcepts")
    due_now: int = Field(alias="dueNow")
    mastered_concepts: int = Field(alias="masteredConcepts")
    retention_rate: float = Field(alias="retentionRate")
    average_interval: float = Field(alias="averageInterval")

    @classmethod
    def from_stats(cls, stats: ScheduleStats) -> ScheduleStatsSchema:
        return cls(**stats.to_dict())
