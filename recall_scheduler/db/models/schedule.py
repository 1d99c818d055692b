"""
Schedule Models.

SQLAlchemy models for persisted SM-2 state:
- One schedule row per (learner, concept)
- Append-only review observations per schedule row
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, Index, Integer, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base


class ScheduleRecordRow(Base):
    """
    SM-2 state per learner per concept.

    Timestamps are written in UTC. SQLite drops the zone on storage, so
    readers re-attach UTC to naive values.
    """

    __tablename__ = "schedule_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(Text, nullable=False)
    concept_id: Mapped[str] = mapped_column(Text, nullable=False)

    # SM-2 state
    ease_factor: Mapped[float] = mapped_column(Float, nullable=False, default=2.5)
    interval_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    repetitions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    next_review: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    last_review: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Relationships
    observations: Mapped[list[ReviewObservationRow]] = relationship(
        back_populates="schedule",
        cascade="all, delete-orphan",
        order_by="ReviewObservationRow.id",
    )

    __table_args__ = (
        UniqueConstraint("user_id", "concept_id", name="uq_schedule_user_concept"),
        Index("idx_schedule_user_next_review", "user_id", "next_review"),
    )

    def __repr__(self) -> str:
        return (
            f"<ScheduleRecordRow user={self.user_id} concept={self.concept_id} "
            f"interval={self.interval_days} next={self.next_review}>"
        )


class ReviewObservationRow(Base):
    """A single review event in a schedule's performance history."""

    __tablename__ = "review_observations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    schedule_id: Mapped[int] = mapped_column(
        ForeignKey("schedule_records.id", ondelete="CASCADE"), nullable=False, index=True
    )
    quality: Mapped[int] = mapped_column(Integer, nullable=False)
    reviewed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    response_time_ms: Mapped[float | None] = mapped_column(Float)

    schedule: Mapped[ScheduleRecordRow] = relationship(back_populates="observations")

    def __repr__(self) -> str:
        return f"<ReviewObservationRow schedule={self.schedule_id} quality={self.quality}>"
