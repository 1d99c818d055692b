"""
SQLAlchemy-backed schedule store.

Persists one row per (user, concept) in ``schedule_records`` and the
performance history in ``review_observations``. Every put() runs in a single
transaction, so readers only ever see a fully written record. update() reads,
transforms and writes inside one write transaction: ``BEGIN IMMEDIATE`` on
SQLite and a transaction-scoped advisory lock on PostgreSQL, so stores in
other processes sharing the database wait for it instead of interleaving.

Database errors are surfaced as StorageFailure and are never retried here:
retrying a write of unknown outcome could advance a schedule twice.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from typing import TypeVar

from loguru import logger
from sqlalchemy import Engine, func, or_, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from ..db.database import create_session_factory, init_db, session_scope
from ..db.models import ReviewObservationRow, ScheduleRecordRow
from ..errors import StorageFailure
from ..models import PerformanceEntry, ScheduleRecord, ensure_utc
from .base import ScheduleStore

T = TypeVar("T")


def _entry_from_row(row: ReviewObservationRow) -> PerformanceEntry:
    return PerformanceEntry(
        quality=row.quality,
        timestamp=ensure_utc(row.reviewed_at),
        response_time_ms=row.response_time_ms,
    )


def _record_from_row(row: ScheduleRecordRow) -> ScheduleRecord:
    return ScheduleRecord(
        user_id=row.user_id,
        concept_id=row.concept_id,
        ease_factor=row.ease_factor,
        interval=row.interval_days,
        repetitions=row.repetitions,
        next_review=ensure_utc(row.next_review) if row.next_review else None,
        last_review=ensure_utc(row.last_review) if row.last_review else None,
        performance_history=[_entry_from_row(o) for o in row.observations],
    )


def _normalized(entry: PerformanceEntry) -> tuple:
    return (entry.quality, ensure_utc(entry.timestamp), entry.response_time_ms)


def _trimmed_prefix(stored: list[PerformanceEntry], wanted: list[PerformanceEntry]) -> int | None:
    """
    Number of oldest stored entries dropped from ``wanted``.

    History only grows at the end and is only trimmed at the front, so
    ``wanted`` must equal ``stored[k:]`` followed by new entries for some k.
    Returns None when no such k exists.
    """
    stored_keys = [_normalized(e) for e in stored]
    wanted_keys = [_normalized(e) for e in wanted]
    for k in range(len(stored_keys) + 1):
        kept = stored_keys[k:]
        if wanted_keys[: len(kept)] == kept:
            return k
    return None


class SqlScheduleStore(ScheduleStore):
    """
    ScheduleStore on any SQLAlchemy database.

    Handles:
    - Upsert of SM-2 state keyed by (user_id, concept_id)
    - Incremental append (and front trimming) of performance history
    - Indexed due-date scans per user
    """

    def __init__(self, engine: Engine, create_schema: bool = True):
        """
        Initialize the SQL store.

        Args:
            engine: SQLAlchemy engine to use
            create_schema: Create missing tables on startup
        """
        super().__init__()
        self.engine = engine
        self._session_factory = create_session_factory(engine)

        if create_schema:
            self.init_schema()

        logger.info(f"SqlScheduleStore initialized on {engine.url.render_as_string(hide_password=True)}")

    def init_schema(self) -> None:
        """Create the schedule tables if they do not exist."""
        try:
            init_db(self.engine)
        except SQLAlchemyError as e:
            raise StorageFailure("init_schema", str(e)) from e

    def _run(self, operation: str, work: Callable[[Session], T]) -> T:
        try:
            with session_scope(self._session_factory) as session:
                return work(session)
        except SQLAlchemyError as e:
            logger.error(f"Schedule store {operation} failed: {e}")
            raise StorageFailure(operation, str(e)) from e

    @staticmethod
    def _select_row(user_id: str, concept_id: str):
        return (
            select(ScheduleRecordRow)
            .where(
                ScheduleRecordRow.user_id == user_id,
                ScheduleRecordRow.concept_id == concept_id,
            )
            .options(selectinload(ScheduleRecordRow.observations))
        )

    # =========================================================================
    # ScheduleStore Operations
    # =========================================================================

    def get(self, user_id: str, concept_id: str) -> ScheduleRecord | None:
        def work(session: Session) -> ScheduleRecord | None:
            row = session.scalars(self._select_row(user_id, concept_id)).one_or_none()
            return _record_from_row(row) if row is not None else None

        return self._run("get", work)

    def put(self, record: ScheduleRecord) -> None:
        def work(session: Session) -> None:
            row = self._lock_row(session, record.user_id, record.concept_id)
            self._write(session, row, record)

        self._run("put", work)

    def update(
        self,
        user_id: str,
        concept_id: str,
        fn: Callable[[ScheduleRecord | None], ScheduleRecord],
    ) -> ScheduleRecord:
        def work(session: Session) -> ScheduleRecord:
            row = self._lock_row(session, user_id, concept_id)
            updated = fn(_record_from_row(row) if row is not None else None)
            self._write(session, row, updated)
            return updated

        with self.locked(user_id, concept_id):
            return self._run("update", work)

    def _lock_row(self, session: Session, user_id: str, concept_id: str) -> ScheduleRecordRow | None:
        """Open the write transaction for a key and load its row, if any."""
        dialect = self.engine.dialect.name
        if dialect == "sqlite":
            # Takes the database write lock up front; a deferred transaction
            # could not stop another connection inserting the same new key.
            session.execute(text("BEGIN IMMEDIATE"))
        elif dialect == "postgresql":
            # FOR UPDATE has no row to lock for a key never written.
            lock_key = func.hashtextextended(f"{user_id}\x1f{concept_id}", 0)
            session.execute(select(func.pg_advisory_xact_lock(lock_key)))

        return session.scalars(
            self._select_row(user_id, concept_id).with_for_update()
        ).one_or_none()

    def _write(self, session: Session, row: ScheduleRecordRow | None, record: ScheduleRecord) -> None:
        if row is None:
            row = ScheduleRecordRow(user_id=record.user_id, concept_id=record.concept_id)
            session.add(row)

        row.ease_factor = record.ease_factor
        row.interval_days = record.interval
        row.repetitions = record.repetitions
        row.next_review = ensure_utc(record.next_review) if record.next_review else None
        row.last_review = ensure_utc(record.last_review) if record.last_review else None

        self._sync_history(row, record.performance_history)

    def _sync_history(self, row: ScheduleRecordRow, wanted: list[PerformanceEntry]) -> None:
        stored = [_entry_from_row(o) for o in row.observations]
        dropped = _trimmed_prefix(stored, wanted)

        if dropped is None:
            logger.warning(
                f"History of {row.user_id}/{row.concept_id} was rewritten; replacing stored rows"
            )
            dropped = len(stored)

        kept = len(stored) - dropped
        del row.observations[:dropped]
        for entry in wanted[kept:]:
            row.observations.append(
                ReviewObservationRow(
                    quality=entry.quality,
                    reviewed_at=ensure_utc(entry.timestamp),
                    response_time_ms=entry.response_time_ms,
                )
            )

    def _load_user_records(self, user_id: str) -> list[ScheduleRecord]:
        def work(session: Session) -> list[ScheduleRecord]:
            rows = session.scalars(
                select(ScheduleRecordRow)
                .where(ScheduleRecordRow.user_id == user_id)
                .options(selectinload(ScheduleRecordRow.observations))
            ).all()
            return [_record_from_row(row) for row in rows]

        return self._run("scan_by_user", work)

    def _load_due_records(self, user_id: str, now: datetime) -> list[ScheduleRecord]:
        def work(session: Session) -> list[ScheduleRecord]:
            rows = session.scalars(
                select(ScheduleRecordRow)
                .where(
                    ScheduleRecordRow.user_id == user_id,
                    or_(
                        ScheduleRecordRow.next_review.is_(None),
                        ScheduleRecordRow.next_review <= ensure_utc(now),
                    ),
                )
                .options(selectinload(ScheduleRecordRow.observations))
            ).all()
            return [_record_from_row(row) for row in rows]

        return self._run("scan_due", work)
