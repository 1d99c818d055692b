# SQLAlchemy models
from .base import Base
from .schedule import ReviewObservationRow, ScheduleRecordRow

__all__ = [
    "Base",
    "ScheduleRecordRow",
    "ReviewObservationRow",
]
