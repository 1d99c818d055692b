"""
Error taxonomy for the scheduling engine.

- InvalidObservation: caller supplied an unusable review observation (no mutation).
- StorageFailure: the backing store failed to read or write (never retried).

A missing schedule record is not an error: stores return None.
"""

from __future__ import annotations

from typing import Any


class RecallSchedulerError(Exception):
    """Base class for all engine errors."""


class InvalidObservation(RecallSchedulerError, ValueError):
    """Raised when a review observation cannot be parsed."""

    def __init__(self, field: str, value: Any, reason: str):
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid {field} {value!r}: {reason}")


class StorageFailure(RecallSchedulerError):
    """Raised when the schedule store cannot complete a read or write."""

    def __init__(self, operation: str, message: str):
        self.operation = operation
        super().__init__(f"Schedule store {operation} failed: {message}")
