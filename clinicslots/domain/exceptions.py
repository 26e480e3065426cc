"""
Domain-specific exception hierarchy for the scheduling core.

These are raised by record store adapters and translated into typed results
by the availability service; booking surfaces never see them directly.
"""

from typing import Optional


class SchedulingError(Exception):
    """Base class for all application-level errors."""


class StoreUnavailableError(SchedulingError):
    """Raised when schedule or booking data cannot be read or written."""


class BookingConflictError(SchedulingError):
    """Raised when the store rejects an insert that would double-book a slot."""

    def __init__(self, message: str, booking_id: Optional[str] = None):
        super().__init__(message)
        self.booking_id = booking_id


class ScheduleFormatError(SchedulingError):
    """Raised when a stored schedule document cannot be parsed."""
