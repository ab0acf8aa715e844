"""
Domain-specific exception hierarchy for the tutoring booking application.

``BookingError`` subclasses describe user-correctable booking outcomes. They
are returned inside a ``Result`` by the validator and the booking service so
the presentation layer can pick a matching message; they are only raised
where an API has no other way to report them.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Sequence, Tuple

if TYPE_CHECKING:
    from .models import Appointment


class TutorBookingError(Exception):
    """Base class for all application-level errors."""


class BookingError(TutorBookingError):
    """Base class for booking outcomes the requester can correct."""


class InvalidRange(BookingError):
    """The requested end does not lie after the requested start."""


class OutsideBusinessHours(BookingError):
    """The requested time lies outside the opening hours or on a closed day."""


class SlotConflict(BookingError):
    """The requested time overlaps an existing scheduled appointment."""

    def __init__(self, message: str, conflicts: Sequence["Appointment"] = ()) -> None:
        super().__init__(message)
        self.conflicts: Tuple["Appointment", ...] = tuple(conflicts)


class MissingCounterparty(BookingError):
    """The teacher, student or title required for the booking is missing."""


class NotPermitted(BookingError):
    """The requester's role does not allow the operation."""


class PersistenceError(TutorBookingError):
    """Raised when appointment data cannot be read from or written to storage."""


class ConflictError(PersistenceError):
    """Raised when storage rejects an appointment that overlaps another one."""


class NotFoundError(PersistenceError):
    """Raised when an appointment does not exist in storage."""


class InvalidTransition(TutorBookingError):
    """Raised when an appointment status change is not allowed."""


class ConfigError(TutorBookingError):
    """Raised when configuration or credentials cannot be loaded or stored."""
