"""
Domain layer - Pure business logic without external dependencies.
"""

from .availability import AvailabilityEngine
from .booking_validator import BookingValidator
from .models import (
    Appointment,
    AppointmentStatus,
    ApprovedBooking,
    BookingRequest,
    BusinessHoursPolicy,
    OpeningHours,
    Result,
    Role,
    SlotStatus,
    SlotView,
    TimeRange,
    TimeSlot,
    overlaps,
)

__all__ = [
    "Appointment",
    "AppointmentStatus",
    "ApprovedBooking",
    "AvailabilityEngine",
    "BookingRequest",
    "BookingValidator",
    "BusinessHoursPolicy",
    "OpeningHours",
    "Result",
    "Role",
    "SlotStatus",
    "SlotView",
    "TimeRange",
    "TimeSlot",
    "overlaps",
]
