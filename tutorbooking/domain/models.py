"""
Domain models for business hours, time slots and appointments.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from types import MappingProxyType
from typing import Generic, Mapping, Optional, TypeVar

from pendulum import DateTime

from .exceptions import InvalidTransition

T = TypeVar("T")

WEEKDAY_NAMES = {
    0: "Montag",
    1: "Dienstag",
    2: "Mittwoch",
    3: "Donnerstag",
    4: "Freitag",
    5: "Samstag",
    6: "Sonntag",
}

DEFAULT_STUDENT_TITLE = "Anmeldung zur Nachhilfe"


def overlaps(a, b) -> bool:
    """
    Half-open interval overlap for anything with ``start`` and ``end``.

    Symmetric; ranges that only touch do not overlap.
    """
    return a.start < b.end and a.end > b.start


@dataclass(frozen=True)
class TimeRange:
    """
    Represents an immutable half-open time range ``[start, end)``.

    Invariant: start must be before end.
    """
    start: DateTime
    end: DateTime

    def __post_init__(self):
        if self.start >= self.end:
            raise ValueError(f"Start time {self.start} must be before end time {self.end}")

    def duration_minutes(self) -> int:
        """Return the duration in minutes."""
        return int((self.end - self.start).total_seconds() / 60)

    def overlaps(self, other: "TimeRange") -> bool:
        """Check if this range overlaps with another. Touching ranges do not overlap."""
        return overlaps(self, other)

    def contains(self, instant: DateTime) -> bool:
        """Check if an instant lies inside the range (end excluded)."""
        return self.start <= instant < self.end

    def __str__(self) -> str:
        return f"{self.start.format('DD.MM.YYYY HH:mm')} - {self.end.format('HH:mm')}"


@dataclass(frozen=True)
class TimeSlot:
    """
    A bookable window of exactly one policy granule.
    """
    time_range: TimeRange

    @property
    def start(self) -> DateTime:
        return self.time_range.start

    @property
    def end(self) -> DateTime:
        return self.time_range.end

    def format_display(self) -> str:
        """
        Format the slot for display.
        Format: Wochentag, DD.MM.YYYY | HH:MM – HH:MM Uhr
        """
        weekday = WEEKDAY_NAMES[self.start.weekday()]
        date_str = self.start.format("DD.MM.YYYY")
        time_str = f"{self.start.format('HH:mm')} – {self.end.format('HH:mm')} Uhr"
        return f"{weekday}, {date_str} | {time_str}"


@dataclass(frozen=True)
class OpeningHours:
    """Opening interval ``[open_hour, close_hour)`` in local clock hours."""
    open_hour: int
    close_hour: int

    def __post_init__(self):
        if not 0 <= self.open_hour <= 23:
            raise ValueError(f"open_hour must be between 0 and 23, got {self.open_hour}")
        if not 1 <= self.close_hour <= 24:
            raise ValueError(f"close_hour must be between 1 and 24, got {self.close_hour}")
        if self.open_hour >= self.close_hour:
            raise ValueError(
                f"open_hour {self.open_hour} must be before close_hour {self.close_hour}"
            )

    @property
    def open_minutes(self) -> int:
        return self.open_hour * 60

    @property
    def close_minutes(self) -> int:
        return self.close_hour * 60

    def __str__(self) -> str:
        return f"{self.open_hour:02d}:00 - {self.close_hour:02d}:00"


@dataclass(frozen=True)
class BusinessHoursPolicy:
    """
    Weekly opening hours governing which times may be booked.

    ``hours`` maps weekdays (0=Monday, 6=Sunday) to their opening hours;
    weekdays without an entry are closed.
    """
    hours: Mapping[int, OpeningHours]
    timezone: str = "Europe/Berlin"
    slot_minutes: int = 60

    def __post_init__(self):
        invalid_days = [day for day in self.hours if day not in range(7)]
        if invalid_days:
            raise ValueError(f"Weekdays must be between 0 and 6, got {invalid_days}")
        if self.slot_minutes <= 0:
            raise ValueError("slot_minutes must be greater than zero")
        for day, opening in self.hours.items():
            span = opening.close_minutes - opening.open_minutes
            if span % self.slot_minutes:
                raise ValueError(
                    f"Opening hours {opening} on {WEEKDAY_NAMES[day]} "
                    f"are not a multiple of {self.slot_minutes} minutes"
                )
        # Freeze the mapping so a shared policy cannot be changed underneath callers
        object.__setattr__(self, "hours", MappingProxyType(dict(self.hours)))

    @classmethod
    def default(cls, timezone: str = "Europe/Berlin") -> "BusinessHoursPolicy":
        """Mon-Fri 15:00-19:00, Sat 10:00-15:00, Sun closed."""
        weekday = OpeningHours(open_hour=15, close_hour=19)
        return cls(
            hours={0: weekday, 1: weekday, 2: weekday, 3: weekday, 4: weekday,
                   5: OpeningHours(open_hour=10, close_hour=15)},
            timezone=timezone,
        )

    def hours_for(self, weekday: int) -> Optional[OpeningHours]:
        """Return the opening hours for a weekday, or None when closed."""
        return self.hours.get(weekday)

    def is_open_on(self, weekday: int) -> bool:
        return weekday in self.hours


class Role(str, Enum):
    """User roles with the booking capabilities attached to each."""
    ADMIN = "admin"
    TEACHER = "teacher"
    STUDENT = "student"

    @property
    def can_book(self) -> bool:
        return self in (Role.TEACHER, Role.STUDENT)

    @property
    def enforces_business_hours(self) -> bool:
        """Only students are held to the opening hours; teachers book freely."""
        return self is Role.STUDENT

    def can_cancel(self, appointment: "Appointment", user_id: str) -> bool:
        """Admins cancel anything, the other roles only their own appointments."""
        if self is Role.ADMIN:
            return True
        if self is Role.TEACHER:
            return appointment.teacher_id == user_id
        return appointment.student_id == user_id


class AppointmentStatus(str, Enum):
    SCHEDULED = "scheduled"
    CANCELLED = "cancelled"
    COMPLETED = "completed"

    @property
    def is_terminal(self) -> bool:
        return self is not AppointmentStatus.SCHEDULED


class SlotStatus(str, Enum):
    AVAILABLE = "available"
    BOOKED = "booked"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class Appointment:
    """
    A booking between one teacher and one student.

    Invariant: start must be before end. Only the status ever changes, and
    only from ``scheduled`` into one of the terminal states.
    """
    id: str
    teacher_id: str
    student_id: str
    title: str
    start: DateTime
    end: DateTime
    status: AppointmentStatus = AppointmentStatus.SCHEDULED
    created_at: Optional[DateTime] = None
    description: Optional[str] = None

    def __post_init__(self):
        if self.start >= self.end:
            raise ValueError(f"Start time {self.start} must be before end time {self.end}")

    @property
    def time_range(self) -> TimeRange:
        return TimeRange(start=self.start, end=self.end)

    @property
    def blocks_time(self) -> bool:
        """Cancelled appointments free their time again."""
        return self.status is not AppointmentStatus.CANCELLED

    def effective_status(self, now: DateTime) -> AppointmentStatus:
        """Scheduled appointments whose end has passed count as completed."""
        if self.status is AppointmentStatus.SCHEDULED and now >= self.end:
            return AppointmentStatus.COMPLETED
        return self.status

    def cancel(self) -> "Appointment":
        """Return a cancelled copy of this appointment."""
        if self.status.is_terminal:
            raise InvalidTransition(
                f"Appointment {self.id} is {self.status.value} and cannot be cancelled"
            )
        return replace(self, status=AppointmentStatus.CANCELLED)


@dataclass(frozen=True)
class BookingRequest:
    """
    A booking as submitted by a teacher or student.

    The counterparty is the teacher for a student's booking and the student
    for a teacher's booking.
    """
    requester_id: str
    role: Role
    start: DateTime
    end: DateTime
    counterparty_id: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None

    @property
    def teacher_id(self) -> Optional[str]:
        if self.role is Role.TEACHER:
            return self.requester_id
        return self.counterparty_id or None

    @property
    def student_id(self) -> Optional[str]:
        if self.role is Role.STUDENT:
            return self.requester_id
        return self.counterparty_id or None


@dataclass(frozen=True)
class ApprovedBooking:
    """A validated booking ready to be persisted."""
    teacher_id: str
    student_id: str
    title: str
    start: DateTime
    end: DateTime
    description: Optional[str] = None
    status: AppointmentStatus = field(default=AppointmentStatus.SCHEDULED, init=False)

    @property
    def time_range(self) -> TimeRange:
        return TimeRange(start=self.start, end=self.end)


@dataclass(frozen=True)
class SlotView:
    """One row of a rendered day schedule."""
    slot: TimeSlot
    status: SlotStatus


@dataclass(frozen=True)
class Result(Generic[T]):
    """
    Outcome of an operation that reports booking errors as values.

    A failure carries only ``error``.
    """
    value: Optional[T] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: Exception) -> "Result[T]":
        return cls(error=error)
