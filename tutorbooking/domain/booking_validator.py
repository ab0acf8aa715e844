"""
Validation of booking requests against business hours and existing
appointments.

The checks here are pure and advisory: they run against a snapshot of the
existing appointments, and the store remains the authority on conflicts.
"""

from dataclasses import replace
from typing import Iterable, List, Optional

from pendulum import DateTime

from .availability import localize
from .exceptions import (
    InvalidRange,
    MissingCounterparty,
    NotPermitted,
    OutsideBusinessHours,
    SlotConflict,
)
from .models import (
    DEFAULT_STUDENT_TITLE,
    WEEKDAY_NAMES,
    Appointment,
    AppointmentStatus,
    ApprovedBooking,
    BookingRequest,
    BusinessHoursPolicy,
    Result,
    Role,
    overlaps,
)

SECONDS_PER_DAY = 24 * 60 * 60


def _seconds_into_day(value: DateTime) -> float:
    return value.hour * 3600 + value.minute * 60 + value.second + value.microsecond / 1e6


class BookingValidator:
    """
    Decides whether a booking request may be created.

    Checks run in a fixed order and the first failure is returned:
    role, range, business hours (students only), overlap, counterparty.
    """

    def __init__(self, policy: BusinessHoursPolicy):
        self.policy = policy

    def validate(
        self,
        request: BookingRequest,
        existing: Iterable[Appointment],
    ) -> Result[ApprovedBooking]:
        if not request.role.can_book:
            return Result.failure(
                NotPermitted(f"Role '{request.role.value}' cannot book appointments")
            )

        tz = self.policy.timezone
        request = replace(request, start=localize(request.start, tz), end=localize(request.end, tz))

        if request.start >= request.end:
            return Result.failure(
                InvalidRange(f"Start {request.start} must be before end {request.end}")
            )

        if request.role.enforces_business_hours:
            hours_error = self.check_business_hours(request.start, request.end)
            if hours_error is not None:
                return Result.failure(hours_error)

        conflicts = self.find_conflicts(request, existing)
        if conflicts:
            return Result.failure(
                SlotConflict(
                    f"Requested time overlaps {len(conflicts)} existing appointment(s)",
                    conflicts=conflicts,
                )
            )

        counterparty_error = self._check_counterparty(request)
        if counterparty_error is not None:
            return Result.failure(counterparty_error)

        title = (request.title or "").strip()
        if not title and request.role is Role.STUDENT:
            title = DEFAULT_STUDENT_TITLE

        return Result.success(
            ApprovedBooking(
                teacher_id=request.teacher_id,
                student_id=request.student_id,
                title=title,
                description=request.description or None,
                start=request.start,
                end=request.end,
            )
        )

    def check_business_hours(
        self,
        start: DateTime,
        end: DateTime,
    ) -> Optional[OutsideBusinessHours]:
        """
        Return an error unless ``[start, end)`` lies inside the opening hours
        of the start's local weekday. The end may touch closing time.
        """
        tz = self.policy.timezone
        local_start = localize(start, tz)
        local_end = localize(end, tz)

        weekday = local_start.weekday()
        opening = self.policy.hours_for(weekday)

        if opening is None:
            return OutsideBusinessHours(f"Closed on {WEEKDAY_NAMES[weekday]}")

        start_day = local_start.date()
        start_seconds = _seconds_into_day(local_start)

        if local_end.date() == start_day:
            end_seconds = _seconds_into_day(local_end)
        elif local_end.date() == start_day.add(days=1) and _seconds_into_day(local_end) == 0:
            end_seconds = SECONDS_PER_DAY
        else:
            return OutsideBusinessHours("Appointments must start and end on the same day")

        open_seconds = opening.open_hour * 3600
        close_seconds = opening.close_hour * 3600

        start_ok = open_seconds <= start_seconds < close_seconds
        end_ok = open_seconds < end_seconds <= close_seconds

        if not (start_ok and end_ok):
            return OutsideBusinessHours(
                f"Bookings on {WEEKDAY_NAMES[weekday]} are only possible between {opening}"
            )

        return None

    def find_conflicts(
        self,
        request: BookingRequest,
        existing: Iterable[Appointment],
    ) -> List[Appointment]:
        """
        Return the scheduled appointments overlapping the request, limited to
        the request's teacher when one is known.
        """
        teacher_id = request.teacher_id

        return [
            appointment for appointment in existing
            if appointment.status is AppointmentStatus.SCHEDULED
            and (teacher_id is None or appointment.teacher_id == teacher_id)
            and overlaps(appointment, request)
        ]

    @staticmethod
    def _check_counterparty(request: BookingRequest) -> Optional[MissingCounterparty]:
        if request.role is Role.STUDENT and not request.teacher_id:
            return MissingCounterparty("A teacher must be selected")

        if request.role is Role.TEACHER:
            if not request.student_id:
                return MissingCounterparty("A student must be selected")
            if not (request.title or "").strip():
                return MissingCounterparty("A title is required")

        return None
