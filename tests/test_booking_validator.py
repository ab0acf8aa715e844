"""
Tests for booking validation.
"""

from datetime import datetime

import pendulum
import pytest

from tutorbooking.domain.booking_validator import BookingValidator
from tutorbooking.domain.exceptions import (
    InvalidRange,
    MissingCounterparty,
    NotPermitted,
    OutsideBusinessHours,
    SlotConflict,
)
from tutorbooking.domain.models import (
    DEFAULT_STUDENT_TITLE,
    Appointment,
    AppointmentStatus,
    ApprovedBooking,
    BookingRequest,
    BusinessHoursPolicy,
    OpeningHours,
    Role,
    TimeRange,
    overlaps,
)

TZ = "Europe/Berlin"


def _dt(value: str):
    return pendulum.parse(value, tz=TZ)


def _student_request(start: str, end: str, teacher="teacher-anna", **kwargs) -> BookingRequest:
    return BookingRequest(
        requester_id="student-max",
        role=Role.STUDENT,
        start=_dt(start),
        end=_dt(end),
        counterparty_id=teacher,
        **kwargs,
    )


def _teacher_request(start: str, end: str, student="student-max", title="Mathe", **kwargs) -> BookingRequest:
    return BookingRequest(
        requester_id="teacher-anna",
        role=Role.TEACHER,
        start=_dt(start),
        end=_dt(end),
        counterparty_id=student,
        title=title,
        **kwargs,
    )


def _existing(start: str, end: str, teacher="teacher-anna", **kwargs) -> Appointment:
    return Appointment(
        id=kwargs.pop("id", "existing"),
        teacher_id=teacher,
        student_id="student-lea",
        title="Anmeldung zur Nachhilfe",
        start=_dt(start),
        end=_dt(end),
        **kwargs,
    )


@pytest.fixture
def validator() -> BookingValidator:
    return BookingValidator(BusinessHoursPolicy.default())


class TestOverlaps:
    """Tests for the overlap primitive."""

    def test_symmetric(self):
        a = TimeRange(start=_dt("2024-11-27 16:00"), end=_dt("2024-11-27 17:00"))
        b = TimeRange(start=_dt("2024-11-27 16:30"), end=_dt("2024-11-27 17:30"))
        c = TimeRange(start=_dt("2024-11-27 17:00"), end=_dt("2024-11-27 18:00"))

        assert overlaps(a, b) and overlaps(b, a)
        assert not overlaps(a, c) and not overlaps(c, a)

    def test_containment_overlaps(self):
        outer = TimeRange(start=_dt("2024-11-27 15:00"), end=_dt("2024-11-27 19:00"))
        inner = TimeRange(start=_dt("2024-11-27 16:00"), end=_dt("2024-11-27 17:00"))

        assert overlaps(outer, inner) and overlaps(inner, outer)


class TestStructuralChecks:
    """Range and role checks."""

    def test_start_after_end(self, validator):
        result = validator.validate(_student_request("2024-11-27 17:00", "2024-11-27 16:00"), [])

        assert isinstance(result.error, InvalidRange)

    def test_zero_length(self, validator):
        result = validator.validate(_teacher_request("2024-11-27 17:00", "2024-11-27 17:00"), [])

        assert isinstance(result.error, InvalidRange)

    def test_admin_cannot_book(self, validator):
        request = BookingRequest(
            requester_id="admin",
            role=Role.ADMIN,
            start=_dt("2024-11-27 15:00"),
            end=_dt("2024-11-27 16:00"),
            counterparty_id="teacher-anna",
        )

        result = validator.validate(request, [])

        assert isinstance(result.error, NotPermitted)


class TestBusinessHours:
    """Opening-hours checks for student bookings."""

    def test_starts_before_opening(self, validator):
        result = validator.validate(_student_request("2024-11-27 14:00", "2024-11-27 15:00"), [])

        assert isinstance(result.error, OutsideBusinessHours)

    def test_end_may_touch_closing_time(self, validator):
        result = validator.validate(_student_request("2024-11-27 18:00", "2024-11-27 19:00"), [])

        assert result.ok

    def test_end_after_closing_time(self, validator):
        result = validator.validate(_student_request("2024-11-27 18:30", "2024-11-27 19:30"), [])

        assert isinstance(result.error, OutsideBusinessHours)

    def test_start_at_closing_time(self, validator):
        result = validator.validate(_student_request("2024-11-27 19:00", "2024-11-27 20:00"), [])

        assert isinstance(result.error, OutsideBusinessHours)

    def test_saturday_hours(self, validator):
        assert validator.validate(_student_request("2024-11-30 10:00", "2024-11-30 11:00"), []).ok

        result = validator.validate(_student_request("2024-11-30 15:00", "2024-11-30 16:00"), [])
        assert isinstance(result.error, OutsideBusinessHours)

    def test_closed_day(self, validator):
        result = validator.validate(_student_request("2024-12-01 15:00", "2024-12-01 16:00"), [])

        assert isinstance(result.error, OutsideBusinessHours)

    def test_must_end_on_same_day(self, validator):
        result = validator.validate(_student_request("2024-11-27 18:00", "2024-11-28 16:00"), [])

        assert isinstance(result.error, OutsideBusinessHours)

    def test_times_are_read_in_policy_timezone(self, validator):
        """14:00 UTC is 15:00 in Berlin in November."""
        request = BookingRequest(
            requester_id="student-max",
            role=Role.STUDENT,
            start=pendulum.datetime(2024, 11, 27, 14, 0, tz="UTC"),
            end=pendulum.datetime(2024, 11, 27, 15, 0, tz="UTC"),
            counterparty_id="teacher-anna",
        )

        assert validator.validate(request, []).ok

    def test_naive_times_are_local_wall_clock(self, validator):
        """Naive 18:00-19:00 is inside Wednesday's hours, not 19:00-20:00."""
        request = BookingRequest(
            requester_id="student-max",
            role=Role.STUDENT,
            start=datetime(2024, 11, 27, 18, 0),
            end=datetime(2024, 11, 27, 19, 0),
            counterparty_id="teacher-anna",
        )
        existing = [_existing("2024-11-27 17:00", "2024-11-27 18:00")]

        result = validator.validate(request, existing)

        assert result.ok
        assert result.value.start == _dt("2024-11-27 18:00")
        assert result.value.start.timezone_name == TZ

    def test_closing_at_midnight_accepts_next_day_end(self):
        validator = BookingValidator(
            BusinessHoursPolicy(hours={2: OpeningHours(open_hour=20, close_hour=24)})
        )

        result = validator.validate(_student_request("2024-11-27 23:00", "2024-11-28 00:00"), [])

        assert result.ok

    def test_teacher_bypasses_business_hours(self, validator):
        """A teacher may book a closed Sunday morning."""
        result = validator.validate(_teacher_request("2024-12-01 08:00", "2024-12-01 09:00"), [])

        assert result.ok
        assert result.value.start == _dt("2024-12-01 08:00")

    def test_teacher_booking_still_checks_overlap(self, validator):
        existing = [_existing("2024-12-01 08:30", "2024-12-01 09:30")]

        result = validator.validate(_teacher_request("2024-12-01 08:00", "2024-12-01 09:00"), existing)

        assert isinstance(result.error, SlotConflict)

    def test_teacher_booking_still_checks_counterparty(self, validator):
        result = validator.validate(
            _teacher_request("2024-12-01 08:00", "2024-12-01 09:00", student=None), []
        )

        assert isinstance(result.error, MissingCounterparty)


class TestOverlapCheck:
    """Conflict detection against existing appointments."""

    def test_partial_overlap_conflicts(self, validator):
        existing = [_existing("2024-11-27 16:30", "2024-11-27 17:30")]

        result = validator.validate(_student_request("2024-11-27 16:00", "2024-11-27 17:00"), existing)

        assert isinstance(result.error, SlotConflict)
        assert [a.id for a in result.error.conflicts] == ["existing"]

    def test_adjacent_slot_is_free(self, validator):
        existing = [_existing("2024-11-27 15:00", "2024-11-27 16:00")]

        result = validator.validate(_student_request("2024-11-27 16:00", "2024-11-27 17:00"), existing)

        assert result.ok

    def test_other_teacher_does_not_conflict(self, validator):
        existing = [_existing("2024-11-27 16:00", "2024-11-27 17:00", teacher="teacher-jonas")]

        result = validator.validate(_student_request("2024-11-27 16:00", "2024-11-27 17:00"), existing)

        assert result.ok

    @pytest.mark.parametrize("status", [AppointmentStatus.CANCELLED, AppointmentStatus.COMPLETED])
    def test_only_scheduled_appointments_conflict(self, validator, status):
        existing = [_existing("2024-11-27 16:00", "2024-11-27 17:00", status=status)]

        result = validator.validate(_student_request("2024-11-27 16:00", "2024-11-27 17:00"), existing)

        assert result.ok

    def test_all_conflicts_are_reported(self, validator):
        existing = [
            _existing("2024-11-27 15:00", "2024-11-27 16:00", id="first"),
            _existing("2024-11-27 16:00", "2024-11-27 17:00", id="second"),
            _existing("2024-11-27 17:00", "2024-11-27 18:00", id="third"),
        ]

        result = validator.validate(_student_request("2024-11-27 15:30", "2024-11-27 16:30"), existing)

        assert [a.id for a in result.error.conflicts] == ["first", "second"]


class TestCounterparty:
    """Required-field checks and the approved descriptor."""

    def test_student_needs_teacher(self, validator):
        result = validator.validate(
            _student_request("2024-11-27 15:00", "2024-11-27 16:00", teacher=None), []
        )

        assert isinstance(result.error, MissingCounterparty)

    def test_teacher_needs_title(self, validator):
        result = validator.validate(
            _teacher_request("2024-11-27 15:00", "2024-11-27 16:00", title="  "), []
        )

        assert isinstance(result.error, MissingCounterparty)

    def test_student_booking_gets_default_title(self, validator):
        result = validator.validate(
            _student_request("2024-11-27 15:00", "2024-11-27 16:00", description="Bruchrechnung"), []
        )

        assert result.ok
        assert result.value == ApprovedBooking(
            teacher_id="teacher-anna",
            student_id="student-max",
            title=DEFAULT_STUDENT_TITLE,
            description="Bruchrechnung",
            start=_dt("2024-11-27 15:00"),
            end=_dt("2024-11-27 16:00"),
        )
        assert result.value.status is AppointmentStatus.SCHEDULED

    def test_teacher_booking_descriptor(self, validator):
        result = validator.validate(_teacher_request("2024-11-27 15:00", "2024-11-27 16:00"), [])

        assert result.value.teacher_id == "teacher-anna"
        assert result.value.student_id == "student-max"
        assert result.value.title == "Mathe"

    def test_hours_are_checked_before_counterparty(self, validator):
        result = validator.validate(
            _student_request("2024-11-27 14:00", "2024-11-27 15:00", teacher=None), []
        )

        assert isinstance(result.error, OutsideBusinessHours)
