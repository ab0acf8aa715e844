"""
Application services for booking and cancelling tutoring appointments.

The service fetches existing appointments through a store adapter, delegates
slot and conflict logic to the domain layer and persists approved bookings.
The store dependency is a simple protocol so the REST adapter, the in-memory
store or a test stub can be plugged in.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Callable, List, Optional, Protocol

import pendulum
from pendulum import DateTime

from ..domain.availability import AvailabilityEngine
from ..domain.booking_validator import BookingValidator
from ..domain.exceptions import (
    ConflictError,
    NotPermitted,
    PersistenceError,
    SlotConflict,
)
from ..domain.models import (
    Appointment,
    ApprovedBooking,
    BookingRequest,
    BusinessHoursPolicy,
    Result,
    Role,
    SlotView,
)

logger = logging.getLogger(__name__)


class AppointmentStore(Protocol):
    """Protocol describing the persistence behaviour needed by the service."""

    def list_appointments(
        self,
        teacher_id: Optional[str] = None,
        student_id: Optional[str] = None,
    ) -> List[Appointment]:
        """Return matching appointments ordered by start time."""

    def get_appointment(self, appointment_id: str) -> Appointment:
        """Return one appointment or raise NotFoundError."""

    def insert_appointment(self, booking: ApprovedBooking) -> Appointment:
        """Persist a booking or raise ConflictError if it overlaps another."""

    def delete_appointment(self, appointment_id: str) -> None:
        """Delete an appointment or raise NotFoundError."""


class BookingService:
    """
    Orchestrates snapshot retrieval, validation and persistence of bookings.
    """

    def __init__(
        self,
        store: AppointmentStore,
        policy: BusinessHoursPolicy,
        clock: Callable[[], DateTime] = pendulum.now,
    ) -> None:
        self._store = store
        self._clock = clock
        self.engine = AvailabilityEngine(policy)
        self.validator = BookingValidator(policy)

    def submit(self, request: BookingRequest) -> Result[Appointment]:
        """
        Validate a booking against the teacher's appointments and persist it.

        A failed read of the existing appointments counts as a conflict, and
        so does a storage-level rejection of the insert.
        """
        existing: List[Appointment] = []
        teacher_id = request.teacher_id

        if request.role.can_book and teacher_id:
            try:
                existing = self._store.list_appointments(teacher_id=teacher_id)
            except PersistenceError as exc:
                logger.warning(
                    "Could not load appointments of teacher %s, rejecting booking: %s",
                    teacher_id,
                    exc,
                )
                return Result.failure(
                    SlotConflict("Existing appointments could not be checked")
                )

        validation = self.validator.validate(request, existing)
        if not validation.ok:
            logger.info(
                "Booking by %s (%s) rejected: %s",
                request.requester_id,
                request.role.value,
                validation.error,
            )
            return Result.failure(validation.error)

        try:
            appointment = self._store.insert_appointment(validation.value)
        except ConflictError as exc:
            logger.info("Store rejected booking for teacher %s: %s", teacher_id, exc)
            return Result.failure(SlotConflict(str(exc)))
        except PersistenceError as exc:
            logger.error("Could not store booking for teacher %s: %s", teacher_id, exc)
            return Result.failure(exc)

        logger.info(
            "Booked appointment %s (%s - %s) for teacher %s and student %s",
            appointment.id,
            appointment.start,
            appointment.end,
            appointment.teacher_id,
            appointment.student_id,
        )
        return Result.success(appointment)

    def cancel(
        self,
        appointment_id: str,
        requester_id: str,
        role: Role,
    ) -> Result[Appointment]:
        """
        Cancel (hard-delete) a scheduled appointment if the role allows it.

        Returns the appointment as it was cancelled.
        """
        try:
            appointment = self._store.get_appointment(appointment_id)
        except PersistenceError as exc:
            return Result.failure(exc)

        if not role.can_cancel(appointment, requester_id):
            return Result.failure(
                NotPermitted(f"{requester_id} may not cancel appointment {appointment_id}")
            )

        status = appointment.effective_status(self._clock())
        if status.is_terminal:
            return Result.failure(
                NotPermitted(f"Appointment {appointment_id} is already {status.value}")
            )

        cancelled = appointment.cancel()

        try:
            self._store.delete_appointment(appointment_id)
        except PersistenceError as exc:
            logger.error("Could not delete appointment %s: %s", appointment_id, exc)
            return Result.failure(exc)

        logger.info("Appointment %s cancelled by %s (%s)", appointment_id, requester_id, role.value)
        return Result.success(cancelled)

    def appointments_for(self, user_id: str, role: Role) -> List[Appointment]:
        """Return the user's appointments ordered by start; admins see all."""
        if role is Role.ADMIN:
            appointments = self._store.list_appointments()
        elif role is Role.TEACHER:
            appointments = self._store.list_appointments(teacher_id=user_id)
        else:
            appointments = self._store.list_appointments(student_id=user_id)

        return sorted(appointments, key=lambda a: a.start)

    def appointments_on(self, day: date, user_id: str, role: Role) -> List[Appointment]:
        """Return the user's appointments starting on ``day``."""
        return self.engine.slots_for_date(day, self.appointments_for(user_id, role))

    def day_schedule(self, day: date, teacher_id: Optional[str] = None) -> List[SlotView]:
        """
        Return the day's slots with their status, optionally for one teacher.

        Every stored appointment is checked against the slots, so one that
        started the day before still blocks the slots it runs into. Read
        failures propagate as PersistenceError.
        """
        appointments = self._store.list_appointments(teacher_id=teacher_id)
        return self.engine.day_schedule(day, appointments)
