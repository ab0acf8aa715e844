"""
In-memory appointment store used for tests and the CLI's mock mode.
"""

from __future__ import annotations

import json
import logging
import threading
import uuid
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional

import pendulum
from pendulum import DateTime

from ..domain.exceptions import ConflictError, NotFoundError, PersistenceError
from ..domain.models import Appointment, AppointmentStatus, ApprovedBooking, overlaps
from .rows import appointment_from_row

logger = logging.getLogger(__name__)

MOCK_DATA_FILE = Path(__file__).parent / "mock_appointments.json"


class InMemoryAppointmentStore:
    """
    Thread-safe store keeping appointments in a dict.

    Like the database exclusion constraint, inserts are checked and applied
    under one lock, so two overlapping bookings for the same teacher can
    never both be stored.
    """

    def __init__(
        self,
        appointments: Iterable[Appointment] = (),
        clock: Callable[[], DateTime] = pendulum.now,
    ):
        self._lock = threading.Lock()
        self._clock = clock
        self._appointments: Dict[str, Appointment] = {a.id: a for a in appointments}

    @classmethod
    def from_json(
        cls,
        data_file: Path = MOCK_DATA_FILE,
        timezone: str = "Europe/Berlin",
        clock: Callable[[], DateTime] = pendulum.now,
    ) -> "InMemoryAppointmentStore":
        """
        Seed a store from a JSON list of appointment rows.

        Rows that cannot be parsed are skipped.
        """
        try:
            with open(data_file, "r", encoding="utf-8") as f:
                rows = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            raise PersistenceError(f"Could not load mock data from {data_file}: {exc}") from exc

        appointments: List[Appointment] = []
        for row in rows:
            try:
                appointments.append(appointment_from_row(row, timezone))
            except (KeyError, ValueError, TypeError) as exc:
                logger.warning("Skipping invalid appointment row %r: %s", row, exc)
                continue

        return cls(appointments, clock=clock)

    def list_appointments(
        self,
        teacher_id: Optional[str] = None,
        student_id: Optional[str] = None,
    ) -> List[Appointment]:
        with self._lock:
            matches = [
                a for a in self._appointments.values()
                if (teacher_id is None or a.teacher_id == teacher_id)
                and (student_id is None or a.student_id == student_id)
            ]
        return sorted(matches, key=lambda a: a.start)

    def get_appointment(self, appointment_id: str) -> Appointment:
        with self._lock:
            try:
                return self._appointments[appointment_id]
            except KeyError:
                raise NotFoundError(f"Appointment {appointment_id} not found") from None

    def insert_appointment(self, booking: ApprovedBooking) -> Appointment:
        with self._lock:
            for existing in self._appointments.values():
                if (
                    existing.status is AppointmentStatus.SCHEDULED
                    and existing.teacher_id == booking.teacher_id
                    and overlaps(existing, booking)
                ):
                    raise ConflictError(
                        f"Teacher {booking.teacher_id} already has appointment "
                        f"{existing.id} at {existing.time_range}"
                    )

            appointment = Appointment(
                id=str(uuid.uuid4()),
                teacher_id=booking.teacher_id,
                student_id=booking.student_id,
                title=booking.title,
                description=booking.description,
                start=booking.start,
                end=booking.end,
                status=booking.status,
                created_at=self._clock(),
            )
            self._appointments[appointment.id] = appointment

        return appointment

    def delete_appointment(self, appointment_id: str) -> None:
        with self._lock:
            if self._appointments.pop(appointment_id, None) is None:
                raise NotFoundError(f"Appointment {appointment_id} not found")
