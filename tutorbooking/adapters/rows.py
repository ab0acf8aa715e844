"""
Conversion between appointment rows of the hosted backend and domain models.

Row format (``appointments`` table):
{
    "id": "…",
    "teacher_id": "…",
    "student_id": "…",
    "title": "Anmeldung zur Nachhilfe",
    "description": null,
    "start_time": "2024-11-27T14:00:00+00:00",
    "end_time": "2024-11-27T15:00:00+00:00",
    "status": "scheduled",
    "created_at": "2024-11-20T09:12:44.120+00:00"
}
"""

from typing import Any, Dict, Optional

import pendulum
from pendulum import DateTime

from ..domain.models import Appointment, AppointmentStatus, ApprovedBooking


def parse_datetime(datetime_str: str, timezone: str) -> DateTime:
    """
    Parse an ISO 8601 string into a pendulum DateTime in ``timezone``.

    Strings without an offset are read as local time of ``timezone``.
    """
    dt = pendulum.parse(datetime_str, tz=timezone)

    if isinstance(dt, DateTime):
        return dt.in_timezone(timezone)

    raise ValueError(f"Could not parse datetime: {datetime_str}")


def appointment_from_row(row: Dict[str, Any], timezone: str) -> Appointment:
    """Build an Appointment from a backend row; raises KeyError/ValueError if malformed."""
    created_at: Optional[DateTime] = None
    if row.get("created_at"):
        created_at = parse_datetime(row["created_at"], timezone)

    return Appointment(
        id=str(row["id"]),
        teacher_id=str(row["teacher_id"]),
        student_id=str(row["student_id"]),
        title=row.get("title") or "",
        description=row.get("description"),
        start=parse_datetime(row["start_time"], timezone),
        end=parse_datetime(row["end_time"], timezone),
        status=AppointmentStatus(row.get("status") or AppointmentStatus.SCHEDULED.value),
        created_at=created_at,
    )


def booking_to_row(booking: ApprovedBooking) -> Dict[str, Any]:
    """Serialize an approved booking for insertion. Times are sent in UTC."""
    return {
        "teacher_id": booking.teacher_id,
        "student_id": booking.student_id,
        "title": booking.title,
        "description": booking.description,
        "start_time": booking.start.in_timezone("UTC").to_iso8601_string(),
        "end_time": booking.end.in_timezone("UTC").to_iso8601_string(),
        "status": booking.status.value,
    }
