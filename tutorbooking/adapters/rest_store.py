"""
Appointment store backed by the hosted backend's REST (PostgREST) API.
"""

import logging
from typing import Any, Dict, List, Optional

import requests

from ..domain.exceptions import ConflictError, NotFoundError, PersistenceError
from ..domain.models import Appointment, ApprovedBooking
from .rows import appointment_from_row, booking_to_row

logger = logging.getLogger(__name__)

# PostgreSQL exclusion and unique violations
CONFLICT_CODES = {"23P01", "23505"}


class RestAppointmentStore:
    """
    Store for the ``appointments`` table exposed under ``/rest/v1``.

    The table's exclusion constraint is the authority on overlapping
    bookings; its rejection surfaces as ConflictError.
    """

    TABLE_PATH = "/rest/v1/appointments"

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timezone: str = "Europe/Berlin",
        timeout: float = 10,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize the store.

        Args:
            base_url: Backend project URL, e.g. https://xyz.supabase.co
            api_key: API key sent as ``apikey`` and bearer token
            timezone: IANA timezone appointments are converted into
            timeout: Request timeout in seconds
            session: Optional requests session (tests pass a fake)
        """
        self.url = base_url.rstrip("/") + self.TABLE_PATH
        self.timezone = timezone
        self.timeout = timeout
        self.session = session or requests.Session()
        self.headers = {
            "apikey": api_key,
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }

    def list_appointments(
        self,
        teacher_id: Optional[str] = None,
        student_id: Optional[str] = None,
    ) -> List[Appointment]:
        params = {"select": "*", "order": "start_time.asc"}
        if teacher_id is not None:
            params["teacher_id"] = f"eq.{teacher_id}"
        if student_id is not None:
            params["student_id"] = f"eq.{student_id}"

        rows = self._request("GET", params=params)

        appointments: List[Appointment] = []
        for row in rows:
            try:
                appointments.append(appointment_from_row(row, self.timezone))
            except (KeyError, ValueError, TypeError) as e:
                logger.warning("Could not parse appointment row %r: %s", row.get("id"), e)
                continue

        return appointments

    def get_appointment(self, appointment_id: str) -> Appointment:
        rows = self._request("GET", params={"select": "*", "id": f"eq.{appointment_id}"})
        if not rows:
            raise NotFoundError(f"Appointment {appointment_id} not found")
        return self._parse_single(rows[0])

    def insert_appointment(self, booking: ApprovedBooking) -> Appointment:
        rows = self._request(
            "POST",
            json=booking_to_row(booking),
            prefer="return=representation",
        )
        if not rows:
            raise PersistenceError("Backend returned no row for the inserted appointment")
        return self._parse_single(rows[0])

    def delete_appointment(self, appointment_id: str) -> None:
        rows = self._request(
            "DELETE",
            params={"id": f"eq.{appointment_id}"},
            prefer="return=representation",
        )
        if not rows:
            raise NotFoundError(f"Appointment {appointment_id} not found")

    def _parse_single(self, row: Dict[str, Any]) -> Appointment:
        try:
            return appointment_from_row(row, self.timezone)
        except (KeyError, ValueError, TypeError) as e:
            raise PersistenceError(f"Malformed appointment row from backend: {e}") from e

    def _request(
        self,
        method: str,
        params: Optional[Dict[str, str]] = None,
        json: Optional[Dict[str, Any]] = None,
        prefer: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """
        Send a request and return the decoded row list.

        Raises:
            ConflictError: If the backend rejects an overlapping appointment
            PersistenceError: On transport errors or any other failed response
        """
        headers = dict(self.headers)
        if prefer:
            headers["Prefer"] = prefer

        try:
            response = self.session.request(
                method,
                self.url,
                params=params,
                json=json,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            raise PersistenceError(f"Request to backend failed: {e}") from e

        if response.status_code >= 400:
            error = self._error_body(response)
            message = error.get("message") or response.reason or "unknown error"
            if response.status_code == 409 or error.get("code") in CONFLICT_CODES:
                raise ConflictError(f"Backend rejected appointment: {message}")
            raise PersistenceError(
                f"Backend request failed with status {response.status_code}: {message}"
            )

        try:
            data = response.json()
        except ValueError as e:
            raise PersistenceError(f"Backend returned invalid JSON: {e}") from e

        if isinstance(data, dict):
            return [data]
        return data

    @staticmethod
    def _error_body(response) -> Dict[str, Any]:
        try:
            body = response.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {}
