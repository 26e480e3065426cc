"""
Record store client for the hosted PostgREST backend.
"""

import asyncio
import logging
from datetime import date
from typing import Any, Dict, FrozenSet, List, Optional

import requests

from ..domain.exceptions import BookingConflictError, StoreUnavailableError
from ..domain.models import Booking, BookingRequest, ProfessionalSchedule
from .records import (
    booking_from_row,
    booking_request_to_row,
    parse_closed_dates,
    schedule_from_professional_row,
)

logger = logging.getLogger(__name__)

# unique_violation, exclusion_violation
CONFLICT_SQLSTATES = {"23505", "23P01"}


class PostgrestRecordStore:
    """
    Client for the ``professionals``, ``appointments`` and ``clinic_holidays``
    tables exposed under ``/rest/v1``.

    HTTP calls are blocking and run in a worker thread. The ``appointments``
    table is expected to carry a unique/exclusion constraint on
    (professional_id, appointment_date, start_time); a violation is reported
    as BookingConflictError.
    """

    PROFESSIONAL_FIELDS = "id,name,schedule,appointment_duration,is_active"
    APPOINTMENT_FIELDS = "id,professional_id,appointment_date,start_time,end_time,status,patient_id"

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        clinic_id: Optional[str] = None,
        timezone: str = "America/Sao_Paulo",
        default_slot_duration_minutes: int = 30,
        timeout_seconds: float = 10,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize the client.

        Args:
            base_url: Project URL, e.g. ``https://xyz.supabase.co``
            api_key: Service or anon key sent as ``apikey`` and bearer token
            clinic_id: Tenant; scopes holidays and new appointments
            timezone: IANA timezone of the clinic
            default_slot_duration_minutes: Used when a professional has no duration
            timeout_seconds: Per-request timeout
            session: Optional pre-configured requests session
        """
        self.rest_url = f"{base_url.rstrip('/')}/rest/v1"
        self.clinic_id = clinic_id
        self.timezone = timezone
        self.default_slot_duration_minutes = default_slot_duration_minutes
        self.timeout_seconds = timeout_seconds
        self.session = session or requests.Session()
        self.headers = {
            "apikey": api_key,
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }

    async def get_schedule(self, professional_id: str) -> Optional[ProfessionalSchedule]:
        return await asyncio.to_thread(self.fetch_schedule, professional_id)

    async def list_bookings(self, professional_id: str, day: date) -> List[Booking]:
        return await asyncio.to_thread(self.fetch_bookings, professional_id, day)

    async def insert_booking(self, request: BookingRequest) -> Booking:
        return await asyncio.to_thread(self.create_booking, request)

    def fetch_schedule(self, professional_id: str) -> Optional[ProfessionalSchedule]:
        """Fetch a professional row and build its schedule."""
        rows = self._get(
            "professionals",
            {"id": f"eq.{professional_id}", "select": self.PROFESSIONAL_FIELDS},
        )
        if not rows:
            return None

        return schedule_from_professional_row(
            rows[0],
            default_slot_duration_minutes=self.default_slot_duration_minutes,
            timezone=self.timezone,
            closed_dates=self.fetch_holidays(),
        )

    def fetch_holidays(self) -> FrozenSet[date]:
        """Fetch the clinic's custom holidays; empty when no clinic is configured."""
        if not self.clinic_id:
            return frozenset()

        rows = self._get(
            "clinic_holidays",
            {"clinic_id": f"eq.{self.clinic_id}", "select": "holiday_date"},
        )
        return parse_closed_dates(row["holiday_date"] for row in rows if row.get("holiday_date"))

    def fetch_bookings(self, professional_id: str, day: date) -> List[Booking]:
        """Fetch all appointments of a professional on a date, any status."""
        rows = self._get(
            "appointments",
            {
                "professional_id": f"eq.{professional_id}",
                "appointment_date": f"eq.{day.isoformat()}",
                "select": self.APPOINTMENT_FIELDS,
                "order": "start_time.asc",
            },
        )

        bookings: List[Booking] = []
        for row in rows:
            try:
                bookings.append(booking_from_row(row))
            except (KeyError, ValueError) as exc:
                logger.warning("Skipping malformed appointment row %s: %s", row.get("id"), exc)
        return bookings

    def create_booking(self, request: BookingRequest) -> Booking:
        """
        Insert an appointment row.

        Raises:
            BookingConflictError: If the table constraint rejects the row
            StoreUnavailableError: If the request fails for any other reason
        """
        payload = booking_request_to_row(request)
        if self.clinic_id:
            payload["clinic_id"] = self.clinic_id

        url = f"{self.rest_url}/appointments"

        try:
            response = self.session.post(
                url,
                headers={**self.headers, "Prefer": "return=representation"},
                json=payload,
                timeout=self.timeout_seconds,
            )
        except requests.exceptions.RequestException as e:
            raise StoreUnavailableError(f"Failed to insert appointment: {e}") from e

        if self._is_conflict(response):
            raise BookingConflictError(
                f"Slot {request.start_time:%H:%M} on {request.date} is already taken"
            )

        data = self._decode(response, "insert appointment")
        rows = data if isinstance(data, list) else [data]
        if not rows:
            raise StoreUnavailableError("Insert returned no appointment row")

        return booking_from_row(rows[0])

    def _get(self, table: str, params: Dict[str, str]) -> List[Dict[str, Any]]:
        url = f"{self.rest_url}/{table}"

        try:
            response = self.session.get(
                url,
                headers=self.headers,
                params=params,
                timeout=self.timeout_seconds,
            )
        except requests.exceptions.RequestException as e:
            raise StoreUnavailableError(f"Failed to fetch {table}: {e}") from e

        data = self._decode(response, f"fetch {table}")
        if not isinstance(data, list):
            raise StoreUnavailableError(f"Unexpected response for {table}: {data!r}")
        return data

    @staticmethod
    def _decode(response: requests.Response, action: str) -> Any:
        try:
            response.raise_for_status()
            return response.json()
        except requests.exceptions.HTTPError as e:
            raise StoreUnavailableError(f"Failed to {action}: {e}") from e
        except ValueError as e:
            raise StoreUnavailableError(f"Failed to {action}: invalid JSON ({e})") from e

    @staticmethod
    def _is_conflict(response: requests.Response) -> bool:
        if response.status_code == 409:
            return True
        if response.status_code >= 400:
            try:
                body = response.json()
            except ValueError:
                return False
            return isinstance(body, dict) and body.get("code") in CONFLICT_SQLSTATES
        return False
