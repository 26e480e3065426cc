"""
In-memory record store for tests, demos and the CLI mock mode.
"""

import asyncio
import json
import logging
import uuid
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..domain.exceptions import BookingConflictError
from ..domain.models import Booking, BookingRequest, ProfessionalSchedule
from .records import (
    booking_from_row,
    booking_request_to_row,
    parse_closed_dates,
    schedule_from_professional_row,
)

logger = logging.getLogger(__name__)


class InMemoryRecordStore:
    """
    Record store backed by plain dictionaries.

    Data uses the same row shapes as the hosted backend::

        {
            "professionals": [{"id": ..., "name": ..., "schedule": {...}, "appointment_duration": 30}],
            "appointments": [{"id": ..., "professional_id": ..., "appointment_date": "2024-11-25",
                              "start_time": "08:00", "end_time": "08:30", "status": "confirmed"}],
            "holidays": ["2024-12-25"]
        }

    Inserts re-check overlap and the unique (professional, date, start)
    key under a lock, which is the atomic check-and-insert a real store
    provides through its constraints.
    """

    def __init__(
        self,
        data: Optional[Dict[str, Any]] = None,
        *,
        timezone: str = "America/Sao_Paulo",
        default_slot_duration_minutes: int = 30,
        path: Optional[Path] = None,
    ):
        """
        Initialize the store.

        Args:
            data: Initial rows (see class docstring)
            timezone: IANA timezone applied to every schedule
            default_slot_duration_minutes: Used when a professional has no duration
            path: When set, inserts are written back to this JSON file
        """
        data = data or {}
        self.professionals: List[Dict[str, Any]] = list(data.get("professionals", []))
        self.appointments: List[Dict[str, Any]] = list(data.get("appointments", []))
        self.holidays = parse_closed_dates(data.get("holidays", []))
        self.timezone = timezone
        self.default_slot_duration_minutes = default_slot_duration_minutes
        self.path = path
        self._lock = asyncio.Lock()

    @classmethod
    def from_json_file(cls, path: Path, *, persist: bool = False, **kwargs) -> "InMemoryRecordStore":
        """
        Load rows from a JSON fixture file.

        With ``persist`` the file is rewritten after every insert.
        """
        if not path.exists():
            raise FileNotFoundError(f"Mock data file not found: {path}")

        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)

        return cls(data, path=path if persist else None, **kwargs)

    def find_professional(self, professional_id: str) -> Optional[Dict[str, Any]]:
        for row in self.professionals:
            if str(row.get("id")) == professional_id:
                return row
        return None

    async def get_schedule(self, professional_id: str) -> Optional[ProfessionalSchedule]:
        row = self.find_professional(professional_id)
        if row is None:
            return None

        return schedule_from_professional_row(
            row,
            default_slot_duration_minutes=self.default_slot_duration_minutes,
            timezone=self.timezone,
            closed_dates=self.holidays,
        )

    async def list_bookings(self, professional_id: str, day: date) -> List[Booking]:
        return self._bookings_for(professional_id, day)

    async def insert_booking(self, request: BookingRequest) -> Booking:
        async with self._lock:
            for existing in self._bookings_for(request.professional_id, request.date):
                if not existing.occupies_calendar:
                    continue
                if (
                    existing.start_time == request.start_time
                    or existing.overlaps(request.start_time, request.end_time)
                ):
                    raise BookingConflictError(
                        f"Slot {request.start_time:%H:%M} on {request.date} is already taken",
                        booking_id=existing.id,
                    )

            row = booking_request_to_row(request)
            row["id"] = str(uuid.uuid4())
            self.appointments.append(row)
            self._save()

        return booking_from_row(row)

    def _bookings_for(self, professional_id: str, day: date) -> List[Booking]:
        bookings: List[Booking] = []

        for row in self.appointments:
            if str(row.get("professional_id")) != professional_id:
                continue

            try:
                booking = booking_from_row(row)
            except (KeyError, ValueError) as exc:
                logger.warning("Skipping malformed appointment row %s: %s", row.get("id"), exc)
                continue

            if booking.date == day:
                bookings.append(booking)

        return bookings

    def _save(self) -> None:
        if self.path is None:
            return

        data = {
            "professionals": self.professionals,
            "appointments": self.appointments,
            "holidays": sorted(d.isoformat() for d in self.holidays),
        }
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=2)
