"""
Conversion between stored rows and domain models.

Professionals keep their schedule as a JSON document keyed by weekday, in
the legacy form::

    {"monday": {"enabled": true, "slots": [{"start": "08:00", "end": "12:00"}]}, ...}

The flexible form is stored alongside it under ``_blocks``::

    {"_blocks": [{"days": ["monday"], "start_time": "08:00", "end_time": "12:00",
                  "duration": 30, "start_date": null, "end_date": null}]}
"""

import json
from datetime import date, time
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from ..domain.exceptions import ScheduleFormatError
from ..domain.models import (
    Booking,
    BookingRequest,
    ProfessionalSchedule,
    ScheduleBlock,
    WeeklySlot,
    Weekday,
    WorkingPeriod,
    parse_calendar_date,
    parse_clock_time,
)

BLOCKS_KEY = "_blocks"


class PeriodDocument(BaseModel):
    """A ``{"start": "HH:MM", "end": "HH:MM"}`` pair."""
    start: time
    end: time


class WeekdayDocument(BaseModel):
    """Legacy per-weekday entry."""
    enabled: bool = False
    slots: List[PeriodDocument] = Field(default_factory=list)


class BlockDocument(BaseModel):
    """A schedule block as saved by the schedule editor."""
    days: List[Weekday]
    start_time: time
    end_time: time
    duration: Optional[int] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    @field_validator("days", mode="before")
    @classmethod
    def parse_days(cls, value: Any) -> List[Weekday]:
        """Accept weekday keys (``monday``) as well as numbers (0=Monday)."""
        if not isinstance(value, (list, tuple, set)):
            raise ValueError("days must be a list of weekdays")
        return [
            Weekday.from_key(day) if isinstance(day, str) else Weekday(day)
            for day in value
        ]

    @field_validator("duration")
    @classmethod
    def drop_empty_duration(cls, value: Optional[int]) -> Optional[int]:
        """A zero duration means 'use the professional default'."""
        if value is not None and value <= 0:
            return None
        return value


def parse_schedule_document(
    document: Any,
    *,
    professional_id: str,
    default_slot_duration_minutes: int = 30,
    timezone: str = "America/Sao_Paulo",
    closed_dates: Iterable[date] = (),
) -> ProfessionalSchedule:
    """
    Build a ProfessionalSchedule from a stored schedule document.

    Args:
        document: Mapping, JSON string or None (no schedule configured)
        professional_id: Owner of the schedule
        default_slot_duration_minutes: Duration for ranges without their own
        timezone: IANA timezone of the clinic
        closed_dates: Holidays and days off

    Raises:
        ScheduleFormatError: If the document is malformed
    """
    if isinstance(document, str):
        try:
            document = json.loads(document)
        except json.JSONDecodeError as exc:
            raise ScheduleFormatError(f"Schedule of {professional_id} is not valid JSON: {exc}") from exc

    if document is None:
        document = {}

    if not isinstance(document, Mapping):
        raise ScheduleFormatError(f"Schedule of {professional_id} must be a JSON object")

    weekly: Dict[Weekday, WeeklySlot] = {}
    blocks: List[ScheduleBlock] = []

    try:
        for key, entry in document.items():
            if key == BLOCKS_KEY:
                continue
            day = Weekday.from_key(key)
            parsed = WeekdayDocument.model_validate(entry or {})
            weekly[day] = WeeklySlot(
                day=day,
                enabled=parsed.enabled,
                ranges=[WorkingPeriod(start=p.start, end=p.end) for p in parsed.slots],
            )

        for raw_block in document.get(BLOCKS_KEY) or []:
            parsed_block = BlockDocument.model_validate(raw_block)
            blocks.append(
                ScheduleBlock(
                    days=frozenset(parsed_block.days),
                    start_time=parsed_block.start_time,
                    end_time=parsed_block.end_time,
                    slot_duration_minutes=parsed_block.duration,
                    valid_from=parsed_block.start_date,
                    valid_to=parsed_block.end_date,
                )
            )
    except (ValidationError, ValueError) as exc:
        raise ScheduleFormatError(f"Invalid schedule for {professional_id}: {exc}") from exc

    return ProfessionalSchedule(
        professional_id=professional_id,
        default_slot_duration_minutes=default_slot_duration_minutes,
        weekly=weekly,
        blocks=blocks,
        closed_dates=frozenset(closed_dates),
        timezone=timezone,
    )


def schedule_from_professional_row(
    row: Mapping[str, Any],
    *,
    default_slot_duration_minutes: int,
    timezone: str,
    closed_dates: Iterable[date] = (),
) -> Optional[ProfessionalSchedule]:
    """
    Build the schedule of a ``professionals`` row.

    Inactive professionals cannot be booked and resolve to None.
    """
    if not row.get("is_active", True):
        return None

    return parse_schedule_document(
        row.get("schedule"),
        professional_id=str(row["id"]),
        default_slot_duration_minutes=row.get("appointment_duration") or default_slot_duration_minutes,
        timezone=timezone,
        closed_dates=closed_dates,
    )


def parse_closed_dates(values: Iterable[Any]) -> FrozenSet[date]:
    """Parse ``YYYY-MM-DD`` strings (or dates) into a set of closed dates."""
    closed = set()
    for value in values:
        closed.add(parse_calendar_date(value) if isinstance(value, str) else value)
    return frozenset(closed)


def booking_from_row(row: Mapping[str, Any]) -> Booking:
    """Convert an ``appointments`` row into a Booking."""
    return Booking(
        id=str(row["id"]),
        professional_id=str(row["professional_id"]),
        date=parse_calendar_date(row["appointment_date"]),
        start_time=parse_clock_time(row["start_time"]),
        end_time=parse_clock_time(row["end_time"]),
        status=row.get("status") or "scheduled",
        patient_id=row.get("patient_id"),
    )


def booking_request_to_row(request: BookingRequest) -> Dict[str, Any]:
    """Convert a BookingRequest into an ``appointments`` row for insertion."""
    return {
        "professional_id": request.professional_id,
        "appointment_date": request.date.isoformat(),
        "start_time": request.start_time.strftime("%H:%M"),
        "end_time": request.end_time.strftime("%H:%M"),
        "duration_minutes": request.duration_minutes(),
        "status": "scheduled",
        "patient_id": request.patient_id,
    }
