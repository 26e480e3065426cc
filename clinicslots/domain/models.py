"""
Domain models for schedules, slots and bookings.
"""

from dataclasses import dataclass, field
from datetime import date, time
from enum import Enum, IntEnum
from typing import Dict, FrozenSet, Optional, Tuple

import pendulum
from pendulum import DateTime


def intervals_overlap(start1: time, end1: time, start2: time, end2: time) -> bool:
    """
    Half-open interval overlap test.

    Touching intervals (end1 == start2) do not overlap.
    """
    return start1 < end2 and start2 < end1


def parse_clock_time(value: str) -> time:
    """Parse a wall-clock time such as ``08:00`` or ``08:00:00``."""
    try:
        parsed = time.fromisoformat(value.strip())
    except (AttributeError, ValueError) as exc:
        raise ValueError(f"Invalid time value: {value!r}") from exc
    return parsed.replace(second=0, microsecond=0, tzinfo=None)


def parse_calendar_date(value: str) -> date:
    """Parse a ``YYYY-MM-DD`` date string."""
    try:
        parsed = pendulum.from_format(value.strip(), "YYYY-MM-DD")
    except (AttributeError, ValueError) as exc:
        raise ValueError(f"Invalid date value: {value!r}") from exc
    return date(parsed.year, parsed.month, parsed.day)


def at_wall_clock(day: date, clock: time) -> DateTime:
    """Combine a date and a wall-clock time into a naive pendulum DateTime."""
    return pendulum.naive(day.year, day.month, day.day, clock.hour, clock.minute)


class Weekday(IntEnum):
    """Day of week, 0=Monday, 6=Sunday (same numbering as ``date.weekday()``)."""
    MONDAY = 0
    TUESDAY = 1
    WEDNESDAY = 2
    THURSDAY = 3
    FRIDAY = 4
    SATURDAY = 5
    SUNDAY = 6

    @property
    def key(self) -> str:
        """Lowercase English key used by stored schedules (``monday``...)."""
        return self.name.lower()

    @classmethod
    def from_key(cls, key: str) -> "Weekday":
        try:
            return cls[key.strip().upper()]
        except KeyError as exc:
            raise ValueError(f"Unknown weekday: {key!r}") from exc

    @classmethod
    def of(cls, day: date) -> "Weekday":
        return cls(day.weekday())


@dataclass(frozen=True)
class WorkingPeriod:
    """A start/end pair of wall-clock times as configured by the clinic."""
    start: time
    end: time


@dataclass(frozen=True)
class WeeklySlot:
    """
    Legacy per-weekday availability.

    One per weekday; ``ranges`` may be empty.
    """
    day: Weekday
    enabled: bool
    ranges: Tuple[WorkingPeriod, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "ranges", tuple(self.ranges))


@dataclass(frozen=True)
class ScheduleBlock:
    """
    Flexible, optionally date-ranged definition of working hours.

    ``start_time >= end_time`` is invalid but tolerated here; the schedule
    resolver skips such blocks.
    """
    days: FrozenSet[Weekday]
    start_time: time
    end_time: time
    slot_duration_minutes: Optional[int] = None
    valid_from: Optional[date] = None
    valid_to: Optional[date] = None

    def applies_to(self, day: date) -> bool:
        """Check weekday membership and the inclusive validity window."""
        if Weekday.of(day) not in self.days:
            return False
        if self.valid_from is not None and day < self.valid_from:
            return False
        if self.valid_to is not None and day > self.valid_to:
            return False
        return True


@dataclass(frozen=True)
class ProfessionalSchedule:
    """Everything configured about when a professional can be booked."""
    professional_id: str
    default_slot_duration_minutes: int = 30
    weekly: Dict[Weekday, WeeklySlot] = field(default_factory=dict, hash=False)
    blocks: Tuple[ScheduleBlock, ...] = ()
    closed_dates: FrozenSet[date] = frozenset()
    timezone: str = "America/Sao_Paulo"

    def __post_init__(self):
        object.__setattr__(self, "blocks", tuple(self.blocks))
        object.__setattr__(self, "closed_dates", frozenset(self.closed_dates))


@dataclass(frozen=True)
class TimeRange:
    """
    A normalized working range for one date, tagged with its slot duration.

    Invariant: start must be before end and the duration must be positive.
    """
    start: time
    end: time
    slot_duration_minutes: int

    def __post_init__(self):
        if self.start >= self.end:
            raise ValueError(f"Start time {self.start} must be before end time {self.end}")
        if self.slot_duration_minutes <= 0:
            raise ValueError(
                f"Slot duration must be positive, got {self.slot_duration_minutes}"
            )

    def contains(self, start: time, end: time) -> bool:
        """Check whether ``[start, end)`` lies fully inside this range."""
        return self.start <= start and end <= self.end

    def __str__(self) -> str:
        return f"{self.start:%H:%M} - {self.end:%H:%M} ({self.slot_duration_minutes} min)"


@dataclass(frozen=True)
class CandidateSlot:
    """A generated, never persisted bookable window."""
    date: date
    start_time: time
    end_time: time

    def overlaps(self, start: time, end: time) -> bool:
        return intervals_overlap(self.start_time, self.end_time, start, end)


class BookingStatus(str, Enum):
    """Appointment status as stored by the record store."""
    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ARRIVED = "arrived"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"

    @property
    def occupies_calendar(self) -> bool:
        return self not in (BookingStatus.CANCELLED, BookingStatus.NO_SHOW)


@dataclass(frozen=True)
class Booking:
    """An existing appointment, owned by the record store."""
    id: str
    professional_id: str
    date: date
    start_time: time
    end_time: time
    status: str = BookingStatus.SCHEDULED.value
    patient_id: Optional[str] = None

    @property
    def occupies_calendar(self) -> bool:
        """
        Cancelled and no-show bookings free their slot.

        Unknown statuses are treated as occupying.
        """
        try:
            return BookingStatus(self.status).occupies_calendar
        except ValueError:
            return True

    def overlaps(self, start: time, end: time) -> bool:
        return intervals_overlap(self.start_time, self.end_time, start, end)


@dataclass(frozen=True)
class BookingRequest:
    """
    A proposed booking submitted by a booking surface.

    Invariant: start must be before end.
    """
    professional_id: str
    date: date
    start_time: time
    end_time: time
    patient_id: Optional[str] = None

    def __post_init__(self):
        if self.start_time >= self.end_time:
            raise ValueError(
                f"Start time {self.start_time} must be before end time {self.end_time}"
            )

    def duration_minutes(self) -> int:
        return int((at_wall_clock(self.date, self.end_time)
                    - at_wall_clock(self.date, self.start_time)).total_seconds() // 60)


@dataclass(frozen=True)
class BookingRef:
    """Reference to the booking rendered in an occupied slot."""
    booking_id: str
    status: str
    patient_id: Optional[str] = None

    @classmethod
    def from_booking(cls, booking: Booking) -> "BookingRef":
        return cls(booking_id=booking.id, status=booking.status, patient_id=booking.patient_id)


@dataclass(frozen=True)
class AvailabilitySlot:
    """
    A candidate slot annotated against existing bookings.
    """
    date: date
    start_time: time
    end_time: time
    occupied: bool = False
    booking: Optional[BookingRef] = None

    @property
    def available(self) -> bool:
        return not self.occupied

