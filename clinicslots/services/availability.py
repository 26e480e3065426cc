"""
Application service answering "what slots can I show" and "can I book this".

The service coordinates reading schedules and bookings via a record store
adapter and delegates the availability computation to the domain-level
``ScheduleModel``, ``SlotGenerator`` and ``ConflictResolver``. Every booking
surface (public page, mobile flows, daily agenda) calls this instead of
re-implementing the rules, and the store dependency can be stubbed via a
simple protocol.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, time
from typing import Callable, List, Optional, Protocol

import pendulum
from pendulum import DateTime

from ..domain.conflict_resolver import ConflictResolver
from ..domain.exceptions import BookingConflictError, ScheduleFormatError, StoreUnavailableError
from ..domain.models import AvailabilitySlot, Booking, BookingRequest, ProfessionalSchedule
from ..domain.results import (
    OUTSIDE_SCHEDULE_MESSAGE,
    PAST_DATE_MESSAGE,
    SLOT_CONFLICT_MESSAGE,
    STORE_UNAVAILABLE_MESSAGE,
    TOO_FAR_AHEAD_MESSAGE,
    OutsideBookingWindow,
    OutsideSchedule,
    Result,
    SlotConflict,
    StoreUnavailable,
)
from ..domain.schedule_model import ScheduleModel
from ..domain.slot_generator import SlotGenerator

logger = logging.getLogger(__name__)


class RecordStoreProtocol(Protocol):
    """Protocol describing the record store behaviour needed by the service."""

    async def get_schedule(self, professional_id: str) -> Optional[ProfessionalSchedule]:
        """Return the professional's schedule, or None if unknown."""

    async def list_bookings(self, professional_id: str, day: date) -> List[Booking]:
        """Return all bookings (any status) for the professional on ``day``."""

    async def insert_booking(self, request: BookingRequest) -> Booking:
        """
        Insert a booking atomically.

        Must raise BookingConflictError when the store's own uniqueness or
        overlap constraint rejects the row.
        """


@dataclass(frozen=True)
class BookingPolicy:
    """How far ahead, and whether in the past, bookings are accepted."""
    max_advance_days: int = 90
    allow_past_dates: bool = False


class AvailabilityService:
    """
    Facade combining schedule resolution, slot generation and conflict checks.

    Expected conditions (no schedule, fully booked day) are ordinary results;
    taken slots, times outside working hours and store outages come back as
    typed failures, never as exceptions.
    """

    def __init__(
        self,
        store: RecordStoreProtocol,
        *,
        schedule_model: Optional[ScheduleModel] = None,
        slot_generator: Optional[SlotGenerator] = None,
        conflict_resolver: Optional[ConflictResolver] = None,
        policy: Optional[BookingPolicy] = None,
        clock: Callable[[], DateTime] = pendulum.now,
    ) -> None:
        self._store = store
        self._schedule_model = schedule_model or ScheduleModel()
        self._slot_generator = slot_generator or SlotGenerator()
        self._conflict_resolver = conflict_resolver or ConflictResolver()
        self._policy = policy or BookingPolicy()
        self._clock = clock

    async def get_day_slots(
        self,
        professional_id: str,
        day: date,
        now: Optional[DateTime] = None,
    ) -> Result[List[AvailabilitySlot]]:
        """
        Compute the slots to display for a professional on ``day``.

        Returns an empty list when the professional is unknown or does not
        work that day. Elapsed free slots are dropped relative to ``now``.
        """
        current = now or self._clock()

        schedule = await self._load_schedule(professional_id)
        if isinstance(schedule, StoreUnavailable):
            return Result.failure(schedule)
        if schedule is None:
            return Result.success([])

        ranges = self._schedule_model.resolve_for_date(schedule, day)
        if not ranges:
            return Result.success([])

        candidates = self._slot_generator.generate(ranges, day)

        bookings = await self._load_bookings(professional_id, day)
        if isinstance(bookings, StoreUnavailable):
            return Result.failure(bookings)

        annotated = self._conflict_resolver.annotate(
            candidates,
            bookings,
            professional_id=professional_id,
        )

        return Result.success(
            self._slot_generator.drop_elapsed(annotated, day, current, schedule.timezone)
        )

    async def book_slot(
        self,
        request: BookingRequest,
        now: Optional[DateTime] = None,
    ) -> Result[Booking]:
        """
        Re-validate and persist a booking.

        Bookings are re-read right before the insert; a slot list computed
        earlier is never trusted. The store's constraint has the final word.
        """
        current = now or self._clock()

        schedule = await self._load_schedule(request.professional_id)
        if isinstance(schedule, StoreUnavailable):
            return Result.failure(schedule)
        if schedule is None:
            return Result.failure(
                OutsideSchedule(
                    message=OUTSIDE_SCHEDULE_MESSAGE,
                    start_time=request.start_time,
                    end_time=request.end_time,
                )
            )

        window_error = self._check_booking_window(request, current, schedule.timezone)
        if window_error is not None:
            return Result.failure(window_error)

        ranges = self._schedule_model.resolve_for_date(schedule, request.date)

        bookings = await self._load_bookings(request.professional_id, request.date)
        if isinstance(bookings, StoreUnavailable):
            return Result.failure(bookings)

        verdict = self._conflict_resolver.validate_new_booking(request, bookings, ranges)
        if not verdict.ok:
            logger.info(
                "Rejected booking for %s on %s %s-%s: %s",
                request.professional_id,
                request.date,
                request.start_time,
                request.end_time,
                verdict.error.kind,
            )
            return Result.failure(verdict.error)

        try:
            booking = await self._store.insert_booking(request)
        except BookingConflictError as exc:
            logger.info(
                "Store rejected racing booking for %s on %s %s: %s",
                request.professional_id,
                request.date,
                request.start_time,
                exc,
            )
            return Result.failure(
                SlotConflict(message=SLOT_CONFLICT_MESSAGE, booking_id=exc.booking_id)
            )
        except StoreUnavailableError as exc:
            logger.error("Could not insert booking for %s: %s", request.professional_id, exc)
            return Result.failure(
                StoreUnavailable(message=STORE_UNAVAILABLE_MESSAGE, detail=str(exc))
            )

        logger.info(
            "Booked %s for %s on %s %s-%s",
            booking.id,
            booking.professional_id,
            booking.date,
            booking.start_time,
            booking.end_time,
        )
        return Result.success(booking)

    async def _load_schedule(self, professional_id: str):
        """Return the schedule, None, or a StoreUnavailable failure."""
        try:
            return await self._store.get_schedule(professional_id)
        except ScheduleFormatError as exc:
            logger.warning("Ignoring malformed schedule of %s: %s", professional_id, exc)
            return None
        except StoreUnavailableError as exc:
            logger.error("Could not load schedule of %s: %s", professional_id, exc)
            return StoreUnavailable(message=STORE_UNAVAILABLE_MESSAGE, detail=str(exc))

    async def _load_bookings(self, professional_id: str, day: date):
        """Return the bookings list or a StoreUnavailable failure."""
        try:
            return await self._store.list_bookings(professional_id, day)
        except StoreUnavailableError as exc:
            logger.error("Could not load bookings of %s on %s: %s", professional_id, day, exc)
            return StoreUnavailable(message=STORE_UNAVAILABLE_MESSAGE, detail=str(exc))

    def _check_booking_window(
        self,
        request: BookingRequest,
        now: DateTime,
        timezone: str,
    ) -> Optional[OutsideBookingWindow]:
        local_now = pendulum.instance(now).in_timezone(timezone)
        today = date(local_now.year, local_now.month, local_now.day)

        if not self._policy.allow_past_dates:
            if request.date < today:
                return OutsideBookingWindow(message=PAST_DATE_MESSAGE)
            current_time = time(local_now.hour, local_now.minute, local_now.second)
            if request.date == today and request.start_time <= current_time:
                return OutsideBookingWindow(message=PAST_DATE_MESSAGE)

        horizon = pendulum.date(today.year, today.month, today.day).add(
            days=self._policy.max_advance_days
        )
        if request.date > horizon:
            return OutsideBookingWindow(
                message=TOO_FAR_AHEAD_MESSAGE.format(days=self._policy.max_advance_days)
            )

        return None
