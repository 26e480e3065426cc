"""
Conflict detection between candidate slots and existing bookings.
"""

from typing import Iterable, List, Optional, Sequence

from .models import AvailabilitySlot, Booking, BookingRef, BookingRequest, CandidateSlot, TimeRange
from .results import (
    OUTSIDE_SCHEDULE_MESSAGE,
    SLOT_CONFLICT_MESSAGE,
    OutsideSchedule,
    Result,
    SlotConflict,
)
from .schedule_model import ScheduleModel


class ConflictResolver:
    """
    Marks slots as available or occupied and validates proposed bookings.

    Both operations use the same half-open overlap test, so a slot shown as
    occupied can never be validated as bookable.
    """

    def annotate(
        self,
        slots: Sequence[CandidateSlot],
        bookings: Iterable[Booking],
        professional_id: Optional[str] = None,
    ) -> List[AvailabilitySlot]:
        """
        Annotate candidate slots against existing bookings.

        Args:
            slots: Candidate slots, all on the same date
            bookings: Bookings as read from the store (any status)
            professional_id: When given, bookings of other professionals are ignored

        Returns:
            A new list of AvailabilitySlot objects in the same order as ``slots``
        """
        occupying = self._occupying(bookings, professional_id)
        annotated: List[AvailabilitySlot] = []

        for slot in slots:
            overlapping = [
                booking for booking in occupying
                if booking.date == slot.date
                and slot.overlaps(booking.start_time, booking.end_time)
            ]

            # A booking spanning several slots is rendered once, on the slot it starts in.
            starting_here = next(
                (b for b in overlapping if b.start_time == slot.start_time),
                None,
            )

            annotated.append(
                AvailabilitySlot(
                    date=slot.date,
                    start_time=slot.start_time,
                    end_time=slot.end_time,
                    occupied=bool(overlapping),
                    booking=BookingRef.from_booking(starting_here) if starting_here else None,
                )
            )

        return annotated

    def validate_new_booking(
        self,
        proposed: BookingRequest,
        existing_bookings: Iterable[Booking],
        ranges: Sequence[TimeRange],
    ) -> Result[BookingRequest]:
        """
        Validate a proposed booking before it is persisted.

        Args:
            proposed: The booking to validate
            existing_bookings: Bookings for the professional on that date
            ranges: The date's resolved working ranges

        Returns:
            Result holding the request, or a SlotConflict / OutsideSchedule failure
        """
        conflict = self.find_conflict(proposed, existing_bookings)
        if conflict is not None:
            return Result.failure(
                SlotConflict(message=SLOT_CONFLICT_MESSAGE, booking_id=conflict.id)
            )

        if not self.within_schedule(proposed, ranges):
            return Result.failure(
                OutsideSchedule(
                    message=OUTSIDE_SCHEDULE_MESSAGE,
                    start_time=proposed.start_time,
                    end_time=proposed.end_time,
                )
            )

        return Result.success(proposed)

    def find_conflict(
        self,
        proposed: BookingRequest,
        existing_bookings: Iterable[Booking],
    ) -> Optional[Booking]:
        """Return the first occupying booking that overlaps ``proposed``, if any."""
        for booking in self._occupying(existing_bookings, proposed.professional_id):
            if booking.date != proposed.date:
                continue
            if booking.overlaps(proposed.start_time, proposed.end_time):
                return booking
        return None

    @staticmethod
    def within_schedule(proposed: BookingRequest, ranges: Sequence[TimeRange]) -> bool:
        """
        Check containment in the merged working windows.

        Adjacent ranges (e.g. two blocks 08:00-12:00 and 12:00-14:00) count
        as one continuous window.
        """
        return any(
            window.contains(proposed.start_time, proposed.end_time)
            for window in ScheduleModel.coverage(ranges)
        )

    @staticmethod
    def _occupying(
        bookings: Iterable[Booking],
        professional_id: Optional[str],
    ) -> List[Booking]:
        return [
            booking for booking in bookings
            if booking.occupies_calendar
            and (professional_id is None or booking.professional_id == professional_id)
        ]
