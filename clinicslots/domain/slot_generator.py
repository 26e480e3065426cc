"""
Core business logic for expanding working ranges into bookable slots.

Pure domain logic: no store access, no wall-clock reads. The current
instant is always passed in by the caller.
"""

from datetime import date, time
from typing import List, Sequence, Set

import pendulum
from pendulum import DateTime

from .models import AvailabilitySlot, CandidateSlot, TimeRange, at_wall_clock


class SlotGenerator:
    """
    Generates fixed-duration candidate slots for one calendar date.

    Algorithm:
    1. For each range, step from its start by the range's slot duration
    2. Emit a slot only if it ends within the range (no partial trailing slot)
    3. Deduplicate by start time, keeping the first slot encountered
    4. Sort ascending by start time
    """

    def generate(self, ranges: Sequence[TimeRange], day: date) -> List[CandidateSlot]:
        """
        Generate candidate slots for ``day``.

        Args:
            ranges: Working ranges in priority order (as resolved by ScheduleModel)
            day: The calendar date the slots belong to

        Returns:
            A new list of CandidateSlot objects ordered by start time
        """
        slots: List[CandidateSlot] = []
        seen_starts: Set = set()

        # Dedup must follow encounter order, so it happens before sorting.
        for time_range in ranges:
            for slot in self._expand_range(time_range, day):
                if slot.start_time in seen_starts:
                    continue
                seen_starts.add(slot.start_time)
                slots.append(slot)

        slots.sort(key=lambda s: s.start_time)
        return slots

    def _expand_range(self, time_range: TimeRange, day: date) -> List[CandidateSlot]:
        """
        Split one range into consecutive slots.

        Example:
        Range: 09:00 - 10:15, every 30 min
        Result: [09:00-09:30, 09:30-10:00]
        """
        if time_range.slot_duration_minutes <= 0 or time_range.start >= time_range.end:
            return []

        expanded: List[CandidateSlot] = []
        range_end = at_wall_clock(day, time_range.end)
        current = at_wall_clock(day, time_range.start)

        while True:
            slot_end = current.add(minutes=time_range.slot_duration_minutes)
            if slot_end > range_end:
                break

            expanded.append(
                CandidateSlot(
                    date=day,
                    start_time=time(current.hour, current.minute),
                    end_time=time(slot_end.hour, slot_end.minute),
                )
            )
            current = slot_end

        return expanded

    @staticmethod
    def drop_elapsed(
        slots: Sequence[AvailabilitySlot],
        day: date,
        now: DateTime,
        timezone: str,
    ) -> List[AvailabilitySlot]:
        """
        Remove free slots that can no longer be booked.

        ``now`` is converted to the clinic's timezone. On that local date,
        a free slot survives only if it starts strictly after the current
        time; earlier dates lose every free slot. Occupied slots are always
        kept so past bookings remain visible.
        """
        local_now = pendulum.instance(now).in_timezone(timezone)
        today = local_now.date()

        if day > today:
            return list(slots)

        current_time = time(
            local_now.hour, local_now.minute, local_now.second, local_now.microsecond
        )
        kept: List[AvailabilitySlot] = []

        for slot in slots:
            if slot.occupied:
                kept.append(slot)
            elif day == today and slot.start_time > current_time:
                kept.append(slot)

        return kept
