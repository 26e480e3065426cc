"""
Resolution of a professional's configured availability for one date.

Both configuration forms (legacy weekday lists and schedule blocks) are
normalized into ``TimeRange`` objects here, so nothing downstream branches on
the representation.
"""

import logging
from datetime import date, time
from typing import Iterable, List, Optional, Tuple

from .models import ProfessionalSchedule, TimeRange, Weekday

logger = logging.getLogger(__name__)


class ScheduleModel:
    """
    Resolves a ``ProfessionalSchedule`` into working ranges for a date.

    Precedence:
    1. Closed dates (holidays, days off) resolve to nothing
    2. Blocks applicable to the date, in definition order
    3. Otherwise the enabled legacy weekday entry
    4. Otherwise nothing (the professional does not work that day)
    """

    def resolve_for_date(self, schedule: ProfessionalSchedule, day: date) -> List[TimeRange]:
        """
        Get the working ranges for a specific date.

        Returns an empty list when the professional does not work that day;
        this is a normal outcome, not an error.
        """
        if day in schedule.closed_dates:
            return []

        default_duration = schedule.default_slot_duration_minutes

        matched, ranges = self._ranges_from_blocks(schedule, day, default_duration)
        if matched:
            # Invalid matching blocks still shadow the legacy list.
            self._log_resolved(schedule, day, ranges)
            return ranges

        weekly = schedule.weekly.get(Weekday.of(day))
        if weekly is None or not weekly.enabled:
            return []

        ranges = [
            time_range
            for time_range in (
                self._build_range(
                    period.start,
                    period.end,
                    default_duration,
                    source=f"{weekly.day.key} legacy range",
                )
                for period in weekly.ranges
            )
            if time_range is not None
        ]
        self._log_resolved(schedule, day, ranges)
        return ranges

    def _ranges_from_blocks(
        self,
        schedule: ProfessionalSchedule,
        day: date,
        default_duration: int,
    ) -> Tuple[bool, List[TimeRange]]:
        """Return whether any block applies to ``day`` and the valid ranges among them."""
        matched = False
        ranges: List[TimeRange] = []

        for index, block in enumerate(schedule.blocks):
            if not block.applies_to(day):
                continue
            matched = True

            time_range = self._build_range(
                block.start_time,
                block.end_time,
                block.slot_duration_minutes or default_duration,
                source=f"block #{index}",
            )
            if time_range is not None:
                ranges.append(time_range)

        return matched, ranges

    @staticmethod
    def _log_resolved(schedule: ProfessionalSchedule, day: date, ranges: List[TimeRange]) -> None:
        logger.debug(
            "Resolved %s on %s: %s",
            schedule.professional_id,
            day,
            ", ".join(str(r) for r in ranges) or "no ranges",
        )

    @staticmethod
    def _build_range(
        start: time,
        end: time,
        duration: int,
        *,
        source: str,
    ) -> Optional[TimeRange]:
        """Build a range, skipping invalid configuration instead of failing."""
        if start >= end or duration <= 0:
            logger.warning(
                "Skipping invalid %s: %s-%s every %s min",
                source,
                start,
                end,
                duration,
            )
            return None
        return TimeRange(start=start, end=end, slot_duration_minutes=duration)

    @staticmethod
    def coverage(ranges: Iterable[TimeRange]) -> List[TimeRange]:
        """
        Merge overlapping or adjacent ranges into contiguous working windows.

        Durations are irrelevant for containment checks; the first range's
        duration is carried along.

        Example: [08:00-12:00, 12:00-14:00, 15:00-18:00] -> [08:00-14:00, 15:00-18:00]
        """
        sorted_ranges = sorted(ranges, key=lambda r: r.start)
        if not sorted_ranges:
            return []

        merged: List[TimeRange] = [sorted_ranges[0]]

        for current in sorted_ranges[1:]:
            last = merged[-1]

            if current.start <= last.end:
                merged[-1] = TimeRange(
                    start=last.start,
                    end=max(last.end, current.end),
                    slot_duration_minutes=last.slot_duration_minutes,
                )
            else:
                merged.append(current)

        return merged
