"""
Tests for slot generation.
"""

from datetime import date, time

import pendulum

from clinicslots.domain.models import AvailabilitySlot, BookingRef, TimeRange
from clinicslots.domain.slot_generator import SlotGenerator

MONDAY = date(2024, 11, 25)
TZ = "America/Sao_Paulo"


def _starts(slots):
    return [slot.start_time for slot in slots]


class TestGenerate:
    """Tests for SlotGenerator.generate."""

    def test_exact_fit_produces_one_slot(self):
        """09:00-09:30 every 30 min yields exactly 09:00-09:30."""
        ranges = [TimeRange(start=time(9, 0), end=time(9, 30), slot_duration_minutes=30)]

        slots = SlotGenerator().generate(ranges, MONDAY)

        assert len(slots) == 1
        assert slots[0].start_time == time(9, 0)
        assert slots[0].end_time == time(9, 30)
        assert slots[0].date == MONDAY

    def test_partial_trailing_slot_is_not_emitted(self):
        """09:00-09:29 every 30 min yields nothing."""
        ranges = [TimeRange(start=time(9, 0), end=time(9, 29), slot_duration_minutes=30)]

        assert SlotGenerator().generate(ranges, MONDAY) == []

    def test_steps_by_duration(self):
        ranges = [TimeRange(start=time(9, 0), end=time(10, 15), slot_duration_minutes=30)]

        slots = SlotGenerator().generate(ranges, MONDAY)

        assert [(s.start_time, s.end_time) for s in slots] == [
            (time(9, 0), time(9, 30)),
            (time(9, 30), time(10, 0)),
        ]

    def test_overlapping_ranges_emit_each_start_once(self):
        """The first range to produce a start time wins."""
        ranges = [
            TimeRange(start=time(8, 0), end=time(10, 0), slot_duration_minutes=60),
            TimeRange(start=time(8, 0), end=time(10, 0), slot_duration_minutes=30),
        ]

        slots = SlotGenerator().generate(ranges, MONDAY)

        assert _starts(slots) == [time(8, 0), time(8, 30), time(9, 0), time(9, 30)]
        assert len(set(_starts(slots))) == len(slots)

        by_start = {slot.start_time: slot for slot in slots}
        assert by_start[time(8, 0)].end_time == time(9, 0)  # from the 60 min range
        assert by_start[time(8, 30)].end_time == time(9, 0)  # only the 30 min range has it

    def test_output_sorted_across_ranges(self):
        ranges = [
            TimeRange(start=time(14, 0), end=time(15, 0), slot_duration_minutes=30),
            TimeRange(start=time(8, 0), end=time(9, 0), slot_duration_minutes=30),
        ]

        slots = SlotGenerator().generate(ranges, MONDAY)

        assert _starts(slots) == [time(8, 0), time(8, 30), time(14, 0), time(14, 30)]

    def test_range_ending_at_midnight_boundary(self):
        ranges = [TimeRange(start=time(23, 0), end=time(23, 59), slot_duration_minutes=30)]

        slots = SlotGenerator().generate(ranges, MONDAY)

        assert _starts(slots) == [time(23, 0)]

    def test_identical_inputs_yield_identical_lists(self):
        ranges = [TimeRange(start=time(8, 0), end=time(12, 0), slot_duration_minutes=20)]
        generator = SlotGenerator()

        first = generator.generate(ranges, MONDAY)
        second = generator.generate(ranges, MONDAY)

        assert first == second
        assert first is not second


class TestDropElapsed:
    """Tests for hiding slots that already started."""

    def _slots(self):
        return [
            AvailabilitySlot(date=MONDAY, start_time=time(8, 0), end_time=time(8, 30)),
            AvailabilitySlot(
                date=MONDAY,
                start_time=time(8, 30),
                end_time=time(9, 0),
                occupied=True,
                booking=BookingRef(booking_id="b1", status="confirmed"),
            ),
            AvailabilitySlot(date=MONDAY, start_time=time(9, 0), end_time=time(9, 30)),
            AvailabilitySlot(date=MONDAY, start_time=time(9, 30), end_time=time(10, 0)),
        ]

    def test_today_drops_started_free_slots_and_keeps_occupied(self):
        now = pendulum.datetime(2024, 11, 25, 9, 0, tz=TZ)

        kept = SlotGenerator.drop_elapsed(self._slots(), MONDAY, now, TZ)

        # 09:00 is not strictly after 09:00
        assert _starts(kept) == [time(8, 30), time(9, 30)]
        assert kept[0].occupied

    def test_now_is_converted_to_clinic_timezone(self):
        # 12:15 UTC is 09:15 in Sao Paulo
        now = pendulum.datetime(2024, 11, 25, 12, 15, tz="UTC")

        kept = SlotGenerator.drop_elapsed(self._slots(), MONDAY, now, TZ)

        assert _starts(kept) == [time(8, 30), time(9, 30)]

    def test_future_date_is_untouched(self):
        now = pendulum.datetime(2024, 11, 24, 23, 0, tz=TZ)

        kept = SlotGenerator.drop_elapsed(self._slots(), MONDAY, now, TZ)

        assert len(kept) == 4

    def test_past_date_keeps_only_occupied(self):
        now = pendulum.datetime(2024, 11, 26, 7, 0, tz=TZ)

        kept = SlotGenerator.drop_elapsed(self._slots(), MONDAY, now, TZ)

        assert _starts(kept) == [time(8, 30)]
