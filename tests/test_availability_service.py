"""
Tests for the AvailabilityService orchestration layer.
"""

import asyncio
from datetime import date, time
from typing import Dict, List, Optional

import pendulum

from clinicslots.domain.exceptions import (
    BookingConflictError,
    ScheduleFormatError,
    StoreUnavailableError,
)
from clinicslots.domain.models import (
    Booking,
    BookingRequest,
    ProfessionalSchedule,
    ScheduleBlock,
    WeeklySlot,
    Weekday,
)
from clinicslots.domain.results import (
    OutsideBookingWindow,
    OutsideSchedule,
    SlotConflict,
    StoreUnavailable,
)
from clinicslots.services.availability import AvailabilityService, BookingPolicy

TZ = "America/Sao_Paulo"
MONDAY = date(2024, 11, 25)
TUESDAY = date(2024, 11, 26)
NOW = pendulum.datetime(2024, 11, 20, 12, 0, tz=TZ)


class StubRecordStore:
    """Minimal stub matching RecordStoreProtocol."""

    def __init__(
        self,
        schedules: Dict[str, ProfessionalSchedule],
        bookings: Optional[List[Booking]] = None,
        *,
        fail_reads: bool = False,
        insert_error: Optional[Exception] = None,
    ):
        self._schedules = schedules
        self.bookings: List[Booking] = list(bookings or [])
        self.fail_reads = fail_reads
        self.insert_error = insert_error
        self.inserted: List[BookingRequest] = []

    async def get_schedule(self, professional_id):
        if self.fail_reads:
            raise StoreUnavailableError("connection refused")
        return self._schedules.get(professional_id)

    async def list_bookings(self, professional_id, day):
        if self.fail_reads:
            raise StoreUnavailableError("connection refused")
        return [
            b for b in self.bookings
            if b.professional_id == professional_id and b.date == day
        ]

    async def insert_booking(self, request):
        if self.insert_error is not None:
            raise self.insert_error
        self.inserted.append(request)
        booking = Booking(
            id=f"bk-{len(self.inserted)}",
            professional_id=request.professional_id,
            date=request.date,
            start_time=request.start_time,
            end_time=request.end_time,
            patient_id=request.patient_id,
        )
        self.bookings.append(booking)
        return booking


def _morning_block_schedule() -> ProfessionalSchedule:
    """One Monday block 08:00-09:00 every 30 min."""
    return ProfessionalSchedule(
        professional_id="p1",
        blocks=[
            ScheduleBlock(
                days=frozenset({Weekday.MONDAY}),
                start_time=time(8, 0),
                end_time=time(9, 0),
                slot_duration_minutes=30,
            )
        ],
        timezone=TZ,
    )


def _build_service(store: StubRecordStore, **kwargs) -> AvailabilityService:
    return AvailabilityService(store, clock=lambda: NOW, **kwargs)


def _booking(start: time, end: time, status: str = "confirmed", booking_id: str = "appt-1") -> Booking:
    return Booking(
        id=booking_id,
        professional_id="p1",
        date=MONDAY,
        start_time=start,
        end_time=end,
        status=status,
    )


def _request(start: time, end: time, day: date = MONDAY, professional_id: str = "p1") -> BookingRequest:
    return BookingRequest(
        professional_id=professional_id,
        date=day,
        start_time=start,
        end_time=end,
        patient_id="pat-1",
    )


def test_day_slots_from_single_block():
    """One 08:00-09:00 block every 30 min gives two free slots."""
    service = _build_service(StubRecordStore({"p1": _morning_block_schedule()}))

    result = asyncio.run(service.get_day_slots("p1", MONDAY))

    assert result.ok
    assert [(s.start_time, s.end_time, s.available) for s in result.value] == [
        (time(8, 0), time(8, 30), True),
        (time(8, 30), time(9, 0), True),
    ]


def test_day_slots_mark_confirmed_booking():
    """The first slot is occupied and references the booking."""
    store = StubRecordStore(
        {"p1": _morning_block_schedule()},
        [_booking(time(8, 0), time(8, 30))],
    )
    service = _build_service(store)

    slots = asyncio.run(service.get_day_slots("p1", MONDAY)).unwrap()

    assert slots[0].occupied
    assert slots[0].booking.booking_id == "appt-1"
    assert slots[1].available


def test_day_slots_ignore_cancelled_booking():
    """Cancelled bookings never occupy."""
    store = StubRecordStore(
        {"p1": _morning_block_schedule()},
        [_booking(time(8, 0), time(8, 30), status="cancelled")],
    )
    service = _build_service(store)

    slots = asyncio.run(service.get_day_slots("p1", MONDAY)).unwrap()

    assert all(slot.available for slot in slots)


def test_block_wins_over_disabled_legacy_day():
    """A block on a disabled legacy day still produces slots."""
    schedule = ProfessionalSchedule(
        professional_id="p1",
        weekly={Weekday.TUESDAY: WeeklySlot(day=Weekday.TUESDAY, enabled=False)},
        blocks=[
            ScheduleBlock(
                days=frozenset({Weekday.TUESDAY}),
                start_time=time(8, 0),
                end_time=time(10, 0),
                slot_duration_minutes=60,
            )
        ],
        timezone=TZ,
    )
    service = _build_service(StubRecordStore({"p1": schedule}))

    slots = asyncio.run(service.get_day_slots("p1", TUESDAY)).unwrap()

    assert [s.start_time for s in slots] == [time(8, 0), time(9, 0)]


def test_day_slots_are_idempotent():
    store = StubRecordStore(
        {"p1": _morning_block_schedule()},
        [_booking(time(8, 30), time(9, 0))],
    )
    service = _build_service(store)

    first = asyncio.run(service.get_day_slots("p1", MONDAY))
    second = asyncio.run(service.get_day_slots("p1", MONDAY))

    assert first == second


def test_day_slots_drop_elapsed_slots_with_injected_now():
    store = StubRecordStore({"p1": _morning_block_schedule()})
    service = _build_service(store)
    now = pendulum.datetime(2024, 11, 25, 8, 10, tz=TZ)

    slots = asyncio.run(service.get_day_slots("p1", MONDAY, now=now)).unwrap()

    assert [s.start_time for s in slots] == [time(8, 30)]


def test_unknown_professional_has_no_slots():
    service = _build_service(StubRecordStore({}))

    result = asyncio.run(service.get_day_slots("nobody", MONDAY))

    assert result.ok
    assert result.value == []


def test_non_working_day_has_no_slots():
    service = _build_service(StubRecordStore({"p1": _morning_block_schedule()}))

    assert asyncio.run(service.get_day_slots("p1", TUESDAY)).value == []


def test_malformed_schedule_is_treated_as_no_schedule():
    class MalformedStore(StubRecordStore):
        async def get_schedule(self, professional_id):
            raise ScheduleFormatError("bad JSON")

    service = _build_service(MalformedStore({}))

    result = asyncio.run(service.get_day_slots("p1", MONDAY))

    assert result.ok
    assert result.value == []


def test_store_outage_is_reported_not_raised():
    service = _build_service(StubRecordStore({"p1": _morning_block_schedule()}, fail_reads=True))

    slots_result = asyncio.run(service.get_day_slots("p1", MONDAY))
    book_result = asyncio.run(service.book_slot(_request(time(8, 0), time(8, 30))))

    assert isinstance(slots_result.error, StoreUnavailable)
    assert isinstance(book_result.error, StoreUnavailable)
    assert slots_result.error.detail == "connection refused"
    assert book_result.error.detail == "connection refused"


def test_book_slot_persists_valid_request():
    store = StubRecordStore({"p1": _morning_block_schedule()})
    service = _build_service(store)

    result = asyncio.run(service.book_slot(_request(time(8, 0), time(8, 30))))

    assert result.ok
    assert result.value.id == "bk-1"
    assert len(store.inserted) == 1

    slots = asyncio.run(service.get_day_slots("p1", MONDAY)).unwrap()
    assert slots[0].occupied
    assert slots[0].booking.booking_id == "bk-1"


def test_book_slot_rejects_overlap_without_insert():
    store = StubRecordStore(
        {"p1": _morning_block_schedule()},
        [_booking(time(8, 0), time(8, 30), booking_id="appt-7")],
    )
    service = _build_service(store)

    result = asyncio.run(service.book_slot(_request(time(8, 15), time(8, 45))))

    assert isinstance(result.error, SlotConflict)
    assert result.error.booking_id == "appt-7"
    assert store.inserted == []


def test_book_slot_rejects_time_outside_schedule():
    """Off-grid times inside the range are fine, times before it are not."""
    store = StubRecordStore({"p1": _morning_block_schedule()})
    service = _build_service(store)

    inside = asyncio.run(service.book_slot(_request(time(8, 15), time(8, 45))))
    outside = asyncio.run(service.book_slot(_request(time(7, 30), time(8, 0))))

    assert inside.ok
    assert isinstance(outside.error, OutsideSchedule)


def test_book_slot_for_unknown_professional_is_outside_schedule():
    service = _build_service(StubRecordStore({}))

    result = asyncio.run(service.book_slot(_request(time(8, 0), time(8, 30), professional_id="ghost")))

    assert isinstance(result.error, OutsideSchedule)


def test_store_conflict_on_insert_becomes_slot_conflict():
    """A race lost at the store is reported like any other conflict."""
    store = StubRecordStore(
        {"p1": _morning_block_schedule()},
        insert_error=BookingConflictError("duplicate key", booking_id="appt-race"),
    )
    service = _build_service(store)

    result = asyncio.run(service.book_slot(_request(time(8, 0), time(8, 30))))

    assert isinstance(result.error, SlotConflict)
    assert result.error.booking_id == "appt-race"
    assert result.error.message == "Horário já ocupado"


def test_store_outage_on_insert_becomes_store_unavailable():
    store = StubRecordStore(
        {"p1": _morning_block_schedule()},
        insert_error=StoreUnavailableError("timeout"),
    )
    service = _build_service(store)

    result = asyncio.run(service.book_slot(_request(time(8, 0), time(8, 30))))

    assert isinstance(result.error, StoreUnavailable)
    assert result.error.detail == "timeout"


def test_book_slot_rejects_past_date():
    service = _build_service(StubRecordStore({"p1": _morning_block_schedule()}))

    result = asyncio.run(
        service.book_slot(_request(time(8, 0), time(8, 30), day=date(2024, 11, 18)))
    )

    assert isinstance(result.error, OutsideBookingWindow)
    assert result.error.message == "Não é possível agendar para datas passadas"


def test_book_slot_rejects_elapsed_time_today():
    service = _build_service(StubRecordStore({"p1": _morning_block_schedule()}))
    now = pendulum.datetime(2024, 11, 25, 8, 10, tz=TZ)

    elapsed = asyncio.run(service.book_slot(_request(time(8, 0), time(8, 30)), now=now))
    upcoming = asyncio.run(service.book_slot(_request(time(8, 30), time(9, 0)), now=now))

    assert isinstance(elapsed.error, OutsideBookingWindow)
    assert upcoming.ok


def test_book_slot_rejects_date_beyond_horizon():
    service = _build_service(StubRecordStore({"p1": _morning_block_schedule()}))

    result = asyncio.run(
        service.book_slot(_request(time(8, 0), time(8, 30), day=date(2025, 3, 3)))
    )

    assert isinstance(result.error, OutsideBookingWindow)
    assert "90 dias" in result.error.message


def test_policy_can_allow_past_dates():
    service = _build_service(
        StubRecordStore({"p1": _morning_block_schedule()}),
        policy=BookingPolicy(allow_past_dates=True),
    )

    result = asyncio.run(
        service.book_slot(_request(time(8, 0), time(8, 30), day=date(2024, 11, 18)))
    )

    assert result.ok
