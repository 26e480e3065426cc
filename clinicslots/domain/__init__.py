"""
Domain layer - Pure scheduling logic without external dependencies.
"""

from .conflict_resolver import ConflictResolver
from .models import (
    AvailabilitySlot,
    Booking,
    BookingRef,
    BookingRequest,
    BookingStatus,
    CandidateSlot,
    ProfessionalSchedule,
    ScheduleBlock,
    TimeRange,
    WeeklySlot,
    Weekday,
    WorkingPeriod,
)
from .schedule_model import ScheduleModel
from .slot_generator import SlotGenerator

__all__ = [
    "AvailabilitySlot",
    "Booking",
    "BookingRef",
    "BookingRequest",
    "BookingStatus",
    "CandidateSlot",
    "ConflictResolver",
    "ProfessionalSchedule",
    "ScheduleBlock",
    "ScheduleModel",
    "SlotGenerator",
    "TimeRange",
    "WeeklySlot",
    "Weekday",
    "WorkingPeriod",
]
