"""
Typed results returned to booking surfaces.

Expected failures (a slot already taken, a time outside working hours, an
unreachable store) are values, not exceptions, so every surface can render a
precise message.
"""

from dataclasses import dataclass
from datetime import time
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class BookingFailure:
    """Base for every failure kind."""
    message: str

    @property
    def kind(self) -> str:
        return type(self).__name__


@dataclass(frozen=True)
class OutsideSchedule(BookingFailure):
    """The proposed time is not inside the professional's working hours."""
    start_time: Optional[time] = None
    end_time: Optional[time] = None


@dataclass(frozen=True)
class SlotConflict(BookingFailure):
    """The proposed time overlaps a booking that occupies the calendar."""
    booking_id: Optional[str] = None


@dataclass(frozen=True)
class StoreUnavailable(BookingFailure):
    """The record store could not be reached; retry policy is the caller's."""
    detail: Optional[str] = None


@dataclass(frozen=True)
class OutsideBookingWindow(BookingFailure):
    """The date is in the past or beyond the advance-booking horizon."""


@dataclass(frozen=True)
class Result(Generic[T]):
    """Either a value or a failure, never both."""
    value: Optional[T] = None
    error: Optional[BookingFailure] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: BookingFailure) -> "Result[T]":
        return cls(error=error)

    def unwrap(self) -> T:
        """Return the value or raise ``ValueError`` carrying the failure message."""
        if self.error is not None:
            raise ValueError(f"{self.error.kind}: {self.error.message}")
        return self.value  # type: ignore[return-value]


SLOT_CONFLICT_MESSAGE = "Horário já ocupado"
OUTSIDE_SCHEDULE_MESSAGE = "Horário fora do expediente do profissional"
STORE_UNAVAILABLE_MESSAGE = "Não foi possível acessar a agenda. Tente novamente."
PAST_DATE_MESSAGE = "Não é possível agendar para datas passadas"
TOO_FAR_AHEAD_MESSAGE = "Agendamentos permitidos apenas para os próximos {days} dias"
