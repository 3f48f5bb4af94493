from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Mapping, Optional, Sequence

DEFAULT_CUTOFF_HOURS = 24

# date string -> time-slot string -> booked participants (adults + children)
ParticipantsByDate = Mapping[str, Mapping[str, int]]


class BookingStatus(StrEnum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"


class RecordSource(StrEnum):
    PROVIDER = "provider"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class TimeSlot:
    time: str
    # None means the provider gave no authoritative count for this slot.
    available_spots: Optional[int] = None


@dataclass(frozen=True)
class DateAvailabilityRecord:
    date: str
    time_slots: tuple[TimeSlot, ...]
    has_availability: bool
    fetched_at: datetime
    is_fallback: bool = False

    @property
    def source(self) -> RecordSource:
        return RecordSource.FALLBACK if self.is_fallback else RecordSource.PROVIDER

    def age_seconds(self, now: datetime) -> float:
        return (now - self.fetched_at).total_seconds()


@dataclass(frozen=True)
class CutoffPolicy:
    cancellation_cutoff_hours: float = DEFAULT_CUTOFF_HOURS
    cancellation_cutoff_hours_with_participant: float = DEFAULT_CUTOFF_HOURS
    next_day_cutoff_time: Optional[str] = None

    @classmethod
    def resolve(
        cls,
        *,
        cutoff_hours: float | None,
        cutoff_hours_with_participant: float | None,
        next_day_cutoff_time: str | None,
        default_hours: float = DEFAULT_CUTOFF_HOURS,
    ) -> "CutoffPolicy":
        """Fill unset (None or zero) cutoffs the way tour pages configure them."""
        base = cutoff_hours or default_hours
        return cls(
            cancellation_cutoff_hours=base,
            cancellation_cutoff_hours_with_participant=cutoff_hours_with_participant or base,
            next_day_cutoff_time=next_day_cutoff_time or None,
        )


@dataclass(frozen=True)
class PartySize:
    adults: int = 1
    children: int = 0
    infants: int = 0

    @property
    def seats(self) -> int:
        """Participants that count against slot capacity."""
        return self.adults + self.children

    @property
    def total(self) -> int:
        return self.adults + self.children + self.infants


@dataclass(frozen=True)
class BookingRecord:
    date: Optional[str]
    time: Optional[str]
    adults: int = 0
    children: int = 0
    infants: int = 0
    status: BookingStatus = BookingStatus.CONFIRMED


@dataclass(frozen=True)
class TourConfig:
    tour_key: str
    max_slots: int
    available_times: tuple[str, ...]
    policy: CutoffPolicy = field(default_factory=CutoffPolicy)
    price: int = 0
    min_participants: int = 1

    @property
    def configured_slots(self) -> tuple[TimeSlot, ...]:
        return tuple(TimeSlot(time=t) for t in self.available_times)


def as_time_tuple(times: Sequence[str]) -> tuple[str, ...]:
    return tuple(t for t in times if isinstance(t, str))


def normalize_tour_key(tour_key: str) -> str:
    """Map "uji-walking-tour" style keys onto the "UJI_WALKING_TOUR" tour type."""
    return tour_key.strip().upper().replace("-", "_").replace(" ", "_")
