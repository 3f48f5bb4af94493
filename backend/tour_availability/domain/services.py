from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Iterator, Mapping, Optional
from zoneinfo import ZoneInfo

from ..utils.time import JST
from .cutoff import is_next_day_blocked, is_slot_bookable, tour_datetime
from .entities import DateAvailabilityRecord, TimeSlot, TourConfig


@dataclass(frozen=True)
class SlotSnapshot:
    """Value copy of everything one slot computation reads for a single date."""

    tour: TourConfig
    record: Optional[DateAvailabilityRecord]
    booked: Mapping[str, int] = field(default_factory=dict)

    @property
    def candidate_slots(self) -> tuple[TimeSlot, ...]:
        if self.record is not None:
            return self.record.time_slots
        return self.tour.configured_slots

    @property
    def is_authoritative(self) -> bool:
        return self.record is not None and not self.record.is_fallback


def has_spots(snapshot: SlotSnapshot, slot: TimeSlot, *, party_size: int) -> bool:
    """
    Provider counts win when the record is real and the slot carries a count.
    Otherwise only locally known bookings are compared against max_slots.
    """
    if snapshot.is_authoritative and slot.available_spots is not None:
        return slot.available_spots >= party_size
    booked = snapshot.booked.get(slot.time, 0)
    return booked + party_size <= snapshot.tour.max_slots


def is_slot_available(
    snapshot: SlotSnapshot,
    slot: TimeSlot,
    *,
    day: date,
    party_size: int,
    now: datetime,
    tz: ZoneInfo = JST,
) -> bool:
    tour_at = tour_datetime(day, slot.time, now=now, tz=tz)
    has_participants = snapshot.booked.get(slot.time, 0) > 0
    if not is_slot_bookable(tour_at, now, has_participants, snapshot.tour.policy):
        return False
    return has_spots(snapshot, slot, party_size=party_size)


def _available(
    snapshot: SlotSnapshot,
    *,
    day: date,
    party_size: int,
    now: datetime,
    tz: ZoneInfo,
) -> Iterator[TimeSlot]:
    for slot in snapshot.candidate_slots:
        if is_slot_available(snapshot, slot, day=day, party_size=party_size, now=now, tz=tz):
            yield slot


def bookable_slots(
    snapshot: SlotSnapshot,
    *,
    day: date,
    party_size: int,
    now: datetime,
    tz: ZoneInfo = JST,
) -> list[str]:
    """Bookable slot times for one date, in source order."""
    today = now.astimezone(tz).date()
    if is_next_day_blocked(day, today, now, snapshot.tour.policy, tz=tz):
        return []
    return [slot.time for slot in _available(snapshot, day=day, party_size=party_size, now=now, tz=tz)]


def is_fully_booked(
    snapshot: SlotSnapshot,
    *,
    day: date,
    party_size: int,
    now: datetime,
    tz: ZoneInfo = JST,
) -> bool:
    # Stops at the first available slot; the rest are never evaluated.
    for _ in _available(snapshot, day=day, party_size=party_size, now=now, tz=tz):
        return False
    return True


def is_date_disabled(
    snapshot: SlotSnapshot,
    *,
    day: date,
    party_size: int,
    now: datetime,
    tz: ZoneInfo = JST,
) -> bool:
    today = now.astimezone(tz).date()
    if day < today:
        return True
    if is_next_day_blocked(day, today, now, snapshot.tour.policy, tz=tz):
        return True
    return is_fully_booked(snapshot, day=day, party_size=party_size, now=now, tz=tz)
