from __future__ import annotations

import logging
from typing import Any, Iterable, Sequence

from .entities import BookingRecord

logger = logging.getLogger(__name__)


def build_participants_by_date(
    bookings: Iterable[BookingRecord] | Any,
    configured_time_slots: Sequence[str],
) -> dict[str, dict[str, int]]:
    """
    Pure aggregation of booked participants per date and time slot.
    Every configured slot of a date with at least one booking is present (0 if unbooked).
    Infants are not counted. Bookings without a date or time are skipped.
    """
    if not isinstance(bookings, (list, tuple)):
        if bookings is not None:
            logger.warning("expected a list of bookings, got %s; treating as empty", type(bookings).__name__)
        return {}

    by_date: dict[str, dict[str, int]] = {}
    for booking in bookings:
        if not booking.date or not booking.time:
            continue
        day = by_date.setdefault(booking.date, {})
        for slot in configured_time_slots:
            day.setdefault(slot, 0)
        day[booking.time] = day.get(booking.time, 0) + booking.adults + booking.children
    return by_date
