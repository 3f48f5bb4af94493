"""Booking cutoff rules.

Two independent rules decide whether a slot can still be sold:

* the per-slot lead time (``cancellation_cutoff_hours``), which escalates to
  ``cancellation_cutoff_hours_with_participant`` once anyone holds the slot;
* the calendar-level next-day rule: after ``next_day_cutoff_time`` today,
  nothing on tomorrow's date can be booked.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

from ..utils.time import JST, parse_hhmm
from .entities import DEFAULT_CUTOFF_HOURS, CutoffPolicy

logger = logging.getLogger(__name__)

SECONDS_PER_HOUR = 3600


def effective_cutoff_hours(policy: CutoffPolicy, *, has_existing_participants: bool) -> float:
    if has_existing_participants:
        return policy.cancellation_cutoff_hours_with_participant or DEFAULT_CUTOFF_HOURS
    return policy.cancellation_cutoff_hours or DEFAULT_CUTOFF_HOURS


def hours_until(tour_at: datetime, now: datetime) -> float:
    return (tour_at - now).total_seconds() / SECONDS_PER_HOUR


def tour_datetime(day: date, slot_time: object, *, now: datetime, tz: ZoneInfo = JST) -> datetime:
    """Combine a tour date and an "HH:MM" slot into an aware datetime.

    A malformed slot time resolves to ``now`` so the slot reads as already
    started instead of breaking the calendar.
    """
    parsed = parse_hhmm(slot_time)
    if parsed is None:
        logger.error("invalid time slot format %r for %s; treating slot as expired", slot_time, day)
        return now
    return datetime.combine(day, parsed, tzinfo=tz)


def is_slot_bookable(
    tour_at: datetime,
    now: datetime,
    has_existing_participants: bool,
    policy: CutoffPolicy,
) -> bool:
    cutoff = effective_cutoff_hours(policy, has_existing_participants=has_existing_participants)
    return hours_until(tour_at, now) >= cutoff


def is_next_day_blocked(
    candidate: date,
    today: date,
    now: datetime,
    policy: CutoffPolicy,
    *,
    tz: ZoneInfo = JST,
) -> bool:
    if candidate != today + timedelta(days=1):
        return False
    if not policy.next_day_cutoff_time:
        return False
    cutoff_time = parse_hhmm(policy.next_day_cutoff_time)
    if cutoff_time is None:
        logger.warning("ignoring malformed next-day cutoff time %r", policy.next_day_cutoff_time)
        return False
    return now >= datetime.combine(today, cutoff_time, tzinfo=tz)
