from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import Callable
from zoneinfo import ZoneInfo

from ..domain.entities import PartySize
from ..domain.errors import InvalidDateRangeError, TourNotFoundError
from ..domain.repositories import BookingRepository, TourRepository
from ..utils.event_log import emit_availability_event
from ..utils.time import JST, iter_dates
from .availability_cache import AvailabilityCache
from .slots import SlotResolver, load_resolver

logger = logging.getLogger(__name__)

SEARCH_DAYS = 365
PRELOAD_WINDOW_DAYS = 31


async def find_next_available_date(
    resolver: SlotResolver,
    *,
    party_size: int = 1,
    search_days: int = SEARCH_DAYS,
    window_days: int = PRELOAD_WINDOW_DAYS,
) -> date:
    """
    First date from today (inclusive) the calendar would leave enabled.

    The horizon is scanned one window at a time, preloading each window before
    checking it, since the disable check only reads the cache. Falls back to
    today when nothing is open within ``search_days``.
    """
    tour = resolver.tour
    today = resolver.now().astimezone(resolver.tz).date()
    horizon_end = today + timedelta(days=search_days - 1)

    window_start = today
    while window_start <= horizon_end:
        window_end = min(window_start + timedelta(days=window_days - 1), horizon_end)
        await resolver.cache.preload(tour.tour_key, window_start, window_end, fallback_times=tour.available_times)
        for day in iter_dates(window_start, window_end):
            if not resolver.disable_date(day, party_size):
                return day
        window_start = window_end + timedelta(days=1)

    logger.warning("no available date for %s within %d days, defaulting to today", tour.tour_key, search_days)
    emit_availability_event(
        event="availability.scan_exhausted",
        product_key=resolver.cache.resolve_product_key(tour.tour_key),
        date_from=today,
        date_to=horizon_end,
    )
    return today


async def next_available_date(
    tour_repo: TourRepository,
    booking_repo: BookingRepository,
    cache: AvailabilityCache,
    *,
    tour_key: str,
    party: PartySize | None = None,
    search_days: int = SEARCH_DAYS,
    window_days: int = PRELOAD_WINDOW_DAYS,
    tz: ZoneInfo = JST,
    clock: Callable[[], datetime] | None = None,
) -> date:
    resolver = await load_resolver(tour_repo, booking_repo, cache, tour_key=tour_key, tz=tz, clock=clock)
    seats = (party or PartySize(adults=resolver.tour.min_participants)).seats
    return await find_next_available_date(
        resolver, party_size=seats, search_days=search_days, window_days=window_days
    )


async def preload_calendar(
    tour_repo: TourRepository,
    cache: AvailabilityCache,
    *,
    tour_key: str,
    start: date,
    end: date,
    max_days: int = SEARCH_DAYS,
) -> int:
    if end < start:
        raise InvalidDateRangeError("end must not be earlier than start")
    if (end - start).days + 1 > max_days:
        raise InvalidDateRangeError(f"range must not exceed {max_days} days")
    tour = await tour_repo.get(tour_key)
    if tour is None:
        raise TourNotFoundError(f"unknown tour {tour_key}")
    return await cache.preload(tour.tour_key, start, end, fallback_times=tour.available_times)
