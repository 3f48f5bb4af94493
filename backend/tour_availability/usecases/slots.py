from __future__ import annotations

import itertools
from datetime import date, datetime
from typing import Awaitable, Callable, TypeVar
from zoneinfo import ZoneInfo

from ..domain import services
from ..domain.aggregation import build_participants_by_date
from ..domain.entities import ParticipantsByDate, PartySize, TourConfig
from ..domain.errors import StaleRequestError, TourNotFoundError
from ..domain.repositories import BookingRepository, TourRepository
from ..utils.time import JST, now_in
from .availability_cache import AvailabilityCache

T = TypeVar("T")


class SlotResolver:
    """Merges cached provider availability, local bookings and cutoff rules for one tour."""

    def __init__(
        self,
        tour: TourConfig,
        cache: AvailabilityCache,
        participants_by_date: ParticipantsByDate,
        *,
        tz: ZoneInfo = JST,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.tour = tour
        self.cache = cache
        self.participants_by_date = participants_by_date
        self.tz = tz
        self._clock = clock or (lambda: now_in(tz))

    def now(self) -> datetime:
        return self._clock()

    def snapshot(self, day: date) -> services.SlotSnapshot:
        return services.SlotSnapshot(
            tour=self.tour,
            record=self.cache.snapshot(self.tour.tour_key, day),
            booked=dict(self.participants_by_date.get(day.isoformat(), {})),
        )

    def get_bookable_slots(self, day: date, party_size: int) -> list[str]:
        return services.bookable_slots(
            self.snapshot(day), day=day, party_size=party_size, now=self.now(), tz=self.tz
        )

    def is_date_fully_booked(self, day: date, party_size: int) -> bool:
        return services.is_fully_booked(
            self.snapshot(day), day=day, party_size=party_size, now=self.now(), tz=self.tz
        )

    def disable_date(self, day: date, party_size: int) -> bool:
        return services.is_date_disabled(
            self.snapshot(day), day=day, party_size=party_size, now=self.now(), tz=self.tz
        )


class SlotRequestGate:
    """Last-request-wins: a result is dropped if a newer request for the same key was issued."""

    def __init__(self) -> None:
        self._tokens = itertools.count(1)
        self._latest: dict[str, int] = {}

    def issue(self, key: str) -> int:
        token = next(self._tokens)
        self._latest[key] = token
        return token

    def is_current(self, key: str, token: int) -> bool:
        return self._latest.get(key) == token

    async def run(self, key: str, computation: Awaitable[T]) -> T:
        token = self.issue(key)
        try:
            result = await computation
        finally:
            current = self.is_current(key, token)
            if current:
                del self._latest[key]
        if not current:
            raise StaleRequestError(f"request {token} for {key} was superseded")
        return result


async def load_resolver(
    tour_repo: TourRepository,
    booking_repo: BookingRepository,
    cache: AvailabilityCache,
    *,
    tour_key: str,
    tz: ZoneInfo = JST,
    clock: Callable[[], datetime] | None = None,
) -> SlotResolver:
    tour = await tour_repo.get(tour_key)
    if tour is None:
        raise TourNotFoundError(f"unknown tour {tour_key}")
    now = clock() if clock else now_in(tz)
    bookings = await booking_repo.list_confirmed(
        cache.resolve_product_key(tour.tour_key),
        start=now.astimezone(tz).date(),
    )
    participants = build_participants_by_date(bookings, tour.available_times)
    return SlotResolver(tour, cache, participants, tz=tz, clock=clock)


async def list_bookable_slots(
    tour_repo: TourRepository,
    booking_repo: BookingRepository,
    cache: AvailabilityCache,
    *,
    tour_key: str,
    day: date,
    party: PartySize,
    tz: ZoneInfo = JST,
    clock: Callable[[], datetime] | None = None,
) -> list[str]:
    resolver = await load_resolver(tour_repo, booking_repo, cache, tour_key=tour_key, tz=tz, clock=clock)
    await cache.get_available_time_slots(resolver.tour.tour_key, day, fallback_times=resolver.tour.available_times)
    return resolver.get_bookable_slots(day, party.seats)


async def is_date_disabled(
    tour_repo: TourRepository,
    booking_repo: BookingRepository,
    cache: AvailabilityCache,
    *,
    tour_key: str,
    day: date,
    party: PartySize,
    tz: ZoneInfo = JST,
    clock: Callable[[], datetime] | None = None,
) -> bool:
    resolver = await load_resolver(tour_repo, booking_repo, cache, tour_key=tour_key, tz=tz, clock=clock)
    if day >= resolver.now().astimezone(tz).date():
        await cache.get_available_time_slots(resolver.tour.tour_key, day, fallback_times=resolver.tour.available_times)
    return resolver.disable_date(day, party.seats)
