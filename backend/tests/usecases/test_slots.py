import asyncio
from datetime import date, datetime, timedelta, timezone
from typing import Any, Optional

import pytest
from tour_availability.domain.entities import BookingRecord, CutoffPolicy, PartySize, TimeSlot, TourConfig
from tour_availability.domain.errors import AvailabilityProviderError, StaleRequestError, TourNotFoundError
from tour_availability.usecases import availability_cache as cache_module
from tour_availability.usecases import slots as uc
from tour_availability.usecases.availability_cache import AvailabilityCache
from tour_availability.utils.time import JST


NOW = datetime(2025, 6, 1, 9, 0, tzinfo=JST)
DAY = date(2025, 6, 10)

TOUR = TourConfig(
    tour_key="UJI_WALKING_TOUR",
    max_slots=10,
    available_times=("10:00", "14:00"),
    policy=CutoffPolicy(cancellation_cutoff_hours=48, cancellation_cutoff_hours_with_participant=48),
    min_participants=2,
)


class FakeTourRepo:
    def __init__(self, tour: Optional[TourConfig] = TOUR) -> None:
        self.tour = tour

    async def get(self, tour_key: str) -> Optional[TourConfig]:
        return self.tour


class FakeBookingRepo:
    def __init__(self, bookings: list[BookingRecord] | None = None) -> None:
        self.bookings = bookings or []
        self.requested: list[tuple[str, Optional[date]]] = []

    async def list_confirmed(
        self, tour_type: str, *, start: date | None = None, end: date | None = None
    ) -> list[BookingRecord]:
        self.requested.append((tour_type, start))
        return list(self.bookings)


class FakeProvider:
    def __init__(self, slots: list[TimeSlot] | None = None, *, fail: bool = False) -> None:
        self.slots = slots or []
        self.fail = fail
        self.calls: list[tuple[str, date]] = []

    async def fetch_availability(self, product_key: str, day: date) -> list[TimeSlot]:
        self.calls.append((product_key, day))
        if self.fail:
            raise AvailabilityProviderError("timeout")
        return list(self.slots)


@pytest.fixture(autouse=True)
def silence_events(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(cache_module, "emit_availability_event", lambda **_: None)


def _cache(provider: FakeProvider) -> AvailabilityCache:
    return AvailabilityCache(
        provider,
        aliases={"UJI_WALKING_TOUR": "UJI_TOUR"},
        clock=lambda: datetime(2025, 6, 1, 0, 0, tzinfo=timezone.utc),
    )


@pytest.mark.asyncio
async def test_lists_slots_from_provider_counts() -> None:
    provider = FakeProvider([TimeSlot("10:00", 2), TimeSlot("14:00", 6)])
    slots = await uc.list_bookable_slots(
        FakeTourRepo(),
        FakeBookingRepo(),
        _cache(provider),
        tour_key="uji-walking-tour",
        day=DAY,
        party=PartySize(adults=2, children=1, infants=3),
        clock=lambda: NOW,
    )
    assert slots == ["14:00"]
    assert provider.calls == [("UJI_TOUR", DAY)]


@pytest.mark.asyncio
async def test_bookings_are_loaded_for_the_shared_pool() -> None:
    bookings = FakeBookingRepo([BookingRecord(date=DAY.isoformat(), time="10:00", adults=9)])
    slots = await uc.list_bookable_slots(
        FakeTourRepo(),
        bookings,
        _cache(FakeProvider(fail=True)),
        tour_key="UJI_WALKING_TOUR",
        day=DAY,
        party=PartySize(adults=2),
        clock=lambda: NOW,
    )
    assert bookings.requested == [("UJI_TOUR", NOW.date())]
    # Fallback record: local arithmetic leaves 10:00 one seat short.
    assert slots == ["14:00"]


@pytest.mark.asyncio
async def test_provider_outage_never_hard_blocks() -> None:
    cache = _cache(FakeProvider(fail=True))
    for adults in range(1, 11):
        disabled = await uc.is_date_disabled(
            FakeTourRepo(),
            FakeBookingRepo(),
            cache,
            tour_key="UJI_WALKING_TOUR",
            day=DAY,
            party=PartySize(adults=adults),
            clock=lambda: NOW,
        )
        assert disabled is False


@pytest.mark.asyncio
async def test_unknown_tour_raises() -> None:
    with pytest.raises(TourNotFoundError):
        await uc.list_bookable_slots(
            FakeTourRepo(None),
            FakeBookingRepo(),
            _cache(FakeProvider()),
            tour_key="NOPE",
            day=DAY,
            party=PartySize(),
            clock=lambda: NOW,
        )


@pytest.mark.asyncio
async def test_past_date_is_disabled_without_fetching() -> None:
    provider = FakeProvider([TimeSlot("10:00", 5)])
    disabled = await uc.is_date_disabled(
        FakeTourRepo(),
        FakeBookingRepo(),
        _cache(provider),
        tour_key="UJI_WALKING_TOUR",
        day=NOW.date() - timedelta(days=1),
        party=PartySize(),
        clock=lambda: NOW,
    )
    assert disabled is True
    assert provider.calls == []


@pytest.mark.asyncio
async def test_resolver_is_idempotent_and_reads_copies() -> None:
    cache = _cache(FakeProvider([TimeSlot("10:00", 4)]))
    await cache.get_available_time_slots("UJI_TOUR", DAY)
    participants = {DAY.isoformat(): {"10:00": 1, "14:00": 0}}
    resolver = uc.SlotResolver(TOUR, cache, participants, clock=lambda: NOW)

    first = resolver.get_bookable_slots(DAY, 3)
    snapshot = resolver.snapshot(DAY)
    assert snapshot.booked == {"10:00": 1, "14:00": 0}
    assert snapshot.booked is not participants[DAY.isoformat()]
    assert resolver.get_bookable_slots(DAY, 3) == first == ["10:00"]
    assert resolver.is_date_fully_booked(DAY, 5) is True
    assert resolver.disable_date(DAY, 4) is False


@pytest.mark.asyncio
async def test_gate_returns_result_of_current_request() -> None:
    gate = uc.SlotRequestGate()

    async def compute() -> list[str]:
        return ["10:00"]

    assert await gate.run("session-1:UJI_TOUR", compute()) == ["10:00"]
    assert gate.is_current("session-1:UJI_TOUR", 1) is False


@pytest.mark.asyncio
async def test_gate_discards_superseded_request() -> None:
    gate = uc.SlotRequestGate()
    release = asyncio.Event()

    async def slow() -> list[str]:
        await release.wait()
        return ["10:00"]

    async def fast() -> list[str]:
        return ["14:00"]

    older = asyncio.create_task(gate.run("session-1:UJI_TOUR", slow()))
    await asyncio.sleep(0)
    newer = await gate.run("session-1:UJI_TOUR", fast())
    release.set()

    assert newer == ["14:00"]
    with pytest.raises(StaleRequestError):
        await older


@pytest.mark.asyncio
async def test_gate_keys_are_independent() -> None:
    gate = uc.SlotRequestGate()
    release = asyncio.Event()

    async def slow() -> str:
        await release.wait()
        return "a"

    async def fast() -> str:
        return "b"

    first: Any = asyncio.create_task(gate.run("session-1:UJI_TOUR", slow()))
    await asyncio.sleep(0)
    assert await gate.run("session-2:UJI_TOUR", fast()) == "b"
    release.set()
    assert await first == "a"
