from __future__ import annotations

from datetime import date
from typing import Protocol

from .entities import BookingRecord, TimeSlot, TourConfig


class TourRepository(Protocol):
    async def get(self, tour_key: str) -> TourConfig | None: ...


class BookingRepository(Protocol):
    async def list_confirmed(
        self,
        tour_type: str,
        *,
        start: date | None = None,
        end: date | None = None,
    ) -> list[BookingRecord]: ...


class AvailabilityProvider(Protocol):
    async def fetch_availability(self, product_key: str, day: date) -> list[TimeSlot]: ...
