"""Process-wide cache of per-date availability fetched from the inventory provider.

Records are immutable, so handing one out is a value snapshot: a preload that
lands later replaces the dict entry but never mutates what a reader holds.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date, datetime, timezone
from typing import Callable, Iterable, Mapping, Optional, Sequence

from ..domain.entities import DateAvailabilityRecord, TimeSlot, normalize_tour_key
from ..domain.errors import AvailabilityProviderError, InvalidDateRangeError
from ..domain.repositories import AvailabilityProvider
from ..utils.event_log import emit_availability_event
from ..utils.time import iter_dates

logger = logging.getLogger(__name__)

CACHE_TTL_SECONDS = 15 * 60
PRELOAD_FRESHNESS_SECONDS = 5 * 60

CacheKey = tuple[str, str]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AvailabilityCache:
    def __init__(
        self,
        provider: AvailabilityProvider,
        *,
        aliases: Mapping[str, str] | None = None,
        ttl_seconds: int = CACHE_TTL_SECONDS,
        preload_freshness_seconds: int = PRELOAD_FRESHNESS_SECONDS,
        max_concurrent_fetches: int = 8,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.provider = provider
        self.aliases = {normalize_tour_key(k): normalize_tour_key(v) for k, v in (aliases or {}).items()}
        self.ttl_seconds = ttl_seconds
        self.preload_freshness_seconds = preload_freshness_seconds
        self.max_concurrent_fetches = max_concurrent_fetches
        self._clock = clock
        self._entries: dict[CacheKey, DateAvailabilityRecord] = {}

    def resolve_product_key(self, product_key: str) -> str:
        """Tours sharing an inventory pool resolve to the pool's product key."""
        key = normalize_tour_key(product_key)
        return self.aliases.get(key, key)

    def _key(self, product_key: str, day: date) -> CacheKey:
        return self.resolve_product_key(product_key), day.isoformat()

    def snapshot(self, product_key: str, day: date) -> Optional[DateAvailabilityRecord]:
        return self._entries.get(self._key(product_key, day))

    def _is_fresh(self, record: Optional[DateAvailabilityRecord], max_age_seconds: int) -> bool:
        return record is not None and record.age_seconds(self._clock()) < max_age_seconds

    async def get_available_time_slots(
        self,
        product_key: str,
        day: date,
        *,
        fallback_times: Sequence[str] = (),
    ) -> list[TimeSlot]:
        key = self._key(product_key, day)
        cached = self._entries.get(key)
        if cached is not None and self._is_fresh(cached, self.ttl_seconds):
            return list(cached.time_slots)

        record = await self._fetch(key[0], day, fallback_times)
        self._entries[key] = record
        return list(record.time_slots)

    async def preload(
        self,
        product_key: str,
        start: date,
        end: date,
        *,
        fallback_times: Sequence[str] = (),
    ) -> int:
        """Fetch every stale date in [start, end]; returns how many were fetched.

        All fetches run concurrently and the batch is stored only after every
        one has finished. A failing date gets its own fallback record.
        """
        if end < start:
            raise InvalidDateRangeError("end must not be earlier than start")

        resolved = self.resolve_product_key(product_key)
        stale = [
            day
            for day in iter_dates(start, end)
            if not self._is_fresh(self._entries.get((resolved, day.isoformat())), self.preload_freshness_seconds)
        ]
        if not stale:
            return 0

        semaphore = asyncio.Semaphore(self.max_concurrent_fetches)

        async def fetch_one(day: date) -> DateAvailabilityRecord:
            async with semaphore:
                return await self._fetch(resolved, day, fallback_times, emit=False)

        records = await asyncio.gather(*(fetch_one(day) for day in stale))
        self._store(resolved, records)

        fallback_count = sum(1 for record in records if record.is_fallback)
        emit_availability_event(
            event="availability.preloaded",
            product_key=resolved,
            date_from=start,
            date_to=end,
            slot_count=sum(len(record.time_slots) for record in records),
            needs_reconciliation=fallback_count > 0,
            extra={"fetched_dates": len(records), "fallback_dates": fallback_count},
        )
        return len(records)

    def _store(self, resolved: str, records: Iterable[DateAvailabilityRecord]) -> None:
        self._entries.update({(resolved, record.date): record for record in records})

    async def _fetch(
        self,
        resolved: str,
        day: date,
        fallback_times: Sequence[str],
        *,
        emit: bool = True,
    ) -> DateAvailabilityRecord:
        try:
            slots = await self.provider.fetch_availability(resolved, day)
        except AvailabilityProviderError as exc:
            logger.warning("availability fetch failed for %s on %s, assuming configured slots are open: %s", resolved, day, exc)
            record = DateAvailabilityRecord(
                date=day.isoformat(),
                time_slots=tuple(TimeSlot(time=t) for t in fallback_times),
                has_availability=True,
                fetched_at=self._clock(),
                is_fallback=True,
            )
            emit_availability_event(
                event="availability.fallback",
                product_key=resolved,
                date_from=day,
                slot_count=len(record.time_slots),
                source=record.source,
                needs_reconciliation=True,
                message=str(exc),
            )
            return record

        record = DateAvailabilityRecord(
            date=day.isoformat(),
            time_slots=tuple(slots),
            has_availability=len(slots) > 0,
            fetched_at=self._clock(),
        )
        if emit:
            emit_availability_event(
                event="availability.fetched",
                product_key=resolved,
                date_from=day,
                slot_count=len(record.time_slots),
                source=record.source,
            )
        return record

    def invalidate(self, product_key: str | None = None, day: date | None = None) -> None:
        if product_key is None:
            self._entries.clear()
            return
        resolved = self.resolve_product_key(product_key)
        for key in [k for k in self._entries if k[0] == resolved and (day is None or k[1] == day.isoformat())]:
            del self._entries[key]
