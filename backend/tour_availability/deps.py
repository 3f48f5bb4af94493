from functools import lru_cache
from typing import AsyncIterator
from zoneinfo import ZoneInfo

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from .config import Settings, get_settings
from .database import get_sessionmaker
from .infrastructure.bokun import BokunAvailabilityProvider
from .usecases.availability_cache import AvailabilityCache
from .usecases.slots import SlotRequestGate


async def get_session() -> AsyncIterator[AsyncSession]:
    async with get_sessionmaker()() as session:
        yield session


@lru_cache
def get_availability_cache() -> AvailabilityCache:
    """One cache per process, shared by every request."""
    settings = get_settings()
    provider = BokunAvailabilityProvider(
        base_url=settings.bokun_base_url,
        access_key=settings.bokun_access_key,
        secret_key=settings.bokun_secret_key,
        product_ids=settings.bokun_product_ids,
        currency=settings.bokun_currency,
        timeout=settings.provider_timeout_seconds,
    )
    return AvailabilityCache(
        provider,
        aliases=settings.availability_aliases,
        ttl_seconds=settings.availability_cache_ttl_seconds,
        preload_freshness_seconds=settings.preload_freshness_seconds,
        max_concurrent_fetches=settings.max_concurrent_fetches,
    )


@lru_cache
def get_slot_gate() -> SlotRequestGate:
    return SlotRequestGate()


def get_tour_timezone(settings: Settings = Depends(get_settings)) -> ZoneInfo:
    return ZoneInfo(settings.tour_timezone)
