from functools import lru_cache

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from .config import get_settings


@lru_cache
def get_engine() -> AsyncEngine:
    settings = get_settings()
    return create_async_engine(
        settings.database_url,
        echo=settings.echo_sql,
        pool_pre_ping=True,
        pool_recycle=3600,
    )


@lru_cache
def get_sessionmaker() -> async_sessionmaker[AsyncSession]:
    # Availability reads never write, so nothing needs flushing.
    return async_sessionmaker(get_engine(), expire_on_commit=False, class_=AsyncSession, autoflush=False)
