from __future__ import annotations

from contextlib import asynccontextmanager
from functools import lru_cache
from typing import Any, AsyncIterator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from docshare.core.config import get_settings
from docshare.domain.models import Base


def build_engine(database_url: str) -> AsyncEngine:
    _engine_kwargs: dict[str, Any] = {"pool_pre_ping": True}
    # Configure bounded asyncpg pools for predictable latency under load.
    if not database_url.startswith("sqlite"):
        settings = get_settings()
        _engine_kwargs["pool_size"] = max(1, int(settings.db_pool_size))
        _engine_kwargs["max_overflow"] = max(0, int(settings.db_max_overflow))
        _engine_kwargs["pool_timeout"] = 30
        _engine_kwargs["pool_recycle"] = 1800
    return create_async_engine(database_url, **_engine_kwargs)


@lru_cache
def get_engine() -> AsyncEngine:
    # Created lazily so importing the API does not require a database driver.
    return build_engine(get_settings().database_url)


@lru_cache
def get_sessionmaker() -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(get_engine(), expire_on_commit=False)


@asynccontextmanager
async def get_session() -> AsyncIterator[AsyncSession]:
    async with get_sessionmaker()() as session:
        yield session


async def create_all(engine: AsyncEngine) -> None:
    # Test-only schema bootstrap; deployments migrate with Alembic (persistence/migrations.py).
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
