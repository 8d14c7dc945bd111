"""Database engine and per-request sessions.

One async engine per process, built from SMARTSELL_DATABASE_URL.
PostgreSQL (asyncpg) gets a sized, pre-pinged pool; SQLite (aiosqlite)
keeps SQLAlchemy's default pool and a longer busy timeout, because
concurrent counter updates queue on its single writer lock.
"""

from typing import AsyncIterator

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from smartsell.config import settings

SQLITE_BUSY_TIMEOUT = 15


def build_engine(url: str, **overrides) -> AsyncEngine:
    """create_async_engine with pool settings chosen by backend."""
    kwargs: dict = {"echo": settings.debug}
    if make_url(url).get_backend_name() == "sqlite":
        kwargs["connect_args"] = {"timeout": SQLITE_BUSY_TIMEOUT}
    elif "poolclass" not in overrides:
        kwargs.update(pool_size=5, max_overflow=15, pool_pre_ping=True)
    kwargs.update(overrides)
    return create_async_engine(url, **kwargs)


engine = build_engine(settings.database_url)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncIterator[AsyncSession]:
    """FastAPI dependency: one session per request, closed afterwards."""
    async with async_session_factory() as session:
        yield session
