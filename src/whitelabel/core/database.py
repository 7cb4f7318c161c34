"""Async SQLAlchemy wiring for the tenants table.

The realtime layer only reads: one short-lived session per tenant lookup during
a handshake, plus the health probe. Unit tests swap in aiosqlite.
"""

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from whitelabel.core.config import settings

engine = create_async_engine(
    settings.database_url,
    pool_size=settings.database_pool_min,
    max_overflow=settings.database_pool_max - settings.database_pool_min,
    pool_pre_ping=True,
)

async_session_factory = async_sessionmaker(engine, expire_on_commit=False)


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session for HTTP routes (``/api/health``)."""
    async with async_session_factory() as session:
        yield session


def get_async_session_maker() -> async_sessionmaker[AsyncSession]:
    """Factory handed to ``TenantDirectory``; handshakes run outside any request."""
    return async_session_factory


class Base(DeclarativeBase):
    pass
