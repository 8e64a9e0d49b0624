"""
Async engine, session factory and the declarative base.

PostgreSQL runs through asyncpg; a sqlite:// URL is switched to aiosqlite
for local runs and the test suite.
"""

from typing import Any, AsyncGenerator, Dict
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    AsyncEngine,
    create_async_engine,
    async_sessionmaker,
)
from sqlalchemy.orm import DeclarativeBase
from civic_issues.config import settings


class Base(DeclarativeBase):
    pass


ASYNC_DRIVERS = {
    "postgresql://": "postgresql+asyncpg://",
    "sqlite://": "sqlite+aiosqlite://",
}


def get_async_database_url(url: str) -> str:
    """Rewrite a plain database URL to use its async driver."""
    for prefix, async_prefix in ASYNC_DRIVERS.items():
        if url.startswith(prefix):
            return async_prefix + url[len(prefix):]
    return url


def _engine_options(url: str) -> Dict[str, Any]:
    if url.startswith("sqlite"):
        return {}
    return {"pool_pre_ping": True, "pool_size": 5, "max_overflow": 10}


_database_url = get_async_database_url(settings.DATABASE_URL)

engine: AsyncEngine = create_async_engine(_database_url, **_engine_options(_database_url))

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Request-scoped session dependency.

    The unit of work commits after the handler returns and rolls back if
    it raises, so services only flush.

    Yields:
        AsyncSession: Session bound to the current request
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def close_db() -> None:
    """Dispose of pooled connections on shutdown."""
    await engine.dispose()
