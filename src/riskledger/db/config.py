"""Database engine and session management."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import make_url, text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from riskledger.config.settings import Environment, Settings, get_settings
from riskledger.utils.exceptions import ConfigurationError

_ASYNC_DRIVERS = frozenset({"asyncpg", "aiosqlite", "psycopg", "aiomysql", "asyncmy"})


def create_engine(settings: Settings | None = None) -> AsyncEngine:
    """Create an async engine from settings.

    The test environment uses ``NullPool`` so connections never outlive a
    test's event loop.

    Raises:
        ConfigurationError: If the URL does not name an async driver
    """
    settings = settings or get_settings()
    url = make_url(settings.database_url)
    if url.get_driver_name() not in _ASYNC_DRIVERS:
        raise ConfigurationError(
            f"database_url must use an async driver, got '{url.drivername}'"
        )

    options: dict[str, Any] = {"echo": settings.database_echo or settings.debug}
    if settings.environment == Environment.TEST or settings.database_url.startswith("sqlite"):
        options["poolclass"] = NullPool
    else:
        options["pool_size"] = settings.database_pool_size
        options["max_overflow"] = settings.database_max_overflow
    return create_async_engine(settings.database_url, **options)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory that keeps loaded rows usable after commit."""
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def check_connection(engine: AsyncEngine) -> None:
    """Verify the database is reachable."""
    async with engine.begin() as conn:
        await conn.execute(text("SELECT 1"))


@asynccontextmanager
async def get_async_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Context manager for obtaining a database session.

    Usage:
        engine = create_engine()
        factory = create_session_factory(engine)
        async with get_async_session(factory) as session:
            gateway = SqlAlchemyRiskGateway(session)

    Yields:
        AsyncSession: A database session that will be automatically closed
    """
    async with session_factory() as session:
        try:
            yield session
        finally:
            await session.close()
