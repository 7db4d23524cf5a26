"""Async database engine and session management.

``init_database`` is called once from the application lifespan.
``get_db_session`` is the FastAPI dependency: it yields one session per
request, commits when the handler returns and rolls back on error.
"""

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from readiness_engine.observability import get_logger
from readiness_engine.settings import Settings

logger = get_logger(__name__)

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def init_database(settings: Settings) -> async_sessionmaker[AsyncSession]:
    """Create the engine and session factory.

    Args:
        settings: Service settings carrying database_url and database_echo.

    Returns:
        The session factory, also kept module-wide for ``get_db_session``.
    """
    global _engine, _session_factory
    _engine = create_async_engine(
        settings.database_url,
        echo=settings.database_echo,
        pool_pre_ping=True,
    )
    _session_factory = async_sessionmaker(
        _engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    logger.info("Database initialised", echo=settings.database_echo)
    return _session_factory


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Return the session factory created by ``init_database``.

    Raises:
        RuntimeError: If the database has not been initialised.
    """
    if _session_factory is None:
        raise RuntimeError("Database not initialised; call init_database() first")
    return _session_factory


async def close_database() -> None:
    """Dispose of the engine's connection pool."""
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency yielding a request-scoped session."""
    async with get_session_factory()() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
