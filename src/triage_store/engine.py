"""Process-wide async engine and session factory for the case database.

Both are built on first use from :func:`load_database_settings` (or the
settings passed to the first call) and kept until ``dispose_engine()``.
"""

import logging

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from triage_store.config import DatabaseSettings, load_database_settings
from triage_store.models import Base

logger = logging.getLogger(__name__)

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def get_engine(settings: DatabaseSettings | None = None) -> AsyncEngine:
    """The shared engine; *settings* only apply when it is first created."""
    global _engine
    if _engine is None:
        settings = settings or load_database_settings()
        _engine = create_async_engine(
            settings.url,
            echo=settings.echo,
            pool_size=settings.pool_size,
            max_overflow=settings.max_overflow,
            pool_pre_ping=True,
        )
    return _engine


def get_session_factory(
    settings: DatabaseSettings | None = None,
) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the shared engine.

    Sessions keep attribute values after commit so returned rows can be
    converted to domain models outside the transaction.
    """
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(
            bind=get_engine(settings),
            expire_on_commit=False,
        )
    return _session_factory


async def create_schema() -> None:
    """Create the ``triage_cases`` table and its indexes if missing."""
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Case database schema ensured")


async def dispose_engine() -> None:
    """Close pooled connections and forget the engine (call on shutdown)."""
    global _engine, _session_factory
    if _engine is None:
        return
    await _engine.dispose()
    _engine = None
    _session_factory = None
