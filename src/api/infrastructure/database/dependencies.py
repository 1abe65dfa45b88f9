"""Engine lifecycle and the session dependency for FastAPI.

One engine serves the whole process. It is created on first use and
disposed by the application lifespan. Sessions never autocommit; the
application services open their own `session.begin()` blocks.
"""

from __future__ import annotations

import threading
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from infrastructure.database.engines import create_provisioning_engine
from infrastructure.observability import DatabaseProbe, DefaultDatabaseProbe
from infrastructure.settings import get_database_settings

_probe: DatabaseProbe = DefaultDatabaseProbe()

_engine: AsyncEngine | None = None
_sessionmaker: async_sessionmaker[AsyncSession] | None = None
_engine_lock = threading.Lock()


def get_engine() -> AsyncEngine:
    """Get the process-wide engine, creating it on first call."""
    global _engine, _sessionmaker
    if _engine is None:
        with _engine_lock:
            if _engine is None:
                settings = get_database_settings()
                _engine = create_provisioning_engine(settings)
                _sessionmaker = async_sessionmaker(
                    _engine,
                    expire_on_commit=False,
                    class_=AsyncSession,
                )
                _probe.engine_created(
                    settings.connection_string,
                    pool_size=settings.pool_max_connections,
                    statement_timeout_ms=settings.statement_timeout_ms,
                )
    return _engine


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Provide a request-scoped session (FastAPI dependency).

    Every tenancy collaborator of one request shares this session, so the
    provisioning saga runs its short transactions on a single connection
    checkout at a time.
    """
    get_engine()
    assert _sessionmaker is not None

    async with _sessionmaker() as session:
        yield session


async def dispose_engine() -> None:
    """Dispose the engine and forget it, so the next call recreates it."""
    global _engine, _sessionmaker

    if _engine is None:
        return

    engine, _engine, _sessionmaker = _engine, None, None
    await engine.dispose()
    _probe.engine_disposed(get_database_settings().connection_string)
