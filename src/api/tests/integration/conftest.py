"""Integration test fixtures for database tests.

These fixtures require a running PostgreSQL instance. Tests are skipped
when the database cannot be reached.

Override the connection with environment variables:
    PROVISIONING_DB_HOST, PROVISIONING_DB_PORT, etc.
"""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from pydantic import SecretStr
from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

import tenancy.infrastructure.models  # noqa: F401
from infrastructure.database.engines import create_provisioning_engine
from infrastructure.database.models import Base
from infrastructure.settings import DatabaseSettings


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "integration: mark test as integration test (requires database)",
    )


@pytest.fixture(scope="session")
def integration_db_settings() -> DatabaseSettings:
    """Database settings for integration tests."""
    return DatabaseSettings(
        host=os.getenv("PROVISIONING_DB_HOST", "localhost"),
        port=int(os.getenv("PROVISIONING_DB_PORT", "5432")),
        database=os.getenv("PROVISIONING_DB_DATABASE", "provisioning"),
        username=os.getenv("PROVISIONING_DB_USERNAME", "provisioning"),
        password=SecretStr(
            os.getenv("PROVISIONING_DB_PASSWORD", "provisioning_dev_password")
        ),
        pool_max_connections=5,
    )


async def _clear_tables(factory: async_sessionmaker[AsyncSession]) -> None:
    async with factory() as session, session.begin():
        for table in reversed(Base.metadata.sorted_tables):
            await session.execute(delete(table))


@pytest_asyncio.fixture
async def session_factory(
    integration_db_settings: DatabaseSettings,
) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Provide a session factory over a clean schema.

    Tables are created if missing and emptied before and after each test.
    """
    engine = create_provisioning_engine(integration_db_settings)
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    except (OSError, SQLAlchemyError) as e:
        await engine.dispose()
        pytest.skip(f"PostgreSQL is not reachable: {e}")

    factory = async_sessionmaker(engine, expire_on_commit=False)
    await _clear_tables(factory)

    yield factory

    await _clear_tables(factory)
    await engine.dispose()


@pytest_asyncio.fixture
async def async_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Provide an async session for integration tests."""
    async with session_factory() as session:
        yield session
