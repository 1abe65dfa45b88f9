"""Unit tests for the lazily created database engine and session dependency.

Engines never connect until a statement runs, so these tests need no
database.
"""

from unittest.mock import MagicMock, patch

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from infrastructure.database import dependencies
from infrastructure.database.dependencies import dispose_engine, get_engine, get_session


@pytest_asyncio.fixture(autouse=True)
async def _dispose():
    await dispose_engine()
    yield
    await dispose_engine()


class TestGetEngine:
    @pytest.mark.asyncio
    async def test_returns_asyncpg_engine(self):
        engine = get_engine()

        assert isinstance(engine, AsyncEngine)
        assert engine.url.drivername == "postgresql+asyncpg"

    @pytest.mark.asyncio
    async def test_engine_is_cached(self):
        assert get_engine() is get_engine()

    @pytest.mark.asyncio
    async def test_creation_is_reported_without_password(self, monkeypatch):
        monkeypatch.setenv("PROVISIONING_DB_PASSWORD", "hunter2")
        probe = MagicMock()

        with patch.object(dependencies, "_probe", probe):
            engine = get_engine()

        probe.engine_created.assert_called_once()
        assert "hunter2" not in probe.engine_created.call_args.args[0]
        assert engine.url.password == "hunter2"


class TestGetSession:
    @pytest.mark.asyncio
    async def test_yields_one_session_bound_to_the_engine(self):
        engine = get_engine()
        sessions = []

        async for session in get_session():
            sessions.append(session)
            assert isinstance(session, AsyncSession)
            assert session.bind.sync_engine is engine.sync_engine

        assert len(sessions) == 1


class TestDisposeEngine:
    @pytest.mark.asyncio
    async def test_next_call_creates_a_new_engine(self):
        engine = get_engine()

        await dispose_engine()

        assert get_engine() is not engine

    @pytest.mark.asyncio
    async def test_disposal_is_reported(self):
        get_engine()
        probe = MagicMock()

        with patch.object(dependencies, "_probe", probe):
            await dispose_engine()

        probe.engine_disposed.assert_called_once()

    @pytest.mark.asyncio
    async def test_without_engine_is_a_noop(self):
        probe = MagicMock()

        with patch.object(dependencies, "_probe", probe):
            await dispose_engine()
            await dispose_engine()

        probe.engine_disposed.assert_not_called()
