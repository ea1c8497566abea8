"""Shared test fixtures."""

from collections.abc import AsyncGenerator
from unittest.mock import MagicMock

import pytest
from httpx import ASGITransport, AsyncClient

from src.bk_common.database import get_db_session
from src.main import app


async def _fake_db_session() -> AsyncGenerator[MagicMock, None]:
    yield MagicMock()


@pytest.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client for FastAPI endpoints.

    ASGITransport does not run the lifespan, so tests put the services they
    need on app.state themselves. The DB session dependency is replaced with
    a mock.
    """
    app.dependency_overrides[get_db_session] = _fake_db_session
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
