"""Integration-test fixtures.

All integration tests share a single event-loop so that the module-level
SQLAlchemy async engine pool stays valid across the entire test session.
Tests are skipped when PostgreSQL is not reachable.

Pre-condition: alembic upgrade head
"""

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from src.main import app
from src.pm_common.database import engine


@pytest_asyncio.fixture(loop_scope="session", scope="session")
async def client() -> AsyncClient:  # type: ignore[override]
    """Session-scoped async HTTP client: keeps the engine pool alive."""
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1 FROM accounts LIMIT 1"))
    except (SQLAlchemyError, OSError) as exc:
        pytest.skip(f"PostgreSQL with migrated schema not available: {exc}")
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture(loop_scope="session")
async def seed(client: AsyncClient):  # type: ignore[no-untyped-def]
    """Run raw SQL for rows that have no public create endpoint."""

    async def _exec(sql: str, **params: object) -> None:
        async with engine.begin() as conn:
            await conn.execute(text(sql), params)

    return _exec
