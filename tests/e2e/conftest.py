"""
E2E test fixtures for the ridefare pricing API.

Provides:
- An in-process FastAPI test app with the public and admin pricing routes
- httpx AsyncClient wired via ASGI transport (no network needed)
- An async SQLite database (in-memory, one per test) created from the models
- Seed data: the airport pricing zone used by zone fee breakdowns
- Helpers that create, populate and activate pricing versions over HTTP

The geographic resolver, ride-type catalog, telemetry and clock come from the
shared ``collaborators`` fixture; the weather feed is mocked to clear skies.
"""

from __future__ import annotations

import uuid
from typing import Any, AsyncGenerator
from unittest.mock import AsyncMock, patch

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.pool import StaticPool

from ridefare.integrations.collaborators import PricingCollaborators
from ridefare.integrations.weatherApi import WeatherInfo
from ridefare.models import Base, PricingZone, WeatherCondition
from ridefare.services.pricingResolver import invalidate_cache


@compiles(JSONB, "sqlite")
def compile_jsonb_sqlite(type_, compiler, **kw):
    return "JSON"


@compiles(UUID, "sqlite")
def compile_uuid_sqlite(type_, compiler, **kw):
    return "CHAR(32)"


API = "/api/v1"
ADMIN = f"{API}/admin/pricing"

ADMIN_ID = uuid.UUID("aaaaaaaa-aaaa-aaaa-aaaa-aaaaaaaaaaaa")
ADMIN_HEADERS = {"X-Admin-Id": str(ADMIN_ID)}

# Before the fixed test clock so new versions are immediately effective
EFFECTIVE_FROM = "2024-01-01T00:00:00Z"


# ---------------------------------------------------------------------------
# Async engine + session (in-memory SQLite)
# ---------------------------------------------------------------------------

TEST_DB_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture
async def _test_engine():
    """A fresh in-memory database per test; StaticPool keeps one connection."""
    engine = create_async_engine(TEST_DB_URL, echo=False, poolclass=StaticPool)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(_test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Yield one session shared by every request in the test."""
    session_factory = async_sessionmaker(
        bind=_test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    async with session_factory() as session:
        await session.begin()
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def seeded_db(db_session: AsyncSession, geo) -> AsyncSession:
    """A database session with the airport pricing zone inserted."""
    db_session.add(
        PricingZone(
            id=geo.zone_id,
            city_id=geo.city_id,
            name="JFK Airport",
            zone_type="airport",
            is_active=True,
        )
    )
    await db_session.flush()
    return db_session


# ---------------------------------------------------------------------------
# FastAPI test application
# ---------------------------------------------------------------------------

def _create_test_app(
    db_session_override: AsyncSession,
    collaborators: PricingCollaborators,
):
    """Build a FastAPI app with the pricing routes registered and the DB and
    collaborator dependencies overridden."""
    from fastapi import FastAPI

    from ridefare.api.deps import get_collaborators, get_db
    from ridefare.api.routes.pricing import router as pricing_router
    from ridefare.api.routes.pricingAdmin import router as admin_router
    from ridefare.core.exceptions import register_exception_handlers

    app = FastAPI(title="Ridefare Test")
    register_exception_handlers(app)

    async def _override_get_db():
        yield db_session_override

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_collaborators] = lambda: collaborators

    app.include_router(pricing_router, prefix=API)
    app.include_router(admin_router, prefix=API)

    return app


@pytest_asyncio.fixture
async def client(
    seeded_db: AsyncSession,
    collaborators: PricingCollaborators,
) -> AsyncGenerator[AsyncClient, None]:
    """httpx AsyncClient connected to the test app via ASGI transport."""
    app = _create_test_app(seeded_db, collaborators)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture(autouse=True)
def _fresh_resolution_cache():
    invalidate_cache()
    yield
    invalidate_cache()


# ---------------------------------------------------------------------------
# Weather API mock
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def mock_weather_api():
    """Mock the weather feed to return clear conditions by default."""
    with patch(
        "ridefare.integrations.weatherApi.get_weather_conditions",
        new_callable=AsyncMock,
        return_value=WeatherInfo(condition=WeatherCondition.CLEAR, description="Clear skies"),
    ) as mock:
        yield mock


# ---------------------------------------------------------------------------
# Helpers: pricing versions over HTTP
# ---------------------------------------------------------------------------

async def create_version(
    client: AsyncClient,
    name: str = "Test pricing",
    **fields: Any,
) -> dict[str, Any]:
    """POST a new draft version and return the response JSON."""
    payload = {"name": name, "effective_from": EFFECTIVE_FROM, **fields}
    resp = await client.post(f"{ADMIN}/versions", json=payload, headers=ADMIN_HEADERS)
    assert resp.status_code == 201, resp.text
    return resp.json()


async def add_row(
    client: AsyncClient,
    version_id: str,
    path: str,
    payload: dict[str, Any],
) -> dict[str, Any]:
    """POST a versioned row (``configs``, ``zone-fees``, ...) and return it."""
    resp = await client.post(
        f"{ADMIN}/versions/{version_id}/{path}", json=payload, headers=ADMIN_HEADERS
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


async def activate_version(client: AsyncClient, version_id: str) -> dict[str, Any]:
    resp = await client.post(
        f"{ADMIN}/versions/{version_id}/activate", headers=ADMIN_HEADERS
    )
    assert resp.status_code == 200, resp.text
    return resp.json()
