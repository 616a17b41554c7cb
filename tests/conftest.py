"""
Shared pytest fixtures for ridefare unit tests.

Provides a mock database session, a fixed clock and a collaborators bundle
wired with in-process fakes so the calculator can run without Redis, a
geography service or a live database.
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from types import SimpleNamespace
from typing import Any, Callable
from unittest.mock import AsyncMock, MagicMock

import pytest

from ridefare.integrations.collaborators import PricingCollaborators
from ridefare.integrations.currency import SymbolCurrencyFormatter
from ridefare.integrations.demandTelemetry import NullDemandTelemetry
from ridefare.integrations.geography import GeoArea, ResolvedLocation, StaticGeoResolver
from ridefare.integrations.rideTypes import StaticRideTypeCatalog
from ridefare.services.pricingResolver import default_pricing
from ridefare.services.pricingTypes import NO_VERSION_ID, ResolvedPricing

# Tuesday 10:00 UTC: no time-of-day or day-of-week surge
FIXED_NOW = datetime(2030, 1, 1, 10, 0, tzinfo=timezone.utc)

COUNTRY_ID = uuid.UUID("10000000-0000-0000-0000-000000000001")
REGION_ID = uuid.UUID("20000000-0000-0000-0000-000000000002")
CITY_ID = uuid.UUID("30000000-0000-0000-0000-000000000003")
ZONE_ID = uuid.UUID("40000000-0000-0000-0000-000000000004")


# ---------------------------------------------------------------------------
# Database session mock
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_db() -> AsyncMock:
    """Async mock of ``AsyncSession``.

    Individual tests configure ``mock_db.execute.return_value`` or patch
    the store functions they rely on.
    """
    session = AsyncMock()
    session.add = MagicMock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    return session


# ---------------------------------------------------------------------------
# Geography
# ---------------------------------------------------------------------------


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def geo() -> SimpleNamespace:
    """Hierarchy ids and resolved locations used across the suite.

    The airport box sits inside the city box; the resolver lists it first
    so pickups at the airport resolve to the zone.
    """
    city = ResolvedLocation(
        country_id=COUNTRY_ID,
        region_id=REGION_ID,
        city_id=CITY_ID,
        timezone="UTC",
    )
    airport = ResolvedLocation(
        country_id=COUNTRY_ID,
        region_id=REGION_ID,
        city_id=CITY_ID,
        zone_id=ZONE_ID,
        timezone="UTC",
    )
    return SimpleNamespace(
        country_id=COUNTRY_ID,
        region_id=REGION_ID,
        city_id=CITY_ID,
        zone_id=ZONE_ID,
        city=city,
        airport=airport,
        # (lat, lng) inside each box
        city_point=(40.7128, -74.0060),
        airport_point=(40.6413, -73.7781),
        areas=(
            GeoArea(40.60, -73.80, 40.70, -73.70, airport, "USD"),
            GeoArea(40.40, -74.30, 41.00, -73.60, city, "USD"),
        ),
    )


# ---------------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------------


@pytest.fixture
def collaborators(geo: SimpleNamespace) -> PricingCollaborators:
    """Fakes for every external collaborator, with the clock pinned."""
    return PricingCollaborators(
        geo=StaticGeoResolver(areas=geo.areas),
        currency=SymbolCurrencyFormatter(),
        ride_types=StaticRideTypeCatalog(),
        telemetry=NullDemandTelemetry(),
        clock=lambda: FIXED_NOW,
    )


# ---------------------------------------------------------------------------
# Resolved pricing
# ---------------------------------------------------------------------------


@pytest.fixture
def make_pricing() -> Callable[..., ResolvedPricing]:
    """Factory for default pricing with selected fields replaced.

    Numbers are converted to ``Decimal``; ``version_id`` defaults to the
    synthetic no-version id.
    """

    def _make(version_id: uuid.UUID = NO_VERSION_ID, **overrides: Any) -> ResolvedPricing:
        resolved = default_pricing(version_id)
        for name, value in overrides.items():
            if isinstance(value, (int, float, str)) and not isinstance(value, bool):
                value = Decimal(str(value))
            setattr(resolved, name, value)
        return resolved

    return _make
