"""
Geographic resolver integration.

Maps a coordinate to its place in the pricing hierarchy (country, region,
city, zone) plus the local timezone and currency.  The geography subsystem
owns that data; the pricing core only consumes it through ``GeoResolver``.

``StaticGeoResolver`` is the in-process implementation used by default and
in tests: it matches coordinates against a list of bounding boxes, first
match wins, so list the most specific areas first.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Optional, Protocol, Sequence

from ridefare.core.config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedLocation:
    """Hierarchy ids for a coordinate; any level may be unknown."""
    country_id: Optional[uuid.UUID] = None
    region_id: Optional[uuid.UUID] = None
    city_id: Optional[uuid.UUID] = None
    zone_id: Optional[uuid.UUID] = None
    timezone: str = "UTC"


class GeoResolver(Protocol):
    """Idempotent, side-effect free coordinate resolution."""

    async def resolve(self, latitude: float, longitude: float) -> ResolvedLocation: ...

    async def currency_for(self, latitude: float, longitude: float) -> str: ...


@dataclass(frozen=True)
class GeoArea:
    """An axis-aligned bounding box mapped to a resolved location."""
    min_latitude: float
    min_longitude: float
    max_latitude: float
    max_longitude: float
    location: ResolvedLocation
    currency: Optional[str] = None

    def contains(self, latitude: float, longitude: float) -> bool:
        return (
            self.min_latitude <= latitude <= self.max_latitude
            and self.min_longitude <= longitude <= self.max_longitude
        )


@dataclass
class StaticGeoResolver:
    areas: Sequence[GeoArea] = field(default_factory=tuple)
    default_location: ResolvedLocation = field(default_factory=ResolvedLocation)
    default_currency: str = field(default_factory=lambda: settings.default_currency)

    def _match(self, latitude: float, longitude: float) -> Optional[GeoArea]:
        for area in self.areas:
            if area.contains(latitude, longitude):
                return area
        return None

    async def resolve(self, latitude: float, longitude: float) -> ResolvedLocation:
        area = self._match(latitude, longitude)
        if area is None:
            logger.debug("No geo area for (%s, %s); using default", latitude, longitude)
            return self.default_location
        return area.location

    async def currency_for(self, latitude: float, longitude: float) -> str:
        area = self._match(latitude, longitude)
        if area is not None and area.currency:
            return area.currency
        return self.default_currency
