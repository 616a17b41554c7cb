"""
Ride-type catalog integration.

The catalog lists which ride types are offered at a coordinate.  Bulk
estimates price every entry it returns.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Optional, Protocol, Sequence


@dataclass(frozen=True)
class RideTypeInfo:
    id: uuid.UUID
    name: str
    description: str = ""
    capacity: int = 4
    icon_url: Optional[str] = None


class RideTypeCatalog(Protocol):
    async def available_at(self, latitude: float, longitude: float) -> list[RideTypeInfo]: ...


def _ride_type_id(slug: str) -> uuid.UUID:
    return uuid.uuid5(uuid.NAMESPACE_URL, f"ridefare:ride-type:{slug}")


DEFAULT_RIDE_TYPES: tuple[RideTypeInfo, ...] = (
    RideTypeInfo(_ride_type_id("economy"), "Economy", "Affordable everyday rides", 4),
    RideTypeInfo(_ride_type_id("comfort"), "Comfort", "Newer cars with extra legroom", 4),
    RideTypeInfo(_ride_type_id("xl"), "XL", "Rides for groups up to 6", 6),
)


@dataclass
class StaticRideTypeCatalog:
    """Offers the same ride types everywhere."""
    ride_types: Sequence[RideTypeInfo] = field(default_factory=lambda: DEFAULT_RIDE_TYPES)

    async def available_at(self, latitude: float, longitude: float) -> list[RideTypeInfo]:
        return list(self.ride_types)
