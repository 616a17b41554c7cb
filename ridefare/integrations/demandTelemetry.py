"""
Demand / supply telemetry -- Redis geo sets
===========================================

Live signals for the surge engine, read from Redis:

  - **Driver supply** (``<prefix>:drivers:online``): geo set of online
    drivers, maintained by the dispatch side.
  - **Ride requests** (``<prefix>:requests:geo`` + ``<prefix>:requests:ts``):
    geo set of open requests plus a sorted set scoring each request by its
    Unix timestamp.
  - **Completed rides** (``<prefix>:completed:geo`` + ``<prefix>:completed:ts``):
    same layout, used for the 24 h ride density around a point.

Every GEOSEARCH is bounded with ``COUNT`` so a hot area never buffers an
unbounded member list.  Both signals are best effort: callers treat any
exception as "no signal" and fall back to 1.0 / 0.
"""

from __future__ import annotations

import logging
import time
from typing import Final, Optional, Protocol

import redis.asyncio as aioredis

from ridefare.core.config import settings

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# Driver count assumed when no drivers are visible in the area.
ASSUMED_DRIVER_COUNT: Final[int] = 10


class DemandTelemetry(Protocol):
    async def demand_ratio(self, latitude: float, longitude: float) -> float: ...

    async def ride_density(self, latitude: float, longitude: float) -> int: ...


class NullDemandTelemetry:
    """Neutral telemetry: balanced demand, no density."""

    async def demand_ratio(self, latitude: float, longitude: float) -> float:
        return 1.0

    async def ride_density(self, latitude: float, longitude: float) -> int:
        return 0


class RedisDemandTelemetry:
    """Telemetry backed by Redis geo sets."""

    def __init__(
        self,
        redis: Optional[aioredis.Redis] = None,
        key_prefix: Optional[str] = None,
    ) -> None:
        self._redis = redis
        prefix = key_prefix or settings.telemetry_key_prefix
        self.drivers_key = f"{prefix}:drivers:online"
        self.requests_geo_key = f"{prefix}:requests:geo"
        self.requests_ts_key = f"{prefix}:requests:ts"
        self.completed_geo_key = f"{prefix}:completed:geo"
        self.completed_ts_key = f"{prefix}:completed:ts"

    async def _get_redis(self) -> aioredis.Redis:
        """Lazily initialize and return the Redis client."""
        if self._redis is None:
            self._redis = aioredis.from_url(
                settings.redis_url,
                decode_responses=True,
            )
        return self._redis

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None

    async def _members_within(
        self, key: str, latitude: float, longitude: float, radius_km: float
    ) -> list[str]:
        redis = await self._get_redis()
        return await redis.geosearch(
            key,
            longitude=longitude,
            latitude=latitude,
            radius=radius_km,
            unit="km",
            count=settings.telemetry_max_members,
        )

    async def _count_recent(
        self,
        geo_key: str,
        ts_key: str,
        latitude: float,
        longitude: float,
        radius_km: float,
        window_seconds: float,
    ) -> int:
        members = await self._members_within(geo_key, latitude, longitude, radius_km)
        if not members:
            return 0
        redis = await self._get_redis()
        scores = await redis.zmscore(ts_key, members)
        cutoff = time.time() - window_seconds
        return sum(1 for score in scores if score is not None and score >= cutoff)

    async def demand_ratio(self, latitude: float, longitude: float) -> float:
        """Open requests in the last window divided by online drivers nearby."""
        radius = settings.telemetry_demand_radius_km
        requests = await self._count_recent(
            self.requests_geo_key,
            self.requests_ts_key,
            latitude,
            longitude,
            radius,
            settings.telemetry_demand_window_minutes * 60,
        )
        drivers = len(
            await self._members_within(self.drivers_key, latitude, longitude, radius)
        )
        if drivers == 0:
            drivers = ASSUMED_DRIVER_COUNT

        ratio = requests / drivers
        logger.debug(
            "Demand at (%s, %s): requests=%d drivers=%d ratio=%.2f",
            latitude, longitude, requests, drivers, ratio,
        )
        return ratio

    async def ride_density(self, latitude: float, longitude: float) -> int:
        """Completed rides near the point over the density window."""
        return await self._count_recent(
            self.completed_geo_key,
            self.completed_ts_key,
            latitude,
            longitude,
            settings.telemetry_density_radius_km,
            settings.telemetry_density_window_hours * 3600,
        )
