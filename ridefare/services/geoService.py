"""
Geo Service
===========

Great-circle distance and trip duration estimates for fare calculation.

Uses the haversine formula for great-circle distance between two points
on Earth's surface.  No road routing is attempted; the caller may pass a
routed distance instead.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ridefare.core.config import settings

logger = logging.getLogger(__name__)

# Earth's mean radius in kilometres
EARTH_RADIUS_KM: float = 6371.0


def haversine_distance(
    lat1: float,
    lon1: float,
    lat2: float,
    lon2: float,
) -> float:
    """Calculate the great-circle distance between two points using the
    haversine formula.

    Args:
        lat1: Latitude of point 1 in decimal degrees.
        lon1: Longitude of point 1 in decimal degrees.
        lat2: Latitude of point 2 in decimal degrees.
        lon2: Longitude of point 2 in decimal degrees.

    Returns:
        Distance in kilometres.
    """
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    delta_lat = math.radians(lat2 - lat1)
    delta_lon = math.radians(lon2 - lon1)

    a = (
        math.sin(delta_lat / 2) ** 2
        + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(delta_lon / 2) ** 2
    )
    # Guard against a drifting just above 1.0 for antipodal points
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(min(1.0, a)))


def to_local_time(moment: datetime, timezone_name: Optional[str]) -> datetime:
    """Convert ``moment`` to the wall clock of ``timezone_name`` (UTC if unknown)."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    try:
        zone = ZoneInfo(timezone_name or "UTC")
    except (ZoneInfoNotFoundError, ValueError):
        logger.debug("Unknown timezone '%s'; using UTC", timezone_name)
        zone = ZoneInfo("UTC")
    return moment.astimezone(zone)


def estimate_duration_minutes(distance_km: float, speed_kmh: float | None = None) -> int:
    """Whole minutes to cover ``distance_km`` at the average city speed, at least 1."""
    speed = speed_kmh or settings.average_speed_kmh
    return max(1, math.ceil(distance_km / speed * 60))
