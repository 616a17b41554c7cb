"""
Surge Engine
============

Derives a surge multiplier from live demand telemetry and the pickup's
local clock.

Four factors are combined with fixed weights::

    surge = 1 + 0.6*(demand - 1) + 0.2*(time - 1) + 0.1*(day - 1) + 0.1*(zone - 1)

The composite is clamped to [1.0, 5.0] and then rounded to one decimal
place (half away from zero).  Telemetry is best effort: a failed demand
lookup counts as a balanced ratio of 1.0, a failed density lookup as 0, and
when both fail the engine falls back to the time-of-day factor alone.  The
engine never raises into a fare calculation.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from ridefare.integrations.demandTelemetry import DemandTelemetry
from ridefare.services.geoService import to_local_time
from ridefare.services.pricingTypes import ONE, sunday_based_weekday, to_decimal

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

DEMAND_WEIGHT = Decimal("0.6")
TIME_WEIGHT = Decimal("0.2")
DAY_WEIGHT = Decimal("0.1")
ZONE_WEIGHT = Decimal("0.1")

COMPOSITE_MIN = Decimal("1.0")
COMPOSITE_MAX = Decimal("5.0")
DEMAND_CAP = Decimal("4")

TENTH = Decimal("0.1")

# Sunday-based weekday numbers
SUNDAY, MONDAY, FRIDAY, SATURDAY = 0, 1, 5, 6


# ---------------------------------------------------------------------------
# Factors
# ---------------------------------------------------------------------------

def demand_surge(ratio: float) -> Decimal:
    """Piecewise demand curve, non-decreasing and capped at 4.0.

    Below 1 the market is balanced (1.0).  Between 1 and 3 the surge tracks
    the ratio linearly; beyond 3 it grows logarithmically up to the cap.
    """
    if math.isnan(ratio) or ratio < 1:
        return ONE
    if math.isinf(ratio):
        return DEMAND_CAP
    if ratio < 3:
        # 1 + (ratio - 1) below 2, 2 + (ratio - 2) below 3
        return to_decimal(ratio)
    return min(DEMAND_CAP, to_decimal(3 + math.log10(ratio - 2)))


def time_factor(hour: int) -> Decimal:
    if 7 <= hour < 9:
        return Decimal("1.5")
    if 17 <= hour < 20:
        return Decimal("1.8")
    if hour >= 23 or hour < 5:
        return Decimal("1.4")
    if 12 <= hour < 14:
        return Decimal("1.2")
    return ONE


def day_factor(weekday: int, hour: int) -> Decimal:
    """``weekday`` is 0=Sunday .. 6=Saturday."""
    if weekday in (FRIDAY, SATURDAY) and hour >= 20:
        return Decimal("1.3")
    if weekday in (FRIDAY, SATURDAY, SUNDAY):
        return Decimal("1.2")
    if weekday == MONDAY and 7 <= hour < 10:
        return Decimal("1.2")
    return ONE


def zone_factor(ride_density: int) -> Decimal:
    if ride_density > 50:
        return Decimal("1.2")
    if ride_density > 20:
        return Decimal("1.1")
    return ONE


def composite_surge(
    demand: Decimal,
    time_: Decimal,
    day: Decimal,
    zone: Decimal,
) -> Decimal:
    """Weighted composite, clamped to [1.0, 5.0] before rounding to 0.1."""
    value = (
        ONE
        + DEMAND_WEIGHT * (demand - ONE)
        + TIME_WEIGHT * (time_ - ONE)
        + DAY_WEIGHT * (day - ONE)
        + ZONE_WEIGHT * (zone - ONE)
    )
    value = max(COMPOSITE_MIN, min(COMPOSITE_MAX, value))
    return value.quantize(TENTH, rounding=ROUND_HALF_UP)


def surge_message(multiplier: Decimal) -> str:
    if multiplier >= 3:
        return "Very high demand - Fares are significantly higher than normal"
    if multiplier >= 2:
        return "High demand - Fares are higher than normal"
    if multiplier >= Decimal("1.5"):
        return "Increased demand - Fares are slightly higher"
    if multiplier > 1:
        return "Mild surge pricing active"
    return "Normal pricing"


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------

@dataclass
class SurgeFactors:
    multiplier: Decimal
    demand_ratio: float
    ride_density: int
    demand_surge: Decimal
    time_factor: Decimal
    day_factor: Decimal
    zone_factor: Decimal
    # True when both telemetry signals failed and only the clock was used
    fallback: bool = False


async def calculate_surge(
    telemetry: DemandTelemetry,
    latitude: float,
    longitude: float,
    now: Optional[datetime] = None,
    timezone_name: str = "UTC",
    demand_ratio: Optional[float] = None,
) -> SurgeFactors:
    """Compute the composite surge at a pickup point.

    Args:
        telemetry: Source of the demand ratio and ride density.
        latitude: Pickup latitude.
        longitude: Pickup longitude.
        now: Current instant (UTC); defaults to the system clock.
        timezone_name: IANA zone of the pickup; the time and day factors
            use its wall clock.
        demand_ratio: A ratio already known to the caller.  When given the
            telemetry ratio lookup is skipped.

    Returns:
        SurgeFactors with the rounded composite in ``multiplier``.
    """
    now = now or datetime.now(timezone.utc)
    local = to_local_time(now, timezone_name)
    hour = local.hour
    t_factor = time_factor(hour)
    w_factor = day_factor(sunday_based_weekday(local), hour)

    ratio_ok = density_ok = True
    if demand_ratio is None:
        try:
            demand_ratio = float(await telemetry.demand_ratio(latitude, longitude))
        except Exception:
            logger.warning(
                "Demand ratio unavailable at (%s, %s); assuming 1.0",
                latitude, longitude,
                exc_info=True,
            )
            demand_ratio = 1.0
            ratio_ok = False
    try:
        density = int(await telemetry.ride_density(latitude, longitude))
    except Exception:
        logger.warning(
            "Ride density unavailable at (%s, %s); assuming 0",
            latitude, longitude,
            exc_info=True,
        )
        density = 0
        density_ok = False

    d_surge = demand_surge(demand_ratio)
    z_factor = zone_factor(density)

    if not ratio_ok and not density_ok:
        return SurgeFactors(
            multiplier=t_factor,
            demand_ratio=demand_ratio,
            ride_density=density,
            demand_surge=d_surge,
            time_factor=t_factor,
            day_factor=w_factor,
            zone_factor=z_factor,
            fallback=True,
        )

    multiplier = composite_surge(d_surge, t_factor, w_factor, z_factor)
    logger.debug(
        "Surge at (%s, %s): ratio=%.2f density=%d -> %s",
        latitude, longitude, demand_ratio, density, multiplier,
    )
    return SurgeFactors(
        multiplier=multiplier,
        demand_ratio=demand_ratio,
        ride_density=density,
        demand_surge=d_surge,
        time_factor=t_factor,
        day_factor=w_factor,
        zone_factor=z_factor,
    )
