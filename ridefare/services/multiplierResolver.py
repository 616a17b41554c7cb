"""
Multiplier Resolver
===================

Time, weather, event and surge-tier modulators for a fare.

Every lookup reads one version snapshot and degrades to a neutral 1.0 when
the store is unavailable, so a broken multiplier table never fails an
estimate.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ridefare.core.exceptions import DependencyUnavailableError
from ridefare.integrations.geography import ResolvedLocation
from ridefare.models import WeatherCondition
from ridefare.services import pricingStore
from ridefare.services.pricingTypes import ONE, ResolvedPricing, to_decimal

logger = logging.getLogger(__name__)

# Conditions that never carry a multiplier
NEUTRAL_WEATHER = frozenset({"", WeatherCondition.CLEAR.value})


async def time_multiplier(
    db: AsyncSession,
    version_id: uuid.UUID,
    location: ResolvedLocation,
    local_now: datetime,
) -> Decimal:
    """Multiplier of the nearest-scope, highest-priority window at ``local_now``."""
    try:
        row = await pricingStore.time_multiplier_for(
            db, version_id, location.country_id, location.region_id, location.city_id, local_now
        )
    except DependencyUnavailableError:
        logger.warning("Time multiplier lookup failed; using 1.0", exc_info=True)
        return ONE
    if row is pricingStore.NOT_FOUND:
        return ONE
    return Decimal(row.multiplier)


async def weather_multiplier(
    db: AsyncSession,
    version_id: uuid.UUID,
    location: ResolvedLocation,
    condition: str,
) -> Decimal:
    condition = (condition or "").strip().lower()
    if condition in NEUTRAL_WEATHER:
        return ONE
    try:
        row = await pricingStore.weather_multiplier_for(
            db, version_id, location.country_id, location.region_id, location.city_id, condition
        )
    except DependencyUnavailableError:
        logger.warning("Weather multiplier lookup failed for %s; using 1.0", condition, exc_info=True)
        return ONE
    if row is pricingStore.NOT_FOUND:
        return ONE
    return Decimal(row.multiplier)


async def event_multiplier(
    db: AsyncSession,
    version_id: uuid.UUID,
    city_id: Optional[uuid.UUID],
    zone_id: Optional[uuid.UUID],
    now: datetime,
) -> Decimal:
    """Highest multiplier among events active at the city or pickup zone."""
    try:
        events = await pricingStore.event_multipliers_active(db, version_id, city_id, zone_id, now)
    except DependencyUnavailableError:
        logger.warning("Event multiplier lookup failed; using 1.0", exc_info=True)
        return ONE
    if not events:
        return ONE
    top = events[0]
    logger.debug("Event multiplier %s from '%s'", top.multiplier, top.event_name)
    return Decimal(top.multiplier)


async def surge_tier_multiplier(
    db: AsyncSession,
    version_id: uuid.UUID,
    location: ResolvedLocation,
    ratio: float,
) -> Optional[Decimal]:
    """Multiplier of the configured tier containing ``ratio``, or ``None``.

    A tier matches when ``ratio_min <= ratio < ratio_max``; an open upper
    bound matches everything above ``ratio_min``.
    """
    try:
        tiers = await pricingStore.surge_thresholds_for(
            db, version_id, location.country_id, location.region_id, location.city_id
        )
    except DependencyUnavailableError:
        logger.warning("Surge threshold lookup failed", exc_info=True)
        return None

    value = to_decimal(ratio)
    for tier in tiers:
        if value < tier.demand_supply_ratio_min:
            continue
        if tier.demand_supply_ratio_max is None or value < tier.demand_supply_ratio_max:
            return Decimal(tier.multiplier)
    return None


def clamp_surge(value: Decimal, resolved: ResolvedPricing) -> Decimal:
    """Clamp into ``[surge_min_multiplier, surge_max_multiplier]``."""
    return max(resolved.surge_min_multiplier, min(resolved.surge_max_multiplier, value))
