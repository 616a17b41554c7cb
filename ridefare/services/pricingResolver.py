"""
Pricing Resolver
================

Collapses the pricing hierarchy into a single ``ResolvedPricing``.

Resolution starts from ``DEFAULT_PRICING`` and overlays every applicable
config least-specific first (global, country, region, city, zone; within a
level the ride-type-agnostic row before the ride-type-specific one).  A
field keeps the value from the most specific config that sets it; a
non-empty cancellation fee list replaces the inherited list wholesale.
Each applied layer is recorded in ``inheritance_chain``.

The resolver never fails for a missing layer.  Without an active version it
returns the defaults under the synthetic version id zero, and a store
failure while loading configs degrades to the defaults as well.

An optional read-through cache keyed by ``(version_id, scope, ride_type)``
is enabled with ``settings.pricing_cache_enabled``; the version manager
clears it whenever the active version changes.
"""

from __future__ import annotations

import copy
import logging
import uuid
from collections import OrderedDict
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ridefare.core.config import settings
from ridefare.core.exceptions import DependencyUnavailableError
from ridefare.models import PricingConfig
from ridefare.services import pricingStore
from ridefare.services.pricingTypes import (
    DEFAULT_PRICING,
    NO_VERSION_ID,
    CancellationFee,
    ResolvedPricing,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# Nullable numeric columns overlaid onto the accumulator
DECIMAL_FIELDS: tuple[str, ...] = (
    "base_fare",
    "per_km_rate",
    "per_minute_rate",
    "minimum_fare",
    "booking_fee",
    "platform_commission_pct",
    "driver_incentive_pct",
    "surge_min_multiplier",
    "surge_max_multiplier",
    "tax_rate_pct",
)

CacheKey = tuple[
    uuid.UUID,
    Optional[uuid.UUID],
    Optional[uuid.UUID],
    Optional[uuid.UUID],
    Optional[uuid.UUID],
    Optional[uuid.UUID],
]


# ---------------------------------------------------------------------------
# Read-through cache
# ---------------------------------------------------------------------------

class ResolvedPricingCache:
    """Bounded LRU of resolved pricing keyed by version and scope."""

    def __init__(self, max_entries: int = 1024) -> None:
        self.max_entries = max_entries
        self._entries: OrderedDict[CacheKey, ResolvedPricing] = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: CacheKey) -> Optional[ResolvedPricing]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        self._entries.move_to_end(key)
        return copy.deepcopy(entry)

    def put(self, key: CacheKey, value: ResolvedPricing) -> None:
        self._entries[key] = copy.deepcopy(value)
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)

    def clear(self) -> None:
        self._entries.clear()


resolution_cache = ResolvedPricingCache(settings.pricing_cache_max_entries)


def invalidate_cache() -> None:
    """Drop every cached resolution; call after the active version changes."""
    if len(resolution_cache):
        logger.info("Clearing %d cached pricing resolutions", len(resolution_cache))
    resolution_cache.clear()


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------

def default_pricing(version_id: uuid.UUID = NO_VERSION_ID) -> ResolvedPricing:
    """A fresh copy of the built-in defaults."""
    resolved = copy.deepcopy(DEFAULT_PRICING)
    resolved.version_id = version_id
    return resolved


async def active_version_id(
    db: AsyncSession,
    now: Optional[datetime] = None,
) -> uuid.UUID:
    """Active version id, or ``NO_VERSION_ID`` when none is active or the
    store cannot be read."""
    try:
        active = await pricingStore.get_active_version_id(db, now)
    except DependencyUnavailableError:
        logger.warning("Active version lookup failed; using default pricing", exc_info=True)
        return NO_VERSION_ID
    return NO_VERSION_ID if active is pricingStore.NOT_FOUND else active


def layer_tag(config: PricingConfig) -> str:
    """Provenance tag for one applied config layer."""
    if config.zone_id is not None:
        tag = f"zone:{config.zone_id}"
    elif config.city_id is not None:
        tag = f"city:{config.city_id}"
    elif config.region_id is not None:
        tag = f"region:{config.region_id}"
    elif config.country_id is not None:
        tag = f"country:{config.country_id}"
    else:
        tag = "global"
    if config.ride_type_id is not None:
        tag = f"{tag}+ride_type:{config.ride_type_id}"
    return tag


def apply_configs(
    resolved: ResolvedPricing,
    configs: list[PricingConfig],
) -> ResolvedPricing:
    """Overlay ``configs`` (ordered most specific first) onto ``resolved``.

    Surge bounds set on different layers can cross; the bound from the more
    specific layer is kept and the other is moved onto it.
    """
    # Depth of the layer that last set each surge bound; 0 is the defaults
    surge_depth = {"surge_min_multiplier": 0, "surge_max_multiplier": 0}
    for depth, config in enumerate(reversed(configs), start=1):
        for name in DECIMAL_FIELDS:
            value = getattr(config, name)
            if value is not None:
                setattr(resolved, name, Decimal(value))
                if name in surge_depth:
                    surge_depth[name] = depth
        if config.tax_inclusive is not None:
            resolved.tax_inclusive = config.tax_inclusive
        if config.cancellation_fees:
            resolved.cancellation_fees = [
                CancellationFee.from_dict(tier) for tier in config.cancellation_fees
            ]
        resolved.inheritance_chain.append(layer_tag(config))

    if resolved.surge_min_multiplier > resolved.surge_max_multiplier:
        _reconcile_surge_bounds(resolved, surge_depth)
    return resolved


def _reconcile_surge_bounds(resolved: ResolvedPricing, surge_depth: dict[str, int]) -> None:
    logger.warning(
        "Surge bounds crossed across layers %s: min=%s max=%s",
        resolved.inheritance_chain,
        resolved.surge_min_multiplier,
        resolved.surge_max_multiplier,
    )
    if surge_depth["surge_min_multiplier"] > surge_depth["surge_max_multiplier"]:
        resolved.surge_max_multiplier = resolved.surge_min_multiplier
    else:
        resolved.surge_min_multiplier = resolved.surge_max_multiplier


async def resolve_pricing(
    db: AsyncSession,
    country_id: Optional[uuid.UUID] = None,
    region_id: Optional[uuid.UUID] = None,
    city_id: Optional[uuid.UUID] = None,
    zone_id: Optional[uuid.UUID] = None,
    ride_type_id: Optional[uuid.UUID] = None,
    *,
    version_id: Optional[uuid.UUID] = None,
    now: Optional[datetime] = None,
) -> ResolvedPricing:
    """Resolve pricing for a scope.

    Args:
        db: Async database session.
        country_id: Country of the pickup, if known.
        region_id: Region of the pickup, if known.
        city_id: City of the pickup, if known.
        zone_id: Pricing zone of the pickup, if known.
        ride_type_id: Requested ride type; ``None`` means any.
        version_id: Version snapshot to read.  When omitted the active
            version at ``now`` is looked up.
        now: Clock used for the active version lookup.

    Returns:
        ResolvedPricing with every value field populated.
    """
    if version_id is None:
        version_id = await active_version_id(db, now)

    resolved = default_pricing(version_id)
    resolved.country_id = country_id
    resolved.region_id = region_id
    resolved.city_id = city_id
    resolved.zone_id = zone_id
    resolved.ride_type_id = ride_type_id

    if version_id == NO_VERSION_ID:
        return resolved

    key: CacheKey = (version_id, country_id, region_id, city_id, zone_id, ride_type_id)
    if settings.pricing_cache_enabled:
        cached = resolution_cache.get(key)
        if cached is not None:
            return cached

    try:
        configs = await pricingStore.configs_for(
            db, version_id, country_id, region_id, city_id, zone_id, ride_type_id
        )
    except DependencyUnavailableError:
        logger.warning(
            "Config lookup failed for version %s; using default pricing",
            version_id,
            exc_info=True,
        )
        return resolved

    apply_configs(resolved, configs)

    if settings.pricing_cache_enabled:
        resolution_cache.put(key, resolved)
    return resolved
