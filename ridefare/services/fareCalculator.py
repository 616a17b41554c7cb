"""
Fare Calculator
===============

Produces a ``FareCalculation`` for a pickup/dropoff pair.

The steps run in a fixed order:

1. Resolve pickup and dropoff through the geographic resolver.
2. Read the active version id once; every later store call uses it.
3. Resolve pricing for the pickup hierarchy and ride type.
4. Base charges and zone fees (zone fees skipped without a version).
5. Time, weather, event and surge multipliers (all 1.0 without a version,
   except an explicitly supplied surge).
6. ``base_sum = base + distance + time + booking``
7. ``subtotal = base_sum * total_multiplier + zone_fees_total``
8. Minimum fare floor.
9. Tax, inclusive or exclusive.
10. Negotiated fare override.
11. Commission split on the final total.
12. Round every monetary field to cents (half away from zero).

Multipliers keep full precision; only money is rounded, and only at the
end.  Store failures while fetching modulators or zone fees degrade to
neutral values instead of failing the estimate.

Also hosts the small stand-alone pricing operations: quick estimates,
cancellation fees and the negotiation band check.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ridefare.core.config import settings
from ridefare.core.exceptions import (
    DependencyUnavailableError,
    InvalidInputError,
    PreconditionFailedError,
)
from ridefare.integrations.collaborators import PricingCollaborators
from ridefare.integrations.demandTelemetry import DemandTelemetry
from ridefare.integrations.geography import GeoResolver, ResolvedLocation
from ridefare.models import CancellationFeeType, ZoneFee
from ridefare.services import multiplierResolver, pricingStore
from ridefare.services.geoService import to_local_time
from ridefare.services.pricingResolver import active_version_id, resolve_pricing
from ridefare.services.pricingTypes import (
    HUNDRED,
    MAX_DEMAND_SUPPLY_RATIO,
    MAX_DISTANCE_KM,
    MAX_DURATION_MIN,
    MAX_FARE,
    MAX_SURGE_MULTIPLIER,
    NO_VERSION_ID,
    ONE,
    CalculateInput,
    FareCalculation,
    FeeSchedule,
    ResolvedPricing,
    ZoneFeeBreakdown,
    round_money,
    to_decimal,
)
from ridefare.services.surgeEngine import calculate_surge

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def validate_coordinates(latitude: float, longitude: float, label: str = "location") -> None:
    if not -90 <= latitude <= 90:
        raise InvalidInputError(
            f"{label} latitude must be between -90 and 90",
            details={"latitude": latitude},
        )
    if not -180 <= longitude <= 180:
        raise InvalidInputError(
            f"{label} longitude must be between -180 and 180",
            details={"longitude": longitude},
        )


def check_amount(name: str, value: Any, upper: Any, positive: bool = False) -> Decimal:
    """Reject non-finite, negative (or zero when ``positive``) and oversized inputs."""
    amount = to_decimal(value)
    if not amount.is_finite():
        raise InvalidInputError(f"{name} must be a finite number", details={name: str(value)})
    if positive and amount <= 0:
        raise InvalidInputError(f"{name} must be positive", details={name: str(value)})
    if amount < 0:
        raise InvalidInputError(f"{name} must not be negative", details={name: str(value)})
    if amount > upper:
        raise InvalidInputError(
            f"{name} must not exceed {upper}", details={name: str(value), "maximum": str(upper)}
        )
    return amount


def _validate_input(inp: CalculateInput) -> None:
    validate_coordinates(inp.pickup_latitude, inp.pickup_longitude, "pickup")
    validate_coordinates(inp.dropoff_latitude, inp.dropoff_longitude, "dropoff")
    check_amount("distance_km", inp.distance_km, MAX_DISTANCE_KM)
    check_amount("duration_min", inp.duration_min, MAX_DURATION_MIN)
    check_amount("demand_supply_ratio", inp.demand_supply_ratio, MAX_DEMAND_SUPPLY_RATIO)
    if inp.negotiated_fare is not None:
        check_amount("negotiated_fare", inp.negotiated_fare, MAX_FARE)
    if inp.surge_multiplier is not None:
        check_amount("surge_multiplier", inp.surge_multiplier, MAX_SURGE_MULTIPLIER, positive=True)


async def resolve_location(
    geo: GeoResolver, latitude: float, longitude: float
) -> ResolvedLocation:
    """Resolve a coordinate, treating resolver failure as an unknown location."""
    try:
        return await geo.resolve(latitude, longitude)
    except Exception:
        logger.warning(
            "Geo resolution failed for (%s, %s); pricing without hierarchy",
            latitude, longitude,
            exc_info=True,
        )
        return ResolvedLocation()


def _fee_applies(
    fee: ZoneFee,
    pickup_zone_id: Optional[uuid.UUID],
    dropoff_zone_id: Optional[uuid.UUID],
    schedule_clock: datetime,
) -> bool:
    on_pickup = fee.applies_pickup and fee.zone_id == pickup_zone_id
    on_dropoff = fee.applies_dropoff and fee.zone_id == dropoff_zone_id
    if not (on_pickup or on_dropoff):
        return False
    if fee.schedule:
        return FeeSchedule.from_dict(fee.schedule).contains(schedule_clock)
    return True


async def calculate_zone_fees(
    db: AsyncSession,
    version_id: uuid.UUID,
    pickup: ResolvedLocation,
    dropoff: ResolvedLocation,
    ride_type_id: Optional[uuid.UUID],
    base_sum: Decimal,
    schedule_clock: datetime,
) -> tuple[Decimal, list[ZoneFeeBreakdown]]:
    """Sum the zone fees that apply at pickup or dropoff.

    A fee attached to a zone counts once even when pickup and dropoff share
    the zone.  Percentage fees are a percent of ``base_sum``.
    """
    try:
        fees = await pricingStore.zone_fees_for(
            db, version_id, pickup.zone_id, dropoff.zone_id, ride_type_id
        )
    except DependencyUnavailableError:
        logger.warning("Zone fee lookup failed; pricing without zone fees", exc_info=True)
        return ZERO, []

    total = ZERO
    breakdown: list[ZoneFeeBreakdown] = []
    names: dict[uuid.UUID, str] = {}
    for fee in fees:
        if not _fee_applies(fee, pickup.zone_id, dropoff.zone_id, schedule_clock):
            continue

        amount = Decimal(fee.amount)
        if fee.is_percentage:
            amount = base_sum * amount / HUNDRED

        if fee.zone_id not in names:
            names[fee.zone_id] = await _zone_name(db, fee.zone_id)

        total += amount
        breakdown.append(
            ZoneFeeBreakdown(
                zone_id=fee.zone_id,
                zone_name=names[fee.zone_id],
                fee_type=fee.fee_type,
                amount=amount,
            )
        )
    return total, breakdown


async def _zone_name(db: AsyncSession, zone_id: uuid.UUID) -> str:
    try:
        name = await pricingStore.zone_name(db, zone_id)
    except DependencyUnavailableError:
        logger.warning("Zone name lookup failed for %s", zone_id, exc_info=True)
        return ""
    return "" if name is pricingStore.NOT_FOUND else name


async def resolve_surge(
    db: AsyncSession,
    inp: CalculateInput,
    resolved: ResolvedPricing,
    pickup: ResolvedLocation,
    telemetry: DemandTelemetry,
    now: datetime,
) -> Decimal:
    """Surge for one calculation, clamped into the resolved policy range.

    Sources in order: an explicit ``surge_multiplier``, 1.0 when no version
    is active, the configured tier for a supplied demand ratio, and finally
    the telemetry-driven surge engine.
    """
    if inp.surge_multiplier is not None:
        return multiplierResolver.clamp_surge(to_decimal(inp.surge_multiplier), resolved)
    if resolved.version_id == NO_VERSION_ID:
        return ONE

    ratio = inp.demand_supply_ratio
    surge = None
    if ratio > 0:
        surge = await multiplierResolver.surge_tier_multiplier(
            db, resolved.version_id, pickup, ratio
        )
    if surge is None:
        factors = await calculate_surge(
            telemetry,
            inp.pickup_latitude,
            inp.pickup_longitude,
            now=now,
            timezone_name=pickup.timezone,
            demand_ratio=ratio if ratio > 0 else None,
        )
        surge = factors.multiplier
    return multiplierResolver.clamp_surge(surge, resolved)


# ---------------------------------------------------------------------------
# Calculation
# ---------------------------------------------------------------------------

async def calculate_fare(
    db: AsyncSession,
    inp: CalculateInput,
    collaborators: PricingCollaborators,
) -> FareCalculation:
    """Calculate a complete fare breakdown.

    Money is rounded half away from zero.  Driver earnings are the rounded
    total minus the rounded commission rather than ``total - commission``
    rounded on its own; on a tie the two differ by a cent, and this way
    ``driver_earnings + platform_commission == total_fare`` exactly.

    Args:
        db: Async database session.
        inp: Trip geometry and pricing signals.
        collaborators: Geo resolver and telemetry source.

    Returns:
        FareCalculation with money rounded to cents and the resolved
        minimum fare of the version it was priced under.

    Raises:
        InvalidInputError: If coordinates are out of range or any amount
            is negative, not finite or beyond its upper bound.
    """
    _validate_input(inp)
    now = inp.now or collaborators.clock()

    # 1. Geography
    pickup = await resolve_location(collaborators.geo, inp.pickup_latitude, inp.pickup_longitude)
    dropoff = await resolve_location(collaborators.geo, inp.dropoff_latitude, inp.dropoff_longitude)
    local_now = to_local_time(now, pickup.timezone)

    # 2-3. One version snapshot for the whole calculation
    version_id = await active_version_id(db, now)
    resolved = await resolve_pricing(
        db,
        pickup.country_id,
        pickup.region_id,
        pickup.city_id,
        pickup.zone_id,
        inp.ride_type_id,
        version_id=version_id,
    )
    has_version = version_id != NO_VERSION_ID

    # 4. Base charges
    base = resolved.base_fare
    distance_charge = to_decimal(inp.distance_km) * resolved.per_km_rate
    time_charge = Decimal(inp.duration_min) * resolved.per_minute_rate
    booking_fee = resolved.booking_fee
    base_sum = base + distance_charge + time_charge + booking_fee

    zone_fees_total, zone_fees_breakdown = ZERO, []
    if has_version:
        schedule_clock = datetime.now() if settings.fee_schedule_server_clock else local_now
        zone_fees_total, zone_fees_breakdown = await calculate_zone_fees(
            db, version_id, pickup, dropoff, inp.ride_type_id, base_sum, schedule_clock
        )

    # 5. Multipliers
    time_mult = weather_mult = event_mult = ONE
    if has_version:
        time_mult = await multiplierResolver.time_multiplier(db, version_id, pickup, local_now)
        weather_mult = await multiplierResolver.weather_multiplier(
            db, version_id, pickup, inp.weather_condition
        )
        event_mult = await multiplierResolver.event_multiplier(
            db, version_id, pickup.city_id, pickup.zone_id, now
        )
    surge_mult = await resolve_surge(db, inp, resolved, pickup, collaborators.telemetry, now)
    total_multiplier = time_mult * weather_mult * event_mult * surge_mult

    # 6-8. Subtotal and minimum
    subtotal = base_sum * total_multiplier + zone_fees_total
    if subtotal < resolved.minimum_fare:
        subtotal = resolved.minimum_fare

    # 9. Tax
    tax_rate = resolved.tax_rate_pct
    if resolved.tax_inclusive:
        tax_amount = subtotal - subtotal / (ONE + tax_rate / HUNDRED)
        total_fare = subtotal
    else:
        tax_amount = subtotal * tax_rate / HUNDRED
        total_fare = subtotal + tax_amount

    # 10. Negotiated override
    was_negotiated = False
    negotiated_fare = None
    if inp.negotiated_fare is not None:
        negotiated_fare = to_decimal(inp.negotiated_fare)
        total_fare = negotiated_fare
        was_negotiated = True

    # 11. Commission split
    platform_commission = total_fare * resolved.platform_commission_pct / HUNDRED

    calculation = FareCalculation(
        distance_km=inp.distance_km,
        duration_min=inp.duration_min,
        currency=inp.currency,
        base_fare=base,
        distance_charge=distance_charge,
        time_charge=time_charge,
        booking_fee=booking_fee,
        zone_fees_total=zone_fees_total,
        zone_fees_breakdown=zone_fees_breakdown,
        time_multiplier=time_mult,
        weather_multiplier=weather_mult,
        event_multiplier=event_mult,
        surge_multiplier=surge_mult,
        total_multiplier=total_multiplier,
        subtotal=subtotal,
        minimum_fare=resolved.minimum_fare,
        tax_rate_pct=tax_rate,
        tax_amount=tax_amount,
        total_fare=total_fare,
        platform_commission_pct=resolved.platform_commission_pct,
        platform_commission=platform_commission,
        driver_earnings=ZERO,
        pricing_version_id=version_id,
        was_negotiated=was_negotiated,
        negotiated_fare=negotiated_fare,
    )

    # 12. Rounding; driver earnings are the rounded total minus the rounded
    # commission so the split always sums to the total
    calculation.round_values()
    calculation.driver_earnings = calculation.total_fare - calculation.platform_commission

    logger.info(
        "Fare calculated: total=%s %s, multiplier=%s, version=%s",
        calculation.total_fare,
        calculation.currency,
        calculation.total_multiplier,
        version_id,
    )
    return calculation


# ---------------------------------------------------------------------------
# Stand-alone operations
# ---------------------------------------------------------------------------

async def pricing_for_location(
    db: AsyncSession,
    collaborators: PricingCollaborators,
    latitude: float,
    longitude: float,
    ride_type_id: Optional[uuid.UUID] = None,
    now: Optional[datetime] = None,
) -> ResolvedPricing:
    """Resolved pricing for the hierarchy containing a coordinate."""
    validate_coordinates(latitude, longitude)
    location = await resolve_location(collaborators.geo, latitude, longitude)
    return await resolve_pricing(
        db,
        location.country_id,
        location.region_id,
        location.city_id,
        location.zone_id,
        ride_type_id,
        now=now or collaborators.clock(),
    )


async def quick_estimate(
    db: AsyncSession,
    collaborators: PricingCollaborators,
    distance_km: float,
    duration_min: int,
    latitude: float,
    longitude: float,
    ride_type_id: Optional[uuid.UUID] = None,
) -> Decimal:
    """Base, distance and time charges with the minimum floor.

    No zone fees, modulators, tax or booking fee; used where a cheap
    indicative price is enough.
    """
    check_amount("distance_km", distance_km, MAX_DISTANCE_KM)
    check_amount("duration_min", duration_min, MAX_DURATION_MIN)
    resolved = await pricing_for_location(db, collaborators, latitude, longitude, ride_type_id)
    fare = (
        resolved.base_fare
        + to_decimal(distance_km) * resolved.per_km_rate
        + Decimal(duration_min) * resolved.per_minute_rate
    )
    if fare < resolved.minimum_fare:
        fare = resolved.minimum_fare
    return round_money(fare)


def cancellation_fee(
    resolved: ResolvedPricing,
    minutes_since_request: float,
    estimated_fare: Decimal,
) -> Decimal:
    """Fee of the tier with the largest ``after_minutes`` not above the elapsed time."""
    elapsed = check_amount("minutes_since_request", minutes_since_request, MAX_DURATION_MIN)
    estimated_fare = check_amount("estimated_fare", estimated_fare, MAX_FARE)

    selected = None
    for tier in resolved.cancellation_fees:
        if tier.after_minutes <= elapsed and (
            selected is None or tier.after_minutes >= selected.after_minutes
        ):
            selected = tier

    if selected is None:
        return round_money(ZERO)
    if selected.fee_type == CancellationFeeType.PERCENTAGE:
        return round_money(estimated_fare * selected.fee / HUNDRED)
    return round_money(selected.fee)


def negotiation_band(estimated_fare: Decimal) -> tuple[Decimal, Decimal]:
    """Inclusive ``(minimum, maximum)`` acceptable negotiated price."""
    estimated = to_decimal(estimated_fare)
    return (
        estimated * Decimal(settings.negotiation_min_ratio),
        estimated * Decimal(settings.negotiation_max_ratio),
    )


def validate_negotiated_price(estimated_fare: Decimal, proposed_price: Decimal) -> None:
    """Raise unless ``proposed_price`` lies inside the negotiation band.

    Raises:
        InvalidInputError: If the proposed price is negative, not finite or
            implausibly large.
        PreconditionFailedError: With reason ``below minimum`` or
            ``above maximum`` when outside the band.
    """
    proposed = check_amount("negotiated_price", proposed_price, MAX_FARE)

    minimum, maximum = negotiation_band(estimated_fare)
    details = {
        "negotiated_price": str(proposed),
        "estimated_price": str(to_decimal(estimated_fare)),
        "minimum_allowed": str(round_money(minimum)),
        "maximum_allowed": str(round_money(maximum)),
    }
    if proposed < minimum:
        raise PreconditionFailedError(
            f"Negotiated price {proposed} is below minimum allowed {round_money(minimum)}",
            details={"reason": "below minimum", **details},
        )
    if proposed > maximum:
        raise PreconditionFailedError(
            f"Negotiated price {proposed} is above maximum allowed {round_money(maximum)}",
            details={"reason": "above maximum", **details},
        )
