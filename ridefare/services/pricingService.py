"""
Pricing Service
===============

The rider-facing pricing operations: single and bulk estimates, negotiated
price validation, surge information, resolved pricing and cancellation
fees.  Each operation composes the calculator with the geographic
resolver, ride-type catalog, currency formatter and weather feed.

All methods are async and accept an ``AsyncSession`` for transactional safety.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ridefare.core.exceptions import NotFoundError, PricingError
from ridefare.integrations import weatherApi
from ridefare.integrations.collaborators import PricingCollaborators
from ridefare.integrations.currency import format_amount
from ridefare.integrations.rideTypes import RideTypeInfo
from ridefare.services import fareCalculator
from ridefare.services.geoService import estimate_duration_minutes, haversine_distance
from ridefare.services.multiplierResolver import clamp_surge
from ridefare.services.pricingTypes import (
    HUNDRED,
    MAX_DISTANCE_KM,
    MAX_DURATION_MIN,
    NO_VERSION_ID,
    ONE,
    CalculateInput,
    FareCalculation,
    ResolvedPricing,
    round_money,
    to_decimal,
)
from ridefare.services.surgeEngine import SurgeFactors, calculate_surge, surge_message

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# DTOs
# ---------------------------------------------------------------------------

@dataclass
class TripRequest:
    """Pickup/dropoff plus the optional signals a caller may already know."""
    pickup_latitude: float
    pickup_longitude: float
    dropoff_latitude: float
    dropoff_longitude: float
    ride_type_id: Optional[uuid.UUID] = None
    # Routed values override the great-circle estimate
    distance_km: Optional[float] = None
    duration_min: Optional[int] = None
    weather_condition: Optional[str] = None
    demand_supply_ratio: float = 0.0
    surge_multiplier: Optional[Decimal] = None


@dataclass
class Estimate:
    currency: str
    estimated_fare: Decimal
    minimum_fare: Decimal
    surge_multiplier: Decimal
    distance_km: float
    estimated_minutes: int
    fare_breakdown: FareCalculation
    formatted_fare: str


@dataclass
class RideTypeEstimate:
    ride_type: RideTypeInfo
    estimate: Estimate


@dataclass
class BulkEstimate:
    distance_km: float
    estimated_minutes: int
    ride_options: list[RideTypeEstimate] = field(default_factory=list)


@dataclass
class NegotiationCheck:
    valid: bool
    negotiated_price: Decimal
    estimated_price: Decimal
    variance_pct: Decimal


@dataclass
class SurgeInfo:
    surge_multiplier: Decimal
    surge_min: Decimal
    surge_max: Decimal
    factors: SurgeFactors
    surge_active: bool
    message: str


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _trip_geometry(trip: TripRequest) -> tuple[float, int]:
    distance_km = trip.distance_km
    if distance_km is not None:
        fareCalculator.check_amount("distance_km", distance_km, MAX_DISTANCE_KM)
    if trip.duration_min is not None:
        fareCalculator.check_amount("duration_min", trip.duration_min, MAX_DURATION_MIN)
    if distance_km is None:
        distance_km = haversine_distance(
            trip.pickup_latitude,
            trip.pickup_longitude,
            trip.dropoff_latitude,
            trip.dropoff_longitude,
        )
    duration_min = trip.duration_min
    if duration_min is None:
        duration_min = estimate_duration_minutes(distance_km)
    return distance_km, duration_min


async def _currency_for(collaborators: PricingCollaborators, trip: TripRequest) -> str:
    try:
        return await collaborators.geo.currency_for(trip.pickup_latitude, trip.pickup_longitude)
    except Exception:
        logger.warning("Currency lookup failed; using USD", exc_info=True)
        return "USD"


async def _weather_for(trip: TripRequest) -> str:
    if trip.weather_condition is not None:
        return trip.weather_condition
    try:
        weather = await weatherApi.get_weather_conditions(
            trip.pickup_latitude, trip.pickup_longitude
        )
    except Exception:
        logger.warning("Weather lookup failed; assuming clear", exc_info=True)
        return "clear"
    return weather.condition.value


async def _estimate(
    db: AsyncSession,
    collaborators: PricingCollaborators,
    trip: TripRequest,
    ride_type_id: Optional[uuid.UUID],
    distance_km: float,
    duration_min: int,
    currency: str,
    weather: str,
) -> Estimate:
    now = collaborators.clock()
    calculation = await fareCalculator.calculate_fare(
        db,
        CalculateInput(
            pickup_latitude=trip.pickup_latitude,
            pickup_longitude=trip.pickup_longitude,
            dropoff_latitude=trip.dropoff_latitude,
            dropoff_longitude=trip.dropoff_longitude,
            distance_km=distance_km,
            duration_min=duration_min,
            ride_type_id=ride_type_id,
            weather_condition=weather,
            demand_supply_ratio=trip.demand_supply_ratio,
            surge_multiplier=trip.surge_multiplier,
            currency=currency,
            now=now,
        ),
        collaborators,
    )
    return Estimate(
        currency=currency,
        estimated_fare=calculation.total_fare,
        minimum_fare=calculation.minimum_fare,
        surge_multiplier=calculation.total_multiplier,
        distance_km=distance_km,
        estimated_minutes=duration_min,
        fare_breakdown=calculation,
        formatted_fare=format_amount(collaborators.currency, calculation.total_fare, currency),
    )


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------

async def get_estimate(
    db: AsyncSession,
    collaborators: PricingCollaborators,
    trip: TripRequest,
) -> Estimate:
    """Estimate the fare for one trip.

    Distance defaults to the great-circle distance and duration to the
    average-speed estimate.  Currency comes from the pickup location and
    weather from the weather feed unless the caller supplied a condition.

    Raises:
        InvalidInputError: If coordinates or amounts are out of range.
    """
    fareCalculator.validate_coordinates(trip.pickup_latitude, trip.pickup_longitude, "pickup")
    fareCalculator.validate_coordinates(trip.dropoff_latitude, trip.dropoff_longitude, "dropoff")
    distance_km, duration_min = _trip_geometry(trip)
    currency = await _currency_for(collaborators, trip)
    weather = await _weather_for(trip)
    return await _estimate(
        db, collaborators, trip, trip.ride_type_id, distance_km, duration_min, currency, weather
    )


async def get_bulk_estimate(
    db: AsyncSession,
    collaborators: PricingCollaborators,
    trip: TripRequest,
) -> BulkEstimate:
    """Estimate every ride type offered at the pickup.

    Ride types whose calculation fails are left out of the result.

    Raises:
        NotFoundError: If no ride types are offered at the pickup.
    """
    fareCalculator.validate_coordinates(trip.pickup_latitude, trip.pickup_longitude, "pickup")
    fareCalculator.validate_coordinates(trip.dropoff_latitude, trip.dropoff_longitude, "dropoff")
    ride_types = await collaborators.ride_types.available_at(
        trip.pickup_latitude, trip.pickup_longitude
    )
    if not ride_types:
        raise NotFoundError("Ride types at pickup location")

    distance_km, duration_min = _trip_geometry(trip)
    currency = await _currency_for(collaborators, trip)
    weather = await _weather_for(trip)

    result = BulkEstimate(distance_km=distance_km, estimated_minutes=duration_min)
    for ride_type in ride_types:
        try:
            estimate = await _estimate(
                db, collaborators, trip, ride_type.id, distance_km, duration_min, currency, weather
            )
        except PricingError as exc:
            logger.warning("Skipping ride type %s in bulk estimate: %s", ride_type.name, exc.message)
            continue
        result.ride_options.append(RideTypeEstimate(ride_type=ride_type, estimate=estimate))
    return result


async def validate_negotiated_price(
    db: AsyncSession,
    collaborators: PricingCollaborators,
    trip: TripRequest,
    negotiated_price: Decimal,
) -> NegotiationCheck:
    """Check a proposed price against the negotiation band of a fresh estimate.

    Raises:
        PreconditionFailedError: With reason ``below minimum`` or
            ``above maximum``.
    """
    estimate = await get_estimate(db, collaborators, trip)
    proposed = to_decimal(negotiated_price)
    fareCalculator.validate_negotiated_price(estimate.estimated_fare, proposed)

    variance = Decimal("0")
    if estimate.estimated_fare:
        variance = (proposed - estimate.estimated_fare) / estimate.estimated_fare * HUNDRED
    return NegotiationCheck(
        valid=True,
        negotiated_price=proposed,
        estimated_price=estimate.estimated_fare,
        variance_pct=round_money(variance),
    )


async def get_pricing(
    db: AsyncSession,
    collaborators: PricingCollaborators,
    latitude: float,
    longitude: float,
    ride_type_id: Optional[uuid.UUID] = None,
) -> ResolvedPricing:
    return await fareCalculator.pricing_for_location(
        db, collaborators, latitude, longitude, ride_type_id
    )


async def get_surge_info(
    db: AsyncSession,
    collaborators: PricingCollaborators,
    latitude: float,
    longitude: float,
) -> SurgeInfo:
    """Current surge at a point, clamped into the local policy range.

    Without an active version estimates carry no surge, so the reported
    multiplier is 1.0 while the factors still describe the market.
    """
    fareCalculator.validate_coordinates(latitude, longitude)
    now = collaborators.clock()
    location = await fareCalculator.resolve_location(collaborators.geo, latitude, longitude)
    pricing = await fareCalculator.pricing_for_location(
        db, collaborators, latitude, longitude, now=now
    )
    factors = await calculate_surge(
        collaborators.telemetry, latitude, longitude, now=now, timezone_name=location.timezone
    )

    multiplier = ONE
    if pricing.version_id != NO_VERSION_ID:
        multiplier = clamp_surge(factors.multiplier, pricing)
    return SurgeInfo(
        surge_multiplier=multiplier,
        surge_min=pricing.surge_min_multiplier,
        surge_max=pricing.surge_max_multiplier,
        factors=factors,
        surge_active=multiplier > ONE,
        message=surge_message(multiplier),
    )


async def get_cancellation_fee(
    db: AsyncSession,
    collaborators: PricingCollaborators,
    latitude: float,
    longitude: float,
    minutes_since_request: float,
    estimated_fare: Decimal,
) -> Decimal:
    pricing = await fareCalculator.pricing_for_location(db, collaborators, latitude, longitude)
    return fareCalculator.cancellation_fee(pricing, minutes_since_request, estimated_fare)


async def quick_estimate(
    db: AsyncSession,
    collaborators: PricingCollaborators,
    distance_km: float,
    duration_min: int,
    latitude: float,
    longitude: float,
    ride_type_id: Optional[uuid.UUID] = None,
) -> Decimal:
    return await fareCalculator.quick_estimate(
        db, collaborators, distance_km, duration_min, latitude, longitude, ride_type_id
    )
