"""
Pydantic v2 schemas for the public pricing API.

Covers:
- Fare estimates (single, bulk and quick)
- Negotiated price validation
- Surge information
- Resolved pricing for a location
- Cancellation fees
"""

from __future__ import annotations

import uuid
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from ridefare.models import CancellationFeeType
from ridefare.services.pricingService import (
    BulkEstimate,
    RideTypeEstimate,
    TripRequest,
)
from ridefare.services.pricingTypes import (
    MAX_DEMAND_SUPPLY_RATIO,
    MAX_DISTANCE_KM,
    MAX_DURATION_MIN,
    MAX_FARE,
    MAX_SURGE_MULTIPLIER,
)


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class EstimateRequest(BaseModel):
    """Trip to price; optional fields override the service's own signals."""

    pickup_latitude: float = Field(ge=-90, le=90)
    pickup_longitude: float = Field(ge=-180, le=180)
    dropoff_latitude: float = Field(ge=-90, le=90)
    dropoff_longitude: float = Field(ge=-180, le=180)
    ride_type_id: Optional[uuid.UUID] = None

    distance_km: Optional[float] = Field(
        default=None,
        ge=0,
        le=MAX_DISTANCE_KM,
        allow_inf_nan=False,
        description="Routed distance; defaults to the great-circle distance",
    )
    duration_min: Optional[int] = Field(
        default=None,
        ge=0,
        le=MAX_DURATION_MIN,
        description="Routed duration; defaults to an average-speed estimate",
    )
    weather_condition: Optional[str] = Field(
        default=None,
        max_length=20,
        description="Weather at pickup; looked up when omitted",
    )
    demand_supply_ratio: float = Field(
        default=0.0,
        ge=0,
        le=MAX_DEMAND_SUPPLY_RATIO,
        allow_inf_nan=False,
        description="Known demand/supply ratio; 0 means no signal",
    )
    surge_multiplier: Optional[Decimal] = Field(
        default=None,
        gt=0,
        le=MAX_SURGE_MULTIPLIER,
        allow_inf_nan=False,
        description="Explicit surge, still clamped into the local policy range",
    )

    def to_trip(self) -> TripRequest:
        return TripRequest(
            pickup_latitude=self.pickup_latitude,
            pickup_longitude=self.pickup_longitude,
            dropoff_latitude=self.dropoff_latitude,
            dropoff_longitude=self.dropoff_longitude,
            ride_type_id=self.ride_type_id,
            distance_km=self.distance_km,
            duration_min=self.duration_min,
            weather_condition=self.weather_condition,
            demand_supply_ratio=self.demand_supply_ratio,
            surge_multiplier=self.surge_multiplier,
        )


class ValidatePriceRequest(EstimateRequest):
    negotiated_price: Decimal = Field(ge=0, le=MAX_FARE, allow_inf_nan=False)


class QuickEstimateRequest(BaseModel):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    distance_km: float = Field(ge=0, le=MAX_DISTANCE_KM, allow_inf_nan=False)
    duration_min: int = Field(ge=0, le=MAX_DURATION_MIN)
    ride_type_id: Optional[uuid.UUID] = None


class CancellationFeeRequest(BaseModel):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    minutes_since_request: float = Field(ge=0, le=MAX_DURATION_MIN, allow_inf_nan=False)
    estimated_fare: Decimal = Field(ge=0, le=MAX_FARE, allow_inf_nan=False)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class ZoneFeeBreakdownOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    zone_id: uuid.UUID
    zone_name: str
    fee_type: str
    amount: Decimal


class FareBreakdownOut(BaseModel):
    """Complete fare calculation; multipliers keep full precision."""

    model_config = ConfigDict(from_attributes=True)

    distance_km: float
    duration_min: int
    currency: str

    base_fare: Decimal
    distance_charge: Decimal
    time_charge: Decimal
    booking_fee: Decimal

    zone_fees_total: Decimal
    zone_fees_breakdown: list[ZoneFeeBreakdownOut] = Field(default_factory=list)

    time_multiplier: Decimal
    weather_multiplier: Decimal
    event_multiplier: Decimal
    surge_multiplier: Decimal
    total_multiplier: Decimal

    subtotal: Decimal
    minimum_fare: Decimal
    tax_rate_pct: Decimal
    tax_amount: Decimal
    total_fare: Decimal

    platform_commission_pct: Decimal
    platform_commission: Decimal
    driver_earnings: Decimal

    pricing_version_id: uuid.UUID
    was_negotiated: bool = False
    negotiated_fare: Optional[Decimal] = None


class EstimateOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    currency: str
    estimated_fare: Decimal
    minimum_fare: Decimal
    surge_multiplier: Decimal = Field(description="Combined time, weather, event and surge multiplier")
    distance_km: float
    estimated_minutes: int
    fare_breakdown: FareBreakdownOut
    formatted_fare: str


class RideTypeEstimateOut(EstimateOut):
    ride_type_id: uuid.UUID
    ride_type_name: str
    description: str = ""
    capacity: int
    icon_url: Optional[str] = None

    @classmethod
    def from_option(cls, option: RideTypeEstimate) -> "RideTypeEstimateOut":
        estimate = EstimateOut.model_validate(option.estimate)
        return cls(
            **estimate.model_dump(),
            ride_type_id=option.ride_type.id,
            ride_type_name=option.ride_type.name,
            description=option.ride_type.description,
            capacity=option.ride_type.capacity,
            icon_url=option.ride_type.icon_url,
        )


class BulkEstimateOut(BaseModel):
    distance_km: float
    estimated_minutes: int
    ride_options: list[RideTypeEstimateOut]

    @classmethod
    def from_result(cls, result: BulkEstimate) -> "BulkEstimateOut":
        return cls(
            distance_km=result.distance_km,
            estimated_minutes=result.estimated_minutes,
            ride_options=[RideTypeEstimateOut.from_option(o) for o in result.ride_options],
        )


class NegotiationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    valid: bool
    negotiated_price: Decimal
    estimated_price: Decimal
    variance_pct: Decimal


class SurgeFactorsOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    demand_ratio: float
    ride_density: int
    demand_surge: Decimal
    time_factor: Decimal
    day_factor: Decimal
    zone_factor: Decimal
    fallback: bool = Field(description="True when telemetry was unavailable")


class SurgeInfoOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    surge_multiplier: Decimal
    surge_min: Decimal
    surge_max: Decimal
    factors: SurgeFactorsOut
    surge_active: bool
    message: str


class CancellationFeeTierOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    after_minutes: int
    fee: Decimal
    fee_type: CancellationFeeType


class ResolvedPricingOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    base_fare: Decimal
    per_km_rate: Decimal
    per_minute_rate: Decimal
    minimum_fare: Decimal
    booking_fee: Decimal
    platform_commission_pct: Decimal
    driver_incentive_pct: Decimal
    surge_min_multiplier: Decimal
    surge_max_multiplier: Decimal
    tax_rate_pct: Decimal
    tax_inclusive: bool
    cancellation_fees: list[CancellationFeeTierOut]

    version_id: uuid.UUID
    country_id: Optional[uuid.UUID] = None
    region_id: Optional[uuid.UUID] = None
    city_id: Optional[uuid.UUID] = None
    zone_id: Optional[uuid.UUID] = None
    ride_type_id: Optional[uuid.UUID] = None
    inheritance_chain: list[str]


class CancellationFeeOut(BaseModel):
    cancellation_fee: Decimal
    minutes_since_request: float


class QuickEstimateOut(BaseModel):
    estimated_fare: Decimal
    distance_km: float
    duration_min: int
