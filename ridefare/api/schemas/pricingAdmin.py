"""
Pydantic v2 schemas for the pricing administration API.

Covers:
- Pricing version create / update / clone and the version output
- Create / update / output models for every versioned pricing entity
  (configs, zone fees, time / weather / event multipliers, surge tiers)
- Audit log output
- Paginated list wrappers
"""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from ridefare.models import (
    AuditAction,
    CancellationFeeType,
    PricingVersionStatus,
    WeatherCondition,
)

T = TypeVar("T")


class AdminInput(BaseModel):
    """Base for admin request bodies; enum members are passed on as plain values."""

    model_config = ConfigDict(use_enum_values=True, extra="forbid")


class Page(BaseModel, Generic[T]):
    items: list[T]
    total: int
    limit: int
    offset: int


# ---------------------------------------------------------------------------
# Versions
# ---------------------------------------------------------------------------

class VersionCreateRequest(AdminInput):
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = None
    effective_from: Optional[datetime] = Field(
        default=None,
        description="Start of the effective window; defaults to now",
    )
    effective_until: Optional[datetime] = None
    ab_test_percentage: Optional[int] = Field(default=None, ge=0, le=100)


class VersionUpdateRequest(AdminInput):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = None
    effective_from: Optional[datetime] = None
    effective_until: Optional[datetime] = None
    ab_test_percentage: Optional[int] = Field(default=None, ge=0, le=100)


class VersionCloneRequest(AdminInput):
    name: str = Field(min_length=1, max_length=100, description="Name of the new draft")


class VersionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    version_number: int
    name: str
    description: Optional[str] = None
    status: PricingVersionStatus
    ab_test_percentage: Optional[int] = None
    effective_from: datetime
    effective_until: Optional[datetime] = None
    created_by: Optional[uuid.UUID] = None
    approved_by: Optional[uuid.UUID] = None
    approved_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


# ---------------------------------------------------------------------------
# Shared pieces
# ---------------------------------------------------------------------------

class CancellationFeeTierIn(AdminInput):
    after_minutes: int = Field(ge=0)
    fee: Decimal = Field(ge=0)
    fee_type: CancellationFeeType = CancellationFeeType.FIXED


class FeeScheduleIn(AdminInput):
    days: list[int] = Field(min_length=1, description="0=Sunday .. 6=Saturday")
    start_time: str = Field(pattern=r"^([01]\d|2[0-3]):[0-5]\d$")
    end_time: str = Field(pattern=r"^([01]\d|2[0-3]):[0-5]\d$")


class EntityOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    version_id: uuid.UUID
    is_active: bool
    created_at: datetime
    updated_at: datetime


# ---------------------------------------------------------------------------
# Pricing configs
# ---------------------------------------------------------------------------

class PricingConfigIn(AdminInput):
    """Every value field is optional; unset fields inherit from broader scopes."""

    country_id: Optional[uuid.UUID] = None
    region_id: Optional[uuid.UUID] = None
    city_id: Optional[uuid.UUID] = None
    zone_id: Optional[uuid.UUID] = None
    ride_type_id: Optional[uuid.UUID] = None

    base_fare: Optional[Decimal] = None
    per_km_rate: Optional[Decimal] = None
    per_minute_rate: Optional[Decimal] = None
    minimum_fare: Optional[Decimal] = None
    booking_fee: Optional[Decimal] = None
    platform_commission_pct: Optional[Decimal] = None
    driver_incentive_pct: Optional[Decimal] = None
    surge_min_multiplier: Optional[Decimal] = None
    surge_max_multiplier: Optional[Decimal] = None
    tax_rate_pct: Optional[Decimal] = None
    tax_inclusive: Optional[bool] = None
    cancellation_fees: Optional[list[CancellationFeeTierIn]] = None
    is_active: Optional[bool] = None


class PricingConfigOut(EntityOut):
    country_id: Optional[uuid.UUID] = None
    region_id: Optional[uuid.UUID] = None
    city_id: Optional[uuid.UUID] = None
    zone_id: Optional[uuid.UUID] = None
    ride_type_id: Optional[uuid.UUID] = None

    base_fare: Optional[Decimal] = None
    per_km_rate: Optional[Decimal] = None
    per_minute_rate: Optional[Decimal] = None
    minimum_fare: Optional[Decimal] = None
    booking_fee: Optional[Decimal] = None
    platform_commission_pct: Optional[Decimal] = None
    driver_incentive_pct: Optional[Decimal] = None
    surge_min_multiplier: Optional[Decimal] = None
    surge_max_multiplier: Optional[Decimal] = None
    tax_rate_pct: Optional[Decimal] = None
    tax_inclusive: Optional[bool] = None
    cancellation_fees: Optional[list[dict[str, Any]]] = None


# ---------------------------------------------------------------------------
# Zone fees
# ---------------------------------------------------------------------------

class ZoneFeeCreateRequest(AdminInput):
    zone_id: uuid.UUID
    fee_type: str = Field(min_length=1, max_length=50, description="e.g. airport, toll, congestion")
    ride_type_id: Optional[uuid.UUID] = None
    amount: Decimal = Field(ge=0)
    is_percentage: bool = False
    applies_pickup: bool = True
    applies_dropoff: bool = True
    schedule: Optional[FeeScheduleIn] = None
    is_active: bool = True


class ZoneFeeUpdateRequest(AdminInput):
    zone_id: Optional[uuid.UUID] = None
    fee_type: Optional[str] = Field(default=None, min_length=1, max_length=50)
    ride_type_id: Optional[uuid.UUID] = None
    amount: Optional[Decimal] = Field(default=None, ge=0)
    is_percentage: Optional[bool] = None
    applies_pickup: Optional[bool] = None
    applies_dropoff: Optional[bool] = None
    schedule: Optional[FeeScheduleIn] = None
    is_active: Optional[bool] = None


class ZoneFeeOut(EntityOut):
    zone_id: uuid.UUID
    fee_type: str
    ride_type_id: Optional[uuid.UUID] = None
    amount: Decimal
    is_percentage: bool
    applies_pickup: bool
    applies_dropoff: bool
    schedule: Optional[dict[str, Any]] = None


# ---------------------------------------------------------------------------
# Time multipliers
# ---------------------------------------------------------------------------

class TimeMultiplierCreateRequest(AdminInput):
    country_id: Optional[uuid.UUID] = None
    region_id: Optional[uuid.UUID] = None
    city_id: Optional[uuid.UUID] = None
    name: str = Field(min_length=1, max_length=100)
    days_of_week: list[int] = Field(
        default_factory=lambda: list(range(7)),
        description="0=Sunday .. 6=Saturday",
    )
    start_time: str = Field(description="HH:MM, local time")
    end_time: str = Field(description="HH:MM, local time; may wrap midnight")
    multiplier: Decimal = Field(gt=0)
    priority: int = 0
    is_active: bool = True


class TimeMultiplierUpdateRequest(AdminInput):
    country_id: Optional[uuid.UUID] = None
    region_id: Optional[uuid.UUID] = None
    city_id: Optional[uuid.UUID] = None
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    days_of_week: Optional[list[int]] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    multiplier: Optional[Decimal] = Field(default=None, gt=0)
    priority: Optional[int] = None
    is_active: Optional[bool] = None


class TimeMultiplierOut(EntityOut):
    country_id: Optional[uuid.UUID] = None
    region_id: Optional[uuid.UUID] = None
    city_id: Optional[uuid.UUID] = None
    name: str
    days_of_week: list[int]
    start_time: str
    end_time: str
    multiplier: Decimal
    priority: int


# ---------------------------------------------------------------------------
# Weather multipliers
# ---------------------------------------------------------------------------

class WeatherMultiplierCreateRequest(AdminInput):
    country_id: Optional[uuid.UUID] = None
    region_id: Optional[uuid.UUID] = None
    city_id: Optional[uuid.UUID] = None
    weather_condition: WeatherCondition
    multiplier: Decimal = Field(gt=0)
    is_active: bool = True


class WeatherMultiplierUpdateRequest(AdminInput):
    country_id: Optional[uuid.UUID] = None
    region_id: Optional[uuid.UUID] = None
    city_id: Optional[uuid.UUID] = None
    weather_condition: Optional[WeatherCondition] = None
    multiplier: Optional[Decimal] = Field(default=None, gt=0)
    is_active: Optional[bool] = None


class WeatherMultiplierOut(EntityOut):
    country_id: Optional[uuid.UUID] = None
    region_id: Optional[uuid.UUID] = None
    city_id: Optional[uuid.UUID] = None
    weather_condition: str
    multiplier: Decimal


# ---------------------------------------------------------------------------
# Event multipliers
# ---------------------------------------------------------------------------

class EventMultiplierCreateRequest(AdminInput):
    city_id: Optional[uuid.UUID] = None
    zone_id: Optional[uuid.UUID] = None
    event_name: str = Field(min_length=1, max_length=200)
    event_type: str = Field(min_length=1, max_length=50)
    starts_at: datetime
    ends_at: datetime
    pre_event_minutes: int = Field(default=120, ge=0)
    post_event_minutes: int = Field(default=120, ge=0)
    multiplier: Decimal = Field(gt=0)
    expected_demand_increase: Optional[int] = None
    is_active: bool = True


class EventMultiplierUpdateRequest(AdminInput):
    city_id: Optional[uuid.UUID] = None
    zone_id: Optional[uuid.UUID] = None
    event_name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    event_type: Optional[str] = Field(default=None, min_length=1, max_length=50)
    starts_at: Optional[datetime] = None
    ends_at: Optional[datetime] = None
    pre_event_minutes: Optional[int] = Field(default=None, ge=0)
    post_event_minutes: Optional[int] = Field(default=None, ge=0)
    multiplier: Optional[Decimal] = Field(default=None, gt=0)
    expected_demand_increase: Optional[int] = None
    is_active: Optional[bool] = None


class EventMultiplierOut(EntityOut):
    city_id: Optional[uuid.UUID] = None
    zone_id: Optional[uuid.UUID] = None
    event_name: str
    event_type: str
    starts_at: datetime
    ends_at: datetime
    pre_event_minutes: int
    post_event_minutes: int
    multiplier: Decimal
    expected_demand_increase: Optional[int] = None


# ---------------------------------------------------------------------------
# Surge thresholds
# ---------------------------------------------------------------------------

class SurgeThresholdCreateRequest(AdminInput):
    country_id: Optional[uuid.UUID] = None
    region_id: Optional[uuid.UUID] = None
    city_id: Optional[uuid.UUID] = None
    demand_supply_ratio_min: Decimal = Field(ge=0)
    demand_supply_ratio_max: Optional[Decimal] = Field(
        default=None,
        description="Exclusive upper bound; omit for an open-ended top tier",
    )
    multiplier: Decimal = Field(gt=0)
    is_active: bool = True


class SurgeThresholdUpdateRequest(AdminInput):
    country_id: Optional[uuid.UUID] = None
    region_id: Optional[uuid.UUID] = None
    city_id: Optional[uuid.UUID] = None
    demand_supply_ratio_min: Optional[Decimal] = Field(default=None, ge=0)
    demand_supply_ratio_max: Optional[Decimal] = None
    multiplier: Optional[Decimal] = Field(default=None, gt=0)
    is_active: Optional[bool] = None


class SurgeThresholdOut(EntityOut):
    country_id: Optional[uuid.UUID] = None
    region_id: Optional[uuid.UUID] = None
    city_id: Optional[uuid.UUID] = None
    demand_supply_ratio_min: Decimal
    demand_supply_ratio_max: Optional[Decimal] = None
    multiplier: Decimal


# ---------------------------------------------------------------------------
# Audit log
# ---------------------------------------------------------------------------

class AuditLogOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    admin_id: Optional[uuid.UUID] = None
    action: AuditAction
    entity_type: str
    entity_id: uuid.UUID
    old_values: Optional[dict[str, Any]] = None
    new_values: Optional[dict[str, Any]] = None
    reason: Optional[str] = None
    created_at: datetime
