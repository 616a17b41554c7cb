"""
Pricing value types
===================

Non-persisted DTOs shared by the resolver, the calculator and the API
layer: resolved pricing, fare calculations, cancellation tiers and fee
schedules.  Money and multipliers are ``Decimal`` throughout; rounding
happens once, at the end of a calculation, via ``round_money``.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Optional

from ridefare.models import CancellationFeeType

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# Synthetic version id returned when no version is active.
NO_VERSION_ID = uuid.UUID(int=0)

CENT = Decimal("0.01")
ONE = Decimal("1")
HUNDRED = Decimal("100")

# Input bounds; anything beyond is rejected before any arithmetic
MAX_DISTANCE_KM = 20_000
MAX_DURATION_MIN = 10_080
MAX_DEMAND_SUPPLY_RATIO = 1_000
MAX_SURGE_MULTIPLIER = 100
MAX_FARE = Decimal("1000000")


def round_money(value: Decimal) -> Decimal:
    """Quantize to cents, ties away from zero (2.345 -> 2.35, -2.345 -> -2.35)."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def to_decimal(value: Any) -> Decimal:
    """Convert floats through ``str`` so 5.9 stays 5.9 rather than its binary expansion."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def sunday_based_weekday(moment: datetime) -> int:
    """Day of week with 0=Sunday .. 6=Saturday."""
    return (moment.weekday() + 1) % 7


def window_contains(start: str, end: str, current: str) -> bool:
    """Inclusive ``HH:MM`` window test; wraps midnight when start > end."""
    if start <= end:
        return start <= current <= end
    return current >= start or current <= end


# ---------------------------------------------------------------------------
# Configuration value objects
# ---------------------------------------------------------------------------

@dataclass
class CancellationFee:
    """One tier of the cancellation fee ladder."""
    after_minutes: int
    fee: Decimal
    fee_type: CancellationFeeType = CancellationFeeType.FIXED

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CancellationFee":
        return cls(
            after_minutes=int(data["after_minutes"]),
            fee=to_decimal(data["fee"]),
            fee_type=CancellationFeeType(data.get("fee_type", "fixed")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "after_minutes": self.after_minutes,
            "fee": str(self.fee),
            "fee_type": self.fee_type.value,
        }


@dataclass
class FeeSchedule:
    """Days (0=Sunday) and an ``HH:MM`` window during which a zone fee applies."""
    days: list[int]
    start_time: str
    end_time: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FeeSchedule":
        return cls(
            days=[int(d) for d in data.get("days", [])],
            start_time=data["start_time"],
            end_time=data["end_time"],
        )

    def contains(self, moment: datetime) -> bool:
        if sunday_based_weekday(moment) not in self.days:
            return False
        return window_contains(self.start_time, self.end_time, moment.strftime("%H:%M"))


@dataclass
class ResolvedPricing:
    """Fully resolved pricing for a location; every value field is set."""
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
    cancellation_fees: list[CancellationFee]

    version_id: uuid.UUID = NO_VERSION_ID
    country_id: Optional[uuid.UUID] = None
    region_id: Optional[uuid.UUID] = None
    city_id: Optional[uuid.UUID] = None
    zone_id: Optional[uuid.UUID] = None
    ride_type_id: Optional[uuid.UUID] = None

    inheritance_chain: list[str] = field(default_factory=list)


DEFAULT_PRICING = ResolvedPricing(
    base_fare=Decimal("3.00"),
    per_km_rate=Decimal("1.50"),
    per_minute_rate=Decimal("0.25"),
    minimum_fare=Decimal("5.00"),
    booking_fee=Decimal("1.00"),
    platform_commission_pct=Decimal("20.00"),
    driver_incentive_pct=Decimal("0.00"),
    surge_min_multiplier=Decimal("1.0"),
    surge_max_multiplier=Decimal("5.0"),
    tax_rate_pct=Decimal("0.00"),
    tax_inclusive=False,
    cancellation_fees=[
        CancellationFee(0, Decimal("0.00")),
        CancellationFee(2, Decimal("5.00")),
        CancellationFee(5, Decimal("10.00")),
    ],
    inheritance_chain=["defaults"],
)


# ---------------------------------------------------------------------------
# Calculation input / output
# ---------------------------------------------------------------------------

@dataclass
class CalculateInput:
    """Everything the calculator needs for one fare."""
    pickup_latitude: float
    pickup_longitude: float
    dropoff_latitude: float
    dropoff_longitude: float
    distance_km: float
    duration_min: int
    ride_type_id: Optional[uuid.UUID] = None
    weather_condition: str = ""
    # 0 means "no signal"
    demand_supply_ratio: float = 0.0
    # Explicit surge; still clamped into the resolved policy range
    surge_multiplier: Optional[Decimal] = None
    negotiated_fare: Optional[Decimal] = None
    currency: str = "USD"
    now: Optional[datetime] = None


@dataclass
class ZoneFeeBreakdown:
    zone_id: uuid.UUID
    zone_name: str
    fee_type: str
    amount: Decimal


@dataclass
class FareCalculation:
    """Complete, immutable-once-emitted fare breakdown."""
    # Input
    distance_km: float
    duration_min: int
    currency: str

    # Base calculation
    base_fare: Decimal
    distance_charge: Decimal
    time_charge: Decimal
    booking_fee: Decimal

    # Zone fees
    zone_fees_total: Decimal
    zone_fees_breakdown: list[ZoneFeeBreakdown]

    # Multipliers (full precision)
    time_multiplier: Decimal
    weather_multiplier: Decimal
    event_multiplier: Decimal
    surge_multiplier: Decimal
    total_multiplier: Decimal

    # Final calculation
    subtotal: Decimal
    minimum_fare: Decimal
    tax_rate_pct: Decimal
    tax_amount: Decimal
    total_fare: Decimal

    # Commission split
    platform_commission_pct: Decimal
    platform_commission: Decimal
    driver_earnings: Decimal

    # Metadata
    pricing_version_id: uuid.UUID
    was_negotiated: bool = False
    negotiated_fare: Optional[Decimal] = None

    def round_values(self) -> None:
        """Round every monetary field and zone fee line to cents."""
        self.base_fare = round_money(self.base_fare)
        self.distance_charge = round_money(self.distance_charge)
        self.time_charge = round_money(self.time_charge)
        self.booking_fee = round_money(self.booking_fee)
        self.zone_fees_total = round_money(self.zone_fees_total)
        self.subtotal = round_money(self.subtotal)
        self.minimum_fare = round_money(self.minimum_fare)
        self.tax_amount = round_money(self.tax_amount)
        self.total_fare = round_money(self.total_fare)
        self.platform_commission = round_money(self.platform_commission)
        self.driver_earnings = round_money(self.driver_earnings)
        if self.negotiated_fare is not None:
            self.negotiated_fare = round_money(self.negotiated_fare)
        for line in self.zone_fees_breakdown:
            line.amount = round_money(line.amount)
