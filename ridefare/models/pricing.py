"""
SQLAlchemy models for versioned pricing configuration.

A ``PricingVersion`` owns every pricing row (configs, zone fees, time,
weather and event multipliers, surge thresholds).  Rows are only mutable
while their version is ``draft``; activation freezes them.
Corresponds to migration 0001_create_pricing.
"""

import enum
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin, UUIDPrimaryKeyMixin, utcnow


def _enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    return [member.value for member in enum_cls]


class PricingVersionStatus(str, enum.Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    ARCHIVED = "archived"
    AB_TEST = "ab_test"


class AuditAction(str, enum.Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    ACTIVATE = "activate"
    ARCHIVE = "archive"
    CLONE = "clone"


class WeatherCondition(str, enum.Enum):
    CLEAR = "clear"
    CLOUDY = "cloudy"
    RAIN = "rain"
    HEAVY_RAIN = "heavy_rain"
    SNOW = "snow"
    STORM = "storm"
    EXTREME_HEAT = "extreme_heat"
    FOG = "fog"


class CancellationFeeType(str, enum.Enum):
    FIXED = "fixed"
    PERCENTAGE = "percentage"


# ---------------------------------------------------------------------------
# Versions
# ---------------------------------------------------------------------------

class PricingVersion(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "pricing_config_versions"
    __table_args__ = (
        CheckConstraint(
            "ab_test_percentage IS NULL OR "
            "(ab_test_percentage >= 0 AND ab_test_percentage <= 100)",
            name="chk_ab_percentage",
        ),
        # At most one active version at any time
        Index(
            "uq_single_active_version",
            "status",
            unique=True,
            postgresql_where=text("status = 'active'"),
            sqlite_where=text("status = 'active'"),
        ),
    )

    version_number: Mapped[int] = mapped_column(
        Integer, nullable=False, unique=True
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[PricingVersionStatus] = mapped_column(
        Enum(
            PricingVersionStatus,
            name="pricing_version_status",
            values_callable=_enum_values,
        ),
        nullable=False,
        default=PricingVersionStatus.DRAFT,
    )
    ab_test_percentage: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # Effective window (half-open: effective_from <= now < effective_until)
    effective_from: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    effective_until: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Actors
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), nullable=True
    )
    approved_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), nullable=True
    )
    approved_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    def __repr__(self) -> str:
        return (
            f"<PricingVersion(id={self.id}, number={self.version_number}, "
            f"status={self.status})>"
        )


# ---------------------------------------------------------------------------
# Hierarchical configs
# ---------------------------------------------------------------------------

class PricingConfig(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "pricing_configs"
    __table_args__ = (
        Index("idx_pricing_configs_version", "version_id"),
        CheckConstraint(
            "surge_min_multiplier IS NULL OR surge_max_multiplier IS NULL "
            "OR surge_min_multiplier <= surge_max_multiplier",
            name="chk_surge_range",
        ),
        CheckConstraint(
            "tax_rate_pct IS NULL OR (tax_rate_pct >= 0 AND tax_rate_pct <= 100)",
            name="chk_tax_rate",
        ),
    )

    version_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("pricing_config_versions.id", ondelete="CASCADE"),
        nullable=False,
    )

    # Scope (all NULL = global)
    country_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), nullable=True)
    region_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), nullable=True)
    city_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), nullable=True)
    zone_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), nullable=True)
    ride_type_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), nullable=True)

    # Core pricing (NULL = inherit from the parent level)
    base_fare: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    per_km_rate: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 4), nullable=True)
    per_minute_rate: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 4), nullable=True)
    minimum_fare: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    booking_fee: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)

    # Commission
    platform_commission_pct: Mapped[Optional[Decimal]] = mapped_column(Numeric(5, 2), nullable=True)
    driver_incentive_pct: Mapped[Optional[Decimal]] = mapped_column(Numeric(5, 2), nullable=True)

    # Surge limits
    surge_min_multiplier: Mapped[Optional[Decimal]] = mapped_column(Numeric(4, 2), nullable=True)
    surge_max_multiplier: Mapped[Optional[Decimal]] = mapped_column(Numeric(4, 2), nullable=True)

    # Tax
    tax_rate_pct: Mapped[Optional[Decimal]] = mapped_column(Numeric(5, 2), nullable=True)
    tax_inclusive: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)

    # Ordered list of {after_minutes, fee, fee_type}
    cancellation_fees: Mapped[Optional[Any]] = mapped_column(JSONB, nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    @property
    def scope_level(self) -> int:
        """Hierarchy depth: zone 4, city 3, region 2, country 1, global 0."""
        if self.zone_id is not None:
            return 4
        if self.city_id is not None:
            return 3
        if self.region_id is not None:
            return 2
        if self.country_id is not None:
            return 1
        return 0

    def __repr__(self) -> str:
        return (
            f"<PricingConfig(id={self.id}, version={self.version_id}, "
            f"level={self.scope_level}, ride_type={self.ride_type_id})>"
        )


# ---------------------------------------------------------------------------
# Zone fees
# ---------------------------------------------------------------------------

class ZoneFee(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "zone_fees"
    __table_args__ = (
        Index("idx_zone_fees_version_zone", "version_id", "zone_id"),
        CheckConstraint(
            "applies_pickup OR applies_dropoff", name="chk_zone_fee_applies"
        ),
    )

    version_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("pricing_config_versions.id", ondelete="CASCADE"),
        nullable=False,
    )
    zone_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    fee_type: Mapped[str] = mapped_column(String(50), nullable=False)
    ride_type_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), nullable=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    is_percentage: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    applies_pickup: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    applies_dropoff: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # {"days": [0-6], "start_time": "HH:MM", "end_time": "HH:MM"}
    schedule: Mapped[Optional[Any]] = mapped_column(JSONB, nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return (
            f"<ZoneFee(id={self.id}, zone={self.zone_id}, "
            f"type={self.fee_type}, amount={self.amount})>"
        )


# ---------------------------------------------------------------------------
# Multipliers
# ---------------------------------------------------------------------------

class TimeMultiplier(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "time_multipliers"
    __table_args__ = (
        Index("idx_time_multipliers_version", "version_id"),
        CheckConstraint("multiplier > 0", name="chk_time_multiplier_positive"),
    )

    version_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("pricing_config_versions.id", ondelete="CASCADE"),
        nullable=False,
    )
    country_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), nullable=True)
    region_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), nullable=True)
    city_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), nullable=True)

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    # 0=Sunday .. 6=Saturday
    days_of_week: Mapped[Any] = mapped_column(
        JSONB, nullable=False, default=lambda: [0, 1, 2, 3, 4, 5, 6]
    )
    start_time: Mapped[str] = mapped_column(String(5), nullable=False)
    end_time: Mapped[str] = mapped_column(String(5), nullable=False)
    multiplier: Mapped[Decimal] = mapped_column(Numeric(4, 2), nullable=False)
    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return (
            f"<TimeMultiplier(id={self.id}, name={self.name}, "
            f"window={self.start_time}-{self.end_time}, x{self.multiplier})>"
        )


class WeatherMultiplier(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "weather_multipliers"
    __table_args__ = (
        Index("idx_weather_multipliers_version", "version_id", "weather_condition"),
        CheckConstraint("multiplier > 0", name="chk_weather_multiplier_positive"),
    )

    version_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("pricing_config_versions.id", ondelete="CASCADE"),
        nullable=False,
    )
    country_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), nullable=True)
    region_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), nullable=True)
    city_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), nullable=True)

    weather_condition: Mapped[str] = mapped_column(String(20), nullable=False)
    multiplier: Mapped[Decimal] = mapped_column(Numeric(4, 2), nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return (
            f"<WeatherMultiplier(id={self.id}, condition={self.weather_condition}, "
            f"x{self.multiplier})>"
        )


class EventMultiplier(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "event_multipliers"
    __table_args__ = (
        Index("idx_event_multipliers_version_dates", "version_id", "starts_at", "ends_at"),
        CheckConstraint("ends_at >= starts_at", name="chk_event_window"),
        CheckConstraint("multiplier > 0", name="chk_event_multiplier_positive"),
    )

    version_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("pricing_config_versions.id", ondelete="CASCADE"),
        nullable=False,
    )
    zone_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), nullable=True)
    city_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), nullable=True)

    event_name: Mapped[str] = mapped_column(String(200), nullable=False)
    event_type: Mapped[str] = mapped_column(String(50), nullable=False)
    starts_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    ends_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    pre_event_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=120)
    post_event_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=120)
    multiplier: Mapped[Decimal] = mapped_column(Numeric(4, 2), nullable=False)
    expected_demand_increase: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return (
            f"<EventMultiplier(id={self.id}, event={self.event_name}, "
            f"x{self.multiplier})>"
        )


class SurgeThreshold(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "surge_thresholds"
    __table_args__ = (
        Index("idx_surge_thresholds_version", "version_id"),
        CheckConstraint(
            "demand_supply_ratio_max IS NULL OR "
            "demand_supply_ratio_max > demand_supply_ratio_min",
            name="chk_surge_ratio_range",
        ),
    )

    version_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("pricing_config_versions.id", ondelete="CASCADE"),
        nullable=False,
    )
    country_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), nullable=True)
    region_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), nullable=True)
    city_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), nullable=True)

    demand_supply_ratio_min: Mapped[Decimal] = mapped_column(Numeric(6, 2), nullable=False)
    demand_supply_ratio_max: Mapped[Optional[Decimal]] = mapped_column(Numeric(6, 2), nullable=True)
    multiplier: Mapped[Decimal] = mapped_column(Numeric(4, 2), nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return (
            f"<SurgeThreshold(id={self.id}, ratio=[{self.demand_supply_ratio_min}, "
            f"{self.demand_supply_ratio_max}), x{self.multiplier})>"
        )


# ---------------------------------------------------------------------------
# Audit log
# ---------------------------------------------------------------------------

class PricingAuditLog(Base):
    """Append-only record of every pricing mutation; there is no updated_at."""
    __tablename__ = "pricing_audit_logs"
    __table_args__ = (
        Index("idx_pricing_audit_entity", "entity_type", "entity_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    admin_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), nullable=True)
    action: Mapped[AuditAction] = mapped_column(
        Enum(AuditAction, name="pricing_audit_action", values_callable=_enum_values),
        nullable=False,
    )
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    old_values: Mapped[Optional[Any]] = mapped_column(JSONB, nullable=True)
    new_values: Mapped[Optional[Any]] = mapped_column(JSONB, nullable=True)
    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now(),
    )

    def __repr__(self) -> str:
        return (
            f"<PricingAuditLog(id={self.id}, action={self.action}, "
            f"entity={self.entity_type}:{self.entity_id})>"
        )


# ---------------------------------------------------------------------------
# Zones (read-only; owned by the geography subsystem)
# ---------------------------------------------------------------------------

class PricingZone(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "pricing_zones"

    city_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), nullable=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    zone_type: Mapped[str] = mapped_column(String(50), nullable=False, default="other")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<PricingZone(id={self.id}, name={self.name}, type={self.zone_type})>"
