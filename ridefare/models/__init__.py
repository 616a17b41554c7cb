"""
Ridefare SQLAlchemy Models
=============================

Central import point for all ORM models. Import ``Base`` from here for
Alembic auto-generation and for the ``create_all`` convenience in tests.

Usage::

    from ridefare.models import Base, PricingVersion, PricingConfig
"""

# -- Base & Mixins --
from .base import Base, TimestampMixin, UUIDPrimaryKeyMixin

# -- 0001: Pricing --
from .pricing import (
    AuditAction,
    CancellationFeeType,
    EventMultiplier,
    PricingAuditLog,
    PricingConfig,
    PricingVersion,
    PricingVersionStatus,
    PricingZone,
    SurgeThreshold,
    TimeMultiplier,
    WeatherCondition,
    WeatherMultiplier,
    ZoneFee,
)

__all__ = [
    "Base",
    "TimestampMixin",
    "UUIDPrimaryKeyMixin",
    "AuditAction",
    "CancellationFeeType",
    "EventMultiplier",
    "PricingAuditLog",
    "PricingConfig",
    "PricingVersion",
    "PricingVersionStatus",
    "PricingZone",
    "SurgeThreshold",
    "TimeMultiplier",
    "WeatherCondition",
    "WeatherMultiplier",
    "ZoneFee",
]
