"""
Bundle of the external collaborators the pricing core consumes.

Routes receive a ``PricingCollaborators`` through the ``get_collaborators``
dependency; tests override that dependency to inject fakes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable

from .currency import CurrencyFormatter, SymbolCurrencyFormatter
from .demandTelemetry import DemandTelemetry, RedisDemandTelemetry
from .geography import GeoResolver, StaticGeoResolver
from .rideTypes import RideTypeCatalog, StaticRideTypeCatalog


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class PricingCollaborators:
    geo: GeoResolver = field(default_factory=StaticGeoResolver)
    currency: CurrencyFormatter = field(default_factory=SymbolCurrencyFormatter)
    ride_types: RideTypeCatalog = field(default_factory=StaticRideTypeCatalog)
    telemetry: DemandTelemetry = field(default_factory=RedisDemandTelemetry)
    clock: Callable[[], datetime] = utc_now
