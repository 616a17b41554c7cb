"""
Weather API Integration Stub.

Provides the current weather condition at a pickup point so estimates can
apply the configured weather multiplier when the caller does not supply a
condition.  In production this would call an external weather API
(e.g. OpenWeatherMap) and map its codes onto ``WeatherCondition``.

This is a stub implementation that always returns clear conditions unless
overridden for testing.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from ridefare.models import WeatherCondition

logger = logging.getLogger(__name__)


# Conditions that usually carry a pricing multiplier
ADVERSE_CONDITIONS: set[WeatherCondition] = {
    WeatherCondition.HEAVY_RAIN,
    WeatherCondition.SNOW,
    WeatherCondition.STORM,
    WeatherCondition.EXTREME_HEAT,
}


# ---------------------------------------------------------------------------
# Response DTO
# ---------------------------------------------------------------------------

@dataclass
class WeatherInfo:
    """Weather information for a given location."""
    condition: WeatherCondition
    temperature_celsius: Optional[float] = None
    description: str = ""
    is_adverse: bool = False

    def __post_init__(self) -> None:
        self.is_adverse = self.condition in ADVERSE_CONDITIONS


# ---------------------------------------------------------------------------
# Forced conditions (tests and local demos)
# ---------------------------------------------------------------------------

_forced: Optional[WeatherInfo] = None


def set_weather_override(weather: Optional[WeatherInfo]) -> None:
    """Force every lookup to return ``weather``; ``None`` restores the stub."""
    global _forced
    _forced = weather
    if weather is None:
        logger.info("Weather override cleared")
    else:
        logger.info("Weather forced to %s", weather.condition.value)


# ---------------------------------------------------------------------------
# Lookup
# ---------------------------------------------------------------------------

async def get_weather_conditions(latitude: float, longitude: float) -> WeatherInfo:
    """Current weather at a pickup point.

    Args:
        latitude: Pickup latitude.
        longitude: Pickup longitude.

    Returns:
        The forced conditions when set, otherwise clear skies.
    """
    if _forced is not None:
        return _forced

    logger.debug("Weather stub: clear at (%s, %s)", latitude, longitude)
    return WeatherInfo(
        condition=WeatherCondition.CLEAR,
        temperature_celsius=20.0,
        description="Clear skies",
    )
