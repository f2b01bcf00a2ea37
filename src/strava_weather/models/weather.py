"""Weather observation models.

## Canonical Units

WeatherObservation values are already rounded for display:
- Temperature: whole degrees Celsius
- Wind speed: meters per second, one decimal place
- Pressure: whole hectopascals (hPa)
- Visibility: whole kilometers
- Humidity: whole percent (0-100)
- Wind direction: 16-point compass label (N, NNE, ... NNW)
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


COMPASS_POINTS: tuple[str, ...] = (
    "N", "NNE", "NE", "ENE", "E", "ESE", "SE", "SSE",
    "S", "SSW", "SW", "WSW", "W", "WNW", "NW", "NNW",
)


def wind_direction_label(degrees: float) -> str:
    """Convert a wind bearing in degrees to a 16-point compass label.

    Bearings are normalized into [0, 360) first, so 360 maps to "N".
    """
    index = round((degrees % 360) / 22.5) % 16
    return COMPASS_POINTS[index]


class WeatherObservation(BaseModel):
    """Point-in-time weather at an activity's start location."""

    model_config = {"frozen": True}

    temperature_c: int = Field(..., description="Temperature in whole degrees Celsius")
    feels_like_c: int = Field(..., description="Feels-like temperature in whole degrees Celsius")
    condition: str = Field(..., description="Condition text, e.g. 'light rain'")
    humidity_pct: int = Field(..., ge=0, le=100, description="Relative humidity percentage")
    wind_speed_ms: float = Field(..., ge=0, description="Wind speed in m/s (one decimal)")
    wind_direction: str = Field(..., description="16-point compass label")
    pressure_hpa: int | None = Field(default=None, description="Pressure in whole hPa")
    visibility_km: int | None = Field(default=None, ge=0, description="Visibility in whole km")
    uv_index: float | None = Field(default=None, ge=0, description="UV index, when reported")
    observed_at: datetime | None = Field(
        default=None, description="Time the upstream observation refers to"
    )
    source: str | None = Field(
        default=None, description="Upstream endpoint used: 'current' or 'timemachine'"
    )

    @property
    def condition_display(self) -> str:
        """Condition with only its first letter upper-cased."""
        if not self.condition:
            return self.condition
        return self.condition[0].upper() + self.condition[1:]
