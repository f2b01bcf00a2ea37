"""Location models."""

from __future__ import annotations

from typing import Any, Self

from pydantic import BaseModel, Field


class Coordinates(BaseModel):
    """Start position of an activity, in decimal degrees (WGS84).

    South and west are negative. Values come straight from Strava's
    ``start_latlng`` and are passed on to the weather source unchanged.
    """

    model_config = {"frozen": True}

    latitude: float = Field(..., ge=-90, le=90, description="Latitude in decimal degrees")
    longitude: float = Field(..., ge=-180, le=180, description="Longitude in decimal degrees")

    @classmethod
    def from_latlng(cls, value: Any) -> Self | None:
        """Parse Strava's ``start_latlng`` field.

        Strava sends ``[lat, lng]`` for activities with GPS data and an empty
        list (or null) for indoor/manual activities.
        """
        if not value or not isinstance(value, (list, tuple)) or len(value) != 2:
            return None
        lat, lon = value
        if lat is None or lon is None:
            return None
        return cls(latitude=float(lat), longitude=float(lon))

    def __str__(self) -> str:
        return f"{self.latitude},{self.longitude}"

    def to_tuple(self) -> tuple[float, float]:
        return (self.latitude, self.longitude)

    def rounded(self, places: int = 4) -> tuple[float, float]:
        """Coordinates rounded to ``places`` decimals (4 places is ~11m)."""
        return (round(self.latitude, places), round(self.longitude, places))
