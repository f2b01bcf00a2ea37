"""Strava activity model.

Only the fields the enrichment pipeline reads are modelled; everything else
Strava returns is ignored. Activities are owned by Strava: the application
never stores them and only ever writes back the description.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from strava_weather.models.location import Coordinates


class Activity(BaseModel):
    """A single Strava activity as returned by ``GET /activities/{id}``."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str = Field(..., description="Strava activity ID")
    name: str = Field(default="", description="Activity title")
    type: str = Field(default="", description="Activity type (Run, Ride, ...)")
    start_date: datetime = Field(..., description="Start time (UTC)")
    coordinates: Coordinates | None = Field(
        default=None,
        alias="start_latlng",
        description="Start location; absent for indoor or manual activities",
    )
    description: str | None = Field(default=None, description="Free-text description")
    visibility: str | None = Field(
        default=None, description="Strava visibility (everyone, followers_only, only_me)"
    )

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> str:
        """Strava returns numeric IDs; we carry them as strings."""
        return str(v)

    @field_validator("coordinates", mode="before")
    @classmethod
    def parse_latlng(cls, v: Any) -> Any:
        """Accept Strava's ``[lat, lng]`` list as well as a Coordinates value."""
        if v is None or isinstance(v, (Coordinates, dict)):
            return v
        return Coordinates.from_latlng(v)

    @field_validator("description", mode="before")
    @classmethod
    def normalize_description(cls, v: Any) -> str | None:
        return v if v else None

    @property
    def has_coordinates(self) -> bool:
        return self.coordinates is not None
