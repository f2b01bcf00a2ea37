"""Enrichment outcome model."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field

from strava_weather.models.weather import WeatherObservation


class SkipReason(str, Enum):
    """Why an event was deliberately not enriched."""

    USER_NOT_FOUND = "user_not_found"
    ENRICHMENT_DISABLED = "enrichment_disabled"
    ACTIVITY_NOT_FOUND = "activity_not_found"
    NO_COORDINATES = "no_coordinates"
    ALREADY_ENRICHED = "already_enriched"
    OUTSIDE_WEATHER_WINDOW = "outside_weather_window"


class FailureStage(str, Enum):
    """Pipeline step at which a run failed."""

    FETCH_ACTIVITY = "fetch_activity"
    CREDENTIAL = "credential"
    WEATHER = "weather"
    UPDATE_ACTIVITY = "update_activity"
    INTERNAL = "internal"


class ProcessingResult(BaseModel):
    """Outcome of one enrichment pipeline run.

    A run is either successful, skipped (with a reason) or failed (with a
    stage and an error message). Skips are not failures.
    """

    activity_id: str
    athlete_id: str | None = None
    success: bool = False
    skipped: bool = False
    reason: SkipReason | None = None
    stage: FailureStage | None = None
    error: str | None = None
    weather: WeatherObservation | None = None
    description: str | None = Field(
        default=None, description="Description written back to Strava"
    )
    elapsed_ms: int = 0

    @property
    def failed(self) -> bool:
        return not self.success and not self.skipped
