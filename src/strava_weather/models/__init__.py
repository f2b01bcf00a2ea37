"""Domain models for Strava weather enrichment."""

from strava_weather.models.location import Coordinates
from strava_weather.models.weather import (
    COMPASS_POINTS,
    WeatherObservation,
    wind_direction_label,
)
from strava_weather.models.activity import Activity
from strava_weather.models.event import (
    AspectType,
    InboundEvent,
    ObjectType,
    WebhookEvent,
)
from strava_weather.models.subscription import Subscription
from strava_weather.models.outcome import (
    FailureStage,
    ProcessingResult,
    SkipReason,
)

__all__ = [
    # Location
    "Coordinates",
    # Weather
    "COMPASS_POINTS",
    "WeatherObservation",
    "wind_direction_label",
    # Activity
    "Activity",
    # Events
    "AspectType",
    "InboundEvent",
    "ObjectType",
    "WebhookEvent",
    # Subscription
    "Subscription",
    # Outcomes
    "FailureStage",
    "ProcessingResult",
    "SkipReason",
]
