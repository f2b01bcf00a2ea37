"""Weather enrichment pipeline.

Turns a Strava webhook event into a weather line appended to the
activity's description.
"""

from strava_weather.enrichment.dispatcher import EventDispatcher
from strava_weather.enrichment.marker import (
    format_weather_line,
    has_weather,
    merge_description,
)
from strava_weather.enrichment.ports import AthleteAccount, OutcomeLog, UserDirectory
from strava_weather.enrichment.processor import EventProcessor

__all__ = [
    "EventDispatcher",
    "EventProcessor",
    "AthleteAccount",
    "OutcomeLog",
    "UserDirectory",
    "format_weather_line",
    "has_weather",
    "merge_description",
]
