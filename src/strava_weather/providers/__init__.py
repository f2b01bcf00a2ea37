"""Upstream service clients."""

from strava_weather.providers.base import (
    CredentialExpired,
    NotFound,
    RateLimitError,
    UpstreamClient,
    UpstreamError,
)
from strava_weather.providers.openweathermap import WeatherSource, select_endpoint
from strava_weather.providers.strava import ActivityGateway

__all__ = [
    "UpstreamClient",
    "UpstreamError",
    "CredentialExpired",
    "NotFound",
    "RateLimitError",
    "WeatherSource",
    "select_endpoint",
    "ActivityGateway",
]
