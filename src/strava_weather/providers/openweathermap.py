"""OpenWeatherMap One Call 3.0 weather source.

## API Documentation Summary
Source: https://openweathermap.org/api/one-call-3

## Endpoints
- Current: https://api.openweathermap.org/data/3.0/onecall?lat={lat}&lon={lon}
- Time machine: https://api.openweathermap.org/data/3.0/onecall/timemachine?lat={lat}&lon={lon}&dt={unix}

## Authentication
- ``appid`` query parameter

## Request Parameters
| Parameter | Description |
|-----------|-------------|
| lat, lon | Coordinates, sent with 6 decimals |
| dt | Unix timestamp (time machine only) |
| units | Always ``metric`` (Celsius, m/s) |
| exclude | ``minutely,hourly,daily,alerts`` for current conditions |

## Response Format
Current conditions live under ``current``; the time machine returns a
``data`` array whose first element is the requested hour:

```json
{
  "lat": 51.5, "lon": -0.12, "timezone": "Europe/London",
  "current": {
    "dt": 1684929490, "temp": 10.2, "feels_like": 9.1, "pressure": 1014,
    "humidity": 91, "uvi": 0.2, "clouds": 75, "visibility": 10000,
    "wind_speed": 2.04, "wind_deg": 250,
    "weather": [{"main": "Rain", "description": "light rain", "icon": "10d"}]
  }
}
```

## Variable Translation (metric -> WeatherObservation)
| OWM Field | Observation Field | Notes |
|-----------|-------------------|-------|
| temp | temperature_c | Rounded to whole degrees |
| feels_like | feels_like_c | Rounded to whole degrees |
| weather[0].description | condition | Lower-case text from OWM |
| humidity | humidity_pct | Rounded |
| wind_speed | wind_speed_ms | One decimal place |
| wind_deg | wind_direction | 16-point compass label |
| pressure | pressure_hpa | Rounded |
| visibility | visibility_km | Meters -> km, 10 km when absent |
| uvi | uv_index | Omitted when absent |
| dt | observed_at | Unix -> datetime |

## Source Selection
Elapsed time between now and the activity start picks the endpoint:
- within the current window (default 60 min): current conditions
- within the historical limit (default 120 h): time machine
- otherwise: no request, ``None``
"""

from __future__ import annotations

import logging
import math
import time
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable

import httpx

from strava_weather.models.location import Coordinates
from strava_weather.models.weather import WeatherObservation, wind_direction_label
from strava_weather.providers.base import UpstreamClient, UpstreamError

logger = logging.getLogger(__name__)

DEFAULT_VISIBILITY_M = 10_000
CACHE_TIME_BUCKET_MINUTES = 15
CACHE_COORDINATE_PLACES = 4


class WeatherEndpoint(str, Enum):
    """Which One Call endpoint serves a given activity time."""

    CURRENT = "current"
    TIMEMACHINE = "timemachine"


def select_endpoint(
    elapsed: timedelta,
    current_window: timedelta,
    historical_limit: timedelta,
) -> WeatherEndpoint | None:
    """Pick the upstream endpoint for an activity ``elapsed`` ago.

    A pure function of elapsed time. Activities stamped slightly in the
    future (clock skew) count as current; anything outside both windows
    returns None so the caller never receives stale or extrapolated data.
    """
    if -current_window <= elapsed <= current_window:
        return WeatherEndpoint.CURRENT
    if current_window < elapsed <= historical_limit:
        return WeatherEndpoint.TIMEMACHINE
    return None


def _unix_to_datetime(timestamp: int | float | None) -> datetime | None:
    """Convert Unix timestamp to datetime."""
    if timestamp is None:
        return None
    return datetime.fromtimestamp(timestamp, tz=timezone.utc)


def _round_half_up(value: float) -> int:
    """Round like the upstream's own display (2.5 -> 3, -2.5 -> -2)."""
    return math.floor(value + 0.5)


class WeatherSource(UpstreamClient):
    """OpenWeatherMap One Call client producing ``WeatherObservation``.

    Example:
        ```python
        async with WeatherSource(api_key="your-key") as source:
            observation = await source.fetch(51.5, -0.12, activity.start_date)
        ```
    """

    name = "openweathermap"
    base_url = "https://api.openweathermap.org/data/3.0/onecall"

    def __init__(
        self,
        api_key: str,
        base_url: str | None = None,
        timeout: float = 5.0,
        current_window: timedelta = timedelta(minutes=60),
        historical_limit: timedelta = timedelta(hours=120),
        cache_ttl: timedelta = timedelta(minutes=30),
        client: httpx.AsyncClient | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        """Initialize the weather source.

        Args:
            api_key: One Call 3.0 API key
            base_url: Override for the One Call base URL
            timeout: Fixed per-request timeout in seconds
            current_window: Max age served by the current-conditions endpoint
            historical_limit: Max age served by the time machine
            cache_ttl: How long observations are reused (zero disables)
            client: Optional pre-built HTTP client
            clock: Source of "now" (UTC), for tests
        """
        super().__init__(timeout=timeout, max_attempts=1, client=client)
        self.api_key = api_key
        if base_url:
            self.base_url = base_url.rstrip("/")
        self.current_window = current_window
        self.historical_limit = historical_limit
        self.cache_ttl = cache_ttl
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._cache: dict[tuple[float, float, int], tuple[float, WeatherObservation]] = {}

    @classmethod
    def from_settings(cls, settings: Any, client: httpx.AsyncClient | None = None) -> WeatherSource:
        return cls(
            api_key=settings.openweathermap_api_key,
            base_url=settings.openweathermap_base_url,
            timeout=settings.weather_timeout_seconds,
            current_window=timedelta(minutes=settings.weather_current_window_minutes),
            historical_limit=timedelta(hours=settings.weather_historical_limit_hours),
            cache_ttl=timedelta(minutes=settings.weather_cache_minutes),
            client=client,
        )

    def covers(self, activity_time: datetime) -> bool:
        """Whether weather can be fetched for an activity started at ``activity_time``."""
        if activity_time.tzinfo is None:
            activity_time = activity_time.replace(tzinfo=timezone.utc)
        elapsed = self._clock() - activity_time
        return select_endpoint(elapsed, self.current_window, self.historical_limit) is not None

    async def fetch(
        self,
        lat: float,
        lon: float,
        activity_time: datetime,
    ) -> WeatherObservation | None:
        """Get the weather at ``(lat, lon)`` when the activity started.

        Returns None when the activity is outside the supported windows or
        when the upstream call fails for any reason; the caller treats that
        as "skip enrichment for this event".
        """
        if activity_time.tzinfo is None:
            activity_time = activity_time.replace(tzinfo=timezone.utc)

        coordinates = Coordinates(latitude=lat, longitude=lon)
        cache_key = self._cache_key(coordinates, activity_time)
        cached = self._cache_get(cache_key)
        if cached is not None:
            logger.debug(f"Weather cache hit for {coordinates} at {activity_time.isoformat()}")
            return cached

        elapsed = self._clock() - activity_time
        endpoint = select_endpoint(elapsed, self.current_window, self.historical_limit)
        if endpoint is None:
            logger.warning(
                f"Activity at {activity_time.isoformat()} is outside the weather windows "
                f"({elapsed.total_seconds() / 3600:.1f}h ago); not fetching weather"
            )
            return None

        try:
            if endpoint == WeatherEndpoint.CURRENT:
                observation = await self._fetch_current(coordinates)
            else:
                observation = await self._fetch_timemachine(coordinates, activity_time)
        except UpstreamError as e:
            logger.error(f"Weather request failed ({endpoint.value}): {e}")
            return None
        except (KeyError, IndexError, TypeError, ValueError) as e:
            logger.error(f"Could not parse weather response ({endpoint.value}): {e!r}")
            return None

        self._cache_put(cache_key, observation)
        logger.info(
            f"Weather for {coordinates} via {endpoint.value}: "
            f"{observation.temperature_c}°C, {observation.condition}"
        )
        return observation

    async def _fetch_current(self, coordinates: Coordinates) -> WeatherObservation:
        params = self._base_params(coordinates)
        params["exclude"] = "minutely,hourly,daily,alerts"

        response = await self._request("GET", self.base_url, params=params)
        data = self._json(response, self.name)
        return self._translate_response(data["current"], WeatherEndpoint.CURRENT)

    async def _fetch_timemachine(
        self,
        coordinates: Coordinates,
        activity_time: datetime,
    ) -> WeatherObservation:
        params = self._base_params(coordinates)
        params["dt"] = str(int(activity_time.timestamp()))

        response = await self._request("GET", f"{self.base_url}/timemachine", params=params)
        data = self._json(response, self.name)
        entries = data.get("data") or []
        if not entries:
            raise UpstreamError(
                "Time machine returned no data points",
                service=self.name,
                status_code=response.status_code,
            )
        return self._translate_response(entries[0], WeatherEndpoint.TIMEMACHINE)

    def _base_params(self, coordinates: Coordinates) -> dict[str, Any]:
        return {
            "lat": f"{coordinates.latitude:.6f}",
            "lon": f"{coordinates.longitude:.6f}",
            "appid": self.api_key,
            "units": "metric",
        }

    def _translate_response(
        self,
        point: dict[str, Any],
        endpoint: WeatherEndpoint,
    ) -> WeatherObservation:
        """Translate one OWM data point to the canonical observation.

        See module docstring for the field mapping.
        """
        weather = point["weather"][0]
        visibility_m = point.get("visibility")
        if visibility_m is None:
            visibility_m = DEFAULT_VISIBILITY_M
        pressure = point.get("pressure")
        uvi = point.get("uvi")

        return WeatherObservation(
            temperature_c=_round_half_up(point["temp"]),
            feels_like_c=_round_half_up(point["feels_like"]),
            condition=weather.get("description") or weather.get("main") or "",
            humidity_pct=_round_half_up(point["humidity"]),
            wind_speed_ms=_round_half_up(point["wind_speed"] * 10) / 10,
            wind_direction=wind_direction_label(point.get("wind_deg") or 0),
            pressure_hpa=_round_half_up(pressure) if pressure is not None else None,
            visibility_km=_round_half_up(visibility_m / 1000),
            uv_index=uvi,
            observed_at=_unix_to_datetime(point.get("dt")),
            source=endpoint.value,
        )

    # Cache

    def _cache_key(
        self, coordinates: Coordinates, activity_time: datetime
    ) -> tuple[float, float, int]:
        bucket_seconds = CACHE_TIME_BUCKET_MINUTES * 60
        bucket = int(activity_time.timestamp()) // bucket_seconds * bucket_seconds
        lat, lon = coordinates.rounded(CACHE_COORDINATE_PLACES)
        return (lat, lon, bucket)

    def _cache_get(self, key: tuple[float, float, int]) -> WeatherObservation | None:
        entry = self._cache.get(key)
        if entry is None:
            return None
        stored_at, observation = entry
        if time.monotonic() - stored_at > self.cache_ttl.total_seconds():
            del self._cache[key]
            return None
        return observation

    def _cache_put(self, key: tuple[float, float, int], observation: WeatherObservation) -> None:
        if self.cache_ttl <= timedelta(0):
            return
        now = time.monotonic()
        ttl = self.cache_ttl.total_seconds()
        for stale in [k for k, (stored_at, _) in self._cache.items() if now - stored_at > ttl]:
            del self._cache[stale]
        self._cache[key] = (now, observation)

    def clear_cache(self) -> None:
        self._cache.clear()
