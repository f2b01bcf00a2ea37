"""Pytest fixtures for Strava weather tests.

This module provides test fixtures that ensure:
1. No external API calls are made (Strava, OpenWeatherMap)
2. Databases are in-memory SQLite
3. Isolated test environment with controlled configuration
"""

import os
from datetime import datetime, timedelta, timezone
from typing import Callable

import httpx
import pytest

# Set test environment BEFORE importing application modules
# This ensures no real services are contacted during test collection
os.environ.setdefault("SECRET_KEY", "test-secret-key-at-least-32-characters-long")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("STRAVA_CLIENT_ID", "12345")
os.environ.setdefault("STRAVA_CLIENT_SECRET", "test-client-secret")
os.environ.setdefault("STRAVA_WEBHOOK_VERIFY_TOKEN", "test-verify-token")
os.environ.setdefault("OPENWEATHERMAP_API_KEY", "test-owm-key")
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("ADMIN_TOKEN", "test-admin-token")

from strava_weather.enrichment.ports import AthleteAccount, OutcomeLog, UserDirectory
from strava_weather.models.outcome import ProcessingResult
from strava_weather.models.weather import WeatherObservation
from strava_weather.providers.openweathermap import WeatherSource
from strava_weather.providers.strava import ActivityGateway

# Fixed "now" for all time-window tests
NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)

Handler = Callable[[httpx.Request], httpx.Response]


# =============================================================================
# Test Isolation Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def reset_settings_cache():
    """Reset settings cache before each test to ensure clean state."""
    from strava_weather.config import get_settings
    from strava_weather.database.encryption import reset_cipher

    get_settings.cache_clear()
    reset_cipher()
    yield
    get_settings.cache_clear()
    reset_cipher()


def mock_client(handler: Handler) -> httpx.AsyncClient:
    """HTTP client whose requests are answered by ``handler``."""
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class FakeDirectory(UserDirectory):
    """In-memory user directory."""

    def __init__(self, accounts: list[AthleteAccount] | None = None):
        self.accounts = {a.athlete_id: a for a in accounts or []}
        self.expired: list[str] = []

    async def find_by_athlete_id(self, athlete_id: str) -> AthleteAccount | None:
        return self.accounts.get(str(athlete_id))

    async def report_expired_credential(self, account: AthleteAccount) -> None:
        self.expired.append(account.athlete_id)


class FakeOutcomeLog(OutcomeLog):
    """Collects recorded failures."""

    def __init__(self):
        self.failures: list[ProcessingResult] = []

    async def record_failure(self, result: ProcessingResult) -> None:
        self.failures.append(result)


# =============================================================================
# Sample Data
# =============================================================================


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def athlete() -> AthleteAccount:
    """A connected athlete with enrichment enabled."""
    return AthleteAccount(
        user_id="user-1",
        athlete_id="134815",
        access_token="athlete-token",
        display_name="Test Runner",
    )


@pytest.fixture
def directory(athlete: AthleteAccount) -> FakeDirectory:
    return FakeDirectory([athlete])


@pytest.fixture
def outcome_log() -> FakeOutcomeLog:
    return FakeOutcomeLog()


@pytest.fixture
def owm_point() -> dict:
    """One Call data point for a light-rain morning in London."""
    return {
        "dt": int(NOW.timestamp()),
        "temp": 10.2,
        "feels_like": 9.1,
        "pressure": 1014,
        "humidity": 91,
        "uvi": 0.2,
        "clouds": 75,
        "visibility": 10000,
        "wind_speed": 2.04,
        "wind_deg": 250,
        "weather": [{"id": 500, "main": "Rain", "description": "light rain", "icon": "10d"}],
    }


@pytest.fixture
def owm_current_payload(owm_point: dict) -> dict:
    return {
        "lat": 51.5074,
        "lon": -0.1278,
        "timezone": "Europe/London",
        "current": owm_point,
    }


@pytest.fixture
def owm_timemachine_payload(owm_point: dict) -> dict:
    return {
        "lat": 51.5074,
        "lon": -0.1278,
        "timezone": "Europe/London",
        "data": [owm_point],
    }


@pytest.fixture
def strava_activity_payload() -> dict:
    """Strava activity that started ten minutes before NOW."""
    return {
        "id": 1360128428,
        "name": "Morning Run",
        "type": "Run",
        "start_date": (NOW - timedelta(minutes=10)).isoformat().replace("+00:00", "Z"),
        "start_latlng": [51.5074, -0.1278],
        "description": "Easy miles",
        "visibility": "everyone",
        "distance": 8046.7,
    }


@pytest.fixture
def sample_observation() -> WeatherObservation:
    return WeatherObservation(
        temperature_c=10,
        feels_like_c=9,
        condition="light rain",
        humidity_pct=91,
        wind_speed_ms=2.0,
        wind_direction="WSW",
        pressure_hpa=1014,
        visibility_km=10,
        uv_index=0.2,
        source="current",
    )


def make_weather_source(handler: Handler, **kwargs) -> WeatherSource:
    """WeatherSource on a mock transport with the clock frozen at NOW."""
    kwargs.setdefault("clock", lambda: NOW)
    return WeatherSource(api_key="test-owm-key", client=mock_client(handler), **kwargs)


def make_gateway(handler: Handler) -> ActivityGateway:
    return ActivityGateway(client=mock_client(handler))
