"""Tests for weather line formatting and detection."""

import pytest

from strava_weather.enrichment.marker import (
    SENTINEL,
    format_weather_line,
    has_weather,
    merge_description,
)
from strava_weather.models.weather import WeatherObservation

LINE = "Light rain, 10°C, Feels like 9°C, Humidity 91%, Wind 2m/s from WSW"


class TestFormatWeatherLine:
    """Tests for format_weather_line."""

    def test_documented_format(self, sample_observation):
        assert format_weather_line(sample_observation) == LINE

    def test_fractional_wind_speed(self, sample_observation):
        obs = sample_observation.model_copy(update={"wind_speed_ms": 3.5})
        assert format_weather_line(obs).endswith("Wind 3.5m/s from WSW")

    def test_negative_temperatures(self, sample_observation):
        obs = sample_observation.model_copy(
            update={"temperature_c": -3, "feels_like_c": -8, "condition": "snow"}
        )
        assert format_weather_line(obs).startswith("Snow, -3°C, Feels like -8°C,")

    def test_sentinel_prefix(self, sample_observation):
        line = format_weather_line(sample_observation, sentinel=True)
        assert line.startswith(SENTINEL)
        assert line[len(SENTINEL):] == LINE


class TestHasWeather:
    """Tests for has_weather."""

    @pytest.mark.parametrize("description", [None, "", "Easy miles with the club"])
    def test_plain_descriptions(self, description):
        assert has_weather(description) is False

    def test_generated_line(self):
        assert has_weather(f"Easy miles\n\n{LINE}") is True

    def test_sentinel_alone(self):
        assert has_weather(f"Easy miles {SENTINEL}") is True

    @pytest.mark.parametrize(
        "description",
        [
            "Weather: sunny",
            "It was 25°C out",
            "Humidity was brutal",
            "Feels like summer",
            "3m/s from the north",
            "Hot, 80°F",
        ],
    )
    def test_legacy_signatures(self, description):
        assert has_weather(description) is True

    def test_detects_own_output(self, sample_observation):
        """Whatever we write is recognised on the next delivery."""
        for sentinel in (False, True):
            line = format_weather_line(sample_observation, sentinel=sentinel)
            assert has_weather(merge_description("Tempo", line))


class TestMergeDescription:
    """Tests for merge_description."""

    @pytest.mark.parametrize("existing", [None, ""])
    def test_empty_existing(self, existing):
        assert merge_description(existing, LINE) == LINE

    def test_appends_after_blank_line(self):
        assert merge_description("Easy miles", LINE) == f"Easy miles\n\n{LINE}"

    def test_keeps_previous_weather_line(self):
        """Append-only: a forced re-run keeps the earlier line."""
        first = merge_description("Easy miles", LINE)
        second = merge_description(first, LINE)
        assert second.count(LINE) == 2
        assert second.startswith(first)
