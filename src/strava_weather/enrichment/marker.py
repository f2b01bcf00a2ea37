"""Detecting, formatting and merging the weather line in a description.

The generated line looks like::

    Light rain, 10°C, Feels like 9°C, Humidity 91%, Wind 2m/s from WSW

Prior enrichment is detected in three ways, strongest first:

1. the zero-width sentinel, when sentinel output is enabled
2. an exact match of the generated line format
3. legacy signature substrings, for descriptions written by older formats

The description is append-only: a previous weather line is never edited or
removed.
"""

from __future__ import annotations

import re

from strava_weather.models.weather import (
    COMPASS_POINTS,
    WeatherObservation,
    wind_direction_label,
)

# Zero-width space + zero-width non-joiner + zero-width space
SENTINEL = "\u200b\u200c\u200b"

LEGACY_SIGNATURES: tuple[str, ...] = (
    "°C",
    "°F",
    "Feels like",
    "Humidity",
    "m/s from",
    "Weather:",
)

WEATHER_LINE_PATTERN = re.compile(
    r"^(?:" + re.escape(SENTINEL) + r")?"
    r"[^,\n]+, -?\d+°C, Feels like -?\d+°C, Humidity \d+%, "
    r"Wind \d+(?:\.\d+)?m/s from (?:" + "|".join(COMPASS_POINTS) + r")$",
    re.MULTILINE,
)

DESCRIPTION_SEPARATOR = "\n\n"

__all__ = [
    "SENTINEL",
    "has_weather",
    "format_weather_line",
    "merge_description",
    "wind_direction_label",
]


def has_weather(description: str | None) -> bool:
    """Check whether a description already carries weather data."""
    if not description:
        return False
    if SENTINEL in description:
        return True
    if WEATHER_LINE_PATTERN.search(description):
        return True
    return any(signature in description for signature in LEGACY_SIGNATURES)


def _format_number(value: float) -> str:
    """2.0 -> '2', 3.5 -> '3.5'."""
    return f"{value:g}"


def format_weather_line(
    observation: WeatherObservation,
    sentinel: bool = False,
) -> str:
    """Render an observation as the single-line summary."""
    line = ", ".join(
        [
            observation.condition_display,
            f"{observation.temperature_c}°C",
            f"Feels like {observation.feels_like_c}°C",
            f"Humidity {observation.humidity_pct}%",
            f"Wind {_format_number(observation.wind_speed_ms)}m/s "
            f"from {observation.wind_direction}",
        ]
    )
    return f"{SENTINEL}{line}" if sentinel else line


def merge_description(existing: str | None, weather_line: str) -> str:
    """Append the weather line, separated by a blank line when needed."""
    if not existing:
        return weather_line
    return f"{existing}{DESCRIPTION_SEPARATOR}{weather_line}"
