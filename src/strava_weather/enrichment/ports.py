"""Collaborators the enrichment pipeline depends on but does not own.

User storage and token refresh belong to the account layer; the pipeline
only needs to resolve an athlete to a usable bearer credential, report a
rejected credential, and record terminal failures. The SQL-backed
implementations live in ``strava_weather.database.repositories``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from strava_weather.models.outcome import ProcessingResult


@dataclass(frozen=True)
class AthleteAccount:
    """A connected athlete as seen by the pipeline."""

    user_id: str
    athlete_id: str
    access_token: str
    weather_enabled: bool = True
    display_name: str | None = None


class UserDirectory(ABC):
    """Looks up connected athletes by their Strava athlete ID."""

    @abstractmethod
    async def find_by_athlete_id(self, athlete_id: str) -> AthleteAccount | None:
        """Return the account, or None if the athlete never connected or revoked access.

        The returned ``access_token`` must be currently valid as far as the
        directory knows; refreshing it is the directory's concern.
        """

    @abstractmethod
    async def report_expired_credential(self, account: AthleteAccount) -> None:
        """Flag that Strava rejected the account's access token."""


class OutcomeLog(ABC):
    """Durable record of enrichment runs that failed terminally."""

    @abstractmethod
    async def record_failure(self, result: ProcessingResult) -> None:
        """Persist a failed result for later inspection or replay."""
