"""Strava activity gateway.

## Endpoints
- ``GET  {base}/activities/{id}``: one activity (bearer credential)
- ``PUT  {base}/activities/{id}``: update, JSON body ``{"description": ...}``
- ``GET  {base}/athlete/activities?after={unix}&per_page={n}``: recent list

## Status Handling
| Status | Raised |
|--------|--------|
| 401 | CredentialExpired (token refresh belongs to the auth workflow) |
| 403 | UpstreamError (not allowed to see/modify the activity) |
| 404 | NotFound |
| 429 | RateLimitError |
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

import httpx

from strava_weather.models.activity import Activity
from strava_weather.providers.base import UpstreamClient

logger = logging.getLogger(__name__)


class ActivityGateway(UpstreamClient):
    """Reads Strava activities and writes back their description.

    The gateway is stateless with respect to users: every call takes the
    bearer credential of the activity's owner.
    """

    name = "strava"
    base_url = "https://www.strava.com/api/v3"

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ):
        super().__init__(timeout=timeout, max_attempts=1, client=client)
        if base_url:
            self.base_url = base_url.rstrip("/")

    @classmethod
    def from_settings(cls, settings: Any, client: httpx.AsyncClient | None = None) -> ActivityGateway:
        return cls(
            base_url=settings.strava_api_base_url,
            timeout=settings.strava_timeout_seconds,
            client=client,
        )

    @staticmethod
    def _auth(access_token: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {access_token}"}

    async def fetch(self, activity_id: str, access_token: str) -> Activity:
        """Fetch one activity.

        Raises:
            NotFound: Activity does not exist or is private to someone else
            CredentialExpired: Access token rejected
            UpstreamError: Any other failure
        """
        response = await self._request(
            "GET",
            f"{self.base_url}/activities/{activity_id}",
            headers=self._auth(access_token),
        )
        activity = Activity.model_validate(self._json(response, self.name))
        logger.debug(f"Fetched activity {activity.id}: {activity.name!r} ({activity.type})")
        return activity

    async def update_description(
        self,
        activity_id: str,
        access_token: str,
        description: str,
    ) -> Activity:
        """Replace the activity description; returns the updated activity."""
        response = await self._request(
            "PUT",
            f"{self.base_url}/activities/{activity_id}",
            headers=self._auth(access_token),
            json={"description": description},
        )
        return Activity.model_validate(self._json(response, self.name))

    async def list_activities(
        self,
        access_token: str,
        after: datetime,
        per_page: int = 50,
    ) -> list[Activity]:
        """List the athlete's activities started after ``after``."""
        response = await self._request(
            "GET",
            f"{self.base_url}/athlete/activities",
            headers=self._auth(access_token),
            params={"after": int(after.timestamp()), "per_page": per_page},
        )
        return [Activity.model_validate(item) for item in self._json(response, self.name)]
