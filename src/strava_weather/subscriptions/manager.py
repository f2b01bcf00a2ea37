"""Strava push subscription management.

Strava allows a single push subscription per API application and does not
enforce that itself, so the manager views before it creates and serializes
create/delete through an in-process lock.

## Endpoints
- ``GET    /push_subscriptions?client_id&client_secret``: list (0 or 1 items)
- ``POST   /push_subscriptions``: form ``client_id, client_secret,
  callback_url, verify_token``; Strava immediately calls the callback with a
  verification GET before answering
- ``DELETE /push_subscriptions/{id}?client_id&client_secret``: 204 on success

## Verification Handshake
Strava sends ``GET callback?hub.mode=subscribe&hub.verify_token=...&
hub.challenge=...`` and expects ``{"hub.challenge": "<same value>"}`` within
two seconds. ``verify_reachability`` performs the same handshake against our
own callback before subscribing, so a subscription is never requested for a
URL that cannot answer it.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
from typing import Any

import httpx

from strava_weather.models.subscription import Subscription
from strava_weather.providers.base import NotFound, UpstreamClient

logger = logging.getLogger(__name__)


class SubscriptionConflict(Exception):
    """Raised when creating a subscription while one already exists."""

    def __init__(self, existing: Subscription):
        super().__init__(
            f"Subscription {existing.id} already exists for {existing.callback_url}; "
            "delete it before creating a new one"
        )
        self.existing = existing


class SubscriptionManager(UpstreamClient):
    """Owns the application's single Strava push subscription."""

    name = "strava_push"
    base_url = "https://www.strava.com/api/v3/push_subscriptions"

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        verify_token: str,
        base_url: str | None = None,
        timeout: float = 10.0,
        max_attempts: int = 3,
        client: httpx.AsyncClient | None = None,
    ):
        super().__init__(timeout=timeout, max_attempts=max_attempts, client=client)
        self.client_id = client_id
        self.client_secret = client_secret
        self.verify_token = verify_token
        if base_url:
            self.base_url = base_url.rstrip("/")
        self._lock = asyncio.Lock()

    @classmethod
    def from_settings(cls, settings: Any, client: httpx.AsyncClient | None = None) -> SubscriptionManager:
        return cls(
            client_id=settings.strava_client_id,
            client_secret=settings.strava_client_secret,
            verify_token=settings.strava_webhook_verify_token,
            base_url=f"{settings.strava_api_base_url.rstrip('/')}/push_subscriptions",
            timeout=settings.strava_timeout_seconds,
            client=client,
        )

    def _credentials(self) -> dict[str, str]:
        return {"client_id": self.client_id, "client_secret": self.client_secret}

    async def view(self) -> Subscription | None:
        """Return the current subscription, or None when there is none.

        Raises:
            UpstreamError: On network, auth or server failure
        """
        response = await self._request("GET", self.base_url, params=self._credentials())
        data = self._json(response, self.name)

        if isinstance(data, list) and data:
            subscription = Subscription.model_validate(data[0])
            logger.debug(f"Found subscription {subscription.id} -> {subscription.callback_url}")
            return subscription

        logger.debug("No push subscription registered")
        return None

    async def create(self, callback_url: str) -> Subscription:
        """Create the push subscription.

        Raises:
            SubscriptionConflict: A subscription already exists
            UpstreamError: Strava refused or could not be reached
        """
        async with self._lock:
            existing = await self.view()
            if existing is not None:
                raise SubscriptionConflict(existing)

            logger.info(f"Creating push subscription for {callback_url}")
            response = await self._request(
                "POST",
                self.base_url,
                data={
                    **self._credentials(),
                    "callback_url": callback_url,
                    "verify_token": self.verify_token,
                },
            )
            data = self._json(response, self.name)
            # Strava answers with just {"id": ...}
            subscription = Subscription.model_validate(
                {"callback_url": callback_url, **data}
            )
            logger.info(f"Created push subscription {subscription.id}")
            return subscription

    async def delete(self, subscription_id: int) -> bool:
        """Delete a subscription by ID.

        Returns True when Strava deleted it and False when it did not exist.

        Raises:
            UpstreamError: Any failure other than "not found"
        """
        async with self._lock:
            try:
                await self._request(
                    "DELETE",
                    f"{self.base_url}/{subscription_id}",
                    params=self._credentials(),
                )
            except NotFound:
                logger.warning(f"Push subscription {subscription_id} does not exist")
                return False

            logger.info(f"Deleted push subscription {subscription_id}")
            return True

    async def verify_reachability(self, callback_url: str) -> bool:
        """Run Strava's challenge handshake against ``callback_url``.

        Never raises: any failure means the endpoint is not reachable.
        """
        challenge = secrets.token_urlsafe(16)
        params = {
            "hub.mode": "subscribe",
            "hub.verify_token": self.verify_token,
            "hub.challenge": challenge,
        }

        try:
            response = await self._get_client().get(
                callback_url,
                params=params,
                headers=self._get_default_headers(),
                timeout=self.timeout,
            )
        except httpx.HTTPError as e:
            logger.error(f"Webhook endpoint {callback_url} unreachable: {e!r}")
            return False

        if response.status_code != 200:
            logger.error(f"Webhook endpoint {callback_url} returned {response.status_code}")
            return False

        try:
            echoed = response.json().get("hub.challenge")
        except (ValueError, AttributeError):
            logger.error(f"Webhook endpoint {callback_url} did not answer with JSON")
            return False

        if echoed != challenge:
            logger.error(f"Webhook endpoint {callback_url} did not echo the challenge")
            return False

        logger.info(f"Webhook endpoint {callback_url} verified")
        return True
