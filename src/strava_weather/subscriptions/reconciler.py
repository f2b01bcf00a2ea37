"""Startup/shutdown reconciliation of the push subscription.

Run once when the server starts: make sure exactly one subscription exists,
creating it only against a callback URL that has passed the verification
handshake. Nothing in here may abort the host process; on any failure the
service keeps running without automatic enrichment.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from strava_weather.subscriptions.manager import SubscriptionManager

logger = logging.getLogger(__name__)


class ReconcileOutcome(str, Enum):
    """Terminal state of a reconciliation run."""

    EXISTING = "existing"
    NO_CALLBACK_URL = "no_callback_url"
    UNREACHABLE = "unreachable"
    CREATED = "created"
    FAILED = "failed"


@dataclass(frozen=True)
class ReconcilerConfig:
    """Deployment context the reconciler needs, injected rather than read globally."""

    public_base_url: str | None = None
    tunnel_url: str | None = None
    is_production: bool = False
    cleanup_on_shutdown: bool = False
    webhook_path: str = "/api/strava/webhook"

    def callback_url(self) -> str | None:
        """Callback URL for this environment, or None when none is configured.

        Production only ever uses the public base URL; other environments
        only ever use the tunnel URL.
        """
        base = self.public_base_url if self.is_production else self.tunnel_url
        if not base:
            return None
        if not base.startswith(("http://", "https://")):
            base = f"https://{base}"
        return f"{base.rstrip('/')}/{self.webhook_path.lstrip('/')}"


class StartupReconciler:
    """Ensures the push subscription on startup and tears it down on shutdown."""

    def __init__(self, manager: SubscriptionManager, config: ReconcilerConfig):
        self.manager = manager
        self.config = config

    async def reconcile(self) -> ReconcileOutcome:
        try:
            existing = await self.manager.view()
            if existing is not None:
                logger.info(
                    f"Push subscription {existing.id} already registered "
                    f"for {existing.callback_url}"
                )
                return ReconcileOutcome.EXISTING

            callback_url = self.config.callback_url()
            if callback_url is None:
                if self.config.is_production:
                    logger.warning(
                        "No APP_URL configured in production; not creating a push "
                        "subscription. Use the admin API to set one up."
                    )
                else:
                    logger.info(
                        "No NGROK_URL configured; webhooks are disabled in this "
                        "environment. Start a tunnel and set NGROK_URL to enable them."
                    )
                return ReconcileOutcome.NO_CALLBACK_URL

            if not await self.manager.verify_reachability(callback_url):
                logger.error(
                    f"Webhook endpoint {callback_url} failed verification; "
                    "push subscription not created"
                )
                return ReconcileOutcome.UNREACHABLE

            subscription = await self.manager.create(callback_url)
            logger.info(
                f"Push subscription {subscription.id} created for {subscription.callback_url}"
            )
            return ReconcileOutcome.CREATED

        except Exception as e:
            logger.error(
                f"Push subscription setup failed, continuing without webhooks: {e}",
                exc_info=True,
            )
            return ReconcileOutcome.FAILED

    async def cleanup(self) -> bool:
        """Delete the subscription on shutdown when configured to.

        Returns True only when a subscription was deleted.
        """
        if self.config.is_production and not self.config.cleanup_on_shutdown:
            return False

        try:
            subscription = await self.manager.view()
            if subscription is None:
                return False
            return await self.manager.delete(subscription.id)
        except Exception as e:
            logger.error(f"Failed to clean up push subscription: {e}")
            return False
