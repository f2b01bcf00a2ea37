"""Admin routes for the push subscription.

All routes require the ``X-Admin-Token`` header.

| Route                           | Action                                   |
|---------------------------------|------------------------------------------|
| ``GET    /webhook/status``      | Show the current subscription            |
| ``POST   /webhook/subscribe``   | Verify a callback URL, then subscribe    |
| ``DELETE /webhook/unsubscribe`` | Delete the current subscription          |
| ``GET    /webhook/verify``      | Run the handshake against a callback URL |
| ``POST   /webhook/setup``       | Subscribe unless one already exists      |
| ``GET    /webhook/failures``    | Recent enrichment failures               |

Errors: an existing subscription is 409, an unreachable callback is 400,
no subscription to delete is 404 and a Strava failure is 502.
"""

from __future__ import annotations

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from strava_weather.api.dependencies import (
    get_outcome_log,
    get_reconciler_config,
    get_subscription_manager,
    require_admin_token,
)
from strava_weather.database.repositories import SqlOutcomeLog
from strava_weather.models.subscription import Subscription
from strava_weather.providers.base import UpstreamError
from strava_weather.subscriptions.manager import SubscriptionConflict, SubscriptionManager
from strava_weather.subscriptions.reconciler import ReconcilerConfig

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(require_admin_token)])


class SubscribeRequest(BaseModel):
    """Create subscription request."""

    callback_url: str | None = Field(default=None, description="Defaults to the configured callback")


class SetupRequest(BaseModel):
    """One-step setup request."""

    base_url: str | None = Field(default=None, description="Public base URL of this server")


class StatusResponse(BaseModel):
    """Subscription status."""

    has_subscription: bool
    subscription: Subscription | None
    expected_callback_url: str | None


class SubscriptionResponse(BaseModel):
    """Result of a subscribe or setup call."""

    action: str
    subscription: Subscription
    callback_url: str


class VerifyResponse(BaseModel):
    """Result of a handshake check."""

    callback_url: str
    verified: bool


class FailureResponse(BaseModel):
    """One recorded enrichment failure."""

    activity_id: str
    athlete_id: str | None
    stage: str
    error: str | None
    elapsed_ms: int
    created_at: datetime | None


def _bad_gateway(e: UpstreamError) -> HTTPException:
    logger.error(f"Strava subscription API failed: {e}")
    return HTTPException(
        status_code=status.HTTP_502_BAD_GATEWAY,
        detail=f"Strava API error: {e}",
    )


def _require_callback(callback_url: str | None) -> str:
    if not callback_url:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No callback URL given and none configured (set APP_URL or NGROK_URL)",
        )
    return callback_url


async def _verify_and_create(
    manager: SubscriptionManager,
    callback_url: str,
) -> Subscription:
    if not await manager.verify_reachability(callback_url):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=(
                f"Webhook endpoint is not reachable at {callback_url}. Make sure the "
                "server is publicly accessible; for local development start a tunnel."
            ),
        )

    try:
        return await manager.create(callback_url)
    except SubscriptionConflict as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e
    except UpstreamError as e:
        raise _bad_gateway(e) from e


@router.get("/webhook/status", response_model=StatusResponse)
async def subscription_status(
    manager: SubscriptionManager = Depends(get_subscription_manager),
    config: ReconcilerConfig = Depends(get_reconciler_config),
) -> StatusResponse:
    """Show the current push subscription."""
    try:
        subscription = await manager.view()
    except UpstreamError as e:
        raise _bad_gateway(e) from e

    return StatusResponse(
        has_subscription=subscription is not None,
        subscription=subscription,
        expected_callback_url=config.callback_url(),
    )


@router.post(
    "/webhook/subscribe",
    response_model=SubscriptionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def subscribe(
    body: SubscribeRequest | None = None,
    manager: SubscriptionManager = Depends(get_subscription_manager),
    config: ReconcilerConfig = Depends(get_reconciler_config),
) -> SubscriptionResponse:
    """Create the push subscription after verifying the callback URL."""
    callback_url = _require_callback(
        (body.callback_url if body else None) or config.callback_url()
    )
    logger.info(f"Admin subscribe requested for {callback_url}")

    subscription = await _verify_and_create(manager, callback_url)
    return SubscriptionResponse(
        action="created", subscription=subscription, callback_url=callback_url
    )


@router.delete("/webhook/unsubscribe")
async def unsubscribe(
    manager: SubscriptionManager = Depends(get_subscription_manager),
) -> dict[str, int]:
    """Delete the current push subscription."""
    try:
        subscription = await manager.view()
        deleted = subscription is not None and await manager.delete(subscription.id)
    except UpstreamError as e:
        raise _bad_gateway(e) from e

    if not deleted:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No webhook subscription found",
        )

    return {"deleted_subscription_id": subscription.id}


@router.get("/webhook/verify", response_model=VerifyResponse)
async def verify(
    callback_url: str | None = Query(default=None),
    manager: SubscriptionManager = Depends(get_subscription_manager),
    config: ReconcilerConfig = Depends(get_reconciler_config),
) -> VerifyResponse:
    """Run the verification handshake against a callback URL."""
    url = _require_callback(callback_url or config.callback_url())
    return VerifyResponse(callback_url=url, verified=await manager.verify_reachability(url))


@router.post("/webhook/setup", response_model=SubscriptionResponse)
async def setup(
    body: SetupRequest | None = None,
    manager: SubscriptionManager = Depends(get_subscription_manager),
    config: ReconcilerConfig = Depends(get_reconciler_config),
) -> SubscriptionResponse:
    """Subscribe unless a subscription already exists."""
    try:
        existing = await manager.view()
    except UpstreamError as e:
        raise _bad_gateway(e) from e

    if existing is not None:
        logger.info(f"Setup found existing subscription {existing.id}")
        return SubscriptionResponse(
            action="existing", subscription=existing, callback_url=existing.callback_url
        )

    if body and body.base_url:
        config = ReconcilerConfig(
            public_base_url=body.base_url,
            is_production=True,
            webhook_path=config.webhook_path,
        )
    callback_url = _require_callback(config.callback_url())

    subscription = await _verify_and_create(manager, callback_url)
    return SubscriptionResponse(
        action="created", subscription=subscription, callback_url=callback_url
    )


@router.get("/webhook/failures", response_model=list[FailureResponse])
async def recent_failures(
    limit: int = Query(default=50, ge=1, le=500),
    outcome_log: SqlOutcomeLog = Depends(get_outcome_log),
) -> list[FailureResponse]:
    """List the most recent enrichment failures."""
    failures = await outcome_log.recent(limit)
    return [
        FailureResponse(
            activity_id=f.activity_id,
            athlete_id=f.strava_athlete_id,
            stage=f.stage,
            error=f.error,
            elapsed_ms=f.elapsed_ms,
            created_at=f.created_at,
        )
        for f in failures
    ]
