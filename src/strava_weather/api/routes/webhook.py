"""Strava webhook endpoint.

``GET`` answers the subscription verification handshake. ``POST`` receives
push events; Strava requires a 200 within two seconds and retries otherwise,
so the handler only validates the envelope and hands activity creations to
the dispatcher. Every other event is acknowledged and ignored.
"""

from __future__ import annotations

import logging
import secrets
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from pydantic import ValidationError

from strava_weather.api.dependencies import get_dispatcher
from strava_weather.config import get_settings
from strava_weather.enrichment.dispatcher import EventDispatcher
from strava_weather.models.event import WebhookEvent

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("")
async def verify_subscription(
    hub_mode: str | None = Query(default=None, alias="hub.mode"),
    hub_verify_token: str | None = Query(default=None, alias="hub.verify_token"),
    hub_challenge: str | None = Query(default=None, alias="hub.challenge"),
) -> dict[str, str]:
    """Echo the challenge when the verify token matches."""
    expected = get_settings().strava_webhook_verify_token

    if (
        hub_mode == "subscribe"
        and hub_challenge is not None
        and hub_verify_token is not None
        and secrets.compare_digest(
            hub_verify_token.encode("utf-8"), expected.encode("utf-8")
        )
    ):
        logger.info("Webhook verification handshake accepted")
        return {"hub.challenge": hub_challenge}

    logger.warning(f"Webhook verification rejected (mode={hub_mode!r})")
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Verification failed")


@router.post("")
async def receive_event(
    request: Request,
    dispatcher: EventDispatcher = Depends(get_dispatcher),
) -> dict[str, str]:
    """Acknowledge a push event and schedule enrichment for new activities."""
    try:
        payload: Any = await request.json()
    except ValueError:
        logger.warning("Ignoring webhook body that is not JSON")
        return {"status": "ignored"}

    try:
        event = WebhookEvent.model_validate(payload)
    except ValidationError as e:
        logger.warning(f"Ignoring malformed webhook payload: {e.error_count()} error(s)")
        return {"status": "ignored"}

    logger.info(
        f"Webhook event: {event.object_type.value} {event.object_id} "
        f"{event.aspect_type.value} (owner {event.owner_id})"
    )

    if not event.is_activity_create:
        return {"status": "ignored"}

    dispatcher.submit(event.to_inbound_event())
    return {"status": "accepted"}
