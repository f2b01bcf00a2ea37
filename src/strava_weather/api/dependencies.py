"""FastAPI dependencies.

Long-lived services are built once in the application lifespan and stored on
``app.state``; these accessors hand them to route handlers so tests can swap
them through ``app.dependency_overrides``.

## Usage

```python
from fastapi import Depends
from strava_weather.api.dependencies import get_subscription_manager, require_admin_token

@router.get("/status", dependencies=[Depends(require_admin_token)])
async def status(manager: SubscriptionManager = Depends(get_subscription_manager)):
    ...
```
"""

from __future__ import annotations

import logging
import secrets

from fastapi import Header, HTTPException, Request, status

from strava_weather.config import get_settings
from strava_weather.database.repositories import SqlOutcomeLog
from strava_weather.enrichment.dispatcher import EventDispatcher
from strava_weather.subscriptions.manager import SubscriptionManager
from strava_weather.subscriptions.reconciler import ReconcilerConfig

logger = logging.getLogger(__name__)


async def require_admin_token(
    x_admin_token: str | None = Header(default=None, alias="X-Admin-Token"),
) -> None:
    """Require the configured admin token in the ``X-Admin-Token`` header.

    Raises 503 when no admin token is configured, 401 when the header is
    missing and 403 when it does not match.
    """
    expected = get_settings().admin_token
    if not expected:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Admin API is disabled (ADMIN_TOKEN not set)",
        )

    if not x_admin_token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Admin token required",
        )

    if not secrets.compare_digest(x_admin_token.encode("utf-8"), expected.encode("utf-8")):
        logger.warning("Rejected admin request with invalid token")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid admin token",
        )


def get_subscription_manager(request: Request) -> SubscriptionManager:
    return request.app.state.subscription_manager


def get_dispatcher(request: Request) -> EventDispatcher:
    return request.app.state.dispatcher


def get_outcome_log(request: Request) -> SqlOutcomeLog:
    return request.app.state.outcome_log


def get_reconciler_config() -> ReconcilerConfig:
    return get_settings().reconciler_config()
