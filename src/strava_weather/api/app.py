"""FastAPI application factory.

Creates and configures the FastAPI application with all routes and the
long-lived enrichment services.

## Usage

```python
from strava_weather.api import create_app

app = create_app()

# Run with uvicorn
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
```

## Configuration

The app is configured via environment variables. See `strava_weather.config`
for available settings.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import httpx
from fastapi import FastAPI

from strava_weather.config import get_settings
from strava_weather.database.connection import close_db, init_db
from strava_weather.database.repositories import SqlOutcomeLog, SqlUserDirectory
from strava_weather.enrichment.dispatcher import EventDispatcher
from strava_weather.enrichment.processor import EventProcessor
from strava_weather.providers.openweathermap import WeatherSource
from strava_weather.providers.strava import ActivityGateway
from strava_weather.subscriptions.manager import SubscriptionManager
from strava_weather.subscriptions.reconciler import StartupReconciler

logger = logging.getLogger(__name__)

# Strava verifies the callback during subscription creation, so the server
# must already be accepting requests when the reconciler runs.
RECONCILE_DELAY_SECONDS = 2.0
DRAIN_TIMEOUT_SECONDS = 30.0


async def _reconcile_later(reconciler: StartupReconciler, delay: float) -> None:
    await asyncio.sleep(delay)
    outcome = await reconciler.reconcile()
    logger.info(f"Push subscription reconciliation finished: {outcome.value}")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Handles startup and shutdown tasks:
    - Initialize database connection
    - Build the shared HTTP client and enrichment services
    - Reconcile the push subscription in the background
    - Drain in-flight enrichment and clean up on shutdown
    """
    settings = get_settings()

    logger.info(f"Starting {settings.app_name} v{settings.app_version}")

    # Initialize database
    await init_db()

    http_client = httpx.AsyncClient()
    manager = SubscriptionManager.from_settings(settings, client=http_client)
    outcome_log = SqlOutcomeLog()
    processor = EventProcessor(
        directory=SqlUserDirectory(),
        gateway=ActivityGateway.from_settings(settings, client=http_client),
        weather=WeatherSource.from_settings(settings, client=http_client),
        outcome_log=outcome_log,
        sentinel=settings.enrichment_sentinel_enabled,
    )
    dispatcher = EventDispatcher(processor, max_concurrency=settings.enrichment_max_concurrency)
    reconciler = StartupReconciler(manager, settings.reconciler_config())

    app.state.subscription_manager = manager
    app.state.outcome_log = outcome_log
    app.state.dispatcher = dispatcher

    reconcile_task: asyncio.Task[None] | None = None
    if settings.auto_reconcile_subscription:
        reconcile_task = asyncio.create_task(
            _reconcile_later(reconciler, RECONCILE_DELAY_SECONDS)
        )

    yield

    # Shutdown
    logger.info("Shutting down")
    if reconcile_task is not None and not reconcile_task.done():
        reconcile_task.cancel()

    await dispatcher.drain(timeout=DRAIN_TIMEOUT_SECONDS)
    if await reconciler.cleanup():
        logger.info("Push subscription removed on shutdown")

    await http_client.aclose()
    await close_db()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application
    """
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Adds weather conditions to new Strava activities",
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
        lifespan=lifespan,
    )

    # Include routers
    from strava_weather.api.routes import admin, webhook

    app.include_router(webhook.router, prefix=settings.webhook_path, tags=["Webhook"])
    app.include_router(admin.router, prefix="/api/admin", tags=["Admin"])

    # Health check endpoint
    @app.get("/health", tags=["Health"])
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "version": settings.app_version,
            "environment": settings.environment,
        }

    return app
