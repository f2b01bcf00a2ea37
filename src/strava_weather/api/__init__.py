"""FastAPI application and routes.

## API Structure

- /api/strava/webhook - Strava push subscription callback
- /api/admin/webhook - Push subscription administration (admin token)
- /health - Liveness check

## Security

- The webhook callback is public; the verification handshake is guarded by
  the configured verify token
- Admin endpoints require the ``X-Admin-Token`` header
- All communication should be over HTTPS in production
"""

from strava_weather.api.app import create_app

__all__ = ["create_app"]
