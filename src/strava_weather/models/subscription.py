"""Push subscription model."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class Subscription(BaseModel):
    """The application's Strava push subscription.

    Strava allows one subscription per API application; the application
    treats it as a process-wide singleton.
    """

    model_config = ConfigDict(extra="ignore")

    id: int = Field(..., description="Subscription ID assigned by Strava")
    callback_url: str = Field(..., description="URL Strava posts events to")
    created_at: datetime | None = Field(default=None)
    updated_at: datetime | None = Field(default=None)
