"""Webhook event models.

Strava posts one JSON object per change:

```json
{
  "object_type": "activity",
  "object_id": 1360128428,
  "aspect_type": "create",
  "updates": {},
  "owner_id": 134815,
  "subscription_id": 120475,
  "event_time": 1516126040
}
```

``WebhookEvent`` validates that envelope; ``InboundEvent`` is the narrowed
form the enrichment pipeline consumes.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator


class ObjectType(str, Enum):
    """Kind of object a webhook event refers to."""

    ACTIVITY = "activity"
    ATHLETE = "athlete"


class AspectType(str, Enum):
    """Kind of change a webhook event reports."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class InboundEvent(BaseModel):
    """One activity event, as handed to the enrichment pipeline."""

    model_config = {"frozen": True}

    activity_id: str = Field(..., description="Strava activity ID")
    athlete_id: str = Field(..., description="Strava athlete ID of the owner")
    event_time: datetime = Field(..., description="When Strava emitted the event")
    subscription_id: int = Field(..., description="Push subscription that delivered it")

    @field_validator("activity_id", "athlete_id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> str:
        return str(v)

    @field_validator("event_time", mode="before")
    @classmethod
    def parse_epoch(cls, v: Any) -> Any:
        if isinstance(v, (int, float)):
            return datetime.fromtimestamp(v, tz=timezone.utc)
        return v


class WebhookEvent(BaseModel):
    """Raw webhook body as posted by Strava."""

    object_type: ObjectType
    object_id: int
    aspect_type: AspectType
    owner_id: int
    subscription_id: int
    event_time: int = Field(..., description="Unix timestamp (seconds)")
    updates: dict[str, Any] = Field(default_factory=dict)

    @property
    def is_activity_create(self) -> bool:
        """Only newly created activities are enriched."""
        return (
            self.object_type == ObjectType.ACTIVITY
            and self.aspect_type == AspectType.CREATE
        )

    def to_inbound_event(self) -> InboundEvent:
        return InboundEvent(
            activity_id=self.object_id,
            athlete_id=self.owner_id,
            event_time=self.event_time,
            subscription_id=self.subscription_id,
        )
