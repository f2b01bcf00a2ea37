"""Tests for the webhook event models."""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from strava_weather.models.event import AspectType, ObjectType, WebhookEvent


class TestWebhookEvent:
    """Tests for the webhook envelope."""

    def _payload(self, **overrides):
        payload = {
            "object_type": "activity",
            "object_id": 1360128428,
            "aspect_type": "create",
            "updates": {},
            "owner_id": 134815,
            "subscription_id": 120475,
            "event_time": 1516126040,
        }
        payload.update(overrides)
        return payload

    def test_activity_create(self):
        event = WebhookEvent.model_validate(self._payload())
        assert event.object_type == ObjectType.ACTIVITY
        assert event.aspect_type == AspectType.CREATE
        assert event.is_activity_create

    @pytest.mark.parametrize(
        "overrides",
        [
            {"aspect_type": "update", "updates": {"title": "New"}},
            {"aspect_type": "delete"},
            {"object_type": "athlete", "updates": {"authorized": "false"}},
        ],
    )
    def test_other_events_not_enriched(self, overrides):
        assert not WebhookEvent.model_validate(self._payload(**overrides)).is_activity_create

    def test_to_inbound_event(self):
        inbound = WebhookEvent.model_validate(self._payload()).to_inbound_event()
        assert inbound.activity_id == "1360128428"
        assert inbound.athlete_id == "134815"
        assert inbound.subscription_id == 120475
        assert inbound.event_time == datetime.fromtimestamp(1516126040, tz=timezone.utc)

    def test_missing_field_rejected(self):
        payload = self._payload()
        del payload["owner_id"]
        with pytest.raises(ValidationError):
            WebhookEvent.model_validate(payload)
