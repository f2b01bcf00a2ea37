"""Tests for startup reconciliation of the push subscription."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from strava_weather.models.subscription import Subscription
from strava_weather.providers.base import UpstreamError
from strava_weather.subscriptions.manager import SubscriptionManager
from strava_weather.subscriptions.reconciler import (
    ReconcileOutcome,
    ReconcilerConfig,
    StartupReconciler,
)

EXISTING = Subscription(id=120475, callback_url="https://app.example.com/api/strava/webhook")


@pytest.fixture
def manager() -> MagicMock:
    mock = MagicMock(spec=SubscriptionManager)
    mock.view = AsyncMock(return_value=None)
    mock.verify_reachability = AsyncMock(return_value=True)
    mock.create = AsyncMock(
        side_effect=lambda url: Subscription(id=200001, callback_url=url)
    )
    mock.delete = AsyncMock(return_value=True)
    return mock


class TestCallbackUrl:
    """Tests for ReconcilerConfig.callback_url."""

    def test_production_uses_public_url(self):
        config = ReconcilerConfig(
            public_base_url="https://app.example.com",
            tunnel_url="https://abcd.ngrok-free.app",
            is_production=True,
        )
        assert config.callback_url() == "https://app.example.com/api/strava/webhook"

    def test_development_uses_tunnel_only(self):
        config = ReconcilerConfig(public_base_url="https://app.example.com")
        assert config.callback_url() is None

        config = ReconcilerConfig(tunnel_url="abcd.ngrok-free.app/")
        assert config.callback_url() == "https://abcd.ngrok-free.app/api/strava/webhook"

    def test_custom_path(self):
        config = ReconcilerConfig(tunnel_url="https://t.example", webhook_path="hooks/strava")
        assert config.callback_url() == "https://t.example/hooks/strava"

    def test_from_settings(self, monkeypatch):
        from strava_weather.config import get_settings

        monkeypatch.setenv("ENVIRONMENT", "production")
        monkeypatch.setenv("APP_URL", "https://app.example.com/")
        monkeypatch.setenv("CLEANUP_WEBHOOK_ON_SHUTDOWN", "true")
        get_settings.cache_clear()

        config = get_settings().reconciler_config()

        assert config.is_production
        assert config.cleanup_on_shutdown
        assert config.callback_url() == "https://app.example.com/api/strava/webhook"


class TestReconcile:
    """Tests for StartupReconciler.reconcile."""

    async def test_existing_subscription_left_alone(self, manager):
        manager.view.return_value = EXISTING
        reconciler = StartupReconciler(manager, ReconcilerConfig(tunnel_url="https://t.example"))

        assert await reconciler.reconcile() == ReconcileOutcome.EXISTING
        manager.create.assert_not_called()

    async def test_no_tunnel_in_development_never_creates(self, manager):
        reconciler = StartupReconciler(
            manager, ReconcilerConfig(public_base_url="https://app.example.com")
        )

        assert await reconciler.reconcile() == ReconcileOutcome.NO_CALLBACK_URL
        manager.verify_reachability.assert_not_called()
        manager.create.assert_not_called()

    async def test_no_app_url_in_production(self, manager):
        reconciler = StartupReconciler(
            manager, ReconcilerConfig(tunnel_url="https://t.example", is_production=True)
        )

        assert await reconciler.reconcile() == ReconcileOutcome.NO_CALLBACK_URL
        manager.create.assert_not_called()

    async def test_unreachable_callback_not_subscribed(self, manager):
        manager.verify_reachability.return_value = False
        reconciler = StartupReconciler(manager, ReconcilerConfig(tunnel_url="https://t.example"))

        assert await reconciler.reconcile() == ReconcileOutcome.UNREACHABLE
        manager.create.assert_not_called()

    async def test_creates_after_verification(self, manager):
        reconciler = StartupReconciler(manager, ReconcilerConfig(tunnel_url="https://t.example"))

        assert await reconciler.reconcile() == ReconcileOutcome.CREATED
        manager.verify_reachability.assert_awaited_once_with("https://t.example/api/strava/webhook")
        manager.create.assert_awaited_once_with("https://t.example/api/strava/webhook")

    async def test_failures_never_escape(self, manager):
        manager.view.side_effect = UpstreamError("boom", service="strava_push", status_code=500)
        reconciler = StartupReconciler(manager, ReconcilerConfig(tunnel_url="https://t.example"))

        assert await reconciler.reconcile() == ReconcileOutcome.FAILED

    async def test_unexpected_errors_never_escape(self, manager):
        manager.create.side_effect = RuntimeError("bug")
        reconciler = StartupReconciler(manager, ReconcilerConfig(tunnel_url="https://t.example"))

        assert await reconciler.reconcile() == ReconcileOutcome.FAILED


class TestCleanup:
    """Tests for StartupReconciler.cleanup."""

    async def test_development_deletes(self, manager):
        manager.view.return_value = EXISTING
        reconciler = StartupReconciler(manager, ReconcilerConfig())

        assert await reconciler.cleanup() is True
        manager.delete.assert_awaited_once_with(120475)

    async def test_production_keeps_by_default(self, manager):
        manager.view.return_value = EXISTING
        reconciler = StartupReconciler(manager, ReconcilerConfig(is_production=True))

        assert await reconciler.cleanup() is False
        manager.view.assert_not_called()
        manager.delete.assert_not_called()

    async def test_production_with_flag_deletes(self, manager):
        manager.view.return_value = EXISTING
        config = ReconcilerConfig(is_production=True, cleanup_on_shutdown=True)

        assert await StartupReconciler(manager, config).cleanup() is True

    async def test_nothing_to_delete(self, manager):
        assert await StartupReconciler(manager, ReconcilerConfig()).cleanup() is False
        manager.delete.assert_not_called()

    async def test_errors_swallowed(self, manager):
        manager.view.side_effect = UpstreamError("down", service="strava_push")
        assert await StartupReconciler(manager, ReconcilerConfig()).cleanup() is False
