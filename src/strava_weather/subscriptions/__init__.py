"""Push subscription lifecycle."""

from strava_weather.subscriptions.manager import SubscriptionConflict, SubscriptionManager
from strava_weather.subscriptions.reconciler import (
    ReconcileOutcome,
    ReconcilerConfig,
    StartupReconciler,
)

__all__ = [
    "SubscriptionConflict",
    "SubscriptionManager",
    "ReconcileOutcome",
    "ReconcilerConfig",
    "StartupReconciler",
]
