"""Command-line interface for the Strava weather service."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Any

import httpx

from strava_weather import __version__
from strava_weather.config import configure_logging, get_settings

logger = logging.getLogger(__name__)


def _print(data: Any) -> None:
    print(json.dumps(data, indent=2, default=str))


def _manager(client: httpx.AsyncClient):
    from strava_weather.subscriptions.manager import SubscriptionManager

    return SubscriptionManager.from_settings(get_settings(), client=client)


async def _subscription(args: argparse.Namespace) -> int:
    from strava_weather.providers.base import UpstreamError
    from strava_weather.subscriptions.manager import SubscriptionConflict
    from strava_weather.subscriptions.reconciler import ReconcileOutcome, StartupReconciler

    async with httpx.AsyncClient() as client:
        manager = _manager(client)
        try:
            if args.action == "status":
                subscription = await manager.view()
                _print(subscription.model_dump() if subscription else None)
                return 0

            if args.action == "create":
                if not await manager.verify_reachability(args.url):
                    print(f"Callback {args.url} failed verification", file=sys.stderr)
                    return 1
                subscription = await manager.create(args.url)
                _print(subscription.model_dump())
                return 0

            if args.action == "delete":
                if not await manager.delete(args.id):
                    print(f"Subscription {args.id} not found", file=sys.stderr)
                    return 1
                return 0

            if args.action == "verify":
                ok = await manager.verify_reachability(args.url)
                print("verified" if ok else "unreachable")
                return 0 if ok else 1

            # setup
            reconciler = StartupReconciler(manager, get_settings().reconciler_config())
            outcome = await reconciler.reconcile()
            print(outcome.value)
            return 0 if outcome in (ReconcileOutcome.EXISTING, ReconcileOutcome.CREATED) else 1

        except SubscriptionConflict as e:
            print(str(e), file=sys.stderr)
            return 1
        except UpstreamError as e:
            print(f"Strava API error: {e}", file=sys.stderr)
            return 1


async def _with_processor(args: argparse.Namespace) -> int:
    from strava_weather.database import SqlOutcomeLog, SqlUserDirectory, close_db, init_db
    from strava_weather.enrichment.processor import EventProcessor
    from strava_weather.providers.openweathermap import WeatherSource
    from strava_weather.providers.strava import ActivityGateway

    settings = get_settings()
    await init_db()
    try:
        async with httpx.AsyncClient() as client:
            processor = EventProcessor(
                directory=SqlUserDirectory(),
                gateway=ActivityGateway.from_settings(settings, client=client),
                weather=WeatherSource.from_settings(settings, client=client),
                outcome_log=SqlOutcomeLog(),
                sentinel=settings.enrichment_sentinel_enabled,
            )

            if args.command == "enrich":
                result = await processor.process_activity(
                    args.athlete_id, args.activity_id, force=args.force
                )
                _print(result.model_dump(mode="json", exclude={"weather"}))
                return 1 if result.failed else 0

            results = await processor.process_recent(args.athlete_id, days=args.days)
            for result in results:
                status = "enriched" if result.success else (
                    f"skipped ({result.reason.value})" if result.skipped
                    else f"failed ({result.stage.value})"
                )
                print(f"{result.activity_id}: {status}")
            return 1 if any(r.failed for r in results) else 0
    finally:
        await close_db()


async def _init_db() -> int:
    from strava_weather.database import close_db, create_tables, init_db

    await init_db()
    try:
        await create_tables()
    finally:
        await close_db()
    return 0


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "strava_weather.api:create_app",
        factory=True,
        host=args.host or settings.host,
        port=args.port or settings.port,
        log_level=settings.log_level.lower(),
    )
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="strava-weather",
        description="Strava Weather - add weather conditions to new Strava activities",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Override LOG_LEVEL",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Serve command
    serve_parser = subparsers.add_parser("serve", help="Run the webhook server")
    serve_parser.add_argument("--host", help="Bind address (default: HOST)")
    serve_parser.add_argument("--port", type=int, help="Port (default: PORT)")

    # Subscription commands
    sub_parser = subparsers.add_parser(
        "subscription", help="Manage the Strava push subscription"
    )
    sub_actions = sub_parser.add_subparsers(dest="action", required=True)
    sub_actions.add_parser("status", help="Show the current subscription")
    create_parser = sub_actions.add_parser("create", help="Verify a callback URL and subscribe")
    create_parser.add_argument("url", help="Public callback URL")
    delete_parser = sub_actions.add_parser("delete", help="Delete a subscription")
    delete_parser.add_argument("id", type=int, help="Subscription ID")
    verify_parser = sub_actions.add_parser("verify", help="Run the handshake against a URL")
    verify_parser.add_argument("url", help="Callback URL")
    sub_actions.add_parser("setup", help="Reconcile as the server does on startup")

    # Enrich command
    enrich_parser = subparsers.add_parser("enrich", help="Enrich a single activity")
    enrich_parser.add_argument("athlete_id", help="Strava athlete ID")
    enrich_parser.add_argument("activity_id", help="Strava activity ID")
    enrich_parser.add_argument(
        "--force",
        action="store_true",
        help="Append weather even if the description already has it",
    )

    # Backfill command
    backfill_parser = subparsers.add_parser(
        "backfill", help="Enrich an athlete's recent activities"
    )
    backfill_parser.add_argument("athlete_id", help="Strava athlete ID")
    backfill_parser.add_argument(
        "--days",
        type=int,
        default=30,
        help="How far back to look (default: 30)",
    )

    subparsers.add_parser("init-db", help="Create database tables")

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    configure_logging(args.log_level)

    if args.command == "serve":
        return _serve(args)
    if args.command == "subscription":
        return asyncio.run(_subscription(args))
    if args.command in ("enrich", "backfill"):
        return asyncio.run(_with_processor(args))
    if args.command == "init-db":
        return asyncio.run(_init_db())

    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
