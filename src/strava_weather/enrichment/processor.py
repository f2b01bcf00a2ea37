"""Event-triggered enrichment pipeline.

``EventProcessor.handle`` runs once per inbound webhook event, after the
webhook has already been acknowledged. Each step is a guard that logs and
returns:

1. resolve the athlete; unknown athletes are skipped
2. skip athletes who disabled weather enrichment
3. fetch the activity with the athlete's bearer credential
4. skip activities without start coordinates
5. skip descriptions that already carry weather (duplicate delivery)
6. skip activities too old (or too far ahead) for the weather upstream
7. fetch weather for the start time and place
8. format the weather line
9. append it to the description
10. write the description back

Nothing escapes ``handle``. Failures are logged with the elapsed time,
recorded to the outcome log and dropped; there is no in-line retry. A
transient failure may heal on a later duplicate delivery from Strava.

The idempotency guard in step 5 is a read-then-write check against Strava,
not an atomic one. ``EventDispatcher`` serializes runs per activity so that
duplicates delivered to this process cannot interleave.
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timedelta, timezone

from strava_weather.enrichment.marker import (
    format_weather_line,
    has_weather,
    merge_description,
)
from strava_weather.enrichment.ports import AthleteAccount, OutcomeLog, UserDirectory
from strava_weather.models.event import InboundEvent
from strava_weather.models.outcome import FailureStage, ProcessingResult, SkipReason
from strava_weather.providers.base import CredentialExpired, NotFound, UpstreamError
from strava_weather.providers.openweathermap import WeatherSource
from strava_weather.providers.strava import ActivityGateway

logger = logging.getLogger(__name__)


class _Run:
    """Timing and result helpers for one pipeline run."""

    def __init__(self, activity_id: str, athlete_id: str):
        self.activity_id = activity_id
        self.athlete_id = athlete_id
        self.started = time.monotonic()

    @property
    def elapsed_ms(self) -> int:
        return int((time.monotonic() - self.started) * 1000)

    def log(self, message: str, level: int = logging.INFO) -> None:
        logger.log(level, f"[{self.elapsed_ms}ms] activity {self.activity_id}: {message}")

    def skipped(self, reason: SkipReason) -> ProcessingResult:
        self.log(f"skipped ({reason.value})")
        return ProcessingResult(
            activity_id=self.activity_id,
            athlete_id=self.athlete_id,
            skipped=True,
            reason=reason,
            elapsed_ms=self.elapsed_ms,
        )

    def failed(self, stage: FailureStage, error: str) -> ProcessingResult:
        self.log(f"FAILED at {stage.value}: {error}", logging.ERROR)
        return ProcessingResult(
            activity_id=self.activity_id,
            athlete_id=self.athlete_id,
            stage=stage,
            error=error,
            elapsed_ms=self.elapsed_ms,
        )


class EventProcessor:
    """Orchestrates one enrichment run per inbound event."""

    def __init__(
        self,
        directory: UserDirectory,
        gateway: ActivityGateway,
        weather: WeatherSource,
        outcome_log: OutcomeLog | None = None,
        sentinel: bool = False,
    ):
        self.directory = directory
        self.gateway = gateway
        self.weather = weather
        self.outcome_log = outcome_log
        self.sentinel = sentinel

    async def handle(self, event: InboundEvent) -> ProcessingResult:
        """Process a webhook event. Never raises."""
        return await self.process_activity(event.athlete_id, event.activity_id)

    async def process_activity(
        self,
        athlete_id: str,
        activity_id: str,
        force: bool = False,
    ) -> ProcessingResult:
        """Run the pipeline for one activity. Never raises.

        Args:
            athlete_id: Strava athlete ID of the owner
            activity_id: Strava activity ID
            force: Enrich even if the description already has weather
        """
        run = _Run(activity_id, athlete_id)
        run.log(f"start (athlete {athlete_id})")

        try:
            result = await self._run(run, force)
        except Exception as e:
            logger.exception(f"Unexpected error enriching activity {activity_id}")
            result = run.failed(FailureStage.INTERNAL, f"{e.__class__.__name__}: {e}")

        if result.failed and self.outcome_log is not None:
            try:
                await self.outcome_log.record_failure(result)
            except Exception:
                logger.exception(f"Could not record failure for activity {activity_id}")

        return result

    async def _run(self, run: _Run, force: bool) -> ProcessingResult:
        account = await self.directory.find_by_athlete_id(run.athlete_id)
        if account is None:
            return run.skipped(SkipReason.USER_NOT_FOUND)
        if not account.weather_enabled:
            return run.skipped(SkipReason.ENRICHMENT_DISABLED)

        try:
            activity = await self.gateway.fetch(run.activity_id, account.access_token)
        except NotFound:
            return run.skipped(SkipReason.ACTIVITY_NOT_FOUND)
        except CredentialExpired as e:
            return await self._credential_expired(run, account, e)
        except UpstreamError as e:
            return run.failed(FailureStage.FETCH_ACTIVITY, str(e))
        run.log(f"fetched {activity.name!r} ({activity.type})")

        if activity.coordinates is None:
            return run.skipped(SkipReason.NO_COORDINATES)
        if not force and has_weather(activity.description):
            return run.skipped(SkipReason.ALREADY_ENRICHED)
        if not self.weather.covers(activity.start_date):
            return run.skipped(SkipReason.OUTSIDE_WEATHER_WINDOW)

        lat, lon = activity.coordinates.to_tuple()
        observation = await self.weather.fetch(lat, lon, activity.start_date)
        if observation is None:
            return run.failed(FailureStage.WEATHER, "weather unavailable")

        line = format_weather_line(observation, sentinel=self.sentinel)
        description = merge_description(activity.description, line)

        try:
            await self.gateway.update_description(
                run.activity_id, account.access_token, description
            )
        except CredentialExpired as e:
            return await self._credential_expired(run, account, e)
        except UpstreamError as e:
            return run.failed(FailureStage.UPDATE_ACTIVITY, str(e))

        run.log(f"enriched: {line.strip()}")
        return ProcessingResult(
            activity_id=run.activity_id,
            athlete_id=run.athlete_id,
            success=True,
            weather=observation,
            description=description,
            elapsed_ms=run.elapsed_ms,
        )

    async def _credential_expired(
        self,
        run: _Run,
        account: AthleteAccount,
        error: CredentialExpired,
    ) -> ProcessingResult:
        # TODO: hand off to the token refresh workflow and retry once it exists
        await self.directory.report_expired_credential(account)
        return run.failed(FailureStage.CREDENTIAL, str(error))

    async def process_recent(
        self,
        athlete_id: str,
        days: int = 30,
        pause_seconds: float = 1.0,
        force: bool = False,
    ) -> list[ProcessingResult]:
        """Enrich an athlete's recent activities one by one.

        Activities are processed sequentially with a pause in between to
        stay well inside Strava's rate limits. Only activities inside the
        weather source's historical window can actually be enriched.
        """
        account = await self.directory.find_by_athlete_id(athlete_id)
        if account is None or not account.weather_enabled:
            logger.info(f"Athlete {athlete_id} not found or enrichment disabled")
            return []

        since = datetime.now(timezone.utc) - timedelta(days=days)
        try:
            activities = await self.gateway.list_activities(account.access_token, since)
        except CredentialExpired:
            await self.directory.report_expired_credential(account)
            logger.error(f"Credential expired for athlete {athlete_id}")
            return []
        except UpstreamError as e:
            logger.error(f"Could not list activities for athlete {athlete_id}: {e}")
            return []

        logger.info(f"Processing {len(activities)} recent activities for athlete {athlete_id}")
        results: list[ProcessingResult] = []
        for index, activity in enumerate(activities):
            if index:
                await asyncio.sleep(pause_seconds)
            results.append(await self.process_activity(athlete_id, activity.id, force=force))

        succeeded = sum(1 for r in results if r.success)
        skipped = sum(1 for r in results if r.skipped)
        logger.info(
            f"Batch complete for athlete {athlete_id}: {succeeded} enriched, "
            f"{skipped} skipped, {len(results) - succeeded - skipped} failed"
        )
        return results
