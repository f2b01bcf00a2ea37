"""SQL-backed implementations of the enrichment pipeline's collaborators."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import select

from strava_weather.database.connection import get_db
from strava_weather.database.encryption import decrypt_token, encrypt_token
from strava_weather.database.models import Athlete, EnrichmentFailure
from strava_weather.enrichment.ports import AthleteAccount, OutcomeLog, UserDirectory
from strava_weather.models.outcome import ProcessingResult

logger = logging.getLogger(__name__)


class SqlUserDirectory(UserDirectory):
    """Resolves athletes from the ``athletes`` table."""

    async def find_by_athlete_id(self, athlete_id: str) -> AthleteAccount | None:
        async with get_db() as session:
            result = await session.execute(
                select(Athlete).where(Athlete.strava_athlete_id == str(athlete_id))
            )
            athlete = result.scalar_one_or_none()

        if athlete is None:
            return None

        try:
            access_token = decrypt_token(athlete.access_token_encrypted)
        except ValueError:
            logger.error(f"Stored token for athlete {athlete_id} cannot be decrypted")
            return None

        if athlete.credential_expired_at is not None:
            logger.debug(
                f"Athlete {athlete_id} credential was rejected at "
                f"{athlete.credential_expired_at.isoformat()}"
            )

        return AthleteAccount(
            user_id=str(athlete.id),
            athlete_id=athlete.strava_athlete_id,
            access_token=access_token,
            weather_enabled=athlete.weather_enabled,
            display_name=athlete.display_name,
        )

    async def report_expired_credential(self, account: AthleteAccount) -> None:
        async with get_db() as session:
            result = await session.execute(
                select(Athlete).where(Athlete.strava_athlete_id == account.athlete_id)
            )
            athlete = result.scalar_one_or_none()
            if athlete is None:
                return
            athlete.credential_expired_at = datetime.now(timezone.utc)
            await session.commit()

        logger.warning(f"Marked credential of athlete {account.athlete_id} as expired")

    async def save(
        self,
        athlete_id: str,
        access_token: str,
        refresh_token: str | None = None,
        expires_at: datetime | None = None,
        first_name: str | None = None,
        last_name: str | None = None,
        weather_enabled: bool | None = None,
    ) -> AthleteAccount:
        """Insert or update an athlete after a successful OAuth exchange.

        Storing a fresh token clears any previous expired-credential flag.
        """
        async with get_db() as session:
            result = await session.execute(
                select(Athlete).where(Athlete.strava_athlete_id == str(athlete_id))
            )
            athlete = result.scalar_one_or_none()
            if athlete is None:
                athlete = Athlete(strava_athlete_id=str(athlete_id), weather_enabled=True)
                session.add(athlete)

            athlete.access_token_encrypted = encrypt_token(access_token)
            if refresh_token is not None:
                athlete.refresh_token_encrypted = encrypt_token(refresh_token)
            athlete.token_expires_at = expires_at
            athlete.credential_expired_at = None
            if first_name is not None:
                athlete.first_name = first_name
            if last_name is not None:
                athlete.last_name = last_name
            if weather_enabled is not None:
                athlete.weather_enabled = weather_enabled

            await session.commit()
            await session.refresh(athlete)

            return AthleteAccount(
                user_id=str(athlete.id),
                athlete_id=athlete.strava_athlete_id,
                access_token=access_token,
                weather_enabled=athlete.weather_enabled,
                display_name=athlete.display_name,
            )


class SqlOutcomeLog(OutcomeLog):
    """Appends failed runs to the ``enrichment_failures`` table."""

    async def record_failure(self, result: ProcessingResult) -> None:
        async with get_db() as session:
            session.add(
                EnrichmentFailure(
                    activity_id=result.activity_id,
                    strava_athlete_id=result.athlete_id,
                    stage=result.stage.value if result.stage else "unknown",
                    error=result.error,
                    elapsed_ms=result.elapsed_ms,
                )
            )
            await session.commit()

    async def recent(self, limit: int = 50) -> list[EnrichmentFailure]:
        """Most recent failures first."""
        async with get_db() as session:
            result = await session.execute(
                select(EnrichmentFailure)
                .order_by(EnrichmentFailure.created_at.desc(), EnrichmentFailure.id.desc())
                .limit(limit)
            )
            return list(result.scalars().all())
