"""Tests for the SQL repositories and token encryption.

Runs against in-memory SQLite through aiosqlite.
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select

from strava_weather.database import (
    Athlete,
    EnrichmentFailure,
    SqlOutcomeLog,
    SqlUserDirectory,
    close_db,
    create_tables,
    get_db,
    init_db,
)
from strava_weather.database.encryption import decrypt_token, encrypt_token
from strava_weather.models.outcome import FailureStage, ProcessingResult


@pytest.fixture
async def database():
    await init_db("sqlite+aiosqlite:///:memory:")
    await create_tables()
    yield
    await close_db()


class TestEncryption:
    """Tests for token encryption at rest."""

    def test_round_trip(self):
        encrypted = encrypt_token("athlete-token")
        assert encrypted != "athlete-token"
        assert decrypt_token(encrypted) == "athlete-token"

    def test_empty_stays_empty(self):
        assert encrypt_token("") == ""
        assert decrypt_token("") == ""

    def test_tampered_token_rejected(self):
        with pytest.raises(ValueError, match="Failed to decrypt"):
            decrypt_token("not-a-fernet-token")


class TestSqlUserDirectory:
    """Tests for SqlUserDirectory."""

    async def test_unknown_athlete(self, database):
        assert await SqlUserDirectory().find_by_athlete_id("134815") is None

    async def test_save_and_find(self, database):
        directory = SqlUserDirectory()
        await directory.save(
            "134815",
            access_token="athlete-token",
            refresh_token="refresh-token",
            expires_at=datetime.now(timezone.utc) + timedelta(hours=6),
            first_name="Test",
            last_name="Runner",
        )

        account = await directory.find_by_athlete_id("134815")

        assert account is not None
        assert account.athlete_id == "134815"
        assert account.access_token == "athlete-token"
        assert account.weather_enabled is True
        assert account.display_name == "Test Runner"

    async def test_tokens_encrypted_in_table(self, database):
        await SqlUserDirectory().save("134815", access_token="athlete-token")

        async with get_db() as session:
            row = (await session.execute(select(Athlete))).scalar_one()

        assert row.access_token_encrypted != "athlete-token"
        assert decrypt_token(row.access_token_encrypted) == "athlete-token"

    async def test_weather_disabled(self, database):
        await SqlUserDirectory().save("134815", access_token="t", weather_enabled=False)
        account = await SqlUserDirectory().find_by_athlete_id("134815")
        assert account.weather_enabled is False

    async def test_report_expired_then_refresh(self, database):
        directory = SqlUserDirectory()
        account = await directory.save("134815", access_token="old-token")

        await directory.report_expired_credential(account)
        async with get_db() as session:
            row = (await session.execute(select(Athlete))).scalar_one()
        assert row.credential_expired_at is not None

        await directory.save("134815", access_token="new-token")
        async with get_db() as session:
            row = (await session.execute(select(Athlete))).scalar_one()
        assert row.credential_expired_at is None
        assert (await directory.find_by_athlete_id("134815")).access_token == "new-token"

    async def test_undecryptable_token_treated_as_missing(self, database):
        async with get_db() as session:
            session.add(Athlete(strava_athlete_id="134815", access_token_encrypted="garbage"))
            await session.commit()

        assert await SqlUserDirectory().find_by_athlete_id("134815") is None


class TestSqlOutcomeLog:
    """Tests for SqlOutcomeLog."""

    async def test_record_and_list(self, database):
        log = SqlOutcomeLog()
        for activity_id, stage in (("1", FailureStage.WEATHER), ("2", FailureStage.UPDATE_ACTIVITY)):
            await log.record_failure(
                ProcessingResult(
                    activity_id=activity_id,
                    athlete_id="134815",
                    stage=stage,
                    error="boom",
                    elapsed_ms=120,
                )
            )

        failures = await log.recent()

        assert [f.activity_id for f in failures] == ["2", "1"]
        assert failures[0].stage == "update_activity"
        assert failures[0].strava_athlete_id == "134815"

    async def test_limit(self, database):
        log = SqlOutcomeLog()
        for i in range(5):
            await log.record_failure(
                ProcessingResult(activity_id=str(i), stage=FailureStage.INTERNAL, error="x")
            )

        assert len(await log.recent(limit=3)) == 3

    async def test_rows_persisted(self, database):
        await SqlOutcomeLog().record_failure(
            ProcessingResult(activity_id="9", stage=FailureStage.CREDENTIAL, error="401")
        )
        async with get_db() as session:
            rows = (await session.execute(select(EnrichmentFailure))).scalars().all()
        assert [(r.activity_id, r.stage, r.error) for r in rows] == [("9", "credential", "401")]


class TestConnection:
    async def test_get_db_requires_init(self):
        with pytest.raises(RuntimeError, match="not initialized"):
            async with get_db():
                pass

    async def test_init_logs_scheme_only(self, caplog):
        with caplog.at_level("INFO", logger="strava_weather.database.connection"):
            await init_db("sqlite+aiosqlite:///:memory:")
        await close_db()

        assert "Connecting to database (sqlite+aiosqlite)" in caplog.text
