"""Database models.

## Security Notes

- Strava access/refresh tokens are encrypted at rest using Fernet
- The encryption key is derived from the application secret
- PostgreSQL should be configured with SSL and disk encryption

## Schema Overview

```
athletes                 connected Strava athletes and their tokens
enrichment_failures      terminal failures of the enrichment pipeline
```
"""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    Uuid,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all database models."""

    pass


class Athlete(Base):
    """A Strava athlete who connected the application.

    Rows are written by the OAuth login flow; the enrichment pipeline only
    reads them (and flags rejected credentials).
    """

    __tablename__ = "athletes"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    strava_athlete_id: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    first_name: Mapped[str | None] = mapped_column(String(255))
    last_name: Mapped[str | None] = mapped_column(String(255))

    weather_enabled: Mapped[bool] = mapped_column(Boolean, default=True)

    # Encrypted OAuth tokens
    access_token_encrypted: Mapped[str] = mapped_column(Text, nullable=False)
    refresh_token_encrypted: Mapped[str | None] = mapped_column(Text)
    token_expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    credential_expired_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    @property
    def display_name(self) -> str | None:
        name = " ".join(part for part in (self.first_name, self.last_name) if part)
        return name or None

    def __repr__(self) -> str:
        return f"<Athlete {self.strava_athlete_id}>"


class EnrichmentFailure(Base):
    """A webhook event whose enrichment failed and was dropped.

    Kept so failures can be diagnosed and replayed (``strava-weather enrich``).
    """

    __tablename__ = "enrichment_failures"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    activity_id: Mapped[str] = mapped_column(String(32), nullable=False)
    strava_athlete_id: Mapped[str | None] = mapped_column(String(32))
    stage: Mapped[str] = mapped_column(String(32), nullable=False)
    error: Mapped[str | None] = mapped_column(Text)
    elapsed_ms: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        Index("ix_enrichment_failures_activity", "activity_id"),
        Index("ix_enrichment_failures_created", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<EnrichmentFailure {self.activity_id} at {self.stage}>"
