"""Database module for the Strava weather service.

This module provides:
- SQLAlchemy async database connection
- Athlete and enrichment failure models
- Encrypted storage for Strava OAuth tokens
- SQL implementations of the enrichment pipeline's user directory and outcome log
"""

from strava_weather.database.connection import (
    close_db,
    create_tables,
    get_db,
    init_db,
)
from strava_weather.database.models import (
    Athlete,
    Base,
    EnrichmentFailure,
)
from strava_weather.database.repositories import SqlOutcomeLog, SqlUserDirectory

__all__ = [
    # Connection
    "get_db",
    "init_db",
    "close_db",
    "create_tables",
    # Models
    "Base",
    "Athlete",
    "EnrichmentFailure",
    # Repositories
    "SqlUserDirectory",
    "SqlOutcomeLog",
]
