"""Database configuration — connection and pool settings from environment.

``DATABASE_URL`` wins when set (any ``postgresql://`` prefix is switched to
the asyncpg driver).  Otherwise the URL is assembled from ``PG_HOST``,
``PG_PORT``, ``PG_USER``, ``PG_PASSWORD`` and ``PG_DATABASE``.
"""

import os
from dataclasses import dataclass

_ASYNC_SCHEME = "postgresql+asyncpg://"


@dataclass(frozen=True)
class DatabaseSettings:
    """Immutable case-database settings."""

    url: str
    pool_size: int = 5
    max_overflow: int = 10
    # Log every SQL statement (PG_ECHO)
    echo: bool = False


def get_async_url() -> str:
    """Return an asyncpg connection URL for the case database."""
    url = os.getenv("DATABASE_URL")
    if url:
        if url.startswith("postgresql://"):
            return _ASYNC_SCHEME + url[len("postgresql://"):]
        return url
    user = os.getenv("PG_USER", "triage")
    password = os.getenv("PG_PASSWORD", "triage")
    host = os.getenv("PG_HOST", "localhost")
    port = os.getenv("PG_PORT", "5432")
    database = os.getenv("PG_DATABASE", "triage")
    return f"{_ASYNC_SCHEME}{user}:{password}@{host}:{port}/{database}"


def load_database_settings() -> DatabaseSettings:
    """Build database settings from environment variables."""
    return DatabaseSettings(
        url=get_async_url(),
        pool_size=int(os.getenv("PG_POOL_SIZE", "5")),
        max_overflow=int(os.getenv("PG_MAX_OVERFLOW", "10")),
        echo=os.getenv("PG_ECHO", "").lower() in ("1", "true", "yes"),
    )
