"""Database engine helpers for the embedded and hosted backends."""

from __future__ import annotations

from pathlib import Path

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine

__all__ = [
    "SQLITE_LOWER_FUNCTION",
    "create_postgres_engine",
    "create_sqlite_engine",
    "normalize_postgres_url",
]

POSTGRES_DRIVER_PREFIX = "postgresql+psycopg://"
_BARE_POSTGRES_PREFIXES = ("postgres://", "postgresql://")

# Built-in lower() and LIKE only fold ASCII on SQLite.
SQLITE_LOWER_FUNCTION = "unicode_lower"


def _unicode_lower(value):
    if value is None:
        return None
    return str(value).lower()


def normalize_postgres_url(url: str) -> str:
    """Point bare `postgres://` URLs (as issued by hosting providers) at psycopg."""

    for prefix in _BARE_POSTGRES_PREFIXES:
        if url.startswith(prefix):
            return POSTGRES_DRIVER_PREFIX + url[len(prefix) :]
    return url


def create_postgres_engine(url: str, *, echo: bool = False) -> Engine:
    """Engine for the hosted backend; connections are opened lazily."""

    return create_engine(
        normalize_postgres_url(url),
        echo=echo,
        future=True,
        pool_pre_ping=True,
    )


def create_sqlite_engine(path: str | Path, *, echo: bool = False) -> Engine:
    """Engine for the embedded single-file backend running in WAL mode."""

    db_path = Path(path).expanduser()
    if db_path.parent and not db_path.parent.exists():
        db_path.parent.mkdir(parents=True, exist_ok=True)
    engine = create_engine(
        f"sqlite:///{db_path}",
        echo=echo,
        future=True,
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragmas(dbapi_connection, _connection_record) -> None:
        dbapi_connection.create_function(
            SQLITE_LOWER_FUNCTION, 1, _unicode_lower, deterministic=True
        )
        cursor = dbapi_connection.cursor()
        try:
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA busy_timeout=5000")
        finally:
            cursor.close()

    return engine
