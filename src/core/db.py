"""Database connection and session management."""
from __future__ import annotations

from contextlib import contextmanager
from typing import Generator, List

from sqlalchemy import create_engine, event, inspect, text
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import NullPool

from .config import get_settings
from .logging_config import get_logger

SETTINGS = get_settings()
LOGGER = get_logger(__name__)

# Required tables that MUST exist for the system to function
REQUIRED_TABLES = [
    "user",
    "lead",
    "property",
    "deal",
    "task",
    "activity",
    "notification",
    "lead_property_match",
]

_is_sqlite = SETTINGS.database_url.startswith("sqlite")


def _set_sqlite_pragma(dbapi_connection, connection_record) -> None:
    """Enforce foreign keys and enable WAL on every new SQLite connection."""
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA busy_timeout=30000")  # 30 second timeout
    cursor.close()


if _is_sqlite:
    # SQLite with NullPool - no connection pooling to avoid exhaustion issues
    engine = create_engine(
        SETTINGS.database_url,
        connect_args={"check_same_thread": False},
        poolclass=NullPool,
    )
    event.listen(engine, "connect", _set_sqlite_pragma)
else:
    # PostgreSQL/MySQL with connection pooling
    engine = create_engine(
        SETTINGS.database_url,
        pool_size=SETTINGS.db_pool_size,
        max_overflow=SETTINGS.db_max_overflow,
        pool_timeout=SETTINGS.db_pool_timeout,
        pool_pre_ping=True,
    )

# Session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


@contextmanager
def get_session() -> Generator[Session, None, None]:
    """
    Context manager for database sessions.

    Commits on success, rolls back on any exception.
    """
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


@contextmanager
def get_readonly_session() -> Generator[Session, None, None]:
    """Context manager for read-only database sessions."""
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


def _missing_tables(existing: List[str]) -> List[str]:
    return [t for t in REQUIRED_TABLES if t not in existing]


def init_db() -> dict:
    """
    Create any tables that do not exist yet.

    Existing tables are never altered; schema changes go through Alembic.

    Returns:
        Dict with initialization results.
    """
    from . import models  # noqa: F401

    result = {
        "status": "success",
        "tables_created": [],
        "tables_existing": [],
        "warnings": [],
    }

    try:
        existing_tables = set(inspect(engine).get_table_names())
        Base.metadata.create_all(bind=engine)
        final_tables = set(inspect(engine).get_table_names())

        result["tables_created"] = sorted(final_tables - existing_tables)
        result["tables_existing"] = sorted(existing_tables)
        if result["tables_created"]:
            LOGGER.info(f"Created tables: {result['tables_created']}")

        missing_required = _missing_tables(list(final_tables))
        if missing_required:
            result["warnings"].append(f"Missing required tables: {missing_required}")
            result["status"] = "warning"
    except Exception as e:
        result["status"] = "error"
        result["error"] = str(e)
        LOGGER.error(f"init_db failed: {e}", exc_info=True)

    return result


def validate_database() -> dict:
    """
    Validate database connection and required tables.

    Call this at application startup to ensure the database is ready.
    """
    result = {
        "status": "ok",
        "tables_found": [],
        "tables_missing": [],
        "errors": [],
    }

    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))

        existing_tables = inspect(engine).get_table_names()
        result["tables_found"] = existing_tables

        missing = _missing_tables(existing_tables)
        result["tables_missing"] = missing
        if missing:
            result["status"] = "missing_tables"
            result["errors"].append(f"Missing required tables: {missing}")
    except Exception as e:
        result["status"] = "error"
        result["errors"].append(str(e))

    return result


__all__ = [
    "Base",
    "engine",
    "SessionLocal",
    "get_session",
    "get_readonly_session",
    "init_db",
    "validate_database",
    "REQUIRED_TABLES",
]
