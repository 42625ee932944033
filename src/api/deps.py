"""Shared FastAPI dependencies: database sessions and the AI assistant."""
from __future__ import annotations

from typing import Generator

from sqlalchemy.orm import Session

from core.db import SessionLocal
from llm.assistant import Assistant
from llm.assistant import get_assistant as _get_assistant


def get_db() -> Generator[Session, None, None]:
    """
    Request-scoped session; commits when the handler returns, rolls back on error.

    Yields:
        SQLAlchemy Session instance.
    """
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def get_readonly_db() -> Generator[Session, None, None]:
    """Session for read-only handlers; always rolled back."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.rollback()
        db.close()


def get_assistant() -> Assistant:
    """The process-wide assistant; overridden in tests."""
    return _get_assistant()


__all__ = ["get_db", "get_readonly_db", "get_assistant"]
