"""Core utility functions."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Iterable, Optional


def utcnow() -> datetime:
    """Get current UTC datetime with timezone info. Always use this instead of datetime.now()."""
    return datetime.now(timezone.utc)


def ensure_aware(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Ensure a datetime is timezone-aware (UTC).

    SQLite stores datetimes without timezone info, so we need to make them
    aware before comparing with utcnow().
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def isoformat(dt: Optional[datetime]) -> Optional[str]:
    """Serialize a datetime as ISO-8601 UTC, or None."""
    aware = ensure_aware(dt)
    return aware.isoformat() if aware else None


def clamp(value: float, low: float = 0, high: float = 100) -> int:
    """Clamp a numeric value into [low, high] and round to int."""
    return int(round(max(low, min(high, value))))


def normalize_choice(value: Any, choices: Iterable[str], aliases: Optional[dict] = None) -> Optional[str]:
    """
    Map a raw status/choice string onto a canonical value.

    Matching is case-insensitive, treats spaces and hyphens as underscores and
    consults the alias table. Returns None when nothing matches.
    """
    if value is None:
        return None
    key = str(value).strip().lower().replace("-", "_").replace(" ", "_")
    choice_set = set(choices)
    if key in choice_set:
        return key
    if aliases and key in aliases:
        return aliases[key]
    return None


__all__ = [
    "utcnow",
    "ensure_aware",
    "isoformat",
    "clamp",
    "normalize_choice",
]
