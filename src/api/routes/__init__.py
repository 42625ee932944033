"""API route modules."""
from __future__ import annotations

from . import (
    activities,
    ai,
    auth,
    dashboard,
    deals,
    health,
    leads,
    notifications,
    pipeline,
    properties,
    tasks,
)

__all__ = [
    "activities",
    "ai",
    "auth",
    "dashboard",
    "deals",
    "health",
    "leads",
    "notifications",
    "pipeline",
    "properties",
    "tasks",
]
