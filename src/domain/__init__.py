"""Domain layer for the CRM business logic.

Services live in their own modules (``domain.leads``, ``domain.deals`` ...)
and are imported from there; they bind to the database on import. Only the
store-free board projection is re-exported here, so the async client can
use it without touching the database.
"""
from __future__ import annotations

from .board import (
    PIPELINE_COLUMNS,
    PipelineKind,
    build_board,
    StatusColumn,
    group_by_status,
)

__all__ = [
    "PIPELINE_COLUMNS",
    "PipelineKind",
    "build_board",
    "StatusColumn",
    "group_by_status",
]
