"""Board columns and the grouping projection.

Pure data and functions with no store dependency, shared by the server board
endpoint and the client pipeline views.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Mapping, Sequence, Tuple

from core.logging_config import get_logger

LOGGER = get_logger(__name__)


class PipelineKind(str, enum.Enum):
    """Entity kinds that move through a status pipeline."""
    LEAD = "lead"
    PROPERTY = "property"
    DEAL = "deal"
    TASK = "task"


@dataclass(frozen=True)
class StatusColumn:
    """One board column: status id, display label and color token."""
    id: str
    label: str
    color: str

    def to_dict(self) -> Dict[str, str]:
        return {"id": self.id, "label": self.label, "color": self.color}


LEAD_COLUMNS: Tuple[StatusColumn, ...] = (
    StatusColumn("new", "New Leads", "blue"),
    StatusColumn("contacted", "Contacted", "yellow"),
    StatusColumn("qualified", "Qualified", "green"),
    StatusColumn("tour", "Tour Scheduled", "purple"),
    StatusColumn("offer", "Offer Made", "orange"),
    StatusColumn("closed", "Closed", "emerald"),
    StatusColumn("lost", "Lost", "red"),
)

PROPERTY_COLUMNS: Tuple[StatusColumn, ...] = (
    StatusColumn("available", "Available", "green"),
    StatusColumn("pending", "Under Contract", "yellow"),
    StatusColumn("sold", "Sold", "blue"),
    StatusColumn("withdrawn", "Off Market", "gray"),
)

DEAL_COLUMNS: Tuple[StatusColumn, ...] = (
    StatusColumn("offer", "Offer", "blue"),
    StatusColumn("inspection", "Inspection", "yellow"),
    StatusColumn("legal", "Legal Review", "purple"),
    StatusColumn("payment", "Payment", "orange"),
    StatusColumn("handover", "Handover", "green"),
)

TASK_COLUMNS: Tuple[StatusColumn, ...] = (
    StatusColumn("pending", "Pending", "gray"),
    StatusColumn("in_progress", "In Progress", "blue"),
    StatusColumn("completed", "Completed", "green"),
    StatusColumn("cancelled", "Cancelled", "red"),
)

PIPELINE_COLUMNS: Dict[PipelineKind, Tuple[StatusColumn, ...]] = {
    PipelineKind.LEAD: LEAD_COLUMNS,
    PipelineKind.PROPERTY: PROPERTY_COLUMNS,
    PipelineKind.DEAL: DEAL_COLUMNS,
    PipelineKind.TASK: TASK_COLUMNS,
}


def _default_status_of(item: Any) -> Any:
    if isinstance(item, Mapping):
        return item.get("status")
    return getattr(item, "status", None)


def group_by_status(
    items: Iterable[Any],
    columns: Sequence[StatusColumn],
    status_of: Callable[[Any], Any] = _default_status_of,
) -> Dict[str, List[Any]]:
    """
    Partition items into one bucket per column, in column order.

    The partition is stable: items keep their input order inside a bucket.
    Items whose status matches no column appear in no bucket.
    """
    buckets: Dict[str, List[Any]] = {column.id: [] for column in columns}
    dropped = 0
    for item in items:
        bucket = buckets.get(status_of(item))
        if bucket is None:
            dropped += 1
            continue
        bucket.append(item)
    if dropped:
        LOGGER.debug(f"group_by_status dropped {dropped} item(s) with no matching column")
    return buckets


def build_board(
    kind: PipelineKind,
    items: Iterable[Any],
    serialize: Callable[[Any], Any] = lambda item: item,
) -> Dict[str, Any]:
    """Grouped board payload for ``kind``: every column with its items."""
    kind = PipelineKind(kind)
    columns = PIPELINE_COLUMNS[kind]
    buckets = group_by_status(items, columns)
    return {
        "kind": kind.value,
        "columns": [
            {**column.to_dict(), "items": [serialize(item) for item in buckets[column.id]]}
            for column in columns
        ],
    }


__all__ = [
    "PipelineKind",
    "StatusColumn",
    "LEAD_COLUMNS",
    "PROPERTY_COLUMNS",
    "DEAL_COLUMNS",
    "TASK_COLUMNS",
    "PIPELINE_COLUMNS",
    "group_by_status",
    "build_board",
]
