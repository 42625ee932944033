"""Grouped pipeline boards computed server-side."""
from __future__ import annotations

from typing import Any, Callable, Dict, List, Tuple

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from api.auth_deps import get_current_user
from api.deps import get_readonly_db
from core.config import get_settings
from core.models import User
from domain.deals import DealService
from domain.leads import LeadService
from domain.pipeline import PipelineKind, build_board
from domain.properties import PropertyService
from domain.schemas import DealRead, LeadRead, PropertyRead, TaskRead, dump
from domain.tasks import TaskService

router = APIRouter()
SETTINGS = get_settings()


def _rows(kind: PipelineKind, db: Session) -> Tuple[List[Any], Callable[[Any], Dict[str, Any]]]:
    if kind is PipelineKind.LEAD:
        rows = LeadService(db).list_leads(limit=SETTINGS.lead_list_max_limit)
        return rows, lambda row: dump(LeadRead, row)
    if kind is PipelineKind.PROPERTY:
        rows = PropertyService(db).list_properties(limit=SETTINGS.property_list_max_limit)
        return rows, lambda row: dump(PropertyRead, row)
    if kind is PipelineKind.DEAL:
        return DealService(db).list_deals(), lambda row: dump(DealRead, row)
    return TaskService(db).list_tasks(), lambda row: dump(TaskRead, row)


@router.get("/{kind}")
async def pipeline_board(
    kind: PipelineKind,
    db: Session = Depends(get_readonly_db),
    current_user: User = Depends(get_current_user),
) -> Dict[str, Any]:
    """
    Board for ``kind`` (lead, property, deal or task).

    Rows whose status has no column (for example ``nurturing`` leads) are
    left off the board.
    """
    rows, serialize = _rows(kind, db)
    return build_board(kind, rows, serialize)
