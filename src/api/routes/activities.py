"""Activity log routes (read-only; the log is append-only)."""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from api.auth_deps import get_current_user
from api.deps import get_readonly_db
from core.models import User
from domain.schemas import ActivityRead, dump
from services.activity import ActivityLog

router = APIRouter()


@router.get("")
async def list_activities(
    lead_id: Optional[int] = Query(default=None, alias="leadId"),
    property_id: Optional[int] = Query(default=None, alias="propertyId"),
    deal_id: Optional[int] = Query(default=None, alias="dealId"),
    limit: Optional[int] = Query(default=None, ge=1, le=200),
    db: Session = Depends(get_readonly_db),
    current_user: User = Depends(get_current_user),
) -> List[Dict[str, Any]]:
    activities = ActivityLog(db).list_activities(
        lead_id=lead_id,
        property_id=property_id,
        deal_id=deal_id,
        limit=limit,
    )
    return [dump(ActivityRead, activity) for activity in activities]
