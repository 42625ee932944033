"""Dashboard metrics route."""
from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from api.auth_deps import get_current_user
from api.deps import get_readonly_db
from core.models import User
from domain.dashboard import DashboardService

router = APIRouter()


@router.get("/metrics")
async def dashboard_metrics(
    db: Session = Depends(get_readonly_db),
    current_user: User = Depends(get_current_user),
) -> Dict[str, Any]:
    """Headline counts, revenue, lead funnel and the latest activities."""
    return DashboardService(db).get_metrics().to_dict()
