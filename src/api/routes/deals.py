"""Deal routes. Deals have no delete; a dead deal moves to ``lost``."""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from api.auth_deps import get_current_user
from api.deps import get_db, get_readonly_db
from core.models import User
from domain.deals import DealService
from domain.schemas import DealCreate, DealRead, DealUpdate, StatusMove, dump

router = APIRouter()


@router.get("")
async def list_deals(
    status_filter: Optional[str] = Query(default=None, alias="status"),
    lead_id: Optional[int] = Query(default=None, alias="leadId"),
    property_id: Optional[int] = Query(default=None, alias="propertyId"),
    limit: Optional[int] = Query(default=None, ge=1),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_readonly_db),
    current_user: User = Depends(get_current_user),
) -> List[Dict[str, Any]]:
    deals = DealService(db).list_deals(
        status=status_filter,
        lead_id=lead_id,
        property_id=property_id,
        limit=limit,
        offset=offset,
    )
    return [dump(DealRead, deal) for deal in deals]


@router.get("/{deal_id}")
async def get_deal(
    deal_id: int,
    db: Session = Depends(get_readonly_db),
    current_user: User = Depends(get_current_user),
) -> Dict[str, Any]:
    return dump(DealRead, DealService(db).get_deal(deal_id))


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_deal(
    body: DealCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Dict[str, Any]:
    """Create a deal; 422 when the lead or property does not exist."""
    deal = DealService(db).create_deal(body, actor_id=current_user.id)
    return dump(DealRead, deal)


@router.patch("/{deal_id}")
async def update_deal(
    deal_id: int,
    body: DealUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Dict[str, Any]:
    deal = DealService(db).update_deal(deal_id, body, actor_id=current_user.id)
    return dump(DealRead, deal)


@router.patch("/{deal_id}/status")
async def move_deal(
    deal_id: int,
    body: StatusMove,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Dict[str, Any]:
    result = DealService(db).update_status(deal_id, body.status, actor_id=current_user.id)
    return dump(DealRead, result.entity)
