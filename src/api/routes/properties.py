"""Property listing routes."""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from api.auth_deps import get_current_user
from api.deps import get_db, get_readonly_db
from core.models import User
from domain.properties import PropertyService
from domain.schemas import PropertyCreate, PropertyRead, PropertyUpdate, StatusMove, dump

router = APIRouter()


@router.get("")
async def list_properties(
    status_filter: Optional[str] = Query(default=None, alias="status"),
    property_type: Optional[str] = Query(default=None, alias="propertyType"),
    search: Optional[str] = Query(default=None),
    limit: Optional[int] = Query(default=None, ge=1),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_readonly_db),
    current_user: User = Depends(get_current_user),
) -> List[Dict[str, Any]]:
    """Listings newest-first; ``limit`` defaults to 25 and is capped at 50."""
    properties = PropertyService(db).list_properties(
        status=status_filter,
        property_type=property_type,
        search=search,
        limit=limit,
        offset=offset,
    )
    return [dump(PropertyRead, prop) for prop in properties]


@router.get("/{property_id}")
async def get_property(
    property_id: int,
    db: Session = Depends(get_readonly_db),
    current_user: User = Depends(get_current_user),
) -> Dict[str, Any]:
    return dump(PropertyRead, PropertyService(db).get_property(property_id))


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_property(
    body: PropertyCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Dict[str, Any]:
    prop = PropertyService(db).create_property(body, actor_id=current_user.id)
    return dump(PropertyRead, prop)


@router.patch("/{property_id}")
async def update_property(
    property_id: int,
    body: PropertyUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Dict[str, Any]:
    prop = PropertyService(db).update_property(property_id, body, actor_id=current_user.id)
    return dump(PropertyRead, prop)


@router.patch("/{property_id}/status")
async def move_property(
    property_id: int,
    body: StatusMove,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Dict[str, Any]:
    result = PropertyService(db).update_status(property_id, body.status, actor_id=current_user.id)
    return dump(PropertyRead, result.entity)


@router.delete("/{property_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_property(
    property_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Response:
    PropertyService(db).delete_property(property_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
