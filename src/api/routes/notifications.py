"""Notification routes, always scoped to the calling user."""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from api.auth_deps import get_current_user
from api.deps import get_db, get_readonly_db
from core.logging_config import get_logger
from core.models import User
from domain.schemas import NotificationCreate, NotificationRead, dump
from services.notification import NotificationService

router = APIRouter()
LOGGER = get_logger(__name__)


@router.get("")
async def list_notifications(
    is_read: Optional[bool] = Query(default=None, alias="isRead"),
    limit: Optional[int] = Query(default=None, ge=1, le=200),
    db: Session = Depends(get_readonly_db),
    current_user: User = Depends(get_current_user),
) -> List[Dict[str, Any]]:
    notifications = NotificationService(db).list_notifications(
        current_user.id, is_read=is_read, limit=limit
    )
    return [dump(NotificationRead, n) for n in notifications]


@router.get("/unread-count")
async def unread_count(
    db: Session = Depends(get_readonly_db),
    current_user: User = Depends(get_current_user),
) -> Dict[str, int]:
    return {"count": NotificationService(db).unread_count(current_user.id)}


# Registered before "/{notification_id}/read" so "read-all" is not taken for an id.
@router.patch("/read-all")
async def mark_all_read(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Dict[str, int]:
    """Mark every unread notification read; returns how many changed."""
    return {"updated": NotificationService(db).mark_all_read(current_user.id)}


@router.patch("/{notification_id}/read")
async def mark_read(
    notification_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Dict[str, Any]:
    """Idempotent; 404 for ids that are missing or belong to someone else."""
    notification = NotificationService(db).mark_read(current_user.id, notification_id)
    return dump(NotificationRead, notification)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_notification(
    body: NotificationCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Dict[str, Any]:
    notification = NotificationService(db).create(
        user_id=current_user.id,
        notification_type=body.type,
        title=body.title,
        message=body.message,
        action_url=body.action_url,
        entity_type=body.entity_type,
        entity_id=body.entity_id,
        metadata=body.metadata,
    )
    return dump(NotificationRead, notification)
