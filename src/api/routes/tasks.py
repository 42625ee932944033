"""Task routes."""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from api.auth_deps import get_current_user
from api.deps import get_db, get_readonly_db
from core.models import User
from domain.schemas import StatusMove, TaskCreate, TaskRead, TaskUpdate, dump
from domain.tasks import TaskService

router = APIRouter()


@router.get("")
async def list_tasks(
    status_filter: Optional[str] = Query(default=None, alias="status"),
    assigned_to: Optional[int] = Query(default=None, alias="assignedTo"),
    task_type: Optional[str] = Query(default=None, alias="type"),
    lead_id: Optional[int] = Query(default=None, alias="leadId"),
    limit: Optional[int] = Query(default=None, ge=1),
    db: Session = Depends(get_readonly_db),
    current_user: User = Depends(get_current_user),
) -> List[Dict[str, Any]]:
    tasks = TaskService(db).list_tasks(
        status=status_filter,
        assigned_to=assigned_to,
        task_type=task_type,
        lead_id=lead_id,
        limit=limit,
    )
    return [dump(TaskRead, task) for task in tasks]


@router.get("/{task_id}")
async def get_task(
    task_id: int,
    db: Session = Depends(get_readonly_db),
    current_user: User = Depends(get_current_user),
) -> Dict[str, Any]:
    return dump(TaskRead, TaskService(db).get_task(task_id))


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_task(
    body: TaskCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Dict[str, Any]:
    task = TaskService(db).create_task(body, actor_id=current_user.id)
    return dump(TaskRead, task)


@router.patch("/{task_id}")
async def update_task(
    task_id: int,
    body: TaskUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Dict[str, Any]:
    task = TaskService(db).update_task(task_id, body, actor_id=current_user.id)
    return dump(TaskRead, task)


@router.patch("/{task_id}/status")
async def move_task(
    task_id: int,
    body: StatusMove,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Dict[str, Any]:
    """Completing a task stamps ``completedAt``; leaving completed clears it."""
    result = TaskService(db).update_status(task_id, body.status, actor_id=current_user.id)
    return dump(TaskRead, result.entity)


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_task(
    task_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Response:
    TaskService(db).delete_task(task_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
