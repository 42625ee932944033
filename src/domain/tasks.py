"""Task domain service."""
from __future__ import annotations

from typing import List, Optional

from sqlalchemy.orm import Session

from core.config import get_settings
from core.exceptions import MissingReferenceError, NotFoundError
from core.logging_config import get_logger
from core.models import Deal, Lead, Property, Task, TaskStatus
from core.utils import utcnow
from domain.leads import clamp_limit
from domain.pipeline import MoveResult, PipelineKind, StatusMover
from domain.schemas import TaskCreate, TaskUpdate
from services.activity import ActivityLog, ActivityType

LOGGER = get_logger(__name__)
SETTINGS = get_settings()


class TaskService:
    """Service for tasks. Tasks are hard deleted."""

    def __init__(self, session: Session, mover: Optional[StatusMover] = None) -> None:
        self.session = session
        self.activity_log = ActivityLog(session)
        self.mover = mover or StatusMover(session, activity_log=self.activity_log)

    def list_tasks(
        self,
        status: Optional[str] = None,
        assigned_to: Optional[int] = None,
        task_type: Optional[str] = None,
        lead_id: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> List[Task]:
        query = self.session.query(Task)
        if status:
            query = query.filter(Task.status == status)
        if assigned_to is not None:
            query = query.filter(Task.assigned_to == assigned_to)
        if task_type:
            query = query.filter(Task.type == task_type)
        if lead_id is not None:
            query = query.filter(Task.lead_id == lead_id)

        limit = clamp_limit(limit, SETTINGS.task_list_limit, SETTINGS.task_list_limit)
        return query.order_by(Task.created_at.desc(), Task.id.desc()).limit(limit).all()

    def get_task(self, task_id: int) -> Task:
        task = self.session.get(Task, task_id)
        if task is None:
            raise NotFoundError("Task", task_id)
        return task

    def create_task(self, payload: TaskCreate, actor_id: Optional[int] = None) -> Task:
        for model, field in ((Lead, "lead_id"), (Property, "property_id"), (Deal, "deal_id")):
            ref_id = getattr(payload, field)
            if ref_id is None:
                continue
            row = self.session.get(model, ref_id)
            # Soft-deleted leads and properties cannot take new tasks.
            if row is None or getattr(row, "deleted_at", None) is not None:
                raise MissingReferenceError("Task", field, ref_id)

        data = payload.model_dump(exclude_none=True)
        data["priority"] = payload.priority.value
        data.setdefault("status", TaskStatus.PENDING.value)
        data.setdefault("assigned_to", actor_id)
        if data["status"] == TaskStatus.COMPLETED.value:
            data["completed_at"] = utcnow()

        task = Task(**data, created_by=actor_id, created_at=utcnow(), updated_at=utcnow())
        self.session.add(task)
        self.session.flush()

        self.activity_log.record(
            ActivityType.TASK_CREATED,
            title="Task created",
            description=task.title,
            metadata={"task_id": task.id, "type": task.type, "priority": task.priority},
            lead_id=task.lead_id,
            property_id=task.property_id,
            deal_id=task.deal_id,
            user_id=actor_id,
        )
        LOGGER.info(f"Created task {task.id} ({task.title})")
        return task

    def update_task(self, task_id: int, payload: TaskUpdate, actor_id: Optional[int] = None) -> Task:
        task = self.get_task(task_id)
        data = payload.model_dump(exclude_unset=True)
        new_status = data.pop("status", None)
        if data.get("priority") is not None:
            data["priority"] = payload.priority.value

        for key, value in data.items():
            setattr(task, key, value)
        if data:
            task.updated_at = utcnow()
            self.session.flush()

        if new_status is not None and new_status != task.status:
            self.mover.move_item(PipelineKind.TASK, task_id, new_status, actor_id=actor_id)
        return task

    def update_status(self, task_id: int, status: str, actor_id: Optional[int] = None) -> MoveResult:
        return self.mover.move_item(PipelineKind.TASK, task_id, status, actor_id=actor_id)

    def delete_task(self, task_id: int) -> None:
        task = self.get_task(task_id)
        self.session.delete(task)
        self.session.flush()
        LOGGER.info(f"Deleted task {task_id}")


__all__ = ["TaskService"]
