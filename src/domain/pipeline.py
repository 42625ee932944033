"""Status pipelines: vocabularies, transition policy and status moves."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Set, Tuple, Type

from sqlalchemy.orm import Session

from core.config import get_settings
from core.exceptions import InvalidTransitionError, NotFoundError, ValidationError
from core.logging_config import get_context_logger, get_logger
from core.models import (
    DEAL_STATUS_ALIASES,
    PROPERTY_STATUS_ALIASES,
    Deal,
    DealStatus,
    Lead,
    LeadStatus,
    Property,
    PropertyStatus,
    Task,
    TaskStatus,
)
from core.utils import normalize_choice, utcnow
from domain.board import (
    DEAL_COLUMNS,
    LEAD_COLUMNS,
    PIPELINE_COLUMNS,
    PROPERTY_COLUMNS,
    TASK_COLUMNS,
    PipelineKind,
    StatusColumn,
    build_board,
    group_by_status,
)
from services.activity import ActivityLog, ActivityType
from services.notification import NotificationService

LOGGER = get_logger(__name__)


# =============================================================================
# Vocabularies
# =============================================================================


STATUS_VALUES: Dict[PipelineKind, Tuple[str, ...]] = {
    PipelineKind.LEAD: tuple(s.value for s in LeadStatus),
    PipelineKind.PROPERTY: tuple(s.value for s in PropertyStatus),
    PipelineKind.DEAL: tuple(s.value for s in DealStatus),
    PipelineKind.TASK: tuple(s.value for s in TaskStatus),
}

STATUS_ALIASES: Dict[PipelineKind, Dict[str, str]] = {
    PipelineKind.LEAD: {},
    PipelineKind.PROPERTY: PROPERTY_STATUS_ALIASES,
    PipelineKind.DEAL: DEAL_STATUS_ALIASES,
    PipelineKind.TASK: {},
}

_MODELS: Dict[PipelineKind, Type[Any]] = {
    PipelineKind.LEAD: Lead,
    PipelineKind.PROPERTY: Property,
    PipelineKind.DEAL: Deal,
    PipelineKind.TASK: Task,
}


def normalize_status(kind: PipelineKind, value: Any) -> str:
    """
    Map a raw status onto the canonical vocabulary of ``kind``.

    Raises:
        ValidationError: If the value is not a known status or alias.
    """
    kind = PipelineKind(kind)
    status = normalize_choice(value, STATUS_VALUES[kind], STATUS_ALIASES[kind])
    if status is None:
        raise ValidationError(
            f"'{value}' is not a valid {kind.value} status; "
            f"expected one of {', '.join(STATUS_VALUES[kind])}"
        )
    return status


# =============================================================================
# Transition policy
# =============================================================================


# Forward flow plus the usual backward corrections, used only when
# ENFORCE_STATUS_TRANSITIONS is on.
DEFAULT_TRANSITIONS: Dict[PipelineKind, Dict[str, Set[str]]] = {
    PipelineKind.LEAD: {
        "new": {"contacted", "lost", "nurturing"},
        "contacted": {"new", "qualified", "lost", "nurturing"},
        "qualified": {"contacted", "tour", "offer", "lost", "nurturing"},
        "tour": {"qualified", "offer", "lost", "nurturing"},
        "offer": {"tour", "closed", "lost", "nurturing"},
        "closed": set(),
        "lost": {"new", "nurturing"},
        "nurturing": {"contacted", "qualified", "lost"},
    },
    PipelineKind.PROPERTY: {
        "available": {"pending", "withdrawn"},
        "pending": {"available", "sold", "withdrawn"},
        "sold": set(),
        "withdrawn": {"available"},
    },
    PipelineKind.DEAL: {
        "offer": {"inspection", "lost"},
        "inspection": {"offer", "legal", "lost"},
        "legal": {"inspection", "payment", "lost"},
        "payment": {"legal", "handover", "lost"},
        "handover": set(),
        "lost": {"offer"},
    },
    PipelineKind.TASK: {
        "pending": {"in_progress", "completed", "cancelled"},
        "in_progress": {"pending", "completed", "cancelled"},
        "completed": {"in_progress"},
        "cancelled": {"pending"},
    },
}


class TransitionPolicy:
    """
    Decides whether a status move is allowed.

    ``permissive()`` allows any status to any status, including no-op and
    backward moves. ``from_table()`` restricts moves to an allow-list.
    """

    def __init__(self, table: Optional[Mapping[PipelineKind, Mapping[str, Set[str]]]] = None):
        self._table = table

    @classmethod
    def permissive(cls) -> "TransitionPolicy":
        return cls(None)

    @classmethod
    def from_table(
        cls, table: Optional[Mapping[PipelineKind, Mapping[str, Set[str]]]] = None
    ) -> "TransitionPolicy":
        return cls(table if table is not None else DEFAULT_TRANSITIONS)

    @classmethod
    def from_settings(cls) -> "TransitionPolicy":
        if get_settings().enforce_status_transitions:
            return cls.from_table()
        return cls.permissive()

    @property
    def is_permissive(self) -> bool:
        return self._table is None

    def allows(self, kind: PipelineKind, current: Optional[str], target: str) -> bool:
        if self._table is None or current == target:
            return True
        successors = self._table.get(PipelineKind(kind), {}).get(current)
        # A status outside the table (legacy data) may always move back into it.
        if successors is None:
            return True
        return target in successors

    def check(self, kind: PipelineKind, current: Optional[str], target: str) -> None:
        if not self.allows(kind, current, target):
            raise InvalidTransitionError(PipelineKind(kind).value, current, target)


# =============================================================================
# Status moves
# =============================================================================


@dataclass
class MoveResult:
    """Outcome of a status move."""
    kind: PipelineKind
    entity: Any
    old_status: Optional[str]
    new_status: str

    @property
    def changed(self) -> bool:
        return self.old_status != self.new_status

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "id": self.entity.id,
            "old_status": self.old_status,
            "new_status": self.new_status,
        }


def _owner_of(kind: PipelineKind, entity: Any) -> Optional[int]:
    if kind is PipelineKind.PROPERTY:
        return entity.listing_agent
    if kind is PipelineKind.TASK:
        return entity.assigned_to or entity.created_by
    return entity.assigned_to


class StatusMover:
    """
    Applies a status change to one entity and records its side effects.

    Only ``status`` (plus ``updated_at`` and the task ``completed_at``
    bookkeeping) changes; no other derived field is recomputed.
    """

    def __init__(
        self,
        session: Session,
        policy: Optional[TransitionPolicy] = None,
        activity_log: Optional[ActivityLog] = None,
        notifications: Optional[NotificationService] = None,
    ) -> None:
        self.session = session
        self.policy = policy or TransitionPolicy.from_settings()
        self.activity_log = activity_log or ActivityLog(session)
        self.notifications = notifications or NotificationService(session)

    def load(self, kind: PipelineKind, item_id: int) -> Any:
        model = _MODELS[kind]
        entity = self.session.get(model, item_id)
        if entity is None or getattr(entity, "deleted_at", None) is not None:
            raise NotFoundError(model.__name__, item_id)
        return entity

    def move_item(
        self,
        kind: PipelineKind,
        item_id: int,
        target_status: Any,
        actor_id: Optional[int] = None,
    ) -> MoveResult:
        """
        Move an entity to ``target_status``.

        Raises:
            ValidationError: Unknown status value for this kind.
            InvalidTransitionError: Only when an allow-list policy rejects the move.
            NotFoundError: The entity does not exist.
        """
        kind = PipelineKind(kind)
        target = normalize_status(kind, target_status)
        entity = self.load(kind, item_id)
        current = entity.status

        self.policy.check(kind, current, target)

        log = get_context_logger(__name__, entity_type=kind.value, entity_id=item_id)
        entity.status = target
        entity.updated_at = utcnow()
        if kind is PipelineKind.TASK:
            if target == TaskStatus.COMPLETED.value and current != target:
                entity.completed_at = utcnow()
            elif target != TaskStatus.COMPLETED.value:
                entity.completed_at = None
        self.session.flush()

        self._record(kind, entity, current, target, actor_id)
        log.info(f"Moved {kind.value} {item_id}: {current} -> {target}")
        return MoveResult(kind=kind, entity=entity, old_status=current, new_status=target)

    def _record(
        self,
        kind: PipelineKind,
        entity: Any,
        old_status: Optional[str],
        new_status: str,
        actor_id: Optional[int],
    ) -> None:
        refs: Dict[str, Optional[int]] = {}
        if kind is PipelineKind.LEAD:
            refs["lead_id"] = entity.id
        elif kind is PipelineKind.PROPERTY:
            refs["property_id"] = entity.id
        elif kind is PipelineKind.DEAL:
            refs.update(deal_id=entity.id, lead_id=entity.lead_id, property_id=entity.property_id)
        else:
            refs.update(lead_id=entity.lead_id, property_id=entity.property_id, deal_id=entity.deal_id)

        if kind is PipelineKind.TASK and new_status == TaskStatus.COMPLETED.value and old_status != new_status:
            self.activity_log.record(
                ActivityType.TASK_COMPLETED,
                title="Task completed",
                description=entity.title,
                metadata={"task_id": entity.id},
                user_id=actor_id,
                **refs,
            )
        else:
            self.activity_log.log_status_change(
                kind.value, entity.id, old_status, new_status, user_id=actor_id, **refs
            )

        recipient = _owner_of(kind, entity) or actor_id
        if kind is PipelineKind.LEAD:
            self.notifications.on_lead_status_changed(entity, old_status, new_status, recipient)
        elif kind is PipelineKind.PROPERTY:
            self.notifications.on_property_status_changed(entity, old_status, new_status, recipient)
        elif kind is PipelineKind.DEAL:
            self.notifications.on_deal_status_changed(entity, old_status, new_status, recipient)
        elif new_status == TaskStatus.COMPLETED.value and old_status != new_status:
            self.notifications.on_task_completed(entity, recipient)


__all__ = [
    "PipelineKind",
    "StatusColumn",
    "STATUS_VALUES",
    "STATUS_ALIASES",
    "LEAD_COLUMNS",
    "PROPERTY_COLUMNS",
    "DEAL_COLUMNS",
    "TASK_COLUMNS",
    "PIPELINE_COLUMNS",
    "DEFAULT_TRANSITIONS",
    "normalize_status",
    "group_by_status",
    "build_board",
    "TransitionPolicy",
    "MoveResult",
    "StatusMover",
]
