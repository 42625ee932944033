"""Lead domain service - core business logic for lead management."""
from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from core.config import get_settings
from core.exceptions import NotFoundError
from core.logging_config import get_logger
from core.models import Lead, LeadPropertyMatch, LeadStatus
from core.utils import utcnow
from domain.pipeline import MoveResult, PipelineKind, StatusMover
from domain.schemas import LeadCreate, LeadUpdate
from services.activity import ActivityLog, ActivityType
from services.notification import NotificationService

LOGGER = get_logger(__name__)
SETTINGS = get_settings()

# Takes the lead payload as a dict, returns a 0-100 score.
LeadScorer = Callable[[Dict[str, Any]], int]


def _default_scorer(lead_data: Dict[str, Any]) -> int:
    from llm.assistant import get_assistant

    return get_assistant().score_lead(lead_data).score


def clamp_limit(limit: Optional[int], default: int, maximum: int) -> int:
    if not limit or limit < 1:
        return default
    return min(limit, maximum)


class LeadService:
    """Service for lead-related operations."""

    def __init__(
        self,
        session: Session,
        scorer: Optional[LeadScorer] = None,
        mover: Optional[StatusMover] = None,
    ) -> None:
        self.session = session
        self.scorer = scorer or _default_scorer
        self.activity_log = ActivityLog(session)
        self.notifications = NotificationService(session)
        self.mover = mover or StatusMover(
            session, activity_log=self.activity_log, notifications=self.notifications
        )

    def _base_query(self):
        return self.session.query(Lead).filter(Lead.deleted_at.is_(None))

    def list_leads(
        self,
        status: Optional[str] = None,
        assigned_to: Optional[int] = None,
        search: Optional[str] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Lead]:
        """
        List leads newest-first with filtering and pagination.

        Args:
            status: Filter by exact status.
            assigned_to: Filter by owning user id.
            search: Case-insensitive match on first name, last name or email.
            limit: Page size (default 50, capped at 100).
            offset: Number of leads to skip.
        """
        query = self._base_query()
        if status:
            query = query.filter(Lead.status == status)
        if assigned_to is not None:
            query = query.filter(Lead.assigned_to == assigned_to)
        if search:
            pattern = f"%{search.strip().lower()}%"
            query = query.filter(
                or_(
                    func.lower(Lead.first_name).like(pattern),
                    func.lower(Lead.last_name).like(pattern),
                    func.lower(Lead.email).like(pattern),
                )
            )

        limit = clamp_limit(limit, SETTINGS.lead_list_default_limit, SETTINGS.lead_list_max_limit)
        return (
            query.order_by(Lead.created_at.desc(), Lead.id.desc())
            .offset(max(offset, 0))
            .limit(limit)
            .all()
        )

    def count_leads(self, status: Optional[str] = None) -> int:
        query = self.session.query(func.count(Lead.id)).filter(Lead.deleted_at.is_(None))
        if status:
            query = query.filter(Lead.status == status)
        return query.scalar() or 0

    def get_lead(self, lead_id: int) -> Lead:
        """
        Get a lead by id.

        Raises:
            NotFoundError: If the lead does not exist or was deleted.
        """
        lead = self._base_query().filter(Lead.id == lead_id).one_or_none()
        if lead is None:
            raise NotFoundError("Lead", lead_id)
        return lead

    def create_lead(self, payload: LeadCreate, actor_id: Optional[int] = None) -> Lead:
        """
        Create a lead, auto-assign it to the caller and score it.

        An explicit score in the payload wins over the scorer.
        """
        data = payload.model_dump(exclude_none=True)
        data.setdefault("status", LeadStatus.NEW.value)
        data.setdefault("assigned_to", actor_id)
        data.setdefault("preferred_locations", [])
        data.setdefault("property_types", [])

        if "score" not in data:
            data["score"] = self.scorer(data)

        lead = Lead(**data, created_at=utcnow(), updated_at=utcnow())
        self.session.add(lead)
        self.session.flush()

        self.activity_log.record(
            ActivityType.LEAD_CREATED,
            title="New lead added",
            description=f"{lead.full_name} added from {lead.source or 'website'}",
            metadata={"score": lead.score, "source": lead.source},
            lead_id=lead.id,
            user_id=actor_id,
        )
        self.notifications.on_lead_created(lead, lead.assigned_to or actor_id)

        LOGGER.info(f"Created lead {lead.id} ({lead.full_name}) with score {lead.score}")
        return lead

    def update_lead(self, lead_id: int, payload: LeadUpdate, actor_id: Optional[int] = None) -> Lead:
        """Partial update; a status change goes through the pipeline mover."""
        lead = self.get_lead(lead_id)
        data = payload.model_dump(exclude_unset=True)
        new_status = data.pop("status", None)

        for key, value in data.items():
            setattr(lead, key, value)
        if data:
            lead.updated_at = utcnow()
            self.session.flush()

        if new_status is not None and new_status != lead.status:
            self.mover.move_item(PipelineKind.LEAD, lead_id, new_status, actor_id=actor_id)
        return lead

    def update_status(self, lead_id: int, status: str, actor_id: Optional[int] = None) -> MoveResult:
        return self.mover.move_item(PipelineKind.LEAD, lead_id, status, actor_id=actor_id)

    def delete_lead(self, lead_id: int) -> None:
        """Soft delete; the row and its history stay in the store."""
        lead = self.get_lead(lead_id)
        lead.deleted_at = utcnow()
        self.session.flush()
        LOGGER.info(f"Soft-deleted lead {lead_id}")

    def get_matches(self, lead_id: int) -> List[LeadPropertyMatch]:
        self.get_lead(lead_id)
        return (
            self.session.query(LeadPropertyMatch)
            .filter(LeadPropertyMatch.lead_id == lead_id)
            .order_by(LeadPropertyMatch.match_score.desc(), LeadPropertyMatch.id.asc())
            .all()
        )

    def get_statistics(self) -> Dict[str, Any]:
        """Lead counts by status and average score."""
        base_query = self._base_query()
        total = base_query.with_entities(func.count(Lead.id)).scalar() or 0
        avg_score = base_query.with_entities(func.avg(Lead.score)).scalar() or 0
        status_counts = dict(
            base_query.with_entities(Lead.status, func.count(Lead.id)).group_by(Lead.status).all()
        )
        return {
            "total_leads": total,
            "average_score": round(float(avg_score), 1),
            "status_breakdown": status_counts,
        }


__all__ = ["LeadService", "LeadScorer", "clamp_limit"]
