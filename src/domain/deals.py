"""Deal domain service.

A deal always links an existing lead and an existing property. Creating a
deal never changes the lead's status; the two are independent moves.
"""
from __future__ import annotations

from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.config import get_settings
from core.exceptions import MissingReferenceError, NotFoundError
from core.logging_config import get_logger
from core.models import Deal, DealStatus, Lead, Property
from core.utils import utcnow
from domain.leads import clamp_limit
from domain.pipeline import MoveResult, PipelineKind, StatusMover
from domain.schemas import DealCreate, DealUpdate
from services.activity import ActivityLog, ActivityType
from services.notification import NotificationService

LOGGER = get_logger(__name__)
SETTINGS = get_settings()


class DealService:
    """Service for deals."""

    def __init__(self, session: Session, mover: Optional[StatusMover] = None) -> None:
        self.session = session
        self.activity_log = ActivityLog(session)
        self.notifications = NotificationService(session)
        self.mover = mover or StatusMover(
            session, activity_log=self.activity_log, notifications=self.notifications
        )

    def list_deals(
        self,
        status: Optional[str] = None,
        lead_id: Optional[int] = None,
        property_id: Optional[int] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Deal]:
        query = self.session.query(Deal)
        if status:
            query = query.filter(Deal.status == status)
        if lead_id is not None:
            query = query.filter(Deal.lead_id == lead_id)
        if property_id is not None:
            query = query.filter(Deal.property_id == property_id)

        limit = clamp_limit(limit, SETTINGS.deal_list_limit, SETTINGS.deal_list_limit)
        return (
            query.order_by(Deal.created_at.desc(), Deal.id.desc())
            .offset(max(offset, 0))
            .limit(limit)
            .all()
        )

    def get_deal(self, deal_id: int) -> Deal:
        deal = self.session.get(Deal, deal_id)
        if deal is None:
            raise NotFoundError("Deal", deal_id)
        return deal

    def _require(self, model, field: str, ref_id: int) -> None:
        row = self.session.get(model, ref_id)
        if row is None or getattr(row, "deleted_at", None) is not None:
            raise MissingReferenceError("Deal", field, ref_id)

    def create_deal(self, payload: DealCreate, actor_id: Optional[int] = None) -> Deal:
        """
        Create a deal after checking both references.

        Raises:
            MissingReferenceError: If the lead or property does not exist.
        """
        self._require(Lead, "lead_id", payload.lead_id)
        self._require(Property, "property_id", payload.property_id)

        data = payload.model_dump(exclude_none=True)
        data.setdefault("status", DealStatus.OFFER.value)
        data.setdefault("assigned_to", actor_id)

        deal = Deal(**data, created_at=utcnow(), updated_at=utcnow())
        self.session.add(deal)
        try:
            self.session.flush()
        except IntegrityError as exc:
            # A concurrent delete between the check and the insert.
            raise MissingReferenceError(
                "Deal", "lead_id/property_id", f"{payload.lead_id}/{payload.property_id}"
            ) from exc

        self.activity_log.record(
            ActivityType.DEAL_CREATED,
            title="New deal created",
            description=f"Deal worth ${deal.deal_value:,.0f} created",
            metadata={"deal_value": deal.deal_value, "status": deal.status},
            lead_id=deal.lead_id,
            property_id=deal.property_id,
            deal_id=deal.id,
            user_id=actor_id,
        )
        self.notifications.on_deal_created(deal, deal.assigned_to or actor_id)

        LOGGER.info(f"Created deal {deal.id} (lead {deal.lead_id}, property {deal.property_id})")
        return deal

    def update_deal(self, deal_id: int, payload: DealUpdate, actor_id: Optional[int] = None) -> Deal:
        deal = self.get_deal(deal_id)
        data = payload.model_dump(exclude_unset=True)
        new_status = data.pop("status", None)

        for key, value in data.items():
            setattr(deal, key, value)
        if data:
            deal.updated_at = utcnow()
            self.session.flush()

        if new_status is not None and new_status != deal.status:
            self.mover.move_item(PipelineKind.DEAL, deal_id, new_status, actor_id=actor_id)
        return deal

    def update_status(self, deal_id: int, status: str, actor_id: Optional[int] = None) -> MoveResult:
        return self.mover.move_item(PipelineKind.DEAL, deal_id, status, actor_id=actor_id)


__all__ = ["DealService"]
