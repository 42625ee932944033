"""Property domain service."""
from __future__ import annotations

from typing import List, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from core.config import get_settings
from core.exceptions import NotFoundError
from core.logging_config import get_logger
from core.models import Property, PropertyStatus
from core.utils import utcnow
from domain.leads import clamp_limit
from domain.pipeline import MoveResult, PipelineKind, StatusMover
from domain.schemas import PropertyCreate, PropertyUpdate
from services.activity import ActivityLog, ActivityType

LOGGER = get_logger(__name__)
SETTINGS = get_settings()


class PropertyService:
    """Service for property listings."""

    def __init__(self, session: Session, mover: Optional[StatusMover] = None) -> None:
        self.session = session
        self.activity_log = ActivityLog(session)
        self.mover = mover or StatusMover(session, activity_log=self.activity_log)

    def _base_query(self):
        return self.session.query(Property).filter(Property.deleted_at.is_(None))

    def list_properties(
        self,
        status: Optional[str] = None,
        property_type: Optional[str] = None,
        search: Optional[str] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Property]:
        """Newest-first listings; ``search`` matches title, address or city."""
        query = self._base_query()
        if status:
            query = query.filter(Property.status == status)
        if property_type:
            query = query.filter(Property.property_type == property_type)
        if search:
            pattern = f"%{search.strip().lower()}%"
            query = query.filter(
                or_(
                    func.lower(Property.title).like(pattern),
                    func.lower(Property.address).like(pattern),
                    func.lower(Property.city).like(pattern),
                )
            )

        limit = clamp_limit(limit, SETTINGS.property_list_default_limit, SETTINGS.property_list_max_limit)
        return (
            query.order_by(Property.created_at.desc(), Property.id.desc())
            .offset(max(offset, 0))
            .limit(limit)
            .all()
        )

    def get_property(self, property_id: int) -> Property:
        prop = self._base_query().filter(Property.id == property_id).one_or_none()
        if prop is None:
            raise NotFoundError("Property", property_id)
        return prop

    def create_property(self, payload: PropertyCreate, actor_id: Optional[int] = None) -> Property:
        data = payload.model_dump(exclude_none=True)
        data.setdefault("status", PropertyStatus.AVAILABLE.value)
        data.setdefault("listing_agent", actor_id)
        data.setdefault("features", [])
        data.setdefault("images", [])

        prop = Property(**data, created_at=utcnow(), updated_at=utcnow())
        self.session.add(prop)
        self.session.flush()

        self.activity_log.record(
            ActivityType.PROPERTY_CREATED,
            title="Property listed",
            description=f"{prop.title} in {prop.city}",
            metadata={"price": prop.price, "property_type": prop.property_type},
            property_id=prop.id,
            user_id=actor_id,
        )
        LOGGER.info(f"Created property {prop.id} ({prop.title})")
        return prop

    def update_property(
        self, property_id: int, payload: PropertyUpdate, actor_id: Optional[int] = None
    ) -> Property:
        prop = self.get_property(property_id)
        data = payload.model_dump(exclude_unset=True)
        new_status = data.pop("status", None)

        for key, value in data.items():
            setattr(prop, key, value)
        if data:
            prop.updated_at = utcnow()
            self.session.flush()

        if new_status is not None and new_status != prop.status:
            self.mover.move_item(PipelineKind.PROPERTY, property_id, new_status, actor_id=actor_id)
        return prop

    def update_status(self, property_id: int, status: str, actor_id: Optional[int] = None) -> MoveResult:
        return self.mover.move_item(PipelineKind.PROPERTY, property_id, status, actor_id=actor_id)

    def delete_property(self, property_id: int) -> None:
        prop = self.get_property(property_id)
        prop.deleted_at = utcnow()
        self.session.flush()
        LOGGER.info(f"Soft-deleted property {property_id}")


__all__ = ["PropertyService"]
