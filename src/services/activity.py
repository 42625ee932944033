"""Activity log: the append-only audit trail for leads, properties and deals."""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from core.config import get_settings
from core.logging_config import get_logger
from core.models import Activity
from core.utils import utcnow

LOGGER = get_logger(__name__)
SETTINGS = get_settings()


class ActivityType:
    """Constants for activity types."""
    LEAD_CREATED = "lead_created"
    PROPERTY_CREATED = "property_created"
    DEAL_CREATED = "deal_created"
    TASK_CREATED = "task_created"
    TASK_COMPLETED = "task_completed"
    STATUS_CHANGE = "status_change"
    AI_MATCH = "ai_match"


class ActivityLog:
    """Writes and reads Activity rows. There is no update or delete path."""

    def __init__(self, session: Session):
        self.session = session

    def record(
        self,
        activity_type: str,
        title: str,
        description: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        lead_id: Optional[int] = None,
        property_id: Optional[int] = None,
        deal_id: Optional[int] = None,
        user_id: Optional[int] = None,
    ) -> Activity:
        """
        Append an activity.

        Args:
            activity_type: One of the ActivityType constants.
            title: Short title for the entry.
            description: Optional longer description.
            metadata: Optional JSON metadata.
            lead_id: Related lead, if any.
            property_id: Related property, if any.
            deal_id: Related deal, if any.
            user_id: Acting user, if any.

        Returns:
            The created Activity.
        """
        activity = Activity(
            type=activity_type,
            title=title,
            description=description,
            event_metadata=metadata or {},
            lead_id=lead_id,
            property_id=property_id,
            deal_id=deal_id,
            user_id=user_id,
            created_at=utcnow(),
        )
        self.session.add(activity)
        self.session.flush()

        LOGGER.debug(f"Recorded activity: {activity_type} ({title})")
        return activity

    def list_activities(
        self,
        lead_id: Optional[int] = None,
        property_id: Optional[int] = None,
        deal_id: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> List[Activity]:
        """Newest-first activities, optionally filtered by related entity."""
        query = self.session.query(Activity)
        if lead_id is not None:
            query = query.filter(Activity.lead_id == lead_id)
        if property_id is not None:
            query = query.filter(Activity.property_id == property_id)
        if deal_id is not None:
            query = query.filter(Activity.deal_id == deal_id)

        return (
            query.order_by(Activity.created_at.desc(), Activity.id.desc())
            .limit(limit or SETTINGS.activity_list_limit)
            .all()
        )

    def log_status_change(
        self,
        entity_type: str,
        entity_id: int,
        old_status: Optional[str],
        new_status: str,
        user_id: Optional[int] = None,
        **refs: Optional[int],
    ) -> Activity:
        """Log a pipeline move for any entity kind."""
        return self.record(
            activity_type=ActivityType.STATUS_CHANGE,
            title=f"{entity_type.title()} status updated",
            description=f"Status changed from {old_status} to {new_status}",
            metadata={
                "entity_type": entity_type,
                "entity_id": entity_id,
                "old_status": old_status,
                "new_status": new_status,
            },
            user_id=user_id,
            **refs,
        )


__all__ = ["ActivityLog", "ActivityType"]
