"""Notification service: per-user alerts generated from pipeline events."""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from core.exceptions import NotFoundError
from core.logging_config import get_logger
from core.models import Deal, Lead, Notification, Property, Task
from core.utils import utcnow

LOGGER = get_logger(__name__)


class NotificationType:
    """Constants for notification types."""
    LEAD_ADDED = "lead_added"
    LEAD_STATUS_CHANGED = "lead_status_changed"
    PROPERTY_STATUS_CHANGED = "property_status_changed"
    DEAL_CREATED = "deal_created"
    DEAL_STATUS_CHANGED = "deal_status_changed"
    TASK_COMPLETED = "task_completed"
    FOLLOW_UP = "follow_up"
    AI_INSIGHT = "ai_insight"


_LEAD_STATUS_TITLES = {
    "contacted": ("Lead Contacted", "Successfully contacted {name}"),
    "qualified": ("Lead Qualified", "{name} has been qualified and is ready for follow-up"),
    "tour": ("Tour Scheduled", "Property tour scheduled with {name}"),
    "offer": ("Offer Made", "An offer is in progress for {name}"),
    "closed": ("Lead Converted", "{name} converted to customer!"),
    "lost": ("Lead Lost", "{name} marked as lost"),
}

_PROPERTY_STATUS_TITLES = {
    "available": ("Property Listed", '"{title}" is now available for viewing'),
    "pending": ("Property Under Contract", '"{title}" has gone under contract'),
    "sold": ("Property Sold", '"{title}" has been sold successfully!'),
    "withdrawn": ("Property Withdrawn", '"{title}" has been withdrawn from market'),
}

_DEAL_STATUS_TITLES = {
    "offer": ("Offer Stage", "Deal with {name} entered offer stage"),
    "inspection": ("Inspection Scheduled", "Property inspection scheduled for {name}"),
    "legal": ("Legal Review", "Deal with {name} in legal review stage"),
    "payment": ("Payment Processing", "Processing payment for {name}'s deal"),
    "handover": ("Deal Closed Successfully", "Deal with {name} completed!"),
    "lost": ("Deal Lost", "Deal with {name} has been lost"),
}


class NotificationService:
    """
    Reads and writes notifications for a single store session.

    Every query is scoped by ``user_id``; a user never sees or mutates
    another user's notifications.
    """

    def __init__(self, session: Session):
        self.session = session

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def list_notifications(
        self,
        user_id: int,
        is_read: Optional[bool] = None,
        limit: Optional[int] = None,
    ) -> List[Notification]:
        """Newest-first notifications for a user, optionally filtered by read state."""
        query = self.session.query(Notification).filter(Notification.user_id == user_id)
        if is_read is not None:
            query = query.filter(Notification.is_read.is_(is_read))
        query = query.order_by(Notification.created_at.desc(), Notification.id.desc())
        if limit:
            query = query.limit(limit)
        return query.all()

    def unread_count(self, user_id: int) -> int:
        return (
            self.session.query(func.count(Notification.id))
            .filter(Notification.user_id == user_id, Notification.is_read.is_(False))
            .scalar()
            or 0
        )

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def create(
        self,
        user_id: int,
        notification_type: str,
        title: str,
        message: str,
        action_url: Optional[str] = None,
        entity_type: Optional[str] = None,
        entity_id: Optional[Any] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Notification:
        notification = Notification(
            user_id=user_id,
            type=notification_type,
            title=title,
            message=message,
            is_read=False,
            action_url=action_url,
            entity_type=entity_type,
            entity_id=str(entity_id) if entity_id is not None else None,
            event_metadata=metadata or {},
            created_at=utcnow(),
        )
        self.session.add(notification)
        self.session.flush()

        LOGGER.debug(
            f"Notification created: {notification_type} for user {user_id}",
            extra={"user_id": user_id, "entity_type": entity_type, "entity_id": entity_id},
        )
        return notification

    def mark_read(self, user_id: int, notification_id: int) -> Notification:
        """
        Mark one notification read.

        Marking an already-read notification is a no-op and returns it unchanged.

        Raises:
            NotFoundError: If the id does not exist or belongs to another user.
        """
        notification = (
            self.session.query(Notification)
            .filter(Notification.id == notification_id, Notification.user_id == user_id)
            .one_or_none()
        )
        if notification is None:
            raise NotFoundError("Notification", notification_id)

        if not notification.is_read:
            notification.is_read = True
            notification.read_at = utcnow()
            self.session.flush()
        return notification

    def mark_all_read(self, user_id: int) -> int:
        """Mark every unread notification of a user read. Returns the number changed."""
        now = utcnow()
        updated = (
            self.session.query(Notification)
            .filter(Notification.user_id == user_id, Notification.is_read.is_(False))
            .update({Notification.is_read: True, Notification.read_at: now}, synchronize_session="fetch")
        )
        self.session.flush()
        LOGGER.info(f"Marked {updated} notifications read for user {user_id}")
        return updated

    # -------------------------------------------------------------------------
    # Event triggers
    # -------------------------------------------------------------------------

    def on_lead_created(self, lead: Lead, user_id: Optional[int]) -> Optional[Notification]:
        if user_id is None:
            return None
        name = lead.full_name
        return self.create(
            user_id=user_id,
            notification_type=NotificationType.LEAD_ADDED,
            title="New Lead Added",
            message=f"{name} submitted a new inquiry" + (f" via {lead.source}" if lead.source else ""),
            action_url=f"/leads/{lead.id}",
            entity_type="lead",
            entity_id=lead.id,
            metadata={"leadName": name, "leadScore": lead.score, "source": lead.source, "budget": lead.budget},
        )

    def on_lead_status_changed(
        self, lead: Lead, old_status: Optional[str], new_status: str, user_id: Optional[int]
    ) -> Optional[Notification]:
        if user_id is None:
            return None
        name = lead.full_name
        title, template = _LEAD_STATUS_TITLES.get(
            new_status, ("Lead Status Updated", f"{{name}} moved from {old_status} to {new_status}")
        )
        return self.create(
            user_id=user_id,
            notification_type=NotificationType.LEAD_STATUS_CHANGED,
            title=title,
            message=template.format(name=name),
            action_url=f"/leads/{lead.id}",
            entity_type="lead",
            entity_id=lead.id,
            metadata={"leadName": name, "oldStatus": old_status, "newStatus": new_status, "leadScore": lead.score},
        )

    def on_property_status_changed(
        self, prop: Property, old_status: Optional[str], new_status: str, user_id: Optional[int]
    ) -> Optional[Notification]:
        if user_id is None:
            return None
        title, template = _PROPERTY_STATUS_TITLES.get(
            new_status,
            ("Property Status Updated", f'"{{title}}" status changed from {old_status} to {new_status}'),
        )
        return self.create(
            user_id=user_id,
            notification_type=NotificationType.PROPERTY_STATUS_CHANGED,
            title=title,
            message=template.format(title=prop.title),
            action_url=f"/properties/{prop.id}",
            entity_type="property",
            entity_id=prop.id,
            metadata={
                "propertyTitle": prop.title,
                "oldStatus": old_status,
                "newStatus": new_status,
                "propertyPrice": prop.price,
            },
        )

    def on_deal_created(self, deal: Deal, user_id: Optional[int]) -> Optional[Notification]:
        if user_id is None:
            return None
        lead_name = deal.lead.full_name if deal.lead else f"lead {deal.lead_id}"
        property_title = deal.property.title if deal.property else f"property {deal.property_id}"
        return self.create(
            user_id=user_id,
            notification_type=NotificationType.DEAL_CREATED,
            title="New Deal Created",
            message=f'Deal created for {lead_name} on "{property_title}" worth ${deal.deal_value:,.0f}',
            action_url=f"/deals/{deal.id}",
            entity_type="deal",
            entity_id=deal.id,
            metadata={"leadName": lead_name, "propertyTitle": property_title, "dealValue": deal.deal_value},
        )

    def on_deal_status_changed(
        self, deal: Deal, old_status: Optional[str], new_status: str, user_id: Optional[int]
    ) -> Optional[Notification]:
        if user_id is None:
            return None
        lead_name = deal.lead.full_name if deal.lead else f"lead {deal.lead_id}"
        title, template = _DEAL_STATUS_TITLES.get(
            new_status, ("Deal Status Updated", f"Deal with {{name}} moved from {old_status} to {new_status}")
        )
        return self.create(
            user_id=user_id,
            notification_type=NotificationType.DEAL_STATUS_CHANGED,
            title=title,
            message=template.format(name=lead_name),
            action_url=f"/deals/{deal.id}",
            entity_type="deal",
            entity_id=deal.id,
            metadata={
                "leadName": lead_name,
                "oldStatus": old_status,
                "newStatus": new_status,
                "dealValue": deal.deal_value,
                "commission": deal.commission,
            },
        )

    def on_task_completed(self, task: Task, user_id: Optional[int]) -> Optional[Notification]:
        if user_id is None:
            return None
        return self.create(
            user_id=user_id,
            notification_type=NotificationType.TASK_COMPLETED,
            title="Task Completed",
            message=f'"{task.title}" has been completed',
            action_url="/tasks",
            entity_type="task",
            entity_id=task.id,
            metadata={"taskTitle": task.title, "priority": task.priority},
        )


__all__ = ["NotificationService", "NotificationType"]
