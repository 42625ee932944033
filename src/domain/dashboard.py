"""Dashboard metrics aggregated straight from the store."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from core.config import get_settings
from core.models import Deal, DealStatus, Lead, Property, PropertyStatus, Task, TaskStatus
from domain.schemas import ActivityRead, dump
from services.activity import ActivityLog

SETTINGS = get_settings()

ACTIVE_DEAL_STATUSES = (
    DealStatus.OFFER.value,
    DealStatus.INSPECTION.value,
    DealStatus.LEGAL.value,
    DealStatus.PAYMENT.value,
)
REVENUE_DEAL_STATUSES = (DealStatus.PAYMENT.value, DealStatus.HANDOVER.value)
HIGH_SCORE_THRESHOLD = 80


@dataclass
class DashboardMetrics:
    total_leads: int
    active_properties: int
    active_deals: int
    total_revenue: float
    open_tasks: int
    lead_funnel: Dict[str, int] = field(default_factory=dict)
    recent_activities: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalLeads": self.total_leads,
            "activeProperties": self.active_properties,
            "activeDeals": self.active_deals,
            "totalRevenue": self.total_revenue,
            "openTasks": self.open_tasks,
            "leadFunnel": self.lead_funnel,
            "recentActivities": self.recent_activities,
        }


class DashboardService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get_metrics(self) -> DashboardMetrics:
        total_leads = (
            self.session.query(func.count(Lead.id)).filter(Lead.deleted_at.is_(None)).scalar() or 0
        )
        active_properties = (
            self.session.query(func.count(Property.id))
            .filter(Property.deleted_at.is_(None), Property.status == PropertyStatus.AVAILABLE.value)
            .scalar()
            or 0
        )
        active_deals = (
            self.session.query(func.count(Deal.id))
            .filter(Deal.status.in_(ACTIVE_DEAL_STATUSES))
            .scalar()
            or 0
        )
        total_revenue = (
            self.session.query(func.coalesce(func.sum(Deal.commission), 0))
            .filter(Deal.status.in_(REVENUE_DEAL_STATUSES))
            .scalar()
            or 0
        )
        open_tasks = (
            self.session.query(func.count(Task.id))
            .filter(Task.status.in_((TaskStatus.PENDING.value, TaskStatus.IN_PROGRESS.value)))
            .scalar()
            or 0
        )
        funnel = dict(
            self.session.query(Lead.status, func.count(Lead.id))
            .filter(Lead.deleted_at.is_(None))
            .group_by(Lead.status)
            .all()
        )
        recent = ActivityLog(self.session).list_activities(
            limit=SETTINGS.dashboard_recent_activity_count
        ) if SETTINGS.dashboard_recent_activity_count else []

        return DashboardMetrics(
            total_leads=total_leads,
            active_properties=active_properties,
            active_deals=active_deals,
            total_revenue=float(total_revenue),
            open_tasks=open_tasks,
            lead_funnel=funnel,
            recent_activities=[dump(ActivityRead, a) for a in recent],
        )

    def get_snapshot(self, lead_id: Optional[int] = None) -> Dict[str, Any]:
        """Counts and a few highlights the assistant can talk about."""
        metrics = self.get_metrics()
        high_score = (
            self.session.query(Lead)
            .filter(Lead.deleted_at.is_(None), Lead.score >= HIGH_SCORE_THRESHOLD)
            .order_by(Lead.score.desc(), Lead.id.asc())
            .limit(5)
            .all()
        )
        average_price = (
            self.session.query(func.avg(Property.price)).filter(Property.deleted_at.is_(None)).scalar()
            or 0
        )
        snapshot: Dict[str, Any] = {
            "leads": metrics.total_leads,
            "properties": self.session.query(func.count(Property.id))
            .filter(Property.deleted_at.is_(None))
            .scalar()
            or 0,
            "deals": self.session.query(func.count(Deal.id)).scalar() or 0,
            "activeDeals": metrics.active_deals,
            "pendingTasks": metrics.open_tasks,
            "totalRevenue": metrics.total_revenue,
            "averagePrice": round(float(average_price), 2),
            "highScoreLeads": [{"id": l.id, "name": l.full_name, "score": l.score} for l in high_score],
        }
        if lead_id is not None:
            lead = self.session.get(Lead, lead_id)
            if lead is not None and lead.deleted_at is None:
                snapshot["lead"] = {
                    "id": lead.id,
                    "name": lead.full_name,
                    "status": lead.status,
                    "score": lead.score,
                    "budget": lead.budget,
                    "propertyTypes": list(lead.property_types or []),
                }
        return snapshot


__all__ = ["DashboardService", "DashboardMetrics"]
