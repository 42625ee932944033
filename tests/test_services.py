"""Tests for the lead, property, deal, task, matching and dashboard services."""
from __future__ import annotations

import pytest

from core.exceptions import MissingReferenceError, NotFoundError
from core.models import Activity, Deal, LeadPropertyMatch, Notification, Task
from domain.dashboard import DashboardService
from domain.deals import DealService
from domain.leads import LeadService
from domain.matching import MatchService
from domain.properties import PropertyService
from domain.schemas import DealCreate, LeadCreate, LeadUpdate, PropertyCreate, TaskCreate
from domain.tasks import TaskService


# ============================================================================
# Leads
# ============================================================================


class TestLeadService:
    def test_create_scores_and_assigns(self, db_session, sample_user):
        service = LeadService(db_session, scorer=lambda data: 42)

        lead = service.create_lead(
            LeadCreate(firstName="Mike", lastName="Chen", email="mike@example.com"),
            actor_id=sample_user.id,
        )

        assert lead.id is not None
        assert lead.status == "new"
        assert lead.score == 42
        assert lead.assigned_to == sample_user.id
        assert db_session.query(Activity).filter(Activity.lead_id == lead.id).count() == 1
        assert db_session.query(Notification).filter(Notification.user_id == sample_user.id).count() == 1

    def test_explicit_score_wins_over_scorer(self, db_session, sample_user):
        service = LeadService(db_session, scorer=lambda data: 10)

        lead = service.create_lead(
            LeadCreate(first_name="Ana", last_name="Ruiz", score=77), actor_id=sample_user.id
        )

        assert lead.score == 77

    def test_update_with_status_goes_through_mover(self, db_session, sample_lead):
        service = LeadService(db_session, scorer=lambda data: 0)

        lead = service.update_lead(sample_lead.id, LeadUpdate(status="contacted", notes="Called twice"))

        assert lead.status == "contacted"
        assert lead.notes == "Called twice"
        assert (
            db_session.query(Activity)
            .filter(Activity.lead_id == lead.id, Activity.type == "status_change")
            .count()
            == 1
        )

    def test_soft_delete_hides_lead(self, db_session, sample_lead):
        service = LeadService(db_session, scorer=lambda data: 0)

        service.delete_lead(sample_lead.id)

        assert sample_lead.deleted_at is not None
        with pytest.raises(NotFoundError):
            service.get_lead(sample_lead.id)
        assert sample_lead.id not in [lead.id for lead in service.list_leads()]

    def test_list_filters_and_search(self, db_session, sample_lead):
        service = LeadService(db_session, scorer=lambda data: 0)
        service.create_lead(LeadCreate(first_name="Zed", last_name="Quinn", status="lost"))

        assert [l.id for l in service.list_leads(status="new")] == [sample_lead.id]
        assert [l.last_name for l in service.list_leads(search="quinn")] == ["Quinn"]

    def test_statistics(self, db_session, sample_lead):
        stats = LeadService(db_session, scorer=lambda data: 0).get_statistics()

        assert stats["total_leads"] == 1
        assert stats["status_breakdown"] == {"new": 1}
        assert stats["average_score"] == 85.0


# ============================================================================
# Properties
# ============================================================================


class TestPropertyService:
    def test_create_defaults_to_available(self, db_session, sample_user):
        prop = PropertyService(db_session).create_property(
            PropertyCreate(
                title="Loft", address="1 Main", city="Dallas", state="TX",
                propertyType="condo", price=250000,
            ),
            actor_id=sample_user.id,
        )

        assert prop.status == "available"
        assert prop.listing_agent == sample_user.id

    def test_alias_status_is_normalized(self, db_session, sample_property):
        result = PropertyService(db_session).update_status(sample_property.id, "under_contract")

        assert result.new_status == "pending"
        assert sample_property.status == "pending"

    def test_soft_delete(self, db_session, sample_property):
        service = PropertyService(db_session)

        service.delete_property(sample_property.id)

        with pytest.raises(NotFoundError):
            service.get_property(sample_property.id)


# ============================================================================
# Deals
# ============================================================================


class TestDealService:
    def test_create_deal(self, db_session, sample_user, sample_lead, sample_property):
        deal = DealService(db_session).create_deal(
            DealCreate(leadId=sample_lead.id, propertyId=sample_property.id, dealValue=450000),
            actor_id=sample_user.id,
        )

        assert deal.status == "offer"
        assert deal.assigned_to == sample_user.id

    def test_orphan_deal_is_rejected(self, db_session, sample_lead):
        with pytest.raises(MissingReferenceError):
            DealService(db_session).create_deal(
                DealCreate(lead_id=sample_lead.id, property_id=424242, deal_value=1)
            )
        assert db_session.query(Deal).count() == 0

    def test_deal_against_deleted_lead_is_rejected(self, db_session, sample_lead, sample_property):
        LeadService(db_session, scorer=lambda data: 0).delete_lead(sample_lead.id)

        with pytest.raises(MissingReferenceError):
            DealService(db_session).create_deal(
                DealCreate(lead_id=sample_lead.id, property_id=sample_property.id, deal_value=1)
            )


# ============================================================================
# Tasks
# ============================================================================


class TestTaskService:
    def test_completed_on_create_sets_completed_at(self, db_session, sample_user):
        task = TaskService(db_session).create_task(
            TaskCreate(title="Send docs", status="completed"), actor_id=sample_user.id
        )

        assert task.completed_at is not None
        assert task.created_by == sample_user.id

    def test_unknown_reference_is_rejected(self, db_session, tables):
        with pytest.raises(MissingReferenceError):
            TaskService(db_session).create_task(TaskCreate(title="Ghost", leadId=31337))

    def test_deleted_lead_or_property_is_rejected(self, db_session, sample_lead, sample_property):
        LeadService(db_session, scorer=lambda data: 0).delete_lead(sample_lead.id)
        PropertyService(db_session).delete_property(sample_property.id)
        service = TaskService(db_session)

        with pytest.raises(MissingReferenceError):
            service.create_task(TaskCreate(title="Call back", leadId=sample_lead.id))
        with pytest.raises(MissingReferenceError):
            service.create_task(TaskCreate(title="Schedule showing", propertyId=sample_property.id))
        assert db_session.query(Task).count() == 0

    def test_status_move_to_completed(self, db_session, sample_task):
        TaskService(db_session).update_status(sample_task.id, "completed")

        assert sample_task.status == "completed"
        assert sample_task.completed_at is not None

    def test_hard_delete(self, db_session, sample_task):
        TaskService(db_session).delete_task(sample_task.id)

        assert db_session.get(Task, sample_task.id) is None


# ============================================================================
# Matching and dashboard
# ============================================================================


class TestMatchService:
    def test_match_is_persisted_and_replaced(self, db_session, sample_lead, sample_property, offline_assistant):
        service = MatchService(db_session, assistant=offline_assistant)

        first = service.match(sample_lead.id, sample_property.id)
        second = service.match(sample_lead.id, sample_property.id)

        assert first.id == second.id
        assert second.match_score == 100
        assert db_session.query(LeadPropertyMatch).count() == 1
        assert db_session.query(Activity).filter(Activity.type == "ai_match").count() == 2

    def test_missing_property(self, db_session, sample_lead, offline_assistant):
        with pytest.raises(NotFoundError):
            MatchService(db_session, assistant=offline_assistant).match(sample_lead.id, 999)


class TestDashboardService:
    def test_metrics(self, db_session, sample_deal, sample_task):
        sample_deal.status = "handover"
        db_session.flush()

        metrics = DashboardService(db_session).get_metrics()

        assert metrics.total_leads == 1
        assert metrics.active_properties == 1
        assert metrics.total_revenue == 14100
        assert metrics.open_tasks == 1
        assert metrics.lead_funnel == {"new": 1}

    def test_snapshot_includes_lead(self, db_session, sample_lead, sample_property):
        snapshot = DashboardService(db_session).get_snapshot(lead_id=sample_lead.id)

        assert snapshot["leads"] == 1
        assert snapshot["averagePrice"] == 480000
        assert snapshot["highScoreLeads"] == [
            {"id": sample_lead.id, "name": "Sarah Johnson", "score": 85}
        ]
        assert snapshot["lead"]["propertyTypes"] == ["house"]
