"""Tests for board grouping, status vocabularies and status moves."""
from __future__ import annotations

import pytest

from core.exceptions import InvalidTransitionError, NotFoundError, ValidationError
from core.models import Activity, Notification
from domain.board import LEAD_COLUMNS, PIPELINE_COLUMNS, PipelineKind, build_board, group_by_status
from domain.pipeline import StatusMover, TransitionPolicy, normalize_status


# ============================================================================
# Grouping projection
# ============================================================================


class TestGroupByStatus:
    """The board projection is a stable partition over the column set."""

    def test_bucket_sizes_follow_column_order(self):
        leads = [
            {"id": 1, "status": "new"},
            {"id": 2, "status": "new"},
            {"id": 3, "status": "contacted"},
            {"id": 4, "status": "qualified"},
            {"id": 5, "status": "closed"},
        ]

        board = group_by_status(leads, LEAD_COLUMNS)

        assert list(board) == ["new", "contacted", "qualified", "tour", "offer", "closed", "lost"]
        assert [len(items) for items in board.values()] == [2, 1, 1, 0, 0, 1, 0]

    def test_items_keep_input_order(self):
        leads = [{"id": 9, "status": "new"}, {"id": 3, "status": "new"}, {"id": 7, "status": "new"}]

        board = group_by_status(leads, LEAD_COLUMNS)

        assert [item["id"] for item in board["new"]] == [9, 3, 7]

    def test_unknown_status_is_dropped(self):
        leads = [{"id": 1, "status": "new"}, {"id": 2, "status": "nurturing"}, {"id": 3}]

        board = group_by_status(leads, LEAD_COLUMNS)

        assert sum(len(items) for items in board.values()) == 1
        assert board["new"] == [{"id": 1, "status": "new"}]

    def test_reads_attributes_as_well_as_keys(self):
        class Row:
            def __init__(self, status):
                self.status = status

        board = group_by_status([Row("sold"), Row("available")], PIPELINE_COLUMNS[PipelineKind.PROPERTY])

        assert len(board["sold"]) == 1
        assert len(board["available"]) == 1

    def test_build_board_payload(self):
        board = build_board(PipelineKind.DEAL, [{"id": 1, "status": "legal"}])

        assert board["kind"] == "deal"
        assert [c["id"] for c in board["columns"]] == ["offer", "inspection", "legal", "payment", "handover"]
        legal = next(c for c in board["columns"] if c["id"] == "legal")
        assert legal["label"] == "Legal Review"
        assert legal["items"] == [{"id": 1, "status": "legal"}]


# ============================================================================
# Vocabularies and policy
# ============================================================================


class TestStatusVocabulary:
    def test_aliases_map_to_canonical_values(self):
        assert normalize_status(PipelineKind.PROPERTY, "under_contract") == "pending"
        assert normalize_status(PipelineKind.DEAL, "closed") == "handover"
        assert normalize_status(PipelineKind.LEAD, "Qualified") == "qualified"

    def test_unknown_value_is_rejected(self):
        with pytest.raises(ValidationError):
            normalize_status(PipelineKind.TASK, "blocked")

    def test_permissive_policy_allows_backward_moves(self):
        policy = TransitionPolicy.permissive()

        assert policy.allows(PipelineKind.LEAD, "closed", "new")
        assert policy.allows(PipelineKind.DEAL, "handover", "offer")

    def test_allow_list_policy(self):
        policy = TransitionPolicy.from_table()

        assert policy.allows(PipelineKind.LEAD, "new", "contacted")
        assert not policy.allows(PipelineKind.LEAD, "new", "closed")
        assert policy.allows(PipelineKind.LEAD, "new", "new")
        with pytest.raises(InvalidTransitionError):
            policy.check(PipelineKind.PROPERTY, "sold", "available")


# ============================================================================
# Status mover
# ============================================================================


class TestStatusMover:
    def test_move_lead_to_qualified(self, db_session, sample_lead, sample_user):
        mover = StatusMover(db_session, policy=TransitionPolicy.permissive())

        result = mover.move_item(PipelineKind.LEAD, sample_lead.id, "qualified", actor_id=sample_user.id)

        assert result.changed
        assert result.old_status == "new"
        assert sample_lead.status == "qualified"

        activity = (
            db_session.query(Activity)
            .filter(Activity.lead_id == sample_lead.id, Activity.type == "status_change")
            .one()
        )
        assert activity.event_metadata["new_status"] == "qualified"

        notification = (
            db_session.query(Notification).filter(Notification.user_id == sample_user.id).one()
        )
        assert notification.title == "Lead Qualified"
        assert notification.action_url == f"/leads/{sample_lead.id}"

    def test_move_only_changes_status(self, db_session, sample_lead):
        score_before = sample_lead.score
        mover = StatusMover(db_session, policy=TransitionPolicy.permissive())

        mover.move_item(PipelineKind.LEAD, sample_lead.id, "lost")

        assert sample_lead.score == score_before
        assert sample_lead.budget == 400000

    def test_task_completion_sets_completed_at(self, db_session, sample_task):
        mover = StatusMover(db_session, policy=TransitionPolicy.permissive())

        mover.move_item(PipelineKind.TASK, sample_task.id, "completed")
        assert sample_task.completed_at is not None

        mover.move_item(PipelineKind.TASK, sample_task.id, "in_progress")
        assert sample_task.completed_at is None

    def test_missing_entity(self, db_session, tables):
        mover = StatusMover(db_session, policy=TransitionPolicy.permissive())

        with pytest.raises(NotFoundError):
            mover.move_item(PipelineKind.DEAL, 999999, "legal")

    def test_enforced_policy_rejects_skip(self, db_session, sample_deal):
        mover = StatusMover(db_session, policy=TransitionPolicy.from_table())

        with pytest.raises(InvalidTransitionError):
            mover.move_item(PipelineKind.DEAL, sample_deal.id, "handover")
        assert sample_deal.status == "offer"
