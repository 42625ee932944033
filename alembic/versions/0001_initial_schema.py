"""Initial CRM schema.

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-19
"""
from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.current_timestamp()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.current_timestamp()),
    ]


def upgrade() -> None:
    # =========================================================================
    # Table: user
    # =========================================================================
    op.create_table(
        "user",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("hashed_password", sa.String(255), nullable=False),
        sa.Column("first_name", sa.String(100), nullable=True),
        sa.Column("last_name", sa.String(100), nullable=True),
        sa.Column("role", sa.String(20), nullable=False, server_default="agent"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_user_email", "user", ["email"], unique=True)

    # =========================================================================
    # Table: lead
    # =========================================================================
    op.create_table(
        "lead",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("source", sa.String(50), nullable=True, server_default="website"),
        sa.Column("status", sa.String(20), nullable=True, server_default="new"),
        sa.Column("score", sa.Integer(), nullable=True, server_default="0"),
        sa.Column("budget", sa.Numeric(12, 2), nullable=True),
        sa.Column("budget_max", sa.Numeric(12, 2), nullable=True),
        sa.Column("preferred_locations", sa.JSON(), nullable=True),
        sa.Column("property_types", sa.JSON(), nullable=True),
        sa.Column("timeline", sa.String(50), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("assigned_to", sa.Integer(), sa.ForeignKey("user.id"), nullable=True),
        *_timestamps(),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_lead_email", "lead", ["email"])
    op.create_index("ix_lead_status", "lead", ["status"])
    op.create_index("ix_lead_score", "lead", ["score"])
    op.create_index("ix_lead_assigned_to", "lead", ["assigned_to"])
    op.create_index("ix_lead_deleted_at", "lead", ["deleted_at"])

    # =========================================================================
    # Table: property
    # =========================================================================
    op.create_table(
        "property",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("address", sa.Text(), nullable=False),
        sa.Column("city", sa.String(100), nullable=False),
        sa.Column("state", sa.String(50), nullable=False),
        sa.Column("zip_code", sa.String(10), nullable=True),
        sa.Column("property_type", sa.String(50), nullable=False),
        sa.Column("status", sa.String(20), nullable=True, server_default="available"),
        sa.Column("price", sa.Numeric(12, 2), nullable=False),
        sa.Column("bedrooms", sa.Integer(), nullable=True),
        sa.Column("bathrooms", sa.Numeric(3, 1), nullable=True),
        sa.Column("square_feet", sa.Integer(), nullable=True),
        sa.Column("lot_size", sa.Numeric(8, 2), nullable=True),
        sa.Column("year_built", sa.Integer(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("features", sa.JSON(), nullable=True),
        sa.Column("images", sa.JSON(), nullable=True),
        sa.Column("listing_agent", sa.Integer(), sa.ForeignKey("user.id"), nullable=True),
        sa.Column("commission", sa.Numeric(5, 2), nullable=True),
        *_timestamps(),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_property_city", "property", ["city"])
    op.create_index("ix_property_property_type", "property", ["property_type"])
    op.create_index("ix_property_status", "property", ["status"])
    op.create_index("ix_property_listing_agent", "property", ["listing_agent"])
    op.create_index("ix_property_deleted_at", "property", ["deleted_at"])

    # =========================================================================
    # Table: deal
    # =========================================================================
    op.create_table(
        "deal",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("lead_id", sa.Integer(), sa.ForeignKey("lead.id"), nullable=False),
        sa.Column("property_id", sa.Integer(), sa.ForeignKey("property.id"), nullable=False),
        sa.Column("status", sa.String(20), nullable=True, server_default="offer"),
        sa.Column("deal_value", sa.Numeric(12, 2), nullable=False),
        sa.Column("offer_amount", sa.Numeric(12, 2), nullable=True),
        sa.Column("expected_close_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("actual_close_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("commission", sa.Numeric(12, 2), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("assigned_to", sa.Integer(), sa.ForeignKey("user.id"), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_deal_lead_id", "deal", ["lead_id"])
    op.create_index("ix_deal_property_id", "deal", ["property_id"])
    op.create_index("ix_deal_status", "deal", ["status"])
    op.create_index("ix_deal_assigned_to", "deal", ["assigned_to"])

    # =========================================================================
    # Table: task
    # =========================================================================
    op.create_table(
        "task",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("type", sa.String(30), nullable=True, server_default="call"),
        sa.Column("priority", sa.String(10), nullable=True, server_default="medium"),
        sa.Column("status", sa.String(20), nullable=True, server_default="pending"),
        sa.Column("due_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("lead_id", sa.Integer(), sa.ForeignKey("lead.id"), nullable=True),
        sa.Column("property_id", sa.Integer(), sa.ForeignKey("property.id"), nullable=True),
        sa.Column("deal_id", sa.Integer(), sa.ForeignKey("deal.id"), nullable=True),
        sa.Column("assigned_to", sa.Integer(), sa.ForeignKey("user.id"), nullable=True),
        sa.Column("created_by", sa.Integer(), sa.ForeignKey("user.id"), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_task_status", "task", ["status"])
    op.create_index("ix_task_due_date", "task", ["due_date"])
    op.create_index("ix_task_lead_id", "task", ["lead_id"])
    op.create_index("ix_task_assigned_to", "task", ["assigned_to"])

    # =========================================================================
    # Table: activity
    # =========================================================================
    op.create_table(
        "activity",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("type", sa.String(50), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("lead_id", sa.Integer(), sa.ForeignKey("lead.id"), nullable=True),
        sa.Column("property_id", sa.Integer(), sa.ForeignKey("property.id"), nullable=True),
        sa.Column("deal_id", sa.Integer(), sa.ForeignKey("deal.id"), nullable=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("user.id"), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.current_timestamp()),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_activity_type", "activity", ["type"])
    op.create_index("ix_activity_lead_id", "activity", ["lead_id"])
    op.create_index("ix_activity_property_id", "activity", ["property_id"])
    op.create_index("ix_activity_deal_id", "activity", ["deal_id"])

    # =========================================================================
    # Table: notification
    # =========================================================================
    op.create_table(
        "notification",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("user.id"), nullable=False),
        sa.Column("type", sa.String(50), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("action_url", sa.String(255), nullable=True),
        sa.Column("entity_type", sa.String(20), nullable=True),
        sa.Column("entity_id", sa.String(50), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.current_timestamp()),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_notification_user_id", "notification", ["user_id"])

    # =========================================================================
    # Table: lead_property_match
    # =========================================================================
    op.create_table(
        "lead_property_match",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("lead_id", sa.Integer(), sa.ForeignKey("lead.id"), nullable=False),
        sa.Column("property_id", sa.Integer(), sa.ForeignKey("property.id"), nullable=False),
        sa.Column("match_score", sa.Integer(), nullable=True, server_default="0"),
        sa.Column("ai_reasons", sa.JSON(), nullable=True),
        sa.Column("status", sa.String(20), nullable=True, server_default="suggested"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.current_timestamp()),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("lead_id", "property_id", name="uq_match_lead_property"),
    )
    op.create_index("ix_lead_property_match_lead_id", "lead_property_match", ["lead_id"])
    op.create_index("ix_lead_property_match_property_id", "lead_property_match", ["property_id"])


def downgrade() -> None:
    for table in (
        "lead_property_match",
        "notification",
        "activity",
        "task",
        "deal",
        "property",
        "lead",
        "user",
    ):
        op.drop_table(table)
