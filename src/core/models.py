"""SQLAlchemy ORM models for the realty CRM."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    JSON,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
import enum

from core.db import Base


# =============================================================================
# Enums
# =============================================================================


class LeadStatus(str, enum.Enum):
    """Lead pipeline statuses."""
    NEW = "new"
    CONTACTED = "contacted"
    QUALIFIED = "qualified"
    TOUR = "tour"              # Tour scheduled
    OFFER = "offer"            # Offer made
    CLOSED = "closed"
    LOST = "lost"
    NURTURING = "nurturing"    # Valid status, no board column


class PropertyStatus(str, enum.Enum):
    """Property listing statuses."""
    AVAILABLE = "available"
    PENDING = "pending"        # Under contract
    SOLD = "sold"
    WITHDRAWN = "withdrawn"    # Off market


class DealStatus(str, enum.Enum):
    """Deal stages."""
    OFFER = "offer"
    INSPECTION = "inspection"
    LEGAL = "legal"
    PAYMENT = "payment"
    HANDOVER = "handover"
    LOST = "lost"


class TaskStatus(str, enum.Enum):
    """Task statuses."""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class TaskPriority(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class UserRole(str, enum.Enum):
    """User roles for authorization."""
    ADMIN = "admin"
    AGENT = "agent"


# Alternative vocabularies accepted at the boundary, mapped to the canonical value.
PROPERTY_STATUS_ALIASES = {
    "under_contract": PropertyStatus.PENDING.value,
    "off_market": PropertyStatus.WITHDRAWN.value,
}

DEAL_STATUS_ALIASES = {
    "prospect": DealStatus.OFFER.value,
    "negotiation": DealStatus.INSPECTION.value,
    "contract": DealStatus.LEGAL.value,
    "closing": DealStatus.PAYMENT.value,
    "closed": DealStatus.HANDOVER.value,
}


# =============================================================================
# User Model (Authentication)
# =============================================================================


class User(Base):
    """Application user; owns leads, deals, tasks and notifications."""
    __tablename__ = "user"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)
    first_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    last_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    role: Mapped[str] = mapped_column(String(20), default=UserRole.AGENT.value, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    notifications: Mapped[list["Notification"]] = relationship(
        "Notification", back_populates="user", cascade="all, delete-orphan"
    )


# =============================================================================
# Lead Model
# =============================================================================


class Lead(Base):
    """A prospective buyer or renter tracked through the sales pipeline."""
    __tablename__ = "lead"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, index=True)
    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    source: Mapped[str] = mapped_column(String(50), default="website")

    # Pipeline
    status: Mapped[str] = mapped_column(String(20), default=LeadStatus.NEW.value, index=True)
    score: Mapped[int] = mapped_column(Integer, default=0, index=True)

    # Preferences
    budget: Mapped[Optional[float]] = mapped_column(Numeric(12, 2, asdecimal=False), nullable=True)
    budget_max: Mapped[Optional[float]] = mapped_column(Numeric(12, 2, asdecimal=False), nullable=True)
    preferred_locations: Mapped[list] = mapped_column(JSON, default=list)
    property_types: Mapped[list] = mapped_column(JSON, default=list)
    timeline: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    assigned_to: Mapped[Optional[int]] = mapped_column(
        ForeignKey("user.id"), nullable=True, index=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
    deleted_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True, index=True
    )

    deals: Mapped[list["Deal"]] = relationship("Deal", back_populates="lead")
    matches: Mapped[list["LeadPropertyMatch"]] = relationship(
        "LeadPropertyMatch", back_populates="lead", order_by="desc(LeadPropertyMatch.match_score)"
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


# =============================================================================
# Property Model
# =============================================================================


class Property(Base):
    """A listing that can be matched to leads and sold through a deal."""
    __tablename__ = "property"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    address: Mapped[str] = mapped_column(Text, nullable=False)
    city: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    state: Mapped[str] = mapped_column(String(50), nullable=False)
    zip_code: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    property_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)

    status: Mapped[str] = mapped_column(
        String(20), default=PropertyStatus.AVAILABLE.value, index=True
    )
    price: Mapped[float] = mapped_column(Numeric(12, 2, asdecimal=False), nullable=False)

    bedrooms: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    bathrooms: Mapped[Optional[float]] = mapped_column(Numeric(3, 1, asdecimal=False), nullable=True)
    square_feet: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    lot_size: Mapped[Optional[float]] = mapped_column(Numeric(8, 2, asdecimal=False), nullable=True)
    year_built: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    features: Mapped[list] = mapped_column(JSON, default=list)
    images: Mapped[list] = mapped_column(JSON, default=list)

    listing_agent: Mapped[Optional[int]] = mapped_column(
        ForeignKey("user.id"), nullable=True, index=True
    )
    commission: Mapped[Optional[float]] = mapped_column(Numeric(5, 2, asdecimal=False), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
    deleted_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True, index=True
    )

    deals: Mapped[list["Deal"]] = relationship("Deal", back_populates="property")

    __table_args__ = (
        Index("ix_property_status_type", "status", "property_type"),
    )


# =============================================================================
# Deal Model
# =============================================================================


class Deal(Base):
    """
    A transaction linking one lead and one property.

    Both references are required and enforced by foreign keys.
    """
    __tablename__ = "deal"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    lead_id: Mapped[int] = mapped_column(ForeignKey("lead.id"), nullable=False, index=True)
    property_id: Mapped[int] = mapped_column(ForeignKey("property.id"), nullable=False, index=True)

    status: Mapped[str] = mapped_column(String(20), default=DealStatus.OFFER.value, index=True)
    deal_value: Mapped[float] = mapped_column(Numeric(12, 2, asdecimal=False), nullable=False)
    offer_amount: Mapped[Optional[float]] = mapped_column(Numeric(12, 2, asdecimal=False), nullable=True)
    expected_close_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    actual_close_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    commission: Mapped[Optional[float]] = mapped_column(Numeric(12, 2, asdecimal=False), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    assigned_to: Mapped[Optional[int]] = mapped_column(
        ForeignKey("user.id"), nullable=True, index=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    lead: Mapped["Lead"] = relationship("Lead", back_populates="deals")
    property: Mapped["Property"] = relationship("Property", back_populates="deals")


# =============================================================================
# Task Model
# =============================================================================


class Task(Base):
    """A to-do item, optionally attached to a lead, property or deal."""
    __tablename__ = "task"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    type: Mapped[str] = mapped_column(String(30), default="call")
    priority: Mapped[str] = mapped_column(String(10), default=TaskPriority.MEDIUM.value)
    status: Mapped[str] = mapped_column(String(20), default=TaskStatus.PENDING.value, index=True)

    due_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True, index=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    lead_id: Mapped[Optional[int]] = mapped_column(ForeignKey("lead.id"), nullable=True, index=True)
    property_id: Mapped[Optional[int]] = mapped_column(ForeignKey("property.id"), nullable=True)
    deal_id: Mapped[Optional[int]] = mapped_column(ForeignKey("deal.id"), nullable=True)
    assigned_to: Mapped[Optional[int]] = mapped_column(ForeignKey("user.id"), nullable=True, index=True)
    created_by: Mapped[Optional[int]] = mapped_column(ForeignKey("user.id"), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


# =============================================================================
# Activity Model
# =============================================================================


class Activity(Base):
    """
    An append-only audit entry.

    Rows are only ever inserted; nothing in the application updates or
    deletes them.
    """
    __tablename__ = "activity"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    event_metadata: Mapped[Optional[dict]] = mapped_column("metadata", JSON, nullable=True)

    lead_id: Mapped[Optional[int]] = mapped_column(ForeignKey("lead.id"), nullable=True, index=True)
    property_id: Mapped[Optional[int]] = mapped_column(ForeignKey("property.id"), nullable=True, index=True)
    deal_id: Mapped[Optional[int]] = mapped_column(ForeignKey("deal.id"), nullable=True, index=True)
    user_id: Mapped[Optional[int]] = mapped_column(ForeignKey("user.id"), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), index=True
    )


# =============================================================================
# Notification Model
# =============================================================================


class Notification(Base):
    """A per-user alert. The only state change is unread -> read."""
    __tablename__ = "notification"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("user.id"), nullable=False, index=True)

    type: Mapped[str] = mapped_column(String(50), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    action_url: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    entity_type: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    entity_id: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    event_metadata: Mapped[Optional[dict]] = mapped_column("metadata", JSON, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    read_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    user: Mapped["User"] = relationship("User", back_populates="notifications")

    __table_args__ = (
        Index("ix_notification_user_read", "user_id", "is_read"),
    )


# =============================================================================
# LeadPropertyMatch Model
# =============================================================================


class LeadPropertyMatch(Base):
    """AI recommendation pairing a lead with a property. Regenerable."""
    __tablename__ = "lead_property_match"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    lead_id: Mapped[int] = mapped_column(ForeignKey("lead.id"), nullable=False, index=True)
    property_id: Mapped[int] = mapped_column(ForeignKey("property.id"), nullable=False, index=True)
    match_score: Mapped[int] = mapped_column(Integer, default=0)
    ai_reasons: Mapped[list] = mapped_column(JSON, default=list)
    status: Mapped[str] = mapped_column(String(20), default="suggested")

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    lead: Mapped["Lead"] = relationship("Lead", back_populates="matches")
    property: Mapped["Property"] = relationship("Property")

    __table_args__ = (
        UniqueConstraint("lead_id", "property_id", name="uq_match_lead_property"),
    )
