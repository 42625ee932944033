"""Typed request/response payloads for every entity.

Field names are snake_case in Python and camelCase on the wire; both spellings
are accepted on input.
"""
from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Dict, List, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from core.exceptions import ValidationError
from core.models import TaskPriority
from core.utils import ensure_aware
from domain.pipeline import PipelineKind, normalize_status


class CamelModel(BaseModel):
    """Base model: camelCase aliases and ORM attribute loading."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


def _check_status(kind: PipelineKind, value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    try:
        return normalize_status(kind, value)
    except ValidationError as exc:
        raise ValueError(str(exc)) from exc


# SQLite hands back naive datetimes; responses always carry UTC offsets.
UTCDatetime = Annotated[datetime, AfterValidator(ensure_aware)]


# =============================================================================
# Leads
# =============================================================================


class LeadBase(CamelModel):
    email: Optional[str] = Field(default=None, max_length=255)
    phone: Optional[str] = Field(default=None, max_length=50)
    source: Optional[str] = Field(default=None, max_length=50)
    budget: Optional[float] = Field(default=None, ge=0)
    budget_max: Optional[float] = Field(default=None, ge=0)
    preferred_locations: Optional[List[str]] = None
    property_types: Optional[List[str]] = None
    timeline: Optional[str] = None
    notes: Optional[str] = None
    assigned_to: Optional[int] = None


class LeadCreate(LeadBase):
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    status: Optional[str] = None
    score: Optional[int] = Field(default=None, ge=0, le=100)

    @field_validator("status")
    @classmethod
    def validate_status(cls, v: Optional[str]) -> Optional[str]:
        return _check_status(PipelineKind.LEAD, v)


class LeadUpdate(LeadBase):
    first_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    status: Optional[str] = None
    score: Optional[int] = Field(default=None, ge=0, le=100)

    @field_validator("status")
    @classmethod
    def validate_status(cls, v: Optional[str]) -> Optional[str]:
        return _check_status(PipelineKind.LEAD, v)


class LeadRead(CamelModel):
    id: int
    first_name: str
    last_name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    source: Optional[str] = None
    status: str
    score: int = 0
    budget: Optional[float] = None
    budget_max: Optional[float] = None
    preferred_locations: List[str] = Field(default_factory=list)
    property_types: List[str] = Field(default_factory=list)
    timeline: Optional[str] = None
    notes: Optional[str] = None
    assigned_to: Optional[int] = None
    created_at: Optional[UTCDatetime] = None
    updated_at: Optional[UTCDatetime] = None


# =============================================================================
# Properties
# =============================================================================


class PropertyBase(CamelModel):
    zip_code: Optional[str] = Field(default=None, max_length=10)
    bedrooms: Optional[int] = Field(default=None, ge=0)
    bathrooms: Optional[float] = Field(default=None, ge=0)
    square_feet: Optional[int] = Field(default=None, ge=0)
    lot_size: Optional[float] = Field(default=None, ge=0)
    year_built: Optional[int] = Field(default=None, ge=1600, le=2200)
    description: Optional[str] = None
    features: Optional[List[str]] = None
    images: Optional[List[str]] = None
    listing_agent: Optional[int] = None
    commission: Optional[float] = Field(default=None, ge=0)


class PropertyCreate(PropertyBase):
    title: str = Field(..., min_length=1, max_length=255)
    address: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1, max_length=100)
    state: str = Field(..., min_length=1, max_length=50)
    property_type: str = Field(..., min_length=1, max_length=50)
    price: float = Field(..., ge=0)
    status: Optional[str] = None

    @field_validator("status")
    @classmethod
    def validate_status(cls, v: Optional[str]) -> Optional[str]:
        return _check_status(PipelineKind.PROPERTY, v)


class PropertyUpdate(PropertyBase):
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    address: Optional[str] = Field(default=None, min_length=1)
    city: Optional[str] = Field(default=None, min_length=1, max_length=100)
    state: Optional[str] = Field(default=None, min_length=1, max_length=50)
    property_type: Optional[str] = Field(default=None, min_length=1, max_length=50)
    price: Optional[float] = Field(default=None, ge=0)
    status: Optional[str] = None

    @field_validator("status")
    @classmethod
    def validate_status(cls, v: Optional[str]) -> Optional[str]:
        return _check_status(PipelineKind.PROPERTY, v)


class PropertyRead(CamelModel):
    id: int
    title: str
    address: str
    city: str
    state: str
    zip_code: Optional[str] = None
    property_type: str
    status: str
    price: float
    bedrooms: Optional[int] = None
    bathrooms: Optional[float] = None
    square_feet: Optional[int] = None
    lot_size: Optional[float] = None
    year_built: Optional[int] = None
    description: Optional[str] = None
    features: List[str] = Field(default_factory=list)
    images: List[str] = Field(default_factory=list)
    listing_agent: Optional[int] = None
    commission: Optional[float] = None
    created_at: Optional[UTCDatetime] = None
    updated_at: Optional[UTCDatetime] = None


# =============================================================================
# Deals
# =============================================================================


class DealCreate(CamelModel):
    lead_id: int
    property_id: int
    deal_value: float = Field(..., ge=0)
    status: Optional[str] = None
    offer_amount: Optional[float] = Field(default=None, ge=0)
    expected_close_date: Optional[UTCDatetime] = None
    commission: Optional[float] = Field(default=None, ge=0)
    notes: Optional[str] = None
    assigned_to: Optional[int] = None

    @field_validator("status")
    @classmethod
    def validate_status(cls, v: Optional[str]) -> Optional[str]:
        return _check_status(PipelineKind.DEAL, v)


class DealUpdate(CamelModel):
    deal_value: Optional[float] = Field(default=None, ge=0)
    status: Optional[str] = None
    offer_amount: Optional[float] = Field(default=None, ge=0)
    expected_close_date: Optional[UTCDatetime] = None
    actual_close_date: Optional[UTCDatetime] = None
    commission: Optional[float] = Field(default=None, ge=0)
    notes: Optional[str] = None
    assigned_to: Optional[int] = None

    @field_validator("status")
    @classmethod
    def validate_status(cls, v: Optional[str]) -> Optional[str]:
        return _check_status(PipelineKind.DEAL, v)


class DealRead(CamelModel):
    id: int
    lead_id: int
    property_id: int
    status: str
    deal_value: float
    offer_amount: Optional[float] = None
    expected_close_date: Optional[UTCDatetime] = None
    actual_close_date: Optional[UTCDatetime] = None
    commission: Optional[float] = None
    notes: Optional[str] = None
    assigned_to: Optional[int] = None
    created_at: Optional[UTCDatetime] = None
    updated_at: Optional[UTCDatetime] = None


# =============================================================================
# Tasks
# =============================================================================


class TaskCreate(CamelModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    type: str = Field(default="call", max_length=30)
    priority: TaskPriority = TaskPriority.MEDIUM
    status: Optional[str] = None
    due_date: Optional[UTCDatetime] = None
    lead_id: Optional[int] = None
    property_id: Optional[int] = None
    deal_id: Optional[int] = None
    assigned_to: Optional[int] = None

    @field_validator("status")
    @classmethod
    def validate_status(cls, v: Optional[str]) -> Optional[str]:
        return _check_status(PipelineKind.TASK, v)


class TaskUpdate(CamelModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    type: Optional[str] = Field(default=None, max_length=30)
    priority: Optional[TaskPriority] = None
    status: Optional[str] = None
    due_date: Optional[UTCDatetime] = None
    assigned_to: Optional[int] = None

    @field_validator("status")
    @classmethod
    def validate_status(cls, v: Optional[str]) -> Optional[str]:
        return _check_status(PipelineKind.TASK, v)


class TaskRead(CamelModel):
    id: int
    title: str
    description: Optional[str] = None
    type: str
    priority: str
    status: str
    due_date: Optional[UTCDatetime] = None
    completed_at: Optional[UTCDatetime] = None
    lead_id: Optional[int] = None
    property_id: Optional[int] = None
    deal_id: Optional[int] = None
    assigned_to: Optional[int] = None
    created_by: Optional[int] = None
    created_at: Optional[UTCDatetime] = None
    updated_at: Optional[UTCDatetime] = None


# =============================================================================
# Status moves, activities, notifications, matches
# =============================================================================


class StatusMove(CamelModel):
    """Body of ``PATCH /{collection}/{id}/status``."""
    status: str = Field(..., min_length=1, max_length=50)


class ActivityRead(CamelModel):
    id: int
    type: str
    title: str
    description: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = Field(default=None, validation_alias="event_metadata")
    lead_id: Optional[int] = None
    property_id: Optional[int] = None
    deal_id: Optional[int] = None
    user_id: Optional[int] = None
    created_at: Optional[UTCDatetime] = None


class NotificationCreate(CamelModel):
    type: str = Field(..., min_length=1, max_length=50)
    title: str = Field(..., min_length=1, max_length=255)
    message: str = Field(..., min_length=1)
    action_url: Optional[str] = None
    entity_type: Optional[str] = None
    entity_id: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None


class NotificationRead(CamelModel):
    id: int
    user_id: int
    type: str
    title: str
    message: str
    is_read: bool
    action_url: Optional[str] = None
    entity_type: Optional[str] = None
    entity_id: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = Field(default=None, validation_alias="event_metadata")
    created_at: Optional[UTCDatetime] = None
    read_at: Optional[UTCDatetime] = None


class MatchRead(CamelModel):
    id: int
    lead_id: int
    property_id: int
    match_score: int
    ai_reasons: List[str] = Field(default_factory=list)
    status: str
    created_at: Optional[UTCDatetime] = None


# =============================================================================
# AI assistant
# =============================================================================


class ChatContext(CamelModel):
    """Where the user is and a lightweight snapshot of what they see."""
    page: str = Field(default="dashboard", max_length=50)
    lead_id: Optional[int] = None
    deal_id: Optional[int] = None
    property_id: Optional[int] = None
    data: Optional[Dict[str, Any]] = None


class ChatRequest(CamelModel):
    message: str = Field(..., min_length=1, max_length=4000)
    context: ChatContext = Field(default_factory=ChatContext)


class ChatResponse(CamelModel):
    response: str


class ScoreLeadRequest(CamelModel):
    lead_id: Optional[int] = None
    lead: Optional[LeadCreate] = None


class MatchPropertyRequest(CamelModel):
    lead_id: int
    property_id: int


class FollowUpRequest(CamelModel):
    lead_id: int
    channel: str = Field(default="email", pattern="^(email|sms|call)$")
    context: Optional[str] = None


def dump(model_cls: type, obj: Any) -> Dict[str, Any]:
    """Serialize an ORM row through ``model_cls`` into a camelCase JSON dict."""
    return model_cls.model_validate(obj).model_dump(mode="json", by_alias=True)


__all__ = [
    "CamelModel",
    "LeadCreate",
    "LeadUpdate",
    "LeadRead",
    "PropertyCreate",
    "PropertyUpdate",
    "PropertyRead",
    "DealCreate",
    "DealUpdate",
    "DealRead",
    "TaskCreate",
    "TaskUpdate",
    "TaskRead",
    "StatusMove",
    "ActivityRead",
    "NotificationCreate",
    "NotificationRead",
    "MatchRead",
    "ChatContext",
    "ChatRequest",
    "ChatResponse",
    "ScoreLeadRequest",
    "MatchPropertyRequest",
    "FollowUpRequest",
    "dump",
]
