"""Lead management routes."""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from api.auth_deps import get_current_user
from api.deps import get_assistant, get_db, get_readonly_db
from core.logging_config import get_logger
from core.models import User
from llm.assistant import Assistant
from domain.leads import LeadService
from domain.schemas import LeadCreate, LeadRead, LeadUpdate, MatchRead, StatusMove, dump

router = APIRouter()
LOGGER = get_logger(__name__)


@router.get("")
async def list_leads(
    status_filter: Optional[str] = Query(default=None, alias="status"),
    assigned_to: Optional[int] = Query(default=None, alias="assignedTo"),
    search: Optional[str] = Query(default=None),
    limit: Optional[int] = Query(default=None, ge=1),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_readonly_db),
    current_user: User = Depends(get_current_user),
) -> List[Dict[str, Any]]:
    """Leads newest-first; ``limit`` defaults to 50 and is capped at 100."""
    leads = LeadService(db).list_leads(
        status=status_filter,
        assigned_to=assigned_to,
        search=search,
        limit=limit,
        offset=offset,
    )
    return [dump(LeadRead, lead) for lead in leads]


@router.get("/stats")
async def lead_statistics(
    db: Session = Depends(get_readonly_db),
    current_user: User = Depends(get_current_user),
) -> Dict[str, Any]:
    return LeadService(db).get_statistics()


@router.get("/{lead_id}")
async def get_lead(
    lead_id: int,
    db: Session = Depends(get_readonly_db),
    current_user: User = Depends(get_current_user),
) -> Dict[str, Any]:
    return dump(LeadRead, LeadService(db).get_lead(lead_id))


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_lead(
    body: LeadCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    assistant: Assistant = Depends(get_assistant),
) -> Dict[str, Any]:
    """Create a lead owned by the caller unless ``assignedTo`` says otherwise."""
    service = LeadService(db, scorer=lambda data: assistant.score_lead(data).score)
    lead = service.create_lead(body, actor_id=current_user.id)
    return dump(LeadRead, lead)


@router.patch("/{lead_id}")
async def update_lead(
    lead_id: int,
    body: LeadUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Dict[str, Any]:
    lead = LeadService(db).update_lead(lead_id, body, actor_id=current_user.id)
    return dump(LeadRead, lead)


@router.patch("/{lead_id}/status")
async def move_lead(
    lead_id: int,
    body: StatusMove,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Dict[str, Any]:
    """Move a lead to another pipeline column."""
    result = LeadService(db).update_status(lead_id, body.status, actor_id=current_user.id)
    return dump(LeadRead, result.entity)


@router.delete("/{lead_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_lead(
    lead_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Response:
    LeadService(db).delete_lead(lead_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{lead_id}/matches")
async def lead_matches(
    lead_id: int,
    db: Session = Depends(get_readonly_db),
    current_user: User = Depends(get_current_user),
) -> List[Dict[str, Any]]:
    """Stored property matches for a lead, best first."""
    return [dump(MatchRead, match) for match in LeadService(db).get_matches(lead_id)]
