"""AI assistant routes: chat, scoring, matching, follow-ups and insights."""
from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from api.auth_deps import get_current_user
from api.deps import get_assistant, get_db, get_readonly_db
from core.exceptions import ValidationError
from core.logging_config import get_logger
from core.models import User
from domain.dashboard import DashboardService
from domain.leads import LeadService
from domain.matching import MatchService
from domain.schemas import (
    ChatRequest,
    FollowUpRequest,
    MatchPropertyRequest,
    MatchRead,
    ScoreLeadRequest,
    dump,
)
from llm.assistant import Assistant

router = APIRouter()
LOGGER = get_logger(__name__)


@router.post("/chat")
async def chat(
    body: ChatRequest,
    db: Session = Depends(get_readonly_db),
    current_user: User = Depends(get_current_user),
    assistant: Assistant = Depends(get_assistant),
) -> Dict[str, str]:
    """Answer a question about the page the caller is on; always returns text."""
    snapshot = DashboardService(db).get_snapshot(lead_id=body.context.lead_id)
    response = assistant.chat(
        body.message,
        page=body.context.page,
        snapshot=snapshot,
        page_data=body.context.data,
    )
    return {"response": response}


@router.post("/score-lead")
async def score_lead(
    body: ScoreLeadRequest,
    db: Session = Depends(get_readonly_db),
    current_user: User = Depends(get_current_user),
    assistant: Assistant = Depends(get_assistant),
) -> Dict[str, Any]:
    """Score a stored lead (``leadId``) or an unsaved lead payload (``lead``)."""
    if body.lead_id is not None:
        lead: Any = LeadService(db).get_lead(body.lead_id)
    elif body.lead is not None:
        lead = body.lead.model_dump()
    else:
        raise ValidationError("Provide either leadId or lead")
    return assistant.score_lead(lead).to_dict()


@router.post("/match-property")
async def match_property(
    body: MatchPropertyRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    assistant: Assistant = Depends(get_assistant),
) -> Dict[str, Any]:
    """Score a lead/property pair and store it as the pair's current match."""
    match = MatchService(db, assistant=assistant).match(
        body.lead_id, body.property_id, actor_id=current_user.id
    )
    return dump(MatchRead, match)


@router.post("/generate-message")
async def generate_message(
    body: FollowUpRequest,
    db: Session = Depends(get_readonly_db),
    current_user: User = Depends(get_current_user),
    assistant: Assistant = Depends(get_assistant),
) -> Dict[str, Any]:
    lead = LeadService(db).get_lead(body.lead_id)
    return assistant.generate_follow_up(lead, channel=body.channel, context=body.context).to_dict()


@router.get("/insights")
async def insights(
    db: Session = Depends(get_readonly_db),
    current_user: User = Depends(get_current_user),
    assistant: Assistant = Depends(get_assistant),
) -> Dict[str, Any]:
    metrics = DashboardService(db).get_metrics().to_dict()
    return assistant.insights(metrics).to_dict()
