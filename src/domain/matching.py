"""Lead-to-property matching with persisted, regenerable results."""
from __future__ import annotations

from typing import Optional, Tuple

from sqlalchemy.orm import Session

from core.exceptions import NotFoundError
from core.logging_config import get_logger
from core.models import Lead, LeadPropertyMatch, Property
from core.utils import utcnow
from services.activity import ActivityLog, ActivityType

LOGGER = get_logger(__name__)


class MatchService:
    """Runs the assistant's matcher for a lead/property pair and stores the result."""

    def __init__(self, session: Session, assistant=None) -> None:
        self.session = session
        self.activity_log = ActivityLog(session)
        if assistant is None:
            from llm.assistant import get_assistant

            assistant = get_assistant()
        self.assistant = assistant

    def _load_pair(self, lead_id: int, property_id: int) -> Tuple[Lead, Property]:
        lead = self.session.get(Lead, lead_id)
        if lead is None or lead.deleted_at is not None:
            raise NotFoundError("Lead", lead_id)
        prop = self.session.get(Property, property_id)
        if prop is None or prop.deleted_at is not None:
            raise NotFoundError("Property", property_id)
        return lead, prop

    def match(self, lead_id: int, property_id: int, actor_id: Optional[int] = None) -> LeadPropertyMatch:
        """
        Score a pair and persist it, replacing any earlier result for the pair.

        Raises:
            NotFoundError: If the lead or property does not exist.
        """
        lead, prop = self._load_pair(lead_id, property_id)
        result = self.assistant.match_property(lead, prop)

        row = (
            self.session.query(LeadPropertyMatch)
            .filter(
                LeadPropertyMatch.lead_id == lead_id,
                LeadPropertyMatch.property_id == property_id,
            )
            .one_or_none()
        )
        if row is None:
            row = LeadPropertyMatch(lead_id=lead_id, property_id=property_id, created_at=utcnow())
            self.session.add(row)
        row.match_score = result.match_score
        row.ai_reasons = list(result.reasons)
        row.status = "suggested"
        self.session.flush()

        self.activity_log.record(
            ActivityType.AI_MATCH,
            title="Property matched",
            description=f"{prop.title} scored {result.match_score} for {lead.full_name}",
            metadata={"match_score": result.match_score, "confidence": result.confidence},
            lead_id=lead_id,
            property_id=property_id,
            user_id=actor_id,
        )
        LOGGER.info(f"Matched lead {lead_id} to property {property_id}: {result.match_score}")
        return row


__all__ = ["MatchService"]
