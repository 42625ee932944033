"""AI assistant: chat, lead scoring, property matching, follow-ups and insights.

Every operation works without a provider. When no LLM key is configured the
assistant answers from deterministic heuristics, so scoring and matching give
the same result for the same input.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from core.exceptions import LLMError
from core.logging_config import get_logger
from core.utils import clamp
from .client import LLMClient, get_llm_client

LOGGER = get_logger(__name__)

CHAT_APOLOGY = (
    "I'm experiencing some technical difficulties but I'm still here to help. "
    "What specific information about your leads, properties, or deals can I assist you with?"
)

SYSTEM_PROMPT_CHAT = (
    "You are a helpful real estate CRM assistant. Provide specific, actionable "
    "insights based on user data and context. Keep answers under 200 words."
)
SYSTEM_PROMPT_SCORING = (
    "You are a real estate lead scoring expert. Analyze leads and provide "
    "accurate scoring with clear reasoning. Always answer with JSON."
)
SYSTEM_PROMPT_MATCHING = (
    "You are a real estate matching expert. Analyze property-lead compatibility "
    "with clear reasoning. Always answer with JSON."
)
SYSTEM_PROMPT_FOLLOW_UP = (
    "You are a real estate communication expert. Write engaging, personalized "
    "follow-up messages that drive action. Always answer with JSON."
)
SYSTEM_PROMPT_INSIGHTS = (
    "You are a real estate business intelligence expert. Provide actionable "
    "insights and recommendations. Always answer with JSON."
)

TEMPERATURES = ("hot", "warm", "cold")
TONES = ("professional", "friendly", "urgent")

HOT_THRESHOLD = 75
WARM_THRESHOLD = 60
HIGH_SCORE = 80

# Points for the lead source in the offline scorer.
SOURCE_POINTS = {
    "referral": 15,
    "website": 8,
    "open_house": 8,
    "zillow": 6,
    "realtor": 6,
    "social_media": 5,
    "facebook": 5,
    "cold_call": 2,
}
URGENT_TIMELINE_WORDS = ("immediate", "asap", "now", "30 days", "1 month", "this month")
NEAR_TIMELINE_WORDS = ("2 month", "3 month", "60 days", "90 days", "soon", "quarter")


@dataclass
class LeadScore:
    score: int
    confidence: float
    reasons: List[str] = field(default_factory=list)
    temperature: str = "cold"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class PropertyMatch:
    match_score: int
    reasons: List[str] = field(default_factory=list)
    confidence: float = 0.5

    def to_dict(self) -> Dict[str, Any]:
        return {
            "matchScore": self.match_score,
            "reasons": list(self.reasons),
            "confidence": self.confidence,
        }


@dataclass
class MessageDraft:
    message: str
    channel: str
    tone: str = "professional"
    subject: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class Insights:
    insights: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)
    priority_actions: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "insights": self.insights,
            "recommendations": self.recommendations,
            "priorityActions": self.priority_actions,
        }


def temperature_for(score: int) -> str:
    if score > HOT_THRESHOLD:
        return "hot"
    if score > WARM_THRESHOLD:
        return "warm"
    return "cold"


def _get(obj: Any, name: str, default: Any = None) -> Any:
    """Read ``name`` from a mapping or an ORM row."""
    if isinstance(obj, Mapping):
        value = obj.get(name, default)
    else:
        value = getattr(obj, name, default)
    return default if value is None else value


def _money(value: Any) -> str:
    if value is None:
        return "Not specified"
    return f"${float(value):,.0f}"


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(item) for item in value if item is not None]


def _confidence(value: Any, default: float) -> float:
    try:
        return max(0.0, min(1.0, float(value)))
    except (TypeError, ValueError):
        return default


def _score(value: Any) -> int:
    try:
        return clamp(float(value))
    except (TypeError, ValueError):
        return 0


# =============================================================================
# Offline heuristics
# =============================================================================


def heuristic_lead_score(lead: Any) -> LeadScore:
    """Score a lead from contact completeness, budget, timeline and source."""
    points = 20
    reasons: List[str] = []

    has_email = bool(_get(lead, "email"))
    has_phone = bool(_get(lead, "phone"))
    if has_email and has_phone:
        points += 20
        reasons.append("Complete contact information")
    elif has_email or has_phone:
        points += 10
        reasons.append("Partial contact information")

    budget = _get(lead, "budget")
    budget_max = _get(lead, "budget_max")
    if budget and budget_max and budget_max >= budget:
        points += 20
        reasons.append("Clear budget range specified")
    elif budget or budget_max:
        points += 12
        reasons.append("Budget specified")

    timeline = str(_get(lead, "timeline", "")).lower()
    if any(word in timeline for word in URGENT_TIMELINE_WORDS):
        points += 20
        reasons.append("Urgent buying timeline")
    elif any(word in timeline for word in NEAR_TIMELINE_WORDS):
        points += 12
        reasons.append("Near-term buying timeline")
    elif timeline:
        points += 5

    source = str(_get(lead, "source", "")).lower().replace(" ", "_").replace("-", "_")
    source_points = SOURCE_POINTS.get(source, 3 if source else 0)
    points += source_points
    if source_points >= 8:
        reasons.append(f"High quality source ({source})")

    if _get(lead, "preferred_locations") or _get(lead, "property_types"):
        points += 5
        reasons.append("Stated property preferences")

    score = clamp(points)
    if not reasons:
        reasons.append("Limited lead information")
    return LeadScore(score=score, confidence=0.6, reasons=reasons, temperature=temperature_for(score))


def heuristic_property_match(lead: Any, prop: Any) -> PropertyMatch:
    """Score budget fit (40), location (30) and property type (30)."""
    points = 0
    reasons: List[str] = []

    price = float(_get(prop, "price", 0) or 0)
    budget = _get(lead, "budget")
    budget_max = _get(lead, "budget_max") or budget
    if budget_max:
        if price <= budget_max and (not budget or price >= budget * 0.8):
            points += 40
            reasons.append("Price within budget range")
        elif price <= budget_max:
            points += 30
            reasons.append("Price below budget range")
        elif price <= budget_max * 1.1:
            points += 20
            reasons.append("Price slightly above budget")
        else:
            reasons.append("Price above budget")
    else:
        points += 20
        reasons.append("No budget specified")

    locations = [loc.strip().lower() for loc in _string_list(_get(lead, "preferred_locations", []))]
    city = str(_get(prop, "city", "")).strip().lower()
    if not locations:
        points += 15
    elif city and city in locations:
        points += 30
        reasons.append(f"Located in preferred area ({_get(prop, 'city')})")
    else:
        reasons.append("Outside preferred locations")

    types = [t.strip().lower() for t in _string_list(_get(lead, "property_types", []))]
    prop_type = str(_get(prop, "property_type", "")).strip().lower()
    if not types:
        points += 15
    elif prop_type and prop_type in types:
        points += 30
        reasons.append(f"Matches preferred type ({prop_type})")
    else:
        reasons.append("Property type not in preferences")

    return PropertyMatch(match_score=clamp(points), reasons=reasons, confidence=0.6)


def fallback_chat_response(message: str, page: str, snapshot: Mapping[str, Any]) -> str:
    """Context-aware canned answer used when no provider is configured."""
    text = message.lower()

    if page == "dashboard":
        if "lead" in text or "new" in text:
            return (
                f"You have {snapshot.get('leads', 0)} total leads. Your highest priority leads "
                f"are those with scores above {HIGH_SCORE}. Would you like me to show you specific lead details?"
            )
        if "deal" in text or "revenue" in text:
            return (
                f"You have {snapshot.get('activeDeals', 0)} active deals in your pipeline. "
                f"Total revenue from closed deals is {_money(snapshot.get('totalRevenue', 0))}."
            )
        if "task" in text or "today" in text:
            return (
                f"You have {snapshot.get('pendingTasks', 0)} pending tasks. Focus on high-priority "
                "items and follow-ups with qualified leads today."
            )

    if page == "leads":
        if "score" in text or "priority" in text:
            top = snapshot.get("highScoreLeads") or []
            names = ", ".join(f"{item['name']} ({item['score']})" for item in top[:3])
            answer = f"You have {len(top)} high-scoring leads ({HIGH_SCORE}+)."
            return f"{answer} Focus on: {names}." if names else answer
        if "follow up" in text or "contact" in text:
            return (
                'For effective follow-ups, prioritize leads in "qualified" status first, then '
                '"contacted" leads. Use personalized messages mentioning their property preferences.'
            )

    if page == "properties":
        if "match" in text or "suitable" in text:
            return (
                "I can help match properties to leads based on budget, location, and property type "
                "preferences. Which specific lead or criteria would you like me to analyze?"
            )
        if "price" in text or "value" in text:
            return (
                f"Your property portfolio has an average value of {_money(snapshot.get('averagePrice', 0))}. "
                "Properties are distributed across different price ranges and locations."
            )

    lead = snapshot.get("lead")
    if lead:
        next_step = {"new": "Initial contact", "contacted": "Qualification call"}.get(
            lead.get("status"), "Property presentation"
        )
        types = ", ".join(lead.get("propertyTypes") or []) or "any property type"
        return (
            f"For {lead.get('name')}: Their score is {lead.get('score', 0)}/100, budget is "
            f"{_money(lead.get('budget'))}, and they're interested in {types}. Next step: {next_step}."
        )

    if "help" in text or "what can you do" in text:
        return (
            "I can help you with:\n"
            "• Lead analysis and scoring\n"
            "• Property matching recommendations\n"
            "• Pipeline management insights\n"
            "• Task prioritization\n"
            "• Automated follow-up suggestions\n\n"
            "What specific area would you like assistance with?"
        )

    if "screen" in text or "page" in text or "see" in text:
        seen = {
            "dashboard": "overview metrics and recent activities",
            "leads": "lead pipeline and contact information",
            "properties": "property listings and values",
        }.get(page, "current data")
        return f"You're currently on the {page} page. I can see your {seen}. What specific information would you like me to analyze?"

    return (
        f'I understand you\'re asking about "{message}". I can analyze your current {page or "data"} '
        "and provide specific insights. What particular aspect would you like me to focus on?"
    )


# =============================================================================
# Assistant
# =============================================================================


class Assistant:
    """AI operations with provider calls and deterministic fallbacks."""

    def __init__(self, client: Optional[LLMClient] = None) -> None:
        self.client = client or get_llm_client()

    def chat(
        self,
        message: str,
        page: str = "dashboard",
        snapshot: Optional[Mapping[str, Any]] = None,
        page_data: Optional[Mapping[str, Any]] = None,
    ) -> str:
        """
        Answer a free-text question about the page the user is on.

        Args:
            message: The user's question.
            page: Page id the question was asked from.
            snapshot: Server-side counts for the caller (leads, deals, ...).
            page_data: Lightweight snapshot sent by the client.

        Returns:
            The answer text. Provider failures yield a fixed apology.
        """
        snapshot = snapshot or {}
        if not self.client.is_available():
            return fallback_chat_response(message, page, snapshot)

        page_summary = str(dict(page_data))[:500] if page_data else "None"
        prompt = (
            f'The user is asking: "{message}"\n\n'
            f"Current page: {page}\n"
            f"Page data: {page_summary}\n"
            f"Business data: {dict(snapshot)}\n\n"
            "Respond conversationally and helpfully with specific, practical insights."
        )
        try:
            reply = self.client.generate_completion(
                prompt, system_prompt=SYSTEM_PROMPT_CHAT, temperature=0.7, max_tokens=300
            )
        except LLMError as e:
            LOGGER.error(f"Assistant chat failed: {e}")
            return CHAT_APOLOGY
        return reply or CHAT_APOLOGY

    def score_lead(self, lead: Any) -> LeadScore:
        """Score a lead 0-100; falls back to the heuristic when the provider is absent or fails."""
        if not self.client.is_available():
            return heuristic_lead_score(lead)

        prompt = (
            "Analyze this real estate lead and provide a scoring assessment.\n\n"
            f"- Name: {_get(lead, 'first_name', '')} {_get(lead, 'last_name', '')}\n"
            f"- Email: {_get(lead, 'email', 'Not provided')}\n"
            f"- Phone: {_get(lead, 'phone', 'Not provided')}\n"
            f"- Budget: {_money(_get(lead, 'budget'))} - {_money(_get(lead, 'budget_max'))}\n"
            f"- Source: {_get(lead, 'source', 'Unknown')}\n"
            f"- Timeline: {_get(lead, 'timeline', 'Not specified')}\n"
            f"- Notes: {_get(lead, 'notes', 'None')}\n\n"
            "Score 0-100 on budget clarity, contact completeness, timeline urgency, "
            "source quality and engagement. Respond with JSON: "
            '{"score": int, "confidence": 0-1, "reasons": [str], "temperature": "hot"|"warm"|"cold"}'
        )
        try:
            result = self.client.complete_json(prompt, system_prompt=SYSTEM_PROMPT_SCORING, temperature=0.2)
        except LLMError as e:
            LOGGER.warning(f"Lead scoring via LLM failed, using heuristic: {e}")
            return heuristic_lead_score(lead)

        score = _score(result.get("score"))
        temperature = result.get("temperature")
        return LeadScore(
            score=score,
            confidence=_confidence(result.get("confidence"), 0.5),
            reasons=_string_list(result.get("reasons")),
            temperature=temperature if temperature in TEMPERATURES else temperature_for(score),
        )

    def match_property(self, lead: Any, prop: Any) -> PropertyMatch:
        if not self.client.is_available():
            return heuristic_property_match(lead, prop)

        prompt = (
            "Analyze how well this property matches the lead's preferences.\n\n"
            f"Lead budget: {_money(_get(lead, 'budget'))} - {_money(_get(lead, 'budget_max'))}\n"
            f"Preferred locations: {', '.join(_string_list(_get(lead, 'preferred_locations', []))) or 'Not specified'}\n"
            f"Property types: {', '.join(_string_list(_get(lead, 'property_types', []))) or 'Not specified'}\n\n"
            f"Property price: {_money(_get(prop, 'price'))}\n"
            f"Location: {_get(prop, 'city', 'Unknown')}\n"
            f"Type: {_get(prop, 'property_type', 'Unknown')}\n"
            f"Bedrooms: {_get(prop, 'bedrooms', 'Not specified')}\n"
            f"Bathrooms: {_get(prop, 'bathrooms', 'Not specified')}\n"
            f"Features: {', '.join(_string_list(_get(prop, 'features', []))) or 'None listed'}\n\n"
            "Score the match 0-100 on price, location, type and features. Respond with JSON: "
            '{"matchScore": int, "reasons": [str], "confidence": 0-1}'
        )
        try:
            result = self.client.complete_json(prompt, system_prompt=SYSTEM_PROMPT_MATCHING, temperature=0.2)
        except LLMError as e:
            LOGGER.warning(f"Property matching via LLM failed, using heuristic: {e}")
            return heuristic_property_match(lead, prop)

        return PropertyMatch(
            match_score=_score(result.get("matchScore", result.get("match_score"))),
            reasons=_string_list(result.get("reasons")),
            confidence=_confidence(result.get("confidence"), 0.5),
        )

    def generate_follow_up(self, lead: Any, channel: str = "email", context: Optional[str] = None) -> MessageDraft:
        first_name = _get(lead, "first_name", "there")
        fallback = MessageDraft(
            message=(
                f"Hi {first_name}, I wanted to follow up on your real estate inquiry. "
                "When would be a good time to discuss your needs further?"
            ),
            channel=channel,
            subject="Following up on your home search" if channel == "email" else None,
        )
        if not self.client.is_available():
            return fallback

        prompt = (
            f"Generate a personalized {channel} follow-up message for this real estate lead.\n\n"
            f"- Name: {first_name} {_get(lead, 'last_name', '')}\n"
            f"- Current status: {_get(lead, 'status', 'new')}\n"
            f"- Notes: {_get(lead, 'notes', 'None')}\n"
            f"- Additional context: {context or 'None'}\n\n"
            "Be professional but friendly, personalized and end with a clear call to action. "
            "Include a subject only for email. Respond with JSON: "
            '{"subject": str, "message": str, "tone": "professional"|"friendly"|"urgent"}'
        )
        try:
            result = self.client.complete_json(prompt, system_prompt=SYSTEM_PROMPT_FOLLOW_UP, temperature=0.7)
        except LLMError as e:
            LOGGER.warning(f"Follow-up generation failed: {e}")
            return fallback

        tone = result.get("tone")
        return MessageDraft(
            message=result.get("message") or fallback.message,
            channel=channel,
            tone=tone if tone in TONES else "professional",
            subject=(result.get("subject") or fallback.subject) if channel == "email" else None,
        )

    def insights(self, metrics: Mapping[str, Any]) -> Insights:
        if not self.client.is_available():
            return self._fallback_insights(metrics)

        prompt = (
            "Analyze this real estate CRM data and provide actionable insights.\n\n"
            f"- Total leads: {metrics.get('totalLeads', 0)}\n"
            f"- Active deals: {metrics.get('activeDeals', 0)}\n"
            f"- Open tasks: {metrics.get('openTasks', 0)}\n"
            f"- Lead funnel: {metrics.get('leadFunnel', {})}\n"
            f"- Recent activities: {len(metrics.get('recentActivities', []))}\n\n"
            "Respond with JSON: "
            '{"insights": [str], "recommendations": [str], "priority_actions": [str]}'
        )
        try:
            result = self.client.complete_json(prompt, system_prompt=SYSTEM_PROMPT_INSIGHTS)
        except LLMError as e:
            LOGGER.warning(f"Insight generation failed: {e}")
            return Insights(
                insights=["Unable to generate insights at this time"],
                recommendations=["Check your data and try again"],
                priority_actions=["Review recent lead activity"],
            )

        return Insights(
            insights=_string_list(result.get("insights")),
            recommendations=_string_list(result.get("recommendations")),
            priority_actions=_string_list(result.get("priority_actions")),
        )

    def _fallback_insights(self, metrics: Mapping[str, Any]) -> Insights:
        funnel = metrics.get("leadFunnel") or {}
        total = metrics.get("totalLeads", 0)
        new_leads = funnel.get("new", 0)
        qualified = funnel.get("qualified", 0)

        insights = [
            f"{total} leads in the pipeline with {metrics.get('activeDeals', 0)} active deals",
        ]
        if total:
            insights.append(f"{round(100 * qualified / total)}% of leads are qualified")
        recommendations = []
        if new_leads:
            recommendations.append(f"Contact the {new_leads} new leads within 24 hours")
        if qualified:
            recommendations.append(f"Schedule tours for the {qualified} qualified leads")
        if not recommendations:
            recommendations.append("Add new leads to keep the pipeline moving")
        actions = [f"Clear {metrics.get('openTasks', 0)} open tasks"] if metrics.get("openTasks") else []
        actions.append("Review recent lead activity")
        return Insights(insights=insights, recommendations=recommendations, priority_actions=actions)


# Global instance
_assistant: Optional[Assistant] = None


def get_assistant() -> Assistant:
    """Get or create the global assistant."""
    global _assistant
    if _assistant is None:
        _assistant = Assistant()
    return _assistant


def reset_assistant() -> None:
    global _assistant
    _assistant = None


__all__ = [
    "Assistant",
    "LeadScore",
    "PropertyMatch",
    "MessageDraft",
    "Insights",
    "CHAT_APOLOGY",
    "heuristic_lead_score",
    "heuristic_property_match",
    "fallback_chat_response",
    "temperature_for",
    "get_assistant",
    "reset_assistant",
]
