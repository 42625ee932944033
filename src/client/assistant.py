"""Bridge from the UI to the AI chat endpoint."""
from __future__ import annotations

from typing import Any, Dict, Iterable, Mapping, Optional

from core.logging_config import get_logger
from .errors import MalformedResponseError
from .http import ApiClient

LOGGER = get_logger(__name__)

CHAT_ENDPOINT = "/api/ai/chat"


def _ids(items: Iterable[Any]) -> list:
    return [item["id"] for item in items if isinstance(item, Mapping) and "id" in item]


def build_snapshot(
    leads: Optional[Iterable[Mapping[str, Any]]] = None,
    properties: Optional[Iterable[Mapping[str, Any]]] = None,
    deals: Optional[Iterable[Mapping[str, Any]]] = None,
) -> Dict[str, Any]:
    """Counts and ids of what the user is looking at; no field values leave the page."""
    snapshot: Dict[str, Any] = {}
    for name, items in (("leads", leads), ("properties", properties), ("deals", deals)):
        if items is None:
            continue
        items = list(items)
        snapshot[f"{name}Count"] = len(items)
        snapshot[f"{name}Ids"] = _ids(items)
    return snapshot


class AssistantBridge:
    """Sends a chat message with its page context and returns the reply text."""

    def __init__(self, api: ApiClient) -> None:
        self.api = api

    async def ask(
        self,
        message: str,
        page: str = "dashboard",
        snapshot: Optional[Mapping[str, Any]] = None,
        lead_id: Optional[int] = None,
        deal_id: Optional[int] = None,
        property_id: Optional[int] = None,
    ) -> str:
        """
        Ask the assistant a question.

        Raises:
            MalformedResponseError: If the reply has no string ``response``.
            ClientError: Any transport or HTTP failure, unchanged.
        """
        context: Dict[str, Any] = {"page": page}
        if snapshot is not None:
            context["data"] = dict(snapshot)
        for key, value in (("leadId", lead_id), ("dealId", deal_id), ("propertyId", property_id)):
            if value is not None:
                context[key] = value

        body = await self.api.post(CHAT_ENDPOINT, json={"message": message, "context": context})
        reply = body.get("response") if isinstance(body, dict) else None
        if not isinstance(reply, str):
            LOGGER.warning(f"Chat reply missing 'response': {type(body).__name__}")
            raise MalformedResponseError("chat response has no 'response' text")
        return reply


__all__ = ["AssistantBridge", "build_snapshot", "CHAT_ENDPOINT"]
