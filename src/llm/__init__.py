"""LLM client and the AI assistant built on it."""
from .assistant import Assistant, LeadScore, PropertyMatch, get_assistant, reset_assistant
from .client import LLMClient, get_llm_client, reset_llm_client

__all__ = [
    "LLMClient",
    "get_llm_client",
    "reset_llm_client",
    "Assistant",
    "LeadScore",
    "PropertyMatch",
    "get_assistant",
    "reset_assistant",
]
