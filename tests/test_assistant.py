"""Tests for the LLM client wrapper, heuristics and the assistant fallbacks."""
from __future__ import annotations

import json
from unittest.mock import MagicMock, patch

import pytest

from core.exceptions import LLMAPIError, LLMError
from llm.assistant import (
    CHAT_APOLOGY,
    Assistant,
    fallback_chat_response,
    heuristic_lead_score,
    heuristic_property_match,
    temperature_for,
)
from llm.client import LLMClient, extract_json


class ScriptedLLM:
    """LLM double that replays canned replies, or raises when given an exception."""

    provider = "openai"

    def __init__(self, *replies):
        self.replies = list(replies)
        self.prompts = []

    def is_available(self) -> bool:
        return True

    def generate_completion(self, prompt, **kwargs):
        self.prompts.append(prompt)
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply

    def complete_json(self, prompt, **kwargs):
        return extract_json(self.generate_completion(prompt, **kwargs))


# ============================================================================
# LLM client
# ============================================================================


class TestLLMClient:
    def test_unconfigured_client(self):
        client = LLMClient()

        assert client.is_available() is False
        with pytest.raises(LLMError):
            client.generate_completion("hi")

    def test_openai_failure_falls_back_to_anthropic(self):
        client = LLMClient()
        client.provider = "openai"
        client.anthropic_client = MagicMock()

        with patch.object(client, "_generate_openai", side_effect=LLMAPIError("boom")), patch.object(
            client, "_generate_anthropic", return_value="from claude"
        ) as anthropic:
            assert client.generate_completion("hello") == "from claude"
        anthropic.assert_called_once()

    def test_openai_failure_without_fallback_raises(self):
        client = LLMClient()
        client.provider = "openai"
        client.anthropic_client = None

        with patch.object(client, "_generate_openai", side_effect=LLMAPIError("boom")):
            with pytest.raises(LLMAPIError):
                client.generate_completion("hello")

    def test_extract_json_from_fenced_reply(self):
        reply = 'Sure!\n```json\n{"score": 71, "reasons": ["x"]}\n```'

        assert extract_json(reply) == {"score": 71, "reasons": ["x"]}

    def test_extract_json_rejects_prose(self):
        with pytest.raises(LLMAPIError):
            extract_json("no json here")


# ============================================================================
# Heuristics
# ============================================================================


class TestHeuristics:
    @pytest.mark.parametrize("score,expected", [(90, "hot"), (76, "hot"), (75, "warm"), (61, "warm"), (60, "cold")])
    def test_temperature_bands(self, score, expected):
        assert temperature_for(score) == expected

    def test_sparse_lead(self):
        result = heuristic_lead_score({"first_name": "A", "last_name": "B"})

        assert result.score == 20
        assert result.temperature == "cold"
        assert result.reasons == ["Limited lead information"]

    def test_strong_lead(self, sample_lead):
        result = heuristic_lead_score(sample_lead)

        # 20 base + 20 contact + 20 budget + 20 timeline + 15 referral + 5 preferences
        assert result.score == 100
        assert result.temperature == "hot"
        assert "High quality source (referral)" in result.reasons

    def test_property_match_components(self):
        lead = {"budget": 300000, "budget_max": 350000, "preferred_locations": ["Austin"], "property_types": ["condo"]}

        in_budget = heuristic_property_match(lead, {"price": 320000, "city": "Austin", "property_type": "condo"})
        over_budget = heuristic_property_match(lead, {"price": 380000, "city": "Dallas", "property_type": "condo"})
        way_over = heuristic_property_match(lead, {"price": 900000, "city": "Dallas", "property_type": "house"})

        assert in_budget.match_score == 100
        assert over_budget.match_score == 50
        assert way_over.match_score == 0

    def test_property_match_without_preferences(self):
        result = heuristic_property_match({}, {"price": 100000, "city": "Austin", "property_type": "house"})

        assert result.match_score == 50


# ============================================================================
# Assistant
# ============================================================================


class TestAssistantFallbacks:
    def test_chat_fallback_is_page_aware(self):
        snapshot = {"leads": 12, "pendingTasks": 4, "highScoreLeads": [{"id": 1, "name": "Sarah Johnson", "score": 92}]}

        dashboard = fallback_chat_response("Show me my leads", "dashboard", snapshot)
        leads_page = fallback_chat_response("Who has the best score?", "leads", snapshot)
        tasks = fallback_chat_response("What should I do today?", "dashboard", snapshot)

        assert dashboard.startswith("You have 12 total leads.")
        assert leads_page == "You have 1 high-scoring leads (80+). Focus on: Sarah Johnson (92)."
        assert tasks.startswith("You have 4 pending tasks.")

    def test_chat_echoes_unknown_question(self):
        reply = fallback_chat_response("Tell me a joke", "reports", {})

        assert reply.startswith('I understand you\'re asking about "Tell me a joke".')

    def test_offline_assistant_uses_heuristics(self, offline_assistant, sample_lead, sample_property):
        assert offline_assistant.score_lead(sample_lead).confidence == 0.6
        assert offline_assistant.match_property(sample_lead, sample_property).match_score == 100
        assert offline_assistant.generate_follow_up(sample_lead, channel="email").subject is not None


class TestAssistantWithProvider:
    def test_chat_returns_model_reply(self):
        llm = ScriptedLLM("You have three hot leads.")

        reply = Assistant(client=llm).chat("Any hot leads?", page="leads", snapshot={"leads": 3})

        assert reply == "You have three hot leads."
        assert "Current page: leads" in llm.prompts[0]

    def test_chat_failure_returns_apology(self):
        reply = Assistant(client=ScriptedLLM(LLMAPIError("down"))).chat("hello")

        assert reply == CHAT_APOLOGY

    def test_score_lead_parses_json(self):
        llm = ScriptedLLM(json.dumps({"score": 140, "confidence": 0.9, "reasons": ["Referral"], "temperature": "lukewarm"}))

        result = Assistant(client=llm).score_lead({"first_name": "A", "last_name": "B"})

        assert result.score == 100
        assert result.temperature == "hot"
        assert result.reasons == ["Referral"]

    def test_score_lead_failure_uses_heuristic(self):
        result = Assistant(client=ScriptedLLM("not json")).score_lead({"first_name": "A", "last_name": "B"})

        assert result.score == 20
        assert result.confidence == 0.6

    def test_insights_failure_message(self):
        result = Assistant(client=ScriptedLLM(LLMError("nope"))).insights({"totalLeads": 3})

        assert result.insights == ["Unable to generate insights at this time"]
