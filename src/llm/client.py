"""Centralized LLM client for OpenAI (primary) and Anthropic (fallback) with retry and error mapping."""
from __future__ import annotations

import json
import logging
import time
from typing import Any, Dict, Optional

from anthropic import Anthropic
from anthropic import APIError as AnthropicAPIError
from anthropic import APITimeoutError as AnthropicTimeoutError
from anthropic import RateLimitError as AnthropicRateLimitError
from openai import APIError, APITimeoutError, OpenAI, RateLimitError
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from core.config import get_settings
from core.exceptions import LLMAPIError, LLMError, LLMRateLimitError, LLMTimeoutError
from core.logging_config import get_logger, log_external_call

LOGGER = get_logger(__name__)

DEFAULT_SYSTEM_PROMPT = (
    "You are a helpful real estate CRM assistant. Provide specific, actionable "
    "insights based on the agent's data."
)


def _create_anthropic_client() -> Optional[Anthropic]:
    settings = get_settings()
    if not settings.anthropic_api_key:
        return None

    return Anthropic(
        api_key=settings.anthropic_api_key,
        timeout=settings.anthropic_timeout_seconds,
        max_retries=0,  # tenacity owns retries
    )


def _create_openai_client() -> Optional[OpenAI]:
    settings = get_settings()
    if not settings.openai_api_key:
        return None

    return OpenAI(
        api_key=settings.openai_api_key,
        timeout=settings.openai_timeout_seconds,
        max_retries=0,
    )


def extract_json(text: str) -> Dict[str, Any]:
    """
    Pull the first JSON object out of a model reply.

    Models sometimes wrap JSON in prose or code fences, so this looks for the
    outermost braces rather than parsing the whole string.

    Raises:
        LLMAPIError: If no JSON object can be decoded.
    """
    start = text.find("{")
    end = text.rfind("}") + 1
    if start < 0 or end <= start:
        raise LLMAPIError("Model reply did not contain a JSON object")
    try:
        parsed = json.loads(text[start:end])
    except json.JSONDecodeError as exc:
        raise LLMAPIError(f"Model reply was not valid JSON: {exc}") from exc
    if not isinstance(parsed, dict):
        raise LLMAPIError("Model reply JSON was not an object")
    return parsed


class LLMClient:
    """Unified completion client; OpenAI first, Anthropic when OpenAI fails or is absent."""

    def __init__(self) -> None:
        settings = get_settings()
        self.anthropic_client = _create_anthropic_client()
        self.openai_client = _create_openai_client()

        if self.openai_client:
            self.provider = "openai"
            self.model = settings.openai_model
            self.temperature = settings.openai_temperature
            LOGGER.info(f"LLM client initialized with OpenAI as primary (model: {self.model})")
        elif self.anthropic_client:
            self.provider = "anthropic"
            self.model = settings.anthropic_model
            self.temperature = settings.anthropic_temperature
            LOGGER.info(f"LLM client initialized with Anthropic (model: {self.model})")
        else:
            self.provider = None
            self.model = None
            self.temperature = 0.3
            LOGGER.warning("No LLM provider configured - assistant will use built-in heuristics")

        self.anthropic_model = settings.anthropic_model

    def is_available(self) -> bool:
        return self.provider is not None

    @retry(
        retry=retry_if_exception_type((LLMTimeoutError, ConnectionError, TimeoutError)),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        before_sleep=before_sleep_log(LOGGER, logging.WARNING),
        reraise=True,
    )
    def generate_completion(
        self,
        prompt: str,
        system_prompt: str = DEFAULT_SYSTEM_PROMPT,
        temperature: Optional[float] = None,
        max_tokens: int = 500,
        json_mode: bool = False,
    ) -> str:
        """
        Generate a completion from the configured provider.

        Args:
            prompt: The user prompt.
            system_prompt: The system prompt.
            temperature: Optional override for temperature.
            max_tokens: Maximum tokens to generate.
            json_mode: Ask OpenAI for a JSON object response.

        Returns:
            Generated text content.

        Raises:
            LLMError: If no provider is configured.
            LLMAPIError: If the API call fails after retries.
            LLMRateLimitError: If rate limit is exceeded.
            LLMTimeoutError: If the request times out.
        """
        if not self.is_available():
            raise LLMError("No LLM provider configured")

        temp = temperature if temperature is not None else self.temperature

        if self.provider == "openai":
            try:
                return self._generate_openai(prompt, system_prompt, temp, max_tokens, json_mode)
            except LLMAPIError as e:
                if not self.anthropic_client:
                    raise
                LOGGER.warning(f"OpenAI failed ({e}), attempting Anthropic fallback")
                return self._generate_anthropic(prompt, system_prompt, temp, max_tokens)

        return self._generate_anthropic(prompt, system_prompt, temp, max_tokens)

    def complete_json(
        self,
        prompt: str,
        system_prompt: str = DEFAULT_SYSTEM_PROMPT,
        temperature: Optional[float] = None,
        max_tokens: int = 500,
    ) -> Dict[str, Any]:
        """Generate a completion and decode it as a JSON object."""
        text = self.generate_completion(
            prompt,
            system_prompt=system_prompt,
            temperature=temperature,
            max_tokens=max_tokens,
            json_mode=True,
        )
        return extract_json(text)

    def _generate_anthropic(
        self,
        prompt: str,
        system_prompt: str,
        temperature: float,
        max_tokens: int,
    ) -> str:
        started = time.perf_counter()
        try:
            message = self.anthropic_client.messages.create(
                model=self.anthropic_model,
                max_tokens=max_tokens,
                system=system_prompt,
                messages=[{"role": "user", "content": prompt}],
                temperature=temperature,
            )
        except AnthropicRateLimitError as exc:
            log_external_call(LOGGER, "anthropic", "messages", False, _elapsed_ms(started))
            raise LLMRateLimitError(f"Rate limit exceeded: {exc}") from exc
        except AnthropicTimeoutError as exc:
            log_external_call(LOGGER, "anthropic", "messages", False, _elapsed_ms(started))
            raise LLMTimeoutError(f"Request timed out: {exc}") from exc
        except AnthropicAPIError as exc:
            log_external_call(LOGGER, "anthropic", "messages", False, _elapsed_ms(started))
            raise LLMAPIError(f"API error: {exc}") from exc

        log_external_call(
            LOGGER, "anthropic", "messages", True, _elapsed_ms(started), model=self.anthropic_model
        )
        content = message.content[0].text if message.content else ""
        return content.strip()

    def _generate_openai(
        self,
        prompt: str,
        system_prompt: str,
        temperature: float,
        max_tokens: int,
        json_mode: bool = False,
    ) -> str:
        started = time.perf_counter()
        kwargs: Dict[str, Any] = {}
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}
        try:
            response = self.openai_client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": prompt},
                ],
                temperature=temperature,
                max_tokens=max_tokens,
                **kwargs,
            )
        except RateLimitError as exc:
            log_external_call(LOGGER, "openai", "chat_completion", False, _elapsed_ms(started))
            raise LLMRateLimitError(f"Rate limit exceeded: {exc}") from exc
        except APITimeoutError as exc:
            log_external_call(LOGGER, "openai", "chat_completion", False, _elapsed_ms(started))
            raise LLMTimeoutError(f"Request timed out: {exc}") from exc
        except APIError as exc:
            log_external_call(LOGGER, "openai", "chat_completion", False, _elapsed_ms(started))
            raise LLMAPIError(f"API error: {exc}") from exc

        log_external_call(
            LOGGER, "openai", "chat_completion", True, _elapsed_ms(started), model=self.model
        )
        content = response.choices[0].message.content
        return content.strip() if content else ""


def _elapsed_ms(started: float) -> float:
    return (time.perf_counter() - started) * 1000


# Global instance
_llm_client: Optional[LLMClient] = None


def get_llm_client() -> LLMClient:
    """Get or create the global LLM client instance."""
    global _llm_client
    if _llm_client is None:
        _llm_client = LLMClient()
    return _llm_client


def reset_llm_client() -> None:
    """Reset the global LLM client (useful for testing)."""
    global _llm_client
    _llm_client = None


__all__ = [
    "LLMClient",
    "extract_json",
    "get_llm_client",
    "reset_llm_client",
]
