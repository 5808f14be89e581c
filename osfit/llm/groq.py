"""Groq LLM adapter.

Groq provides an OpenAI-compatible API at https://api.groq.com/openai/v1
Models:
- openai/gpt-oss-120b: Open-weight reasoning model (default)
- llama-3.3-70b-versatile: General-purpose chat model
"""

from __future__ import annotations

from typing import Any

import httpx

from osfit.config import get_settings
from osfit.schemas import LLMMessage, LLMResponse
from osfit.llm.base import LLMAdapter


class GroqAdapter(LLMAdapter):
    """Groq API adapter using the OpenAI-compatible endpoint."""

    def __init__(
        self,
        api_key: str,
        base_url: str | None = None,
        model: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        settings = get_settings()
        super().__init__(
            api_key=api_key,
            base_url=base_url or settings.groq_base_url,
            default_model=model or settings.groq_model,
            timeout=timeout or settings.llm_timeout_seconds,
            transport=transport,
        )

    @property
    def provider_name(self) -> str:
        return "groq"

    def _build_request(
        self,
        messages: list[LLMMessage],
        model: str,
        temperature: float,
        max_tokens: int,
    ) -> dict[str, Any]:
        payload = super()._build_request(messages, model, temperature, max_tokens)
        # Groq takes max_completion_tokens; gpt-oss models also accept a reasoning effort
        payload["max_completion_tokens"] = payload.pop("max_tokens")
        if model.startswith("openai/gpt-oss"):
            payload["reasoning_effort"] = "medium"
        return payload

    async def chat_completion(
        self,
        messages: list[LLMMessage],
        model: str | None = None,
        temperature: float = 0.7,
        max_tokens: int = 4096,
    ) -> LLMResponse:
        """Send chat completion request to the Groq API."""
        payload = self._build_request(
            messages=messages,
            model=model or self.default_model,
            temperature=temperature,
            max_tokens=max_tokens,
        )
        return await self._send(payload)
