"""Gemini LLM adapter.

Google exposes an OpenAI-compatible API at
https://generativelanguage.googleapis.com/v1beta/openai
Models:
- gemini-2.5-flash: Fast general-purpose model (default)
- gemini-2.5-pro: Slower, stronger reasoning
"""

from __future__ import annotations

import httpx

from osfit.config import get_settings
from osfit.schemas import LLMMessage, LLMResponse
from osfit.llm.base import LLMAdapter


class GeminiAdapter(LLMAdapter):
    """Gemini API adapter using the OpenAI-compatible endpoint."""

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
            base_url=base_url or settings.gemini_base_url,
            default_model=model or settings.gemini_model,
            timeout=timeout or settings.llm_timeout_seconds,
            transport=transport,
        )

    @property
    def provider_name(self) -> str:
        return "gemini"

    async def chat_completion(
        self,
        messages: list[LLMMessage],
        model: str | None = None,
        temperature: float = 0.7,
        max_tokens: int = 4096,
    ) -> LLMResponse:
        """Send chat completion request to the Gemini API."""
        payload = self._build_request(
            messages=messages,
            model=model or self.default_model,
            temperature=temperature,
            max_tokens=max_tokens,
        )
        return await self._send(payload)
