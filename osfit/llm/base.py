"""Abstract base class for LLM adapters."""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from typing import Any

import httpx

from osfit.schemas import LLMMessage, LLMResponse


logger = logging.getLogger(__name__)


class LLMAdapter(ABC):
    """Abstract base class for LLM provider adapters.

    All LLM providers (Gemini, Groq) implement this interface so the
    gateway can treat them interchangeably. Both providers expose an
    OpenAI-compatible ``/chat/completions`` endpoint, so the HTTP plumbing
    lives here and subclasses only describe the provider.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str,
        default_model: str,
        timeout: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        if not api_key:
            raise ValueError(f"{self.provider_name} API key is required")

        self.api_key = api_key
        self.base_url = base_url
        self.default_model = default_model
        self.timeout = timeout

        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
            },
            timeout=timeout,
            transport=transport,
        )

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the provider name (e.g., 'gemini', 'groq')."""
        ...

    @abstractmethod
    async def chat_completion(
        self,
        messages: list[LLMMessage],
        model: str | None = None,
        temperature: float = 0.7,
        max_tokens: int = 4096,
    ) -> LLMResponse:
        """Send a chat completion request.

        Args:
            messages: List of conversation messages
            model: Model name (uses default if None)
            temperature: Sampling temperature (0-2)
            max_tokens: Maximum tokens in response

        Returns:
            LLMResponse; ``finish_reason == "error"`` when the call failed
        """
        ...

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    def _build_request(
        self,
        messages: list[LLMMessage],
        model: str,
        temperature: float,
        max_tokens: int,
    ) -> dict[str, Any]:
        """Build the API request payload.

        This is a helper method that subclasses can use or override.
        """
        return {
            "model": model,
            "messages": [m.model_dump(exclude_none=True) for m in messages],
            "temperature": temperature,
            "max_tokens": max_tokens,
        }

    async def _send(self, payload: dict[str, Any]) -> LLMResponse:
        """POST a payload to ``/chat/completions`` and parse the first choice.

        Transport and HTTP errors are returned as an error response rather
        than raised, so the caller decides how to report them.
        """
        model = payload["model"]
        start_time = time.perf_counter()

        try:
            response = await self._client.post("/chat/completions", json=payload)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            detail = _error_detail(e.response)
            logger.warning(f"{self.provider_name} returned {e.response.status_code}: {detail}")
            return LLMResponse(
                content=None,
                model=model,
                finish_reason="error",
                raw_response={
                    "error": f"{e.response.status_code} {detail}".strip(),
                    "status_code": e.response.status_code,
                },
            )
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"{self.provider_name} request failed: {e!r}")
            return LLMResponse(
                content=None,
                model=model,
                finish_reason="error",
                raw_response={"error": f"{type(e).__name__}: {e}"},
            )

        latency_ms = int((time.perf_counter() - start_time) * 1000)

        # Parse response
        choices = data.get("choices") if isinstance(data, dict) else None
        choice = choices[0] if isinstance(choices, list) and choices else None
        message = choice.get("message") if isinstance(choice, dict) else None
        if not isinstance(message, dict):
            logger.warning(f"{self.provider_name} returned an unexpected body: {str(data)[:200]}")
            return LLMResponse(
                content=None,
                model=model,
                finish_reason="error",
                latency_ms=latency_ms,
                raw_response={"error": f"{self.provider_name} returned an unexpected response shape"},
            )

        content = message.get("content")
        usage = data.get("usage")
        finish_reason = choice.get("finish_reason")

        return LLMResponse(
            content=content if isinstance(content, str) else None,
            model=str(data.get("model") or model),
            usage=usage if isinstance(usage, dict) else {},
            finish_reason=finish_reason if isinstance(finish_reason, str) else None,
            latency_ms=latency_ms,
            raw_response=data,
        )


def _error_detail(response: httpx.Response) -> str:
    """Best-effort error message from an OpenAI-style error body."""
    try:
        body = response.json()
    except ValueError:
        return response.reason_phrase or response.text[:200]

    # Gemini's compat endpoint wraps errors in a one-element list
    if isinstance(body, list) and body:
        body = body[0]
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict):
            status = error.get("status") or error.get("code") or ""
            return f"{status} {error.get('message', '')}".strip()
        if isinstance(error, str):
            return error
    return response.reason_phrase or ""
