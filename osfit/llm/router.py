"""Language-model gateway.

Turns ``(system prompt, user message, target language)`` into generated text
using whichever provider the request's credentials select. Exactly one
provider call is made per ``complete()``; there is no retry and no fallback
to another provider, failures are raised to the caller.
"""

from __future__ import annotations

import logging

import httpx

from osfit.config import Settings, get_settings
from osfit.errors import GenerationError, ErrorKind
from osfit.schemas import LLMMessage
from osfit.llm.base import LLMAdapter
from osfit.llm.credentials import LLMCredentials
from osfit.llm.gemini import GeminiAdapter
from osfit.llm.groq import GroqAdapter


logger = logging.getLogger(__name__)


LANGUAGE_NAMES: dict[str, str] = {
    "en": "English",
    "es": "Spanish",
    "fr": "French",
    "de": "German",
    "hi": "Hindi",
    "zh": "Chinese",
    "ja": "Japanese",
    "ko": "Korean",
    "pt": "Portuguese",
    "ru": "Russian",
    "ar": "Arabic",
    "bn": "Bengali",
    "tr": "Turkish",
}


def language_instruction(language: str | None) -> str:
    """Instruction appended to the system prompt for non-English output."""
    if not language or language == "en":
        return ""
    name = LANGUAGE_NAMES.get(language, language)
    return (
        f"\n\n**CRITICAL LANGUAGE REQUIREMENT:** You MUST respond ENTIRELY in {name}. "
        f"All text, headings, code comments, and explanations must be written in {name}. "
        "Do NOT use English except for code syntax, variable names, and technical terms "
        "that have no translation."
    )


class LanguageModelGateway:
    """Routes completion requests to the provider named by the credentials."""

    def __init__(
        self,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._settings = settings or get_settings()
        self._transport = transport

    def _get_adapter(self, credentials: LLMCredentials) -> LLMAdapter:
        """Create an adapter bound to this request's key."""
        if credentials.provider == "gemini":
            return GeminiAdapter(api_key=credentials.api_key, transport=self._transport)
        elif credentials.provider == "groq":
            return GroqAdapter(api_key=credentials.api_key, transport=self._transport)
        raise ValueError(f"Unknown provider: {credentials.provider}")

    async def complete(
        self,
        system_prompt: str,
        user_message: str,
        target_language: str,
        credentials: LLMCredentials,
    ) -> str:
        """Generate text for a prompt pair.

        Args:
            system_prompt: Instructions for the model
            user_message: The content to work on
            target_language: Language code the answer must be written in
            credentials: Provider and key resolved for this request

        Returns:
            Generated text (never empty)

        Raises:
            GenerationError: No key available, provider error, or empty output
        """
        provider = credentials.provider

        if not credentials.available:
            raise GenerationError(
                f"{provider.capitalize()} API key is required. Add your own key in Settings.",
                service=provider,
                source="none",
                kind=ErrorKind.INVALID_CREDENTIAL,
            )

        messages = [
            LLMMessage(role="system", content=system_prompt + language_instruction(target_language)),
            LLMMessage(role="user", content=user_message),
        ]

        adapter = self._get_adapter(credentials)
        logger.info(f"Routing completion to {provider}/{adapter.default_model} ({credentials.source} key)")

        try:
            response = await adapter.chat_completion(
                messages=messages,
                temperature=self._settings.llm_temperature,
                max_tokens=self._settings.llm_max_tokens,
            )
        finally:
            await adapter.close()

        if response.error:
            logger.error(f"{provider} completion failed: {response.error}")
            raise GenerationError(response.error, service=provider, source=credentials.source)

        content = (response.content or "").strip()
        if not content:
            raise GenerationError(
                f"{provider} returned an empty response",
                service=provider,
                source=credentials.source,
                kind=ErrorKind.UNKNOWN,
            )

        return content


# Singleton instance
_gateway: LanguageModelGateway | None = None


def get_gateway() -> LanguageModelGateway:
    """Get the global gateway instance."""
    global _gateway
    if _gateway is None:
        _gateway = LanguageModelGateway()
    return _gateway
