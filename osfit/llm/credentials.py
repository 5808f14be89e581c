"""Per-request LLM credential resolution.

A caller may bring their own provider key; otherwise the shared default key
from settings is used. The result records where the key came from so quota
errors can tell the user whether *their* key or the shared one ran out.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from pydantic import BaseModel

from osfit.config import Settings
from osfit.errors import KeySource


Provider = Literal["gemini", "groq"]


class UserKeys(BaseModel):
    """Keys supplied by the caller for a single request."""
    provider: Provider | None = None
    gemini_key: str | None = None
    groq_key: str | None = None


@dataclass(frozen=True)
class LLMCredentials:
    provider: Provider
    api_key: str | None
    source: KeySource

    @property
    def available(self) -> bool:
        return bool(self.api_key)


def resolve_credentials(settings: Settings, user_keys: UserKeys | None = None) -> LLMCredentials:
    """Pick provider and key: user choice and key first, shared default second."""
    user_keys = user_keys or UserKeys()
    provider: Provider = user_keys.provider or settings.default_provider

    if provider == "groq":
        user_key, system_key = user_keys.groq_key, settings.groq_api_key
    else:
        user_key, system_key = user_keys.gemini_key, settings.gemini_api_key

    if user_key:
        return LLMCredentials(provider=provider, api_key=user_key, source="user")
    if system_key:
        return LLMCredentials(provider=provider, api_key=system_key, source="system")
    return LLMCredentials(provider=provider, api_key=None, source="none")
