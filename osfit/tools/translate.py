"""Text translation through the Lingo.dev localization engine."""

from __future__ import annotations

import logging
from collections import OrderedDict

import httpx

from osfit.config import Settings, get_settings
from osfit.errors import TranslationError, ValidationError


logger = logging.getLogger(__name__)

DEFAULT_LANGUAGE = "en"

SUPPORTED_LANGUAGES: dict[str, str] = {
    "en": "English",
    "es": "Spanish",
    "fr": "French",
    "de": "German",
    "pt": "Portuguese",
    "zh": "Chinese",
    "ja": "Japanese",
    "ko": "Korean",
    "ar": "Arabic",
    "hi": "Hindi",
    "ru": "Russian",
    "tr": "Turkish",
    "bn": "Bengali",
}


class LingoTranslator:
    """Translate text; a no-op for the default language or without a key."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        settings: Settings | None = None,
        cache_size: int | None = None,
    ):
        settings = settings or get_settings()
        self.api_key = api_key if api_key is not None else settings.lingo_api_key
        self.base_url = base_url or settings.lingo_base_url
        self._transport = transport
        self.cache_size = cache_size if cache_size is not None else settings.translation_cache_size
        # Least recently used entry first
        self._cache: OrderedDict[tuple[str, str], str] = OrderedDict()

    async def translate(
        self,
        text: str,
        target_language: str,
        source_language: str = DEFAULT_LANGUAGE,
    ) -> str:
        """Translate ``text`` into ``target_language``.

        Raises:
            ValidationError: ``target_language`` is not supported
            TranslationError: The translation service failed
        """
        if target_language not in SUPPORTED_LANGUAGES:
            raise ValidationError(f"Unsupported language: {target_language}")
        if not text or target_language in (source_language, DEFAULT_LANGUAGE):
            return text

        if not self.api_key:
            logger.warning("LINGO_API_KEY not set, returning original text")
            return text

        cache_key = (target_language, text)
        if cache_key in self._cache:
            self._cache.move_to_end(cache_key)
            return self._cache[cache_key]

        payload = {
            "params": {"fast": True},
            "locale": {"source": source_language, "target": target_language},
            "data": {"text": text},
        }

        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                headers={"Authorization": f"Bearer {self.api_key}"},
                timeout=60.0,
                transport=self._transport,
            ) as client:
                response = await client.post("/i18n", json=payload)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as e:
            raise TranslationError(
                f"Translation failed: {e.response.status_code} {e.response.reason_phrase}",
                service="lingo",
                source="system",
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise TranslationError(f"Translation failed: {e}", service="lingo", source="system") from e

        inner = data.get("data") if isinstance(data, dict) else None
        translated = inner.get("text") if isinstance(inner, dict) else None
        if not isinstance(translated, str) or not translated:
            translated = text

        self._cache[cache_key] = translated
        while len(self._cache) > self.cache_size:
            self._cache.popitem(last=False)
        return translated


_translator: LingoTranslator | None = None


def get_translator() -> LingoTranslator:
    global _translator
    if _translator is None:
        _translator = LingoTranslator()
    return _translator
