from __future__ import annotations

import logging
from typing import Any, Optional

from pydantic import BaseModel

from mangaweb.core.config import SOURCE_LANGUAGE, SUPPORTED_TARGET_LANGUAGES
from mangaweb.pipeline.errors import GatewayUnavailableError, TranslationError

logger = logging.getLogger(__name__)

LANGUAGE_NAMES = {
    "ja": "Japanese",
    "en": "English",
    "en-US": "American English",
    "en-GB": "British English",
    "es": "Spanish",
    "fr": "French",
    "de": "German",
    "it": "Italian",
    "pt": "Portuguese",
    "pt-BR": "Brazilian Portuguese",
    "zh-Hans": "Simplified Chinese",
    "zh-Hant": "Traditional Chinese",
    "ko": "Korean",
    "id": "Indonesian",
}


class TranslationResult(BaseModel):
    """Schema the model must answer with."""
    translated_text: str


class GeminiTranslationGateway:
    """Single-line manga dialogue translation through the Gemini API."""

    source_language = SOURCE_LANGUAGE

    def __init__(
        self,
        api_key: Optional[str],
        target_language: str = "en",
        *,
        model_name: str = "gemini-2.0-flash",
        client: Optional[Any] = None,
    ) -> None:
        if target_language not in SUPPORTED_TARGET_LANGUAGES:
            raise ValueError(f"unsupported target language: {target_language!r}")
        self.target_language = target_language
        self._api_key = api_key
        self._model_name = model_name
        self._client = client
        self._ready = False

        self._generation_config = {
            "response_mime_type": "application/json",
            "response_schema": TranslationResult,
        }

    @property
    def is_ready(self) -> bool:
        return self._ready

    async def prepare(self) -> None:
        if self._client is None:
            if not self._api_key:
                raise GatewayUnavailableError("GOOGLE_API_KEY is required for translation via Gemini")
            try:
                from google import genai  # type: ignore
            except ImportError as exc:
                raise GatewayUnavailableError(
                    "google-genai is required. Install it with: pip install google-genai"
                ) from exc
            self._client = genai.Client(api_key=self._api_key)
        self._ready = True
        logger.info(
            "gateway_ready",
            extra={"gateway": "gemini", "model": self._model_name, "target_language": self.target_language},
        )

    def _prompt(self, text: str) -> str:
        target = LANGUAGE_NAMES.get(self.target_language, self.target_language)
        return (
            f"You are a professional manga translator. Translate the following Japanese speech bubble text "
            f"into natural, fluent {target} suitable for a speech bubble overlay.\n"
            "Constraints:\n"
            "- Keep the translation roughly as long as the original.\n"
            "- Keep character names in romaji.\n"
            "- Respond with a JSON object holding a single 'translated_text' key.\n\n"
            f"Japanese: {text}"
        )

    async def translate(self, text: str) -> str:
        if not self._ready or self._client is None:
            raise TranslationError("gateway has not been prepared")
        try:
            response = await self._client.aio.models.generate_content(
                model=self._model_name,
                contents=self._prompt(text),
                config=self._generation_config,
            )
        except Exception as exc:  # noqa: BLE001
            raise TranslationError(f"Gemini call failed: {exc}") from exc

        parsed = getattr(response, "parsed", None)
        if isinstance(parsed, TranslationResult):
            translated = parsed.translated_text
        else:
            raw = getattr(response, "text", None) or ""
            try:
                translated = TranslationResult.model_validate_json(raw).translated_text
            except ValueError as exc:
                raise TranslationError(f"unparseable Gemini response: {raw[:200]!r}") from exc

        translated = translated.strip()
        if not translated:
            raise TranslationError("Gemini returned an empty translation")
        return translated
