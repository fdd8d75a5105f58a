from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from mangaweb.pipeline.translate.base import StaticTranslationGateway, TranslationGateway
from mangaweb.pipeline.translate.gemini import GeminiTranslationGateway

if TYPE_CHECKING:
    from mangaweb.core.config import Settings

__all__ = [
    "GeminiTranslationGateway",
    "StaticTranslationGateway",
    "TranslationGateway",
    "create_gateway",
]


def create_gateway(settings: "Settings", target_language: Optional[str] = None) -> TranslationGateway:
    """Build the configured (unprepared) gateway for a target language."""
    return GeminiTranslationGateway(
        api_key=settings.google_api_key,
        target_language=target_language or settings.target_language,
        model_name=settings.gemini_model,
    )
