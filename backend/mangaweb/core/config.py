from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, AliasChoices, field_validator
from dotenv import load_dotenv


# Target languages the translation gateway accepts; source language is fixed.
SUPPORTED_TARGET_LANGUAGES: tuple[str, ...] = (
    "en",
    "en-US",
    "en-GB",
    "es",
    "fr",
    "de",
    "it",
    "pt",
    "pt-BR",
    "zh-Hans",
    "zh-Hant",
    "ko",
    "id",
)
SOURCE_LANGUAGE = "ja"


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Uses a local .env file in development for convenience.
    """

    app_env: Literal["development", "production"] = "development"
    log_level: Literal["debug", "info", "warning", "error", "critical"] = "info"

    # Inference backends
    compute_profile: Literal["accelerator", "all", "cpu"] = Field(
        default="all",
        validation_alias=AliasChoices("COMPUTE_PROFILE", "OCR_DEVICE"),
        description="Preferred execution backend: accelerator only, mixed, or CPU only",
    )
    detector_model_path: Optional[Path] = Field(
        default=None,
        validation_alias=AliasChoices("DETECTOR_MODEL_PATH"),
        description="YOLO detection weights; defaults to <assets>/models/detector.pt",
    )
    recognizer_model_path: Optional[Path] = Field(
        default=None,
        validation_alias=AliasChoices("RECOGNIZER_MODEL_PATH"),
        description="ONNX generation model; defaults to <assets>/models/manga_ocr.onnx",
    )
    vocab_path: Optional[Path] = Field(
        default=None,
        validation_alias=AliasChoices("VOCAB_PATH"),
        description="Token vocabulary, one token per line; defaults to <assets>/models/vocab.txt",
    )

    # Decoding
    max_token_length: int = Field(default=64, ge=1)
    normalization: Literal["zero_to_one", "minus_one_to_one"] = "minus_one_to_one"

    # Pipeline fan-out
    max_concurrency: int = Field(
        default=4,
        ge=1,
        description="Upper bound on region tasks running recognition at the same time",
    )

    # Translation
    source_language: Literal["ja"] = SOURCE_LANGUAGE
    target_language: str = "en"
    google_api_key: Optional[str] = None
    gemini_model: str = "gemini-2.0-flash"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,
    )

    @field_validator("target_language")
    @classmethod
    def _check_target_language(cls, v: str) -> str:
        if v not in SUPPORTED_TARGET_LANGUAGES:
            raise ValueError(f"unsupported target language: {v!r}")
        return v

    @property
    def effective_detector_model_path(self) -> Path:
        from mangaweb.core.paths import default_detector_model_path

        return self.detector_model_path or default_detector_model_path()

    @property
    def effective_recognizer_model_path(self) -> Path:
        from mangaweb.core.paths import default_recognizer_model_path

        return self.recognizer_model_path or default_recognizer_model_path()

    @property
    def effective_vocab_path(self) -> Path:
        from mangaweb.core.paths import default_vocab_path

        return self.vocab_path or default_vocab_path()


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Lazily load and cache settings to avoid re-parsing .env on each import."""
    # Load nearest .env discovered from CWD upward without overriding existing vars
    load_dotenv(override=False)

    return Settings()
