from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from mangaweb.pipeline.compute import ComputeProfile
from mangaweb.pipeline.detector import RegionDetector
from mangaweb.pipeline.ocr.engine import DEFAULT_MAX_TOKEN_LENGTH, SequenceRecognizer

logger = logging.getLogger(__name__)


@dataclass
class ModelRegistry:
    """Container for long-lived model instances used by the pipeline.

    Attributes:
        detector: Preloaded RegionDetector (YOLO weights).
        recognizer: Preloaded SequenceRecognizer (ONNX model + vocabulary).
    """

    detector: RegionDetector
    recognizer: SequenceRecognizer

    @staticmethod
    def load(
        *,
        profile: Union[str, ComputeProfile],
        detector_model_path: Path,
        recognizer_model_path: Path,
        vocab_path: Path,
        max_token_length: int = DEFAULT_MAX_TOKEN_LENGTH,
    ) -> "ModelRegistry":
        """Load all heavy models once and return a registry instance.

        Intended to be called at application startup. Raises DetectorLoadError
        or RecognizerLoadError; those are not retried, the caller disables
        translation for the session instead.
        """
        detector = RegionDetector.load(profile, detector_model_path)
        recognizer = SequenceRecognizer.load(
            profile,
            recognizer_model_path,
            vocab_path,
            max_length=max_token_length,
        )
        return ModelRegistry(detector=detector, recognizer=recognizer)

    @staticmethod
    def from_settings(settings) -> "ModelRegistry":
        return ModelRegistry.load(
            profile=settings.compute_profile,
            detector_model_path=settings.effective_detector_model_path,
            recognizer_model_path=settings.effective_recognizer_model_path,
            vocab_path=settings.effective_vocab_path,
            max_token_length=settings.max_token_length,
        )


def try_load_registry(settings) -> Optional[ModelRegistry]:
    """Load models, logging and swallowing construction errors.

    Returns None when loading failed; the feature is then disabled for the
    lifetime of the process.
    """
    try:
        return ModelRegistry.from_settings(settings)
    except Exception:  # noqa: BLE001
        logger.exception("model_registry_load_failed", extra={"compute_profile": settings.compute_profile})
        return None
