from __future__ import annotations

import contextlib
import logging
import threading
from pathlib import Path
from typing import Any, List, Optional, Union

import numpy as np

from mangaweb.pipeline.compute import ComputeProfile
from mangaweb.pipeline.errors import (
    RecognitionImageError,
    RecognitionPredictionError,
    RecognizerLoadError,
    UnexpectedModelOutput,
)
from mangaweb.pipeline.ocr.onnx_model import GenerationModel
from mangaweb.pipeline.ocr.preprocess import MODEL_IMAGE_SIZE, Normalization, to_pixel_values
from mangaweb.pipeline.ocr.vocab import SpecialTokens, Vocabulary
from mangaweb.pipeline.raster import RasterImage

logger = logging.getLogger(__name__)

DEFAULT_MAX_TOKEN_LENGTH = 64


def select_next_token(logits: Any, expected_width: Optional[int] = None) -> int:
    """Greedy pick over the final position of a logits tensor.

    Ties go to the lowest id. NaN scores never win. When `expected_width` is
    given, the last dimension must match it.
    """
    if not isinstance(logits, np.ndarray):
        raise UnexpectedModelOutput(f"expected an ndarray of logits, got {type(logits).__name__}")
    if logits.dtype.kind not in "fiu":
        raise UnexpectedModelOutput(f"expected numeric logits, got dtype {logits.dtype}")
    if logits.ndim == 0 or logits.shape[-1] == 0 or logits.size == 0:
        raise UnexpectedModelOutput(f"logits have unusable shape {logits.shape}")
    if expected_width is not None and logits.shape[-1] != expected_width:
        raise UnexpectedModelOutput(
            f"logits have {logits.shape[-1]} scores per position, vocabulary expects {expected_width}"
        )

    last = logits.reshape(-1, logits.shape[-1])[-1].astype(np.float64)
    last = np.where(np.isnan(last), -np.inf, last)
    if not np.isfinite(last).any() and not np.isposinf(last).any():
        raise UnexpectedModelOutput("final position holds no finite score")
    # np.argmax returns the first occurrence of the maximum
    return int(np.argmax(last))


class SequenceRecognizer:
    """Greedy autoregressive text recognizer over a fixed vocabulary.

    One model call per generated token: the full token sequence so far is
    fed back in with the image, and only the last position's scores are
    read. Decoding stops at the end-of-sequence id or after `max_length`
    steps, whichever comes first.
    """

    def __init__(
        self,
        model: GenerationModel,
        vocabulary: Vocabulary,
        *,
        max_length: int = DEFAULT_MAX_TOKEN_LENGTH,
        image_size: int = MODEL_IMAGE_SIZE,
        serialize_inference: bool = False,
    ) -> None:
        if max_length < 1:
            raise ValueError("max_length must be at least 1")
        self._model = model
        self.vocabulary = vocabulary
        self.max_length = max_length
        self.image_size = image_size
        self._lock: Optional[threading.Lock] = threading.Lock() if serialize_inference else None

    @classmethod
    def load(
        cls,
        profile: Union[str, ComputeProfile],
        model_path: Path,
        vocab_path: Path,
        *,
        max_length: int = DEFAULT_MAX_TOKEN_LENGTH,
        special: Optional[SpecialTokens] = None,
    ) -> "SequenceRecognizer":
        """Load vocabulary and generation model once. Raises RecognizerLoadError."""
        from mangaweb.pipeline.ocr.onnx_model import OnnxGenerationModel

        vocabulary = Vocabulary.load(Path(vocab_path), special)
        try:
            model = OnnxGenerationModel(Path(model_path), ComputeProfile.parse(profile))
        except Exception as exc:  # noqa: BLE001
            raise RecognizerLoadError(f"failed to load recognition model from {model_path}: {exc}") from exc
        logger.info(
            "recognizer_loaded",
            extra={"model_path": str(model_path), "vocab_size": len(vocabulary), "max_length": max_length},
        )
        return cls(model, vocabulary, max_length=max_length)

    def recognize(
        self,
        crop: RasterImage,
        normalization: Union[str, Normalization] = Normalization.MINUS_ONE_TO_ONE,
    ) -> str:
        """Decode the text in a cropped region. Empty string means no text."""
        try:
            pixel_values = to_pixel_values(crop, Normalization.parse(normalization), self.image_size)
        except Exception as exc:  # noqa: BLE001
            # OpenCV reports conversion failures as cv2.error
            raise RecognitionImageError(f"crop cannot be converted to model input: {exc}") from exc

        token_ids = self.generate(pixel_values)
        text = self.vocabulary.decode(token_ids).strip()
        logger.debug("sequence_decoded", extra={"num_tokens": len(token_ids), "chars": len(text)})
        return text

    def generate(self, pixel_values: np.ndarray) -> List[int]:
        """Run the greedy loop; returns the ids including the leading BOS."""
        special = self.vocabulary.special
        token_ids: List[int] = [special.bos]
        for _ in range(self.max_length):
            decoder_input = np.asarray([token_ids], dtype=np.int64)
            logits = self._invoke(pixel_values, decoder_input)
            next_id = select_next_token(logits, self.vocabulary.width)
            token_ids.append(next_id)
            if next_id == special.eos:
                break
        return token_ids

    def _invoke(self, pixel_values: np.ndarray, decoder_input: np.ndarray) -> Any:
        guard = self._lock if self._lock is not None else contextlib.nullcontext()
        try:
            with guard:
                return self._model.predict(pixel_values, decoder_input)
        except Exception as exc:  # noqa: BLE001
            raise RecognitionPredictionError(f"generation model failed at step {decoder_input.shape[1]}: {exc}") from exc
