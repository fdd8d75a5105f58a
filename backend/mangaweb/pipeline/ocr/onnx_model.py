from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, List, Optional, Protocol, Sequence

import numpy as np

from mangaweb.pipeline.compute import ComputeProfile, select_onnx_providers

logger = logging.getLogger(__name__)


class GenerationModel(Protocol):
    """Opaque image-to-token model.

    Takes pixel values (1, 3, H, W) float32 and decoder ids (1, N) int64 and
    returns next-token scores; the final vocab-sized slice of the output
    belongs to the last position.
    """

    def predict(self, pixel_values: np.ndarray, decoder_input_ids: np.ndarray) -> Any:
        ...


class OnnxGenerationModel:
    """ONNX Runtime session for an exported vision encoder-decoder."""

    def __init__(
        self,
        model_path: Path,
        profile: ComputeProfile = ComputeProfile.ALL,
        *,
        pixel_input: str = "pixel_values",
        ids_input: str = "decoder_input_ids",
        session: Optional[Any] = None,
    ) -> None:
        if session is None:
            try:
                import onnxruntime as ort  # type: ignore
            except ImportError as exc:
                raise RuntimeError("onnxruntime is required. Install it with: pip install onnxruntime") from exc

            if not model_path.is_file():
                raise FileNotFoundError(f"Recognition model not found at '{model_path}'.")
            providers = select_onnx_providers(profile, ort.get_available_providers())
            session = ort.InferenceSession(str(model_path), providers=providers)
            logger.info(
                "recognizer_session_created",
                extra={"model_path": str(model_path), "providers": providers},
            )

        self._session = session
        input_names = self._input_names(session)
        missing = [n for n in (pixel_input, ids_input) if n not in input_names]
        if missing:
            raise ValueError(f"model inputs {input_names} lack {missing}")
        self._pixel_input = pixel_input
        self._ids_input = ids_input

    @staticmethod
    def _input_names(session: Any) -> List[str]:
        inputs: Sequence[Any] = session.get_inputs()
        return [i.name for i in inputs]

    def predict(self, pixel_values: np.ndarray, decoder_input_ids: np.ndarray) -> Any:
        outputs = self._session.run(
            None,
            {self._pixel_input: pixel_values, self._ids_input: decoder_input_ids},
        )
        # First output holds the logits
        return outputs[0] if outputs else None
