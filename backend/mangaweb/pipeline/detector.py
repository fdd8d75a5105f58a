from __future__ import annotations

import logging
import threading
import time
from pathlib import Path
from typing import List, Union

import numpy as np

from mangaweb.pipeline.compute import ComputeProfile, select_torch_device
from mangaweb.pipeline.detection.yolo import DetectionModel
from mangaweb.pipeline.errors import (
    DetectionImageError,
    DetectionPredictionError,
    DetectorLoadError,
    ImageConversionError,
)
from mangaweb.pipeline.geometry import CoordinateSpace, Region, model_to_pixel
from mangaweb.pipeline.raster import RasterImage

logger = logging.getLogger(__name__)


def _cuda_available() -> bool:
    try:
        import torch  # type: ignore
    except ImportError:
        return False
    return bool(torch.cuda.is_available())


class RegionDetector:
    """Finds text blocks in a page image and reports them in pixel coordinates.

    The underlying model handle is not assumed to be thread-safe, so calls
    into it are serialized. Everything around the call is lock-free.
    """

    def __init__(self, model: DetectionModel) -> None:
        self._model = model
        self._lock = threading.Lock()

    @classmethod
    def load(cls, profile: Union[str, ComputeProfile], model_path: Path) -> "RegionDetector":
        """Load the YOLO detection weights for the given compute profile.

        Raises DetectorLoadError when the weights are missing or unusable.
        """
        from mangaweb.pipeline.detection.yolo import UltralyticsDetectionModel

        try:
            device = select_torch_device(ComputeProfile.parse(profile), _cuda_available())
            model = UltralyticsDetectionModel(Path(model_path), device=device)
        except Exception as exc:  # noqa: BLE001
            raise DetectorLoadError(f"failed to load detection model from {model_path}: {exc}") from exc
        logger.info("detector_loaded", extra={"model_path": str(model_path), "device": str(device)})
        return cls(model)

    def detect(self, image: RasterImage) -> List[Region]:
        """Run the model once on the full image; return pixel-space regions."""
        try:
            pixels = np.ascontiguousarray(image.pixels)
        except (AttributeError, ImageConversionError) as exc:
            raise DetectionImageError(f"image cannot be presented to the detector: {exc}") from exc

        t0 = time.perf_counter()
        try:
            with self._lock:
                detections = self._model.predict(pixels)
        except Exception as exc:  # noqa: BLE001
            raise DetectionPredictionError(f"detection model failed: {exc}") from exc

        regions: List[Region] = []
        for box, confidence in detections:
            if box.space is not CoordinateSpace.MODEL:
                raise DetectionPredictionError(f"detection model returned a {box.space.value} box")
            regions.append(model_to_pixel(box, image.width, image.height))

        logger.info(
            "regions_detected",
            extra={
                "num_regions": len(regions),
                "width": image.width,
                "height": image.height,
                "ms": int((time.perf_counter() - t0) * 1000),
            },
        )
        return regions
