from __future__ import annotations

from enum import Enum
from typing import Union

import cv2  # type: ignore
import numpy as np

from mangaweb.pipeline.raster import RasterImage

MODEL_IMAGE_SIZE = 224


class Normalization(str, Enum):
    """How 8-bit intensities are mapped before entering the model."""

    ZERO_TO_ONE = "zero_to_one"
    MINUS_ONE_TO_ONE = "minus_one_to_one"

    @classmethod
    def parse(cls, value: Union[str, "Normalization"]) -> "Normalization":
        if isinstance(value, Normalization):
            return value
        return cls(str(value).strip().lower())


def to_pixel_values(
    crop: RasterImage,
    normalization: Normalization = Normalization.MINUS_ONE_TO_ONE,
    size: int = MODEL_IMAGE_SIZE,
) -> np.ndarray:
    """
    Resizes a crop to the square model input and returns a float32 tensor
    of shape (1, 3, size, size) in planar RGB order.
    """
    interpolation = cv2.INTER_AREA if min(crop.width, crop.height) > size else cv2.INTER_CUBIC
    resized = cv2.resize(crop.pixels, (size, size), interpolation=interpolation)

    scaled = resized.astype(np.float32) / 255.0
    if normalization is Normalization.MINUS_ONE_TO_ONE:
        scaled = scaled * 2.0 - 1.0

    planar = np.transpose(scaled, (2, 0, 1))
    return np.ascontiguousarray(planar[np.newaxis, ...], dtype=np.float32)
