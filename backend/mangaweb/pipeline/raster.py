from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from mangaweb.pipeline.errors import ImageConversionError


@dataclass(frozen=True, eq=False)
class RasterImage:
    """Immutable 8-bit RGB pixel grid of shape (height, width, 3).

    The stored array is a read-only view; derive new images instead of
    mutating. Conversions from other layouts live in `mangaweb.pipeline.io`.
    """

    pixels: np.ndarray

    def __post_init__(self) -> None:
        arr = self.pixels
        if not isinstance(arr, np.ndarray):
            raise ImageConversionError(f"expected a numpy array, got {type(arr).__name__}")
        if arr.ndim != 3 or arr.shape[2] != 3:
            raise ImageConversionError(f"expected an HxWx3 RGB array, got shape {arr.shape}")
        if arr.dtype != np.uint8:
            raise ImageConversionError(f"expected uint8 pixels, got {arr.dtype}")
        if arr.shape[0] == 0 or arr.shape[1] == 0:
            raise ImageConversionError("image has no pixels")
        view = arr.view()
        view.flags.writeable = False
        object.__setattr__(self, "pixels", view)

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def size(self) -> tuple[int, int]:
        return self.width, self.height
