from __future__ import annotations

from typing import Tuple

import numpy as np

from mangaweb.pipeline.errors import CropError
from mangaweb.pipeline.geometry import CoordinateSpace, Region, pixel_bounds
from mangaweb.pipeline.raster import RasterImage


def crop_region(image: RasterImage, region: Region) -> Tuple[RasterImage, Tuple[int, int, int, int]]:
    """
    Copies the pixels under a pixel-space region out of the source image.

    The rectangle is expanded to whole pixels and clipped to the image.
    Returns the crop and the (x0, y0, x1, y1) bounds actually used.
    """
    if region.space is not CoordinateSpace.PIXEL:
        raise CropError(f"crop needs a pixel region, got {region.space.value}")

    bounds = pixel_bounds(region, image.width, image.height)
    if bounds is None:
        raise CropError(f"region {region.as_dict()} lies outside the {image.width}x{image.height} image")

    x0, y0, x1, y1 = bounds
    return RasterImage(np.array(image.pixels[y0:y1, x0:x1], copy=True)), bounds
