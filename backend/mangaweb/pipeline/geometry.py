from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Tuple


class CoordinateSpace(str, Enum):
    """Origin/axis convention a Region is expressed in."""

    MODEL = "model"  # normalized [0, 1], bottom-left origin, y up
    PIXEL = "pixel"  # image pixels, top-left origin, y down
    UI = "ui"  # normalized [0, 1], top-left origin, y down


@dataclass(frozen=True)
class Region:
    """Axis-aligned rectangle tagged with the coordinate space it lives in."""

    x: float
    y: float
    width: float
    height: float
    space: CoordinateSpace

    def as_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}


def _require(region: Region, space: CoordinateSpace) -> None:
    if region.space is not space:
        raise ValueError(f"expected a {space.value} region, got {region.space.value}")


def _require_size(image_width: float, image_height: float) -> None:
    if image_width <= 0 or image_height <= 0:
        raise ValueError(f"image size must be positive, got {image_width}x{image_height}")


def model_to_pixel(region: Region, image_width: float, image_height: float) -> Region:
    """Convert a detector box (normalized, bottom-left origin) to pixels (top-left origin)."""
    _require(region, CoordinateSpace.MODEL)
    _require_size(image_width, image_height)
    return Region(
        x=region.x * image_width,
        y=(1 - region.y - region.height) * image_height,
        width=region.width * image_width,
        height=region.height * image_height,
        space=CoordinateSpace.PIXEL,
    )


def pixel_to_ui(region: Region, image_width: float, image_height: float) -> Region:
    """Divide by the image size. Both spaces share the top-left origin, so no flip."""
    _require(region, CoordinateSpace.PIXEL)
    _require_size(image_width, image_height)
    return Region(
        x=region.x / image_width,
        y=region.y / image_height,
        width=region.width / image_width,
        height=region.height / image_height,
        space=CoordinateSpace.UI,
    )


def ui_to_pixel(region: Region, image_width: float, image_height: float) -> Region:
    _require(region, CoordinateSpace.UI)
    _require_size(image_width, image_height)
    return Region(
        x=region.x * image_width,
        y=region.y * image_height,
        width=region.width * image_width,
        height=region.height * image_height,
        space=CoordinateSpace.PIXEL,
    )


def pixel_bounds(region: Region, image_width: int, image_height: int) -> Optional[Tuple[int, int, int, int]]:
    """Integral (x0, y0, x1, y1) covering a pixel region, clipped to the image.

    Returns None when nothing of the region lies inside the image.
    """
    _require(region, CoordinateSpace.PIXEL)
    values = (region.x, region.y, region.width, region.height)
    if not all(math.isfinite(v) for v in values):
        return None
    x0 = max(0, int(math.floor(region.x)))
    y0 = max(0, int(math.floor(region.y)))
    x1 = min(image_width, int(math.ceil(region.x + region.width)))
    y1 = min(image_height, int(math.ceil(region.y + region.height)))
    if x1 <= x0 or y1 <= y0:
        return None
    return x0, y0, x1, y1
