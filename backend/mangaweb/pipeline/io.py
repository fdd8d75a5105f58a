"""Boundary adapters between external image types and RasterImage."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import cv2
import numpy as np

from mangaweb.pipeline.errors import ImageConversionError
from mangaweb.pipeline.raster import RasterImage

Layout = Literal["RGB", "RGBA", "BGR", "BGRA", "GRAY"]

_TO_RGB = {
    "RGBA": cv2.COLOR_RGBA2RGB,
    "BGR": cv2.COLOR_BGR2RGB,
    "BGRA": cv2.COLOR_BGRA2RGB,
    "GRAY": cv2.COLOR_GRAY2RGB,
}


def ensure_dir(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def raster_from_array(array: np.ndarray, layout: Layout = "RGB") -> RasterImage:
    """Build a RasterImage from an 8-bit array in the given channel layout."""
    if array.dtype != np.uint8:
        raise ImageConversionError(f"expected uint8 pixels, got {array.dtype}")
    if layout == "GRAY" and array.ndim == 3 and array.shape[2] == 1:
        array = array[:, :, 0]
    expected_channels = {"RGB": 3, "BGR": 3, "RGBA": 4, "BGRA": 4, "GRAY": None}[layout]
    if expected_channels is None:
        ok = array.ndim == 2
    else:
        ok = array.ndim == 3 and array.shape[2] == expected_channels
    if not ok:
        raise ImageConversionError(f"array of shape {array.shape} does not match layout {layout}")
    if layout == "RGB":
        return RasterImage(np.ascontiguousarray(array).copy())
    return RasterImage(cv2.cvtColor(array, _TO_RGB[layout]))


def raster_from_pil(image: Any) -> RasterImage:
    """Accept any PIL image mode; palette/alpha/gray images are converted to RGB."""
    try:
        rgb = image.convert("RGB")
    except Exception as exc:  # noqa: BLE001
        raise ImageConversionError(f"cannot convert PIL image: {exc}") from exc
    return RasterImage(np.asarray(rgb, dtype=np.uint8).copy())


def _from_decoded(decoded: np.ndarray | None, source: str) -> RasterImage:
    if decoded is None:
        raise ImageConversionError(f"Failed to read image: {source}")
    if decoded.dtype.kind == "f":
        # Float TIFF/HDR: treat [0, 1] as the displayable range
        decoded = np.round(np.clip(np.nan_to_num(decoded), 0.0, 1.0) * 255.0).astype(np.uint8)
    elif decoded.dtype.kind in "iu" and decoded.dtype != np.uint8:
        # 16-bit PNGs and similar
        decoded = cv2.convertScaleAbs(decoded, alpha=255.0 / float(np.iinfo(decoded.dtype).max))
    elif decoded.dtype != np.uint8:
        raise ImageConversionError(f"unsupported pixel type {decoded.dtype} in {source}")
    if decoded.ndim == 2:
        return raster_from_array(decoded, "GRAY")
    if decoded.shape[2] == 4:
        return raster_from_array(decoded, "BGRA")
    return raster_from_array(decoded, "BGR")


def read_raster(image_path: Path) -> RasterImage:
    try:
        image = cv2.imread(str(image_path), cv2.IMREAD_UNCHANGED)
    except cv2.error as exc:
        raise ImageConversionError(f"Failed to read image {image_path}: {exc}") from exc
    return _from_decoded(image, str(image_path))


def decode_raster(data: bytes) -> RasterImage:
    buf = np.frombuffer(data, dtype=np.uint8)
    if buf.size == 0:
        raise ImageConversionError("empty image payload")
    try:
        image = cv2.imdecode(buf, cv2.IMREAD_UNCHANGED)
    except cv2.error as exc:
        raise ImageConversionError(f"Failed to decode image bytes: {exc}") from exc
    return _from_decoded(image, "<bytes>")


def to_bgr(image: RasterImage) -> np.ndarray:
    return cv2.cvtColor(image.pixels, cv2.COLOR_RGB2BGR)


def save_png(path: Path, image_bgr: np.ndarray) -> None:
    ensure_dir(path.parent)
    ok = cv2.imwrite(str(path), image_bgr)
    if not ok:
        raise RuntimeError(f"Failed to write image: {path}")
