from __future__ import annotations

from typing import List, Sequence, Tuple

import cv2  # type: ignore
import numpy as np

from mangaweb.pipeline.geometry import pixel_bounds, ui_to_pixel
from mangaweb.pipeline.models import TranslatedEntry


def generate_distinct_colors(num_colors: int, seed: int = 42) -> List[Tuple[int, int, int]]:
    rng = np.random.default_rng(seed)
    colors = []
    for _ in range(num_colors):
        color = tuple(int(c) for c in rng.integers(low=64, high=255, size=3))
        colors.append((color[2], color[1], color[0]))
    return colors


def make_overlay(
    image_bgr: np.ndarray,
    entries: Sequence[TranslatedEntry],
    alpha: float = 0.35,
) -> np.ndarray:
    """Tint each entry's box on a copy of the page and label it with its index."""
    overlay = image_bgr.copy()
    h, w = image_bgr.shape[:2]
    colors_bgr = generate_distinct_colors(len(entries))
    for idx, entry in enumerate(entries):
        bounds = pixel_bounds(ui_to_pixel(entry.bounding_box, w, h), w, h)
        if bounds is None:
            continue
        x0, y0, x1, y1 = bounds
        color = colors_bgr[idx]
        patch = overlay[y0:y1, x0:x1]
        tint = np.empty_like(patch)
        tint[:, :] = color
        overlay[y0:y1, x0:x1] = cv2.addWeighted(patch, 1 - alpha, tint, alpha, 0)
        cv2.rectangle(overlay, (x0, y0), (x1 - 1, y1 - 1), (0, 0, 0), thickness=1)
        # Hershey fonts are ASCII-only, so label with the index rather than the text
        label = str(idx + 1)
        org = (x0 + 3, min(h - 3, y0 + 18))
        cv2.putText(overlay, label, org, cv2.FONT_HERSHEY_SIMPLEX, 0.6, (0, 0, 0), 2)
        cv2.putText(overlay, label, org, cv2.FONT_HERSHEY_SIMPLEX, 0.6, (255, 255, 255), 1)
    return overlay
