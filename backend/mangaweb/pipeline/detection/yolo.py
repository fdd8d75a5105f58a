from __future__ import annotations

from pathlib import Path
from typing import Any, List, Optional, Protocol, Tuple, Union

import cv2  # type: ignore
import numpy as np

from mangaweb.pipeline.geometry import CoordinateSpace, Region

ModelDetection = Tuple[Region, float]


class DetectionModel(Protocol):
    """Opaque detection model: RGB array in, (model-space box, confidence) pairs out.

    Boxes are normalized to [0, 1] with a bottom-left origin.
    """

    def predict(self, image_rgb: np.ndarray) -> List[ModelDetection]:
        ...


def _parse_yolo_results(result: Any) -> List[ModelDetection]:
    """
    Parses the raw result object from a YOLOv8 detection prediction.

    Args:
        result: The YOLOv8 result object for a single image.

    Returns:
        A list of (Region in model space, confidence) pairs.
    """
    boxes = getattr(result, "boxes", None)
    if boxes is None or getattr(boxes, "xyxyn", None) is None:
        return []

    # xyxyn is normalized with a top-left origin; flip to the bottom-left model convention
    xyxyn = np.asarray(boxes.xyxyn.cpu().numpy(), dtype=np.float64).reshape(-1, 4)
    if getattr(boxes, "conf", None) is not None:
        confidences = [float(c) for c in boxes.conf.cpu().numpy()]
    else:
        confidences = [1.0] * len(xyxyn)

    detections: List[ModelDetection] = []
    n = min(len(xyxyn), len(confidences))
    for (x1, y1, x2, y2), conf in zip(xyxyn[:n], confidences[:n]):
        region = Region(
            x=float(x1),
            y=float(1.0 - y2),
            width=float(x2 - x1),
            height=float(y2 - y1),
            space=CoordinateSpace.MODEL,
        )
        detections.append((region, conf))
    return detections


class UltralyticsDetectionModel:
    """Ultralytics YOLO text-block detector behind the DetectionModel protocol."""

    def __init__(
        self,
        model_path: Path,
        *,
        device: Union[int, str] = "cpu",
        conf_thresh: float = 0.25,
        nms_iou_thresh: float = 0.45,
        imgsz: int = 640,
        yolo_model: Optional[Any] = None,
    ) -> None:
        if yolo_model is None:
            try:
                from ultralytics import YOLO  # type: ignore
            except ImportError as exc:
                raise RuntimeError(
                    "Ultralytics (YOLOv8) is required for detection. Install it with: pip install ultralytics"
                ) from exc

            if not model_path.is_file():
                raise FileNotFoundError(f"Detection model not found at '{model_path}'.")
            yolo_model = YOLO(str(model_path))

        self._model = yolo_model
        self._device = device
        self._conf_thresh = conf_thresh
        self._nms_iou_thresh = nms_iou_thresh
        self._imgsz = imgsz

    def predict(self, image_rgb: np.ndarray) -> List[ModelDetection]:
        # Ultralytics treats numpy sources as BGR
        image_bgr = cv2.cvtColor(image_rgb, cv2.COLOR_RGB2BGR)
        results = self._model.predict(
            source=image_bgr,
            imgsz=self._imgsz,
            conf=self._conf_thresh,
            iou=self._nms_iou_thresh,
            device=self._device,
            half=self._device != "cpu",
            verbose=False,
        )
        if not results:
            return []
        # Ultralytics has already applied NMS
        return _parse_yolo_results(results[0])
