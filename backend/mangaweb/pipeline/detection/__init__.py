from mangaweb.pipeline.detection.yolo import DetectionModel, UltralyticsDetectionModel

__all__ = ["DetectionModel", "UltralyticsDetectionModel"]
