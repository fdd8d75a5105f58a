"""mangaweb: detect, recognize and translate dialogue in page screenshots."""

__version__ = "0.1.0"
