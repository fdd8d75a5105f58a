"""Shared utilities for the pipeline.

Modules:
- visualization: debug overlays of translated regions
"""

__all__ = [
    "visualization",
]
