from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List

from mangaweb.pipeline.geometry import CoordinateSpace, Region


@dataclass(frozen=True)
class RecognizedText:
    text: str
    source_region: Region


@dataclass(frozen=True)
class TranslatedEntry:
    """Terminal artifact handed to the overlay renderer."""

    translated_text: str
    bounding_box: Region
    source_text: str = ""

    def __post_init__(self) -> None:
        if self.bounding_box.space is not CoordinateSpace.UI:
            raise ValueError("TranslatedEntry.bounding_box must be UI-normalized")

    def as_dict(self) -> Dict[str, Any]:
        return {
            "translated_text": self.translated_text,
            "source_text": self.source_text,
            "bounding_box": self.bounding_box.as_dict(),
        }


@dataclass
class PipelineReport:
    """Per-invocation diagnostics: stage timings and why regions were dropped."""

    width: int
    height: int
    num_regions: int = 0
    entries: List[TranslatedEntry] = field(default_factory=list)
    dropped: Dict[str, int] = field(
        default_factory=lambda: {"crop": 0, "recognition": 0, "empty": 0, "translation": 0}
    )
    timings_ms: Dict[str, int] = field(default_factory=dict)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "width": self.width,
            "height": self.height,
            "num_regions": self.num_regions,
            "entries": [e.as_dict() for e in self.entries],
            "dropped": dict(self.dropped),
            "timings_ms": dict(self.timings_ms),
        }
