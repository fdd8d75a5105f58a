from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path


@lru_cache(maxsize=1)
def get_repo_root() -> Path:
    """Best-effort repository root detection.

    Walk up from this file and return the first directory holding the
    project's pyproject.toml. Falls back to a static relative parent.
    """
    here = Path(__file__).resolve()
    for p in list(here.parents)[:8]:
        if (p / "pyproject.toml").exists() and (p / "backend").exists():
            return p
    # backend/mangaweb/core/paths.py -> repo root is parents[3]
    try:
        return here.parents[3]
    except IndexError:
        return here.parent


@lru_cache(maxsize=1)
def get_assets_root() -> Path:
    path = os.getenv("ASSETS_ROOT")
    return Path(path) if path else (get_repo_root() / "assets")


def get_models_dir() -> Path:
    return get_assets_root() / "models"


def default_detector_model_path() -> Path:
    return get_models_dir() / "detector.pt"


def default_recognizer_model_path() -> Path:
    return get_models_dir() / "manga_ocr.onnx"


def default_vocab_path() -> Path:
    return get_models_dir() / "vocab.txt"
