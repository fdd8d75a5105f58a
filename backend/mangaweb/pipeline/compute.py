from __future__ import annotations

from enum import Enum
from typing import List, Sequence, Union


class ComputeProfile(str, Enum):
    """Preferred execution backend for model inference."""

    ACCELERATOR = "accelerator"  # accelerator only; fail if none is present
    ALL = "all"  # accelerator when available, CPU otherwise
    CPU = "cpu"  # general-purpose only

    @classmethod
    def parse(cls, value: Union[str, "ComputeProfile"]) -> "ComputeProfile":
        if isinstance(value, ComputeProfile):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(
                f"unknown compute profile {value!r}; expected one of {[p.value for p in cls]}"
            ) from None


# Accelerated ONNX Runtime providers, in order of preference.
_ACCELERATED_PROVIDERS = (
    "TensorrtExecutionProvider",
    "CUDAExecutionProvider",
    "CoreMLExecutionProvider",
    "DmlExecutionProvider",
)
_CPU_PROVIDER = "CPUExecutionProvider"


def select_onnx_providers(profile: ComputeProfile, available: Sequence[str]) -> List[str]:
    """Pick ONNX Runtime execution providers for a profile.

    Raises ValueError when the profile cannot be satisfied by `available`.
    """
    accelerated = [p for p in _ACCELERATED_PROVIDERS if p in available]
    if profile is ComputeProfile.CPU:
        providers = [_CPU_PROVIDER] if _CPU_PROVIDER in available else []
    elif profile is ComputeProfile.ACCELERATOR:
        providers = accelerated
    else:
        providers = accelerated + ([_CPU_PROVIDER] if _CPU_PROVIDER in available else [])
    if not providers:
        raise ValueError(f"no execution provider satisfies profile {profile.value!r} (available: {list(available)})")
    return providers


def select_torch_device(profile: ComputeProfile, cuda_available: bool) -> Union[int, str]:
    """Device argument for Ultralytics predict calls."""
    if profile is ComputeProfile.CPU:
        return "cpu"
    if cuda_available:
        return 0
    if profile is ComputeProfile.ACCELERATOR:
        raise ValueError("compute profile 'accelerator' requested but CUDA is not available")
    return "cpu"
