"""
Preprocessing options.

A ``PreprocessOptions`` value only says what the caller wants changed. Any
field left as ``None`` falls back to the solver's own default for that field,
never to "skip this step".
"""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class PreprocessOptions:
    """Per-request preprocessing overrides.

    Attributes:
        grayscale: Convert to 8-bit grayscale (pipeline default: True)
        threshold: Binary cut value 0-255; pixels above it become 255
        denoise: Apply a small Gaussian blur (pipeline default: False)
        resize_width: Exact output width, used only with resize_height
        resize_height: Exact output height, used only with resize_width
    """

    grayscale: Optional[bool] = None
    threshold: Optional[int] = None
    denoise: Optional[bool] = None
    resize_width: Optional[int] = None
    resize_height: Optional[int] = None

    def __post_init__(self):
        if self.threshold is not None and not 0 <= self.threshold <= 255:
            raise ValueError(f"threshold must be within 0-255, got {self.threshold}")
        for name in ("resize_width", "resize_height"):
            value = getattr(self, name)
            if value is not None and value <= 0:
                raise ValueError(f"{name} must be positive, got {value}")

    def merged_with(self, defaults: Optional["PreprocessOptions"]) -> "PreprocessOptions":
        """Fill every unset field from ``defaults``."""
        if defaults is None:
            return self
        overrides = {
            f.name: getattr(defaults, f.name)
            for f in fields(self)
            if getattr(self, f.name) is None
        }
        return replace(self, **overrides)

    @property
    def resize(self) -> Optional[tuple]:
        if self.resize_width is not None and self.resize_height is not None:
            return (self.resize_width, self.resize_height)
        return None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "PreprocessOptions":
        if not data:
            return cls()
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown preprocess options: {sorted(unknown)}")
        return cls(**data)

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}
