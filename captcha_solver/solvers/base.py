"""
Captcha Solver Base Interface

Abstract base class defining the solver contract, and the result it returns.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional

from PIL import Image

from ..errors import CaptchaError, ModelLoadError, ProcessingError
from ..options import PreprocessOptions
from .. import preprocessor


@dataclass(frozen=True)
class SolveResult:
    """Outcome of one solver invocation."""
    text: str
    confidence: float  # 0.0-1.0
    solver_name: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "confidence": self.confidence,
            "solver_name": self.solver_name,
        }


def clamp_confidence(value: float) -> float:
    if value != value:  # NaN
        return 0.0
    return float(min(1.0, max(0.0, value)))


class CaptchaSolver(ABC):
    """
    Abstract base class for captcha solvers.

    Subclasses supply a name, their default preprocessing options and a
    ``recognize`` step. The base class handles the readiness gate and the
    per-field merge of caller options with the solver defaults.

    Readiness goes from False to True at most once, normally at the end of
    construction, and is read without locking afterwards.
    """

    default_options = PreprocessOptions()

    def __init__(self):
        self._ready = threading.Event()

    @property
    @abstractmethod
    def name(self) -> str:
        """Registry key of this solver (e.g. "ocr", "cnn")."""

    @abstractmethod
    def recognize(self, image: Image.Image) -> tuple:
        """Recognize a preprocessed image.

        Returns:
            (text, confidence) with confidence in [0, 1]
        """

    def is_ready(self) -> bool:
        return self._ready.is_set()

    def mark_ready(self) -> None:
        self._ready.set()

    def preprocess(self, image: Image.Image, options: Optional[PreprocessOptions] = None) -> Image.Image:
        merged = (options or PreprocessOptions()).merged_with(self.default_options)
        return preprocessor.preprocess(image, merged)

    def solve(self, image: Image.Image, options: Optional[PreprocessOptions] = None) -> SolveResult:
        """Preprocess ``image`` and recognize it.

        Raises:
            ModelLoadError: If the solver is not ready
            ProcessingError: If the recognition backend fails
        """
        if not self.is_ready():
            raise ModelLoadError(f"{self.name} solver not ready")

        processed = self.preprocess(image, options)
        try:
            text, confidence = self.recognize(processed)
        except CaptchaError:
            raise
        except Exception as e:
            raise ProcessingError(f"{self.name} backend failed: {e}") from e

        return SolveResult(
            text=text,
            confidence=clamp_confidence(confidence),
            solver_name=self.name,
        )
