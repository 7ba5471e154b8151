"""
ONNX Runtime inference backend for the sequence-network solver.

Imported only when a model file is actually present, so installations
without the ``onnx`` extra never load onnxruntime.
"""

from __future__ import annotations

import logging
from pathlib import Path

import numpy as np
import onnxruntime as ort

from ..errors import ProcessingError


logger = logging.getLogger(__name__)


class OnnxInferenceBackend:
    """Run a CTC captcha model exported to ONNX.

    The model takes one float32 tensor of shape (1, 1, height, width) with
    pixels normalized to [0, 1] and returns per-timestep class scores, with
    the blank class last.
    """

    name = "onnx"

    def __init__(self, model_path: str | Path, providers=None):
        self.model_path = Path(model_path)
        self.session = ort.InferenceSession(
            str(self.model_path),
            providers=providers or ["CPUExecutionProvider"],
        )
        self.input_name = self.session.get_inputs()[0].name
        logger.info("CNN model loaded from %s", self.model_path)

    def infer(self, pixels: np.ndarray, width: int, height: int) -> np.ndarray:
        tensor = np.asarray(pixels, dtype=np.float32).reshape(1, 1, height, width)
        outputs = self.session.run(None, {self.input_name: tensor})
        scores = np.squeeze(np.asarray(outputs[0]))
        if scores.ndim != 2:
            raise ProcessingError(
                f"Expected 2D score matrix from {self.model_path.name}, got shape {scores.shape}"
            )
        return scores
