"""
Captcha solvers.

- ocr: Tesseract-backed text-line recognition
- cnn: sequence-network recognition with greedy CTC decoding
- manager: registry, default selection and ensemble policy
"""

from .base import CaptchaSolver, SolveResult
from .cnn import SequenceNetworkSolver, StatisticalFallbackBackend
from .manager import BatchRequest, BatchResult, SolverManager
from .ocr import PlaceholderOcrBackend, TesseractBackend, TextLineSolver

__all__ = [
    "CaptchaSolver",
    "SolveResult",
    "SequenceNetworkSolver",
    "StatisticalFallbackBackend",
    "BatchRequest",
    "BatchResult",
    "SolverManager",
    "PlaceholderOcrBackend",
    "TesseractBackend",
    "TextLineSolver",
]
