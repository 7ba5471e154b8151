"""
Captcha Solver package.

This package routes captcha images through interchangeable recognition
strategies (OCR and sequence-network solvers), each preceded by a
configurable preprocessing pipeline, and combines them through a solver
manager.
"""

from . import preprocessor
from .character_segmenter import CharacterSegmenter
from .config import ModelsSettings, ProcessingSettings, Settings, load_settings
from .errors import (
    BadRequest,
    CaptchaError,
    ImageTooLarge,
    InvalidImage,
    ModelLoadError,
    ModelNotFound,
    ProcessingError,
)
from .evaluation import EvaluationFramework
from .ingestion import decode_base64_image, load_image, load_image_file
from .options import PreprocessOptions
from .sequence_decoder import DEFAULT_CHARSET, SequenceDecoder
from .solvers import (
    BatchRequest,
    BatchResult,
    CaptchaSolver,
    SequenceNetworkSolver,
    SolveResult,
    SolverManager,
    TextLineSolver,
)

__version__ = "0.3.0"
__all__ = [
    "preprocessor",
    "CharacterSegmenter",
    "ModelsSettings",
    "ProcessingSettings",
    "Settings",
    "load_settings",
    "BadRequest",
    "CaptchaError",
    "ImageTooLarge",
    "InvalidImage",
    "ModelLoadError",
    "ModelNotFound",
    "ProcessingError",
    "EvaluationFramework",
    "decode_base64_image",
    "load_image",
    "load_image_file",
    "PreprocessOptions",
    "DEFAULT_CHARSET",
    "SequenceDecoder",
    "BatchRequest",
    "BatchResult",
    "CaptchaSolver",
    "SequenceNetworkSolver",
    "SolveResult",
    "SolverManager",
    "TextLineSolver",
]
