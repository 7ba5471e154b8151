"""
Error types for the captcha solver.

Every error raised across the package boundary is a ``CaptchaError`` with a
short machine-readable ``code``, so callers can shape responses without
matching on message text.
"""

from __future__ import annotations

from typing import Dict


class CaptchaError(Exception):
    """Base class for all captcha solver errors."""

    code = "captcha_error"
    prefix = "Captcha error"

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        if self.message:
            return f"{self.prefix}: {self.message}"
        return self.prefix

    def to_dict(self) -> Dict[str, str]:
        return {"error": self.code, "message": self.message or self.prefix}


class InvalidImage(CaptchaError):
    """Malformed or undecodable image data."""

    code = "invalid_image"
    prefix = "Invalid image"


class ImageTooLarge(InvalidImage):
    code = "image_too_large"
    prefix = "Image exceeds maximum allowed size"


class ModelNotFound(CaptchaError):
    """Requested solver name has no registry entry."""

    code = "model_not_found"
    prefix = "Model not found"


class ModelLoadError(CaptchaError):
    """Solver is not ready, or its backend failed to initialize."""

    code = "model_load_error"
    prefix = "Failed to load model"


class ProcessingError(CaptchaError):
    """A backend call failed mid-flight, or every ensemble member failed."""

    code = "processing_error"
    prefix = "Processing error"


class BadRequest(CaptchaError):
    code = "bad_request"
    prefix = "Bad request"
