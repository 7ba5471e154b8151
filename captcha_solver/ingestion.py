"""
Image ingestion helpers.

Turn encoded image data (raw bytes, base64 strings, files) into Pillow
images in mode "RGB" or "L", the only two raster formats the preprocessing
pipeline works with. All decode failures surface as ``InvalidImage``.
"""

from __future__ import annotations

import base64
import binascii
import io
from pathlib import Path
from typing import Optional

from PIL import Image, UnidentifiedImageError

from .errors import ImageTooLarge, InvalidImage


GRAYSCALE_MODES = {"1", "LA", "I;16", "I;16B", "I;16L"}


def decode_base64_image(data: str) -> bytes:
    """Decode a base64 payload, accepting ``data:image/...;base64,`` URLs."""
    if "," in data:
        data = data.rsplit(",", 1)[1]
    try:
        return base64.b64decode(data.strip(), validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidImage(f"Invalid base64: {e}") from e


def normalize_mode(image: Image.Image) -> Image.Image:
    """Convert any Pillow mode to "L" (grayscale sources) or "RGB"."""
    if image.mode in ("RGB", "L"):
        return image
    if image.mode in GRAYSCALE_MODES:
        return image.convert("L")
    return image.convert("RGB")


def load_image(data: bytes, max_bytes: Optional[int] = None) -> Image.Image:
    """Decode encoded image bytes.

    Args:
        data: Encoded image (PNG, JPEG, GIF, BMP, ...)
        max_bytes: Optional upper bound on the encoded size

    Returns:
        Fully decoded image in mode "RGB" or "L"

    Raises:
        ImageTooLarge: If data exceeds max_bytes
        InvalidImage: If the data cannot be decoded
    """
    if not data:
        raise InvalidImage("Image data is empty")
    if max_bytes is not None and len(data) > max_bytes:
        raise ImageTooLarge(f"{len(data)} bytes exceeds limit of {max_bytes}")

    try:
        image = Image.open(io.BytesIO(data))
        image.load()
    except (UnidentifiedImageError, OSError, ValueError, Image.DecompressionBombError) as e:
        raise InvalidImage(f"Cannot decode image: {e}") from e

    if image.width == 0 or image.height == 0:
        raise InvalidImage("Image has no pixels")
    return normalize_mode(image)


def load_image_file(path: str | Path, max_bytes: Optional[int] = None) -> Image.Image:
    """Read and decode an image file.

    Raises:
        FileNotFoundError: If the file does not exist
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Image file not found: {path}")
    return load_image(path.read_bytes(), max_bytes=max_bytes)
