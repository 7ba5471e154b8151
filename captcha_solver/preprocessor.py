"""
Image Preprocessor module.

Deterministic pixel transforms applied to captcha images before recognition.
Every function takes a Pillow image, leaves it untouched and returns a new
image; none of them keep state between calls, so they are safe to call from
concurrent requests.

Images are expected in mode "RGB" or "L". Operations that only make sense on
intensities (threshold, morphology, line removal, ...) work on the grayscale
version and return mode "L".
"""

from __future__ import annotations

from typing import List, Optional

import numpy as np
from PIL import Image, ImageFilter

from .character_segmenter import CharacterSegmenter
from .options import PreprocessOptions


DENOISE_RADIUS = 1.0
DARK_LEVEL = 128   # below this a pixel counts as ink
LIGHT_LEVEL = 200  # above this a pixel counts as background
PIPELINE_THRESHOLD = 128

_segmenter = CharacterSegmenter(min_width=4, dark_threshold=DARK_LEVEL)


def preprocess(image: Image.Image, options: Optional[PreprocessOptions] = None) -> Image.Image:
    """Run the configurable pipeline: resize, grayscale, denoise, threshold.

    The order is fixed. Unset fields use the pipeline defaults: grayscale on,
    denoise off, no threshold, no resize. Resizing only happens when both
    ``resize_width`` and ``resize_height`` are given, and then always yields
    exactly that size.

    Args:
        image: Source image
        options: Preprocessing options; None means all defaults

    Returns:
        New processed image
    """
    options = options or PreprocessOptions()
    result = image.copy()

    if options.resize is not None:
        result = result.resize(options.resize, Image.Resampling.LANCZOS)

    if options.grayscale is None or options.grayscale:
        result = to_grayscale(result)

    if options.denoise:
        result = denoise(result)

    if options.threshold is not None:
        result = apply_threshold(result, options.threshold)

    return result


def to_grayscale(image: Image.Image) -> Image.Image:
    if image.mode == "L":
        return image.copy()
    return image.convert("L")


def denoise(image: Image.Image, radius: float = DENOISE_RADIUS) -> Image.Image:
    """Gaussian blur with a small fixed radius."""
    return to_grayscale(image).filter(ImageFilter.GaussianBlur(radius=radius))


def apply_threshold(image: Image.Image, threshold: int) -> Image.Image:
    """Binarize: pixels above ``threshold`` become 255, the rest 0."""
    gray = np.asarray(to_grayscale(image), dtype=np.uint8)
    binary = np.where(gray > threshold, 255, 0).astype(np.uint8)
    return Image.fromarray(binary)


def adaptive_threshold(image: Image.Image, block_radius: int) -> Image.Image:
    """Binarize every pixel against the mean of its local neighbourhood.

    The neighbourhood is the (2r+1) x (2r+1) square centred on the pixel,
    clipped at the image border. A pixel at or above its local mean becomes
    255, otherwise 0, so flat regions stay white under uneven lighting.

    Args:
        image: Source image
        block_radius: Neighbourhood radius r in pixels

    Returns:
        Binary grayscale image
    """
    if block_radius < 0:
        raise ValueError(f"block_radius must be >= 0, got {block_radius}")

    gray = np.asarray(to_grayscale(image), dtype=np.int64)
    height, width = gray.shape

    integral = np.zeros((height + 1, width + 1), dtype=np.int64)
    integral[1:, 1:] = gray.cumsum(axis=0).cumsum(axis=1)

    rows = np.arange(height)
    cols = np.arange(width)
    y0 = np.clip(rows - block_radius, 0, height)
    y1 = np.clip(rows + block_radius + 1, 0, height)
    x0 = np.clip(cols - block_radius, 0, width)
    x1 = np.clip(cols + block_radius + 1, 0, width)

    sums = (
        integral[np.ix_(y1, x1)]
        - integral[np.ix_(y0, x1)]
        - integral[np.ix_(y1, x0)]
        + integral[np.ix_(y0, x0)]
    )
    counts = np.outer(y1 - y0, x1 - x0)

    # Compare pixel * count against the window sum to stay in integers
    binary = np.where(gray * counts >= sums, 255, 0).astype(np.uint8)
    return Image.fromarray(binary)


def median_denoise(image: Image.Image, radius: int) -> Image.Image:
    """Median filter over a (2r+1) square window, for salt-and-pepper noise."""
    if radius < 0:
        raise ValueError(f"radius must be >= 0, got {radius}")
    gray = to_grayscale(image)
    if radius == 0:
        return gray
    return gray.filter(ImageFilter.MedianFilter(size=2 * radius + 1))


def erode(image: Image.Image, radius: int) -> Image.Image:
    """Grayscale erosion: each pixel takes the minimum of its (2r+1) square.

    Dark strokes grow, light specks inside strokes disappear. Gray levels
    are kept: only a {0, 255} input gives a binary result, so threshold
    first when a binary mask is wanted.
    """
    if radius < 0:
        raise ValueError(f"radius must be >= 0, got {radius}")
    gray = to_grayscale(image)
    if radius == 0:
        return gray
    return gray.filter(ImageFilter.MinFilter(size=2 * radius + 1))


def dilate(image: Image.Image, radius: int) -> Image.Image:
    """Grayscale dilation: each pixel takes the maximum of its (2r+1) square.

    Light background grows, thin dark strokes and specks disappear. Like
    ``erode``, the output is binary only for binary input.
    """
    if radius < 0:
        raise ValueError(f"radius must be >= 0, got {radius}")
    gray = to_grayscale(image)
    if radius == 0:
        return gray
    return gray.filter(ImageFilter.MaxFilter(size=2 * radius + 1))


def remove_lines(image: Image.Image) -> Image.Image:
    """Erase thin vertical scratches and isolated dark specks.

    Single pass over interior pixels, reading only the input image. For every
    dark pixel its 4-neighbourhood decides:

    - light above and below, dark left and right: horizontal stroke, keep
    - light left and right, dark above and below: vertical line, erase
    - at most one dark neighbour: isolated noise, erase

    This is a local heuristic, it does not guarantee that character strokes
    stay connected.
    """
    gray = np.asarray(to_grayscale(image), dtype=np.uint8)
    output = gray.copy()
    height, width = gray.shape
    if height < 3 or width < 3:
        return Image.fromarray(output)

    center = gray[1:-1, 1:-1]
    top = gray[:-2, 1:-1]
    bottom = gray[2:, 1:-1]
    left = gray[1:-1, :-2]
    right = gray[1:-1, 2:]

    dark = center < DARK_LEVEL
    stroke = (top > LIGHT_LEVEL) & (bottom > LIGHT_LEVEL) & (left < DARK_LEVEL) & (right < DARK_LEVEL)
    vertical = (left > LIGHT_LEVEL) & (right > LIGHT_LEVEL) & (top < DARK_LEVEL) & (bottom < DARK_LEVEL)
    dark_neighbours = (
        (top < DARK_LEVEL).astype(np.uint8)
        + (bottom < DARK_LEVEL)
        + (left < DARK_LEVEL)
        + (right < DARK_LEVEL)
    )
    isolated = dark_neighbours <= 1

    erase = dark & ~stroke & (vertical | isolated)
    output[1:-1, 1:-1][erase] = 255
    return Image.fromarray(output)


def enhance_contrast(image: Image.Image) -> Image.Image:
    """Global histogram equalization: v -> round(cdf[v] * 255)."""
    gray = np.asarray(to_grayscale(image), dtype=np.uint8)
    histogram = np.bincount(gray.ravel(), minlength=256)
    cdf = np.cumsum(histogram) / gray.size
    lut = np.floor(cdf * 255.0 + 0.5).clip(0, 255).astype(np.uint8)
    return Image.fromarray(lut[gray])


def segment_characters(image: Image.Image) -> List[Image.Image]:
    """Split an image into character crops using the vertical projection.

    See ``CharacterSegmenter``; returns an empty list when nothing qualifies.
    """
    return _segmenter.segment_image(image)


def full_pipeline(image: Image.Image) -> Image.Image:
    """Canonical cleanup used when no options are supplied.

    Grayscale, denoise, threshold at 128, then contrast enhancement and line
    removal.
    """
    options = PreprocessOptions(grayscale=True, denoise=True, threshold=PIPELINE_THRESHOLD)
    result = preprocess(image, options)
    result = enhance_contrast(result)
    return remove_lines(result)
