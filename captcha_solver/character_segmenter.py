"""
Character Segmentation module.

This module splits a captcha image into individual character crops using the
vertical projection profile: the number of dark pixels in every column.

Design principles:
- A maximal run of columns that contain at least one dark pixel is a
  candidate character region
- Regions narrower than ``min_width`` columns are treated as noise
- A region still open at the last column is closed there and always kept
- Crops always span the full image height and keep the source colour mode

All code comments and docstrings are in English by project convention.
"""

from __future__ import annotations

from typing import List, Tuple
import numpy as np
from PIL import Image


class CharacterSegmenter:
    """Segment captcha images into character crops, left to right.

    The segmenter is stateless apart from its two parameters, so one instance
    can be shared between threads.
    """

    def __init__(self, min_width: int = 4, dark_threshold: int = 128):
        """Initialize the segmenter.

        Args:
            min_width: Narrowest region (in columns) that counts as a character
            dark_threshold: Intensities strictly below this value are "dark"
        """
        if min_width < 1:
            raise ValueError(f"min_width must be >= 1, got {min_width}")
        self.min_width = min_width
        self.dark_threshold = dark_threshold

    def projection(self, gray_array: np.ndarray) -> np.ndarray:
        """Count dark pixels per column.

        Args:
            gray_array: Grayscale array of shape (height, width)

        Returns:
            Integer array of shape (width,)

        Raises:
            ValueError: If gray_array is not 2D
        """
        if gray_array.ndim != 2:
            raise ValueError(f"Expected 2D array, got {gray_array.ndim}D")
        return (gray_array < self.dark_threshold).sum(axis=0)

    def find_regions(self, projection: np.ndarray) -> List[Tuple[int, int]]:
        """Find character regions in a projection profile.

        Closed regions narrower than ``min_width`` are dropped. A region
        still open at the last column is always kept, whatever its width.

        Args:
            projection: Per-column dark pixel counts

        Returns:
            List of (start, end) column ranges, end exclusive
        """
        regions = []
        in_char = False
        start = 0

        for x, count in enumerate(projection):
            if count > 0 and not in_char:
                in_char = True
                start = x
            elif count == 0 and in_char:
                in_char = False
                if x - start >= self.min_width:
                    regions.append((start, x))

        # Region touching the right edge
        if in_char:
            regions.append((start, len(projection)))

        return regions

    def regions(self, gray_array: np.ndarray) -> List[Tuple[int, int]]:
        """Character column ranges of a grayscale array."""
        return self.find_regions(self.projection(gray_array))

    def segment_chars(self, gray_array: np.ndarray) -> List[np.ndarray]:
        """Segment a grayscale array into character arrays.

        Args:
            gray_array: Input array of shape (height, width)

        Returns:
            List of arrays, each of shape (height, region_width)
        """
        return [gray_array[:, start:end] for start, end in self.regions(gray_array)]

    def segment_image(self, image: Image.Image) -> List[Image.Image]:
        """Segment a Pillow image into character crops.

        Dark columns are measured on the grayscale version of the image, but
        the crops are taken from the image as given.

        Args:
            image: Source image in any mode

        Returns:
            Ordered list of cropped images, possibly empty
        """
        gray = image if image.mode == "L" else image.convert("L")
        gray_array = np.asarray(gray, dtype=np.uint8)
        height = image.height
        return [image.crop((start, 0, end, height)) for start, end in self.regions(gray_array)]
