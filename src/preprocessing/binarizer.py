"""
Adaptive binarization for OCR input.

Converts RGBA pixels to pure black/white using Otsu's threshold so that
recognition is robust to the lighting and contrast of handheld card photos:

1. Grayscale via ITU-R BT.601 luma, rounded half-up
2. Otsu threshold: exhaustive search over all 256 candidates
3. Binarize: ``gray > t`` becomes white (255), everything else black (0)
4. Gap repair: morphological closing of the black (ink) pixels
"""

import logging
from dataclasses import dataclass

import cv2
import numpy as np

from src.common.types import GrayscaleBuffer, PixelBuffer

logger = logging.getLogger(__name__)

LUMA_WEIGHTS = np.array([0.299, 0.587, 0.114], dtype=np.float64)


def to_grayscale(rgba: np.ndarray) -> np.ndarray:
    """
    Convert RGBA (or RGB) pixels to 8-bit luma.

    ``gray = round(0.299 R + 0.587 G + 0.114 B)`` with halves rounded up.

    Args:
        rgba: Array of shape (H, W, 3) or (H, W, 4).

    Returns:
        Array of shape (H, W), dtype uint8.
    """
    if rgba.ndim == 2:
        return rgba.astype(np.uint8, copy=False)

    luma = rgba[:, :, :3].astype(np.float64) @ LUMA_WEIGHTS
    return np.clip(np.floor(luma + 0.5), 0, 255).astype(np.uint8)


def grayscale_view(pixels: PixelBuffer) -> GrayscaleBuffer:
    """Derive the read-only grayscale view of a PixelBuffer."""
    return GrayscaleBuffer(data=to_grayscale(pixels.data))


def compute_histogram(gray: np.ndarray) -> np.ndarray:
    """256-bin intensity histogram of an 8-bit image."""
    return np.bincount(gray.ravel(), minlength=256)[:256].astype(np.float64)


def between_class_variances(histogram: np.ndarray) -> np.ndarray:
    """
    Between-class variance ``wB * wF * (mB - mF)^2`` for every threshold.

    Background is the class of intensities ``<= t`` and foreground the class
    ``> t``. Thresholds that leave one class empty score 0.

    Args:
        histogram: 256-bin histogram.

    Returns:
        Array of 256 variances indexed by threshold.
    """
    histogram = np.asarray(histogram, dtype=np.float64)
    levels = np.arange(256, dtype=np.float64)

    weight_background = np.cumsum(histogram)
    weight_foreground = weight_background[-1] - weight_background

    sum_background = np.cumsum(histogram * levels)
    sum_total = sum_background[-1]

    variances = np.zeros(256, dtype=np.float64)
    valid = (weight_background > 0) & (weight_foreground > 0)

    mean_background = sum_background[valid] / weight_background[valid]
    mean_foreground = (sum_total - sum_background[valid]) / weight_foreground[valid]
    variances[valid] = (
        weight_background[valid]
        * weight_foreground[valid]
        * (mean_background - mean_foreground) ** 2
    )
    return variances


def otsu_threshold(gray: np.ndarray) -> int:
    """
    Compute Otsu's threshold of an 8-bit grayscale image.

    Deterministic and exhaustive; ties resolve to the lowest threshold.

    Args:
        gray: Array of shape (H, W), dtype uint8.

    Returns:
        Threshold in [0, 255]. Uniform images return 0.
    """
    variances = between_class_variances(compute_histogram(gray))
    return int(np.argmax(variances))


def close_gaps(binary: np.ndarray, kernel_size: int = 3) -> np.ndarray:
    """
    Reconnect broken strokes with a morphological closing of the ink.

    Black pixels are the ink; the closing (dilation followed by erosion with a
    ``kernel_size`` square) fills white gaps narrower than the kernel without
    growing the strokes elsewhere.

    Args:
        binary: Array of shape (H, W) with values in {0, 255}.
        kernel_size: Side of the square structuring element.

    Returns:
        Repaired binary array with values in {0, 255}.
    """
    ink = (binary == 0).astype(np.uint8)
    kernel = np.ones((kernel_size, kernel_size), dtype=np.uint8)
    closed = cv2.morphologyEx(ink, cv2.MORPH_CLOSE, kernel)
    return np.where(closed > 0, 0, 255).astype(np.uint8)


@dataclass
class BinarizationResult:
    """Output of the binarizer.

    Attributes:
        image: RGBA array; R, G and B are identical and in {0, 255}, alpha is
            copied from the input.
        threshold: Otsu threshold used.
    """

    image: np.ndarray
    threshold: int

    @property
    def mask(self) -> np.ndarray:
        """Single-channel view of the binary image."""
        return self.image[:, :, 0]


class Binarizer:
    """Otsu binarizer with optional stroke repair.

    Args:
        enable_closing: Apply the morphological closing pass.
        closing_kernel_size: Structuring element size for the closing.

    Example:
        >>> binarizer = Binarizer()
        >>> result = binarizer.binarize(rgba)
        >>> print(result.threshold)
        117
    """

    def __init__(self, enable_closing: bool = True, closing_kernel_size: int = 3):
        self.enable_closing = enable_closing
        self.closing_kernel_size = closing_kernel_size

    def binarize(self, rgba: np.ndarray) -> BinarizationResult:
        """
        Binarize an RGBA region.

        Args:
            rgba: Array of shape (H, W, 4), dtype uint8.

        Returns:
            BinarizationResult with the black/white RGBA image.
        """
        gray = to_grayscale(rgba)
        threshold = otsu_threshold(gray)

        binary = np.where(gray > threshold, 255, 0).astype(np.uint8)
        if self.enable_closing:
            binary = close_gaps(binary, self.closing_kernel_size)

        output = np.empty((gray.shape[0], gray.shape[1], 4), dtype=np.uint8)
        output[:, :, 0] = binary
        output[:, :, 1] = binary
        output[:, :, 2] = binary
        if rgba.ndim == 3 and rgba.shape[2] == 4:
            output[:, :, 3] = rgba[:, :, 3]
        else:
            output[:, :, 3] = 255

        logger.debug(
            f"Binarized {gray.shape[1]}x{gray.shape[0]} region: "
            f"threshold={threshold}, ink_ratio={float(np.mean(binary == 0)):.3f}"
        )
        return BinarizationResult(image=output, threshold=threshold)
