"""
Image preprocessing for code extraction.

Decodes input images to RGBA at working resolution and binarizes regions
for recognition.

Example:
    >>> from src.preprocessing import Binarizer, ImageLoader
    >>> pixels = ImageLoader().load(Path("card.jpg"))
    >>> binary = Binarizer().binarize(pixels.data)
"""

from src.preprocessing.binarizer import (
    BinarizationResult,
    Binarizer,
    between_class_variances,
    close_gaps,
    compute_histogram,
    grayscale_view,
    otsu_threshold,
    to_grayscale,
)
from src.preprocessing.image_loader import (
    ImageLoader,
    ImageSource,
    decode_image,
    scale_to_working_resolution,
    upscale_for_recognition,
)

__all__ = [
    "ImageLoader",
    "ImageSource",
    "decode_image",
    "scale_to_working_resolution",
    "upscale_for_recognition",
    "Binarizer",
    "BinarizationResult",
    "to_grayscale",
    "grayscale_view",
    "compute_histogram",
    "between_class_variances",
    "otsu_threshold",
    "close_gaps",
]
