"""
Common types shared across all modules.

This module provides standardized data types for the gift-card code extraction
pipeline, ensuring consistency between preprocessing, localization and OCR.
"""

from src.common.types import GrayscaleBuffer, PixelBuffer, RegionOfInterest

__all__ = ["PixelBuffer", "GrayscaleBuffer", "RegionOfInterest"]
