"""
Common type definitions for the gift-card code extraction pipeline.

This module provides Pydantic-based type definitions for the data structures
that flow between pipeline stages: RGBA pixel buffers, grayscale views and
rectangular regions of interest.

These types provide:
- Type validation and conversion
- Consistent interfaces across modules
- Helper methods for common operations (cropping, clamping)
"""

from typing import Tuple, Union

import numpy as np
from pydantic import BaseModel, Field, field_validator


class PixelBuffer(BaseModel):
    """
    Type-safe wrapper for an RGBA8 image array.

    A PixelBuffer is created fresh for every extraction and is never shared
    between invocations.

    Attributes:
        data: Numpy array of shape (H, W, 4), dtype uint8, channel order RGBA.

    Example:
        >>> rgba = np.zeros((480, 640, 4), dtype=np.uint8)
        >>> buffer = PixelBuffer(data=rgba)
        >>> print(buffer.height, buffer.width)  # 480, 640
    """

    data: np.ndarray = Field(..., description="RGBA image data as numpy array")

    model_config = {"arbitrary_types_allowed": True}

    @field_validator("data")
    @classmethod
    def _validate_rgba(cls, v: np.ndarray) -> np.ndarray:
        """
        Validate that the numpy array is a non-empty RGBA8 image.

        Raises:
            ValueError: If array is not a valid RGBA8 image.
        """
        if not isinstance(v, np.ndarray):
            raise ValueError(f"Expected numpy.ndarray, got {type(v)}")

        if v.size == 0:
            raise ValueError("Image array is empty")

        if v.ndim != 3 or v.shape[2] != 4:
            raise ValueError(f"Expected (H, W, 4) RGBA image, got shape {v.shape}")

        if v.dtype != np.uint8:
            raise ValueError(
                f"Expected uint8 dtype for image, got {v.dtype}. "
                "Images should be in range [0, 255]"
            )

        return v

    @property
    def height(self) -> int:
        """Get image height in pixels."""
        return int(self.data.shape[0])

    @property
    def width(self) -> int:
        """Get image width in pixels."""
        return int(self.data.shape[1])

    @property
    def shape(self) -> Tuple[int, ...]:
        """Get image shape (H, W, 4)."""
        return self.data.shape

    def to_numpy(self) -> np.ndarray:
        """Get underlying numpy array."""
        return self.data

    def __repr__(self) -> str:
        return f"PixelBuffer(shape={self.shape})"


class GrayscaleBuffer(BaseModel):
    """
    Read-only single-channel intensity view derived from a PixelBuffer.

    Attributes:
        data: Numpy array of shape (H, W), dtype uint8.
    """

    data: np.ndarray = Field(..., description="Intensity samples (0-255)")

    model_config = {"arbitrary_types_allowed": True}

    @field_validator("data")
    @classmethod
    def _validate_gray(cls, v: np.ndarray) -> np.ndarray:
        if not isinstance(v, np.ndarray):
            raise ValueError(f"Expected numpy.ndarray, got {type(v)}")
        if v.ndim != 2 or v.size == 0:
            raise ValueError(f"Expected non-empty (H, W) array, got shape {v.shape}")
        if v.dtype != np.uint8:
            raise ValueError(f"Expected uint8 dtype, got {v.dtype}")

        view = v.view()
        view.flags.writeable = False
        return view

    @property
    def height(self) -> int:
        return int(self.data.shape[0])

    @property
    def width(self) -> int:
        return int(self.data.shape[1])

    def __repr__(self) -> str:
        return f"GrayscaleBuffer(shape={self.data.shape})"


class RegionOfInterest(BaseModel):
    """
    Type-safe representation of a rectangular region (x, y, width, height).

    A valid region always has positive width and height and non-negative
    origin. Containment within a specific image is enforced by
    ``clamp_to`` / ``fits_within`` since the model does not know the image.

    Attributes:
        x: Left edge (inclusive).
        y: Top edge (inclusive).
        width: Region width in pixels (> 0).
        height: Region height in pixels (> 0).

    Example:
        >>> roi = RegionOfInterest(x=10, y=300, width=600, height=80)
        >>> print(roi.x_max, roi.y_max)  # 610, 380
        >>> crop = roi.crop(image)
    """

    x: int = Field(..., ge=0, description="Left edge (inclusive)")
    y: int = Field(..., ge=0, description="Top edge (inclusive)")
    width: int = Field(..., gt=0, description="Width in pixels")
    height: int = Field(..., gt=0, description="Height in pixels")

    @field_validator("x", "y", "width", "height", mode="before")
    @classmethod
    def _convert_to_int(cls, v: Union[int, float]) -> int:
        """Convert coordinate to int, rounding if float."""
        if isinstance(v, (int, float, np.integer, np.floating)):
            return int(round(float(v)))
        raise ValueError(f"Coordinate must be numeric, got {type(v)}")

    @classmethod
    def full_image(cls, width: int, height: int) -> "RegionOfInterest":
        """Region covering an entire ``width`` x ``height`` image."""
        return cls(x=0, y=0, width=width, height=height)

    @classmethod
    def from_bounds(
        cls,
        x_min: int,
        y_min: int,
        x_max: int,
        y_max: int,
        image_width: int,
        image_height: int,
    ) -> "RegionOfInterest":
        """
        Build a region from inclusive pixel bounds, clamped to the image.

        Degenerate bounds (empty after clamping) yield the full image region.

        Args:
            x_min: Leftmost column (inclusive).
            y_min: Topmost row (inclusive).
            x_max: Rightmost column (inclusive).
            y_max: Bottom row (inclusive).
            image_width: Width of the source image.
            image_height: Height of the source image.

        Returns:
            RegionOfInterest contained within the image.
        """
        left = max(0, int(x_min))
        top = max(0, int(y_min))
        right = min(image_width - 1, int(x_max))
        bottom = min(image_height - 1, int(y_max))

        if right < left or bottom < top:
            return cls.full_image(image_width, image_height)

        return cls(x=left, y=top, width=right - left + 1, height=bottom - top + 1)

    @property
    def x_max(self) -> int:
        """Exclusive right edge."""
        return self.x + self.width

    @property
    def y_max(self) -> int:
        """Exclusive bottom edge."""
        return self.y + self.height

    @property
    def center_y(self) -> float:
        return self.y + self.height / 2.0

    @property
    def area(self) -> int:
        return self.width * self.height

    def fits_within(self, image_width: int, image_height: int) -> bool:
        """Check that the region lies fully inside an image of the given size."""
        return self.x_max <= image_width and self.y_max <= image_height

    def is_full_image(self, image_width: int, image_height: int) -> bool:
        return (
            self.x == 0
            and self.y == 0
            and self.width == image_width
            and self.height == image_height
        )

    def clamp_to(self, image_width: int, image_height: int) -> "RegionOfInterest":
        """Return a copy clamped to the image bounds."""
        return RegionOfInterest.from_bounds(
            self.x,
            self.y,
            self.x_max - 1,
            self.y_max - 1,
            image_width,
            image_height,
        )

    def crop(self, image: np.ndarray) -> np.ndarray:
        """
        Crop an (H, W) or (H, W, C) array to this region.

        Returns:
            Copy of the cropped pixels.
        """
        height, width = image.shape[:2]
        region = self.clamp_to(width, height)
        return image[region.y : region.y_max, region.x : region.x_max].copy()

    def to_tuple(self) -> Tuple[int, int, int, int]:
        """Convert to tuple (x, y, width, height)."""
        return (self.x, self.y, self.width, self.height)

    def __repr__(self) -> str:
        return (
            f"RegionOfInterest(x={self.x}, y={self.y}, "
            f"width={self.width}, height={self.height})"
        )
