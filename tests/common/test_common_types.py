"""Unit tests for shared pipeline types."""

import numpy as np
import pytest
from pydantic import ValidationError

from src.common.types import GrayscaleBuffer, PixelBuffer, RegionOfInterest


class TestPixelBuffer:
    """Test PixelBuffer validation."""

    def test_valid_rgba(self):
        buffer = PixelBuffer(data=np.zeros((48, 64, 4), dtype=np.uint8))
        assert buffer.height == 48
        assert buffer.width == 64
        assert buffer.shape == (48, 64, 4)

    def test_rejects_three_channels(self):
        with pytest.raises(ValidationError):
            PixelBuffer(data=np.zeros((48, 64, 3), dtype=np.uint8))

    def test_rejects_wrong_dtype(self):
        with pytest.raises(ValidationError):
            PixelBuffer(data=np.zeros((48, 64, 4), dtype=np.float32))

    def test_rejects_empty(self):
        with pytest.raises(ValidationError):
            PixelBuffer(data=np.zeros((0, 64, 4), dtype=np.uint8))


class TestGrayscaleBuffer:
    """Test GrayscaleBuffer validation and immutability."""

    def test_view_is_read_only(self):
        source = np.full((10, 20), 128, dtype=np.uint8)
        gray = GrayscaleBuffer(data=source)

        assert gray.height == 10
        assert gray.width == 20
        with pytest.raises(ValueError):
            gray.data[0, 0] = 0

    def test_rejects_color_array(self):
        with pytest.raises(ValidationError):
            GrayscaleBuffer(data=np.zeros((10, 20, 3), dtype=np.uint8))


class TestRegionOfInterest:
    """Test RegionOfInterest geometry helpers."""

    def test_float_coordinates_are_rounded(self):
        roi = RegionOfInterest(x=10.4, y=20.6, width=100.0, height=30.2)
        assert roi.to_tuple() == (10, 21, 100, 30)

    def test_rejects_zero_size(self):
        with pytest.raises(ValidationError):
            RegionOfInterest(x=0, y=0, width=0, height=10)

    def test_rejects_negative_origin(self):
        with pytest.raises(ValidationError):
            RegionOfInterest(x=-1, y=0, width=10, height=10)

    def test_exclusive_edges(self):
        roi = RegionOfInterest(x=10, y=300, width=600, height=80)
        assert roi.x_max == 610
        assert roi.y_max == 380
        assert roi.center_y == 340.0
        assert roi.area == 48000

    def test_from_bounds_clamps_to_image(self):
        roi = RegionOfInterest.from_bounds(-15, -5, 900, 700, 800, 600)
        assert roi.to_tuple() == (0, 0, 800, 600)
        assert roi.is_full_image(800, 600)

    def test_from_bounds_inclusive(self):
        roi = RegionOfInterest.from_bounds(100, 200, 199, 249, 800, 600)
        assert roi.to_tuple() == (100, 200, 100, 50)

    def test_from_bounds_degenerate_is_full_image(self):
        roi = RegionOfInterest.from_bounds(900, 700, 950, 750, 800, 600)
        assert roi.is_full_image(800, 600)

    def test_fits_within(self):
        roi = RegionOfInterest(x=700, y=500, width=100, height=100)
        assert roi.fits_within(800, 600)
        assert not roi.fits_within(799, 600)

    def test_clamp_to(self):
        roi = RegionOfInterest(x=700, y=500, width=200, height=200)
        clamped = roi.clamp_to(800, 600)
        assert clamped.to_tuple() == (700, 500, 100, 100)

    def test_crop_returns_copy(self):
        image = np.arange(100 * 80, dtype=np.uint32).reshape(80, 100).astype(np.uint8)
        roi = RegionOfInterest(x=10, y=20, width=30, height=5)

        crop = roi.crop(image)
        assert crop.shape == (5, 30)
        assert np.array_equal(crop, image[20:25, 10:40])

        crop[:] = 0
        assert not np.all(image[20:25, 10:40] == 0)

    def test_crop_color_image(self):
        image = np.zeros((80, 100, 4), dtype=np.uint8)
        roi = RegionOfInterest(x=90, y=70, width=50, height=50)
        assert roi.crop(image).shape == (10, 10, 4)
