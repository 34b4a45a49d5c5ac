"""Unit tests for Otsu binarization."""

import numpy as np

from src.common.types import PixelBuffer
from src.preprocessing.binarizer import (
    Binarizer,
    between_class_variances,
    close_gaps,
    compute_histogram,
    grayscale_view,
    otsu_threshold,
    to_grayscale,
)


def brute_force_otsu(gray: np.ndarray) -> int:
    """Reference Otsu: evaluate every threshold independently."""
    values = gray.ravel().astype(np.float64)
    best_t, best_var = 0, -1.0
    for t in range(256):
        background = values[values <= t]
        foreground = values[values > t]
        if background.size == 0 or foreground.size == 0:
            var = 0.0
        else:
            var = (
                background.size
                * foreground.size
                * (background.mean() - foreground.mean()) ** 2
            )
        if var > best_var:
            best_t, best_var = t, var
    return best_t


def bimodal_image(seed: int = 0) -> np.ndarray:
    rng = np.random.default_rng(seed)
    dark = rng.integers(40, 61, size=(40, 100))
    light = rng.integers(190, 211, size=(60, 100))
    return np.vstack([dark, light]).astype(np.uint8)


class TestGrayscale:
    """Test luma conversion."""

    def test_extremes(self):
        rgba = np.zeros((2, 2, 4), dtype=np.uint8)
        rgba[0, 0, :3] = 255
        gray = to_grayscale(rgba)
        assert gray[0, 0] == 255
        assert gray[1, 1] == 0

    def test_luma_weights(self):
        rgba = np.zeros((1, 3, 4), dtype=np.uint8)
        rgba[0, 0, 0] = 255  # red: 76.245
        rgba[0, 1, 1] = 255  # green: 149.685
        rgba[0, 2, 2] = 255  # blue: 29.07
        assert list(to_grayscale(rgba)[0]) == [76, 150, 29]

    def test_grayscale_view(self):
        pixels = PixelBuffer(data=np.full((4, 4, 4), 200, dtype=np.uint8))
        view = grayscale_view(pixels)
        assert view.data.shape == (4, 4)
        assert not view.data.flags.writeable


class TestOtsu:
    """Test exhaustive Otsu threshold selection."""

    def test_matches_brute_force(self):
        for seed in range(3):
            gray = bimodal_image(seed)
            assert otsu_threshold(gray) == brute_force_otsu(gray)

    def test_threshold_separates_modes(self):
        t = otsu_threshold(bimodal_image())
        assert 60 <= t < 190

    def test_uniform_image(self):
        assert otsu_threshold(np.full((10, 10), 123, dtype=np.uint8)) == 0

    def test_ties_resolve_to_lowest(self):
        # Every t in [0, 254] splits {0} from {255} equally well
        gray = np.zeros((4, 4), dtype=np.uint8)
        gray[:, 2:] = 255
        assert otsu_threshold(gray) == 0

    def test_histogram_and_variances(self):
        gray = bimodal_image()
        hist = compute_histogram(gray)
        assert hist.shape == (256,)
        assert hist.sum() == gray.size

        variances = between_class_variances(hist)
        assert variances.shape == (256,)
        assert variances[255] == 0.0
        assert np.all(variances >= 0)


class TestCloseGaps:
    """Test morphological repair of ink strokes."""

    def test_fills_single_pixel_gap(self):
        binary = np.full((9, 20), 255, dtype=np.uint8)
        binary[3:6, 2:18] = 0
        binary[3:6, 10] = 255  # broken stroke

        repaired = close_gaps(binary, kernel_size=3)
        assert np.all(repaired[3:6, 2:18] == 0)

    def test_does_not_grow_strokes(self):
        binary = np.full((15, 15), 255, dtype=np.uint8)
        binary[5:10, 5:10] = 0

        repaired = close_gaps(binary, kernel_size=3)
        assert np.array_equal(repaired, binary)


class TestBinarizer:
    """Test the full binarization step."""

    def test_output_is_binary_rgba(self):
        gray = bimodal_image()
        rgba = np.dstack([gray, gray, gray, np.full_like(gray, 200)])

        result = Binarizer().binarize(rgba)

        assert result.image.shape == rgba.shape
        assert set(np.unique(result.image[:, :, :3])) <= {0, 255}
        assert np.array_equal(result.image[:, :, 0], result.image[:, :, 1])
        assert np.array_equal(result.image[:, :, 1], result.image[:, :, 2])
        assert np.all(result.image[:, :, 3] == 200)

    def test_dark_band_becomes_ink(self):
        gray = bimodal_image()
        rgba = np.dstack([gray, gray, gray, np.full_like(gray, 255)])

        result = Binarizer(enable_closing=False).binarize(rgba)

        assert np.all(result.mask[:40] == 0)
        assert np.all(result.mask[40:] == 255)
        assert result.threshold == otsu_threshold(gray)

    def test_pixels_above_threshold_are_white(self):
        gray = np.zeros((4, 4), dtype=np.uint8)
        gray[:, 2:] = 255
        rgba = np.dstack([gray, gray, gray, np.full_like(gray, 255)])

        result = Binarizer(enable_closing=False).binarize(rgba)

        assert result.threshold == 0
        assert np.all(result.mask[:, :2] == 0)
        assert np.all(result.mask[:, 2:] == 255)
