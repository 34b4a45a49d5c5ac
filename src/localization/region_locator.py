"""
Heuristic localization of the printed redemption code.

Gift-card codes are printed as a dense line of dark glyphs in the lower part
of the card. The locator builds a horizontal projection profile of dark
pixels, picks the densest row of the lower band as a seed and grows a text
band around it:

1. ``H[y]`` = number of pixels in row ``y`` darker than ``dark_threshold``
2. Seed row = argmax of ``H`` over ``[search_band_start, search_band_end)``
3. Grow up/down while ``H[y] > expand_ratio * H[seed]`` (at most
   ``max_drift_rows`` rows each way)
4. Horizontal extent = leftmost/rightmost dark column inside the band
5. Pad by ``padding`` pixels and clamp to the image

The locator never fails: degenerate profiles yield the full image.
"""

import logging
from typing import Tuple, Union

import numpy as np

from src.common.types import GrayscaleBuffer, RegionOfInterest

logger = logging.getLogger(__name__)


def horizontal_projection(gray: np.ndarray, dark_threshold: int = 180) -> np.ndarray:
    """Count dark pixels (``gray < dark_threshold``) in every row."""
    return np.count_nonzero(gray < dark_threshold, axis=1)


class RegionLocator:
    """Finds the sub-rectangle most likely to contain the printed code.

    Args:
        dark_threshold: Intensities below this count as ink.
        search_band_start: Relative top of the seed search band.
        search_band_end: Relative bottom (exclusive) of the seed search band.
        expand_ratio: Rows stay in the band while their count exceeds this
            fraction of the seed row count.
        max_drift_rows: Maximum expansion above and below the seed row.
        padding: Margin added around the detected text box.

    Example:
        >>> locator = RegionLocator()
        >>> roi = locator.locate(gray)
        >>> crop = roi.crop(rgba)
    """

    def __init__(
        self,
        dark_threshold: int = 180,
        search_band_start: float = 0.5,
        search_band_end: float = 0.9,
        expand_ratio: float = 0.2,
        max_drift_rows: int = 30,
        padding: int = 15,
    ):
        self.dark_threshold = dark_threshold
        self.search_band_start = search_band_start
        self.search_band_end = search_band_end
        self.expand_ratio = expand_ratio
        self.max_drift_rows = max_drift_rows
        self.padding = padding

    def locate(self, gray: Union[GrayscaleBuffer, np.ndarray]) -> RegionOfInterest:
        """
        Locate the code region.

        Args:
            gray: Grayscale image (GrayscaleBuffer or (H, W) uint8 array).

        Returns:
            RegionOfInterest fully contained in the image; the full image when
            no usable text band is found.
        """
        data = gray.data if isinstance(gray, GrayscaleBuffer) else gray
        height, width = data.shape[:2]
        full = RegionOfInterest.full_image(width, height)

        profile = horizontal_projection(data, self.dark_threshold)

        band_start = int(height * self.search_band_start)
        band_end = int(height * self.search_band_end)
        if band_end <= band_start:
            logger.debug(f"Search band empty for height={height}, using full image")
            return full

        seed = band_start + int(np.argmax(profile[band_start:band_end]))
        peak = int(profile[seed])
        if peak == 0:
            logger.debug("No dark pixels in search band, using full image")
            return full

        top, bottom = self._expand_band(profile, seed, peak)

        band = data[top : bottom + 1]
        columns = np.flatnonzero(np.any(band < self.dark_threshold, axis=0))
        if columns.size == 0:
            return full
        left, right = int(columns[0]), int(columns[-1])

        roi = RegionOfInterest.from_bounds(
            left - self.padding,
            top - self.padding,
            right + self.padding,
            bottom + self.padding,
            width,
            height,
        )

        logger.debug(
            f"Projection seed row={seed} (count={peak}), band=[{top}, {bottom}], "
            f"columns=[{left}, {right}]"
        )
        logger.info(f"Located code region {roi.to_tuple()} in {width}x{height} image")
        return roi

    def _expand_band(
        self, profile: np.ndarray, seed: int, peak: int
    ) -> Tuple[int, int]:
        """Grow the text band from the seed row; returns inclusive (top, bottom)."""
        cutoff = self.expand_ratio * peak
        last_row = len(profile) - 1

        top = seed
        while (
            top > 0
            and seed - (top - 1) <= self.max_drift_rows
            and profile[top - 1] > cutoff
        ):
            top -= 1

        bottom = seed
        while (
            bottom < last_row
            and (bottom + 1) - seed <= self.max_drift_rows
            and profile[bottom + 1] > cutoff
        ):
            bottom += 1

        return top, bottom
