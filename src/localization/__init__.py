"""
Code region localization.

Finds the printed code band on the card from a horizontal projection
profile of dark pixels.

Example:
    >>> from src.localization import RegionLocator
    >>> roi = RegionLocator().locate(gray)
    >>> print(roi.to_tuple())
"""

from src.localization.region_locator import RegionLocator, horizontal_projection

__all__ = [
    "RegionLocator",
    "horizontal_projection",
]
