"""
Bounding Box Conversion
=======================

Converts AI-reported geometry into PDF point boxes.

Two source encodings are supported:

1. Polygon (inches, top-left origin):
   [tlX, tlY, trX, trY, brX, brY, blX, blY], clockwise from top-left

2. Native box_2d (0-1000 normalized, top-left origin):
   [y_min, x_min, y_max, x_max] - note Y comes first. This is the
   model's trained coordinate space and needs no empirical offset.

Both produce a Box in PDF points with a BOTTOM-LEFT origin, every
value rounded to 2 decimal places.

Malformed geometry never raises: it yields FALLBACK_BOX so a single bad
detection cannot fail the whole batch.
"""

import logging
import math
from numbers import Real
from typing import Any, Dict, List, Optional, Sequence

from .geometry import Box, PageInfo, POINTS_PER_INCH

logger = logging.getLogger(__name__)


def round_half_away(value: float, places: int = 2) -> float:
    """Round half away from zero at the given number of decimal places."""
    factor = 10 ** places
    scaled = abs(value) * factor
    rounded = math.floor(scaled + 0.5) / factor
    return math.copysign(rounded, value) if rounded else 0.0


def _numbers(values: Any, count: int) -> Optional[List[float]]:
    """Return the first `count` values as floats, or None if unusable."""
    if not isinstance(values, (list, tuple)) or len(values) < count:
        return None

    result = []
    for value in values[:count]:
        if isinstance(value, bool) or not isinstance(value, Real):
            return None
        number = float(value)
        if not math.isfinite(number):
            return None
        result.append(number)
    return result


class BoundingBoxConverter:
    """
    Converts AI geometry payloads into PDF point boxes.
    """

    FALLBACK_BOX = Box(x=0.0, y=0.0, width=50.0, height=20.0)
    NATIVE_SCALE = 1000.0

    @classmethod
    def convert_polygon_to_box(
        cls,
        polygon: Optional[Sequence[Any]],
        page_info: PageInfo
    ) -> Box:
        """
        Convert an inch polygon to a PDF box.

        Uses min/max over all four corners so skewed or rotated
        quadrilaterals with inconsistent corner order still produce a
        box with non-negative size.

        Args:
            polygon: 8 numbers, clockwise from top-left, in inches
            page_info: Page the polygon belongs to

        Returns:
            Box in PDF points, or FALLBACK_BOX if the polygon is unusable
        """
        coords = _numbers(polygon, 8)
        if coords is None:
            return cls.FALLBACK_BOX

        xs = coords[0::2]
        ys = coords[1::2]

        x_min = min(xs) * POINTS_PER_INCH
        x_max = max(xs) * POINTS_PER_INCH
        y_min = min(ys) * POINTS_PER_INCH
        y_max = max(ys) * POINTS_PER_INCH

        return Box(
            x=round_half_away(x_min),
            y=round_half_away(page_info.height - y_max),
            width=round_half_away(x_max - x_min),
            height=round_half_away(y_max - y_min)
        )

    @classmethod
    def convert_native_box_to_points(
        cls,
        box_2d: Optional[Sequence[Any]],
        page_info: PageInfo
    ) -> Box:
        """
        Convert a native [y_min, x_min, y_max, x_max] 0-1000 box to a PDF box.

        Args:
            box_2d: 4 numbers on the 0-1000 scale
            page_info: Page the box belongs to (each page has its own 0-1000 grid)

        Returns:
            Box in PDF points, or FALLBACK_BOX if the box is unusable
        """
        coords = _numbers(box_2d, 4)
        if coords is None:
            return cls.FALLBACK_BOX

        y_min, x_min, y_max, x_max = coords
        # Reversed edges still describe the same rectangle
        y_min, y_max = min(y_min, y_max), max(y_min, y_max)
        x_min, x_max = min(x_min, x_max), max(x_min, x_max)

        x_start = x_min / cls.NATIVE_SCALE * page_info.width
        x_end = x_max / cls.NATIVE_SCALE * page_info.width
        y_top_start = y_min / cls.NATIVE_SCALE * page_info.height  # Distance from TOP
        y_top_end = y_max / cls.NATIVE_SCALE * page_info.height

        return Box(
            x=round_half_away(x_start),
            y=round_half_away(page_info.height - y_top_end),
            width=round_half_away(x_end - x_start),
            height=round_half_away(y_top_end - y_top_start)
        )

    @classmethod
    def convert(
        cls,
        page_info: PageInfo,
        box_2d: Optional[Sequence[Any]] = None,
        polygon: Optional[Sequence[Any]] = None,
        label: str = ""
    ) -> Box:
        """
        Convert whichever geometry payload a detection carries.

        The native box_2d form is preferred when both are present.
        """
        if box_2d is not None:
            box = cls.convert_native_box_to_points(box_2d, page_info)
            if box is cls.FALLBACK_BOX:
                logger.warning(f"Malformed box_2d for '{label}': {box_2d!r}, using fallback box")
            return box

        if polygon is None:
            logger.warning(f"No geometry for '{label}', using fallback box")
        box = cls.convert_polygon_to_box(polygon, page_info)
        if polygon is not None and box is cls.FALLBACK_BOX:
            logger.warning(f"Malformed polygon for '{label}': {polygon!r}, using fallback box")
        return box


def page_info_for(page_number: int, page_info_map: Dict[int, PageInfo]) -> PageInfo:
    """
    Look up a page's geometry, defaulting to A4 when the page is unknown.
    """
    page_info = page_info_map.get(page_number)
    if page_info is None:
        logger.warning(f"No dimensions for page {page_number}, using A4 default")
        return PageInfo.a4(page_number)
    return page_info
