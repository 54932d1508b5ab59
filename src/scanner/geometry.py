"""
Geometry helpers for the Scanner module.

Quadrilateral measurements used when sizing the rectified output, the
parallelogram prediction used for geometric snapping, and the default
quadrilateral for a freshly loaded image.
"""

import logging
import math
from typing import Optional, Tuple

import numpy as np

from src.scanner.types import Point, Quadrilateral, quad_to_array

logger = logging.getLogger(__name__)


def parallelogram_point(quad: Quadrilateral, active_index: int) -> Point:
    """
    Predict the active corner from the other three.

    With opposite = quad[(i + 2) % 4] and neighbours quad[(i + 1) % 4] and
    quad[(i + 3) % 4], the parallelogram closure gives
    n1 + n3 - opposite. No special-casing for non-parallelograms.

    Example:
        >>> quad = [Point(0, 0), Point(10, 0), Point(12, 5), Point(2, 5)]
        >>> parallelogram_point(quad, 2)
        Point(x=12.0, y=5.0)
    """
    if len(quad) != 4:
        raise ValueError(f"Expected exactly 4 points, got {len(quad)}")
    if not 0 <= active_index < 4:
        raise ValueError(f"Active index must be in 0..3, got {active_index}")

    opposite = quad[(active_index + 2) % 4]
    n1 = quad[(active_index + 1) % 4]
    n3 = quad[(active_index + 3) % 4]

    return Point(float(n1.x + n3.x - opposite.x), float(n1.y + n3.y - opposite.y))


def default_quadrilateral(width: int, height: int) -> Quadrilateral:
    """The image corners, in [TL, TR, BR, BL] order."""
    return [
        Point(0.0, 0.0),
        Point(float(width), 0.0),
        Point(float(width), float(height)),
        Point(0.0, float(height)),
    ]


def calculate_edge_lengths(quad: Quadrilateral) -> Tuple[float, float, float, float]:
    """
    Calculate the length of all 4 edges of a quadrilateral.

    Returns:
        Tuple of (top_edge, right_edge, bottom_edge, left_edge) lengths.
    """
    tl, tr, br, bl = quad_to_array(quad)

    top_edge = float(np.linalg.norm(tr - tl))
    right_edge = float(np.linalg.norm(br - tr))
    bottom_edge = float(np.linalg.norm(bl - br))
    left_edge = float(np.linalg.norm(tl - bl))

    logger.debug(
        f"Edge lengths - Top: {top_edge:.1f}, Right: {right_edge:.1f}, "
        f"Bottom: {bottom_edge:.1f}, Left: {left_edge:.1f}"
    )

    return top_edge, right_edge, bottom_edge, left_edge


def calculate_output_size(
    quad: Quadrilateral,
    max_resolution: int = 1920,
    aspect_ratio: Optional[float] = None,
) -> Tuple[int, int]:
    """
    Size of the rectified raster for a quadrilateral.

    Width is the longer of the top and bottom edges and height the longer of
    the left and right edges, scaled down proportionally so the longest
    side does not exceed max_resolution. A fixed aspect ratio overrides the
    height with floor(width / aspect_ratio).

    Raises:
        ValueError: If the resulting size is smaller than 1x1 or the aspect
            ratio is not positive.

    Example:
        >>> quad = [Point(0, 0), Point(3840, 0), Point(3840, 1000), Point(0, 1000)]
        >>> calculate_output_size(quad)
        (1920, 500)
    """
    top, right, bottom, left = calculate_edge_lengths(quad)
    max_width = max(top, bottom)
    max_height = max(left, right)

    longest = max(max_width, max_height)
    scale = min(1.0, max_resolution / longest) if longest > 0 else 1.0

    width = int(math.floor(max_width * scale))
    height = int(math.floor(max_height * scale))

    if aspect_ratio is not None:
        if aspect_ratio <= 0:
            raise ValueError(f"Aspect ratio must be positive, got {aspect_ratio}")
        height = int(math.floor(width / aspect_ratio))

    if width < 1 or height < 1:
        raise ValueError(
            f"Output dimensions too small: width={width}, height={height}. "
            "Corner points may be too close together."
        )

    logger.debug(f"Output size: {width}x{height} (scale={scale:.3f})")

    return width, height


def is_convex_quadrilateral(quad: Quadrilateral) -> bool:
    """
    Check if 4 ordered points form a convex quadrilateral.

    All consecutive edge cross products share a sign for a convex shape;
    mixed signs mean a concave or self-intersecting (mis-ordered) outline.
    """
    rect = quad_to_array(quad)
    cross_products = []

    for i in range(4):
        p1 = rect[i]
        p2 = rect[(i + 1) % 4]
        p3 = rect[(i + 2) % 4]

        v1 = p2 - p1
        v2 = p3 - p2
        cross_products.append(v1[0] * v2[1] - v1[1] * v2[0])

    signs = [cp > 1e-6 for cp in cross_products]
    return all(signs) or not any(signs)
