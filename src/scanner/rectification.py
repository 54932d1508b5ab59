"""
Rectification (commit step)

Turns the accepted quadrilateral into a flat, axis-aligned raster:
size the output, solve the homography from the output rectangle to the
quadrilateral, and warp the source through it.
"""

import logging
from typing import Optional

import numpy as np

from src.scanner.geometry import calculate_output_size, is_convex_quadrilateral
from src.scanner.homography import solve_homography
from src.scanner.image_warper import check_pixel_buffer, warp_perspective
from src.scanner.types import Point, Quadrilateral, RectificationResult

logger = logging.getLogger(__name__)


def rectify_quadrilateral(
    image: np.ndarray,
    quad: Quadrilateral,
    max_resolution: int = 1920,
    aspect_ratio: Optional[float] = None,
) -> RectificationResult:
    """
    Rectify the region inside a quadrilateral.

    Args:
        image: Source pixel buffer (H, W, 3|4), uint8.
        quad: Corner points [TL, TR, BR, BL] in source-image pixel space.
              The order is used as given.
        max_resolution: Upper bound for the longest output side.
        aspect_ratio: Optional width/height override for the output.

    Returns:
        RectificationResult with the RGBA raster, the accepted points and
        the output aspect ratio.

    Raises:
        ValueError: If the image, quadrilateral or output size is invalid.
        DegenerateGeometryError: If the corners are collinear or duplicated.

    Example:
        >>> quad = [Point(120, 80), Point(900, 95), Point(920, 1300), Point(100, 1280)]
        >>> result = rectify_quadrilateral(image, quad)
        >>> result.image.shape
        (1205, 820, 4)
    """
    check_pixel_buffer(image)

    if len(quad) != 4:
        raise ValueError(f"Expected exactly 4 points, got {len(quad)}")

    if not is_convex_quadrilateral(quad):
        logger.warning(
            "Quadrilateral is not convex; corners may be crossed. "
            "The rectified image will be distorted."
        )

    logger.info("[Stage 1/3] Output sizing")
    width, height = calculate_output_size(quad, max_resolution, aspect_ratio)

    logger.info("[Stage 2/3] Solving perspective transform")
    rectangle = [
        Point(0.0, 0.0),
        Point(float(width), 0.0),
        Point(float(width), float(height)),
        Point(0.0, float(height)),
    ]
    h = solve_homography(rectangle, quad)

    logger.info("[Stage 3/3] Warping")
    rectified = warp_perspective(image, width, height, h)

    logger.info(f"Rectified quadrilateral to {width}x{height} raster")

    return RectificationResult(
        image=rectified,
        points=list(quad),
        width=width,
        height=height,
        aspect_ratio=width / height,
    )
