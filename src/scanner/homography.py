"""
Homography Solver

Solves the 3x3 projective transform that maps four source points onto
four destination points. The commit step solves it from the output
rectangle to the user's quadrilateral so the result can be used directly
for backward mapping.
"""

import logging
from itertools import combinations
from typing import List, Sequence

import numpy as np

from src.scanner.types import Point

logger = logging.getLogger(__name__)

# Pivots smaller than this, relative to the largest matrix entry, mean the
# system is singular.
PIVOT_TOLERANCE = 1e-10

# Triangle areas (doubled) below this fraction of the squared point-set extent
# count as collinear.
COLLINEAR_TOLERANCE = 1e-6


class DegenerateGeometryError(ValueError):
    """Raised when four correspondences do not define a projective transform."""


def check_non_degenerate(points: Sequence[Point], label: str = "points") -> None:
    """
    Reject point sets where any three points are (nearly) collinear.

    This also covers duplicated points.

    Raises:
        DegenerateGeometryError: If the points cannot anchor a homography.
    """
    pts = np.array([[p.x, p.y] for p in points], dtype=np.float64)
    extent = float(np.ptp(pts, axis=0).max()) if len(pts) else 0.0
    tolerance = COLLINEAR_TOLERANCE * max(1.0, extent * extent)

    for i, j, k in combinations(range(len(pts)), 3):
        v1 = pts[j] - pts[i]
        v2 = pts[k] - pts[i]
        if abs(v1[0] * v2[1] - v1[1] * v2[0]) < tolerance:
            raise DegenerateGeometryError(
                f"{label.capitalize()} {i}, {j} and {k} are collinear or duplicated; "
                "cannot compute a perspective transform"
            )


def solve_homography(
    src_points: Sequence[Point], dst_points: Sequence[Point]
) -> List[float]:
    """
    Compute the homography mapping src_points onto dst_points.

    Builds the 8x8 linear system (two equations per correspondence) and
    solves it by Gaussian elimination with partial pivoting followed by
    back-substitution.

    Args:
        src_points: 4 source points.
        dst_points: 4 destination points, in corresponding order.

    Returns:
        Coefficients [h0, ..., h7, 1.0] such that
        dst.x = (h0*x + h1*y + h2) / (h6*x + h7*y + 1) and
        dst.y = (h3*x + h4*y + h5) / (h6*x + h7*y + 1).

    Raises:
        ValueError: If either point list does not hold exactly 4 points.
        DegenerateGeometryError: If the points are collinear or duplicated,
            or the solution is not finite.

    Example:
        >>> rect = [Point(0, 0), Point(100, 0), Point(100, 50), Point(0, 50)]
        >>> h = solve_homography(rect, rect)
        >>> round(h[0], 6), round(h[4], 6), h[8]
        (1.0, 1.0, 1.0)
    """
    if len(src_points) != 4 or len(dst_points) != 4:
        raise ValueError(
            f"Expected exactly 4 correspondences, got "
            f"{len(src_points)} source and {len(dst_points)} destination points"
        )

    check_non_degenerate(src_points, "source points")
    check_non_degenerate(dst_points, "destination points")

    a = np.zeros((8, 8), dtype=np.float64)
    b = np.zeros(8, dtype=np.float64)

    for i, (s, d) in enumerate(zip(src_points, dst_points)):
        a[2 * i] = [s.x, s.y, 1, 0, 0, 0, -s.x * d.x, -s.y * d.x]
        b[2 * i] = d.x
        a[2 * i + 1] = [0, 0, 0, s.x, s.y, 1, -s.x * d.y, -s.y * d.y]
        b[2 * i + 1] = d.y

    tolerance = PIVOT_TOLERANCE * max(1.0, float(np.abs(a).max()))
    n = 8

    # Forward elimination with partial pivoting
    for i in range(n):
        max_row = i + int(np.argmax(np.abs(a[i:, i])))
        if abs(a[max_row, i]) < tolerance:
            raise DegenerateGeometryError(
                "Corner points are collinear or duplicated; "
                "cannot compute a perspective transform"
            )

        if max_row != i:
            a[[i, max_row]] = a[[max_row, i]]
            b[[i, max_row]] = b[[max_row, i]]

        factors = a[i + 1 :, i] / a[i, i]
        a[i + 1 :, i:] -= np.outer(factors, a[i, i:])
        a[i + 1 :, i] = 0.0
        b[i + 1 :] -= factors * b[i]

    # Back-substitution
    x = np.zeros(n, dtype=np.float64)
    for i in range(n - 1, -1, -1):
        x[i] = (b[i] - np.dot(a[i, i + 1 :], x[i + 1 :])) / a[i, i]

    if not np.all(np.isfinite(x)):
        raise DegenerateGeometryError("Perspective transform is not finite")

    logger.debug(f"Solved homography: {np.round(x, 6).tolist()}")

    return [float(v) for v in x] + [1.0]


def map_point(h: Sequence[float], point: Point) -> Point:
    """Apply homography coefficients to a single point."""
    denominator = h[6] * point.x + h[7] * point.y + h[8]
    return Point(
        (h[0] * point.x + h[1] * point.y + h[2]) / denominator,
        (h[3] * point.x + h[4] * point.y + h[5]) / denominator,
    )
