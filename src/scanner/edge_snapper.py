"""
Line snap.

Pulls a point onto the nearest strong line by taking the centre of mass of
edge strength in a window around it.
"""

import logging
from typing import Optional

import numpy as np

from src.scanner.edge_features import central_gradients, luminance, search_window
from src.scanner.types import Point

logger = logging.getLogger(__name__)


def snap_to_edge(
    buffer: np.ndarray,
    x: float,
    y: float,
    radius: float = 15,
    min_magnitude: float = 50.0,
    min_weight: float = 10000.0,
) -> Optional[Point]:
    """
    Gradient-magnitude-weighted centroid around (x, y).

    Only pixels with magnitude above min_magnitude contribute, weighted by
    magnitude squared so the sharpest line dominates weak texture.

    Args:
        buffer: Source pixel buffer (H, W, 3|4). Only read.
        x: Query x in image coordinates.
        y: Query y in image coordinates.
        radius: Half-size of the window.
        min_magnitude: Edge strength threshold.
        min_weight: Minimum accumulated weight for a line to count.

    Returns:
        The centroid in image coordinates, or None if no sufficiently
        strong line is in the window.
    """
    height, width = buffer.shape[:2]
    sx, sy, sw, sh = search_window(
        np.floor(x), np.floor(y), radius, width, height
    )
    if sw < 3 or sh < 3:
        return None

    gx, gy = central_gradients(luminance(buffer[sy : sy + sh, sx : sx + sw]))
    magnitude = np.sqrt(gx * gx + gy * gy)

    weight = np.where(magnitude > min_magnitude, magnitude * magnitude, 0.0)
    total = float(weight.sum())
    if total < min_weight:
        return None

    ys, xs = np.mgrid[1 : sh - 1, 1 : sw - 1]
    centroid_x = sx + float((xs * weight).sum()) / total
    centroid_y = sy + float((ys * weight).sum()) / total

    logger.debug(f"Line snap ({x:.1f}, {y:.1f}) -> ({centroid_x:.1f}, {centroid_y:.1f})")

    return Point(centroid_x, centroid_y)
