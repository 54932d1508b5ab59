"""
Corner snap.

Scans a window around the pointer for the pixel whose gradient is strong
in both axes at once, which separates real paper corners from plain edges.
"""

import logging
from typing import Any, Optional

import numpy as np

from src.scanner.edge_features import (
    DEFAULT_GUIDE_ANGLES,
    central_gradients,
    local_edge_directions,
    luminance,
    search_window,
)
from src.scanner.types import CornerMatch

logger = logging.getLogger(__name__)


def find_strongest_corner(
    buffer: np.ndarray,
    cx: float,
    cy: float,
    radius: float = 20,
    min_score: float = 150.0,
    **direction_kwargs: Any,
) -> Optional[CornerMatch]:
    """
    Locate the most corner-like pixel near (cx, cy).

    Per-pixel score:
        (|gx| + |gy|) + 2 * min(|gx|, |gy|) - 2 * distance_to_centre

    The min term rewards gradient in both axes; the distance term keeps the
    result close to the centre of the (2 * radius) window, which starts at
    floor(cx - radius).

    Args:
        buffer: Source pixel buffer (H, W, 3|4). Only read.
        cx: Query x in image coordinates.
        cy: Query y in image coordinates.
        radius: Half-size of the scanned window. Fractional values are
            kept, not rounded.
        min_score: Best scores below this mean no confident corner.
        **direction_kwargs: Passed to local_edge_directions for the guide
            angles at the winning pixel.

    Returns:
        CornerMatch with the winning pixel and its guide angles (falling
        back to [0, 90]), or None when no confident corner is nearby.

    Example:
        >>> match = find_strongest_corner(image, 52.0, 48.0, radius=20)
        >>> if match:
        ...     print(match.x, match.y, match.angles)
    """
    height, width = buffer.shape[:2]
    sx, sy, sw, sh = search_window(cx, cy, radius, width, height)
    if sw < 3 or sh < 3:
        return None

    window = buffer[sy : sy + sh, sx : sx + sw]
    lum = luminance(window)
    gx, gy = central_gradients(lum)
    gx = np.abs(gx)
    gy = np.abs(gy)

    # Local coordinates of the interior pixels. The penalty is measured from
    # the nominal centre (radius, radius), even for a clipped window.
    ys, xs = np.mgrid[1 : sh - 1, 1 : sw - 1]
    distance = np.hypot(xs - radius, ys - radius)

    score = (gx + gy) + 2.0 * np.minimum(gx, gy) - 2.0 * distance

    best = int(np.argmax(score))
    best_score = float(score.flat[best])
    if best_score < min_score:
        return None

    best_y, best_x = np.unravel_index(best, score.shape)
    local_x = int(best_x) + 1
    local_y = int(best_y) + 1

    angles = local_edge_directions(lum, local_x, local_y, **direction_kwargs)

    logger.debug(
        f"Corner at ({sx + local_x}, {sy + local_y}) score={best_score:.1f}"
    )

    return CornerMatch(
        x=float(sx + local_x),
        y=float(sy + local_y),
        angles=angles if angles else list(DEFAULT_GUIDE_ANGLES),
    )
