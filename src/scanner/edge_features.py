"""
Edge feature analysis.

Estimates up to two dominant line directions around a point from a
magnitude-weighted histogram of gradient tangent angles. Used for the
crosshair guide lines shown while a corner is dragged.
"""

import logging
import math
from typing import List, Tuple

import numpy as np

logger = logging.getLogger(__name__)

# Crosshair shown when no direction is found
DEFAULT_GUIDE_ANGLES = [0.0, 90.0]


def luminance(pixels: np.ndarray) -> np.ndarray:
    """Mean of the R, G and B channels as float64, shape (H, W)."""
    if pixels.ndim == 2:
        return pixels.astype(np.float64)
    return pixels[..., :3].astype(np.float64).mean(axis=2)


def central_gradients(lum: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """
    Signed finite differences for the interior pixels of a luminance map.

    Returns:
        (gx, gy), each of shape (H - 2, W - 2), where gx is right minus left
        and gy is below minus above. Element [i, j] belongs to pixel
        (j + 1, i + 1).
    """
    gx = lum[1:-1, 2:] - lum[1:-1, :-2]
    gy = lum[2:, 1:-1] - lum[:-2, 1:-1]
    return gx, gy


def search_window(
    origin_x: float, origin_y: float, radius: float, width: int, height: int
) -> Tuple[int, int, int, int]:
    """
    Pixel bounds of a (2 * radius) square window starting at origin - radius.

    The radius is not rounded: the window starts at floor(origin - radius)
    and its fractional extent min(size - start, 2 * radius) is rounded up so
    that every pixel with 1 <= local < extent - 1 keeps both neighbours.

    Returns:
        (sx, sy, sw, sh) clipped to the image.
    """
    sx = max(0, int(math.floor(origin_x - radius)))
    sy = max(0, int(math.floor(origin_y - radius)))
    sw = max(0, int(math.ceil(min(width - sx, 2 * radius))))
    sh = max(0, int(math.ceil(min(height - sy, 2 * radius))))
    return sx, sy, sw, sh


def local_edge_directions(
    window: np.ndarray,
    cx: int,
    cy: int,
    half_size: int = 5,
    min_magnitude: float = 60.0,
    min_total: float = 500.0,
    peak_min: float = 200.0,
    min_separation: float = 20.0,
    bins: int = 36,
) -> List[float]:
    """
    Find up to two dominant line angles around (cx, cy).

    Every pixel within +/- half_size of the query point (and at least one
    pixel inside the window border) contributes its gradient magnitude to
    the histogram bin of its tangent angle, folded into [0, 180).

    Args:
        window: Pixel buffer (H, W, 3|4) or luminance map (H, W).
        cx: Query x in window-local coordinates.
        cy: Query y in window-local coordinates.
        half_size: Half-size of the analysis window.
        min_magnitude: Gradients at or below this are treated as texture.
        min_total: Minimum accumulated magnitude for a region to count.
        peak_min: Minimum score of a histogram peak.
        min_separation: Reported angles differ by more than this (degrees).
        bins: Histogram bins over 180 degrees.

    Returns:
        Bin-center angles in degrees, strongest first, at most two.
        Empty when the region is featureless.
    """
    lum = luminance(window)
    height, width = lum.shape
    if width < 3 or height < 3:
        return []

    x0 = max(1, cx - half_size)
    x1 = min(width - 2, cx + half_size)
    y0 = max(1, cy - half_size)
    y1 = min(height - 2, cy + half_size)
    if x0 > x1 or y0 > y1:
        return []

    gx, gy = central_gradients(lum)
    gx = gx[y0 - 1 : y1, x0 - 1 : x1]
    gy = gy[y0 - 1 : y1, x0 - 1 : x1]

    magnitude = np.sqrt(gx * gx + gy * gy)
    significant = magnitude > min_magnitude

    total = float(magnitude[significant].sum())
    if total < min_total:
        return []

    # Normal to tangent; lines are undirected
    angles = np.mod(np.degrees(np.arctan2(gy[significant], gx[significant])) + 90.0, 180.0)
    bin_width = 180.0 / bins
    bin_index = np.floor(angles / bin_width).astype(np.intp) % bins
    histogram = np.bincount(bin_index, weights=magnitude[significant], minlength=bins)

    peaks = []
    for i in range(bins):
        prev_score = histogram[(i - 1) % bins]
        score = histogram[i]
        next_score = histogram[(i + 1) % bins]
        if score > prev_score and score > next_score and score > peak_min:
            peaks.append((i, float(score)))

    peaks.sort(key=lambda peak: peak[1], reverse=True)

    result: List[float] = []
    for index, _ in peaks:
        if len(result) >= 2:
            break
        angle = index * bin_width + bin_width / 2
        if all(_angle_difference(existing, angle) > min_separation for existing in result):
            result.append(angle)

    return result


def _angle_difference(a: float, b: float) -> float:
    """Difference between two undirected line angles, in [0, 90]."""
    diff = abs(a - b)
    if diff > 90:
        diff = 180 - diff
    return diff


def edge_angles(
    buffer: np.ndarray, x: float, y: float, radius: float = 15, **kwargs
) -> List[float]:
    """
    Guide-line angles at an image point, never empty.

    Crops a window of +/- radius around (x, y) and runs
    local_edge_directions on it. Falls back to a plain [0, 90] crosshair
    when nothing is found.

    Extra keyword arguments are passed to local_edge_directions.
    """
    height, width = buffer.shape[:2]
    ix = int(np.floor(x))
    iy = int(np.floor(y))
    sx = max(0, int(math.floor(ix - radius)))
    sy = max(0, int(math.floor(iy - radius)))
    ex = min(width, int(math.ceil(ix + radius)))
    ey = min(height, int(math.ceil(iy + radius)))
    if ex - sx <= 0 or ey - sy <= 0:
        return list(DEFAULT_GUIDE_ANGLES)

    angles = local_edge_directions(buffer[sy:ey, sx:ex], ix - sx, iy - sy, **kwargs)
    if not angles:
        logger.debug(f"No dominant edge direction at ({x:.1f}, {y:.1f})")
        return list(DEFAULT_GUIDE_ANGLES)
    return angles
