"""
Image Warper

Resamples a source image through a homography by backward mapping:
every destination pixel is mapped into the source image and takes the
nearest source pixel. Destination pixels that map outside the source
are fully transparent.
"""

import logging
from typing import Sequence

import numpy as np

logger = logging.getLogger(__name__)


def check_pixel_buffer(buffer: np.ndarray) -> None:
    """
    Validate a decoded pixel buffer.

    Raises:
        ValueError: If the buffer is not a non-empty (H, W, 3) or (H, W, 4)
            uint8 array.
    """
    if buffer is None or not isinstance(buffer, np.ndarray) or buffer.size == 0:
        raise ValueError("Invalid pixel buffer: buffer is None or empty")

    if buffer.ndim != 3 or buffer.shape[2] not in (3, 4):
        raise ValueError(
            f"Expected an RGB or RGBA buffer with shape (H, W, 3|4), got {buffer.shape}"
        )

    if buffer.dtype != np.uint8:
        raise ValueError(f"Expected a uint8 buffer, got {buffer.dtype}")


def warp_perspective(
    src: np.ndarray, dst_width: int, dst_height: int, h: Sequence[float]
) -> np.ndarray:
    """
    Warp a source buffer into a dst_width x dst_height RGBA raster.

    Args:
        src: Source pixel buffer (H, W, 3|4), uint8. Only read.
        dst_width: Output width in pixels.
        dst_height: Output height in pixels.
        h: Homography coefficients mapping output coordinates to source
           coordinates (already inverted for backward mapping).

    Returns:
        RGBA uint8 array of shape (dst_height, dst_width, 4). Pixels sampled
        from inside the source are opaque; all others are (0, 0, 0, 0).

    Raises:
        ValueError: If the buffer or output size is invalid.

    Example:
        >>> rect = [Point(0, 0), Point(64, 0), Point(64, 48), Point(0, 48)]
        >>> h = solve_homography(rect, rect)
        >>> out = warp_perspective(image, 64, 48, h)
    """
    check_pixel_buffer(src)

    if dst_width < 1 or dst_height < 1:
        raise ValueError(
            f"Output dimensions must be positive, got {dst_width}x{dst_height}"
        )

    if len(h) != 9:
        raise ValueError(f"Expected 9 homography coefficients, got {len(h)}")

    src_height, src_width = src.shape[:2]

    ys, xs = np.mgrid[0:dst_height, 0:dst_width].astype(np.float64)

    with np.errstate(divide="ignore", invalid="ignore"):
        denominator = h[6] * xs + h[7] * ys + h[8]
        src_x = (h[0] * xs + h[1] * ys + h[2]) / denominator
        src_y = (h[3] * xs + h[4] * ys + h[5]) / denominator

    # NaN compares False, so points at infinity end up transparent
    inside = (src_x >= 0) & (src_x < src_width) & (src_y >= 0) & (src_y < src_height)

    dst = np.zeros((dst_height, dst_width, 4), dtype=np.uint8)

    sample_x = np.floor(src_x[inside]).astype(np.intp)
    sample_y = np.floor(src_y[inside]).astype(np.intp)

    dst[inside, :3] = src[sample_y, sample_x, :3]
    dst[inside, 3] = 255

    logger.debug(
        f"Warped {src_width}x{src_height} source to {dst_width}x{dst_height}, "
        f"{int(inside.sum())}/{inside.size} pixels sampled"
    )

    return dst
