"""
Pan/zoom math for the editing view.

All screen coordinates here are relative to the view container's origin.
The functions return new ViewTransform objects; the rendering layer owns
the current one and hands it to the interaction controller.
"""

import logging
from typing import Optional

from src.scanner.types import ViewTransform

logger = logging.getLogger(__name__)


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def pan(transform: ViewTransform, dx: float, dy: float) -> ViewTransform:
    return ViewTransform(transform.x + dx, transform.y + dy, transform.scale)


def zoom_about(
    transform: ViewTransform, anchor_x: float, anchor_y: float, new_scale: float
) -> ViewTransform:
    """Change the scale, keeping the image point under the anchor fixed."""
    image_point = transform.screen_to_image(anchor_x, anchor_y)
    return ViewTransform(
        anchor_x - image_point.x * new_scale,
        anchor_y - image_point.y * new_scale,
        new_scale,
    )


def wheel_zoom(
    transform: ViewTransform,
    delta_y: float,
    pointer_x: float,
    pointer_y: float,
    min_scale: float = 0.1,
    max_scale: float = 10.0,
    sensitivity: float = 0.001,
) -> ViewTransform:
    """Zoom towards the pointer; scrolling down (positive delta) zooms out."""
    new_scale = clamp(
        transform.scale * (1 - delta_y * sensitivity), min_scale, max_scale
    )
    return zoom_about(transform, pointer_x, pointer_y, new_scale)


def fit_to_screen(
    content_width: float,
    content_height: float,
    container_width: float,
    container_height: float,
    margin: float = 0.9,
) -> Optional[ViewTransform]:
    """
    Centre the content in the container at `margin` of the limiting size.

    Returns None when either size is empty.
    """
    if (
        content_width <= 0
        or content_height <= 0
        or container_width <= 0
        or container_height <= 0
    ):
        return None

    scale = min(container_width / content_width, container_height / content_height)
    scale *= margin
    return ViewTransform(
        (container_width - content_width * scale) / 2,
        (container_height - content_height * scale) / 2,
        scale,
    )


class PinchZoom:
    """
    Two-finger zoom about the container centre.

    The scale follows the ratio of the current finger distance to the
    distance when the gesture started.
    """

    def __init__(self, min_scale: float = 0.1, max_scale: float = 10.0):
        self.min_scale = min_scale
        self.max_scale = max_scale
        self._start_distance = 0.0
        self._start_scale = 1.0

    @property
    def active(self) -> bool:
        return self._start_distance > 0

    def start(self, distance: float, transform: ViewTransform) -> None:
        self._start_distance = distance
        self._start_scale = transform.scale

    def update(
        self,
        distance: float,
        transform: ViewTransform,
        container_width: float,
        container_height: float,
    ) -> ViewTransform:
        if not self.active:
            return transform

        new_scale = clamp(
            self._start_scale * distance / self._start_distance,
            self.min_scale,
            self.max_scale,
        )
        return zoom_about(transform, container_width / 2, container_height / 2, new_scale)

    def end(self) -> None:
        self._start_distance = 0.0
