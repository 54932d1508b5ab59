"""
Main processor for the Scanner module.

Ties the pieces together for one photographed score sheet:
1. Prepare the working canvas (downscale, add alpha)
2. Restore or default the corner quadrilateral
3. Drive corner dragging and pan/zoom through the InteractionController
4. Commit: rectify the quadrilateral into a flat raster
"""

import logging
import math
from pathlib import Path
from typing import Any, Optional

import cv2
import numpy as np

from src.scanner.config_loader import load_config
from src.scanner.geometry import default_quadrilateral
from src.scanner.image_warper import check_pixel_buffer
from src.scanner.interaction import InteractionController, UpdateCallback
from src.scanner.rectification import rectify_quadrilateral
from src.scanner.schemas import restore_quadrilateral
from src.scanner.types import RectificationResult, ScannerConfig, ViewTransform
from src.scanner.view_transform import PinchZoom, fit_to_screen, pan, wheel_zoom

logger = logging.getLogger(__name__)


def prepare_working_image(image: np.ndarray, max_dimension: int = 1920) -> np.ndarray:
    """
    Build the RGBA editing canvas for an input photo.

    Images whose longest side exceeds max_dimension are scaled down with
    their aspect ratio preserved (sizes floored). RGB input gains an opaque
    alpha channel.

    Raises:
        ValueError: If the image is not an (H, W, 3|4) uint8 array.
    """
    check_pixel_buffer(image)

    h, w = image.shape[:2]
    if w > max_dimension or h > max_dimension:
        ratio = min(max_dimension / w, max_dimension / h)
        new_w = max(1, int(math.floor(w * ratio)))
        new_h = max(1, int(math.floor(h * ratio)))
        image = cv2.resize(image, (new_w, new_h), interpolation=cv2.INTER_AREA)
        logger.info(f"Resized working canvas from {w}x{h} to {new_w}x{new_h}")

    if image.shape[2] == 3:
        image = cv2.cvtColor(image, cv2.COLOR_RGB2RGBA)

    return np.ascontiguousarray(image)


class ScanProcessor:
    """
    Perspective correction session for one score-sheet photo.

    Example:
        >>> processor = ScanProcessor(photo_rgb)
        >>> events = PointerEventBus()
        >>> with processor.controller.drag(0, events):
        ...     events.dispatch(PointerEventBus.MOVE, PointerEvent(40, 32))
        ...     events.dispatch(PointerEventBus.UP)
        >>> result = processor.commit()
        >>> payload = result_payload(result)
    """

    def __init__(
        self,
        image: np.ndarray,
        points: Optional[Any] = None,
        aspect_ratio: Optional[float] = None,
        config: Optional[ScannerConfig] = None,
        config_path: Optional[Path] = None,
        clock=None,
        on_update: Optional[UpdateCallback] = None,
    ):
        """
        Initialize the scan session.

        Args:
            image: Decoded photo (H, W, 3|4) uint8, RGB channel order.
            points: Previously persisted corner points (list of {"x", "y"}
                or {"points": [...]}) in working-canvas pixel space. The
                image corners are used if None.
            aspect_ratio: Optional fixed width/height for the output.
            config: Pre-loaded configuration object. If None, will load from file.
            config_path: Path to config file. If None, uses default location.
            clock: Millisecond clock for velocity tracking.
            on_update: Called after every quadrilateral or feedback change.
        """
        if config is not None:
            self.config = config
            logger.info("Using provided configuration")
        else:
            self.config = load_config(config_path) if config_path else load_config()
            logger.info("Loaded configuration from file")

        self.aspect_ratio = aspect_ratio
        self.image = prepare_working_image(
            image, self.config.rectify.working_max_dimension
        )

        if points is not None:
            self.quad = restore_quadrilateral(points)
            logger.info("Restored persisted corner points")
        else:
            self.quad = default_quadrilateral(self.width, self.height)

        self.controller = InteractionController(
            self.image,
            self.quad,
            config=self.config,
            clock=clock,
            on_update=on_update,
        )
        self._pinch = PinchZoom(self.config.view.min_scale, self.config.view.max_scale)

    @property
    def width(self) -> int:
        return self.image.shape[1]

    @property
    def height(self) -> int:
        return self.image.shape[0]

    @property
    def transform(self) -> ViewTransform:
        return self.controller.live.transform

    def fit(self, container_width: float, container_height: float) -> ViewTransform:
        """Fit the working canvas into the view container."""
        fitted = fit_to_screen(
            self.width,
            self.height,
            container_width,
            container_height,
            self.config.view.fit_margin,
        )
        if fitted is not None:
            self.controller.set_transform(fitted)
        return self.transform

    def wheel(self, delta_y: float, pointer_x: float, pointer_y: float) -> ViewTransform:
        view = self.config.view
        self.controller.set_transform(
            wheel_zoom(
                self.transform,
                delta_y,
                pointer_x,
                pointer_y,
                view.min_scale,
                view.max_scale,
                view.wheel_sensitivity,
            )
        )
        return self.transform

    def pan(self, dx: float, dy: float) -> ViewTransform:
        self.controller.set_transform(pan(self.transform, dx, dy))
        return self.transform

    def pinch_start(self, distance: float) -> None:
        """Two fingers down: leave corner dragging until pinch_end."""
        self.controller.begin_gesture()
        self._pinch.start(distance, self.transform)

    def pinch_move(
        self, distance: float, container_width: float, container_height: float
    ) -> ViewTransform:
        self.controller.set_transform(
            self._pinch.update(distance, self.transform, container_width, container_height)
        )
        return self.transform

    def pinch_end(self) -> None:
        self._pinch.end()
        self.controller.end_gesture()

    def rotate(
        self,
        container_width: Optional[float] = None,
        container_height: Optional[float] = None,
    ) -> None:
        """
        Rotate the working canvas 90 degrees clockwise.

        The corner points are reset to the new image corners. When the view
        container size is given, the view is fitted to the rotated canvas;
        otherwise the current transform is kept.
        """
        self.controller.close()
        self.image = np.ascontiguousarray(cv2.rotate(self.image, cv2.ROTATE_90_CLOCKWISE))
        self.controller.buffer = self.image
        self.quad[:] = default_quadrilateral(self.width, self.height)
        logger.info(f"Rotated working canvas to {self.width}x{self.height}")

        if container_width is not None and container_height is not None:
            self.fit(container_width, container_height)

    def commit(self) -> RectificationResult:
        """
        Freeze the quadrilateral and produce the rectified raster.

        Any drag in progress is ended first.

        Raises:
            DegenerateGeometryError: If the corners are collinear or duplicated.
            ValueError: If the corners imply an empty output.
        """
        self.controller.end_drag()

        logger.info("=" * 60)
        logger.info("Committing perspective correction")
        logger.info("=" * 60)

        result = rectify_quadrilateral(
            self.image,
            list(self.quad),
            max_resolution=self.config.rectify.max_resolution,
            aspect_ratio=self.aspect_ratio,
        )

        logger.info(
            f"Commit finished: {result.width}x{result.height}, "
            f"aspect ratio {result.aspect_ratio:.3f}"
        )
        return result

    def close(self) -> None:
        self.controller.close()


def process_scan(
    image: np.ndarray,
    points: Any,
    aspect_ratio: Optional[float] = None,
    config: Optional[ScannerConfig] = None,
) -> RectificationResult:
    """
    Convenience function for one-shot rectification of known corners.

    Example:
        >>> points = [{"x": 40, "y": 30}, {"x": 600, "y": 42},
        ...           {"x": 610, "y": 820}, {"x": 35, "y": 800}]
        >>> result = process_scan(image, points)
    """
    processor = ScanProcessor(image, points=points, aspect_ratio=aspect_ratio, config=config)
    return processor.commit()
