"""
Interactive corner placement.

The InteractionController owns the live drag of one quadrilateral corner.
On every pointer move it converts the pointer to image coordinates,
tracks pointer speed, picks a snap target (parallelogram prediction,
image corner, nearby line, or none), commits the point into the
quadrilateral and publishes feedback for the overlay.

Everything runs synchronously inside the event handler that calls it.
"""

import logging
import time
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

import numpy as np

from src.scanner.config_loader import load_config
from src.scanner.corner_detector import find_strongest_corner
from src.scanner.edge_features import edge_angles
from src.scanner.edge_snapper import snap_to_edge
from src.scanner.geometry import parallelogram_point
from src.scanner.types import (
    MagnifierAnchor,
    Point,
    Quadrilateral,
    ScannerConfig,
    SnapKind,
    SnapState,
    ViewTransform,
)
from src.scanner.view_transform import clamp

logger = logging.getLogger(__name__)

# Speed assumed for the first sample of a drag, high enough to skip line snap
INITIAL_SPEED = 100.0

UpdateCallback = Callable[[Quadrilateral, SnapState, Optional[MagnifierAnchor]], None]


@dataclass
class PointerEvent:
    """A pointer sample in container-relative screen coordinates."""

    x: float
    y: float
    pointer_count: int = 1


class PointerEventBus:
    """
    Synchronous pointer-event dispatcher.

    Stands in for the window-level listeners of the host UI: handlers are
    called in registration order on the dispatching thread.
    """

    MOVE = "move"
    UP = "up"
    CANCEL = "cancel"

    def __init__(self):
        self._listeners: Dict[str, List[Callable]] = defaultdict(list)

    def add_listener(self, kind: str, handler: Callable) -> None:
        self._listeners[kind].append(handler)

    def remove_listener(self, kind: str, handler: Callable) -> None:
        if handler in self._listeners[kind]:
            self._listeners[kind].remove(handler)

    def listener_count(self, kind: Optional[str] = None) -> int:
        if kind is not None:
            return len(self._listeners[kind])
        return sum(len(handlers) for handlers in self._listeners.values())

    def dispatch(self, kind: str, event: Optional[PointerEvent] = None) -> None:
        for handler in list(self._listeners[kind]):
            handler(event)


@dataclass
class LiveState:
    """
    Values the drag callbacks read on every event.

    Written synchronously by the controller's setters and read by the
    subscribed handlers; only the UI thread touches it.
    """

    transform: ViewTransform = field(default_factory=ViewTransform)
    snapping_enabled: bool = True
    active_index: Optional[int] = None


@dataclass
class DragSession:
    """Ephemeral state of the one corner being dragged."""

    active_index: int
    last_position: Optional[Point] = None
    last_time: float = 0.0
    snap_state: SnapState = field(default_factory=SnapState)


class DragSubscription:
    """
    Pointer listeners held for the duration of one drag.

    Registered on creation and removed exactly once: on pointer-up,
    pointer-cancel, leaving the `with` block, or controller teardown.
    """

    def __init__(self, controller: "InteractionController", events: PointerEventBus):
        self._controller = controller
        self._events = events
        self._closed = False

        events.add_listener(PointerEventBus.MOVE, self._on_move)
        events.add_listener(PointerEventBus.UP, self._on_end)
        events.add_listener(PointerEventBus.CANCEL, self._on_end)

    @property
    def closed(self) -> bool:
        return self._closed

    def _on_move(self, event: Optional[PointerEvent]) -> None:
        if event is None or self._controller.live.active_index is None:
            return
        if event.pointer_count >= 2:
            self._controller.begin_gesture()
            return
        self._controller.move(event.x, event.y)

    def _on_end(self, event: Optional[PointerEvent] = None) -> None:
        self._controller.end_drag()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._events.remove_listener(PointerEventBus.MOVE, self._on_move)
        self._events.remove_listener(PointerEventBus.UP, self._on_end)
        self._events.remove_listener(PointerEventBus.CANCEL, self._on_end)
        logger.debug("Drag listeners removed")

    def __enter__(self) -> "DragSubscription":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        # Already released; a newer drag may own the controller now
        if not self._closed:
            self._controller.end_drag()


class InteractionController:
    """
    Drives corner dragging with magnetic snapping.

    Example:
        >>> controller = InteractionController(image, quad)
        >>> events = PointerEventBus()
        >>> with controller.drag(0, events):
        ...     events.dispatch(PointerEventBus.MOVE, PointerEvent(12, 9))
        ...     events.dispatch(PointerEventBus.UP)
        >>> controller.quad[0]
    """

    def __init__(
        self,
        buffer: np.ndarray,
        quad: Quadrilateral,
        transform: Optional[ViewTransform] = None,
        config: Optional[ScannerConfig] = None,
        clock: Optional[Callable[[], float]] = None,
        on_update: Optional[UpdateCallback] = None,
    ):
        """
        Args:
            buffer: Source pixel buffer (H, W, 3|4). Only read.
            quad: Quadrilateral to edit; mutated in place.
            transform: Initial view transform.
            config: Scanner configuration. Loaded from file if None.
            clock: Returns the current time in milliseconds.
            on_update: Called after every change with the quadrilateral,
                snap state and magnifier anchor.
        """
        if len(quad) != 4:
            raise ValueError(f"Expected exactly 4 points, got {len(quad)}")

        self.buffer = buffer
        self.quad = quad
        self.config = config if config is not None else load_config()
        self.live = LiveState(transform=transform or ViewTransform())
        self.session: Optional[DragSession] = None
        self.snap_state = SnapState()
        self.magnifier: Optional[MagnifierAnchor] = None
        self.gesture_active = False
        self._clock = clock or (lambda: time.monotonic() * 1000.0)
        self._on_update = on_update
        self._subscription: Optional[DragSubscription] = None

    @property
    def width(self) -> int:
        return self.buffer.shape[1]

    @property
    def height(self) -> int:
        return self.buffer.shape[0]

    @property
    def active_index(self) -> Optional[int]:
        return self.live.active_index

    def set_transform(self, transform: ViewTransform) -> None:
        self.live.transform = transform

    def set_snapping(self, enabled: bool) -> None:
        self.live.snapping_enabled = enabled

    def dynamic_radius(self) -> float:
        snap = self.config.snap
        return clamp(
            snap.radius_base / self.live.transform.scale, snap.radius_min, snap.radius_max
        )

    def geo_threshold(self) -> float:
        snap = self.config.snap
        return clamp(
            snap.geo_threshold_base / self.live.transform.scale,
            snap.geo_threshold_min,
            snap.geo_threshold_max,
        )

    def begin_drag(self, index: int) -> DragSession:
        """
        Make corner `index` the active drag target.

        Raises:
            ValueError: If index is not in 0..3.
            RuntimeError: If a drag or a pan/zoom gesture is in progress.
        """
        if not 0 <= index < 4:
            raise ValueError(f"Corner index must be in 0..3, got {index}")
        if self.gesture_active:
            raise RuntimeError("Cannot drag a corner during a pan/zoom gesture")
        if self.session is not None:
            raise RuntimeError(
                f"Corner {self.session.active_index} is already being dragged"
            )

        self.session = DragSession(active_index=index, last_time=self._clock())
        self.live.active_index = index
        logger.debug(f"Drag started on corner {index}")
        return self.session

    def drag(self, index: int, events: PointerEventBus) -> DragSubscription:
        """
        Start a drag and subscribe to pointer events for its duration.

        Use as a context manager; the listeners are removed on pointer-up,
        pointer-cancel or when the block exits, whichever comes first.
        """
        self.begin_drag(index)
        self._subscription = DragSubscription(self, events)
        return self._subscription

    def move(self, screen_x: float, screen_y: float) -> SnapState:
        """
        Handle one pointer move of the active corner.

        Returns the published snap state. Without an active drag, or during
        a pan/zoom gesture, nothing changes.
        """
        session = self.session
        if session is None or self.gesture_active:
            return self.snap_state

        live = self.live
        raw = live.transform.screen_to_image(screen_x, screen_y)

        now = self._clock()
        elapsed = now - session.last_time
        speed = INITIAL_SPEED
        if session.last_position is not None and elapsed > 0:
            speed = raw.distance_to(session.last_position) / elapsed
        session.last_time = now
        session.last_position = raw

        clamped = Point(
            clamp(raw.x, 0, self.width),
            clamp(raw.y, 0, self.height),
        )

        radius = self.dynamic_radius()
        features = self.config.features
        direction_kwargs = {
            "half_size": features.direction_window,
            "min_magnitude": features.direction_min_magnitude,
            "min_total": features.direction_min_total,
            "peak_min": features.direction_peak_min,
            "min_separation": features.direction_min_separation,
            "bins": features.direction_bins,
        }

        target = clamped
        kind = SnapKind.NONE
        ghost: Optional[Point] = None

        if live.snapping_enabled:
            ghost = parallelogram_point(self.quad, session.active_index)

            if clamped.distance_to(ghost) < self.geo_threshold():
                target = ghost
                kind = SnapKind.CORNER
            else:
                corner = find_strongest_corner(
                    self.buffer,
                    clamped.x,
                    clamped.y,
                    radius,
                    min_score=features.corner_min_score,
                    **direction_kwargs,
                )
                if corner is not None:
                    target = corner.point
                    kind = SnapKind.CORNER
                elif speed < self.config.snap.edge_snap_max_speed:
                    line_point = snap_to_edge(
                        self.buffer,
                        clamped.x,
                        clamped.y,
                        radius,
                        min_magnitude=features.edge_min_magnitude,
                        min_weight=features.edge_min_weight,
                    )
                    if line_point is not None:
                        target = line_point
                        kind = SnapKind.LINE

        guide_angles = edge_angles(
            self.buffer, target.x, target.y, radius, **direction_kwargs
        )

        self.quad[session.active_index] = target
        self.snap_state = SnapState(
            kind=kind, guide_angles=guide_angles, geometric_ghost=ghost
        )
        session.snap_state = self.snap_state
        self.magnifier = self._magnifier_anchor(screen_x, screen_y)

        logger.debug(
            f"Corner {session.active_index} -> ({target.x:.1f}, {target.y:.1f}) "
            f"snap={kind.value} speed={speed:.2f}"
        )

        self._publish()
        return self.snap_state

    def _magnifier_anchor(self, screen_x: float, screen_y: float) -> MagnifierAnchor:
        snap = self.config.snap
        top = screen_y - snap.magnifier_offset
        if top < snap.magnifier_min_top:
            top = screen_y + snap.magnifier_offset
        return MagnifierAnchor(top=top, left=screen_x)

    def end_drag(self) -> None:
        """
        Pointer-up/cancel: release the active corner and clear feedback.

        Safe to call when no drag is active.
        """
        if self._subscription is not None:
            self._subscription.close()
            self._subscription = None

        if self.session is None:
            return

        logger.debug(f"Drag ended on corner {self.session.active_index}")
        self.session = None
        self.live.active_index = None
        self.snap_state = SnapState()
        self.magnifier = None
        self._publish()

    def begin_gesture(self) -> None:
        """Switch to two-finger pan/zoom; any corner drag is cancelled."""
        self.end_drag()
        self.gesture_active = True

    def end_gesture(self) -> None:
        self.gesture_active = False

    def close(self) -> None:
        """Teardown: drop listeners and any drag in progress."""
        self.end_drag()
        self.gesture_active = False

    def _publish(self) -> None:
        if self._on_update is not None:
            self._on_update(self.quad, self.snap_state, self.magnifier)
