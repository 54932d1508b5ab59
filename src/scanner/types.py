"""
Data types and structures for the Scanner module.

Provides type-safe containers for geometry, snapping feedback,
configuration and commit results.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

import numpy as np


@dataclass(frozen=True)
class Point:
    """A coordinate in source-image pixel space."""

    x: float
    y: float

    def distance_to(self, other: "Point") -> float:
        """Euclidean distance to another point."""
        return math.hypot(self.x - other.x, self.y - other.y)

    def to_dict(self) -> Dict[str, float]:
        return {"x": float(self.x), "y": float(self.y)}


# Ordered [top_left, top_right, bottom_right, bottom_left]. The order defines
# the correspondence with the output rectangle and must never be re-sorted.
Quadrilateral = List[Point]


def quad_to_array(quad: Quadrilateral) -> np.ndarray:
    """Convert a quadrilateral into a (4, 2) float64 array."""
    if len(quad) != 4:
        raise ValueError(f"Expected exactly 4 points, got {len(quad)}")
    return np.array([[p.x, p.y] for p in quad], dtype=np.float64)


@dataclass
class ViewTransform:
    """Pan/zoom mapping between screen space and source-image space."""

    x: float = 0.0
    y: float = 0.0
    scale: float = 1.0

    def screen_to_image(self, sx: float, sy: float) -> Point:
        return Point((sx - self.x) / self.scale, (sy - self.y) / self.scale)

    def image_to_screen(self, point: Point) -> tuple[float, float]:
        return point.x * self.scale + self.x, point.y * self.scale + self.y


class SnapKind(Enum):
    """What the active corner was snapped to on the last move."""

    NONE = "none"
    CORNER = "corner"
    LINE = "line"


@dataclass
class SnapState:
    """
    Per-move UI feedback. Recomputed on every move and never persisted.

    Attributes:
        kind: Snap type applied to the committed point.
        guide_angles: Crosshair guide angles in degrees, [0, 180).
        geometric_ghost: Parallelogram prediction for the active corner,
            None when snapping is disabled or no drag is active.
    """

    kind: SnapKind = SnapKind.NONE
    guide_angles: List[float] = field(default_factory=list)
    geometric_ghost: Optional[Point] = None


@dataclass(frozen=True)
class CornerMatch:
    """A confident corner found by the corner detector."""

    x: float
    y: float
    angles: List[float]

    @property
    def point(self) -> Point:
        return Point(self.x, self.y)


@dataclass(frozen=True)
class MagnifierAnchor:
    """Screen-space position for the on-screen magnifier."""

    top: float
    left: float


@dataclass
class FeatureConfig:
    """Thresholds for the gradient-based analyzers."""

    direction_window: int  # Half-size of the direction histogram window
    direction_min_magnitude: float  # Texture-noise threshold
    direction_min_total: float  # Below this the region is featureless
    direction_peak_min: float  # Minimum score for a histogram peak
    direction_min_separation: float  # Degrees between reported angles
    direction_bins: int  # Number of histogram bins over 180 degrees
    corner_min_score: float
    edge_min_magnitude: float
    edge_min_weight: float


@dataclass
class SnapConfig:
    """Configuration for the interactive snapping loop."""

    radius_base: float
    radius_min: float
    radius_max: float
    geo_threshold_base: float
    geo_threshold_min: float
    geo_threshold_max: float
    edge_snap_max_speed: float  # px/ms; line snap runs only below this
    magnifier_offset: float
    magnifier_min_top: float


@dataclass
class ViewConfig:
    """Configuration for pan/zoom."""

    min_scale: float
    max_scale: float
    wheel_sensitivity: float
    fit_margin: float


@dataclass
class RectifyConfig:
    """Configuration for the commit step."""

    max_resolution: int  # Longest output side
    working_max_dimension: int  # Longest side of the editing canvas


@dataclass
class ScannerConfig:
    """Complete scanner module configuration."""

    features: FeatureConfig
    snap: SnapConfig
    view: ViewConfig
    rectify: RectifyConfig


@dataclass
class RectificationResult:
    """
    Output of the commit step.

    Attributes:
        image: Rectified RGBA raster of shape (height, width, 4).
        points: The accepted quadrilateral, in source-image pixel space.
        width: Output width in pixels.
        height: Output height in pixels.
        aspect_ratio: width / height of the output raster.
    """

    image: np.ndarray
    points: Quadrilateral
    width: int
    height: int
    aspect_ratio: float

