"""
Score Sheet Scanner: Interactive Perspective Correction

Turns a photographed paper score sheet into a flat, axis-aligned raster
that can serve as a calibrated background for a scoring grid.

Components:
1. Homography solver and backward-mapping warper (commit step)
2. Gradient analyzers: edge directions, corner snap, line snap
3. Parallelogram prediction for the fourth corner
4. Interaction controller for live corner dragging
"""

from src.scanner.config_loader import load_config
from src.scanner.corner_detector import find_strongest_corner
from src.scanner.edge_features import edge_angles, local_edge_directions
from src.scanner.edge_snapper import snap_to_edge
from src.scanner.geometry import parallelogram_point
from src.scanner.homography import DegenerateGeometryError, solve_homography
from src.scanner.image_warper import warp_perspective
from src.scanner.interaction import (
    InteractionController,
    PointerEvent,
    PointerEventBus,
)
from src.scanner.processor import ScanProcessor, process_scan
from src.scanner.rectification import rectify_quadrilateral
from src.scanner.schemas import restore_quadrilateral, result_payload
from src.scanner.types import (
    Point,
    RectificationResult,
    ScannerConfig,
    SnapKind,
    SnapState,
    ViewTransform,
)

__all__ = [
    "ScanProcessor",
    "process_scan",
    "InteractionController",
    "PointerEvent",
    "PointerEventBus",
    "load_config",
    "solve_homography",
    "DegenerateGeometryError",
    "warp_perspective",
    "rectify_quadrilateral",
    "local_edge_directions",
    "edge_angles",
    "find_strongest_corner",
    "snap_to_edge",
    "parallelogram_point",
    "restore_quadrilateral",
    "result_payload",
    "Point",
    "RectificationResult",
    "ScannerConfig",
    "SnapKind",
    "SnapState",
    "ViewTransform",
]
