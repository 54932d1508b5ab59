"""
Configuration loader for the Scanner module.

Loads and validates configuration from config.yaml file.
"""

import logging
from pathlib import Path
from typing import Any, Dict

import yaml

from src.scanner.types import (
    FeatureConfig,
    RectifyConfig,
    ScannerConfig,
    SnapConfig,
    ViewConfig,
)

logger = logging.getLogger(__name__)

# Default configuration path (relative to this file)
DEFAULT_CONFIG_PATH = Path(__file__).parent / "config.yaml"


def load_config(config_path: Path = DEFAULT_CONFIG_PATH) -> ScannerConfig:
    """
    Load scanner configuration from YAML file.

    Args:
        config_path: Path to the configuration YAML file.

    Returns:
        Validated ScannerConfig object.

    Raises:
        FileNotFoundError: If config file doesn't exist.
        ValueError: If config is invalid or missing required fields.

    Example:
        >>> config = load_config()
        >>> print(config.features.corner_min_score)
        150.0
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    logger.debug(f"Loading scanner config from {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        raw_config = yaml.safe_load(f)

    try:
        config = _parse_config(raw_config)
        _validate_config(config)
        logger.info("Successfully loaded scanner configuration")
        return config
    except (KeyError, TypeError, ValueError) as e:
        raise ValueError(f"Invalid configuration file: {e}") from e


def _parse_config(raw: Dict[str, Any]) -> ScannerConfig:
    """Parse raw dictionary into structured config objects."""
    features = raw["features"]
    snap = raw["snap"]
    view = raw["view"]
    rectify = raw["rectify"]

    return ScannerConfig(
        features=FeatureConfig(
            direction_window=int(features["direction_window"]),
            direction_min_magnitude=float(features["direction_min_magnitude"]),
            direction_min_total=float(features["direction_min_total"]),
            direction_peak_min=float(features["direction_peak_min"]),
            direction_min_separation=float(features["direction_min_separation"]),
            direction_bins=int(features["direction_bins"]),
            corner_min_score=float(features["corner_min_score"]),
            edge_min_magnitude=float(features["edge_min_magnitude"]),
            edge_min_weight=float(features["edge_min_weight"]),
        ),
        snap=SnapConfig(
            radius_base=float(snap["radius_base"]),
            radius_min=float(snap["radius_min"]),
            radius_max=float(snap["radius_max"]),
            geo_threshold_base=float(snap["geo_threshold_base"]),
            geo_threshold_min=float(snap["geo_threshold_min"]),
            geo_threshold_max=float(snap["geo_threshold_max"]),
            edge_snap_max_speed=float(snap["edge_snap_max_speed"]),
            magnifier_offset=float(snap["magnifier_offset"]),
            magnifier_min_top=float(snap["magnifier_min_top"]),
        ),
        view=ViewConfig(
            min_scale=float(view["min_scale"]),
            max_scale=float(view["max_scale"]),
            wheel_sensitivity=float(view["wheel_sensitivity"]),
            fit_margin=float(view["fit_margin"]),
        ),
        rectify=RectifyConfig(
            max_resolution=int(rectify["max_resolution"]),
            working_max_dimension=int(rectify["working_max_dimension"]),
        ),
    )


def _validate_config(config: ScannerConfig) -> None:
    """
    Validate configuration values for logical consistency.

    Raises:
        ValueError: If any configuration value is invalid.
    """
    features = config.features

    if features.direction_window < 1:
        raise ValueError("direction_window must be at least 1")

    if features.direction_bins < 1 or 180 % features.direction_bins != 0:
        raise ValueError(
            f"direction_bins ({features.direction_bins}) must evenly divide 180 degrees"
        )

    for name in (
        "direction_min_magnitude",
        "direction_min_total",
        "direction_peak_min",
        "direction_min_separation",
        "corner_min_score",
        "edge_min_magnitude",
        "edge_min_weight",
    ):
        if getattr(features, name) < 0:
            raise ValueError(f"{name} cannot be negative")

    snap = config.snap
    if snap.radius_min <= 0 or snap.radius_min > snap.radius_max:
        raise ValueError(
            f"Snap radius range invalid: min ({snap.radius_min}) "
            f"must be positive and not greater than max ({snap.radius_max})"
        )

    if snap.geo_threshold_min <= 0 or snap.geo_threshold_min > snap.geo_threshold_max:
        raise ValueError(
            f"Geometric threshold range invalid: min ({snap.geo_threshold_min}) "
            f"must be positive and not greater than max ({snap.geo_threshold_max})"
        )

    if snap.radius_base <= 0 or snap.geo_threshold_base <= 0:
        raise ValueError("radius_base and geo_threshold_base must be positive")

    if snap.edge_snap_max_speed <= 0:
        raise ValueError("edge_snap_max_speed must be positive")

    view = config.view
    if view.min_scale <= 0 or view.min_scale >= view.max_scale:
        raise ValueError(
            f"min_scale ({view.min_scale}) must be positive and less than "
            f"max_scale ({view.max_scale})"
        )

    if not 0 < view.fit_margin <= 1:
        raise ValueError("fit_margin must be in (0, 1]")

    if config.rectify.max_resolution < 1:
        raise ValueError("max_resolution must be at least 1")

    if config.rectify.working_max_dimension < 1:
        raise ValueError("working_max_dimension must be at least 1")

    logger.debug("Configuration validation passed")
