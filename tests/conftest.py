"""
Pytest Configuration and Shared Fixtures

This file contains pytest configuration and fixtures that are available
to all test modules.
"""

import cv2
import numpy as np
import pytest

from src.scanner.config_loader import load_config
from src.scanner.types import Point


class FakeClock:
    """Millisecond clock advanced by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


@pytest.fixture
def scanner_config():
    """The shipped scanner configuration."""
    return load_config()


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def black_square_image():
    """
    White 120x120 RGBA canvas with a solid black square.

    The square covers pixels 40..79 in both axes, so its corner pixels are
    (40, 40), (79, 40), (79, 79) and (40, 79).
    """
    image = np.full((120, 120, 4), 255, dtype=np.uint8)
    cv2.rectangle(image, (40, 40), (79, 79), (0, 0, 0, 255), thickness=-1)
    return image


@pytest.fixture
def soft_edge_image():
    """
    100x100 RGBA canvas split by a soft vertical edge.

    Columns 0..49 have luminance 100 and columns 50..99 luminance 200. The
    step is strong enough for line snapping but too weak to count as a
    corner.
    """
    image = np.full((100, 100, 4), 255, dtype=np.uint8)
    image[:, :50, :3] = 100
    image[:, 50:, :3] = 200
    return image


@pytest.fixture
def uniform_image():
    """Featureless mid-grey 100x100 RGBA canvas."""
    image = np.full((100, 100, 4), 128, dtype=np.uint8)
    image[..., 3] = 255
    return image


@pytest.fixture
def gradient_image():
    """80x60 RGB image with distinct values per pixel for sampling checks."""
    ys, xs = np.mgrid[0:60, 0:80]
    image = np.zeros((60, 80, 3), dtype=np.uint8)
    image[..., 0] = (xs * 3) % 256
    image[..., 1] = (ys * 4) % 256
    image[..., 2] = (xs + ys) % 256
    return image


@pytest.fixture
def sample_quadrilateral():
    """A perspective-skewed sheet outline in [TL, TR, BR, BL] order."""
    return [Point(12.0, 8.0), Point(70.0, 4.0), Point(76.0, 55.0), Point(6.0, 50.0)]
