"""
Pytest configuration and shared fixtures for lateration core tests.

Provides reusable anchor layouts, exact-range helpers and an autouse
fixture that gives every test a fresh global metrics collector.
"""

import sys
import math
from pathlib import Path
from typing import List, Sequence, Tuple

import pytest

# Add project root to path for imports
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from lat_core.metrics import MetricsCollector, get_metrics, reset_metrics


# =============================================================================
# Metrics Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def fresh_metrics():
    """Reset the global metrics collector before each test."""
    reset_metrics()
    yield
    reset_metrics()


@pytest.fixture
def metrics() -> MetricsCollector:
    """
    The global metrics collector for the current test.

    Returns:
        MetricsCollector instance (fresh per test).
    """
    return get_metrics()


# =============================================================================
# Anchor Layout Fixtures
# =============================================================================


@pytest.fixture
def triangle_anchors() -> List[Tuple[float, float]]:
    """
    Right-triangle anchor layout.

    Returns:
        [(0, 0), (10, 0), (0, 10)] in meters.
    """
    return [(0.0, 0.0), (10.0, 0.0), (0.0, 10.0)]


@pytest.fixture
def square_anchors() -> List[Tuple[float, float]]:
    """
    Square corners plus center.

    Returns:
        [(0, 0), (10, 0), (0, 10), (10, 10), (5, 5)] in meters.
    """
    return [(0.0, 0.0), (10.0, 0.0), (0.0, 10.0), (10.0, 10.0), (5.0, 5.0)]


@pytest.fixture
def ring_anchors() -> List[Tuple[float, float]]:
    """
    Eight anchors on a 20 m radius circle around (10, 10).

    Returns:
        List of (x, y) tuples in meters.
    """
    return [
        (10.0 + 20.0 * math.cos(k * math.pi / 4), 10.0 + 20.0 * math.sin(k * math.pi / 4))
        for k in range(8)
    ]


@pytest.fixture
def collinear_anchors() -> List[Tuple[float, float]]:
    """
    Anchors on the x-axis (degenerate geometry).

    Returns:
        [(0, 0), (5, 0), (10, 0), (15, 0)] in meters.
    """
    return [(0.0, 0.0), (5.0, 0.0), (10.0, 0.0), (15.0, 0.0)]


# =============================================================================
# Helper Functions
# =============================================================================


def calculate_distance_2d(p1: Sequence[float], p2: Sequence[float]) -> float:
    """
    Calculate Euclidean distance between two 2D points.

    Args:
        p1: First point (x, y).
        p2: Second point (x, y).

    Returns:
        Distance in the same units as input.
    """
    return math.sqrt((p1[0] - p2[0]) ** 2 + (p1[1] - p2[1]) ** 2)


def exact_ranges(anchors: Sequence[Sequence[float]], target: Sequence[float]) -> List[float]:
    """
    Noise-free ranges from each anchor to a target point.

    Args:
        anchors: Anchor positions.
        target: True node position.

    Returns:
        List of distances in meters.
    """
    return [calculate_distance_2d(a, target) for a in anchors]
