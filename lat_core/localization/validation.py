"""
Input validation and residual helpers shared by the solvers.

Malformed input (an anchor that is not a finite 2-D point, a negative or
non-finite range) is a programmer error and raises ValueError. Input that
is well-formed but unusable (length mismatch, too few anchors) is an
expected condition: it is counted as DEGENERATE_INPUT and yields None.
"""

import logging
import math
from typing import List, Optional, Sequence, Tuple

import numpy as np

from lat_core.geometry.point import Point2D, as_points
from lat_core.metrics import MetricsCollector
from lat_core.proto.failure import FailureReason
from lat_core.proto.position_estimate import PositionEstimate

logger = logging.getLogger(__name__)


def as_ranges(ranges: Sequence[float]) -> List[float]:
    """
    Coerce range measurements to a list of floats.

    Raises:
        ValueError: If any range is negative or not finite
    """
    values = [float(r) for r in ranges]
    for i, r in enumerate(values):
        if not math.isfinite(r) or r < 0:
            raise ValueError(f"Range {i} must be finite and non-negative: {r}")
    return values


def prepare_inputs(
    anchors: Sequence[Sequence[float]],
    ranges: Sequence[float],
    min_anchors: int,
    algorithm: str,
    metrics: MetricsCollector,
) -> Optional[Tuple[List[Point2D], List[float]]]:
    """
    Validate and coerce solver inputs.

    Args:
        anchors: Anchor positions
        ranges: Measured range per anchor
        min_anchors: Fewest anchors the algorithm can work with
        algorithm: Algorithm name for logging/metrics
        metrics: Collector that receives the failure, if any

    Returns:
        (anchors, ranges) as Point2D/float lists, or None for degenerate input

    Raises:
        ValueError: On malformed anchors or ranges
    """
    points = as_points(anchors)
    values = as_ranges(ranges)

    if len(points) != len(values):
        record_failure(
            metrics, algorithm, FailureReason.DEGENERATE_INPUT,
            f"{len(points)} anchors but {len(values)} ranges",
        )
        return None

    if len(points) < min_anchors:
        record_failure(
            metrics, algorithm, FailureReason.DEGENERATE_INPUT,
            f"{len(points)} anchors, need at least {min_anchors}",
        )
        return None

    return points, values


def range_residuals(
    point: Sequence[float],
    anchors: Sequence[Point2D],
    ranges: Sequence[float],
) -> np.ndarray:
    """Per-anchor residuals ||p - a_i|| - d_i."""
    a = np.asarray(anchors, dtype=float).reshape(-1, 2)
    dist = np.hypot(point[0] - a[:, 0], point[1] - a[:, 1])
    return dist - np.asarray(ranges, dtype=float)


def sum_squared_residuals(
    point: Sequence[float],
    anchors: Sequence[Point2D],
    ranges: Sequence[float],
    weights: Optional[Sequence[float]] = None,
) -> float:
    """Weighted sum of squared range residuals (unit weights by default)."""
    r = range_residuals(point, anchors, ranges)
    if weights is None:
        return float(np.dot(r, r))
    return float(np.dot(np.asarray(weights, dtype=float), r * r))


def record_failure(
    metrics: MetricsCollector,
    algorithm: str,
    reason: FailureReason,
    detail: str = '',
):
    """Log and count a call that produced no result."""
    logger.debug("%s: no result (%s) %s", algorithm, reason.value, detail)
    metrics.increment_failure(reason)
    metrics.increment(f'{algorithm}_failures')


def record_success(metrics: MetricsCollector, algorithm: str, estimate: PositionEstimate):
    """Count a successful call and record its residual and iteration count."""
    metrics.increment(f'{algorithm}_success')
    metrics.record_histogram(f'{algorithm}_residual', estimate.residual)
    if estimate.iterations:
        metrics.record_histogram(f'{algorithm}_iterations', estimate.iterations)
