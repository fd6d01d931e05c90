"""
Weighted linear least-squares multilateration.

Subtracting the circle equation of a reference anchor a_m from every other
anchor's equation removes the quadratic terms and leaves the linear system

    (x_i - x_m) x + (y_i - y_m) y = 0.5 (x_i^2 - x_m^2 + y_i^2 - y_m^2 + d_m^2 - d_i^2)

which is solved through the weighted normal equations
x = (A^T W^2 A)^-1 A^T W^2 b. Anchors with weight 0 are dropped before
linearization, so the reference anchor is always a participating one.
"""

import logging
from typing import List, Optional, Sequence, Tuple

import numpy as np

from lat_core.geometry.point import Point2D
from lat_core.linalg.matrix import Matrix
from lat_core.metrics import MetricsCollector, get_metrics
from lat_core.proto.failure import FailureReason
from lat_core.proto.position_estimate import PositionEstimate, SolveStatus
from lat_core.localization.validation import (
    prepare_inputs,
    record_failure,
    record_success,
    sum_squared_residuals,
)

logger = logging.getLogger(__name__)

ALGORITHM_NAME = 'lls'


def _effective_indices(n: int, weights: Optional[Sequence[float]]) -> List[int]:
    if weights is None:
        return list(range(n))
    if len(weights) != n:
        raise ValueError(f"Expected {n} weights, got {len(weights)}")
    for w in weights:
        if not np.isfinite(w) or w < 0:
            raise ValueError(f"Weights must be finite and non-negative: {w}")
    return [i for i, w in enumerate(weights) if w > 0]


def solve_linear(
    anchors: Sequence[Point2D],
    ranges: Sequence[float],
    weights: Optional[Sequence[float]] = None,
) -> Optional[Tuple[Point2D, float]]:
    """
    Solve the linearized multilateration system.

    Args:
        anchors: Anchor positions (already validated)
        ranges: Range per anchor
        weights: Non-negative weight per anchor (default: all 1; 0 excludes)

    Returns:
        (point, weighted residual sum of squares), or None when fewer than
        three anchors have positive weight or the normal matrix is singular

    Raises:
        ValueError: If weights are malformed
    """
    used = _effective_indices(len(anchors), weights)
    if len(used) < 3:
        return None

    a = np.asarray([anchors[i] for i in used], dtype=float)
    d = np.asarray([ranges[i] for i in used], dtype=float)
    w = np.ones(len(used)) if weights is None else np.asarray([weights[i] for i in used], dtype=float)

    xm, ym = a[-1]
    dm = d[-1]
    rows = a[:-1] - a[-1]
    rhs = 0.5 * (a[:-1, 0] ** 2 - xm ** 2 + a[:-1, 1] ** 2 - ym ** 2 + dm ** 2 - d[:-1] ** 2)

    mat_a = Matrix(rows)
    at_w2 = mat_a.T @ Matrix.diagonal(w[:-1] ** 2)
    normal_inv = (at_w2 @ mat_a).inverse()
    if normal_inv is None:
        return None

    x = normal_inv @ (at_w2 @ Matrix.column(rhs))
    point = Point2D(x.cell(0, 0), x.cell(1, 0))
    if not point.is_finite:
        return None

    residual = sum_squared_residuals(point, a, d, w)
    return point, residual


def linear_least_squares(
    anchors: Sequence[Sequence[float]],
    ranges: Sequence[float],
    weights: Optional[Sequence[float]] = None,
    metrics: Optional[MetricsCollector] = None,
) -> Optional[PositionEstimate]:
    """
    Estimate a position with weighted linear least squares.

    Args:
        anchors: Anchor positions (at least 3)
        ranges: Measured range per anchor
        weights: Non-negative weight per anchor (default: all 1; 0 excludes)
        metrics: Metrics collector (uses the global one if None)

    Returns:
        PositionEstimate with the weighted residual sum of squares, or None
        if the system is degenerate or singular (e.g. collinear anchors)
    """
    metrics = metrics or get_metrics()
    metrics.increment(f'{ALGORITHM_NAME}_attempts')

    prepared = prepare_inputs(anchors, ranges, 3, ALGORITHM_NAME, metrics)
    if prepared is None:
        return None
    points, values = prepared

    used = _effective_indices(len(points), weights)
    if len(used) < len(points):
        logger.debug("LLS: %d of %d anchors excluded by zero weight", len(points) - len(used), len(points))
    if len(used) < 3:
        record_failure(
            metrics, ALGORITHM_NAME, FailureReason.DEGENERATE_INPUT,
            f"only {len(used)} anchors with positive weight",
        )
        return None

    result = solve_linear(points, values, weights)
    if result is None:
        record_failure(metrics, ALGORITHM_NAME, FailureReason.SINGULAR_SYSTEM, "normal matrix singular")
        return None

    point, residual = result
    estimate = PositionEstimate(
        point=point,
        residual=residual,
        status=SolveStatus.CLOSED_FORM,
        algorithm=ALGORITHM_NAME,
        num_anchors_used=len(used),
        inliers=tuple(used),
    )
    record_success(metrics, ALGORITHM_NAME, estimate)
    return estimate
