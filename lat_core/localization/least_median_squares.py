"""
Least-median-of-squares (LMS) multilateration.

1. Fit linear least squares to M subsets of k = 4 anchors (every subset
   when there are at most M of them, else M distinct random ones)
2. Keep the fit whose median squared residual over all anchors is smallest
3. Robust scale s0 = 1.4826 * (1 + 5 / (N - 2)) * sqrt(median)
4. Anchors with |r_i / s0| > threshold get weight 0; re-solve linear least
   squares with these weights

With fewer than k anchors the plain linear least-squares fit is returned.
"""

import logging
import math
from dataclasses import dataclass
from itertools import combinations
from typing import List, Optional, Sequence, Tuple

import numpy as np

from lat_core.metrics import MetricsCollector, get_metrics
from lat_core.proto.failure import FailureReason
from lat_core.proto.position_estimate import (
    CandidateSolution,
    PositionEstimate,
    SolveStatus,
    best_candidate,
)
from lat_core.localization.linear_least_squares import solve_linear
from lat_core.localization.validation import (
    prepare_inputs,
    range_residuals,
    record_failure,
    record_success,
)

logger = logging.getLogger(__name__)

ALGORITHM_NAME = 'lms'


@dataclass
class LeastMedianSquaresConfig:
    """
    Configuration for least median of squares.

    Attributes:
        subset_size: Anchors per subset (k)
        max_subsets: Subsets drawn when there are more than 6 anchors
        threshold: Anchors with |r_i / s0| above this are excluded
        min_scale: Floor for the robust scale s0 (m)
        seed: Random seed for subset sampling (None draws fresh entropy)
    """

    subset_size: int = 4
    max_subsets: int = 20
    threshold: float = 2.5
    min_scale: float = 1e-6
    seed: Optional[int] = None

    def __post_init__(self):
        """Validate configuration."""
        if self.subset_size < 3:
            raise ValueError("subset_size must be >= 3")
        if self.max_subsets < 1:
            raise ValueError("max_subsets must be >= 1")
        if self.threshold <= 0:
            raise ValueError("threshold must be positive")
        if self.min_scale <= 0:
            raise ValueError("min_scale must be positive")


def draw_subsets(n: int, config: LeastMedianSquaresConfig, rng: np.random.Generator) -> List[Tuple[int, ...]]:
    """
    Anchor subsets to fit.

    With at most 6 anchors every k-subset is used; otherwise up to
    max_subsets, all of them if that covers every subset, else distinct
    random ones in lexicographic order.
    """
    k = config.subset_size
    total = math.comb(n, k)
    wanted = total if n <= 6 else config.max_subsets
    if total <= wanted:
        return list(combinations(range(n), k))

    chosen = set()
    while len(chosen) < wanted:
        chosen.add(tuple(sorted(int(i) for i in rng.choice(n, k, replace=False))))
    return sorted(chosen)


def _median_fit(points, values, subsets) -> Optional[CandidateSolution]:
    candidates = []
    for subset in subsets:
        fit = solve_linear([points[i] for i in subset], [values[i] for i in subset])
        if fit is None:
            continue
        squared = np.sort(range_residuals(fit[0], points, values) ** 2)
        candidates.append(CandidateSolution(fit[0], float(squared[len(squared) // 2]), subset))
    return best_candidate(candidates)


def least_median_squares(
    anchors: Sequence[Sequence[float]],
    ranges: Sequence[float],
    config: Optional[LeastMedianSquaresConfig] = None,
    metrics: Optional[MetricsCollector] = None,
) -> Optional[PositionEstimate]:
    """
    Estimate a position by least median of squares.

    Args:
        anchors: Anchor positions (at least 3)
        ranges: Measured range per anchor
        config: LMS configuration (uses defaults if None)
        metrics: Metrics collector (uses the global one if None)

    Returns:
        Reweighted linear least-squares estimate whose inliers are the
        anchors kept by the robust scale test; None if no subset could be
        solved or fewer than 3 anchors survive the test
    """
    config = config or LeastMedianSquaresConfig()
    metrics = metrics or get_metrics()
    metrics.increment(f'{ALGORITHM_NAME}_attempts')

    prepared = prepare_inputs(anchors, ranges, 3, ALGORITHM_NAME, metrics)
    if prepared is None:
        return None
    points, values = prepared
    n = len(points)

    if n < config.subset_size:
        fit = solve_linear(points, values)
        if fit is None:
            record_failure(metrics, ALGORITHM_NAME, FailureReason.SINGULAR_SYSTEM, "plain fit singular")
            return None
        estimate = PositionEstimate(
            point=fit[0],
            residual=fit[1],
            status=SolveStatus.CLOSED_FORM,
            algorithm=ALGORITHM_NAME,
            num_anchors_used=n,
            inliers=tuple(range(n)),
        )
        record_success(metrics, ALGORITHM_NAME, estimate)
        return estimate

    rng = np.random.default_rng(config.seed)
    subsets = draw_subsets(n, config, rng)
    metrics.record_histogram(f'{ALGORITHM_NAME}_subsets', len(subsets))

    best = _median_fit(points, values, subsets)
    if best is None:
        record_failure(metrics, ALGORITHM_NAME, FailureReason.SINGULAR_SYSTEM, "every subset singular")
        return None

    scale = 1.4826 * (1.0 + 5.0 / (n - 2.0)) * math.sqrt(best.score)
    scale = max(scale, config.min_scale)
    residuals = range_residuals(best.point, points, values)
    weights = [1.0 if abs(r / scale) <= config.threshold else 0.0 for r in residuals]
    inliers = tuple(i for i, w in enumerate(weights) if w > 0)
    logger.debug("LMS scale %.6f keeps %d of %d anchors", scale, len(inliers), n)

    if len(inliers) < 3:
        record_failure(
            metrics, ALGORITHM_NAME, FailureReason.INSUFFICIENT_CONSENSUS,
            f"{len(inliers)} anchors within scale",
        )
        return None

    fit = solve_linear(points, values, weights)
    if fit is None:
        record_failure(metrics, ALGORITHM_NAME, FailureReason.SINGULAR_SYSTEM, "reweighted fit singular")
        return None

    estimate = PositionEstimate(
        point=fit[0],
        residual=fit[1],
        status=SolveStatus.CLOSED_FORM,
        algorithm=ALGORITHM_NAME,
        num_anchors_used=len(inliers),
        inliers=inliers,
        iterations=len(subsets),
    )
    record_success(metrics, ALGORITHM_NAME, estimate)
    return estimate
