"""
Residual weighting (RWGH) and geometric-median consensus.

Both strategies build the same candidate cloud: one multi-start
Gauss-Newton solution for every anchor subset of size k = 3..N, scored by
its residual divided by k. They differ in how the cloud is combined:

- RWGH: inverse-residual weighted mean sum(p_i / e_i) / sum(1 / e_i)
- Geometric median: Weiszfeld geometric median of the candidates

Subset enumeration grows as 2^N; it stops after max_subsets candidates.
"""

import logging
from dataclasses import dataclass
from itertools import combinations
from typing import List, Optional, Sequence

from lat_core.geometry.median import GeometricMedianConfig, geometric_median
from lat_core.geometry.point import Point2D, centroid
from lat_core.metrics import MetricsCollector, get_metrics
from lat_core.proto.failure import FailureReason
from lat_core.proto.position_estimate import CandidateSolution, PositionEstimate, SolveStatus
from lat_core.localization.nonlinear_least_squares import (
    NonlinearLeastSquaresConfig,
    solve_nonlinear,
)
from lat_core.localization.validation import (
    prepare_inputs,
    record_failure,
    record_success,
    sum_squared_residuals,
)

logger = logging.getLogger(__name__)


@dataclass
class ResidualWeightingConfig:
    """
    Configuration for the candidate cloud of RWGH and geometric-median consensus.

    Attributes:
        min_subset_size: Smallest subset size (k starts here)
        max_subsets: Most subsets evaluated before enumeration stops
        min_residual: Floor for normalized residuals (avoids division by 0)
        nlls_config: Gauss-Newton settings per subset
        median_config: Weiszfeld settings (geometric-median strategy only)
    """

    min_subset_size: int = 3
    max_subsets: int = 5000
    min_residual: float = 1e-12
    nlls_config: Optional[NonlinearLeastSquaresConfig] = None
    median_config: Optional[GeometricMedianConfig] = None

    def __post_init__(self):
        """Validate configuration."""
        if self.min_subset_size < 3:
            raise ValueError("min_subset_size must be >= 3")
        if self.max_subsets < 1:
            raise ValueError("max_subsets must be >= 1")
        if self.min_residual <= 0:
            raise ValueError("min_residual must be positive")


def candidate_cloud(
    anchors: Sequence[Point2D],
    ranges: Sequence[float],
    config: Optional[ResidualWeightingConfig] = None,
) -> List[CandidateSolution]:
    """
    One Gauss-Newton candidate per anchor subset (sizes min_subset_size..N).

    Scores are the subset residual divided by the subset size, floored at
    min_residual. Subsets whose refinement fails are skipped.
    """
    config = config or ResidualWeightingConfig()
    n = len(anchors)
    cloud: List[CandidateSolution] = []
    evaluated = 0

    for k in range(config.min_subset_size, n + 1):
        for subset in combinations(range(n), k):
            if evaluated >= config.max_subsets:
                logger.warning(
                    "Subset enumeration stopped at %d subsets (%d anchors)",
                    config.max_subsets, n,
                )
                return cloud
            evaluated += 1

            refined = solve_nonlinear(
                [anchors[i] for i in subset],
                [ranges[i] for i in subset],
                config.nlls_config,
            )
            if refined is None:
                continue
            score = max(refined.residual / k, config.min_residual)
            cloud.append(CandidateSolution(refined.point, score, subset))

    return cloud


def _consensus(
    algorithm: str,
    combine,
    anchors: Sequence[Sequence[float]],
    ranges: Sequence[float],
    config: ResidualWeightingConfig,
    metrics: MetricsCollector,
) -> Optional[PositionEstimate]:
    metrics.increment(f'{algorithm}_attempts')

    prepared = prepare_inputs(anchors, ranges, config.min_subset_size, algorithm, metrics)
    if prepared is None:
        return None
    points, values = prepared

    cloud = candidate_cloud(points, values, config)
    metrics.record_histogram(f'{algorithm}_candidates', len(cloud))
    if not cloud:
        record_failure(metrics, algorithm, FailureReason.SINGULAR_SYSTEM, "no subset could be solved")
        return None

    point = combine(cloud, config)
    if point is None or not point.is_finite:
        record_failure(metrics, algorithm, FailureReason.INSUFFICIENT_CONSENSUS, "candidates could not be combined")
        return None

    estimate = PositionEstimate(
        point=point,
        residual=sum_squared_residuals(point, points, values),
        status=SolveStatus.CONVERGED,
        algorithm=algorithm,
        num_anchors_used=len(points),
        inliers=tuple(range(len(points))),
        iterations=len(cloud),
    )
    record_success(metrics, algorithm, estimate)
    return estimate


def _inverse_residual_mean(cloud: List[CandidateSolution], config: ResidualWeightingConfig) -> Optional[Point2D]:
    return centroid([c.point for c in cloud], [1.0 / c.score for c in cloud])


def _candidate_median(cloud: List[CandidateSolution], config: ResidualWeightingConfig) -> Optional[Point2D]:
    return geometric_median([c.point for c in cloud], config=config.median_config)


def residual_weighting(
    anchors: Sequence[Sequence[float]],
    ranges: Sequence[float],
    config: Optional[ResidualWeightingConfig] = None,
    metrics: Optional[MetricsCollector] = None,
) -> Optional[PositionEstimate]:
    """
    Residual weighting (RWGH): inverse-residual weighted mean of subset solutions.

    Args:
        anchors: Anchor positions (at least 3)
        ranges: Measured range per anchor
        config: Candidate cloud configuration (uses defaults if None)
        metrics: Metrics collector (uses the global one if None)

    Returns:
        PositionEstimate with the residual over all anchors, or None if no
        subset could be solved
    """
    return _consensus(
        'rwgh', _inverse_residual_mean, anchors, ranges,
        config or ResidualWeightingConfig(), metrics or get_metrics(),
    )


def geometric_median_consensus(
    anchors: Sequence[Sequence[float]],
    ranges: Sequence[float],
    config: Optional[ResidualWeightingConfig] = None,
    metrics: Optional[MetricsCollector] = None,
) -> Optional[PositionEstimate]:
    """
    Geometric median of the subset solutions (unit weights).

    Returns:
        PositionEstimate with the residual over all anchors, or None if no
        subset could be solved
    """
    return _consensus(
        'geometric_median', _candidate_median, anchors, ranges,
        config or ResidualWeightingConfig(), metrics or get_metrics(),
    )
