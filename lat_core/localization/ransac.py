"""
RANSAC-style consensus search over anchor triples.

Each trial draws three distinct anchors, computes a candidate (closed-form
trilateration or multi-start Gauss-Newton) and counts how many of all
anchors agree with it, i.e. |d_i - ||p - a_i||| < sigma. The number of
trials is

    L = ceil(ln(p_fail) / ln(1 - p_good^3))

the number needed to draw three inliers together with probability
1 - p_fail when a fraction p_good of the anchors are inliers.

Random draws use a call-local generator, so concurrent calls never share
random state and a fixed seed reproduces a result.
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence

import numpy as np

from lat_core.geometry.trilateration import trilaterate
from lat_core.metrics import MetricsCollector, get_metrics
from lat_core.proto.failure import FailureReason
from lat_core.proto.position_estimate import PositionEstimate, SolveStatus
from lat_core.localization.nonlinear_least_squares import (
    NonlinearLeastSquaresConfig,
    solve_nonlinear,
)
from lat_core.localization.validation import (
    prepare_inputs,
    range_residuals,
    record_failure,
    record_success,
    sum_squared_residuals,
)

logger = logging.getLogger(__name__)

ALGORITHM_NAME = 'ransac'


class RansacMode(str, Enum):
    """How a candidate is computed from three anchors."""

    TRILATERATION = 'trilateration'
    NLLS = 'nlls'


@dataclass
class RansacConfig:
    """
    Configuration for RANSAC consensus.

    Attributes:
        sigma: Agreement tolerance on the range residual (m)
        p_good: Expected fraction of inlier anchors, in (0, 1)
        p_fail: Acceptable probability of never drawing three inliers, in (0, 1)
        mode: Candidate computation per triple
        accept_quorum: Stop early once the agreement count exceeds this
        min_quorum: The best quorum must exceed min(min_quorum, N // 2)
        seed: Random seed (None draws fresh entropy)
        nlls_config: Gauss-Newton settings for NLLS mode
    """

    sigma: float = 3.62
    p_good: float = 0.5
    p_fail: float = 0.001
    mode: RansacMode = RansacMode.TRILATERATION
    accept_quorum: int = 8
    min_quorum: int = 5
    seed: Optional[int] = None
    nlls_config: Optional[NonlinearLeastSquaresConfig] = None

    def __post_init__(self):
        """Validate configuration."""
        if self.sigma <= 0:
            raise ValueError("sigma must be positive")
        if not 0 < self.p_good < 1:
            raise ValueError("p_good must be in (0, 1)")
        if not 0 < self.p_fail < 1:
            raise ValueError("p_fail must be in (0, 1)")
        self.mode = RansacMode(self.mode)
        if self.accept_quorum < 1:
            raise ValueError("accept_quorum must be >= 1")
        if self.min_quorum < 0:
            raise ValueError("min_quorum cannot be negative")

    @property
    def trial_count(self) -> int:
        """Number of random triples to try."""
        return max(1, math.ceil(math.log(self.p_fail) / math.log(1 - self.p_good ** 3)))


def _candidate(anchors, ranges, triple, config: RansacConfig):
    i, j, k = triple
    if config.mode == RansacMode.TRILATERATION:
        return trilaterate(anchors[i], ranges[i], anchors[j], ranges[j], anchors[k], ranges[k])
    refined = solve_nonlinear(
        [anchors[i], anchors[j], anchors[k]],
        [ranges[i], ranges[j], ranges[k]],
        config.nlls_config,
    )
    return refined.point if refined is not None else None


def ransac(
    anchors: Sequence[Sequence[float]],
    ranges: Sequence[float],
    config: Optional[RansacConfig] = None,
    metrics: Optional[MetricsCollector] = None,
) -> Optional[PositionEstimate]:
    """
    Estimate a position by random sample consensus.

    Args:
        anchors: Anchor positions (at least 3)
        ranges: Measured range per anchor
        config: RANSAC configuration (uses defaults if None)
        metrics: Metrics collector (uses the global one if None)

    Returns:
        Candidate with the largest agreement set, its residual computed over
        that set; None if the best quorum does not exceed the minimum

    Notes:
        - Accepts immediately when every anchor agrees or the quorum
          exceeds accept_quorum
        - Triples whose candidate cannot be computed are skipped
    """
    config = config or RansacConfig()
    metrics = metrics or get_metrics()
    metrics.increment(f'{ALGORITHM_NAME}_attempts')

    prepared = prepare_inputs(anchors, ranges, 3, ALGORITHM_NAME, metrics)
    if prepared is None:
        return None
    points, values = prepared
    n = len(points)

    rng = np.random.default_rng(config.seed)
    best_point = None
    best_inliers = None
    trials = 0

    for _ in range(config.trial_count):
        trials += 1
        triple = tuple(int(i) for i in rng.choice(n, 3, replace=False))
        candidate = _candidate(points, values, triple, config)
        if candidate is None:
            continue

        agree = np.abs(range_residuals(candidate, points, values)) < config.sigma
        inliers = tuple(int(i) for i in np.flatnonzero(agree))

        if best_inliers is None or len(inliers) > len(best_inliers):
            best_point, best_inliers = candidate, inliers

        if len(inliers) == n or len(inliers) > config.accept_quorum:
            logger.debug("RANSAC early accept after %d trials (quorum %d)", trials, len(inliers))
            break

    metrics.record_histogram(f'{ALGORITHM_NAME}_trials', trials)

    required = min(config.min_quorum, n // 2)
    if best_inliers is None or len(best_inliers) <= required:
        quorum = 0 if best_inliers is None else len(best_inliers)
        record_failure(
            metrics, ALGORITHM_NAME, FailureReason.INSUFFICIENT_CONSENSUS,
            f"best quorum {quorum} <= {required}",
        )
        return None

    residual = sum_squared_residuals(
        best_point,
        [points[i] for i in best_inliers],
        [values[i] for i in best_inliers],
    )
    estimate = PositionEstimate(
        point=best_point,
        residual=residual,
        status=SolveStatus.CONVERGED,
        algorithm=ALGORITHM_NAME,
        num_anchors_used=len(best_inliers),
        inliers=best_inliers,
        iterations=trials,
    )
    record_success(metrics, ALGORITHM_NAME, estimate)
    return estimate
