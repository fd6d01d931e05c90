"""
Algorithm registry and top-level entry points.

Every supported algorithm is listed in a static dispatch table mapping an
Algorithm member to its solver function and configuration record type.
Nothing is discovered at runtime.

Usage:
    from lat_core.localization import Algorithm, RobustStrategy, localize, localize_robust

    point = localize(anchors, ranges)                        # multi-start Gauss-Newton
    point = localize(anchors, ranges, Algorithm.LLS)
    estimate = localize_robust(
        anchors, ranges, RobustStrategy.RANSAC, RansacConfig(seed=7),
    )
"""

import logging
from enum import Enum
from typing import Callable, Dict, List, NamedTuple, Optional, Sequence, Type

from lat_core.geometry.point import centroid, extended_min_max, min_max
from lat_core.geometry.trilateration import trilaterate
from lat_core.metrics import MetricsCollector, get_metrics
from lat_core.proto.failure import FailureReason
from lat_core.proto.position_estimate import PositionEstimate, SolveStatus
from lat_core.localization.intersection_based import (
    GeolaterationConfig,
    WeightedCentroidConfig,
    bilateration,
    geolateration,
    intersection_centroid,
    weighted_centroid,
)
from lat_core.localization.least_median_squares import (
    LeastMedianSquaresConfig,
    least_median_squares,
)
from lat_core.localization.linear_least_squares import linear_least_squares
from lat_core.localization.nonlinear_least_squares import (
    LevenbergMarquardtConfig,
    NonlinearLeastSquaresConfig,
    levenberg_marquardt,
    nonlinear_least_squares,
)
from lat_core.localization.ransac import RansacConfig, ransac
from lat_core.localization.residual_weighting import (
    ResidualWeightingConfig,
    geometric_median_consensus,
    residual_weighting,
)
from lat_core.localization.validation import (
    prepare_inputs,
    record_failure,
    record_success,
    sum_squared_residuals,
)

logger = logging.getLogger(__name__)


class Algorithm(str, Enum):
    """Supported localization algorithms."""

    TRILATERATION = 'trilateration'
    LLS = 'lls'
    NLLS = 'nlls'
    NLLS_LM = 'nlls_lm'
    MIN_MAX = 'min_max'
    EXTENDED_MIN_MAX = 'extended_min_max'
    CENTROID = 'centroid'
    INTERSECTION_CENTROID = 'intersection_centroid'
    WEIGHTED_CENTROID = 'weighted_centroid'
    BILATERATION = 'bilateration'
    GEOLATERATION = 'geolateration'
    RANSAC = 'ransac'
    LMS = 'lms'
    RWGH = 'rwgh'
    GEOMETRIC_MEDIAN = 'geometric_median'


class RobustStrategy(str, Enum):
    """Outlier-resistant strategies available to localize_robust()."""

    RANSAC = 'ransac'
    LMS = 'lms'
    RWGH = 'rwgh'
    GEOMETRIC_MEDIAN = 'geometric_median'


SolverFn = Callable[..., Optional[PositionEstimate]]


class RegistryEntry(NamedTuple):
    """Solver function and the configuration record type it accepts (None: no parameters)."""

    solver: SolverFn
    config_type: Optional[Type]


def _closed_form(name: str, min_anchors: int, compute):
    """Wrap a point-returning estimator into a PositionEstimate solver."""

    def solver(anchors, ranges, config=None, metrics=None):
        metrics = metrics or get_metrics()
        metrics.increment(f'{name}_attempts')

        prepared = prepare_inputs(anchors, ranges, min_anchors, name, metrics)
        if prepared is None:
            return None
        points, values = prepared

        point, used = compute(points, values)
        if point is None or not point.is_finite:
            record_failure(metrics, name, FailureReason.SINGULAR_SYSTEM, "degenerate anchor geometry")
            return None

        estimate = PositionEstimate(
            point=point,
            residual=sum_squared_residuals(point, points[:used], values[:used]),
            status=SolveStatus.CLOSED_FORM,
            algorithm=name,
            num_anchors_used=used,
            inliers=tuple(range(used)),
        )
        record_success(metrics, name, estimate)
        return estimate

    solver.__name__ = name
    return solver


def _trilaterate_first_three(points, values):
    (p1, p2, p3), (r1, r2, r3) = points[:3], values[:3]
    return trilaterate(p1, r1, p2, r2, p3, r3), 3


def _lls(anchors, ranges, config=None, metrics=None):
    return linear_least_squares(anchors, ranges, metrics=metrics)


def _intersection_centroid(anchors, ranges, config=None, metrics=None):
    return intersection_centroid(anchors, ranges, metrics=metrics)


def _bilateration(anchors, ranges, config=None, metrics=None):
    return bilateration(anchors, ranges, metrics=metrics)


_REGISTRY: Dict[Algorithm, RegistryEntry] = {
    Algorithm.TRILATERATION: RegistryEntry(
        _closed_form('trilateration', 3, _trilaterate_first_three), None),
    Algorithm.LLS: RegistryEntry(_lls, None),
    Algorithm.NLLS: RegistryEntry(nonlinear_least_squares, NonlinearLeastSquaresConfig),
    Algorithm.NLLS_LM: RegistryEntry(levenberg_marquardt, LevenbergMarquardtConfig),
    Algorithm.MIN_MAX: RegistryEntry(
        _closed_form('min_max', 1, lambda p, v: (min_max(p, v), len(p))), None),
    Algorithm.EXTENDED_MIN_MAX: RegistryEntry(
        _closed_form('extended_min_max', 1, lambda p, v: (extended_min_max(p, v), len(p))), None),
    Algorithm.CENTROID: RegistryEntry(
        _closed_form('centroid', 1, lambda p, v: (centroid(p), len(p))), None),
    Algorithm.INTERSECTION_CENTROID: RegistryEntry(_intersection_centroid, None),
    Algorithm.WEIGHTED_CENTROID: RegistryEntry(weighted_centroid, WeightedCentroidConfig),
    Algorithm.BILATERATION: RegistryEntry(_bilateration, None),
    Algorithm.GEOLATERATION: RegistryEntry(geolateration, GeolaterationConfig),
    Algorithm.RANSAC: RegistryEntry(ransac, RansacConfig),
    Algorithm.LMS: RegistryEntry(least_median_squares, LeastMedianSquaresConfig),
    Algorithm.RWGH: RegistryEntry(residual_weighting, ResidualWeightingConfig),
    Algorithm.GEOMETRIC_MEDIAN: RegistryEntry(geometric_median_consensus, ResidualWeightingConfig),
}


def available_algorithms() -> List[Algorithm]:
    """All registered algorithms, in declaration order."""
    return list(_REGISTRY)


def config_type(algorithm: Algorithm) -> Optional[Type]:
    """Configuration record type accepted by an algorithm (None: takes no parameters)."""
    return _REGISTRY[Algorithm(algorithm)].config_type


def estimate_position(
    anchors: Sequence[Sequence[float]],
    ranges: Sequence[float],
    algorithm: Algorithm = Algorithm.NLLS,
    params=None,
    metrics: Optional[MetricsCollector] = None,
) -> Optional[PositionEstimate]:
    """
    Run one registered algorithm and return its full estimate.

    Args:
        anchors: Anchor positions
        ranges: Measured range per anchor
        algorithm: Algorithm member (or its string value)
        params: Configuration record of the algorithm's type, or None for defaults
        metrics: Metrics collector (uses the global one if None)

    Returns:
        PositionEstimate, or None if the algorithm produced no result

    Raises:
        ValueError: Unknown algorithm name, or malformed anchors/ranges
        TypeError: params is not the algorithm's configuration type
    """
    algorithm = Algorithm(algorithm)
    entry = _REGISTRY[algorithm]
    logger.debug("Dispatching %s with %s", algorithm.value, type(params).__name__ if params is not None else "defaults")

    if params is not None:
        if entry.config_type is None:
            raise TypeError(f"{algorithm.value} takes no parameters, got {type(params).__name__}")
        if not isinstance(params, entry.config_type):
            raise TypeError(
                f"{algorithm.value} expects {entry.config_type.__name__}, got {type(params).__name__}"
            )

    return entry.solver(anchors, ranges, params, metrics)


def localize(
    anchors: Sequence[Sequence[float]],
    ranges: Sequence[float],
    algorithm: Algorithm = Algorithm.NLLS,
    params=None,
    metrics: Optional[MetricsCollector] = None,
):
    """
    Estimate a position with the chosen algorithm.

    Returns:
        Point2D, or None if no position could be computed
    """
    estimate = estimate_position(anchors, ranges, algorithm, params, metrics)
    return estimate.point if estimate is not None else None


def localize_robust(
    anchors: Sequence[Sequence[float]],
    ranges: Sequence[float],
    strategy: RobustStrategy = RobustStrategy.RANSAC,
    params=None,
    metrics: Optional[MetricsCollector] = None,
) -> Optional[PositionEstimate]:
    """
    Estimate a position with an outlier-resistant strategy.

    Returns:
        PositionEstimate (point and residual), or None when the strategy
        found no consensus or no subset could be solved
    """
    strategy = RobustStrategy(strategy)
    return estimate_position(anchors, ranges, Algorithm(strategy.value), params, metrics)
