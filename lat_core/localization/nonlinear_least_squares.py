"""
Nonlinear least-squares refinement (Gauss-Newton and Levenberg-Marquardt).

Both variants minimize sum_i (||p - a_i|| - d_i)^2 starting from a seed.
The Jacobian row for anchor i is the unit vector from a_i to p, so a seed
sitting exactly on an anchor is aborted (undefined Jacobian), as is one
whose normal matrix is singular. Aborting discards that seed only.

Multi-start: the refinement runs from several seeds (anchor centroid,
linear least-squares solution, Min-Max box center) and keeps the result
with the smallest residual.

Usage:
    estimate = nonlinear_least_squares(anchors, ranges)
    if estimate is not None and not estimate.converged:
        ...  # iteration cap hit, still the best point found
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence, Tuple

import numpy as np

from lat_core.geometry.point import Point2D, centroid, min_max
from lat_core.linalg.matrix import Matrix
from lat_core.metrics import MetricsCollector, get_metrics
from lat_core.proto.failure import FailureReason
from lat_core.proto.position_estimate import PositionEstimate, SolveStatus
from lat_core.localization.linear_least_squares import solve_linear
from lat_core.localization.validation import (
    prepare_inputs,
    record_failure,
    record_success,
    sum_squared_residuals,
)

logger = logging.getLogger(__name__)


class Seed(str, Enum):
    """Starting point for iterative refinement."""

    CENTROID = 'centroid'
    LLS = 'lls'
    MIN_MAX = 'min_max'


@dataclass
class NonlinearLeastSquaresConfig:
    """
    Configuration for Gauss-Newton refinement.

    Attributes:
        epsilon: Stop when the squared-residual improvement drops below this (m^2)
        max_iterations: Iteration cap per seed
        seeds: Starting points tried in order; the lowest residual wins
        min_anchors: Fewest anchors accepted
    """

    epsilon: float = 0.001
    max_iterations: int = 10
    seeds: Tuple[Seed, ...] = (Seed.CENTROID, Seed.LLS, Seed.MIN_MAX)
    min_anchors: int = 3

    def __post_init__(self):
        """Validate configuration."""
        if self.epsilon <= 0:
            raise ValueError("epsilon must be positive")
        if self.max_iterations < 1:
            raise ValueError("max_iterations must be >= 1")
        if not self.seeds:
            raise ValueError("at least one seed is required")
        self.seeds = tuple(Seed(s) for s in self.seeds)
        if self.min_anchors < 3:
            raise ValueError("min_anchors must be >= 3")


@dataclass
class LevenbergMarquardtConfig:
    """
    Configuration for damped (Levenberg-Marquardt) refinement.

    Attributes:
        tau: Stop when the position change drops below this (m)
        rho: Damping factor; mu = rho * ||J^T r||
        max_iterations: Iteration cap per seed
        max_backtracks: Most step halvings in the Armijo line search
        armijo_c: Sufficient-decrease constant of the Armijo rule
        seeds: Starting points tried in order; the lowest residual wins
        min_anchors: Fewest anchors accepted
    """

    tau: float = 0.001
    rho: float = 0.05
    max_iterations: int = 10
    max_backtracks: int = 30
    armijo_c: float = 1e-4
    seeds: Tuple[Seed, ...] = (Seed.CENTROID,)
    min_anchors: int = 3

    def __post_init__(self):
        """Validate configuration."""
        if self.tau <= 0:
            raise ValueError("tau must be positive")
        if self.rho <= 0:
            raise ValueError("rho must be positive")
        if self.max_iterations < 1:
            raise ValueError("max_iterations must be >= 1")
        if self.max_backtracks < 0:
            raise ValueError("max_backtracks cannot be negative")
        if not 0 < self.armijo_c < 1:
            raise ValueError("armijo_c must be in (0, 1)")
        if not self.seeds:
            raise ValueError("at least one seed is required")
        self.seeds = tuple(Seed(s) for s in self.seeds)
        if self.min_anchors < 3:
            raise ValueError("min_anchors must be >= 3")


@dataclass(frozen=True)
class RefinementResult:
    """
    Outcome of refining one seed.

    Attributes:
        point: Refined position
        residual: Sum of squared range residuals at point
        iterations: Refinement steps taken
        status: CONVERGED or MAX_ITERATIONS
        seed: Starting point
        seed_residual: Sum of squared range residuals at the seed
    """

    point: Point2D
    residual: float
    iterations: int
    status: SolveStatus
    seed: Point2D
    seed_residual: float


def _jacobian(point: Point2D, anchors: np.ndarray) -> Optional[Tuple[np.ndarray, np.ndarray]]:
    """Unit vectors from anchors to point and the distances; None if any distance is 0."""
    diff = np.asarray(point, dtype=float) - anchors
    dist = np.hypot(diff[:, 0], diff[:, 1])
    if np.any(dist == 0):
        return None
    return diff / dist[:, None], dist


def seed_points(
    anchors: Sequence[Point2D],
    ranges: Sequence[float],
    seeds: Sequence[Seed] = (Seed.CENTROID, Seed.LLS, Seed.MIN_MAX),
) -> List[Point2D]:
    """Starting points for multi-start refinement; seeds that cannot be computed are skipped."""
    points = []
    for seed in seeds:
        if seed == Seed.CENTROID:
            p = centroid(anchors)
        elif seed == Seed.LLS:
            solved = solve_linear(anchors, ranges)
            p = solved[0] if solved is not None else None
        else:
            p = min_max(anchors, ranges)
        if p is not None and p.is_finite:
            points.append(p)
    return points


def refine_gauss_newton(
    anchors: Sequence[Point2D],
    ranges: Sequence[float],
    seed: Point2D,
    config: Optional[NonlinearLeastSquaresConfig] = None,
) -> Optional[RefinementResult]:
    """
    Gauss-Newton refinement from one seed.

    Each step solves (J^T J) delta = -J^T r for r_i = ||p - a_i|| - d_i.
    A step that does not lower the residual is never taken, so the
    returned residual is at most the seed's.

    Returns:
        RefinementResult, or None if the seed hit an anchor or the normal
        matrix became singular
    """
    config = config or NonlinearLeastSquaresConfig()
    a = np.asarray(anchors, dtype=float)
    d = np.asarray(ranges, dtype=float)

    p = Point2D(float(seed[0]), float(seed[1]))
    e0 = sum_squared_residuals(p, a, d)
    seed_residual = e0
    status = SolveStatus.MAX_ITERATIONS
    iterations = 0

    for _ in range(config.max_iterations):
        lin = _jacobian(p, a)
        if lin is None:
            logger.debug("Gauss-Newton seed %s aborted: point on anchor", seed)
            return None
        unit, dist = lin

        jac = Matrix(unit)
        normal_inv = (jac.T @ jac).inverse()
        if normal_inv is None:
            logger.debug("Gauss-Newton seed %s aborted: singular normal matrix", seed)
            return None

        step = normal_inv @ (jac.T @ Matrix.column(dist - d))
        candidate = Point2D(p.x - step.cell(0, 0), p.y - step.cell(1, 0))
        iterations += 1
        if not candidate.is_finite:
            return None

        e1 = sum_squared_residuals(candidate, a, d)
        improvement = e0 - e1
        if e1 < e0:
            p, e0 = candidate, e1
        if improvement < config.epsilon:
            status = SolveStatus.CONVERGED
            break

    return RefinementResult(p, e0, iterations, status, Point2D(*seed), seed_residual)


def refine_levenberg_marquardt(
    anchors: Sequence[Point2D],
    ranges: Sequence[float],
    seed: Point2D,
    config: Optional[LevenbergMarquardtConfig] = None,
) -> Optional[RefinementResult]:
    """
    Levenberg-Marquardt refinement from one seed.

    The step is delta = (J^T J + mu I)^-1 J^T r with r_i = d_i - ||p - a_i||
    and mu = rho * ||J^T r||. Its length is chosen by Armijo backtracking
    on the merit function 0.5 * ||r||^2.

    Returns:
        RefinementResult, or None if the seed hit an anchor or the damped
        system was singular
    """
    config = config or LevenbergMarquardtConfig()
    a = np.asarray(anchors, dtype=float)
    d = np.asarray(ranges, dtype=float)

    p = Point2D(float(seed[0]), float(seed[1]))
    seed_residual = sum_squared_residuals(p, a, d)
    status = SolveStatus.MAX_ITERATIONS
    iterations = 0

    for _ in range(config.max_iterations):
        lin = _jacobian(p, a)
        if lin is None:
            logger.debug("LM seed %s aborted: point on anchor", seed)
            return None
        unit, dist = lin

        r = d - dist
        jac = Matrix(unit)
        gradient = jac.T @ Matrix.column(r)
        gx, gy = gradient.cell(0, 0), gradient.cell(1, 0)
        g_norm = float(np.hypot(gx, gy))
        if g_norm == 0:
            status = SolveStatus.CONVERGED
            break

        damped_inv = (jac.T @ jac + Matrix.identity(2) * (config.rho * g_norm)).inverse()
        if damped_inv is None:
            logger.debug("LM seed %s aborted: singular damped matrix", seed)
            return None

        delta = damped_inv @ gradient
        dx, dy = delta.cell(0, 0), delta.cell(1, 0)
        merit = 0.5 * float(np.dot(r, r))
        # Directional derivative of the merit function along delta is -slope
        slope = gx * dx + gy * dy

        accepted = None
        alpha = 1.0
        for _ in range(config.max_backtracks + 1):
            trial = Point2D(p.x + alpha * dx, p.y + alpha * dy)
            if trial.is_finite:
                trial_merit = 0.5 * sum_squared_residuals(trial, a, d)
                if trial_merit <= merit - config.armijo_c * alpha * slope:
                    accepted = trial
                    break
            alpha *= 0.5

        iterations += 1
        if accepted is None:
            status = SolveStatus.CONVERGED
            break

        moved = p.distance_to(accepted)
        p = accepted
        if moved < config.tau:
            status = SolveStatus.CONVERGED
            break

    residual = sum_squared_residuals(p, a, d)
    return RefinementResult(p, residual, iterations, status, Point2D(*seed), seed_residual)


def _multi_start(refine, anchors, ranges, config) -> Optional[RefinementResult]:
    best = None
    for seed in seed_points(anchors, ranges, config.seeds):
        result = refine(anchors, ranges, seed, config)
        if result is None:
            continue
        if best is None or result.residual < best.residual:
            best = result
    return best


def solve_nonlinear(
    anchors: Sequence[Point2D],
    ranges: Sequence[float],
    config: Optional[NonlinearLeastSquaresConfig] = None,
) -> Optional[RefinementResult]:
    """
    Multi-start Gauss-Newton without validation or metrics.

    Used by the robust strategies for per-subset candidates.

    Returns:
        Lowest-residual refinement across seeds, or None if every seed failed
    """
    return _multi_start(refine_gauss_newton, anchors, ranges, config or NonlinearLeastSquaresConfig())


def _estimate(
    algorithm: str,
    refine,
    anchors: Sequence[Sequence[float]],
    ranges: Sequence[float],
    config,
    metrics: MetricsCollector,
) -> Optional[PositionEstimate]:
    metrics.increment(f'{algorithm}_attempts')

    prepared = prepare_inputs(anchors, ranges, config.min_anchors, algorithm, metrics)
    if prepared is None:
        return None
    points, values = prepared

    best = _multi_start(refine, points, values, config)
    if best is None:
        record_failure(metrics, algorithm, FailureReason.SINGULAR_SYSTEM, "all seeds failed")
        return None

    if best.status == SolveStatus.MAX_ITERATIONS:
        metrics.increment(f'{algorithm}_max_iterations')

    estimate = PositionEstimate(
        point=best.point,
        residual=best.residual,
        status=best.status,
        algorithm=algorithm,
        num_anchors_used=len(points),
        inliers=tuple(range(len(points))),
        iterations=best.iterations,
    )
    record_success(metrics, algorithm, estimate)
    return estimate


def nonlinear_least_squares(
    anchors: Sequence[Sequence[float]],
    ranges: Sequence[float],
    config: Optional[NonlinearLeastSquaresConfig] = None,
    metrics: Optional[MetricsCollector] = None,
) -> Optional[PositionEstimate]:
    """
    Estimate a position with multi-start Gauss-Newton.

    Args:
        anchors: Anchor positions (at least config.min_anchors)
        ranges: Measured range per anchor
        config: Solver configuration (uses defaults if None)
        metrics: Metrics collector (uses the global one if None)

    Returns:
        PositionEstimate (status CONVERGED or MAX_ITERATIONS), or None if
        the input is degenerate or every seed failed
    """
    return _estimate(
        'nlls', refine_gauss_newton, anchors, ranges,
        config or NonlinearLeastSquaresConfig(), metrics or get_metrics(),
    )


def levenberg_marquardt(
    anchors: Sequence[Sequence[float]],
    ranges: Sequence[float],
    config: Optional[LevenbergMarquardtConfig] = None,
    metrics: Optional[MetricsCollector] = None,
) -> Optional[PositionEstimate]:
    """
    Estimate a position with damped Levenberg-Marquardt refinement.

    Starts from the anchor centroid unless config.seeds says otherwise.

    Returns:
        PositionEstimate (status CONVERGED or MAX_ITERATIONS), or None if
        the input is degenerate or every seed failed
    """
    return _estimate(
        'nlls_lm', refine_levenberg_marquardt, anchors, ranges,
        config or LevenbergMarquardtConfig(), metrics or get_metrics(),
    )
