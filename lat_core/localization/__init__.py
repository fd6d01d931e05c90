"""
Localization Module: Least-squares solvers, robust aggregation, registry.

Solvers (all return Optional[PositionEstimate]):
- linear_least_squares: Weighted linearized multilateration
- nonlinear_least_squares / levenberg_marquardt: Iterative refinement
- intersection_centroid / weighted_centroid / bilateration / geolateration: Circle-intersection estimators
- ransac / least_median_squares / residual_weighting / geometric_median_consensus:
  Outlier-resistant strategies

Entry points:
- localize(anchors, ranges, algorithm) -> Optional[Point2D]
- localize_robust(anchors, ranges, strategy) -> Optional[PositionEstimate]
"""

from .validation import as_ranges, range_residuals, sum_squared_residuals
from .linear_least_squares import linear_least_squares, solve_linear
from .nonlinear_least_squares import (
    LevenbergMarquardtConfig,
    NonlinearLeastSquaresConfig,
    RefinementResult,
    Seed,
    levenberg_marquardt,
    nonlinear_least_squares,
    refine_gauss_newton,
    refine_levenberg_marquardt,
    seed_points,
    solve_nonlinear,
)
from .intersection_based import (
    GeolaterationConfig,
    WeightedCentroidConfig,
    bilateration,
    geolaterate,
    geolateration,
    intersection_centroid,
    weighted_centroid,
)
from .ransac import RansacConfig, RansacMode, ransac
from .least_median_squares import (
    LeastMedianSquaresConfig,
    draw_subsets,
    least_median_squares,
)
from .residual_weighting import (
    ResidualWeightingConfig,
    candidate_cloud,
    geometric_median_consensus,
    residual_weighting,
)
from .registry import (
    Algorithm,
    RobustStrategy,
    available_algorithms,
    config_type,
    estimate_position,
    localize,
    localize_robust,
)

__all__ = [
    # Residuals
    'as_ranges',
    'range_residuals',
    'sum_squared_residuals',
    # Least squares
    'linear_least_squares',
    'solve_linear',
    'NonlinearLeastSquaresConfig',
    'LevenbergMarquardtConfig',
    'RefinementResult',
    'Seed',
    'nonlinear_least_squares',
    'levenberg_marquardt',
    'refine_gauss_newton',
    'refine_levenberg_marquardt',
    'seed_points',
    'solve_nonlinear',
    # Intersection-based
    'GeolaterationConfig',
    'WeightedCentroidConfig',
    'intersection_centroid',
    'weighted_centroid',
    'bilateration',
    'geolaterate',
    'geolateration',
    # Robust
    'RansacConfig',
    'RansacMode',
    'ransac',
    'LeastMedianSquaresConfig',
    'draw_subsets',
    'least_median_squares',
    'ResidualWeightingConfig',
    'candidate_cloud',
    'residual_weighting',
    'geometric_median_consensus',
    # Registry
    'Algorithm',
    'RobustStrategy',
    'available_algorithms',
    'config_type',
    'estimate_position',
    'localize',
    'localize_robust',
]
