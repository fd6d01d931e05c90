"""
Unit tests for nonlinear least-squares refinement.

Tests cover:
- Gauss-Newton multi-start (seeds, monotone residuals, status)
- Levenberg-Marquardt with Armijo backtracking
- Seed abort on anchors and singular geometry
- Configuration validation
"""

import math

import numpy as np
import pytest

from lat_core.geometry import Point2D
from lat_core.localization import (
    LevenbergMarquardtConfig,
    NonlinearLeastSquaresConfig,
    Seed,
    levenberg_marquardt,
    nonlinear_least_squares,
    refine_gauss_newton,
    refine_levenberg_marquardt,
    seed_points,
    solve_nonlinear,
    sum_squared_residuals,
)
from lat_core.proto import FailureReason, SolveStatus

from conftest import calculate_distance_2d, exact_ranges


def _noisy_ranges(anchors, truth, sigma, seed):
    rng = np.random.default_rng(seed)
    return [max(0.0, d + rng.normal(0, sigma)) for d in exact_ranges(anchors, truth)]


# =============================================================================
# Test Gauss-Newton
# =============================================================================


class TestGaussNewton:
    """Tests for multi-start Gauss-Newton."""

    def test_symmetric_scenario(self, triangle_anchors):
        """Test equal ranges sqrt(50) give (5, 5)."""
        r = math.sqrt(50)
        estimate = nonlinear_least_squares(triangle_anchors, [r, r, r])

        assert estimate is not None
        assert estimate.x == pytest.approx(5.0, abs=1e-4)
        assert estimate.y == pytest.approx(5.0, abs=1e-4)
        assert estimate.status == SolveStatus.CONVERGED

    def test_noisy_ring(self, ring_anchors):
        """Test noisy ranges from eight anchors give a close estimate."""
        truth = (12.0, 7.0)
        estimate = nonlinear_least_squares(ring_anchors, _noisy_ranges(ring_anchors, truth, 0.1, 4))
        assert calculate_distance_2d(estimate.point, truth) < 0.5

    @pytest.mark.parametrize("seed", [0, 1, 2, 3, 4])
    def test_residual_not_above_any_seed(self, ring_anchors, seed):
        """Test the returned residual is at most every seed point's residual."""
        truth = (5.0, 15.0)
        ranges = _noisy_ranges(ring_anchors, truth, 1.0, seed)
        estimate = nonlinear_least_squares(ring_anchors, ranges)
        anchors = [Point2D(*a) for a in ring_anchors]

        for start in seed_points(anchors, ranges):
            assert estimate.residual <= sum_squared_residuals(start, anchors, ranges) + 1e-12

    def test_refinement_never_increases_residual(self, square_anchors):
        """Test a single-seed refinement ends at or below its seed residual."""
        anchors = [Point2D(*a) for a in square_anchors]
        ranges = _noisy_ranges(square_anchors, (2.0, 8.0), 0.5, 7)
        result = refine_gauss_newton(anchors, ranges, Point2D(20.0, -5.0))

        assert result is not None
        assert result.residual <= result.seed_residual
        assert result.seed == Point2D(20.0, -5.0)

    def test_iteration_cap_is_not_failure(self, ring_anchors, metrics):
        """Test hitting max_iterations still yields the best estimate."""
        config = NonlinearLeastSquaresConfig(max_iterations=1, epsilon=1e-12, seeds=(Seed.CENTROID,))
        ranges = _noisy_ranges(ring_anchors, (14.0, 12.0), 0.3, 1)
        estimate = nonlinear_least_squares(ring_anchors, ranges, config)

        assert estimate is not None
        assert estimate.status == SolveStatus.MAX_ITERATIONS
        assert not estimate.converged
        assert estimate.iterations == 1
        assert metrics.get_counter('nlls_max_iterations') == 1

    def test_seed_on_anchor_aborts(self, triangle_anchors):
        """Test a seed sitting exactly on an anchor is discarded."""
        anchors = [Point2D(*a) for a in triangle_anchors]
        assert refine_gauss_newton(anchors, [1.0, 9.0, 9.0], anchors[0]) is None

    def test_collinear_all_seeds_fail(self, collinear_anchors, metrics):
        """Test collinear anchors make every seed singular."""
        estimate = nonlinear_least_squares(collinear_anchors, [5.0, 3.0, 6.0, 10.0])

        assert estimate is None
        assert metrics.get_failure_count(FailureReason.SINGULAR_SYSTEM) == 1
        assert metrics.get_counter('nlls_attempts') == 1

    def test_too_few_anchors(self, metrics):
        """Test two anchors are degenerate input."""
        assert nonlinear_least_squares([(0, 0), (4, 0)], [2.0, 2.0]) is None
        assert metrics.get_failure_count(FailureReason.DEGENERATE_INPUT) == 1

    def test_solve_nonlinear_records_no_metrics(self, triangle_anchors, metrics):
        """Test the core solver used by robust strategies is metric-free."""
        anchors = [Point2D(*a) for a in triangle_anchors]
        result = solve_nonlinear(anchors, exact_ranges(anchors, (4.0, 3.0)))

        assert calculate_distance_2d(result.point, (4.0, 3.0)) < 1e-3
        assert metrics.get_counter('nlls_attempts') == 0

    def test_seed_points_skip_unavailable(self, collinear_anchors):
        """Test a failed linear seed is skipped."""
        anchors = [Point2D(*a) for a in collinear_anchors]
        seeds = seed_points(anchors, [5.0, 3.0, 6.0, 10.0])
        assert len(seeds) == 2


# =============================================================================
# Test Levenberg-Marquardt
# =============================================================================


class TestLevenbergMarquardt:
    """Tests for damped refinement."""

    def test_symmetric_scenario(self, triangle_anchors):
        """Test equal ranges sqrt(50) give (5, 5)."""
        r = math.sqrt(50)
        estimate = levenberg_marquardt(triangle_anchors, [r, r, r])

        assert estimate is not None
        assert estimate.x == pytest.approx(5.0, abs=1e-2)
        assert estimate.y == pytest.approx(5.0, abs=1e-2)
        assert estimate.algorithm == 'nlls_lm'

    def test_noisy_ring(self, ring_anchors):
        """Test noisy ranges give a close estimate."""
        truth = (3.0, 18.0)
        estimate = levenberg_marquardt(ring_anchors, _noisy_ranges(ring_anchors, truth, 0.1, 8))
        assert calculate_distance_2d(estimate.point, truth) < 0.5

    def test_poor_start(self, square_anchors):
        """Test a distant seed still reduces the residual."""
        anchors = [Point2D(*a) for a in square_anchors]
        ranges = exact_ranges(anchors, (7.0, 2.0))
        result = refine_levenberg_marquardt(anchors, ranges, Point2D(-80.0, 95.0))

        assert result is not None
        assert result.residual < result.seed_residual

    def test_zero_gradient_converges(self, triangle_anchors):
        """Test starting at the exact solution stops immediately."""
        anchors = [Point2D(*a) for a in triangle_anchors]
        r = math.sqrt(50)
        result = refine_levenberg_marquardt(anchors, [r, r, r], Point2D(5.0, 5.0))

        assert result.status == SolveStatus.CONVERGED
        assert result.point.x == pytest.approx(5.0)
        assert result.point.y == pytest.approx(5.0)

    def test_seed_on_anchor_aborts(self, triangle_anchors):
        """Test a seed on an anchor is discarded."""
        anchors = [Point2D(*a) for a in triangle_anchors]
        assert refine_levenberg_marquardt(anchors, [1.0, 9.0, 9.0], anchors[1]) is None

    def test_multi_start(self, ring_anchors):
        """Test LM with all three seeds."""
        config = LevenbergMarquardtConfig(seeds=(Seed.CENTROID, Seed.LLS, Seed.MIN_MAX))
        truth = (9.0, 9.0)
        estimate = levenberg_marquardt(ring_anchors, exact_ranges(ring_anchors, truth), config)
        assert calculate_distance_2d(estimate.point, truth) < 1e-2


# =============================================================================
# Test Configuration
# =============================================================================


class TestConfig:
    """Tests for configuration records."""

    def test_defaults(self):
        """Test documented defaults."""
        gn = NonlinearLeastSquaresConfig()
        lm = LevenbergMarquardtConfig()

        assert gn.epsilon == 0.001
        assert gn.max_iterations == 10
        assert gn.seeds == (Seed.CENTROID, Seed.LLS, Seed.MIN_MAX)
        assert lm.tau == 0.001
        assert lm.rho == 0.05
        assert lm.seeds == (Seed.CENTROID,)

    def test_seed_names_accepted(self):
        """Test seeds given by name are converted."""
        assert NonlinearLeastSquaresConfig(seeds=('lls',)).seeds == (Seed.LLS,)

    @pytest.mark.parametrize("kwargs", [
        {'epsilon': 0.0},
        {'max_iterations': 0},
        {'seeds': ()},
        {'seeds': ('bogus',)},
        {'min_anchors': 2},
    ])
    def test_invalid_gauss_newton_config(self, kwargs):
        """Test invalid Gauss-Newton settings raise ValueError."""
        with pytest.raises(ValueError):
            NonlinearLeastSquaresConfig(**kwargs)

    @pytest.mark.parametrize("kwargs", [
        {'tau': 0.0},
        {'rho': -1.0},
        {'max_backtracks': -1},
        {'armijo_c': 1.0},
    ])
    def test_invalid_lm_config(self, kwargs):
        """Test invalid LM settings raise ValueError."""
        with pytest.raises(ValueError):
            LevenbergMarquardtConfig(**kwargs)
