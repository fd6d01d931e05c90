"""
Unit tests for the algorithm registry and top-level entry points.

Tests cover:
- localize() with every registered algorithm
- Parameter type checking and unknown names
- localize_robust() strategies
- End-to-end scenarios (symmetric, tangent circles)
"""

import math

import pytest

from lat_core import Algorithm, RobustStrategy, localize, localize_robust
from lat_core.geometry import Point2D, circle_intersection
from lat_core.localization import (
    LeastMedianSquaresConfig,
    NonlinearLeastSquaresConfig,
    RansacConfig,
    ResidualWeightingConfig,
    WeightedCentroidConfig,
    available_algorithms,
    config_type,
    estimate_position,
)
from lat_core.proto import PositionEstimate

from conftest import calculate_distance_2d, exact_ranges


# =============================================================================
# Test Registry
# =============================================================================


class TestRegistry:
    """Tests for the static dispatch table."""

    def test_all_algorithms_registered(self):
        """Test every Algorithm member has an entry."""
        assert available_algorithms() == list(Algorithm)
        assert len(available_algorithms()) == 15

    def test_config_types(self):
        """Test configuration record types per algorithm."""
        assert config_type(Algorithm.NLLS) is NonlinearLeastSquaresConfig
        assert config_type(Algorithm.RANSAC) is RansacConfig
        assert config_type('lms') is LeastMedianSquaresConfig
        assert config_type(Algorithm.GEOMETRIC_MEDIAN) is ResidualWeightingConfig
        assert config_type(Algorithm.LLS) is None
        assert config_type(Algorithm.WEIGHTED_CENTROID) is WeightedCentroidConfig
        assert config_type(Algorithm.INTERSECTION_CENTROID) is None
        assert config_type(Algorithm.EXTENDED_MIN_MAX) is None

    @pytest.mark.parametrize("algorithm", list(Algorithm))
    def test_every_algorithm_on_exact_data(self, algorithm, ring_anchors):
        """Test each algorithm returns a finite point for well-posed input."""
        ranges = exact_ranges(ring_anchors, (11.0, 8.0))
        point = localize(ring_anchors, ranges, algorithm)

        assert point is not None
        assert point.is_finite

    @pytest.mark.parametrize("algorithm", [
        Algorithm.TRILATERATION,
        Algorithm.LLS,
        Algorithm.NLLS,
        Algorithm.NLLS_LM,
        Algorithm.RANSAC,
        Algorithm.LMS,
        Algorithm.RWGH,
        Algorithm.GEOMETRIC_MEDIAN,
    ])
    def test_accurate_algorithms_recover_truth(self, algorithm, ring_anchors):
        """Test exact ranges give the true position."""
        truth = (11.0, 8.0)
        point = localize(ring_anchors, exact_ranges(ring_anchors, truth), algorithm)
        assert calculate_distance_2d(point, truth) < 1e-2

    def test_string_names_accepted(self, triangle_anchors):
        """Test algorithms can be selected by their string value."""
        ranges = exact_ranges(triangle_anchors, (2.0, 6.0))
        point = localize(triangle_anchors, ranges, 'lls')
        assert calculate_distance_2d(point, (2.0, 6.0)) < 1e-9

    def test_unknown_algorithm(self, triangle_anchors):
        """Test an unknown name raises ValueError."""
        with pytest.raises(ValueError):
            localize(triangle_anchors, [1.0, 1.0, 1.0], 'kalman')

    def test_params_for_parameterless_algorithm(self, triangle_anchors):
        """Test parameters for an algorithm without a config raise TypeError."""
        with pytest.raises(TypeError, match="takes no parameters"):
            localize(triangle_anchors, [1.0, 1.0, 1.0], Algorithm.LLS, RansacConfig())

    def test_params_of_wrong_type(self, triangle_anchors):
        """Test the wrong configuration record raises TypeError."""
        with pytest.raises(TypeError, match="expects NonlinearLeastSquaresConfig"):
            localize(triangle_anchors, [1.0, 1.0, 1.0], Algorithm.NLLS, RansacConfig())

    def test_params_forwarded(self, ring_anchors, metrics):
        """Test a configuration record reaches the solver."""
        config = NonlinearLeastSquaresConfig(max_iterations=1, epsilon=1e-12, seeds=('centroid',))
        ranges = [d + 0.2 for d in exact_ranges(ring_anchors, (14.0, 12.0))]
        estimate = estimate_position(ring_anchors, ranges, Algorithm.NLLS, config)

        assert estimate.iterations == 1
        assert metrics.get_counter('nlls_attempts') == 1

    def test_trilateration_uses_first_three(self, square_anchors):
        """Test closed-form trilateration ignores extra anchors."""
        ranges = exact_ranges(square_anchors, (2.0, 7.0))
        ranges[4] = 100.0
        estimate = estimate_position(square_anchors, ranges, Algorithm.TRILATERATION)

        assert calculate_distance_2d(estimate.point, (2.0, 7.0)) < 1e-9
        assert estimate.num_anchors_used == 3

    def test_min_max_and_centroid(self, triangle_anchors):
        """Test the coarse estimators."""
        r = math.sqrt(50)
        assert localize(triangle_anchors, [r, r, r], Algorithm.MIN_MAX) == pytest.approx((5.0, 5.0))
        assert localize(triangle_anchors, [r, r, r], Algorithm.CENTROID) == pytest.approx((10 / 3, 10 / 3))

    def test_intersection_estimators_reachable(self):
        """Test the intersection centroids are selectable by name."""
        anchors = [(0.0, 0.0), (10.0, 0.0)]

        assert localize(anchors, [5.0, 5.0], Algorithm.INTERSECTION_CENTROID) == pytest.approx((5.0, 0.0))
        assert localize(anchors, [5.0, 5.0], 'weighted_centroid') == pytest.approx((5.0, 0.0))

    def test_extended_min_max_reachable(self, triangle_anchors):
        """Test Extended Min-Max is registered as a closed-form estimator."""
        r = math.sqrt(50)
        estimate = estimate_position(triangle_anchors, [r, r, r], Algorithm.EXTENDED_MIN_MAX)

        assert estimate.algorithm == 'extended_min_max'
        assert estimate.x == pytest.approx(estimate.y)
        assert estimate.num_anchors_used == 3

    def test_collinear_trilateration_fails(self, collinear_anchors):
        """Test degenerate geometry gives no point."""
        assert localize(collinear_anchors, [5.0, 3.0, 6.0, 10.0], Algorithm.TRILATERATION) is None


# =============================================================================
# Test Scenarios
# =============================================================================


class TestScenarios:
    """End-to-end scenarios through the public entry points."""

    def test_symmetric_default(self, triangle_anchors):
        """Test the default algorithm on the symmetric triangle."""
        r = math.sqrt(50)
        point = localize(triangle_anchors, [r, r, r])

        assert isinstance(point, Point2D)
        assert point.x == pytest.approx(5.0, abs=1e-3)
        assert point.y == pytest.approx(5.0, abs=1e-3)

    def test_tangent_circles(self):
        """Test two tangent circles meet at one point."""
        assert circle_intersection((0, 0), 5, (10, 0), 5) == [Point2D(5.0, 0.0)]

    def test_anchor_equals_node(self, square_anchors):
        """Test a zero range to an anchor is handled."""
        ranges = exact_ranges(square_anchors, (5.0, 5.0))
        point = localize(square_anchors, ranges, Algorithm.LLS)
        assert calculate_distance_2d(point, (5.0, 5.0)) < 1e-9

    def test_input_not_mutated(self, square_anchors):
        """Test entry points leave caller data untouched."""
        anchors = list(square_anchors)
        ranges = exact_ranges(anchors, (1.0, 9.0))
        before = (list(anchors), list(ranges))

        for algorithm in available_algorithms():
            localize(anchors, ranges, algorithm)
        assert (anchors, ranges) == before


# =============================================================================
# Test Robust Entry Point
# =============================================================================


class TestLocalizeRobust:
    """Tests for localize_robust()."""

    @pytest.mark.parametrize("strategy", [
        RobustStrategy.RANSAC,
        RobustStrategy.LMS,
        RobustStrategy.RWGH,
    ])
    def test_strategies_reject_outlier(self, strategy, ring_anchors):
        """Test every strategy stays close despite one gross error."""
        truth = (12.0, 9.0)
        ranges = exact_ranges(ring_anchors, truth)
        ranges[6] += 40.0
        params = RansacConfig(seed=1) if strategy == RobustStrategy.RANSAC else None
        estimate = localize_robust(ring_anchors, ranges, strategy, params)

        assert isinstance(estimate, PositionEstimate)
        assert calculate_distance_2d(estimate.point, truth) < 1.0
        assert estimate.residual >= 0.0

    def test_geometric_median_strategy(self, ring_anchors):
        """Test the geometric median of subset solutions under small noise."""
        truth = (12.0, 9.0)
        ranges = [d + 0.05 * (-1) ** i for i, d in enumerate(exact_ranges(ring_anchors, truth))]
        estimate = localize_robust(ring_anchors, ranges, RobustStrategy.GEOMETRIC_MEDIAN)

        assert estimate.algorithm == 'geometric_median'
        assert calculate_distance_2d(estimate.point, truth) < 0.5

    def test_default_strategy_is_ransac(self, triangle_anchors):
        """Test RANSAC is the default."""
        estimate = localize_robust(triangle_anchors, exact_ranges(triangle_anchors, (2.0, 2.0)))
        assert estimate.algorithm == 'ransac'

    def test_unknown_strategy(self, triangle_anchors):
        """Test a non-robust name raises ValueError."""
        with pytest.raises(ValueError):
            localize_robust(triangle_anchors, [1.0, 1.0, 1.0], 'lls')
