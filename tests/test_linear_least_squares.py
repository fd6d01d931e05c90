"""
Unit tests for weighted linear least-squares multilateration.

Tests cover:
- Exact recovery from noise-free ranges
- Weights (exclusion with weight 0, reference anchor choice)
- Degenerate input and singular geometry
- Metrics on success and failure
"""

import math

import numpy as np
import pytest

from lat_core.localization import linear_least_squares, solve_linear
from lat_core.proto import FailureReason, SolveStatus

from conftest import calculate_distance_2d, exact_ranges


class TestLinearLeastSquares:
    """Tests for the linearized solver."""

    def test_symmetric_scenario(self, triangle_anchors):
        """Test equal ranges sqrt(50) give (5, 5)."""
        r = math.sqrt(50)
        estimate = linear_least_squares(triangle_anchors, [r, r, r])

        assert estimate is not None
        assert estimate.x == pytest.approx(5.0)
        assert estimate.y == pytest.approx(5.0)
        assert estimate.residual == pytest.approx(0.0, abs=1e-9)
        assert estimate.status == SolveStatus.CLOSED_FORM
        assert estimate.num_anchors_used == 3

    def test_exact_recovery_many_anchors(self, ring_anchors):
        """Test noise-free ranges from eight anchors recover the truth."""
        truth = (13.0, 4.0)
        estimate = linear_least_squares(ring_anchors, exact_ranges(ring_anchors, truth))
        assert calculate_distance_2d(estimate.point, truth) < 1e-9

    def test_noisy_ranges_close(self, ring_anchors):
        """Test small range noise gives a nearby estimate."""
        rng = np.random.default_rng(2)
        truth = (8.0, 12.0)
        ranges = [d + rng.normal(0, 0.05) for d in exact_ranges(ring_anchors, truth)]
        estimate = linear_least_squares(ring_anchors, ranges)
        assert calculate_distance_2d(estimate.point, truth) < 0.5

    def test_single_outlier_breaks_plain_fit(self, square_anchors):
        """Test one +50 m range error drags the plain fit far away."""
        ranges = exact_ranges(square_anchors, (5.0, 5.0))
        ranges[3] += 50.0
        estimate = linear_least_squares(square_anchors, ranges)
        assert calculate_distance_2d(estimate.point, (5.0, 5.0)) > 5.0

    def test_zero_weight_excludes_anchor(self, square_anchors):
        """Test a zero weight removes an outlier completely."""
        ranges = exact_ranges(square_anchors, (5.0, 5.0))
        ranges[3] += 50.0
        estimate = linear_least_squares(square_anchors, ranges, weights=[1, 1, 1, 0, 1])

        assert calculate_distance_2d(estimate.point, (5.0, 5.0)) < 1e-9
        assert estimate.inliers == (0, 1, 2, 4)

    def test_zero_weight_reference_anchor(self, square_anchors):
        """Test excluding the last anchor picks another reference."""
        ranges = exact_ranges(square_anchors, (3.0, 6.0))
        ranges[4] = 40.0
        estimate = linear_least_squares(square_anchors, ranges, weights=[1, 1, 1, 1, 0])
        assert calculate_distance_2d(estimate.point, (3.0, 6.0)) < 1e-9

    def test_invalid_weights(self, triangle_anchors):
        """Test malformed weights raise ValueError."""
        with pytest.raises(ValueError):
            linear_least_squares(triangle_anchors, [1, 1, 1], weights=[1, 1])
        with pytest.raises(ValueError):
            linear_least_squares(triangle_anchors, [1, 1, 1], weights=[1, -1, 1])

    def test_input_not_mutated(self, square_anchors):
        """Test anchors and ranges are left untouched."""
        anchors = list(square_anchors)
        ranges = exact_ranges(anchors, (2.0, 3.0))
        before = (list(anchors), list(ranges))
        linear_least_squares(anchors, ranges)
        assert (anchors, ranges) == before


class TestLinearLeastSquaresFailures:
    """Tests for degenerate and singular input."""

    def test_collinear_singular(self, collinear_anchors, metrics):
        """Test collinear anchors give no result and a singular_system count."""
        ranges = [5.0, 3.0, 6.0, 10.0]
        assert linear_least_squares(collinear_anchors, ranges) is None
        assert metrics.get_failure_count(FailureReason.SINGULAR_SYSTEM) == 1

    def test_length_mismatch(self, triangle_anchors, metrics):
        """Test mismatched lengths give no result and a degenerate_input count."""
        assert linear_least_squares(triangle_anchors, [1.0, 2.0]) is None
        assert metrics.get_failure_count(FailureReason.DEGENERATE_INPUT) == 1

    def test_too_few_anchors(self, metrics):
        """Test two anchors are not enough."""
        assert linear_least_squares([(0, 0), (1, 0)], [1.0, 1.0]) is None
        assert metrics.get_failure_count(FailureReason.DEGENERATE_INPUT) == 1

    def test_too_few_positive_weights(self, triangle_anchors, metrics):
        """Test zero weights can leave too few equations."""
        assert linear_least_squares(triangle_anchors, [1, 1, 1], weights=[1, 0, 1]) is None
        assert metrics.get_failure_count(FailureReason.DEGENERATE_INPUT) == 1

    def test_negative_range_raises(self, triangle_anchors):
        """Test a negative range is a caller error."""
        with pytest.raises(ValueError, match="non-negative"):
            linear_least_squares(triangle_anchors, [1.0, -1.0, 1.0])

    def test_malformed_anchor_raises(self):
        """Test an anchor without two coordinates is a caller error."""
        with pytest.raises(ValueError):
            linear_least_squares([(0, 0), (1,), (2, 2)], [1.0, 1.0, 1.0])

    def test_solve_linear_core(self, triangle_anchors):
        """Test the core solver returns point and weighted residual."""
        point, residual = solve_linear(triangle_anchors, exact_ranges(triangle_anchors, (2.0, 2.0)))
        assert calculate_distance_2d(point, (2.0, 2.0)) < 1e-9
        assert residual == pytest.approx(0.0, abs=1e-12)


class TestLinearLeastSquaresMetrics:
    """Tests for metrics recording."""

    def test_success_counters(self, triangle_anchors, metrics):
        """Test attempts and successes are counted."""
        linear_least_squares(triangle_anchors, exact_ranges(triangle_anchors, (1.0, 1.0)))

        assert metrics.get_counter('lls_attempts') == 1
        assert metrics.get_counter('lls_success') == 1
        assert metrics.get_histogram_stats('lls_residual')['count'] == 1
