"""
Estimators built on pairwise circle intersections.

- intersection_centroid: centroid of every exact pairwise intersection
- weighted_centroid: the same points weighted by a Gamma range-error model
- bilateration: one intersection per anchor pair, choosing between the two
  candidates by agreement with the other pairs
- geolateration: three-anchor estimator based on the smallest triangle
  formed by intersection points
"""

import logging
import math
from dataclasses import dataclass
from itertools import combinations
from typing import List, Optional, Sequence

from lat_core.config import NUMERIC_CONFIG
from lat_core.geometry.circle import (
    circle_intersection,
    intersection_approx,
    intersection_approx_resized,
    point_in_circles,
)
from lat_core.geometry.median import geometric_median
from lat_core.geometry.point import Point2D, centroid
from lat_core.geometry.triangle import area, incircle_radius, perimeter
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


@dataclass
class GeolaterationConfig:
    """
    Configuration for geolateration.

    Attributes:
        agreement_tol: Three intersection points closer than this (m) are
            taken as an exact fix
        circle_slack: Slack (m) when testing whether a point lies in all circles
        area_ratio: If the in-circle triangle is at least this many times
            larger than the minimum triangle, both are blended
    """

    agreement_tol: float = NUMERIC_CONFIG["agreement_tol"]
    circle_slack: float = NUMERIC_CONFIG["circle_tol"]
    area_ratio: float = 2.5

    def __post_init__(self):
        """Validate configuration."""
        if self.agreement_tol < 0:
            raise ValueError("agreement_tol cannot be negative")
        if self.circle_slack < 0:
            raise ValueError("circle_slack cannot be negative")
        if self.area_ratio < 1:
            raise ValueError("area_ratio must be >= 1")


@dataclass
class WeightedCentroidConfig:
    """
    Gamma range-error model for the weighted intersection centroid.

    An intersection point p gets the mass prod_i f(d_i + offset - |p - a_i|),
    where f is the Gamma density with the given shape and rate. A point
    whose argument is not positive for some anchor gets mass 0.

    Attributes:
        shape: Gamma shape parameter
        rate: Gamma rate parameter (1/m)
        offset: Shift (m) applied to every range error
    """

    shape: float = 3.3
    rate: float = 0.576
    offset: float = 3.31060119642765

    def __post_init__(self):
        """Validate configuration."""
        if self.shape <= 0:
            raise ValueError("shape must be positive")
        if self.rate <= 0:
            raise ValueError("rate must be positive")
        if not math.isfinite(self.offset):
            raise ValueError("offset must be finite")

    def log_density(self, x: float) -> float:
        """Log of the Gamma density at x > 0."""
        return (
            self.shape * math.log(self.rate) - math.lgamma(self.shape)
            + (self.shape - 1.0) * math.log(x) - self.rate * x
        )


def _closed_form_estimate(
    algorithm: str,
    point: Point2D,
    anchors: Sequence[Point2D],
    ranges: Sequence[float],
    used: Sequence[int],
) -> PositionEstimate:
    return PositionEstimate(
        point=point,
        residual=sum_squared_residuals(point, [anchors[i] for i in used], [ranges[i] for i in used]),
        status=SolveStatus.CLOSED_FORM,
        algorithm=algorithm,
        num_anchors_used=len(used),
        inliers=tuple(used),
    )


def _pairwise_intersections(anchors: Sequence[Point2D], ranges: Sequence[float]) -> List[Point2D]:
    hits: List[Point2D] = []
    for i, j in combinations(range(len(anchors)), 2):
        hits.extend(circle_intersection(anchors[i], ranges[i], anchors[j], ranges[j]))
    return hits


def intersection_centroid(
    anchors: Sequence[Sequence[float]],
    ranges: Sequence[float],
    metrics: Optional[MetricsCollector] = None,
) -> Optional[PositionEstimate]:
    """
    Centroid of all exact pairwise circle intersections.

    Returns:
        PositionEstimate, or None if no anchor pair intersects
    """
    algorithm = 'intersection_centroid'
    metrics = metrics or get_metrics()
    metrics.increment(f'{algorithm}_attempts')

    prepared = prepare_inputs(anchors, ranges, 2, algorithm, metrics)
    if prepared is None:
        return None
    points, values = prepared

    hits = _pairwise_intersections(points, values)

    result = centroid(hits)
    if result is None:
        record_failure(metrics, algorithm, FailureReason.NO_INTERSECTION, "no circle pair intersects")
        return None

    estimate = _closed_form_estimate(algorithm, result, points, values, range(len(points)))
    record_success(metrics, algorithm, estimate)
    return estimate


def _gamma_masses(
    points: Sequence[Point2D],
    anchors: Sequence[Point2D],
    ranges: Sequence[float],
    config: WeightedCentroidConfig,
) -> List[float]:
    """Relative Gamma masses of the points, or all 1 when every mass is 0."""
    log_masses: List[Optional[float]] = []
    for p in points:
        total: Optional[float] = 0.0
        for a, d in zip(anchors, ranges):
            x = d + config.offset - p.distance_to(a)
            if x <= 0:
                total = None
                break
            total += config.log_density(x)
        log_masses.append(total)

    finite = [m for m in log_masses if m is not None]
    if not finite:
        logger.debug("weighted_centroid: every intersection has zero mass, using equal weights")
        return [1.0] * len(points)

    # Scaled by the largest mass so long products do not underflow
    peak = max(finite)
    return [0.0 if m is None else math.exp(m - peak) for m in log_masses]


def weighted_centroid(
    anchors: Sequence[Sequence[float]],
    ranges: Sequence[float],
    config: Optional[WeightedCentroidConfig] = None,
    metrics: Optional[MetricsCollector] = None,
) -> Optional[PositionEstimate]:
    """
    Center of mass of all exact pairwise intersections, weighted by how well
    each point explains every range under a Gamma error model.

    Args:
        anchors: Anchor positions (at least 2)
        ranges: Measured range per anchor
        config: Error model (uses defaults if None)
        metrics: Metrics collector (uses the global one if None)

    Returns:
        PositionEstimate, or None if no anchor pair intersects
    """
    algorithm = 'weighted_centroid'
    config = config or WeightedCentroidConfig()
    metrics = metrics or get_metrics()
    metrics.increment(f'{algorithm}_attempts')

    prepared = prepare_inputs(anchors, ranges, 2, algorithm, metrics)
    if prepared is None:
        return None
    points, values = prepared

    hits = _pairwise_intersections(points, values)
    result = centroid(hits, _gamma_masses(hits, points, values, config)) if hits else None
    if result is None:
        record_failure(metrics, algorithm, FailureReason.NO_INTERSECTION, "no circle pair intersects")
        return None

    estimate = _closed_form_estimate(algorithm, result, points, values, range(len(points)))
    record_success(metrics, algorithm, estimate)
    return estimate


def _choose_bilateration_points(candidates: List[List[Point2D]]) -> List[Point2D]:
    """Keep one point per anchor pair: the one closer to the other pairs' points."""
    chosen = []
    for i, current in enumerate(candidates):
        if len(current) == 1:
            chosen.append(current[0])
            continue

        psi = 0.0
        phi = 0.0
        for j, other in enumerate(candidates):
            if i == j:
                continue
            psi += min(current[0].distance_sq_to(q) for q in other)
            phi += min(current[1].distance_sq_to(q) for q in other)
        chosen.append(current[0] if psi < phi else current[1])
    return chosen


def bilateration(
    anchors: Sequence[Sequence[float]],
    ranges: Sequence[float],
    metrics: Optional[MetricsCollector] = None,
) -> Optional[PositionEstimate]:
    """
    Bilateration over all anchor pairs.

    Each pair contributes its exact intersection, or the resize
    approximation when the circles miss each other. Where a pair yields two
    points, the one with the smaller summed squared distance to the nearest
    points of every other pair is kept. The estimate is the centroid of the
    kept points.

    Returns:
        PositionEstimate, or None if no pair yields any point
    """
    algorithm = 'bilateration'
    metrics = metrics or get_metrics()
    metrics.increment(f'{algorithm}_attempts')

    prepared = prepare_inputs(anchors, ranges, 2, algorithm, metrics)
    if prepared is None:
        return None
    points, values = prepared

    candidates: List[List[Point2D]] = []
    for i, j in combinations(range(len(points)), 2):
        hits = circle_intersection(points[i], values[i], points[j], values[j])
        if not hits:
            approx = intersection_approx_resized(points[i], values[i], points[j], values[j])
            if approx is not None:
                hits = [approx]
        if hits:
            candidates.append(hits)

    result = centroid(_choose_bilateration_points(candidates))
    if result is None:
        record_failure(metrics, algorithm, FailureReason.NO_INTERSECTION, "no pair yields a point")
        return None

    estimate = _closed_form_estimate(algorithm, result, points, values, range(len(points)))
    record_success(metrics, algorithm, estimate)
    return estimate


def _pair_points(c1, r1, c2, r2) -> List[Point2D]:
    hits = circle_intersection(c1, r1, c2, r2)
    if hits:
        return hits
    approx = intersection_approx(c1, r1, c2, r2)
    return [approx] if approx is not None else []


def geolaterate(
    anchors: Sequence[Point2D],
    ranges: Sequence[float],
    config: Optional[GeolaterationConfig] = None,
) -> Optional[Point2D]:
    """
    Geolateration from the first three anchors.

    Steps:
    1. Intersect every pair of circles (midpoint approximation if disjoint)
    2. If three intersection points agree within agreement_tol, return one
    3. Find the minimum-perimeter triangle of intersection points, and the
       minimum one whose corners all lie inside every circle
    4. If the centroid of the minimum triangle is within half the incircle
       radius of the anchor triangle's centroid, return it
    5. Otherwise prefer the in-circle triangle when it is not much larger;
       when it is, return the inverse-area weighted geometric median of both
    6. Return the geometric median of the chosen triangle

    Returns:
        Estimated point, or None if a circle pair has concentric centers
    """
    config = config or GeolaterationConfig()
    (p1, p2, p3), (r1, r2, r3) = anchors[:3], ranges[:3]

    points: List[Point2D] = []
    for c1, ra, c2, rb in ((p1, r1, p2, r2), (p1, r1, p3, r3), (p2, r2, p3, r3)):
        hits = _pair_points(c1, ra, c2, rb)
        if not hits:
            return None
        points.extend(hits)

    for i, pi in enumerate(points):
        close = 1 + sum(1 for j, pj in enumerate(points) if i != j and pi.distance_to(pj) < config.agreement_tol)
        if close >= 3:
            return pi

    tri_anchors = [p1, p2, p3]
    tri_ranges = [r1, r2, r3]
    inside = [point_in_circles(tri_anchors, tri_ranges, p, config.circle_slack) for p in points]

    min_tri = None
    min_perimeter = float('inf')
    in_tri = None
    in_perimeter = float('inf')
    for tri in combinations(range(len(points)), 3):
        length = perimeter(*(points[k] for k in tri))
        if length < min_perimeter:
            min_perimeter = length
            min_tri = tri
        if all(inside[k] for k in tri) and length < in_perimeter:
            in_perimeter = length
            in_tri = tri

    corners = [points[k] for k in min_tri]
    center = centroid(corners)
    anchor_center = centroid(tri_anchors)
    if center.distance_to(anchor_center) <= incircle_radius(p1, p2, p3) / 2:
        logger.debug("Geolateration: minimum triangle centroid near anchor centre")
        return center

    if in_tri is not None and in_tri != min_tri:
        min_area = area(*corners)
        in_corners = [points[k] for k in in_tri]
        in_area = area(*in_corners)
        if in_area < config.area_ratio * min_area:
            corners = in_corners
        elif min_area > 0:
            logger.debug("Geolateration: blending triangles (areas %.4f, %.4f)", min_area, in_area)
            w_min = 1.0 / min_area
            w_in = 1.0 / in_area
            return geometric_median(corners + in_corners, [w_min] * 3 + [w_in] * 3)

    return geometric_median(corners)


def geolateration(
    anchors: Sequence[Sequence[float]],
    ranges: Sequence[float],
    config: Optional[GeolaterationConfig] = None,
    metrics: Optional[MetricsCollector] = None,
) -> Optional[PositionEstimate]:
    """
    Estimate a position by geolateration.

    Only the first three anchors are used.

    Returns:
        PositionEstimate, or None for degenerate input or concentric circles
    """
    algorithm = 'geolateration'
    metrics = metrics or get_metrics()
    metrics.increment(f'{algorithm}_attempts')

    prepared = prepare_inputs(anchors, ranges, 3, algorithm, metrics)
    if prepared is None:
        return None
    points, values = prepared

    result = geolaterate(points, values, config)
    if result is None or not result.is_finite:
        record_failure(metrics, algorithm, FailureReason.NO_INTERSECTION, "concentric anchor pair")
        return None

    estimate = _closed_form_estimate(algorithm, result, points, values, range(3))
    record_success(metrics, algorithm, estimate)
    return estimate
