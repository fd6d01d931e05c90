"""
Circle-circle and circle-line intersections.

Exact intersection returns zero, one or two points. Two approximations
exist for ranging noise that makes an exact intersection impossible:

- intersection_approx: midpoint of the closest pair among the four points
  where the line through both centers crosses each circle
- intersection_approx_resized: resize each circle by the mutual
  excess/deficit so it just touches the other, then re-intersect

All functions are pure and never return NaN coordinates.
"""

import math
from typing import List, Optional, Sequence, Tuple

from lat_core.config import NUMERIC_CONFIG
from lat_core.geometry.point import Point2D

# Keeps resized circles overlapping despite rounding
_RESIZE_EPS = 1e-6
# Substitute radius for zero ranges in the resize approximation
_MIN_RADIUS = 1e-3


def circle_intersection(
    c1: Sequence[float],
    r1: float,
    c2: Sequence[float],
    r2: float,
) -> List[Point2D]:
    """
    Intersect two circles.

    Args:
        c1: Center of first circle
        r1: Radius of first circle
        c2: Center of second circle
        r2: Radius of second circle

    Returns:
        List with 0, 1 (tangent) or 2 intersection points. Empty when the
        circles are disjoint, one contains the other, or the centers
        coincide (infinitely many or no solutions).
    """
    x1, y1 = c1[0], c1[1]
    x2, y2 = c2[0], c2[1]
    d = math.hypot(x2 - x1, y2 - y1)

    # Separate, or coincident centers
    if r1 + r2 < d or d == 0:
        return []

    # One circle contained within the other
    if abs(r1 - r2) > d:
        return []

    r1_sq = r1 * r1
    a = (r1_sq - r2 * r2 + d * d) / (2 * d)
    # r1^2 >= a^2 analytically; rounding can make the difference slightly negative
    h = math.sqrt(abs(r1_sq - a * a))

    ux = (x2 - x1) / d
    uy = (y2 - y1) / d
    base_x = x1 + a * ux
    base_y = y1 + a * uy

    first = Point2D(base_x + h * uy, base_y - h * ux)
    if h == 0:
        points = [first]
    else:
        points = [first, Point2D(base_x - h * uy, base_y + h * ux)]

    return [p for p in points if p.is_finite]


def _center_line_points(
    c1: Sequence[float],
    r1: float,
    c2: Sequence[float],
    r2: float,
) -> Optional[Tuple[Point2D, Point2D]]:
    """Closest pair of center-line/circle crossings belonging to different circles."""
    x1, y1 = c1[0], c1[1]
    x2, y2 = c2[0], c2[1]
    dist = math.hypot(x2 - x1, y2 - y1)
    if dist == 0:
        return None

    dx = x2 - x1
    dy = y2 - y1
    k1 = r1 / dist
    k2 = r2 / dist

    on_first = (
        Point2D(x1 + k1 * dx, y1 + k1 * dy),
        Point2D(x1 - k1 * dx, y1 - k1 * dy),
    )
    on_second = (
        Point2D(x2 + k2 * dx, y2 + k2 * dy),
        Point2D(x2 - k2 * dx, y2 - k2 * dy),
    )

    best = None
    best_dist = math.inf
    for p in on_first:
        for q in on_second:
            dt = p.distance_to(q)
            if dt < best_dist:
                best_dist = dt
                best = (p, q)
    return best


def intersection_approx(
    c1: Sequence[float],
    r1: float,
    c2: Sequence[float],
    r2: float,
) -> Optional[Point2D]:
    """
    Approximate intersection via the line through both centers.

    Returns:
        Midpoint of the two closest center-line crossings, or None when the
        centers coincide
    """
    pair = _center_line_points(c1, r1, c2, r2)
    if pair is None:
        return None
    result = pair[0].midpoint(pair[1])
    return result if result.is_finite else None


def intersection_approx_resized(
    c1: Sequence[float],
    r1: float,
    c2: Sequence[float],
    r2: float,
) -> Optional[Point2D]:
    """
    Approximate intersection by resizing each circle to touch the other.

    The first circle's radius becomes |d - r2| (plus a tiny epsilon) and is
    intersected with the unchanged second circle; symmetrically for the
    second circle. The result is the midpoint of both touch points.

    Returns:
        Approximate intersection, or None when the centers coincide
    """
    dist = math.hypot(c2[0] - c1[0], c2[1] - c1[1])
    if dist == 0:
        return None

    if r1 == 0:
        r1 = _MIN_RADIUS
    if r2 == 0:
        r2 = _MIN_RADIUS
    r1_resized = abs(dist - r2) + _RESIZE_EPS
    r2_resized = abs(dist - r1) + _RESIZE_EPS

    first = circle_intersection(c1, r1_resized, c2, r2)
    second = circle_intersection(c1, r1, c2, r2_resized)
    if not first or not second:
        return None

    result = first[0].midpoint(second[0])
    return result if result.is_finite else None


def circle_line_intersection(
    center: Sequence[float],
    r: float,
    p1: Sequence[float],
    p2: Sequence[float],
) -> List[Point2D]:
    """
    Intersect a circle with the infinite line through p1 and p2.

    Returns:
        List with 0, 1 (tangent) or 2 points; empty if p1 == p2
    """
    dx = p2[0] - p1[0]
    dy = p2[1] - p1[1]
    a = dx * dx + dy * dy
    if a == 0:
        return []

    fx = p1[0] - center[0]
    fy = p1[1] - center[1]
    b = 2 * (dx * fx + dy * fy)
    c = fx * fx + fy * fy - r * r
    disc = b * b - 4 * a * c

    if disc < 0:
        return []
    if disc == 0:
        u = -b / (2 * a)
        return [Point2D(p1[0] + u * dx, p1[1] + u * dy)]

    root = math.sqrt(disc)
    u1 = (-b + root) / (2 * a)
    u2 = (-b - root) / (2 * a)
    return [
        Point2D(p1[0] + u1 * dx, p1[1] + u1 * dy),
        Point2D(p1[0] + u2 * dx, p1[1] + u2 * dy),
    ]


def point_in_circles(
    centers: Sequence[Sequence[float]],
    radii: Sequence[float],
    p: Sequence[float],
    slack: Optional[float] = None,
) -> bool:
    """True if p lies inside every circle (each radius widened by slack)."""
    if slack is None:
        slack = NUMERIC_CONFIG["circle_tol"]
    for c, r in zip(centers, radii):
        if math.hypot(p[0] - c[0], p[1] - c[1]) > r + slack:
            return False
    return True
