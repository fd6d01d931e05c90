"""
2-D point value type and simple point-set estimators.

Points are immutable: every operation returns a new Point2D, so anchor
arrays can be shared freely between concurrent solver calls.
"""

import math
from typing import Iterable, List, NamedTuple, Optional, Sequence


class Point2D(NamedTuple):
    """Immutable 2-D point (x, y) in meters."""

    x: float
    y: float

    def distance_to(self, other: Sequence[float]) -> float:
        """Euclidean distance to another point."""
        return math.hypot(self.x - other[0], self.y - other[1])

    def distance_sq_to(self, other: Sequence[float]) -> float:
        """Squared Euclidean distance to another point."""
        dx = self.x - other[0]
        dy = self.y - other[1]
        return dx * dx + dy * dy

    def translated(self, dx: float, dy: float) -> "Point2D":
        """Return a new point shifted by (dx, dy)."""
        return Point2D(self.x + dx, self.y + dy)

    def midpoint(self, other: Sequence[float]) -> "Point2D":
        """Midpoint of the segment between this point and another."""
        return Point2D((self.x + other[0]) / 2.0, (self.y + other[1]) / 2.0)

    @property
    def is_finite(self) -> bool:
        """True if neither coordinate is NaN or infinite."""
        return math.isfinite(self.x) and math.isfinite(self.y)


def as_point(value: Sequence[float]) -> Point2D:
    """
    Coerce a 2-sequence into a Point2D.

    Raises:
        ValueError: If value does not hold exactly two finite coordinates
    """
    if isinstance(value, Point2D):
        point = value
    else:
        try:
            x, y = value
        except (TypeError, ValueError):
            raise ValueError(f"Point must have exactly 2 coordinates: {value!r}")
        point = Point2D(float(x), float(y))

    if not point.is_finite:
        raise ValueError(f"Point coordinates must be finite: {value!r}")
    return point


def as_points(values: Iterable[Sequence[float]]) -> List[Point2D]:
    """Coerce an iterable of 2-sequences into a list of Point2D."""
    return [as_point(v) for v in values]


def centroid(
    points: Sequence[Point2D],
    weights: Optional[Sequence[float]] = None,
) -> Optional[Point2D]:
    """
    Weighted center of mass of a point set.

    Args:
        points: Points to average
        weights: Mass of each point (default: all 1)

    Returns:
        Center of mass, or None for an empty set or zero total weight
    """
    if len(points) == 0:
        return None
    if weights is None:
        weights = [1.0] * len(points)
    if len(weights) != len(points):
        raise ValueError("points and weights must have the same length")

    total = 0.0
    sx = 0.0
    sy = 0.0
    for p, w in zip(points, weights):
        sx += p[0] * w
        sy += p[1] * w
        total += w

    if total == 0:
        return None

    result = Point2D(float(sx / total), float(sy / total))
    return result if result.is_finite else None


def min_max(anchors: Sequence[Point2D], ranges: Sequence[float]) -> Optional[Point2D]:
    """
    Min-Max estimate: center of the intersection of the bounding boxes.

    Each anchor defines the box [x - d, x + d] x [y - d, y + d]; the
    estimate is the center of the box intersection (or of the "inverted"
    box when the boxes do not overlap).

    Returns:
        Box center, or None for empty or mismatched input
    """
    if len(anchors) == 0 or len(anchors) != len(ranges):
        return None

    west = max(a[0] - d for a, d in zip(anchors, ranges))
    east = min(a[0] + d for a, d in zip(anchors, ranges))
    south = max(a[1] - d for a, d in zip(anchors, ranges))
    north = min(a[1] + d for a, d in zip(anchors, ranges))

    return Point2D(float(west + east) / 2.0, float(south + north) / 2.0)


def extended_min_max(anchors: Sequence[Point2D], ranges: Sequence[float]) -> Optional[Point2D]:
    """
    Extended Min-Max (W4 weighting).

    The four corners of the Min-Max box are averaged, each weighted by
    1 / sum_i | |corner - a_i|^2 - d_i^2 |. A corner that explains every
    range exactly is returned as is.

    Returns:
        Weighted corner average, or None for empty or mismatched input
    """
    if len(anchors) == 0 or len(anchors) != len(ranges):
        return None

    west = max(a[0] - d for a, d in zip(anchors, ranges))
    east = min(a[0] + d for a, d in zip(anchors, ranges))
    south = max(a[1] - d for a, d in zip(anchors, ranges))
    north = min(a[1] + d for a, d in zip(anchors, ranges))

    corners = [
        Point2D(float(east), float(north)),
        Point2D(float(west), float(north)),
        Point2D(float(east), float(south)),
        Point2D(float(west), float(south)),
    ]
    weights = []
    for corner in corners:
        error = sum(abs(corner.distance_sq_to(a) - d * d) for a, d in zip(anchors, ranges))
        if error == 0:
            return corner
        weights.append(1.0 / error)

    return centroid(corners, weights)
