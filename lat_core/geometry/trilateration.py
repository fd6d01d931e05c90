"""
Closed-form trilateration from exactly three anchors.

Subtracting the circle equation of the middle anchor from the other two
yields a 2x2 linear system solved directly. When the second and third
anchors share an x-coordinate the first two anchors are swapped; if the
tie persists (or the system determinant vanishes) there is no result.
"""

import math
from typing import Optional, Sequence

from lat_core.config import NUMERIC_CONFIG
from lat_core.geometry.point import Point2D


def trilaterate(
    p1: Sequence[float],
    r1: float,
    p2: Sequence[float],
    r2: float,
    p3: Sequence[float],
    r3: float,
) -> Optional[Point2D]:
    """
    Solve the position from three anchor/range pairs.

    Args:
        p1, p2, p3: Anchor positions
        r1, r2, r3: Measured ranges to each anchor

    Returns:
        Estimated position, or None for collinear/degenerate anchors
    """
    x1, y1 = p1[0], p1[1]
    x2, y2 = p2[0], p2[1]
    x3, y3 = p3[0], p3[1]

    if x2 == x3:
        x1, y1, r1, x2, y2, r2 = x2, y2, r2, x1, y1, r1
    # All three share the pivot x-coordinate
    if x2 == x3:
        return None

    r2_sq = r2 * r2
    x2_sq = x2 * x2
    y2_sq = y2 * y2
    s = (x3 * x3 - x2_sq + y3 * y3 - y2_sq + r2_sq - r3 * r3) / 2.0
    t = (x1 * x1 - x2_sq + y1 * y1 - y2_sq + r2_sq - r1 * r1) / 2.0

    det = (y1 - y2) * (x3 - x2) - (y3 - y2) * (x1 - x2)
    span = max(abs(x1 - x2), abs(y1 - y2), abs(x3 - x2), abs(y3 - y2))
    if abs(det) <= NUMERIC_CONFIG["singular_tol"] * span * span:
        return None

    y = (t * (x3 - x2) - s * (x1 - x2)) / det
    x = (s - y * (y3 - y2)) / (x3 - x2)

    if not (math.isfinite(x) and math.isfinite(y)):
        return None
    return Point2D(x, y)
