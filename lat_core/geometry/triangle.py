"""Triangle metrics used to judge anchor geometry."""

import math
from typing import Sequence


def _sides(a: Sequence[float], b: Sequence[float], c: Sequence[float]):
    return (
        math.hypot(b[0] - c[0], b[1] - c[1]),
        math.hypot(a[0] - c[0], a[1] - c[1]),
        math.hypot(a[0] - b[0], a[1] - b[1]),
    )


def perimeter(a: Sequence[float], b: Sequence[float], c: Sequence[float]) -> float:
    """Sum of the three side lengths."""
    return sum(_sides(a, b, c))


def area(a: Sequence[float], b: Sequence[float], c: Sequence[float]) -> float:
    """Triangle area by Heron's formula (0 for collinear vertices)."""
    sa, sb, sc = _sides(a, b, c)
    s = 0.5 * (sa + sb + sc)
    # Rounding can push the product slightly below zero for flat triangles
    t = s * (s - sa) * (s - sb) * (s - sc)
    return math.sqrt(max(t, 0.0))


def heights(a: Sequence[float], b: Sequence[float], c: Sequence[float]):
    """
    The three heights (h_a, h_b, h_c) onto sides opposite a, b and c.

    A degenerate side of zero length yields a height of 0.
    """
    two_area = 2 * area(a, b, c)
    return tuple(two_area / side if side > 0 else 0.0 for side in _sides(a, b, c))


def min_height(a: Sequence[float], b: Sequence[float], c: Sequence[float]) -> float:
    """Smallest triangle height."""
    return min(heights(a, b, c))


def max_height(a: Sequence[float], b: Sequence[float], c: Sequence[float]) -> float:
    """Largest triangle height."""
    return max(heights(a, b, c))


def incircle_radius(a: Sequence[float], b: Sequence[float], c: Sequence[float]) -> float:
    """Radius of the inscribed circle (0 for degenerate triangles)."""
    p = perimeter(a, b, c)
    if p == 0:
        return 0.0
    return 2 * area(a, b, c) / p
