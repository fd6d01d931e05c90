"""
Weighted geometric median (Weiszfeld's algorithm).

The geometric median minimizes the weighted sum of distances to a point
set. Before iterating, every sample point is tested for optimality: if
the magnitude of the weighted sum of unit vectors from the other points
does not exceed the point's own weight, that point is the median. This
avoids the division by zero Weiszfeld's update suffers at sample points.

The optimality test and the update run on numpy arrays. The pairwise test
is evaluated in row blocks so memory stays bounded for large clouds.
"""

from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np

from lat_core.geometry.point import Point2D

# Rows of the pairwise distance matrix evaluated per block
_BLOCK_ROWS = 256


@dataclass
class GeometricMedianConfig:
    """
    Configuration for Weiszfeld iteration.

    Attributes:
        max_iterations: Iteration cap
        rel_tol: Stop when the relative objective improvement drops below this
        smoothing: Epsilon in the smoothed objective sum(sqrt(|p - p_i|^2 + eps))
    """

    max_iterations: int = 100
    rel_tol: float = 1e-6
    smoothing: float = 1e-3

    def __post_init__(self):
        """Validate configuration."""
        if self.max_iterations < 1:
            raise ValueError("max_iterations must be >= 1")
        if self.rel_tol <= 0:
            raise ValueError("rel_tol must be positive")
        if self.smoothing < 0:
            raise ValueError("smoothing cannot be negative")


def _smoothed_distance_sum(pts: np.ndarray, x: np.ndarray, eps: float) -> float:
    diff = pts - x
    return float(np.sqrt(np.einsum('ij,ij->i', diff, diff) + eps).sum())


def _optimal_sample_index(pts: np.ndarray, w: np.ndarray) -> int:
    """Index of the first sample point satisfying the optimality test, or -1."""
    n = len(pts)
    for start in range(0, n, _BLOCK_ROWS):
        block = pts[start:start + _BLOCK_ROWS]
        diff = block[:, None, :] - pts[None, :, :]
        dist = np.hypot(diff[..., 0], diff[..., 1])

        coincident = dist == 0
        # Duplicates (and the point itself) add their mass to the candidate
        own_weight = np.where(coincident, w, 0.0).sum(axis=1)
        scale = np.divide(w, dist, out=np.zeros_like(dist), where=~coincident)
        sx = np.einsum('ij,ij->i', scale, diff[..., 0])
        sy = np.einsum('ij,ij->i', scale, diff[..., 1])

        hits = np.flatnonzero(np.hypot(sx, sy) <= own_weight)
        if hits.size:
            return start + int(hits[0])
    return -1


def geometric_median(
    points: Sequence[Sequence[float]],
    weights: Optional[Sequence[float]] = None,
    config: Optional[GeometricMedianConfig] = None,
) -> Optional[Point2D]:
    """
    Compute the weighted geometric median of a point set.

    Args:
        points: Sample points (sequence of pairs or an (N, 2) array)
        weights: Positive weight per point (default: all 1)
        config: Iteration settings (uses defaults if None)

    Returns:
        Geometric median, or None for an empty set

    Notes:
        Deterministic: the same input always yields the same point.
    """
    if len(points) == 0:
        return None
    config = config or GeometricMedianConfig()
    pts = np.asarray(points, dtype=float).reshape(-1, 2)
    if weights is None:
        w = np.ones(len(pts))
    else:
        w = np.asarray(weights, dtype=float).reshape(-1)
    if len(w) != len(pts):
        raise ValueError("points and weights must have the same length")
    if np.any(w <= 0):
        raise ValueError("weights must be positive")

    idx = _optimal_sample_index(pts, w)
    if idx != -1:
        return Point2D(float(pts[idx, 0]), float(pts[idx, 1]))

    x = (w @ pts) / w.sum()
    if not np.all(np.isfinite(x)):
        return None

    e0 = _smoothed_distance_sum(pts, x, config.smoothing)
    for _ in range(config.max_iterations):
        dist = np.hypot(pts[:, 0] - x[0], pts[:, 1] - x[1])
        away = dist > 0
        if not away.any():
            break
        inv = w[away] / dist[away]

        x_new = (inv @ pts[away]) / inv.sum()
        if not np.all(np.isfinite(x_new)):
            break

        e1 = _smoothed_distance_sum(pts, x_new, config.smoothing)
        if e1 >= e0:
            break
        improvement = (e0 - e1) / e0
        x, e0 = x_new, e1
        if improvement < config.rel_tol:
            break

    return Point2D(float(x[0]), float(x[1]))
