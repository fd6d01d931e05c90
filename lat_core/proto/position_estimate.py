"""
Position Estimate Output Schema.

Defines the result records of a localization call:
- PositionEstimate: final point, residual and how it was obtained
- CandidateSolution: intermediate point computed from one anchor subset
"""

import math
from dataclasses import dataclass
from enum import IntEnum
from typing import Optional, Tuple

from lat_core.geometry.point import Point2D


class SolveStatus(IntEnum):
    """How the estimate was reached."""

    CLOSED_FORM = 0     # Direct (non-iterative) solution
    CONVERGED = 1       # Iteration met its tolerance
    MAX_ITERATIONS = 2  # Iteration cap hit; best estimate so far


@dataclass(frozen=True)
class PositionEstimate:
    """
    Node position estimate from ranges.

    Attributes:
        point: Estimated position (x, y) in meters
        residual: Sum of squared range residuals (m^2), over inliers for
            consensus strategies
        status: CLOSED_FORM, CONVERGED or MAX_ITERATIONS
        algorithm: Name of the algorithm/strategy that produced the estimate
        num_anchors_used: Number of anchors that contributed
        inliers: Indices of contributing anchors
        iterations: Iterations (or trials) spent; 0 for closed-form solves

    Notes:
        - MAX_ITERATIONS is a valid estimate, not a failure
        - Failed calls return None instead of an estimate
    """

    point: Point2D
    residual: float
    status: SolveStatus = SolveStatus.CLOSED_FORM
    algorithm: str = ''
    num_anchors_used: int = 0
    inliers: Tuple[int, ...] = ()
    iterations: int = 0

    def __post_init__(self):
        """Validate position estimate."""
        if not self.point.is_finite:
            raise ValueError(f"Position must be finite: {self.point}")

        if not math.isfinite(self.residual) or self.residual < 0:
            raise ValueError(f"Residual must be finite and non-negative: {self.residual}")

        if self.num_anchors_used < 0:
            raise ValueError(f"Num anchors cannot be negative: {self.num_anchors_used}")

        if self.iterations < 0:
            raise ValueError(f"Iterations cannot be negative: {self.iterations}")

    @property
    def x(self) -> float:
        return self.point.x

    @property
    def y(self) -> float:
        return self.point.y

    @property
    def converged(self) -> bool:
        """True unless the iteration cap was hit."""
        return self.status != SolveStatus.MAX_ITERATIONS

    def rms_error(self) -> float:
        """Root-mean-square range residual over the anchors used."""
        if self.num_anchors_used == 0:
            return 0.0
        return math.sqrt(self.residual / self.num_anchors_used)

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            'point': (self.point.x, self.point.y),
            'residual': self.residual,
            'status': self.status.name,
            'algorithm': self.algorithm,
            'num_anchors_used': self.num_anchors_used,
            'inliers': list(self.inliers),
            'iterations': self.iterations,
        }


@dataclass(frozen=True)
class CandidateSolution:
    """
    Candidate position computed from one anchor subset.

    Attributes:
        point: Candidate position
        score: Residual, likelihood or consensus count (meaning set by the producer)
        subset: Indices of the anchors that produced the candidate
    """

    point: Point2D
    score: float
    subset: Tuple[int, ...] = ()


def best_candidate(candidates, lowest: bool = True) -> Optional[CandidateSolution]:
    """
    Pick the candidate with the lowest (or highest) score.

    Ties keep the earliest candidate. Returns None for an empty sequence.
    """
    best = None
    for c in candidates:
        if best is None or (c.score < best.score if lowest else c.score > best.score):
            best = c
    return best
