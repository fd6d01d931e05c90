"""
Failure reason codes for solver calls that return no result.

Every "no result" is counted under exactly one reason so a failed call is
never silent. Iteration-cap exhaustion is not a failure: the estimate is
returned with SolveStatus.MAX_ITERATIONS.
"""

from enum import Enum


class FailureReason(str, Enum):
    """Why a localization call produced no result."""

    DEGENERATE_INPUT = 'degenerate_input'               # length mismatch, too few anchors
    SINGULAR_SYSTEM = 'singular_system'                 # normal equations / LU not invertible
    NO_INTERSECTION = 'no_intersection'                 # disjoint or nested circles
    INSUFFICIENT_CONSENSUS = 'insufficient_consensus'   # robust quorum not reached

    @property
    def description(self) -> str:
        return _DESCRIPTIONS[self]


_DESCRIPTIONS = {
    FailureReason.DEGENERATE_INPUT: 'Anchor/range length mismatch or too few anchors',
    FailureReason.SINGULAR_SYSTEM: 'Linear system could not be inverted',
    FailureReason.NO_INTERSECTION: 'Circles do not intersect',
    FailureReason.INSUFFICIENT_CONSENSUS: 'Robust strategy found no sufficient quorum',
}
