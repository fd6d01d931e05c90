"""
Protocol Module: Result records and failure codes.

- PositionEstimate: final output of a localization call
- CandidateSolution: per-subset intermediate result
- FailureReason: code recorded for every call that returns no result
"""

from .failure import FailureReason
from .position_estimate import (
    CandidateSolution,
    PositionEstimate,
    SolveStatus,
    best_candidate,
)

__all__ = [
    # Results
    'PositionEstimate',
    'SolveStatus',
    'CandidateSolution',
    'best_candidate',
    # Failures
    'FailureReason',
]
