"""
Lateration Core Package.

Position estimation of a 2-D node from noisy range measurements to anchors
with known coordinates.

Package structure:
- geometry: Points, circle intersections, triangles, trilateration, geometric median
- linalg: Dense matrix kernel with LU-based solve/inverse
- proto: Result records and failure reason codes
- localization: Least-squares solvers, robust aggregation, algorithm registry
- metrics: Diagnostics, counters, histograms
"""

__version__ = "0.1.0"
__author__ = "Lateration Core Team"

from .geometry import Point2D, circle_intersection, trilaterate
from .linalg import Matrix, inverse, solve
from .localization import (
    Algorithm,
    RobustStrategy,
    localize,
    localize_robust,
)
from .proto import PositionEstimate, SolveStatus

__all__ = [
    'Point2D',
    'circle_intersection',
    'trilaterate',
    'Matrix',
    'inverse',
    'solve',
    'Algorithm',
    'RobustStrategy',
    'localize',
    'localize_robust',
    'PositionEstimate',
    'SolveStatus',
]
