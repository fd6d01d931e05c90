"""
Geometry Module: Points, circles, triangles, closed-form trilateration.

Key functions:
- circle_intersection: Exact circle-circle intersection (0, 1 or 2 points)
- intersection_approx / intersection_approx_resized: Noise-tolerant fallbacks
- min_max / extended_min_max: Bounding-box estimators
- trilaterate: Closed-form three-anchor solution
- geometric_median: Weiszfeld geometric median of a point cloud
"""

from .point import Point2D, as_point, as_points, centroid, extended_min_max, min_max
from .circle import (
    circle_intersection,
    circle_line_intersection,
    intersection_approx,
    intersection_approx_resized,
    point_in_circles,
)
from .triangle import (
    area,
    heights,
    incircle_radius,
    max_height,
    min_height,
    perimeter,
)
from .trilateration import trilaterate
from .median import GeometricMedianConfig, geometric_median

__all__ = [
    # Points
    'Point2D',
    'as_point',
    'as_points',
    'centroid',
    'min_max',
    'extended_min_max',
    # Circles
    'circle_intersection',
    'circle_line_intersection',
    'intersection_approx',
    'intersection_approx_resized',
    'point_in_circles',
    # Triangles
    'area',
    'heights',
    'incircle_radius',
    'max_height',
    'min_height',
    'perimeter',
    # Estimators
    'trilaterate',
    'GeometricMedianConfig',
    'geometric_median',
]
