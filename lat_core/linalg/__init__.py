"""
Linear Algebra Module: Dense matrices, LU decomposition, inversion.

Singular systems are reported as None, never as NaN-filled matrices:

    from lat_core.linalg import Matrix, solve

    x = solve(Matrix([[2.0, 0.0], [0.0, 4.0]]), Matrix.column([2.0, 8.0]))
    if x is None:
        ...  # singular
"""

from .matrix import LUDecomposition, Matrix, inverse, solve

__all__ = ['LUDecomposition', 'Matrix', 'inverse', 'solve']
