"""
Dense matrix kernel for the least-squares solvers.

Matrix wraps a read-only float64 numpy array; every operation returns a
new Matrix. Square systems are solved by LU decomposition with partial
pivoting. A numerically singular system yields None rather than a matrix
of NaNs, so callers must check the result of solve()/inverse().
"""

import logging
from typing import Optional, Sequence, Union

import numpy as np

from lat_core.config import NUMERIC_CONFIG

logger = logging.getLogger(__name__)


class Matrix:
    """
    Immutable dense rows x cols matrix of doubles.

    Usage:
        a = Matrix([[4.0, 1.0], [2.0, 3.0]])
        b = Matrix.column([1.0, 2.0])
        x = a.solve(b)          # None if a is singular
        if x is not None:
            print(x.to_list())
    """

    __slots__ = ('_data',)

    def __init__(self, data: Union[Sequence[Sequence[float]], np.ndarray]):
        """
        Create a matrix from nested rows.

        Raises:
            ValueError: If data is not a non-empty rectangular 2-D array
        """
        array = np.array(data, dtype=float)
        if array.ndim != 2 or array.size == 0:
            raise ValueError(f"Matrix data must be a non-empty 2-D array, got shape {array.shape}")
        array.setflags(write=False)
        self._data = array

    @classmethod
    def identity(cls, n: int) -> "Matrix":
        """n x n identity matrix."""
        return cls(np.eye(n))

    @classmethod
    def zeros(cls, rows: int, cols: int) -> "Matrix":
        """rows x cols zero matrix."""
        return cls(np.zeros((rows, cols)))

    @classmethod
    def column(cls, values: Sequence[float]) -> "Matrix":
        """Column vector (n x 1) from a flat sequence."""
        return cls(np.asarray(values, dtype=float).reshape(-1, 1))

    @classmethod
    def diagonal(cls, values: Sequence[float]) -> "Matrix":
        """Square diagonal matrix."""
        return cls(np.diag(np.asarray(values, dtype=float)))

    @property
    def rows(self) -> int:
        return self._data.shape[0]

    @property
    def cols(self) -> int:
        return self._data.shape[1]

    @property
    def shape(self):
        return self._data.shape

    @property
    def is_square(self) -> bool:
        return self.rows == self.cols

    @property
    def T(self) -> "Matrix":
        """Transpose."""
        return self.transpose()

    def transpose(self) -> "Matrix":
        return Matrix(self._data.T)

    def cell(self, i: int, j: int) -> float:
        """Value at row i, column j."""
        return float(self._data[i, j])

    def to_array(self) -> np.ndarray:
        """Writable copy of the underlying data."""
        return self._data.copy()

    def to_list(self):
        return self._data.tolist()

    def is_finite(self) -> bool:
        """True if no cell is NaN or infinite."""
        return bool(np.all(np.isfinite(self._data)))

    def __add__(self, other: "Matrix") -> "Matrix":
        if not isinstance(other, Matrix):
            return NotImplemented
        if self.shape != other.shape:
            raise ValueError(f"Illegal matrix dimensions: {self.shape} + {other.shape}")
        return Matrix(self._data + other._data)

    def __sub__(self, other: "Matrix") -> "Matrix":
        if not isinstance(other, Matrix):
            return NotImplemented
        if self.shape != other.shape:
            raise ValueError(f"Illegal matrix dimensions: {self.shape} - {other.shape}")
        return Matrix(self._data - other._data)

    def __mul__(self, scalar: float) -> "Matrix":
        if isinstance(scalar, Matrix):
            return NotImplemented
        return Matrix(self._data * float(scalar))

    __rmul__ = __mul__

    def __matmul__(self, other: "Matrix") -> "Matrix":
        if not isinstance(other, Matrix):
            return NotImplemented
        if self.cols != other.rows:
            raise ValueError(f"Illegal matrix dimensions: {self.shape} @ {other.shape}")
        return Matrix(self._data @ other._data)

    def times(self, other: Union["Matrix", float]) -> "Matrix":
        """Matrix product or scalar multiple, depending on the argument."""
        if isinstance(other, Matrix):
            return self @ other
        return self * other

    def __eq__(self, other) -> bool:
        if not isinstance(other, Matrix):
            return NotImplemented
        return self.shape == other.shape and bool(np.array_equal(self._data, other._data))

    def __hash__(self):
        return hash((self.shape, self._data.tobytes()))

    def __repr__(self) -> str:
        return f"Matrix({self._data.tolist()!r})"

    def determinant(self) -> float:
        """Determinant via LU decomposition (square matrices only)."""
        if not self.is_square:
            raise ValueError(f"Determinant requires a square matrix, got {self.shape}")
        return LUDecomposition(self).determinant()

    def inverse(self) -> Optional["Matrix"]:
        """
        Inverse of a square matrix.

        2x2 matrices use the closed-form adjugate formula; larger ones an
        LU solve against the identity.

        Returns:
            Inverse matrix, or None if the matrix is numerically singular

        Raises:
            ValueError: If the matrix is not square
        """
        if not self.is_square:
            raise ValueError(f"Inverse requires a square matrix, got {self.shape}")

        if self.rows == 2:
            a, b = self._data[0]
            c, d = self._data[1]
            det = a * d - b * c
            scale = float(np.max(np.abs(self._data)))
            if scale == 0 or abs(det) <= NUMERIC_CONFIG["singular_tol"] * scale * scale:
                return None
            result = Matrix([[d / det, -b / det], [-c / det, a / det]])
            return result if result.is_finite() else None

        return self.solve(Matrix.identity(self.rows))

    def solve(self, b: "Matrix") -> Optional["Matrix"]:
        """
        Solve self @ x = b for a square self.

        Returns:
            Solution x, or None if self is numerically singular

        Raises:
            ValueError: If self is not square or b has the wrong row count
        """
        if not self.is_square:
            raise ValueError(f"solve requires a square matrix, got {self.shape}")
        if b.rows != self.rows:
            raise ValueError(f"Right-hand side has {b.rows} rows, expected {self.rows}")

        lu = LUDecomposition(self)
        if not lu.is_nonsingular:
            return None
        return lu.solve(b)


class LUDecomposition:
    """
    LU decomposition with partial pivoting: P @ A = L @ U.

    L (unit lower triangular) and U are stored packed in one array.
    """

    def __init__(self, matrix: Matrix):
        if not matrix.is_square:
            raise ValueError(f"LU decomposition requires a square matrix, got {matrix.shape}")

        lu = matrix.to_array()
        n = lu.shape[0]
        piv = np.arange(n)
        sign = 1.0
        scale = float(np.max(np.abs(lu)))
        tol = NUMERIC_CONFIG["singular_tol"] * scale
        singular = scale == 0

        for k in range(n):
            p = k + int(np.argmax(np.abs(lu[k:, k])))
            if p != k:
                lu[[k, p]] = lu[[p, k]]
                piv[[k, p]] = piv[[p, k]]
                sign = -sign

            pivot = lu[k, k]
            if abs(pivot) <= tol:
                singular = True
                continue

            lu[k + 1:, k] /= pivot
            lu[k + 1:, k + 1:] -= np.outer(lu[k + 1:, k], lu[k, k + 1:])

        self._lu = lu
        self._piv = piv
        self._sign = sign
        self._singular = singular or not np.all(np.isfinite(lu))

    @property
    def is_nonsingular(self) -> bool:
        return not self._singular

    def determinant(self) -> float:
        if self._singular:
            return 0.0
        return float(self._sign * np.prod(np.diag(self._lu)))

    def solve(self, b: Matrix) -> Optional[Matrix]:
        """
        Solve A @ x = b using the factorization.

        Returns:
            Solution x, or None if A is singular or the result is not finite
        """
        if self._singular:
            return None

        n = self._lu.shape[0]
        x = b.to_array()[self._piv]

        # Forward substitution with unit lower triangle
        for k in range(n):
            x[k + 1:] -= np.outer(self._lu[k + 1:, k], x[k])
        # Back substitution with upper triangle
        for k in range(n - 1, -1, -1):
            x[k] /= self._lu[k, k]
            x[:k] -= np.outer(self._lu[:k, k], x[k])

        if not np.all(np.isfinite(x)):
            logger.debug("LU solve produced non-finite values")
            return None
        return Matrix(x)


def solve(a: Matrix, b: Matrix) -> Optional[Matrix]:
    """Solve a @ x = b; None if a is singular."""
    return a.solve(b)


def inverse(m: Matrix) -> Optional[Matrix]:
    """Inverse of m; None if m is singular."""
    return m.inverse()
