"""
Matrix utilities for colorimetric conversion

Provides Gauss-Jordan matrix inversion and the immutable RGB -> XYZ
primaries matrix used by the white balance pipeline.
"""

import numpy as np
from typing import Sequence, Union
import logging
from dataclasses import dataclass, field

from autowb.exceptions import SingularMatrixError

logger = logging.getLogger(__name__)

# Linear sRGB primaries (D65), rows produce X, Y, Z
SRGB_PRIMARIES = (
    (0.4124, 0.3576, 0.1805),
    (0.2126, 0.7152, 0.0722),
    (0.0193, 0.1192, 0.9505),
)

MatrixLike = Union[np.ndarray, Sequence[Sequence[float]]]


def invert_matrix(matrix: MatrixLike, tolerance: float = 1e-12) -> np.ndarray:
    """
    Invert a square matrix with Gauss-Jordan elimination

    The matrix is augmented with the identity, each pivot row is scaled so
    its pivot becomes 1 and the pivot column is eliminated from every other
    row. No row exchanges are made, so a matrix that needs partial pivoting
    is reported as singular.

    Args:
        matrix: n x n matrix of real coefficients
        tolerance: Pivots with an absolute value at or below this are zero

    Returns:
        New n x n array holding the inverse

    Raises:
        SingularMatrixError: If a pivot element is zero
        ValueError: If the matrix is not square
    """
    source = np.asarray(matrix, dtype=np.float64)
    if source.ndim != 2 or source.shape[0] != source.shape[1]:
        raise ValueError(f"Matrix must be square, got shape {source.shape}")

    n = source.shape[0]
    augmented = np.zeros((n, 2 * n), dtype=np.float64)
    augmented[:, :n] = source
    augmented[:, n:] = np.eye(n)

    for i in range(n):
        pivot = augmented[i, i]
        if not np.isfinite(pivot) or abs(pivot) <= tolerance:
            raise SingularMatrixError(
                f"Zero pivot at row {i}; matrix is singular or needs pivoting"
            )
        augmented[i] /= pivot

        for k in range(n):
            if k != i:
                augmented[k] -= augmented[k, i] * augmented[i]

    return augmented[:, n:].copy()


@dataclass(frozen=True, eq=False)
class ColorMatrix:
    """
    RGB -> XYZ primaries matrix with its inverse

    The inverse is computed once at construction and both arrays are
    read-only, so one instance can be shared by every worker of a run.
    """
    primaries: np.ndarray = field(default_factory=lambda: np.array(SRGB_PRIMARIES))
    inverse: np.ndarray = field(init=False, repr=False)

    def __post_init__(self):
        primaries = np.array(self.primaries, dtype=np.float64)
        if primaries.shape != (3, 3):
            raise ValueError(f"Primaries matrix must be 3x3, got shape {primaries.shape}")

        inverse = invert_matrix(primaries)
        primaries.setflags(write=False)
        inverse.setflags(write=False)

        object.__setattr__(self, 'primaries', primaries)
        object.__setattr__(self, 'inverse', inverse)
        logger.debug(f"Inverted primaries matrix:\n{inverse}")

    @classmethod
    def srgb(cls) -> 'ColorMatrix':
        """Matrix for the built-in linear sRGB primaries"""
        return cls(np.array(SRGB_PRIMARIES))

    @property
    def white(self) -> np.ndarray:
        """XYZ of linear RGB (1, 1, 1)"""
        return self.primaries.sum(axis=1)
