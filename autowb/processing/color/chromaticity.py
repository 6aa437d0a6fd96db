"""
Chromaticity statistics for illuminant estimation

Averages the CIE xy chromaticity of every pixel with a defined
chromaticity. Partial sums can be computed per row band and merged, which
lets the pipeline reduce them after a parallel first pass.
"""

import numpy as np
from typing import Iterable, Tuple
import logging
from dataclasses import dataclass

from autowb.exceptions import DegenerateChromaticityError

logger = logging.getLogger(__name__)


def chromaticity_coordinates(xyz: np.ndarray) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Compute x = X/(X+Y+Z) and y = Y/(X+Y+Z) per pixel

    Args:
        xyz: Array whose last axis holds X, Y, Z

    Returns:
        Tuple of (x, y, valid) where valid marks pixels with a non-zero
        tristimulus sum; x and y are 0 where valid is False
    """
    total = xyz.sum(axis=-1)
    valid = total != 0.0
    safe_total = np.where(valid, total, 1.0)

    x = np.where(valid, xyz[..., 0] / safe_total, 0.0)
    y = np.where(valid, xyz[..., 1] / safe_total, 0.0)
    return x, y, valid


@dataclass(frozen=True)
class ChromaticitySums:
    """Running sums of x, y and the number of contributing pixels"""
    sum_x: float = 0.0
    sum_y: float = 0.0
    count: int = 0
    total: int = 0

    @classmethod
    def from_xyz(cls, xyz: np.ndarray) -> 'ChromaticitySums':
        """Accumulate sums over a block of tristimulus values"""
        x, y, valid = chromaticity_coordinates(xyz)
        return cls(
            sum_x=float(x[valid].sum()),
            sum_y=float(y[valid].sum()),
            count=int(valid.sum()),
            total=int(valid.size),
        )

    def merge(self, other: 'ChromaticitySums') -> 'ChromaticitySums':
        """Combine with the sums of another block"""
        return ChromaticitySums(
            sum_x=self.sum_x + other.sum_x,
            sum_y=self.sum_y + other.sum_y,
            count=self.count + other.count,
            total=self.total + other.total,
        )

    @property
    def excluded(self) -> int:
        """Pixels skipped because their tristimulus sum is zero"""
        return self.total - self.count

    def mean(self) -> Tuple[float, float]:
        """
        Average chromaticity (avg_x, avg_y)

        Raises:
            DegenerateChromaticityError: If no pixel contributed
        """
        if self.count == 0:
            raise DegenerateChromaticityError(
                f"No pixel with a defined chromaticity among {self.total} pixels "
                "(image is entirely black)"
            )
        return self.sum_x / self.count, self.sum_y / self.count


def merge_sums(partials: Iterable[ChromaticitySums]) -> ChromaticitySums:
    """Reduce partial sums in iteration order"""
    result = ChromaticitySums()
    for partial in partials:
        result = result.merge(partial)
    return result


def average_chromaticity(xyz: np.ndarray) -> Tuple[float, float]:
    """Mean xy chromaticity of a full tristimulus buffer"""
    sums = ChromaticitySums.from_xyz(xyz)
    logger.debug(f"Chromaticity over {sums.count}/{sums.total} pixels")
    return sums.mean()
