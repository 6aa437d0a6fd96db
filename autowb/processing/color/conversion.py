"""
Color space conversion for the white balance pipeline

Power-law linearization of 8-bit samples and linear RGB <-> CIE XYZ
transforms. Scalar helpers mirror the per-pixel formulas; the
ColorSpaceConverter class applies the same math to whole numpy arrays.
"""

import numpy as np
from typing import Tuple
import logging

from .matrix import ColorMatrix, MatrixLike

logger = logging.getLogger(__name__)

SAMPLE_MAX = 255


def linearize(sample: int, gamma: float) -> float:
    """Gamma-encoded 8-bit sample -> linear value in [0, 1]"""
    if not 0 <= sample <= SAMPLE_MAX:
        raise ValueError(f"Sample must be in [0, {SAMPLE_MAX}], got {sample}")
    return (sample / float(SAMPLE_MAX)) ** gamma


def delinearize(value: float, gamma: float) -> int:
    """
    Linear value -> gamma-encoded 8-bit sample (truncated)

    The caller clamps the value to [0, 1] first.
    """
    if not 0.0 <= value <= 1.0:
        raise ValueError(f"Linear value must be clamped to [0, 1], got {value}")
    return int(value ** (1.0 / gamma) * SAMPLE_MAX)


def rgb_to_xyz(r: float, g: float, b: float, matrix: MatrixLike) -> Tuple[float, float, float]:
    """Linear RGB -> XYZ using the primaries matrix (rows X, Y, Z)"""
    m = np.asarray(matrix, dtype=np.float64)
    return (
        float(m[0, 0] * r + m[0, 1] * g + m[0, 2] * b),
        float(m[1, 0] * r + m[1, 1] * g + m[1, 2] * b),
        float(m[2, 0] * r + m[2, 1] * g + m[2, 2] * b),
    )


def xyz_to_rgb(x: float, y: float, z: float, inverse: MatrixLike) -> Tuple[float, float, float]:
    """XYZ -> linear RGB using the inverted primaries matrix"""
    return rgb_to_xyz(x, y, z, inverse)


class ColorSpaceConverter:
    """
    Vectorised conversions between 8-bit samples, linear RGB and XYZ

    All array methods take and return arrays whose last axis holds the
    three channels, so (N, 3) and (height, width, 3) inputs both work.
    """

    def __init__(self, matrix: ColorMatrix, gamma: float = 2.2):
        """
        Initialize converter

        Args:
            matrix: Primaries matrix with precomputed inverse
            gamma: Power-law exponent shared by both directions
        """
        self.matrix = matrix
        self.gamma = gamma

    def linearize(self, samples: np.ndarray) -> np.ndarray:
        """uint8 samples -> float64 linear values"""
        return np.power(samples.astype(np.float64) / SAMPLE_MAX, self.gamma)

    def delinearize(self, linear: np.ndarray) -> np.ndarray:
        """Clamped linear values -> truncated uint8 samples"""
        encoded = np.power(linear, 1.0 / self.gamma) * SAMPLE_MAX
        return encoded.astype(np.uint8)

    def rgb_to_xyz(self, linear_rgb: np.ndarray) -> np.ndarray:
        """Linear RGB -> XYZ tristimulus values"""
        return linear_rgb @ self.matrix.primaries.T

    def xyz_to_rgb(self, xyz: np.ndarray) -> np.ndarray:
        """XYZ tristimulus values -> linear RGB (unclamped)"""
        return xyz @ self.matrix.inverse.T

    def samples_to_xyz(self, rgb_samples: np.ndarray) -> np.ndarray:
        """Linearize 8-bit RGB samples and convert them to XYZ"""
        return self.rgb_to_xyz(self.linearize(rgb_samples))

    def xyz_to_samples(self, xyz: np.ndarray) -> np.ndarray:
        """Convert XYZ to linear RGB, clamp to [0, 1] and re-encode"""
        linear = np.clip(self.xyz_to_rgb(xyz), 0.0, 1.0)
        return self.delinearize(linear)
