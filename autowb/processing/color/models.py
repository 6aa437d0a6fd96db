"""
Data models for the white balance pipeline.
"""

import math
from dataclasses import dataclass, field
from typing import Tuple

from autowb.exceptions import InputValidationError
from .matrix import ColorMatrix

# CIE 1931 2 degree chromaticity of illuminant D65
D65_WHITE_POINT = (0.3127, 0.3290)
DEFAULT_GAMMA = 2.2


def validate_white_point(white_point) -> Tuple[float, float]:
    """Check an (x, y) pair and return it as floats"""
    try:
        x, y = (float(v) for v in white_point)
    except (TypeError, ValueError):
        raise InputValidationError(
            f"White point must be two numbers x,y, got {white_point!r}"
        )

    if not (math.isfinite(x) and math.isfinite(y)):
        raise InputValidationError(f"White point must be finite, got ({x}, {y})")
    if not (0.0 <= x <= 1.0 and 0.0 < y <= 1.0):
        raise InputValidationError(
            f"White point coordinates must lie in [0, 1] with y > 0, got ({x}, {y})"
        )
    if x + y > 1.0:
        raise InputValidationError(f"White point x + y must not exceed 1, got ({x}, {y})")
    return x, y


def validate_gamma(gamma) -> float:
    """Check a gamma exponent and return it as a float"""
    try:
        value = float(gamma)
    except (TypeError, ValueError):
        raise InputValidationError(f"Gamma must be a number, got {gamma!r}")

    if not math.isfinite(value) or value <= 0:
        raise InputValidationError(f"Gamma must be a positive number, got {gamma}")
    return value


@dataclass(frozen=True)
class CorrectionSettings:
    """
    Immutable parameters of one correction run.

    Built once before any pixel is processed and shared read-only by all
    workers.
    """
    white_point: Tuple[float, float] = D65_WHITE_POINT
    gamma: float = DEFAULT_GAMMA
    matrix: ColorMatrix = field(default_factory=ColorMatrix.srgb)

    def __post_init__(self):
        object.__setattr__(self, 'white_point', validate_white_point(self.white_point))
        object.__setattr__(self, 'gamma', validate_gamma(self.gamma))


@dataclass(frozen=True)
class WhiteBalanceAnalysis:
    """
    Measured illuminant bias of an image.

    The offset is what gets subtracted from every pixel's chromaticity.
    """
    average_x: float
    average_y: float
    white_point: Tuple[float, float]
    contributing_pixels: int
    total_pixels: int

    @property
    def offset(self) -> Tuple[float, float]:
        """(dx, dy) between measured average and target white point"""
        return (self.average_x - self.white_point[0],
                self.average_y - self.white_point[1])

    @property
    def excluded_pixels(self) -> int:
        return self.total_pixels - self.contributing_pixels

    def to_dict(self) -> dict:
        offset_x, offset_y = self.offset
        return {
            'average_chromaticity': [self.average_x, self.average_y],
            'white_point': list(self.white_point),
            'offset': [offset_x, offset_y],
            'contributing_pixels': self.contributing_pixels,
            'total_pixels': self.total_pixels,
        }
