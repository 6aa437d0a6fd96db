"""
Color processing modules for autowb

Includes matrix inversion, color space conversion, chromaticity statistics
and the white balance corrector.
"""

from .matrix import ColorMatrix, invert_matrix, SRGB_PRIMARIES
from .conversion import ColorSpaceConverter, linearize, delinearize, rgb_to_xyz, xyz_to_rgb
from .chromaticity import ChromaticitySums, average_chromaticity, chromaticity_coordinates, merge_sums
from .models import CorrectionSettings, WhiteBalanceAnalysis, D65_WHITE_POINT, DEFAULT_GAMMA
from .white_balance import WhiteBalanceCorrector

__all__ = [
    "ColorMatrix",
    "invert_matrix",
    "SRGB_PRIMARIES",
    "ColorSpaceConverter",
    "linearize",
    "delinearize",
    "rgb_to_xyz",
    "xyz_to_rgb",
    "ChromaticitySums",
    "average_chromaticity",
    "chromaticity_coordinates",
    "merge_sums",
    "CorrectionSettings",
    "WhiteBalanceAnalysis",
    "D65_WHITE_POINT",
    "DEFAULT_GAMMA",
    "WhiteBalanceCorrector",
]
