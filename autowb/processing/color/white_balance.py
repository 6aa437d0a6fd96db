"""
White balance correction module for autowb

Estimates the illuminant bias from the image's average xy chromaticity and
removes it by shifting every pixel's chromaticity toward the target white
point while holding luminance (Y) fixed.
"""

import numpy as np
from typing import Optional, Tuple
import logging

from .chromaticity import ChromaticitySums, chromaticity_coordinates
from .conversion import ColorSpaceConverter
from .models import CorrectionSettings, WhiteBalanceAnalysis

logger = logging.getLogger(__name__)

OPAQUE = 255


class WhiteBalanceCorrector:
    """
    Chromaticity-offset white balance correction

    Usage is two passes with a barrier in between: analyze() needs the
    tristimulus values of every pixel, correct() can then run on any
    subset of pixels independently.
    """

    def __init__(self, settings: Optional[CorrectionSettings] = None):
        """
        Initialize white balance corrector

        Args:
            settings: White point, gamma and primaries for the run
        """
        self.settings = settings or CorrectionSettings()
        self.converter = ColorSpaceConverter(self.settings.matrix, self.settings.gamma)

    def analyze_white_balance(self, sums: ChromaticitySums) -> WhiteBalanceAnalysis:
        """
        Derive the global chromaticity offset from accumulated statistics

        Raises:
            DegenerateChromaticityError: If no pixel had a defined chromaticity
        """
        average_x, average_y = sums.mean()
        analysis = WhiteBalanceAnalysis(
            average_x=average_x,
            average_y=average_y,
            white_point=self.settings.white_point,
            contributing_pixels=sums.count,
            total_pixels=sums.total,
        )
        logger.debug(f"Average chromaticity ({average_x:.5f}, {average_y:.5f}), "
                     f"offset ({analysis.offset[0]:.5f}, {analysis.offset[1]:.5f})")
        return analysis

    def shift_chromaticity(self, xyz: np.ndarray,
                           analysis: WhiteBalanceAnalysis) -> Tuple[np.ndarray, np.ndarray]:
        """
        Move each pixel's chromaticity by the global offset, keeping Y

        Args:
            xyz: Tristimulus values, last axis X, Y, Z
            analysis: Result of analyze_white_balance()

        Returns:
            Tuple of (corrected XYZ, passthrough mask). Pixels in the mask
            had no defined chromaticity, a shifted y of zero or a
            non-finite reconstruction; their XYZ is returned unchanged.
        """
        offset_x, offset_y = analysis.offset
        x, y, valid = chromaticity_coordinates(xyz)
        luminance = xyz[..., 1]

        x_shifted = x - offset_x
        y_shifted = y - offset_y
        usable = valid & (y_shifted != 0.0)
        safe_y = np.where(usable, y_shifted, 1.0)

        corrected = np.empty_like(xyz)
        with np.errstate(over='ignore', invalid='ignore'):
            corrected[..., 0] = x_shifted / safe_y * luminance
            corrected[..., 1] = luminance
            corrected[..., 2] = (1.0 - x_shifted - y_shifted) / safe_y * luminance

        usable &= np.isfinite(corrected).all(axis=-1)
        passthrough = ~usable
        corrected[passthrough] = xyz[passthrough]
        return corrected, passthrough

    def correct_white_balance(self, xyz: np.ndarray, source_rgb: np.ndarray,
                              analysis: WhiteBalanceAnalysis) -> np.ndarray:
        """
        Apply the correction to a block of pixels

        Args:
            xyz: Tristimulus values of the block, shape (..., 3)
            source_rgb: Original uint8 RGB samples of the same block
            analysis: Result of analyze_white_balance()

        Returns:
            uint8 array of shape (..., 4) holding corrected R, G, B and an
            opaque alpha
        """
        corrected_xyz, passthrough = self.shift_chromaticity(xyz, analysis)

        output = np.empty(xyz.shape[:-1] + (4,), dtype=np.uint8)
        output[..., :3] = self.converter.xyz_to_samples(corrected_xyz)
        output[..., :3][passthrough] = source_rgb[passthrough]
        output[..., 3] = OPAQUE

        if passthrough.any():
            logger.debug(f"{int(passthrough.sum())} pixels passed through unmodified")
        return output

    def process_image(self, rgb: np.ndarray) -> Tuple[np.ndarray, WhiteBalanceAnalysis]:
        """
        Single-threaded convenience wrapper over both passes

        Args:
            rgb: uint8 array of shape (height, width, 3)

        Returns:
            Tuple of (corrected RGBA image, analysis)
        """
        xyz = self.converter.samples_to_xyz(rgb)
        analysis = self.analyze_white_balance(ChromaticitySums.from_xyz(xyz))
        return self.correct_white_balance(xyz, rgb, analysis), analysis
