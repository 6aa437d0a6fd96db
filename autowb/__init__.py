"""
autowb: Automatic white balance by chromaticity offset

Estimates the illuminant bias of an image from its average xy chromaticity
and removes it by shifting each pixel toward a target white point while
preserving luminance.
"""

__version__ = "0.1.0"

# Core imports for easy access
from .config import load_config, build_correction_settings
from .processing.color import CorrectionSettings, WhiteBalanceCorrector
from .processing.pipeline import AutoWhiteBalancePipeline

__all__ = [
    "load_config",
    "build_correction_settings",
    "CorrectionSettings",
    "WhiteBalanceCorrector",
    "AutoWhiteBalancePipeline",
]
