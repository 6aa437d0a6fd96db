"""
Exception hierarchy for autowb

Every failure the correction run can report derives from
AutoWhiteBalanceError so callers can catch the whole family at once.
"""


class AutoWhiteBalanceError(Exception):
    """Base exception for white balance runs."""
    pass


class InputValidationError(AutoWhiteBalanceError):
    """Raised when a white point, gamma or image argument is malformed."""
    pass


class DecodeError(AutoWhiteBalanceError):
    """Raised when an input image is missing, unreadable or unsupported."""
    pass


class EncodeError(AutoWhiteBalanceError):
    """Raised when the corrected image cannot be written."""
    pass


class SingularMatrixError(AutoWhiteBalanceError):
    """Raised when a matrix inversion meets a zero pivot."""
    pass


class DegenerateChromaticityError(AutoWhiteBalanceError):
    """Raised when no pixel has a defined chromaticity (e.g. all black)."""
    pass
