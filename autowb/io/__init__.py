"""
Image file input/output for autowb.
"""

from .raster import PixelBuffer, DecodedImage, decode, encode, resolve_output_path

__all__ = ['PixelBuffer', 'DecodedImage', 'decode', 'encode', 'resolve_output_path']
