"""
Raster file I/O for autowb
Decodes image files into stride-aware pixel buffers and encodes corrected
buffers back to disk with Pillow
"""

import io
from pathlib import Path
from typing import Optional, Tuple, Union
import logging
from dataclasses import dataclass

import numpy as np
from PIL import Image, UnidentifiedImageError

from autowb.exceptions import DecodeError, EncodeError

logger = logging.getLogger(__name__)

# Pillow format name -> extension of the written file
FORMAT_EXTENSIONS = {
    'JPEG': '.jpg',
    'PNG': '.png',
    'GIF': '.gif',
    'BMP': '.bmp',
    'TIFF': '.tif',
}
DEFAULT_FORMAT = 'PNG'
OUTPUT_SUFFIX = '_awb'

# Formats Pillow cannot write with an alpha channel
_NO_ALPHA_FORMATS = {'JPEG'}

PathLike = Union[str, Path]


class PixelBuffer:
    """
    8-bit interleaved pixel buffer with explicit row stride

    Rows may be padded: each row starts `stride` bytes after the previous
    one and only the first width * bytes_per_pixel bytes of a row are pixel
    data. channel_order names the byte order of a pixel, e.g. "RGB",
    "RGBA" or "BGRA".
    """

    def __init__(self, width: int, height: int, data: Union[bytes, bytearray],
                 channel_order: str = 'RGBA', stride: Optional[int] = None):
        channel_order = channel_order.upper()
        if sorted(channel_order.replace('A', '')) != ['B', 'G', 'R'] or channel_order.count('A') > 1:
            raise ValueError(f"Unsupported channel order: {channel_order}")
        if width <= 0 or height <= 0:
            raise ValueError(f"Image dimensions must be positive, got {width}x{height}")

        self.width = width
        self.height = height
        self.channel_order = channel_order
        self.bytes_per_pixel = len(channel_order)
        self.stride = stride if stride is not None else width * self.bytes_per_pixel

        if self.stride < self.row_bytes:
            raise ValueError(f"Stride {self.stride} is shorter than a row ({self.row_bytes} bytes)")
        if len(data) != self.stride * height:
            raise ValueError(
                f"Buffer holds {len(data)} bytes, expected {self.stride * height} "
                f"({height} rows of stride {self.stride})"
            )
        self.data = bytearray(data)

    @classmethod
    def from_array(cls, pixels: np.ndarray, channel_order: str = 'RGBA') -> 'PixelBuffer':
        """Wrap a (height, width, channels) uint8 array"""
        height, width, channels = pixels.shape
        if channels != len(channel_order):
            raise ValueError(f"{channels} channels do not match order {channel_order}")
        data = np.ascontiguousarray(pixels, dtype=np.uint8).tobytes()
        return cls(width, height, data, channel_order)

    @property
    def row_bytes(self) -> int:
        return self.width * self.bytes_per_pixel

    @property
    def has_alpha(self) -> bool:
        return 'A' in self.channel_order

    def _channel_indices(self, channels: str) -> list:
        return [self.channel_order.index(c) for c in channels]

    def _check_bounds(self, row: int, col: int):
        if not (0 <= row < self.height and 0 <= col < self.width):
            raise IndexError(f"Pixel ({row}, {col}) outside {self.width}x{self.height} image")

    def offset(self, row: int, col: int) -> int:
        """Byte offset of the first sample of a pixel"""
        self._check_bounds(row, col)
        return row * self.stride + col * self.bytes_per_pixel

    def get_pixel(self, row: int, col: int) -> Tuple[int, int, int]:
        """(R, G, B) samples of one pixel"""
        start = self.offset(row, col)
        return tuple(self.data[start + i] for i in self._channel_indices('RGB'))

    def set_pixel(self, row: int, col: int, rgb: Tuple[int, int, int], alpha: int = 255):
        """Write one pixel; alpha is ignored for buffers without an alpha channel"""
        start = self.offset(row, col)
        for index, value in zip(self._channel_indices('RGB'), rgb):
            self.data[start + index] = value
        if self.has_alpha:
            self.data[start + self.channel_order.index('A')] = alpha

    def view(self) -> np.ndarray:
        """(height, width, bytes_per_pixel) view sharing this buffer's memory"""
        rows = np.frombuffer(self.data, dtype=np.uint8).reshape(self.height, self.stride)
        return rows[:, :self.row_bytes].reshape(self.height, self.width, self.bytes_per_pixel)

    def rgb_rows(self, start: int = 0, stop: Optional[int] = None) -> np.ndarray:
        """Copy of the R, G, B samples of rows [start, stop) in RGB order"""
        return self.view()[start:stop][..., self._channel_indices('RGB')]

    def rgba_array(self) -> np.ndarray:
        """Contiguous (height, width, 4) copy in RGBA order"""
        pixels = self.view()
        rgba = np.full((self.height, self.width, 4), 255, dtype=np.uint8)
        rgba[..., :3] = pixels[..., self._channel_indices('RGB')]
        if self.has_alpha:
            rgba[..., 3] = pixels[..., self.channel_order.index('A')]
        return rgba

    def with_alpha_order(self) -> str:
        """Channel order of an output buffer for this input"""
        return self.channel_order if self.has_alpha else self.channel_order + 'A'

    def __repr__(self):
        return (f"PixelBuffer({self.width}x{self.height}, {self.channel_order}, "
                f"stride={self.stride})")


@dataclass
class DecodedImage:
    """Pixels and detected file format of a decoded image"""
    buffer: PixelBuffer
    source_format: Optional[str]


def output_format(source_format: Optional[str]) -> str:
    """Format to write for a given source format, PNG when unknown"""
    if source_format in FORMAT_EXTENSIONS:
        return source_format
    return DEFAULT_FORMAT


def default_output_name(input_path: PathLike, suffix: str = OUTPUT_SUFFIX) -> str:
    """<input-stem>_awb<input-ext>"""
    input_path = Path(input_path)
    return f"{input_path.stem}{suffix}{input_path.suffix}"


def resolve_output_path(input_path: PathLike, output_name: Optional[str],
                        source_format: Optional[str],
                        suffix: str = OUTPUT_SUFFIX) -> Path:
    """
    Final path of the corrected image

    The extension always follows the written format. A bare file name is
    placed next to the input file; a name with a directory part is kept.

    Args:
        input_path: Path of the source image
        output_name: Requested output file name (None for the default)
        source_format: Detected format of the source image
        suffix: Stem suffix used for the default name
    """
    input_path = Path(input_path)
    requested = Path(output_name or default_output_name(input_path, suffix))
    folder = requested.parent if requested.parent != Path('.') else input_path.parent
    extension = FORMAT_EXTENSIONS[output_format(source_format)]
    return folder / (requested.stem + extension)


def decode(path: PathLike) -> DecodedImage:
    """
    Load an image file into an RGB or RGBA pixel buffer

    Raises:
        DecodeError: If the file is missing, unreadable or not an image
    """
    path = Path(path)
    if not path.is_file():
        raise DecodeError(f"The file specified does not exist: {path}")

    try:
        with Image.open(path) as image:
            image.load()
            source_format = image.format
            has_alpha = 'A' in image.getbands() or 'transparency' in image.info
            mode = 'RGBA' if has_alpha else 'RGB'
            converted = image.convert(mode)
            width, height = converted.size
            data = converted.tobytes()
    except UnidentifiedImageError as e:
        raise DecodeError(f"The file format is not supported: {path}") from e
    except (OSError, ValueError) as e:
        raise DecodeError(f"Failed to read image {path}: {e}") from e

    logger.debug(f"Decoded {path} ({source_format}, {width}x{height}, {mode})")
    return DecodedImage(PixelBuffer(width, height, data, mode), source_format)


def encode(buffer: PixelBuffer, target_format: Optional[str], path: PathLike,
           jpeg_quality: int = 95) -> Path:
    """
    Write a pixel buffer to disk

    The image is rendered in memory first so a failed encode leaves no
    partial file behind.

    Raises:
        EncodeError: If rendering or writing fails
    """
    path = Path(path)
    fmt = output_format(target_format)

    image = Image.fromarray(buffer.rgba_array())
    if fmt in _NO_ALPHA_FORMATS:
        image = image.convert('RGB')

    save_kwargs = {'quality': jpeg_quality} if fmt == 'JPEG' else {}
    rendered = io.BytesIO()
    try:
        image.save(rendered, format=fmt, **save_kwargs)
        path.write_bytes(rendered.getvalue())
    except (OSError, ValueError, KeyError) as e:
        raise EncodeError(f"Failed to write {path}: {e}") from e

    logger.debug(f"Encoded {buffer!r} as {fmt} to {path}")
    return path
