"""
Two-pass auto white balance pipeline for autowb.

Pass 1 maps row bands to tristimulus values and partial chromaticity sums,
the sums are reduced into one global offset, and pass 2 maps the bands to
corrected pixels. The reduction is a hard barrier between the passes.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple
import os

import numpy as np

from autowb.io.raster import PixelBuffer, decode, encode, resolve_output_path, OUTPUT_SUFFIX
from autowb.processing.color import (
    ChromaticitySums, CorrectionSettings, WhiteBalanceAnalysis,
    WhiteBalanceCorrector, merge_sums
)
from autowb.utils.logging import StructuredLogger

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    """Outcome of one correction run."""
    buffer: PixelBuffer
    analysis: WhiteBalanceAnalysis
    output_path: Optional[Path] = None
    written: bool = False
    source_format: Optional[str] = None
    elapsed_seconds: float = 0.0


class AutoWhiteBalancePipeline:
    """
    Fork-join white balance over row bands.

    Every band is processed independently in both passes; only the global
    offset computed between the passes is shared. Output is identical for
    any worker count because partial sums are merged in band order.
    """

    def __init__(self, settings: Optional[CorrectionSettings] = None,
                 max_workers: Optional[int] = None,
                 band_rows: int = 256,
                 output_suffix: str = OUTPUT_SUFFIX,
                 jpeg_quality: int = 95):
        """
        Initialize the pipeline.

        Args:
            settings: Immutable correction parameters for every run
            max_workers: Worker threads (default: CPU count)
            band_rows: Image rows per work unit
            output_suffix: Stem suffix of default output names
            jpeg_quality: Quality used when re-encoding JPEG input
        """
        if band_rows <= 0:
            raise ValueError(f"band_rows must be positive, got {band_rows}")
        if max_workers is not None and max_workers <= 0:
            raise ValueError(f"max_workers must be positive, got {max_workers}")

        self.settings = settings or CorrectionSettings()
        self.corrector = WhiteBalanceCorrector(self.settings)
        self.max_workers = max_workers or os.cpu_count() or 1
        self.band_rows = band_rows
        self.output_suffix = output_suffix
        self.jpeg_quality = jpeg_quality

        self.log = StructuredLogger(__name__, {
            'white_point': list(self.settings.white_point),
            'gamma': self.settings.gamma,
        })

    def _bands(self, height: int) -> List[Tuple[int, int]]:
        return [(start, min(start + self.band_rows, height))
                for start in range(0, height, self.band_rows)]

    def _map(self, func, items: list) -> list:
        if self.max_workers == 1 or len(items) == 1:
            return [func(item) for item in items]
        with ThreadPoolExecutor(max_workers=self.max_workers,
                                thread_name_prefix="autowb-band") as executor:
            return list(executor.map(func, items))

    def analyze(self, buffer: PixelBuffer) -> WhiteBalanceAnalysis:
        """Run pass 1 only and return the measured offset."""
        analysis, _ = self._measure(buffer)
        return analysis

    def _measure(self, buffer: PixelBuffer) -> Tuple[WhiteBalanceAnalysis, list]:
        converter = self.corrector.converter

        def tristimulus(band):
            start, stop = band
            rgb = buffer.rgb_rows(start, stop)
            xyz = converter.samples_to_xyz(rgb)
            logger.debug(f"Pass 1 rows {start}-{stop}")
            return rgb, xyz, ChromaticitySums.from_xyz(xyz)

        bands = self._bands(buffer.height)
        measured = self._map(tristimulus, bands)

        # barrier: the offset needs every pixel
        sums = merge_sums(partial for _, _, partial in measured)
        analysis = self.corrector.analyze_white_balance(sums)
        return analysis, list(zip(bands, measured))

    def process_buffer(self, buffer: PixelBuffer) -> Tuple[PixelBuffer, WhiteBalanceAnalysis]:
        """
        Correct a pixel buffer.

        Returns:
            Tuple of (new buffer with opaque alpha in the input's byte order,
            analysis)

        Raises:
            DegenerateChromaticityError: If the image is entirely black
        """
        analysis, measured = self._measure(buffer)

        def correct(item):
            (start, stop), (rgb, xyz, _) = item
            logger.debug(f"Pass 2 rows {start}-{stop}")
            return self.corrector.correct_white_balance(xyz, rgb, analysis)

        corrected = np.concatenate(self._map(correct, measured), axis=0)

        order = buffer.with_alpha_order()
        out = np.empty(corrected.shape, dtype=np.uint8)
        for index, channel in enumerate('RGBA'):
            out[..., order.index(channel)] = corrected[..., index]
        return PixelBuffer.from_array(out, order), analysis

    def process_file(self, input_path, output_name: Optional[str] = None,
                     dry_run: bool = False) -> PipelineResult:
        """
        Decode, correct and re-encode one image file.

        Args:
            input_path: Source image
            output_name: Output file name (default <stem>_awb<ext>)
            dry_run: Measure and correct but do not write the file;
                the result still carries the path that would be written

        Raises:
            DecodeError, DegenerateChromaticityError, EncodeError
        """
        started = time.time()
        input_path = Path(input_path)
        x, y = self.settings.white_point
        logger.info(f"Processing image at {input_path} with white point coordinates ({x}, {y}).")

        decoded = decode(input_path)
        buffer, analysis = self.process_buffer(decoded.buffer)
        output_path = resolve_output_path(input_path, output_name,
                                          decoded.source_format, self.output_suffix)

        if not dry_run:
            encode(buffer, decoded.source_format, output_path, self.jpeg_quality)
            logger.info(f"Image saved to {output_path}")

        elapsed = time.time() - started
        self.log.info("White balance run complete",
                      input=str(input_path),
                      size=f"{buffer.width}x{buffer.height}",
                      average=[analysis.average_x, analysis.average_y],
                      offset=list(analysis.offset),
                      excluded_pixels=analysis.excluded_pixels,
                      elapsed=round(elapsed, 3))

        return PipelineResult(
            buffer=buffer,
            analysis=analysis,
            output_path=output_path,
            written=not dry_run,
            source_format=decoded.source_format,
            elapsed_seconds=elapsed,
        )
