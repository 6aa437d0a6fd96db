"""
Tests for the two-pass white balance pipeline.
"""

import json
import logging

import pytest
import numpy as np
from PIL import Image

from autowb.exceptions import DecodeError, DegenerateChromaticityError
from autowb.io.raster import PixelBuffer, decode
from autowb.processing.color import CorrectionSettings, ColorMatrix, linearize, rgb_to_xyz
from autowb.processing.pipeline import AutoWhiteBalancePipeline

RED, GREEN, BLUE, WHITE = (255, 0, 0), (0, 255, 0), (0, 0, 255), (255, 255, 255)


@pytest.fixture
def primaries_image():
    """2x2 image holding red, green, blue and white."""
    return np.array([[RED, GREEN], [BLUE, WHITE]], dtype=np.uint8)


@pytest.fixture
def cast_image():
    """Larger image with a blue cast."""
    rng = np.random.default_rng(5)
    image = rng.integers(30, 180, size=(37, 23, 3)).astype(np.uint8)
    image[..., 2] = np.minimum(image[..., 2].astype(int) + 60, 255)
    return image


def _expected_average(pixels, gamma=2.2):
    """Average chromaticity from the scalar helpers, independent of the pipeline."""
    xs, ys = [], []
    for r, g, b in pixels:
        x, y, z = rgb_to_xyz(linearize(r, gamma), linearize(g, gamma), linearize(b, gamma),
                             ColorMatrix.srgb().primaries)
        total = x + y + z
        if total:
            xs.append(x / total)
            ys.append(y / total)
    return sum(xs) / len(xs), sum(ys) / len(ys)


class TestPrimariesScenario:
    """Test the red/green/blue/white scenario at gamma 2.2 and D65."""

    def test_average_chromaticity(self, primaries_image):
        pipeline = AutoWhiteBalancePipeline(max_workers=1)
        analysis = pipeline.analyze(PixelBuffer.from_array(primaries_image, 'RGB'))

        expected = _expected_average([RED, GREEN, BLUE, WHITE])
        assert (analysis.average_x, analysis.average_y) == pytest.approx(expected, abs=1e-12)
        assert analysis.offset == pytest.approx(
            (expected[0] - 0.3127, expected[1] - 0.3290), abs=1e-12)

    def test_repeated_runs_identical(self, primaries_image):
        """Test repeated runs produce byte-identical output."""
        buffer = PixelBuffer.from_array(primaries_image, 'RGB')
        first, _ = AutoWhiteBalancePipeline(max_workers=1).process_buffer(buffer)
        second, _ = AutoWhiteBalancePipeline(max_workers=1).process_buffer(buffer)
        assert first.data == second.data

    def test_white_pixel(self, primaries_image):
        """Test white keeps saturated green/blue and loses red to the warm offset."""
        result, _ = AutoWhiteBalancePipeline(max_workers=1).process_buffer(
            PixelBuffer.from_array(primaries_image, 'RGB'))

        r, g, b = result.get_pixel(1, 1)
        assert (g, b) == (255, 255)
        assert r < 255

    def test_output_gains_alpha(self, primaries_image):
        result, _ = AutoWhiteBalancePipeline(max_workers=1).process_buffer(
            PixelBuffer.from_array(primaries_image, 'RGB'))
        assert result.channel_order == 'RGBA'
        assert np.all(result.view()[..., 3] == 255)


class TestPipelineExecution:
    """Test banding, worker pools and buffer layouts."""

    def test_worker_count_does_not_change_output(self, cast_image):
        buffer = PixelBuffer.from_array(cast_image, 'RGB')
        serial, serial_analysis = AutoWhiteBalancePipeline(max_workers=1, band_rows=5).process_buffer(buffer)
        parallel, parallel_analysis = AutoWhiteBalancePipeline(max_workers=4, band_rows=5).process_buffer(buffer)

        assert serial.data == parallel.data
        assert serial_analysis == parallel_analysis

    def test_bands_match_corrector(self, cast_image):
        """Test the banded pipeline agrees with the single-pass corrector."""
        pipeline = AutoWhiteBalancePipeline(max_workers=2, band_rows=8)
        result, analysis = pipeline.process_buffer(PixelBuffer.from_array(cast_image, 'RGB'))
        direct, direct_analysis = pipeline.corrector.process_image(cast_image)

        assert analysis.average_x == pytest.approx(direct_analysis.average_x, abs=1e-12)
        diff = np.abs(result.view().astype(int) - direct.astype(int))
        assert diff.max() <= 1

    def test_padded_stride(self, cast_image):
        """Test row padding is skipped when reading pixels."""
        height, width, _ = cast_image.shape
        stride = width * 3 + 5
        padded = np.full((height, stride), 77, dtype=np.uint8)
        padded[:, :width * 3] = cast_image.reshape(height, width * 3)

        pipeline = AutoWhiteBalancePipeline(max_workers=1)
        padded_result, _ = pipeline.process_buffer(
            PixelBuffer(width, height, padded.tobytes(), 'RGB', stride=stride))
        plain_result, _ = pipeline.process_buffer(PixelBuffer.from_array(cast_image, 'RGB'))

        assert padded_result.data == plain_result.data

    def test_bgra_layout(self, cast_image):
        """Test BGRA input is corrected and written back as BGRA."""
        height, width, _ = cast_image.shape
        bgra = np.empty((height, width, 4), dtype=np.uint8)
        bgra[..., 0] = cast_image[..., 2]
        bgra[..., 1] = cast_image[..., 1]
        bgra[..., 2] = cast_image[..., 0]
        bgra[..., 3] = 10

        pipeline = AutoWhiteBalancePipeline(max_workers=1)
        bgra_result, _ = pipeline.process_buffer(PixelBuffer.from_array(bgra, 'BGRA'))
        rgb_result, _ = pipeline.process_buffer(PixelBuffer.from_array(cast_image, 'RGB'))

        assert bgra_result.channel_order == 'BGRA'
        np.testing.assert_array_equal(bgra_result.rgba_array(), rgb_result.rgba_array())

    def test_all_black(self):
        pipeline = AutoWhiteBalancePipeline(max_workers=2, band_rows=1)
        with pytest.raises(DegenerateChromaticityError):
            pipeline.process_buffer(PixelBuffer.from_array(np.zeros((3, 3, 3), dtype=np.uint8), 'RGB'))

    def test_invalid_band_rows(self):
        with pytest.raises(ValueError):
            AutoWhiteBalancePipeline(band_rows=0)


class TestProcessFile:
    """Test decode -> correct -> encode runs."""

    def test_png_round_trip(self, tmp_path, cast_image):
        source = tmp_path / "scene.png"
        Image.fromarray(cast_image).save(source)

        result = AutoWhiteBalancePipeline(max_workers=1).process_file(source)

        assert result.output_path == tmp_path / "scene_awb.png"
        assert result.output_path.exists()
        assert result.written
        assert result.source_format == 'PNG'
        written = decode(result.output_path).buffer
        np.testing.assert_array_equal(written.rgba_array(), result.buffer.rgba_array())

    def test_extension_follows_format(self, tmp_path, cast_image):
        """Test the written extension comes from the source format."""
        source = tmp_path / "scene.jpeg"
        Image.fromarray(cast_image).save(source, format='JPEG')

        result = AutoWhiteBalancePipeline(max_workers=1).process_file(source, output_name="fixed.png")

        assert result.output_path == tmp_path / "fixed.jpg"
        with Image.open(result.output_path) as image:
            assert image.format == 'JPEG'
            assert image.mode == 'RGB'

    def test_custom_settings(self, tmp_path, cast_image):
        source = tmp_path / "scene.png"
        Image.fromarray(cast_image).save(source)
        settings = CorrectionSettings(white_point=(0.3457, 0.3585), gamma=1.8)

        result = AutoWhiteBalancePipeline(settings, max_workers=1).process_file(source)
        assert result.analysis.white_point == (0.3457, 0.3585)

    def test_dry_run_writes_nothing(self, tmp_path, cast_image):
        source = tmp_path / "scene.png"
        Image.fromarray(cast_image).save(source)

        result = AutoWhiteBalancePipeline(max_workers=1).process_file(source, dry_run=True)

        assert not result.written
        assert result.output_path == tmp_path / "scene_awb.png"
        assert sorted(p.name for p in tmp_path.iterdir()) == ["scene.png"]

    def test_run_record_includes_average(self, tmp_path, cast_image, caplog):
        """Test the INFO run record carries the measured average chromaticity."""
        source = tmp_path / "scene.png"
        Image.fromarray(cast_image).save(source)

        with caplog.at_level(logging.INFO, logger="autowb.processing.pipeline"):
            result = AutoWhiteBalancePipeline(max_workers=1).process_file(source)

        records = [r for r in caplog.records if r.getMessage().startswith("White balance run complete")]
        assert len(records) == 1
        assert records[0].levelno == logging.INFO
        metadata = json.loads(records[0].getMessage().split(" | ", 1)[1])
        assert metadata['average'] == pytest.approx(
            [result.analysis.average_x, result.analysis.average_y])
        assert metadata['offset'] == pytest.approx(list(result.analysis.offset))

    def test_missing_file(self, tmp_path):
        with pytest.raises(DecodeError):
            AutoWhiteBalancePipeline().process_file(tmp_path / "missing.png")

    def test_black_image_writes_nothing(self, tmp_path):
        source = tmp_path / "black.png"
        Image.fromarray(np.zeros((4, 4, 3), dtype=np.uint8)).save(source)

        with pytest.raises(DegenerateChromaticityError):
            AutoWhiteBalancePipeline(max_workers=1).process_file(source)
        assert not (tmp_path / "black_awb.png").exists()
