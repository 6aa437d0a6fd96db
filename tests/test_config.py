"""
Tests for configuration loading and run settings.
"""

import math

import pytest
import yaml

from autowb.config import (
    DEFAULT_CONFIG_PATH, build_correction_settings, build_pipeline_options,
    get_config_value, get_default_config, load_config, parse_white_point
)
from autowb.exceptions import InputValidationError, SingularMatrixError
from autowb.processing.color import CorrectionSettings


class TestLoadConfig:
    """Test YAML configuration loading."""

    def test_bundled_config_matches_defaults(self):
        assert DEFAULT_CONFIG_PATH.exists()
        assert load_config() == get_default_config()

    def test_missing_file_uses_defaults(self, tmp_path):
        assert load_config(tmp_path / "absent.yaml") == get_default_config()

    def test_partial_file_is_merged(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(yaml.dump({'white_balance': {'gamma': 1.8}}))

        config = load_config(path)

        assert config['white_balance']['gamma'] == 1.8
        assert config['white_balance']['white_point'] == [0.3127, 0.3290]
        assert config['processing']['band_rows'] == 256

    def test_env_expansion(self, tmp_path, monkeypatch):
        monkeypatch.setenv("AWB_GAMMA", "2.4")
        path = tmp_path / "config.yaml"
        path.write_text("white_balance:\n  gamma: ${AWB_GAMMA}\n")

        config = load_config(path)

        assert config['white_balance']['gamma'] == "2.4"
        assert build_correction_settings(config).gamma == 2.4

    def test_broken_yaml_uses_defaults(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("white_balance: [unclosed\n")
        assert load_config(path) == get_default_config()

    def test_get_config_value(self):
        config = get_default_config()
        assert get_config_value(config, 'output.suffix') == '_awb'
        assert get_config_value(config, 'output.missing', 'fallback') == 'fallback'


class TestParseWhitePoint:
    """Test the x,y command line form."""

    def test_valid(self):
        assert parse_white_point("0.3457, 0.3585") == (0.3457, 0.3585)

    @pytest.mark.parametrize("text", ["0.3", "0.3,0.3,0.3", "a,b", ""])
    def test_invalid(self, text):
        with pytest.raises(InputValidationError):
            parse_white_point(text)


class TestCorrectionSettings:
    """Test validation of run settings."""

    def test_defaults(self):
        settings = build_correction_settings(get_default_config())
        assert settings.white_point == (0.3127, 0.3290)
        assert settings.gamma == 2.2

    def test_overrides_win(self):
        settings = build_correction_settings(get_default_config(),
                                             white_point=(0.31, 0.32), gamma=1.0)
        assert settings.white_point == (0.31, 0.32)
        assert settings.gamma == 1.0

    @pytest.mark.parametrize("gamma", [0, -1.5, math.nan, math.inf, "abc"])
    def test_invalid_gamma(self, gamma):
        with pytest.raises(InputValidationError):
            CorrectionSettings(gamma=gamma)

    @pytest.mark.parametrize("white_point", [
        (1.2, 0.3), (0.3, 0.0), (0.6, 0.5), (-0.1, 0.3), (0.3,), (math.nan, 0.3), "xy",
    ])
    def test_invalid_white_point(self, white_point):
        with pytest.raises(InputValidationError):
            CorrectionSettings(white_point=white_point)

    def test_singular_primaries(self):
        config = get_default_config()
        config['white_balance']['primaries'] = [[1, 0, 0], [0, 0, 0], [0, 0, 1]]
        with pytest.raises(SingularMatrixError):
            build_correction_settings(config)

    def test_malformed_primaries(self):
        config = get_default_config()
        config['white_balance']['primaries'] = [[1, 0], [0, 1]]
        with pytest.raises(InputValidationError):
            build_correction_settings(config)


class TestPipelineOptions:
    """Test coercion and validation of processing and output values."""

    def test_defaults(self):
        options = build_pipeline_options(get_default_config())
        assert options == {
            'max_workers': None,
            'band_rows': 256,
            'output_suffix': '_awb',
            'jpeg_quality': 95,
        }

    def test_env_expanded_values_are_integers(self, tmp_path, monkeypatch):
        monkeypatch.setenv("AWB_WORKERS", "2")
        monkeypatch.setenv("AWB_BAND_ROWS", "64")
        path = tmp_path / "config.yaml"
        path.write_text("processing:\n  workers: ${AWB_WORKERS}\n  band_rows: ${AWB_BAND_ROWS}\n")

        options = build_pipeline_options(load_config(path))

        assert options['max_workers'] == 2
        assert options['band_rows'] == 64

    @pytest.mark.parametrize("key,value", [
        ('band_rows', 0), ('band_rows', -3), ('workers', 0), ('workers', "many"), ('workers', "1.5"),
    ])
    def test_invalid_processing_values(self, key, value):
        config = get_default_config()
        config['processing'][key] = value
        with pytest.raises(InputValidationError):
            build_pipeline_options(config)

    @pytest.mark.parametrize("quality", [0, 101, "high"])
    def test_invalid_jpeg_quality(self, quality):
        config = get_default_config()
        config['output']['jpeg_quality'] = quality
        with pytest.raises(InputValidationError):
            build_pipeline_options(config)
