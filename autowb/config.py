"""
Configuration management for autowb
"""

import yaml
import os
import re
import copy
from pathlib import Path
from typing import Dict, Any, Optional, Union, Sequence
import logging

from autowb.exceptions import InputValidationError
from autowb.processing.color import ColorMatrix, CorrectionSettings, SRGB_PRIMARIES

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent / "config.yaml"


def _expand_env_vars(obj: Union[Dict, Any]) -> Union[Dict, Any]:
    """
    Recursively expand environment variables in config values.
    Supports ${VAR_NAME} syntax.
    """
    if isinstance(obj, dict):
        return {key: _expand_env_vars(value) for key, value in obj.items()}
    elif isinstance(obj, list):
        return [_expand_env_vars(item) for item in obj]
    elif isinstance(obj, str):
        pattern = r'\$\{([^}]+)\}'
        def replace_var(match):
            var_name = match.group(1)
            return os.getenv(var_name, match.group(0))  # Return original if not found
        return re.sub(pattern, replace_var, obj)
    else:
        return obj


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(config_path: Optional[Union[str, Path]] = None) -> Dict[str, Any]:
    """
    Load configuration from YAML file

    Values missing from the file fall back to the defaults.

    Args:
        config_path: Path to config file. If None, uses the bundled config.yaml

    Returns:
        Configuration dictionary
    """
    config_path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH

    if not config_path.exists():
        logger.warning(f"Config file not found: {config_path}. Using defaults.")
        return get_default_config()

    try:
        with open(config_path, 'r') as f:
            config = yaml.safe_load(f) or {}
        logger.debug(f"Loaded configuration from {config_path}")
    except (OSError, yaml.YAMLError) as e:
        logger.error(f"Failed to load config from {config_path}: {e}")
        return get_default_config()

    if not isinstance(config, dict):
        logger.error(f"Config file {config_path} does not contain a mapping. Using defaults.")
        return get_default_config()

    return _merge(get_default_config(), _expand_env_vars(config))


def get_default_config() -> Dict[str, Any]:
    """
    Get default configuration values

    Returns:
        Default configuration dictionary
    """
    return {
        'white_balance': {
            'white_point': [0.3127, 0.3290],  # D65
            'gamma': 2.2,
            'primaries': [list(row) for row in SRGB_PRIMARIES],
        },
        'processing': {
            'workers': None,  # CPU count
            'band_rows': 256,
        },
        'output': {
            'suffix': '_awb',
            'jpeg_quality': 95,
        },
        'logging': {
            'level': 'INFO',
            'format': '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            'color': True,
        },
    }


def get_config_value(config: Dict[str, Any], key_path: str, default: Any = None) -> Any:
    """
    Get a nested configuration value using dot notation

    Args:
        config: Configuration dictionary
        key_path: Dot-separated key path (e.g., 'white_balance.gamma')
        default: Default value if key not found

    Returns:
        Configuration value or default
    """
    keys = key_path.split('.')
    value = config

    try:
        for key in keys:
            value = value[key]
        return value
    except (KeyError, TypeError):
        return default


def parse_white_point(text: str) -> Sequence[float]:
    """
    Parse "x,y" into two floats

    Raises:
        InputValidationError: If the text is not two comma-separated numbers
    """
    parts = [part.strip() for part in str(text).split(',')]
    if len(parts) != 2:
        raise InputValidationError(
            "Invalid white point coordinates. Please specify them as x,y."
        )
    try:
        return float(parts[0]), float(parts[1])
    except ValueError:
        raise InputValidationError(
            "Invalid white point coordinates. Please specify them as x,y."
        )


def build_correction_settings(config: Dict[str, Any],
                              white_point: Optional[Sequence[float]] = None,
                              gamma: Optional[float] = None) -> CorrectionSettings:
    """
    Build the immutable settings of one run

    Explicit arguments override configuration values.

    Raises:
        InputValidationError: On an invalid white point or gamma
        SingularMatrixError: If the configured primaries cannot be inverted
    """
    if white_point is None:
        white_point = get_config_value(config, 'white_balance.white_point', [0.3127, 0.3290])
    if gamma is None:
        gamma = get_config_value(config, 'white_balance.gamma', 2.2)
    primaries = get_config_value(config, 'white_balance.primaries', SRGB_PRIMARIES)

    try:
        matrix = ColorMatrix(primaries)
    except ValueError as e:
        raise InputValidationError(f"Invalid primaries matrix: {e}") from e

    return CorrectionSettings(white_point=white_point, gamma=gamma, matrix=matrix)


def _positive_int(config: Dict[str, Any], key_path: str, default: Optional[int],
                  maximum: Optional[int] = None) -> Optional[int]:
    value = get_config_value(config, key_path, default)
    if value is None:
        return default
    try:
        number = int(str(value).strip())
    except ValueError as e:
        raise InputValidationError(f"Config value {key_path} must be an integer, got {value!r}") from e
    if number <= 0 or (maximum is not None and number > maximum):
        limit = f"between 1 and {maximum}" if maximum is not None else "positive"
        raise InputValidationError(f"Config value {key_path} must be {limit}, got {number}")
    return number


def build_pipeline_options(config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Pipeline keyword arguments from the processing and output sections

    Values expanded from environment variables arrive as strings and are
    converted here.

    Raises:
        InputValidationError: If a numeric option is not a positive integer
    """
    return {
        'max_workers': _positive_int(config, 'processing.workers', None),
        'band_rows': _positive_int(config, 'processing.band_rows', 256),
        'output_suffix': str(get_config_value(config, 'output.suffix', '_awb')),
        'jpeg_quality': _positive_int(config, 'output.jpeg_quality', 95, maximum=100),
    }
