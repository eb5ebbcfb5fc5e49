"""
YAML configuration for RelayPIController.

Configuration is read-only: files are loaded, merged over the defaults and
validated. Tuned gains are never written back.
"""

import copy
import math
from pathlib import Path
from typing import Any, Dict, Union

import yaml
from loguru import logger

from .exceptions import ConfigurationError


_DEFAULT_CONFIG: Dict[str, Dict[str, Any]] = {
    "controller": {
        "kp": 1.0,
        "ki": 0.0,
        "dt": 1.0,
        "initial_measured_value": 0.0,
    },
    "relay": {
        "amplitude": 1.0,
        "min_cycle_ms": 100.0,
        "max_cycle_ms": 10000.0,
        "history": 10,
    },
    "guard": {
        "error_threshold": 100.0,
    },
}


def default_config() -> Dict[str, Dict[str, Any]]:
    """Return a fresh copy of the default configuration."""
    return copy.deepcopy(_DEFAULT_CONFIG)


def _merge(base: Dict[str, Any], updates: Dict[str, Any]) -> Dict[str, Any]:
    for k, v in updates.items():
        if isinstance(v, dict) and isinstance(base.get(k), dict):
            base[k] = _merge(base[k], v)
        else:
            base[k] = v
    return base


def load_config(path: Union[str, Path]) -> Dict[str, Dict[str, Any]]:
    """
    Load a controller configuration file.

    Args:
        path: Path to a YAML file. A missing file yields the defaults.

    Returns:
        Validated configuration dictionary

    Raises:
        ConfigurationError: If the file cannot be parsed or fails validation
    """
    config_path = Path(path)
    config = default_config()

    if not config_path.exists():
        logger.warning(f"Configuration file not found, using defaults: {config_path}")
        return config

    logger.info(f"Loading configuration from {config_path}")
    try:
        with open(config_path, "r") as f:
            loaded = yaml.safe_load(f)
    except yaml.YAMLError as e:
        logger.error(f"Failed to parse YAML configuration: {e}")
        raise ConfigurationError(f"Configuration parsing error: {e}")
    except OSError as e:
        logger.error(f"Failed to read configuration: {e}")
        raise ConfigurationError(f"Configuration loading error: {e}")

    if loaded is None:
        loaded = {}
    if not isinstance(loaded, dict):
        raise ConfigurationError("Configuration root must be a mapping")

    for section, values in loaded.items():
        if section not in _DEFAULT_CONFIG:
            raise ConfigurationError(f"Unknown configuration section: {section}")
        if not isinstance(values, dict):
            raise ConfigurationError(f"Configuration section '{section}' must be a mapping")
        for key in values:
            if key not in _DEFAULT_CONFIG[section]:
                raise ConfigurationError(f"Unknown parameter '{key}' in section '{section}'")

    _merge(config, loaded)
    validate_config(config)
    return config


def _number(config: Dict[str, Dict[str, Any]], section: str, key: str) -> float:
    value = config[section][key]
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigurationError(f"{section}.{key} must be a number, got {value!r}")
    if not math.isfinite(value):
        raise ConfigurationError(f"{section}.{key} must be finite")
    return float(value)


def validate_config(config: Dict[str, Dict[str, Any]]) -> None:
    """
    Validate a configuration dictionary in place.

    Raises:
        ConfigurationError: On a missing section or parameter or an
            out-of-range value
    """
    for section, keys in _DEFAULT_CONFIG.items():
        if section not in config:
            raise ConfigurationError(f"Missing required configuration section: {section}")
        for key in keys:
            if key not in config[section]:
                raise ConfigurationError(f"Missing required parameter: {section}.{key}")

    for key in ("kp", "ki", "initial_measured_value"):
        _number(config, "controller", key)

    if _number(config, "controller", "dt") <= 0:
        raise ConfigurationError("controller.dt must be positive")
    if _number(config, "relay", "amplitude") <= 0:
        raise ConfigurationError("relay.amplitude must be positive")
    if _number(config, "guard", "error_threshold") <= 0:
        raise ConfigurationError("guard.error_threshold must be positive")

    min_cycle = _number(config, "relay", "min_cycle_ms")
    max_cycle = _number(config, "relay", "max_cycle_ms")
    if min_cycle < 0 or min_cycle >= max_cycle:
        raise ConfigurationError("relay.min_cycle_ms must be >= 0 and below relay.max_cycle_ms")

    history = config["relay"]["history"]
    if isinstance(history, bool) or not isinstance(history, int) or history < 1:
        raise ConfigurationError("relay.history must be a positive integer")
