"""Configuration management for RBF surface reconstruction."""

import copy
import logging
from pathlib import Path
from typing import Any, Dict, Union

import yaml

from ..exceptions import ConfigurationError

logger = logging.getLogger(__name__)

RECONSTRUCTION_CONFIG = {
    "smoothing": 0.1,
    "pivot_tolerance": 1e-12,
    "chunk_size": 1024,
}

EXTRACTION_CONFIG = {
    "grid_step": 0.05,
    "threshold": 0.01,
    "bounds": [-1.0, 1.0],
    "chunk_size": 4096,
    "show_progress": False,
}

DATA_CONFIG = {
    "normalize": True,
    "max_points": None,
    "seed": 42,
}

DEFAULT_CONFIG = {
    "reconstruction": RECONSTRUCTION_CONFIG,
    "extraction": EXTRACTION_CONFIG,
    "data": DATA_CONFIG,
    "log_level": "INFO",
}


def default_config() -> Dict[str, Any]:
    """Default configuration (deep copy, safe to mutate)."""
    return copy.deepcopy(DEFAULT_CONFIG)


def merge_config(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge ``overrides`` into a copy of ``base``."""
    if not isinstance(overrides, dict):
        raise ConfigurationError(f"Configuration must be a mapping, got {type(overrides).__name__}")

    merged = copy.deepcopy(base)
    for key, value in overrides.items():
        if isinstance(merged.get(key), dict) and not isinstance(value, dict):
            # YAML "section:" with an empty body loads as None
            raise ConfigurationError(
                f"Config section '{key}' must be a mapping, got {type(value).__name__}"
            )
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_config(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def load_config(path: Union[str, Path]) -> Dict[str, Any]:
    """
    Load a YAML configuration file on top of the defaults.

    An empty file yields the defaults.
    """
    path = Path(path)
    try:
        with open(path, 'r') as f:
            user_config = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Cannot parse config {path}: {e}") from e

    logger.debug(f"Loaded config from {path}")
    return merge_config(default_config(), user_config)
