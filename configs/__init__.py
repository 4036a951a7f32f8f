"""Configuration module for awtsim."""

from pathlib import Path
from typing import Optional

import yaml

DEFAULT_CONFIG_PATH = Path(__file__).parent / "default.yaml"


def load_config(config_path: str) -> dict:
    """Load configuration from YAML file.

    Args:
        config_path: Path to configuration file

    Returns:
        Configuration dictionary
    """
    with open(config_path, 'r') as f:
        return yaml.safe_load(f) or {}


def merge_configs(base_config: dict, override_config: dict) -> dict:
    """Merge two configuration dictionaries.

    Nested mappings are merged recursively; lists and scalars are replaced.

    Args:
        base_config: Base configuration
        override_config: Override configuration

    Returns:
        Merged configuration
    """
    merged = base_config.copy()
    for key, value in override_config.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = merge_configs(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_layered_config(config_path: Optional[str] = None,
                        override_path: Optional[str] = None) -> dict:
    """Load a configuration file with an optional override file merged on top.

    Args:
        config_path: Base configuration, the packaged default when omitted
        override_path: Optional configuration merged over the base

    Returns:
        Configuration dictionary
    """
    config = load_config(config_path or DEFAULT_CONFIG_PATH)
    if override_path:
        config = merge_configs(config, load_config(override_path))
    return config
