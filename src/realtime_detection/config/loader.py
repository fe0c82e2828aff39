"""
Configuration loading - file discovery, pointer files, and environment overrides.
"""

import logging
import os
from pathlib import Path

import yaml

from ..utils.constants import (
    ENV_CAMERA_URL,
    ENV_DETECTOR_API_KEY,
    ENV_DETECTOR_URL,
    ENV_LEDGER_URL,
)

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_NAME = "config.yaml"

# (environment variable, section, key)
ENV_OVERRIDES = [
    (ENV_DETECTOR_URL, "detector", "url"),
    (ENV_DETECTOR_API_KEY, "detector", "api_key"),
    (ENV_CAMERA_URL, "camera", "url"),
    (ENV_LEDGER_URL, "ledger", "url"),
]


class ConfigLoadError(Exception):
    """Raised when a config file cannot be found or parsed."""


def config_search_paths() -> list[Path]:
    return [
        Path.cwd() / DEFAULT_CONFIG_NAME,
        Path.home() / ".config" / "realtime-detection" / DEFAULT_CONFIG_NAME,
    ]


def find_config_file(config_path: str | None = None) -> Path | None:
    """
    Find config file in standard locations.

    Search order:
    1. Specified path (if provided)
    2. Current directory (config.yaml)
    3. ~/.config/realtime-detection/config.yaml

    Args:
        config_path: User-specified config path

    Returns:
        Path to config file, or None if no default location has one

    Raises:
        ConfigLoadError: If an explicitly specified file does not exist
    """
    if config_path:
        specified = Path(config_path)
        if not specified.exists():
            raise ConfigLoadError(f"Specified config file not found: {config_path}")
        return specified

    for path in config_search_paths():
        if path.exists():
            logger.info(f"Using config: {path}")
            return path
    return None


def load_config(config_path: str | None = None) -> dict:
    """
    Load configuration file and apply environment overrides.

    Supports pointer files: if config only contains `use: path/to/config.yaml`,
    that file is loaded instead. With no file found, defaults are used.

    Args:
        config_path: Path to config.yaml

    Returns:
        Configuration dictionary

    Raises:
        ConfigLoadError: If the file is missing or not valid YAML
    """
    config_file = find_config_file(config_path)
    if config_file is None:
        logger.info("No config file found, using defaults")
        return load_config_with_env({})

    config = _read_yaml(config_file)

    if config and list(config.keys()) == ["use"]:
        pointer_path = config_file.parent / config["use"]
        logger.info(f"Config pointer: {config_file} -> {config['use']}")
        config = _read_yaml(pointer_path)
        config_file = pointer_path

    logger.info(f"Configuration loaded from {config_file}")
    return load_config_with_env(config or {})


def load_config_with_env(config: dict) -> dict:
    """
    Apply environment variable overrides to config.

    Args:
        config: Base configuration dictionary

    Returns:
        Configuration with environment variables applied
    """
    for env_name, section, key in ENV_OVERRIDES:
        if env_name in os.environ:
            logger.info(f"Using {section}.{key} from environment: {env_name}")
            config.setdefault(section, {})[key] = os.environ[env_name]
    return config


def _read_yaml(path: Path) -> dict | None:
    try:
        with open(path, encoding="utf-8") as f:
            return yaml.safe_load(f)
    except FileNotFoundError as e:
        raise ConfigLoadError(f"Config file not found: {path}") from e
    except yaml.YAMLError as e:
        raise ConfigLoadError(f"Invalid YAML in {path}: {e}") from e
