"""
Configuration loading and validation.

- load_config: Find and read config.yaml (with pointer files)
- load_config_with_env: Apply environment variable overrides
- validate_config_full: Schema errors plus semantic warnings
- build_settings: Parse a config dict into typed Settings
"""

from .loader import (
    ConfigLoadError,
    find_config_file,
    load_config,
    load_config_with_env,
)
from .schemas import (
    CameraConfig,
    DetectorConfig,
    FrameDifferenceConfig,
    LedgerConfig,
    OptimizationFlags,
    QualityConfig,
    RuntimeConfig,
    SearchConfig,
    SessionConfig,
    Settings,
    TrackingConfig,
    build_settings,
)
from .validator import (
    ValidationResult,
    print_validation_result,
    validate_config_full,
)

__all__ = [
    # Schemas
    "CameraConfig",
    # Loading
    "ConfigLoadError",
    "DetectorConfig",
    "FrameDifferenceConfig",
    "LedgerConfig",
    "OptimizationFlags",
    "QualityConfig",
    "RuntimeConfig",
    "SearchConfig",
    "SessionConfig",
    "Settings",
    "TrackingConfig",
    # Validation
    "ValidationResult",
    "build_settings",
    "find_config_file",
    "load_config",
    "load_config_with_env",
    "print_validation_result",
    "validate_config_full",
]
