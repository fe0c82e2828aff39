"""
Configuration Validator - Validates config syntax and semantic correctness.

Schema errors come from pydantic; semantic checks add warnings for
settings that are legal but probably not what was intended.
"""

import logging
from dataclasses import dataclass, field

from pydantic import ValidationError

from ..utils.constants import MIN_SAFE_INTERVAL_MS
from .schemas import Settings, build_settings

logger = logging.getLogger(__name__)


@dataclass
class ValidationResult:
    """Result of config validation."""

    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    settings: Settings | None = None


def validate_config_full(config: dict | None) -> ValidationResult:
    """
    Comprehensive config validation with detailed error messages.

    Args:
        config: Configuration dictionary to validate

    Returns:
        ValidationResult with errors, warnings, and parsed settings.
    """
    result = ValidationResult(valid=True)

    if config is not None and not isinstance(config, dict):
        result.valid = False
        result.errors.append("Config must be a mapping of sections")
        return result

    try:
        settings = build_settings(config)
    except ValidationError as e:
        result.valid = False
        result.errors.extend(_format_errors(e))
        return result

    result.settings = settings
    _check_interval(settings, result)
    _check_tracking_windows(settings, result)
    _check_search(settings, result)
    return result


def print_validation_result(result: ValidationResult) -> None:
    """Print validation result to stdout."""
    if result.valid:
        print("Configuration is valid")
    else:
        print("Configuration is INVALID")

    for error in result.errors:
        print(f"  ERROR: {error}")
    for warning in result.warnings:
        print(f"  WARNING: {warning}")

    if result.settings is not None:
        s = result.settings
        enabled = [name for name, on in s.optimizations.model_dump().items() if on]
        print(f"\n  Detector: {s.detector.url}")
        print(f"  Camera: {s.camera.url}")
        print(f"  Search label: {s.search.label or '(none)'}")
        print(f"  Optimizations: {', '.join(enabled) or 'none'}")


def _format_errors(error: ValidationError) -> list[str]:
    messages = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"]) or "config"
        messages.append(f"{location}: {item['msg']}")
    return messages


def _check_interval(settings: Settings, result: ValidationResult) -> None:
    interval = settings.session.detection_interval_ms
    if interval < MIN_SAFE_INTERVAL_MS:
        result.warnings.append(
            f"session.detection_interval_ms={interval} is below "
            f"{MIN_SAFE_INTERVAL_MS}ms; the detector allows about 1 request/second"
        )


def _check_tracking_windows(settings: Settings, result: ValidationResult) -> None:
    tracking = settings.tracking
    if tracking.skip_window_ms > tracking.max_age_ms:
        result.warnings.append(
            "tracking.skip_window_ms is larger than tracking.max_age_ms; "
            "entries expire before the skip window closes"
        )
    if (
        settings.optimizations.smart_skipping
        and tracking.estimate_after_ms == 0
    ):
        result.warnings.append(
            "tracking.estimate_after_ms is 0; smart skipping will never skip"
        )
    if settings.optimizations.smart_skipping and not settings.optimizations.object_tracking:
        result.warnings.append(
            "optimizations.smart_skipping has no effect without object_tracking"
        )


def _check_search(settings: Settings, result: ValidationResult) -> None:
    if not settings.search.label.strip():
        result.warnings.append(
            "search.label is empty; detection stays idle until a label is set"
        )
