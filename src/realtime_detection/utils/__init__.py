"""
Utility modules for constants.
"""

from .constants import (
    DEFAULT_CREDIT_COST,
    DEFAULT_DETECTION_INTERVAL_MS,
    ENV_CAMERA_URL,
    ENV_DETECTOR_API_KEY,
    ENV_DETECTOR_URL,
    ENV_LEDGER_URL,
)

__all__ = [
    "DEFAULT_CREDIT_COST",
    "DEFAULT_DETECTION_INTERVAL_MS",
    # Environment overrides
    "ENV_CAMERA_URL",
    "ENV_DETECTOR_API_KEY",
    "ENV_DETECTOR_URL",
    "ENV_LEDGER_URL",
]
