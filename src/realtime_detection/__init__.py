"""
Real-time Detection

Client-side controller for a remote vision detector. Decides frame by
frame whether a remote call is worth its cost, keeps tracked objects
alive between calls, and adapts capture quality and polling interval
to observed latency.

Package structure:
  core/    - Frame difference, tracker, quality controller, orchestrator, session
  client/  - Remote detector HTTP client, response parsing, error taxonomy
  ledger/  - Credit ledgers and per-session usage
  config/  - Configuration loading and validation
  models/  - Data models and collaborator protocols
  utils/   - Constants
"""

__version__ = "1.0.0"

from .client import DetectionError, RemoteDetectorClient
from .config import Settings, build_settings, load_config, validate_config_full
from .core import (
    AdaptiveQualityController,
    DetectionOrchestrator,
    DetectionSession,
    FrameDifferenceDetector,
    ObjectTracker,
    TickOutcome,
)
from .models import DetectedObject, PerformanceMetrics

__all__ = [
    # Core
    "AdaptiveQualityController",
    "DetectedObject",
    # Client
    "DetectionError",
    "DetectionOrchestrator",
    "DetectionSession",
    "FrameDifferenceDetector",
    "ObjectTracker",
    "PerformanceMetrics",
    "RemoteDetectorClient",
    # Config
    "Settings",
    "TickOutcome",
    "build_settings",
    "load_config",
    "validate_config_full",
]
