"""
Consolidated data models for real-time detection.

This package contains the core data structures and collaborator
protocols used across the application.
"""

from .detection import DetectedObject, FrameSample, PerformanceMetrics, TrackedEntry
from .protocols import (
    CreditLedger,
    DetectionResponse,
    FrameSource,
    RemoteDetector,
    RemotePoint,
)

__all__ = [
    # Protocols
    "CreditLedger",
    # Detection models
    "DetectedObject",
    "DetectionResponse",
    "FrameSample",
    "FrameSource",
    "PerformanceMetrics",
    "RemoteDetector",
    "RemotePoint",
    "TrackedEntry",
]
