"""
Core detection components.

This module contains the per-session optimization pipeline (frame
difference, tracking, adaptive quality), the tick orchestrator, the
session scheduler, and camera/capture helpers.
"""

from .camera import CameraSource, initialize_camera
from .capture import encode_frame
from .frame_diff import FrameDifferenceDetector, frame_difference
from .orchestrator import DetectionOrchestrator, TickOutcome
from .quality import AdaptiveQualityController, capture_scale
from .session import DetectionSession, new_session_id
from .tracker import ObjectTracker

__all__ = [
    "AdaptiveQualityController",
    "CameraSource",
    "DetectionOrchestrator",
    "DetectionSession",
    "FrameDifferenceDetector",
    "ObjectTracker",
    "TickOutcome",
    "capture_scale",
    "encode_frame",
    "frame_difference",
    "initialize_camera",
    "new_session_id",
]
