"""
Detection data models - detected objects, tracked entries, frame samples,
and performance metrics.
"""

from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class DetectedObject:
    """
    A point-form detection published to the overlay.

    Attributes:
        label: Object label as returned by the remote detector
        x: Normalized horizontal position in [0, 1]
        y: Normalized vertical position in [0, 1]
        confidence: Detection confidence in [0, 1]
        timestamp: Capture time in milliseconds
        estimated: True if produced by tracking rather than a fresh call
        tracking_id: Stable identifier across updates of the same label
    """

    label: str
    x: float
    y: float
    confidence: float
    timestamp: float
    estimated: bool = False
    tracking_id: str | None = None


@dataclass
class TrackedEntry:
    """Last known state of a label, kept by the object tracker."""

    x: float
    y: float
    last_seen: float
    confidence: float
    tracking_id: str

    def age(self, now: float) -> float:
        """Milliseconds since this entry was last updated."""
        return now - self.last_seen


@dataclass(frozen=True)
class FrameSample:
    """
    Strided pixel sample kept for frame differencing.

    pixels is an owned (samples, channels) int32 array holding every
    stride-th pixel and at most three channels, so a source that reuses
    its frame buffer cannot alter a stored sample.
    """

    pixels: np.ndarray
    width: int
    height: int

    @classmethod
    def from_frame(cls, frame: np.ndarray, stride: int = 1) -> "FrameSample":
        height, width = frame.shape[:2]
        if frame.ndim == 2:
            flat = frame.reshape(-1, 1)
        else:
            flat = frame.reshape(-1, frame.shape[-1])[:, :3]
        pixels = flat[:: max(1, stride)].astype(np.int32, copy=True)
        return cls(pixels=pixels, width=width, height=height)

    def same_shape(self, other: "FrameSample") -> bool:
        return (self.width, self.height) == (other.width, other.height) and (
            self.pixels.shape == other.pixels.shape
        )


@dataclass(frozen=True)
class PerformanceMetrics:
    """Snapshot of session performance, exposed to the overlay."""

    fps: float = 0.0
    avg_response_time_ms: float = 0.0
    skipped_frames: int = 0
    detection_count: int = 0
    quality_level: float = 0.7
    cache_hits: int = 0

    def summary(self) -> str:
        """One-line summary for periodic status logs."""
        return (
            f"FPS: {self.fps:.1f} | Response: {self.avg_response_time_ms:.0f}ms | "
            f"Skipped: {self.skipped_frames} | Detections: {self.detection_count} | "
            f"Quality: {self.quality_level * 100:.0f}% | Cache hits: {self.cache_hits}"
        )
