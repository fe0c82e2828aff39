"""
Adaptive quality controller.

Observes round-trip latency of remote detections and trades capture
resolution/compression against response time. Quality moves by a small
fixed step per observation: down fast, up slowly.
"""

import logging
from collections import deque

from ..utils.constants import (
    QUALITY_HISTORY_SIZE,
    QUALITY_INITIAL,
    QUALITY_MAX,
    QUALITY_MIN,
    QUALITY_RECOVERY_RATIO,
    QUALITY_STEP_DOWN,
    QUALITY_STEP_UP,
    QUALITY_TARGET_RESPONSE_MS,
)

logger = logging.getLogger(__name__)

# (mean response time above, polling interval) in descending order
INTERVAL_STEPS = [
    (3000, 4000),
    (2000, 3000),
    (1000, 2000),
]
BASE_INTERVAL_MS = 1500


def capture_scale(quality: float) -> float:
    """Fraction of native resolution to capture at for a quality level."""
    return 0.5 + quality * 0.5


def jpeg_quality(quality: float) -> int:
    """JPEG encoder quality (0-100) for a quality level."""
    return max(1, min(100, round(quality * 100)))


class AdaptiveQualityController:
    """Sliding-window latency controller for capture quality and interval."""

    def __init__(
        self,
        initial: float = QUALITY_INITIAL,
        minimum: float = QUALITY_MIN,
        maximum: float = QUALITY_MAX,
        target_response_ms: float = QUALITY_TARGET_RESPONSE_MS,
        history_size: int = QUALITY_HISTORY_SIZE,
        step_down: float = QUALITY_STEP_DOWN,
        step_up: float = QUALITY_STEP_UP,
    ):
        self.minimum = minimum
        self.maximum = maximum
        self.target_response_ms = target_response_ms
        self.step_down = step_down
        self.step_up = step_up
        self._quality = min(maximum, max(minimum, initial))
        self._history: deque[float] = deque(maxlen=history_size)

    @property
    def quality(self) -> float:
        return self._quality

    @property
    def history(self) -> list[float]:
        return list(self._history)

    def adjust(self, response_time_ms: float) -> float:
        """
        Record a response time and step the quality level.

        Args:
            response_time_ms: Observed round-trip latency

        Returns:
            The quality level after adjustment
        """
        self._history.append(response_time_ms)
        mean = self.average_response_time()

        previous = self._quality
        if mean > self.target_response_ms:
            self._quality = max(self.minimum, self._quality - self.step_down)
        elif mean < self.target_response_ms * QUALITY_RECOVERY_RATIO:
            self._quality = min(self.maximum, self._quality + self.step_up)

        if self._quality != previous:
            logger.debug(
                f"Quality {previous:.2f} -> {self._quality:.2f} (mean {mean:.0f}ms)"
            )
        return self._quality

    def average_response_time(self) -> float:
        if not self._history:
            return 0.0
        return sum(self._history) / len(self._history)

    def recommended_interval(self) -> int:
        """Polling interval in milliseconds for the next cycle."""
        mean = self.average_response_time()
        for threshold, interval in INTERVAL_STEPS:
            if mean > threshold:
                return interval
        return BASE_INTERVAL_MS

    def capture_scale(self) -> float:
        return capture_scale(self._quality)
