"""
Frame difference detector.

Decides whether consecutive frames differ enough to warrant a new
remote detection. Only every Nth pixel is compared to bound the cost.
"""

import logging

import numpy as np

from ..models import FrameSample
from ..utils.constants import FRAME_DIFF_STRIDE, FRAME_DIFF_THRESHOLD

logger = logging.getLogger(__name__)


def frame_difference(
    previous: np.ndarray, current: np.ndarray, stride: int = FRAME_DIFF_STRIDE
) -> float:
    """
    Normalized difference score between two frames of the same shape.

    Sums the absolute per-channel difference of the first three channels
    over a strided pixel sample, divided by the sample count and the
    maximum per-pixel difference (255 * 3).

    Returns:
        Score in [0, 1]
    """
    return sample_difference(
        FrameSample.from_frame(previous, stride), FrameSample.from_frame(current, stride)
    )


def sample_difference(previous: FrameSample, current: FrameSample) -> float:
    sample_count, channels = current.pixels.shape
    if sample_count == 0:
        return 0.0

    total = np.abs(previous.pixels - current.pixels).sum()
    return float(total) / (sample_count * 255 * channels)


class FrameDifferenceDetector:
    """
    Compares each frame against the immediately preceding one.

    The stored sample is replaced on every call, whether or not the
    frame is processed, so a slow drift never accumulates into a trigger.
    """

    def __init__(
        self, threshold: float = FRAME_DIFF_THRESHOLD, stride: int = FRAME_DIFF_STRIDE
    ):
        self.threshold = threshold
        self.stride = max(1, stride)
        self._previous: FrameSample | None = None
        self.last_score: float | None = None

    def should_process(self, frame: np.ndarray) -> bool:
        """Return True if the frame differs enough from the previous one."""
        current = FrameSample.from_frame(frame, self.stride)
        previous = self._previous
        self._previous = current

        if previous is None:
            self.last_score = None
            return True

        if not previous.same_shape(current):
            logger.debug(
                f"Frame size changed {previous.width}x{previous.height} -> "
                f"{current.width}x{current.height}, processing"
            )
            self.last_score = None
            return True

        self.last_score = sample_difference(previous, current)
        return self.last_score > self.threshold

    def reset(self) -> None:
        self._previous = None
        self.last_score = None
