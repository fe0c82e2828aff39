"""
Frame capture - scales and JPEG-encodes frames at the current quality level.
"""

import logging

import cv2
import numpy as np

from .quality import capture_scale, jpeg_quality

logger = logging.getLogger(__name__)


def scale_frame(frame: np.ndarray, quality: float) -> np.ndarray:
    """Resize frame to the capture scale for quality (never upscales)."""
    scale = capture_scale(quality)
    if scale >= 1.0:
        return frame

    height, width = frame.shape[:2]
    new_size = (max(1, round(width * scale)), max(1, round(height * scale)))
    return cv2.resize(frame, new_size, interpolation=cv2.INTER_AREA)


def encode_frame(frame: np.ndarray, quality: float) -> bytes | None:
    """
    Encode a frame as JPEG at the given quality level.

    Args:
        frame: BGR frame (numpy array)
        quality: Quality level in [0, 1]; controls scale and JPEG quality

    Returns:
        JPEG bytes, or None if encoding failed
    """
    scaled = scale_frame(frame, quality)
    ok, buffer = cv2.imencode(
        ".jpg", scaled, [cv2.IMWRITE_JPEG_QUALITY, jpeg_quality(quality)]
    )
    if not ok:
        logger.error("JPEG encoding failed")
        return None
    return buffer.tobytes()
