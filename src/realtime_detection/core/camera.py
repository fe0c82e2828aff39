"""
Camera initialization and management.
"""

import logging
import threading
import time

import cv2
import numpy as np

from ..utils.constants import CAMERA_RECONNECT_DELAY, MAX_CAMERA_RECONNECT_ATTEMPTS

logger = logging.getLogger(__name__)


def initialize_camera(camera_url: str | int) -> cv2.VideoCapture:
    """
    Initialize camera with retry logic.

    Args:
        camera_url: Camera URL, device path, or device index

    Returns:
        OpenCV VideoCapture object

    Raises:
        RuntimeError: If camera cannot be opened after retries
    """
    for attempt in range(MAX_CAMERA_RECONNECT_ATTEMPTS + 1):
        logger.info(f"Connecting to camera: {camera_url} (attempt {attempt + 1})")
        cap = cv2.VideoCapture(camera_url)

        if cap.isOpened():
            logger.info("Camera connected successfully")
            return cap

        cap.release()
        if attempt < MAX_CAMERA_RECONNECT_ATTEMPTS:
            logger.warning(
                f"Failed to connect, retrying in {CAMERA_RECONNECT_DELAY}s..."
            )
            time.sleep(CAMERA_RECONNECT_DELAY)
        else:
            logger.error(
                f"Failed to connect to camera after {MAX_CAMERA_RECONNECT_ATTEMPTS + 1} attempts"
            )

    raise RuntimeError(f"Cannot connect to camera: {camera_url}")


def parse_camera_url(value: str | int) -> str | int:
    """Device indices may come from YAML or env vars as digit strings."""
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return value


class CameraSource:
    """
    Frame source backed by an OpenCV capture device.

    Use as a context manager so the device is released on every exit
    path, including errors raised inside the block.
    """

    def __init__(
        self, camera_url: str | int, width: int | None = None, height: int | None = None
    ):
        self.camera_url = parse_camera_url(camera_url)
        self.width = width
        self.height = height
        self._cap: cv2.VideoCapture | None = None
        self._lock = threading.Lock()

    def open(self) -> "CameraSource":
        if self._cap is not None:
            return self
        cap = initialize_camera(self.camera_url)
        if self.width:
            cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
        if self.height:
            cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)
        self._cap = cap
        return self

    @property
    def is_open(self) -> bool:
        return self._cap is not None

    def read(self) -> np.ndarray | None:
        with self._lock:
            if self._cap is None:
                return None
            ret, frame = self._cap.read()
        if not ret:
            logger.warning("Failed to read frame")
            return None
        return frame

    def release(self) -> None:
        # May be called from stop() while the worker is blocked elsewhere
        with self._lock:
            if self._cap is None:
                return
            self._cap.release()
            self._cap = None
        logger.info("Camera released")

    def __enter__(self) -> "CameraSource":
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()
