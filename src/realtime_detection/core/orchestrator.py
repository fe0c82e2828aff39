"""
Detection cycle orchestrator.

Runs one tick of the real-time detection cycle:
1. Guard on search target and credit balance
2. Smart skip: publish tracked objects while they are still fresh
3. Motion check: skip frames that barely differ from the previous one
4. Capture at the adaptive quality level
5. Remote detection (the only blocking step)
6. Commit: update tracker, merge, publish, charge credits, adjust quality
7. Failure: keep the published set, no charge, next tick tries again

Each tick carries the generation number it started with. cancel()
bumps the generation, so a response arriving after cancellation is
dropped instead of being applied.
"""

import logging
import threading
from collections import deque
from collections.abc import Callable
from dataclasses import replace
from enum import Enum

import numpy as np

from ..client import (
    DetectionError,
    MalformedResponse,
    build_prompt,
    user_message_for,
)
from ..config import Settings
from ..ledger import InsufficientBalance, SessionUsageTracker
from ..models import (
    CreditLedger,
    DetectedObject,
    DetectionResponse,
    FrameSource,
    PerformanceMetrics,
    RemoteDetector,
)
from ..utils.constants import FPS_WINDOW_MS, POINT_SCALE
from .capture import encode_frame
from .frame_diff import FrameDifferenceDetector
from .quality import AdaptiveQualityController
from .tracker import ObjectTracker, wall_clock_ms

logger = logging.getLogger(__name__)


class TickOutcome(str, Enum):
    """What a single tick did."""

    ABORTED = "aborted"
    NO_FRAME = "no_frame"
    SKIPPED_TRACKED = "skipped_tracked"
    SKIPPED_NO_MOTION = "skipped_no_motion"
    DETECTED = "detected"
    FAILED = "failed"
    DISCARDED = "discarded"


class DetectionOrchestrator:
    """
    Owns the tracker, frame difference detector and quality controller
    for one detection session.

    run_tick() is called sequentially from a single scheduling thread.
    Readers on other threads use current_objects() and metrics(), which
    always see a completely published result set.
    """

    def __init__(
        self,
        settings: Settings,
        detector: RemoteDetector,
        ledger: CreditLedger,
        session_id: str,
        usage: SessionUsageTracker | None = None,
        clock: Callable[[], float] = wall_clock_ms,
        credit_balance: int | None = None,
    ):
        self.settings = settings
        self.flags = settings.optimizations
        self.detector = detector
        self.ledger = ledger
        self.session_id = session_id
        self.usage = usage
        self._clock = clock

        self.tracker = ObjectTracker(
            max_age_ms=settings.tracking.max_age_ms,
            estimate_after_ms=settings.tracking.estimate_after_ms,
            skip_window_ms=settings.tracking.skip_window_ms,
            clock=clock,
        )
        self.frame_diff = FrameDifferenceDetector(
            threshold=settings.frame_difference.threshold,
            stride=settings.frame_difference.stride,
        )
        self.quality = AdaptiveQualityController(
            initial=settings.quality.initial,
            minimum=settings.quality.minimum,
            maximum=settings.quality.maximum,
            target_response_ms=settings.quality.target_response_ms,
            history_size=settings.quality.history_size,
            step_down=settings.quality.step_down,
            step_up=settings.quality.step_up,
        )

        self.search_label = settings.search.label
        self.credit_balance = (
            credit_balance
            if credit_balance is not None
            else ledger.balance(settings.session.user_id)
        )
        self.next_interval_ms = (
            self.quality.recommended_interval()
            if self.flags.adaptive_quality
            else settings.session.detection_interval_ms
        )
        self.status_message = ""

        self._lock = threading.RLock()
        self._generation = 0
        self._cancelled = False
        self._objects: tuple[DetectedObject, ...] = ()
        self._skipped_frames = 0
        self._detection_count = 0
        self._capture_times: deque[float] = deque()

    # Published state

    def current_objects(self) -> list[DetectedObject]:
        with self._lock:
            return list(self._objects)

    def metrics(self) -> PerformanceMetrics:
        with self._lock:
            return PerformanceMetrics(
                fps=self._fps(),
                avg_response_time_ms=self.quality.average_response_time(),
                skipped_frames=self._skipped_frames,
                detection_count=self._detection_count,
                quality_level=self.quality.quality,
                cache_hits=self.tracker.cache_hit_count(),
            )

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def set_search_label(self, label: str) -> None:
        self.search_label = label

    def cancel(self) -> None:
        """Invalidate any in-flight detection and refuse further ticks."""
        with self._lock:
            self._generation += 1
            self._cancelled = True
        logger.debug(f"Session {self.session_id} cancelled (generation {self._generation})")

    def capture_quality(self) -> float:
        if self.flags.adaptive_quality:
            return self.quality.quality
        return self.settings.quality.initial

    # Tick

    def run_tick(self, frame_source: FrameSource) -> TickOutcome:
        """Run one detection cycle. Remote failures never escape this method."""
        generation = self._generation
        label = self.search_label.strip()
        cost = self.settings.session.credit_cost

        if self._cancelled or not label or self.credit_balance < cost:
            return TickOutcome.ABORTED

        if self.flags.smart_skipping and self.tracker.should_skip_detection():
            with self._lock:
                self._skipped_frames += 1
                self._objects = tuple(self.tracker.get_active())
            return TickOutcome.SKIPPED_TRACKED

        frame = frame_source.read()
        if frame is None:
            return TickOutcome.NO_FRAME

        if self.flags.frame_difference and not self.frame_diff.should_process(frame):
            with self._lock:
                self._skipped_frames += 1
            return TickOutcome.SKIPPED_NO_MOTION

        image = self._capture(frame)
        if image is None:
            return TickOutcome.NO_FRAME

        max_items = self.settings.detector.max_items
        start = self._clock()
        try:
            response = self.detector.detect(
                image,
                build_prompt(label, max_items),
                self.settings.detector.temperature,
                max_items,
                self.session_id,
            )
        except DetectionError as e:
            if generation != self._generation:
                logger.debug("Dropping failure from cancelled detection")
                return TickOutcome.DISCARDED
            self._handle_failure(e)
            return TickOutcome.FAILED
        latency_ms = self._clock() - start

        with self._lock:
            if generation != self._generation:
                logger.info("Discarding detection response received after cancellation")
                return TickOutcome.DISCARDED
            self._commit(response, latency_ms)

        self._charge(cost)
        return TickOutcome.DETECTED

    def _capture(self, frame: np.ndarray) -> bytes | None:
        image = encode_frame(frame, self.capture_quality())
        if image is not None:
            now = self._clock()
            with self._lock:
                self._capture_times.append(now)
        return image

    def _commit(self, response: DetectionResponse, latency_ms: float) -> None:
        """Apply a validated response. Caller holds the lock."""
        now = self._clock()
        fresh = [
            DetectedObject(
                label=point.label,
                x=point.col / POINT_SCALE,
                y=point.row / POINT_SCALE,
                confidence=point.confidence,
                timestamp=now,
                estimated=False,
            )
            for point in response.results
        ]

        if self.flags.object_tracking:
            fresh = [
                replace(
                    obj,
                    tracking_id=self.tracker.update(
                        obj.label, obj.x, obj.y, obj.confidence
                    ).tracking_id,
                )
                for obj in fresh
            ]
            fresh_labels = {obj.label for obj in fresh}
            tracked = [
                obj for obj in self.tracker.get_active() if obj.label not in fresh_labels
            ]
            merged = fresh + tracked
        else:
            merged = fresh

        self._objects = tuple(merged)
        self._detection_count += 1
        self.status_message = ""

        self.quality.adjust(latency_ms)
        if self.flags.adaptive_quality:
            self.next_interval_ms = self.quality.recommended_interval()

        logger.debug(
            f"Detected {len(fresh)} object(s) in {latency_ms:.0f}ms, "
            f"published {len(merged)}, next tick in {self.next_interval_ms}ms"
        )

    def _charge(self, cost: int) -> None:
        if cost <= 0:
            return

        if self.usage is not None:
            self.usage.record(self.session_id, cost)

        user_id = self.settings.session.user_id
        try:
            self.credit_balance = self.ledger.charge(
                user_id, cost, idempotency_key=self._charge_key()
            )
        except InsufficientBalance as e:
            logger.warning(f"Credit charge failed, keeping results: {e}")
            self.credit_balance = e.balance
        except Exception as e:
            logger.error(f"Credit charge failed, keeping results: {e}")

    def _charge_key(self) -> str:
        """Idempotency key, unique per committed detection."""
        return f"{self.session_id}-detection-{self._detection_count}"

    def _handle_failure(self, error: DetectionError) -> None:
        self.status_message = user_message_for(error)
        if isinstance(error, MalformedResponse):
            logger.warning(
                f"Malformed detector response: {error} | sample: {error.raw_sample!r}"
            )
        else:
            logger.warning(f"Detection failed ({type(error).__name__}): {error}")

    def _fps(self) -> float:
        cutoff = self._clock() - FPS_WINDOW_MS
        while self._capture_times and self._capture_times[0] < cutoff:
            self._capture_times.popleft()
        return len(self._capture_times) / (FPS_WINDOW_MS / 1000)
