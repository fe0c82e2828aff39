"""
DetectionSession - one camera-stream detection run, from start to stop.

A single worker thread runs ticks back to back, waiting the
orchestrator's next interval between them, so two ticks never overlap.
The camera is opened and released inside the worker. stop() does not
wait for an in-flight remote call: it invalidates the call's generation,
gives the worker a short grace period, then releases the camera itself
and detaches the worker so a new run can start at once.
"""

import logging
import threading
import time
import uuid
from collections.abc import Callable
from contextlib import AbstractContextManager

from ..config import Settings
from ..ledger import SessionUsageTracker, check_credits_for_session
from ..models import (
    CreditLedger,
    DetectedObject,
    FrameSource,
    PerformanceMetrics,
    RemoteDetector,
)
from .orchestrator import DetectionOrchestrator, TickOutcome
from .tracker import wall_clock_ms

logger = logging.getLogger(__name__)

FrameSourceFactory = Callable[[], AbstractContextManager[FrameSource]]


def new_session_id() -> str:
    return f"session-{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}"


class DetectionSession:
    """
    Scheduling and lifecycle for a detection run.

    Tracker, frame difference detector and quality controller are built
    fresh on every start() and are dropped with the orchestrator.
    """

    def __init__(
        self,
        settings: Settings,
        detector: RemoteDetector,
        ledger: CreditLedger,
        source_factory: FrameSourceFactory,
        usage: SessionUsageTracker | None = None,
        clock: Callable[[], float] = wall_clock_ms,
    ):
        self.settings = settings
        self.detector = detector
        self.ledger = ledger
        self.source_factory = source_factory
        self.usage = usage
        self._clock = clock

        self.session_id: str | None = None
        self.error: Exception | None = None
        self._orchestrator: DetectionOrchestrator | None = None
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._abandoned: threading.Thread | None = None
        self._source: FrameSource | None = None
        self._tick_count = 0

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def orchestrator(self) -> DetectionOrchestrator | None:
        return self._orchestrator

    @property
    def status_message(self) -> str:
        if self.error is not None:
            return f"Session stopped: {self.error}"
        return self._orchestrator.status_message if self._orchestrator else ""

    def current_objects(self) -> list[DetectedObject]:
        return self._orchestrator.current_objects() if self._orchestrator else []

    def metrics(self) -> PerformanceMetrics:
        return self._orchestrator.metrics() if self._orchestrator else PerformanceMetrics()

    def set_search_label(self, label: str) -> None:
        self.settings.search.label = label
        if self._orchestrator is not None:
            self._orchestrator.set_search_label(label)

    def start(self) -> str:
        """
        Start the detection worker.

        Returns:
            The new session id

        Raises:
            RuntimeError: If the session is already running
            InsufficientCreditsError: If the balance cannot cover a minute
                of detection and require_minute_of_credit is set
        """
        if self.is_running:
            raise RuntimeError("Detection session already running")

        session_cfg = self.settings.session
        balance = self.ledger.balance(session_cfg.user_id)
        if session_cfg.require_minute_of_credit:
            check_credits_for_session(
                balance, session_cfg.detection_interval_ms, session_cfg.credit_cost
            )

        self.session_id = new_session_id()
        self.error = None
        self._tick_count = 0
        self._stop_event = threading.Event()
        self._orchestrator = DetectionOrchestrator(
            self.settings,
            self.detector,
            self.ledger,
            self.session_id,
            usage=self.usage,
            clock=self._clock,
            credit_balance=balance,
        )
        self._thread = threading.Thread(
            target=self._run,
            args=(self._orchestrator, self._stop_event),
            name=f"detection-{self.session_id}",
            daemon=True,
        )
        self._thread.start()
        logger.info(
            f"Detection session {self.session_id} started "
            f"(label={self.settings.search.label!r}, balance={balance})"
        )
        return self.session_id

    def stop(self) -> None:
        """Stop scheduling, discard any in-flight response, release the camera."""
        self._stop_event.set()
        if self._orchestrator is not None:
            self._orchestrator.cancel()

        thread = self._thread
        if thread is None:
            return

        thread.join(timeout=self.settings.session.stop_timeout_seconds)
        self._thread = None
        if thread.is_alive():
            logger.info("Abandoning in-flight detection; worker exits when it returns")
            self._abandoned = thread
            source, self._source = self._source, None
            if source is not None:
                source.release()
        logger.info(f"Detection session {self.session_id} stopped")

    def join(self, timeout: float | None = None) -> bool:
        """Wait for the current and any abandoned worker to exit. Returns True if both have."""
        for thread in (self._thread, self._abandoned):
            if thread is not None:
                thread.join(timeout)
        if self._abandoned is not None and not self._abandoned.is_alive():
            self._abandoned = None
        return not self.is_running and self._abandoned is None

    def _run(
        self, orchestrator: DetectionOrchestrator, stop_event: threading.Event
    ) -> None:
        source = None
        try:
            with self.source_factory() as source:
                self._source = source
                while not stop_event.is_set():
                    self._tick(orchestrator, source)
                    stop_event.wait(orchestrator.next_interval_ms / 1000)
        except Exception as e:
            logger.error(f"Detection session failed: {e}", exc_info=True)
            # A detached worker must not report into a newer run
            if stop_event is self._stop_event:
                self.error = e
        finally:
            if source is not None and self._source is source:
                self._source = None
            logger.info(f"Detection worker exited after {self._tick_count} tick(s)")

    def _tick(self, orchestrator: DetectionOrchestrator, source: FrameSource) -> None:
        self._tick_count += 1
        try:
            outcome = orchestrator.run_tick(source)
        except Exception as e:
            logger.error(f"Unexpected error in detection tick: {e}", exc_info=True)
            return

        if outcome == TickOutcome.NO_FRAME:
            logger.debug("No frame available this tick")
