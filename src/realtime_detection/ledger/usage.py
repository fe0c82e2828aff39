"""
SessionUsageTracker - per-session credit consumption.

Process-wide map of session id -> credits used. Only appended to by
detection sessions; never read back for detection decisions. A sweeper
thread evicts sessions idle longer than the configured window.
"""

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

from ..utils.constants import SESSION_IDLE_SECONDS, SESSION_SWEEP_INTERVAL

logger = logging.getLogger(__name__)


@dataclass
class SessionUsage:
    """Credits consumed by one session."""

    used: int = 0
    last_update: float = 0.0


class SessionUsageTracker:
    """Thread-safe session usage map with timer-driven eviction."""

    def __init__(
        self,
        idle_seconds: float = SESSION_IDLE_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.idle_seconds = idle_seconds
        self._clock = clock
        self._sessions: dict[str, SessionUsage] = {}
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._sweeper: threading.Thread | None = None

    def record(self, session_id: str, amount: int) -> int:
        """Append a consumption event and return the session total."""
        with self._lock:
            usage = self._sessions.setdefault(session_id, SessionUsage())
            usage.used += amount
            usage.last_update = self._clock()
            return usage.used

    def used(self, session_id: str) -> int:
        with self._lock:
            usage = self._sessions.get(session_id)
            return usage.used if usage else 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def sweep(self) -> int:
        """Drop idle sessions. Returns the number evicted."""
        cutoff = self._clock() - self.idle_seconds
        with self._lock:
            idle = [
                session_id
                for session_id, usage in self._sessions.items()
                if usage.last_update < cutoff
            ]
            for session_id in idle:
                del self._sessions[session_id]

        if idle:
            logger.info(f"Swept {len(idle)} idle session(s)")
        return len(idle)

    def start_sweeper(self, interval: float = SESSION_SWEEP_INTERVAL) -> None:
        """Run sweep() every interval seconds in a daemon thread."""
        if self._sweeper is not None and self._sweeper.is_alive():
            return
        self._stop_event.clear()

        def run():
            while not self._stop_event.wait(interval):
                try:
                    self.sweep()
                except Exception as e:
                    logger.error(f"Session sweep failed: {e}", exc_info=True)

        self._sweeper = threading.Thread(
            target=run, name="session-usage-sweeper", daemon=True
        )
        self._sweeper.start()

    def stop_sweeper(self) -> None:
        self._stop_event.set()
        if self._sweeper is not None:
            self._sweeper.join(timeout=1.0)
            self._sweeper = None
