"""
ObjectTracker - last-known positions of labeled objects.

Keeps one entry per label. Between remote detections, entries are
surfaced as predicted objects whose confidence decays linearly with age.

Two freshness windows are used:
- display: entries younger than max_age (5s) are published
- skip: a remote call is skipped only while every entry seen in the
  last 3s is younger than 2s (not yet estimated)
"""

import itertools
import logging
import time
from collections.abc import Callable

from ..models import DetectedObject, TrackedEntry
from ..utils.constants import (
    DEFAULT_CONFIDENCE,
    TRACK_ESTIMATE_AFTER_MS,
    TRACK_MAX_AGE_MS,
    TRACK_MIN_CONFIDENCE_FACTOR,
    TRACK_SKIP_WINDOW_MS,
)

logger = logging.getLogger(__name__)


def wall_clock_ms() -> float:
    """Current wall-clock time in milliseconds."""
    return time.time() * 1000


class ObjectTracker:
    """
    Per-label tracking state.

    Only the detection orchestrator calls update(), from within a tick.
    Entries older than max_age are dropped on the next update; a label
    seen again after that gets a new tracking id.
    """

    def __init__(
        self,
        max_age_ms: float = TRACK_MAX_AGE_MS,
        estimate_after_ms: float = TRACK_ESTIMATE_AFTER_MS,
        skip_window_ms: float = TRACK_SKIP_WINDOW_MS,
        clock: Callable[[], float] = wall_clock_ms,
    ):
        self.max_age_ms = max_age_ms
        self.estimate_after_ms = estimate_after_ms
        self.skip_window_ms = skip_window_ms
        self._clock = clock
        self._entries: dict[str, TrackedEntry] = {}
        self._sequence = itertools.count(1)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, label: str) -> bool:
        return label in self._entries

    def get(self, label: str) -> TrackedEntry | None:
        return self._entries.get(label)

    def update(
        self, label: str, x: float, y: float, confidence: float = DEFAULT_CONFIDENCE
    ) -> TrackedEntry:
        """Insert or refresh the entry for label."""
        now = self._clock()
        self._evict_stale(now)

        entry = self._entries.get(label)
        if entry is None:
            tracking_id = self._mint_tracking_id(label, now)
            entry = TrackedEntry(
                x=x, y=y, last_seen=now, confidence=confidence, tracking_id=tracking_id
            )
            self._entries[label] = entry
            logger.debug(f"Tracking new object {label} as {tracking_id}")
        else:
            entry.x = x
            entry.y = y
            entry.confidence = confidence
            entry.last_seen = now

        return entry

    def get_active(self, max_age_ms: float | None = None) -> list[DetectedObject]:
        """
        Entries younger than max_age_ms as (possibly estimated) detections.

        Confidence is scaled by max(0.3, 1 - age / max_age), and an entry
        is marked estimated once older than estimate_after_ms.
        """
        if max_age_ms is None:
            max_age_ms = self.max_age_ms

        now = self._clock()
        active = []
        for label, entry in self._entries.items():
            age = entry.age(now)
            if age >= max_age_ms:
                continue
            decay = max(TRACK_MIN_CONFIDENCE_FACTOR, 1 - age / max_age_ms)
            active.append(
                DetectedObject(
                    label=label,
                    x=entry.x,
                    y=entry.y,
                    confidence=entry.confidence * decay,
                    timestamp=entry.last_seen,
                    estimated=age > self.estimate_after_ms,
                    tracking_id=entry.tracking_id,
                )
            )
        return active

    def should_skip_detection(self) -> bool:
        """True while every recently seen entry is still fresh."""
        recent = self.get_active(self.skip_window_ms)
        return len(recent) > 0 and all(not obj.estimated for obj in recent)

    def cache_hit_count(self) -> int:
        """Number of entries seen within the skip window."""
        now = self._clock()
        return sum(
            1 for entry in self._entries.values() if entry.age(now) < self.skip_window_ms
        )

    def _evict_stale(self, now: float) -> None:
        stale = [
            label
            for label, entry in self._entries.items()
            if entry.age(now) > self.max_age_ms
        ]
        for label in stale:
            logger.debug(f"Evicting stale track {self._entries[label].tracking_id}")
            del self._entries[label]

    def _mint_tracking_id(self, label: str, now: float) -> str:
        return f"{label}-{int(now)}-{next(self._sequence)}"
