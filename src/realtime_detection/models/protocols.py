"""
Collaborator Protocols - narrow interfaces the detection core depends on.

The remote detector, credit ledger and camera are external to the
detection cycle. Any implementation satisfying these protocols (HTTP
clients, in-memory fakes, OpenCV capture) can be plugged in.
"""

from dataclasses import dataclass, field
from typing import Protocol

import numpy as np


@dataclass(frozen=True)
class RemotePoint:
    """A validated point from the remote detector ([row, col] in [0, 1000])."""

    row: float
    col: float
    label: str
    confidence: float


@dataclass(frozen=True)
class DetectionResponse:
    """Validated remote detector response."""

    results: list[RemotePoint] = field(default_factory=list)
    model_used: str = ""
    latency_ms: float = 0.0


class RemoteDetector(Protocol):
    """
    Protocol for the remote vision inference endpoint.

    Implementations raise a DetectionError subclass on failure
    (QuotaExceeded, SafetyRejected, DetectionTimeout, MalformedResponse,
    TransientRemoteFailure) and never return partially validated data.
    """

    def detect(
        self,
        image: bytes,
        prompt: str,
        temperature: float,
        max_items: int,
        session_id: str,
    ) -> DetectionResponse:
        ...


class CreditLedger(Protocol):
    """Protocol for the external credit ledger."""

    def balance(self, user_id: str) -> int:
        ...

    def charge(
        self, user_id: str, amount: int, idempotency_key: str | None = None
    ) -> int:
        """
        Deduct credits and return the new balance.

        A repeated idempotency_key must not be charged twice.
        """
        ...


class FrameSource(Protocol):
    """Protocol for a camera or video stream."""

    def read(self) -> np.ndarray | None:
        """Return the latest BGR frame, or None if unavailable."""
        ...

    def release(self) -> None:
        """Close the underlying device. Safe to call more than once."""
        ...
