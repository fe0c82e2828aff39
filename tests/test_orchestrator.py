"""
Tests for the detection cycle orchestrator
"""

import unittest
from unittest.mock import Mock

import numpy as np

from realtime_detection.client import (
    MalformedResponse,
    QuotaExceeded,
    RemoteDetectorClient,
)
from realtime_detection.client.errors import GENERIC_FAILURE_MESSAGE, user_message_for
from realtime_detection.config import build_settings
from realtime_detection.core.orchestrator import DetectionOrchestrator, TickOutcome
from realtime_detection.ledger import (
    InMemoryCreditLedger,
    InsufficientBalance,
    SessionUsageTracker,
)
from realtime_detection.models import DetectionResponse, RemotePoint


class FakeClock:
    """Millisecond clock advanced by hand."""

    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


class FakeDetector:
    """Returns queued responses (or raises queued errors), taking latency_ms."""

    def __init__(self, clock: FakeClock, latency_ms: float = 500):
        self.clock = clock
        self.latency_ms = latency_ms
        self.responses = []
        self.calls = []
        self.on_call = None

    def queue(self, *points: RemotePoint) -> None:
        self.responses.append(DetectionResponse(results=list(points)))

    def queue_error(self, error: Exception) -> None:
        self.responses.append(error)

    def detect(self, image, prompt, temperature, max_items, session_id):
        self.calls.append(
            {
                "image": image,
                "prompt": prompt,
                "temperature": temperature,
                "max_items": max_items,
                "session_id": session_id,
            }
        )
        if self.on_call is not None:
            self.on_call()
        self.clock.advance(self.latency_ms)
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


class FakeSource:
    """Cycles through frames; consecutive default frames differ strongly."""

    def __init__(self, frames=None):
        if frames is None:
            frames = [solid_frame(0), solid_frame(200)]
        self.frames = frames
        self.reads = 0

    def read(self):
        frame = self.frames[self.reads % len(self.frames)]
        self.reads += 1
        return frame


def solid_frame(value: int) -> np.ndarray:
    return np.full((48, 64, 3), value, dtype=np.uint8)


def point(label: str, row: float = 500, col: float = 500, confidence: float = 0.9):
    return RemotePoint(row=row, col=col, label=label, confidence=confidence)


def make_settings(**sections):
    config = {"search": {"label": "cup"}}
    config.update(sections)
    return build_settings(config)


class OrchestratorTestCase(unittest.TestCase):
    """Shared fixtures: fake clock, detector, source and a funded ledger."""

    def setUp(self):
        self.clock = FakeClock()
        self.detector = FakeDetector(self.clock)
        self.source = FakeSource()
        self.ledger = InMemoryCreditLedger()
        self.ledger.deposit("local", 100)
        self.usage = SessionUsageTracker()
        self.orchestrator = self.make_orchestrator()

    def make_orchestrator(self, detector=None, ledger=None, **sections):
        return DetectionOrchestrator(
            make_settings(**sections),
            detector or self.detector,
            ledger or self.ledger,
            "session-test",
            usage=self.usage,
            clock=self.clock,
        )

    def tick(self) -> TickOutcome:
        return self.orchestrator.run_tick(self.source)


class TestTickGuards(OrchestratorTestCase):
    """Test ticks that must not call the detector."""

    def test_empty_label_aborts(self):
        """Test a blank search label aborts before reading a frame."""
        self.orchestrator.set_search_label("   ")

        self.assertEqual(self.tick(), TickOutcome.ABORTED)
        self.assertEqual(self.detector.calls, [])
        self.assertEqual(self.source.reads, 0)

    def test_low_balance_aborts(self):
        """Test a balance below the detection cost aborts."""
        ledger = InMemoryCreditLedger({"local": 2})
        orchestrator = self.make_orchestrator(ledger=ledger)

        self.assertEqual(orchestrator.run_tick(self.source), TickOutcome.ABORTED)
        self.assertEqual(self.detector.calls, [])
        self.assertEqual(ledger.balance("local"), 2)

    def test_no_frame(self):
        """Test an unavailable frame ends the tick without a remote call."""
        source = Mock()
        source.read.return_value = None

        self.assertEqual(self.orchestrator.run_tick(source), TickOutcome.NO_FRAME)
        self.assertEqual(self.detector.calls, [])


class TestSuccessfulDetection(OrchestratorTestCase):
    """Test a fresh detection is published and charged."""

    def test_fresh_detection_published_and_charged(self):
        """Test a point at [500, 500] becomes a centered object and costs 3 credits."""
        self.detector.queue(point("cup", 500, 500, 0.9))

        self.assertEqual(self.tick(), TickOutcome.DETECTED)

        objects = self.orchestrator.current_objects()
        self.assertEqual(len(objects), 1)
        cup = objects[0]
        self.assertEqual(cup.label, "cup")
        self.assertAlmostEqual(cup.x, 0.5)
        self.assertAlmostEqual(cup.y, 0.5)
        self.assertAlmostEqual(cup.confidence, 0.9)
        self.assertFalse(cup.estimated)
        self.assertIsNotNone(cup.tracking_id)
        self.assertEqual(self.ledger.balance("local"), 97)
        self.assertEqual(self.orchestrator.credit_balance, 97)

    def test_point_order_is_row_then_column(self):
        """Test [row, col] maps to y then x."""
        self.detector.queue(point("keys", row=250, col=750))

        self.tick()

        keys = self.orchestrator.current_objects()[0]
        self.assertAlmostEqual(keys.x, 0.75)
        self.assertAlmostEqual(keys.y, 0.25)

    def test_request_arguments(self):
        """Test the prompt, limits and session id sent to the detector."""
        self.detector.queue()

        self.tick()

        call = self.detector.calls[0]
        self.assertTrue(call["prompt"].startswith("Point to the cup with max 6 items."))
        self.assertEqual(call["max_items"], 6)
        self.assertEqual(call["temperature"], 0.1)
        self.assertEqual(call["session_id"], "session-test")
        self.assertTrue(call["image"].startswith(b"\xff\xd8"))

    def test_label_change_applies_to_next_tick(self):
        """Test set_search_label changes the next prompt."""
        self.detector.queue()
        self.detector.queue()

        self.tick()
        self.orchestrator.set_search_label("keys")
        self.tick()

        self.assertTrue(self.detector.calls[1]["prompt"].startswith("Point to the keys"))

    def test_empty_result_is_success(self):
        """Test zero detections still publish (empty) and charge."""
        self.detector.queue()

        self.assertEqual(self.tick(), TickOutcome.DETECTED)
        self.assertEqual(self.orchestrator.current_objects(), [])
        self.assertEqual(self.ledger.balance("local"), 97)

    def test_usage_recorded(self):
        """Test the session usage tracker records the charge."""
        self.detector.queue(point("cup"))

        self.tick()

        self.assertEqual(self.usage.used("session-test"), 3)

    def test_charge_refused_keeps_results(self):
        """Test a ledger refusal is logged and the detection stays published."""
        ledger = Mock()
        ledger.balance.return_value = 100
        ledger.charge.side_effect = InsufficientBalance("local", 1, 3)
        orchestrator = self.make_orchestrator(ledger=ledger)
        self.detector.queue(point("cup"))

        self.assertEqual(orchestrator.run_tick(self.source), TickOutcome.DETECTED)
        self.assertEqual(len(orchestrator.current_objects()), 1)
        self.assertEqual(orchestrator.credit_balance, 1)
        self.assertEqual(orchestrator.run_tick(self.source), TickOutcome.ABORTED)

    def test_each_charge_has_its_own_idempotency_key(self):
        """Test every committed detection is charged under a distinct key."""
        ledger = Mock()
        ledger.balance.return_value = 100
        ledger.charge.return_value = 97
        orchestrator = self.make_orchestrator(ledger=ledger)
        self.detector.queue(point("cup"))
        self.detector.queue(point("cup"))

        orchestrator.run_tick(self.source)
        self.clock.advance(2500)
        orchestrator.run_tick(self.source)

        keys = [c.kwargs["idempotency_key"] for c in ledger.charge.call_args_list]
        self.assertEqual(keys, ["session-test-detection-1", "session-test-detection-2"])

    def test_metrics(self):
        """Test metrics after one detection."""
        self.detector.queue(point("cup"))

        self.tick()
        metrics = self.orchestrator.metrics()

        self.assertEqual(metrics.detection_count, 1)
        self.assertEqual(metrics.skipped_frames, 0)
        self.assertAlmostEqual(metrics.avg_response_time_ms, 500)
        self.assertAlmostEqual(metrics.quality_level, 0.72)
        self.assertAlmostEqual(metrics.fps, 0.2)
        self.assertEqual(metrics.cache_hits, 1)


class TestTrackingAndSkipping(OrchestratorTestCase):
    """Test smart skipping and merging with tracked objects."""

    def test_fresh_track_skips_remote_call(self):
        """Test one second after a detection the tracked object is republished."""
        self.detector.queue(point("cup", confidence=0.9))
        self.tick()
        self.clock.advance(1000)

        self.assertEqual(self.tick(), TickOutcome.SKIPPED_TRACKED)

        objects = self.orchestrator.current_objects()
        self.assertEqual(len(objects), 1)
        self.assertAlmostEqual(objects[0].confidence, 0.72)
        self.assertFalse(objects[0].estimated)
        self.assertEqual(len(self.detector.calls), 1)
        self.assertEqual(self.ledger.balance("local"), 97)
        self.assertEqual(self.orchestrator.metrics().skipped_frames, 1)

    def test_estimated_track_forces_remote_call(self):
        """Test an estimated entry within the skip window triggers detection."""
        self.detector.queue(point("cup"))
        self.detector.queue(point("cup"))
        self.tick()
        self.clock.advance(2500)

        self.assertEqual(self.tick(), TickOutcome.DETECTED)
        self.assertEqual(len(self.detector.calls), 2)

    def test_fresh_detection_overrides_tracked_label(self):
        """Test fresh labels replace tracked ones and others are kept as estimates."""
        self.detector.queue(point("cup", 500, 500), point("keys", 100, 100, 0.8))
        self.detector.queue(point("cup", 600, 400, 0.95))
        self.tick()
        cup_id = self.orchestrator.current_objects()[0].tracking_id
        self.clock.advance(2500)

        self.tick()

        objects = self.orchestrator.current_objects()
        self.assertEqual([obj.label for obj in objects], ["cup", "keys"])
        cup, keys = objects
        self.assertFalse(cup.estimated)
        self.assertAlmostEqual(cup.x, 0.4)
        self.assertAlmostEqual(cup.y, 0.6)
        self.assertAlmostEqual(cup.confidence, 0.95)
        self.assertEqual(cup.tracking_id, cup_id)
        self.assertTrue(keys.estimated)
        self.assertLess(keys.confidence, 0.8)

    def test_tracking_disabled(self):
        """Test without tracking only fresh detections are published."""
        orchestrator = self.make_orchestrator(
            optimizations={"object_tracking": False}
        )
        self.detector.queue(point("cup"), point("keys"))
        self.detector.queue(point("cup"))

        self.assertEqual(orchestrator.run_tick(self.source), TickOutcome.DETECTED)
        self.assertEqual(orchestrator.run_tick(self.source), TickOutcome.DETECTED)

        objects = orchestrator.current_objects()
        self.assertEqual([obj.label for obj in objects], ["cup"])
        self.assertIsNone(objects[0].tracking_id)
        self.assertEqual(len(orchestrator.tracker), 0)

    def test_unchanged_frame_skipped(self):
        """Test a frame identical to the previous one skips the remote call."""
        self.source = FakeSource([solid_frame(80)])
        self.detector.queue()

        self.assertEqual(self.tick(), TickOutcome.DETECTED)
        self.assertEqual(self.tick(), TickOutcome.SKIPPED_NO_MOTION)
        self.assertEqual(len(self.detector.calls), 1)
        self.assertEqual(self.orchestrator.metrics().skipped_frames, 1)

    def test_frame_difference_disabled(self):
        """Test identical frames are sent when frame differencing is off."""
        orchestrator = self.make_orchestrator(optimizations={"frame_difference": False})
        source = FakeSource([solid_frame(80)])
        self.detector.queue()
        self.detector.queue()

        orchestrator.run_tick(source)

        self.assertEqual(orchestrator.run_tick(source), TickOutcome.DETECTED)


class TestAdaptiveScheduling(OrchestratorTestCase):
    """Test interval and capture quality adaptation."""

    def test_slow_response_lengthens_interval(self):
        """Test 3.5s latency moves the interval to 4000ms and lowers quality."""
        self.detector.latency_ms = 3500
        self.detector.queue(point("cup"))
        self.assertEqual(self.orchestrator.next_interval_ms, 1500)

        self.tick()

        self.assertEqual(self.orchestrator.next_interval_ms, 4000)
        self.assertAlmostEqual(self.orchestrator.quality.quality, 0.65)
        self.assertAlmostEqual(self.orchestrator.capture_quality(), 0.65)

    def test_fixed_interval_without_adaptive_quality(self):
        """Test the configured interval and initial quality are used when off."""
        orchestrator = self.make_orchestrator(optimizations={"adaptive_quality": False})
        self.detector.latency_ms = 3500
        self.detector.queue(point("cup"))

        orchestrator.run_tick(self.source)

        self.assertEqual(orchestrator.next_interval_ms, 2000)
        self.assertAlmostEqual(orchestrator.capture_quality(), 0.7)
        self.assertEqual(orchestrator.quality.history, [3500])


class TestFailures(OrchestratorTestCase):
    """Test failed ticks leave state untouched."""

    def test_quota_failure(self):
        """Test a quota error sets the overlay message and charges nothing."""
        self.detector.queue_error(QuotaExceeded("429"))

        self.assertEqual(self.tick(), TickOutcome.FAILED)

        self.assertIn("quota", self.orchestrator.status_message)
        self.assertEqual(
            self.orchestrator.status_message, user_message_for(QuotaExceeded("429"))
        )
        self.assertEqual(self.orchestrator.quality.history, [])
        self.assertEqual(self.ledger.balance("local"), 100)
        self.assertEqual(self.orchestrator.metrics().detection_count, 0)
        self.assertEqual(self.usage.used("session-test"), 0)

    def test_failure_keeps_published_objects(self):
        """Test a malformed response keeps the previous set and tracker entries."""
        self.detector.queue(point("cup"))
        self.detector.queue_error(MalformedResponse("bad", raw_sample="not json"))
        self.tick()
        before = self.orchestrator.current_objects()
        last_seen = self.orchestrator.tracker.get("cup").last_seen
        self.clock.advance(2500)

        self.assertEqual(self.tick(), TickOutcome.FAILED)

        self.assertEqual(self.orchestrator.current_objects(), before)
        self.assertEqual(self.orchestrator.tracker.get("cup").last_seen, last_seen)
        self.assertEqual(self.orchestrator.status_message, GENERIC_FAILURE_MESSAGE)
        self.assertEqual(self.ledger.balance("local"), 97)

    def test_success_clears_status_message(self):
        """Test the next successful tick clears the failure message."""
        self.detector.queue_error(QuotaExceeded())
        self.detector.queue()

        self.tick()
        self.tick()

        self.assertEqual(self.orchestrator.status_message, "")

    def test_non_json_body_through_http_client(self):
        """Test a non-JSON HTTP body fails the tick without touching state."""
        ok = Mock(status_code=200, ok=True, text="")
        ok.json.return_value = {
            "success": True,
            "results": [{"point": [500, 500], "label": "cup", "confidence": 0.9}],
        }
        garbage = Mock(status_code=200, ok=True, text="not json")
        garbage.json.side_effect = ValueError("Expecting value")
        http = Mock()
        http.post.side_effect = [ok, garbage]
        client = RemoteDetectorClient("http://detector/api", session=http)
        orchestrator = self.make_orchestrator(detector=client)

        self.assertEqual(orchestrator.run_tick(self.source), TickOutcome.DETECTED)
        before = orchestrator.current_objects()
        self.clock.advance(2500)

        self.assertEqual(orchestrator.run_tick(self.source), TickOutcome.FAILED)
        self.assertEqual(orchestrator.current_objects(), before)
        self.assertEqual(self.ledger.balance("local"), 97)
        self.assertEqual(orchestrator.metrics().detection_count, 1)


class TestCancellation(OrchestratorTestCase):
    """Test responses arriving after cancel() are discarded."""

    def test_response_after_cancel_discarded(self):
        """Test a late response changes nothing and is not charged."""
        self.detector.on_call = self.orchestrator.cancel
        self.detector.queue(point("cup"))

        self.assertEqual(self.tick(), TickOutcome.DISCARDED)

        self.assertEqual(self.orchestrator.current_objects(), [])
        self.assertEqual(len(self.orchestrator.tracker), 0)
        self.assertEqual(self.ledger.balance("local"), 100)
        self.assertEqual(self.usage.used("session-test"), 0)
        self.assertEqual(self.orchestrator.quality.history, [])

    def test_failure_after_cancel_discarded(self):
        """Test a late failure does not set the overlay message."""
        self.detector.on_call = self.orchestrator.cancel
        self.detector.queue_error(QuotaExceeded())

        self.assertEqual(self.tick(), TickOutcome.DISCARDED)
        self.assertEqual(self.orchestrator.status_message, "")

    def test_no_ticks_after_cancel(self):
        """Test a cancelled orchestrator aborts every later tick."""
        self.orchestrator.cancel()

        self.assertEqual(self.tick(), TickOutcome.ABORTED)
        self.assertTrue(self.orchestrator.cancelled)
        self.assertEqual(self.orchestrator.generation, 1)
        self.assertEqual(self.detector.calls, [])


if __name__ == "__main__":
    unittest.main()
