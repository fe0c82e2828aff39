"""
Tests for the frame difference detector
"""

import unittest

import numpy as np

from realtime_detection.core.frame_diff import FrameDifferenceDetector, frame_difference


def solid_frame(value: int, shape=(8, 8, 3)) -> np.ndarray:
    return np.full(shape, value, dtype=np.uint8)


class TestFrameDifference(unittest.TestCase):
    """Test the normalized difference score."""

    def test_identical_frames_score_zero(self):
        """Test identical frames have no difference."""
        frame = solid_frame(120)
        self.assertEqual(frame_difference(frame, frame.copy()), 0.0)

    def test_black_to_white_scores_one(self):
        """Test maximum difference normalizes to 1.0."""
        self.assertAlmostEqual(frame_difference(solid_frame(0), solid_frame(255)), 1.0)

    def test_uniform_shift_is_proportional(self):
        """Test a uniform shift of 51 levels scores 0.2."""
        self.assertAlmostEqual(frame_difference(solid_frame(0), solid_frame(51)), 0.2)

    def test_only_strided_pixels_are_sampled(self):
        """Test changes on pixels between samples are not seen."""
        previous = solid_frame(0, shape=(4, 4, 3))
        current = previous.copy()
        flat = current.reshape(-1, 3)
        flat[1::4] = 255
        flat[2::4] = 255
        flat[3::4] = 255

        self.assertEqual(frame_difference(previous, current, stride=4), 0.0)
        self.assertGreater(frame_difference(previous, current, stride=1), 0.5)

    def test_alpha_channel_ignored(self):
        """Test only the first three channels contribute."""
        previous = solid_frame(0, shape=(4, 4, 4))
        current = previous.copy()
        current[:, :, 3] = 255

        self.assertEqual(frame_difference(previous, current), 0.0)

    def test_grayscale_frames(self):
        """Test single-channel frames are supported."""
        score = frame_difference(solid_frame(0, (8, 8)), solid_frame(255, (8, 8)))
        self.assertAlmostEqual(score, 1.0)


class TestFrameDifferenceDetector(unittest.TestCase):
    """Test should_process decisions and stored-sample replacement."""

    def test_first_call_always_processes(self):
        """Test the very first frame is processed regardless of content."""
        for value in (0, 128, 255):
            detector = FrameDifferenceDetector()
            self.assertTrue(detector.should_process(solid_frame(value)))

    def test_unchanged_frame_skipped(self):
        """Test an identical second frame is not processed."""
        detector = FrameDifferenceDetector()
        detector.should_process(solid_frame(50))

        self.assertFalse(detector.should_process(solid_frame(50)))
        self.assertEqual(detector.last_score, 0.0)

    def test_large_change_processed(self):
        """Test a change above the threshold is processed."""
        detector = FrameDifferenceDetector()
        detector.should_process(solid_frame(0))

        self.assertTrue(detector.should_process(solid_frame(100)))

    def test_small_change_skipped(self):
        """Test a change below the 0.15 threshold is skipped."""
        detector = FrameDifferenceDetector()
        detector.should_process(solid_frame(0))

        # 20 / 255 ~= 0.078
        self.assertFalse(detector.should_process(solid_frame(20)))

    def test_compares_against_immediately_preceding_frame(self):
        """Test the stored sample is replaced even when a frame is skipped."""
        detector = FrameDifferenceDetector()
        detector.should_process(solid_frame(0))
        self.assertFalse(detector.should_process(solid_frame(20)))

        # 40 vs the original frame would be ~0.157 (> threshold), but the
        # comparison is against the skipped 20 frame (~0.078)
        self.assertFalse(detector.should_process(solid_frame(40)))

    def test_size_change_processes(self):
        """Test a frame of different dimensions is treated as changed."""
        detector = FrameDifferenceDetector()
        detector.should_process(solid_frame(0, (8, 8, 3)))

        self.assertTrue(detector.should_process(solid_frame(0, (16, 16, 3))))

    def test_reused_frame_buffer(self):
        """Test a source that overwrites one buffer in place is still compared."""
        detector = FrameDifferenceDetector()
        buffer = solid_frame(0)
        detector.should_process(buffer)

        buffer[:] = 255

        self.assertTrue(detector.should_process(buffer))
        self.assertAlmostEqual(detector.last_score, 1.0)

    def test_reset_forgets_previous_frame(self):
        """Test reset makes the next call behave like the first."""
        detector = FrameDifferenceDetector()
        detector.should_process(solid_frame(0))
        detector.reset()

        self.assertTrue(detector.should_process(solid_frame(0)))


if __name__ == "__main__":
    unittest.main()
