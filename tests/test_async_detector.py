import time

import numpy as np
import pytest

from core.async_detector import AsyncPoseSource, PoseSource
from core.observation import Observation, ObservationSlot


class FakeDetector:
    def __init__(self, fail=False):
        self.fail = fail
        self.frames = []
        self.closed = False

    def detect(self, frame, timestamp=None):
        self.frames.append(frame.shape)
        if self.fail:
            raise RuntimeError("model crashed")
        return Observation.of([], timestamp=timestamp)

    def close(self):
        self.closed = True


def _wait_for(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.005)
    return False


@pytest.fixture
def frame():
    return np.zeros((120, 160, 3), dtype=np.uint8)


def test_background_inference_publishes(frame):
    slot = ObservationSlot()
    detector = FakeDetector()
    source = AsyncPoseSource(slot, detector=detector, infer_width=80, infer_height=60)
    source.start()
    try:
        source.submit_frame(frame)
        assert _wait_for(lambda: slot.latest()[0] > 0)
    finally:
        source.stop()

    assert detector.frames[0] == (60, 80, 3)
    assert source.processed_frames >= 1
    assert detector.closed
    assert not source.running


def test_failed_inference_publishes_nothing(frame):
    slot = ObservationSlot()
    source = AsyncPoseSource(slot, detector=FakeDetector(fail=True), infer_width=80, infer_height=60)
    source.start()
    try:
        source.submit_frame(frame)
        assert _wait_for(lambda: source.failed_frames > 0)
    finally:
        source.stop()

    assert slot.latest() == (0, None)
    assert source.processed_frames == 0


def test_sync_mode_publishes_immediately(frame):
    slot = ObservationSlot()
    detector = FakeDetector()
    source = PoseSource(slot, async_mode=False, detector=detector, infer_width=80, infer_height=60)
    source.start()
    source.feed(frame)
    source.feed(frame)
    source.stop()

    assert slot.latest()[0] == 2
    assert len(detector.frames) == 2
    assert detector.closed
