"""
Pytest configuration and shared fixtures.
"""

from concurrent.futures import Executor, Future

import numpy as np
import pytest

from live_detector.capture import Frame, FrameSource, SourceKind
from live_detector.config import ModelConfig


def make_raw(boxes, scores):
    """
    Build a (1, 4 + C, N) raw output.

    Args:
        boxes: N tuples of (cx, cy, w, h)
        scores: N lists of C class scores
    """
    boxes = np.asarray(boxes, dtype=np.float32).reshape(-1, 4)
    scores = np.asarray(scores, dtype=np.float32).reshape(len(boxes), -1)
    return np.concatenate([boxes.T, scores.T], axis=0)[np.newaxis, ...]


class FakeEngine:
    """Stands in for InferenceEngine; returns a fixed raw output."""

    def __init__(self, config: ModelConfig, raw=None, error: Exception = None):
        self.config = config
        self.raw = raw
        self.error = error
        self.output_names = ["output0"]
        self.calls = 0
        self.tensors = []

    def run(self, tensor):
        self.calls += 1
        self.tensors.append(tensor)
        if self.error is not None:
            raise self.error
        return {"output0": self.raw}

    def first_output(self, outputs):
        return outputs["output0"]


class FakeSource(FrameSource):
    """Live-like source that is always ready unless told otherwise."""

    kind = SourceKind.LIVE

    def __init__(self, width=16, height=8, ready=True):
        self._width = width
        self._height = height
        self.ready = ready
        self.reads = 0

    @property
    def width(self):
        return self._width

    @property
    def height(self):
        return self._height

    def has_new_frame(self):
        return self.ready

    def read(self):
        self.reads += 1
        pixels = np.zeros((self._height, self._width, 3), dtype=np.uint8)
        return Frame(pixels=pixels, kind=self.kind)


class ManualExecutor(Executor):
    """
    Executor whose submitted calls only run when resolved by the test.

    Submitted futures are marked running straight away, as if a worker had
    picked the call up, so they can no longer be cancelled.
    """

    def __init__(self):
        self.submitted = []

    def submit(self, fn, *args, **kwargs):
        future = Future()
        future.set_running_or_notify_cancel()
        self.submitted.append((future, fn, args, kwargs))
        return future

    def resolve(self, index=-1):
        future, fn, args, kwargs = self.submitted[index]
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as e:
            future.set_exception(e)
        return future


class FakeClock:
    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def model_config():
    """Two-class config with an 8x8 model input."""
    return ModelConfig(
        input_size=8,
        num_classes=2,
        class_names=["mangoTree", "notMangoTree"],
        confidence_threshold=0.5,
        iou_threshold=0.5,
    )


@pytest.fixture
def single_box_raw():
    """One confident mangoTree box at the centre of the 8x8 input."""
    return make_raw([(4.0, 4.0, 2.0, 2.0)], [[0.9, 0.1]])


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def executor():
    return ManualExecutor()
