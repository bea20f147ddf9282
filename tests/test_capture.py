"""
Tests for frame sources.
"""

from unittest.mock import MagicMock, patch

import cv2
import numpy as np
import pytest

from live_detector.capture import Frame, LiveSource, SourceKind, StaticSource
from live_detector.config import VideoConfig
from live_detector.errors import InvalidFrameError


class TestFrame:
    def test_dimensions(self):
        frame = Frame(pixels=np.zeros((480, 640, 3), dtype=np.uint8))
        assert (frame.width, frame.height) == (640, 480)
        assert frame.kind is SourceKind.STATIC


class TestStaticSource:
    def test_ready_exactly_once(self):
        source = StaticSource(np.zeros((10, 20, 3), dtype=np.uint8))

        assert source.has_new_frame()
        frame = source.read()
        assert frame.kind is SourceKind.STATIC
        assert (source.width, source.height) == (20, 10)

        assert not source.has_new_frame()
        assert source.read() is None

    def test_loads_image_file(self, tmp_path):
        path = str(tmp_path / "tree.png")
        cv2.imwrite(path, np.full((12, 16, 3), 200, dtype=np.uint8))

        frame = StaticSource(path).read()
        assert (frame.width, frame.height) == (16, 12)
        assert frame.color_order == "bgr"

    def test_unreadable_image(self, tmp_path):
        with pytest.raises(InvalidFrameError):
            StaticSource(str(tmp_path / "missing.png"))

    def test_context_manager(self):
        with StaticSource(np.zeros((2, 2, 3), dtype=np.uint8)) as source:
            assert source.has_new_frame()


class TestLiveSource:
    def make_source(self, read_results):
        source = LiveSource(VideoConfig(device="/dev/video0"))
        source.cap = MagicMock()
        source.cap.read.side_effect = read_results
        return source

    def test_not_ready_before_first_frame(self):
        source = LiveSource(VideoConfig())
        assert not source.has_new_frame()
        assert source.read() is None

    def test_grab_then_read_consumes_frame(self):
        pixels = np.zeros((72, 128, 3), dtype=np.uint8)
        source = self.make_source([(True, pixels)])

        assert source.grab()
        assert source.has_new_frame()
        assert (source.width, source.height) == (128, 72)

        frame = source.read()
        assert frame.pixels is pixels
        assert frame.kind is SourceKind.LIVE
        assert not source.has_new_frame()

    def test_newer_frame_overwrites_unread_one(self):
        first = np.zeros((4, 4, 3), dtype=np.uint8)
        second = np.ones((4, 4, 3), dtype=np.uint8)
        source = self.make_source([(True, first), (True, second)])

        source.grab()
        source.grab()

        assert source.read().pixels is second
        assert source.frame_count == 2

    def test_failed_read_closes_source(self):
        source = self.make_source([(False, None)])
        source.is_opened = True

        assert not source.grab()
        assert not source.is_opened

    @patch("live_detector.capture.cv2.VideoCapture")
    def test_open_reports_actual_size(self, video_capture):
        cap = video_capture.return_value
        cap.isOpened.return_value = True
        cap.read.return_value = (False, None)
        cap.get.side_effect = lambda prop: {
            cv2.CAP_PROP_FRAME_WIDTH: 1280,
            cv2.CAP_PROP_FRAME_HEIGHT: 720,
            cv2.CAP_PROP_FPS: 30,
        }.get(prop, 0)

        source = LiveSource(VideoConfig(device="clip.mp4"))
        try:
            assert source.open()
            video_capture.assert_called_once_with("clip.mp4")
        finally:
            source.release()
        cap.release.assert_called_once()

    @patch("live_detector.capture.cv2.VideoCapture")
    def test_open_failure(self, video_capture):
        video_capture.return_value.isOpened.return_value = False

        source = LiveSource(VideoConfig(device="/dev/video9"))
        assert not source.open()
        video_capture.assert_called_once_with("/dev/video9", cv2.CAP_V4L2)
