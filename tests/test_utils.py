"""
Tests for drawing and summary helpers.
"""

import numpy as np

from live_detector.postprocess import Detection
from live_detector.utils import count_by_class, draw_detections, format_label


def det(x, y, w, h, class_id=0, class_name="mangoTree", score=0.931):
    return Detection(x=x, y=y, w=w, h=h, score=score, class_id=class_id, class_name=class_name)


class TestFormatLabel:
    def test_percent(self):
        assert format_label(det(0, 0, 1, 1)) == "mangoTree 93.1%"


class TestDrawDetections:
    def test_draws_on_copy(self):
        image = np.zeros((100, 100, 3), dtype=np.uint8)
        annotated = draw_detections(image, [det(20, 40, 30, 30)])

        assert annotated.shape == image.shape
        assert annotated.any()
        assert not image.any()

    def test_no_detections(self):
        image = np.full((50, 60, 3), 7, dtype=np.uint8)
        assert np.array_equal(draw_detections(image, []), image)

    def test_boxes_outside_frame(self):
        image = np.zeros((50, 50, 3), dtype=np.uint8)
        annotated = draw_detections(image, [det(-20, -10, 200, 300, class_id=9)])
        assert annotated.shape == (50, 50, 3)


class TestCountByClass:
    def test_counts_include_absent_classes(self):
        detections = [
            det(0, 0, 1, 1),
            det(5, 5, 1, 1),
            det(9, 9, 1, 1, class_id=1, class_name="notMangoTree"),
        ]
        assert count_by_class(detections, ["mangoTree", "notMangoTree", "palm"]) == {
            "mangoTree": 2,
            "notMangoTree": 1,
            "palm": 0,
        }
