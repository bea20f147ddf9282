"""
Utility functions for drawing detections and summarising results.
"""

import cv2
import numpy as np
from collections import Counter
from typing import Dict, List, Sequence
from .postprocess import Detection


# Colors for different classes (using OpenCV BGR format)
COLORS = [
    (0, 255, 0),      # Green
    (0, 0, 255),      # Red
    (255, 0, 0),      # Blue
    (255, 255, 0),    # Cyan
    (255, 0, 255),    # Magenta
    (0, 255, 255),    # Yellow
    (128, 0, 128),    # Purple
    (0, 165, 255),    # Orange
]


def format_label(detection: Detection) -> str:
    """Label text, e.g. "mangoTree 93.1%"."""
    return f"{detection.class_name} {detection.score * 100:.1f}%"


def draw_detections(image: np.ndarray, detections: Sequence[Detection]) -> np.ndarray:
    """
    Draw bounding boxes and labels on image.

    Args:
        image: Input image (BGR format)
        detections: Detections in image pixel coordinates

    Returns:
        Annotated copy of the image
    """
    annotated = image.copy()
    h, w = annotated.shape[:2]

    for det in detections:
        x1 = int(round(det.x))
        y1 = int(round(det.y))
        x2 = int(round(det.x + det.w))
        y2 = int(round(det.y + det.h))

        # Boxes are not clamped by the pipeline, only for drawing
        x1 = max(0, min(x1, w - 1))
        y1 = max(0, min(y1, h - 1))
        x2 = max(0, min(x2, w - 1))
        y2 = max(0, min(y2, h - 1))

        color = COLORS[det.class_id % len(COLORS)]

        cv2.rectangle(annotated, (x1, y1), (x2, y2), color, 3)

        label = format_label(det)
        (label_w, label_h), baseline = cv2.getTextSize(
            label, cv2.FONT_HERSHEY_SIMPLEX, 0.6, 2
        )

        # Draw label background above the box, or inside it at the top edge
        top = y1 - label_h - baseline - 4
        if top < 0:
            top = y1
        cv2.rectangle(
            annotated,
            (x1, top),
            (x1 + label_w + 10, top + label_h + baseline + 4),
            color,
            -1
        )

        cv2.putText(
            annotated,
            label,
            (x1 + 5, top + label_h + 2),
            cv2.FONT_HERSHEY_SIMPLEX,
            0.6,
            (0, 0, 0),
            2,
            cv2.LINE_AA
        )

    return annotated


def count_by_class(detections: Sequence[Detection],
                   class_names: List[str]) -> Dict[str, int]:
    """
    Count detections per class.

    Every configured class appears in the result, with zero if absent.
    """
    counts = Counter(det.class_name for det in detections)
    return {name: counts.get(name, 0) for name in class_names}
