"""
YOLOv8 output decoding, non-maximum suppression and box rescaling.

Raw output layout is (1, 4 + C, N): rows 0-3 hold cx, cy, w, h in model-input
pixels and rows 4..4+C hold per-class scores, one column per anchor.
"""

import logging
import numpy as np
from dataclasses import dataclass, replace
from typing import List, Sequence
from .config import ModelConfig
from .errors import InferenceError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Detection:
    """Axis-aligned box in top-left + size form."""
    x: float
    y: float
    w: float
    h: float
    score: float
    class_id: int
    class_name: str


def decode(raw_output: np.ndarray, config: ModelConfig) -> List[Detection]:
    """
    Turn one raw output tensor into thresholded candidates.

    Candidates stay in model-input space and are emitted in ascending anchor
    order. No suppression happens here.

    Raises:
        InferenceError: If the output does not have 4 + num_classes rows
    """
    output = np.asarray(raw_output, dtype=np.float32)
    if output.ndim == 3 and output.shape[0] == 1:
        output = output[0]

    expected_rows = 4 + config.num_classes
    if output.ndim != 2 or output.shape[0] != expected_rows:
        raise InferenceError(
            f"Unexpected output shape {np.shape(raw_output)}, expected (1, {expected_rows}, N)"
        )

    class_scores = output[4:]
    if class_scores.shape[1] == 0:
        return []

    # argmax returns the first maximum, so ties go to the lowest class id
    class_ids = np.argmax(class_scores, axis=0)
    max_scores = class_scores[class_ids, np.arange(class_scores.shape[1])]
    keep = np.flatnonzero(max_scores > config.confidence_threshold)

    cx, cy, w, h = output[0, keep], output[1, keep], output[2, keep], output[3, keep]
    xs = cx - w / 2
    ys = cy - h / 2

    detections = []
    for i, n in enumerate(keep):
        class_id = int(class_ids[n])
        detections.append(Detection(
            x=float(xs[i]),
            y=float(ys[i]),
            w=float(w[i]),
            h=float(h[i]),
            score=float(max_scores[n]),
            class_id=class_id,
            class_name=config.class_names[class_id],
        ))
    return detections


def iou(a: Detection, b: Detection) -> float:
    """Intersection over union of two boxes. Zero-area unions give 0.0."""
    x1 = max(a.x, b.x)
    y1 = max(a.y, b.y)
    x2 = min(a.x + a.w, b.x + b.w)
    y2 = min(a.y + a.h, b.y + b.h)

    intersection = max(0.0, x2 - x1) * max(0.0, y2 - y1)
    union = a.w * a.h + b.w * b.h - intersection
    if union <= 0:
        return 0.0
    return intersection / union


def _iou_against(boxes: np.ndarray, areas: np.ndarray, i: int) -> np.ndarray:
    """IoU of box i against every box, as one vector."""
    x1 = np.maximum(boxes[i, 0], boxes[:, 0])
    y1 = np.maximum(boxes[i, 1], boxes[:, 1])
    x2 = np.minimum(boxes[i, 2], boxes[:, 2])
    y2 = np.minimum(boxes[i, 3], boxes[:, 3])

    intersection = np.maximum(0.0, x2 - x1) * np.maximum(0.0, y2 - y1)
    union = areas[i] + areas - intersection
    with np.errstate(divide="ignore", invalid="ignore"):
        overlap = intersection / union
    return np.where(union > 0, overlap, 0.0)


def suppress(candidates: Sequence[Detection], iou_threshold: float) -> List[Detection]:
    """
    Greedy class-agnostic non-maximum suppression.

    Candidates are visited in descending score order (stable, so equal scores
    keep their input order). Each unsuppressed candidate is kept and suppresses
    every other unsuppressed candidate whose IoU with it exceeds the threshold,
    regardless of class.

    Returns:
        Kept detections in the order they were kept
    """
    if not candidates:
        return []

    boxes = np.array(
        [[d.x, d.y, d.x + d.w, d.y + d.h] for d in candidates], dtype=np.float64
    )
    areas = np.array([d.w * d.h for d in candidates], dtype=np.float64)
    scores = np.array([d.score for d in candidates], dtype=np.float64)

    order = np.argsort(-scores, kind="stable")
    suppressed = np.zeros(len(candidates), dtype=bool)
    kept = []

    for idx in order:
        if suppressed[idx]:
            continue
        kept.append(int(idx))

        overlaps = _iou_against(boxes, areas, idx) > iou_threshold
        overlaps[idx] = False
        suppressed |= overlaps

    return [candidates[i] for i in kept]


def rescale(detection: Detection, model_input_size: int,
            source_width: int, source_height: int) -> Detection:
    """Map a model-input-space box to source-frame pixels, per axis."""
    scale_x = source_width / model_input_size
    scale_y = source_height / model_input_size
    return replace(
        detection,
        x=detection.x * scale_x,
        y=detection.y * scale_y,
        w=detection.w * scale_x,
        h=detection.h * scale_y,
    )


def postprocess(raw_output: np.ndarray, config: ModelConfig,
                source_width: int, source_height: int) -> List[Detection]:
    """Decode, rescale to the source frame, then suppress."""
    candidates = [
        rescale(d, config.input_size, source_width, source_height)
        for d in decode(raw_output, config)
    ]
    if not candidates:
        return []

    detections = suppress(candidates, config.iou_threshold)
    logger.debug(f"Candidates: {len(candidates)}, kept after NMS: {len(detections)}")
    return detections
