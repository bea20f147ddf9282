#!/usr/bin/env python3
"""
Test script to debug ONNX inference with a single frame.
"""

import os
import sys
import logging
import argparse

import cv2
import numpy as np

# Add src to path for testing before installation
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from live_detector.capture import Frame, StaticSource, SourceKind
from live_detector.inference import InferenceEngine
from live_detector.postprocess import decode, suppress, rescale
from live_detector.preprocess import preprocess

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def capture_frame(device: str):
    cap = cv2.VideoCapture(int(device) if device.isdigit() else device)
    ret, pixels = cap.read()
    cap.release()
    if not ret:
        return None
    return Frame(pixels=pixels, kind=SourceKind.LIVE)


def main():
    parser = argparse.ArgumentParser(description='Single-frame ONNX inference check')
    parser.add_argument('--model', default='/opt/live-detector/models/model.onnx')
    parser.add_argument('--model-config', default='/opt/live-detector/models/model_config.json')
    parser.add_argument('--image', help='Image file (default: grab from camera)')
    parser.add_argument('--device', default='/dev/video0')
    args = parser.parse_args()

    engine = InferenceEngine.load(args.model, args.model_config)
    config = engine.config

    for inp in engine.session.get_inputs():
        logger.info(f"Input '{inp.name}': shape={inp.shape}, type={inp.type}")
    for out in engine.session.get_outputs():
        logger.info(f"Output '{out.name}': shape={out.shape}, type={out.type}")

    frame = StaticSource(args.image).read() if args.image else capture_frame(args.device)
    if frame is None:
        logger.error("Failed to capture frame")
        return 1

    logger.info(f"Frame: {frame.width}x{frame.height}, dtype: {frame.pixels.dtype}")

    tensor = preprocess(frame, config.input_size)
    logger.info(f"Tensor: {tensor.shape}, dtype: {tensor.dtype}")
    logger.info(f"Tensor range: [{tensor.min():.3f}, {tensor.max():.3f}], mean: {tensor.mean():.3f}")

    outputs = engine.run(tensor)
    raw = engine.first_output(outputs)
    logger.info(f"Raw output: shape={raw.shape}, dtype={raw.dtype}")

    class_scores = np.asarray(raw).reshape(4 + config.num_classes, -1)[4:]
    logger.info(f"Max class score over all anchors: {class_scores.max():.3f}")

    candidates = decode(raw, config)
    logger.info(f"Candidates above {config.confidence_threshold}: {len(candidates)}")

    scaled = [rescale(c, config.input_size, frame.width, frame.height) for c in candidates]
    kept = suppress(scaled, config.iou_threshold)
    logger.info(f"Kept after NMS at {config.iou_threshold}: {len(kept)}")
    for det in kept:
        logger.info(
            f"  {det.class_name} {det.score:.3f} "
            f"x={det.x:.1f} y={det.y:.1f} w={det.w:.1f} h={det.h:.1f}"
        )

    logger.info("Test complete!")
    return 0


if __name__ == "__main__":
    sys.exit(main())
