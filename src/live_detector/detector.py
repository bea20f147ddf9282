"""
YOLOv8 detection module for Live Object Detection.
"""

import time
import logging
import numpy as np
from typing import Dict, List
from .capture import Frame
from .inference import InferenceEngine
from .postprocess import Detection, postprocess
from .preprocess import preprocess

logger = logging.getLogger(__name__)


class ObjectDetector:
    """Runs the full detection pipeline for a single frame."""

    def __init__(self, engine: InferenceEngine):
        self.engine = engine
        self.config = engine.config
        self.last_inference_time = 0.0

    def prepare(self, frame: Frame) -> np.ndarray:
        """Frame to (1, 3, S, S) tensor."""
        return preprocess(frame, self.config.input_size)

    def postprocess(self, outputs: Dict[str, np.ndarray],
                    source_width: int, source_height: int) -> List[Detection]:
        """Engine outputs to final detections in source-frame pixels."""
        raw = self.engine.first_output(outputs)
        return postprocess(raw, self.config, source_width, source_height)

    def infer(self, tensor: np.ndarray) -> Dict[str, np.ndarray]:
        """Run the engine once, recording its latency."""
        start = time.perf_counter()
        outputs = self.engine.run(tensor)
        self.last_inference_time = time.perf_counter() - start
        logger.debug(f"Inference: {self.last_inference_time * 1000:.0f} ms")
        return outputs

    def detect(self, frame: Frame) -> List[Detection]:
        """
        Detect objects in a frame synchronously.

        Raises:
            InvalidFrameError: If the frame cannot be preprocessed
            InferenceError: If the engine fails or returns a malformed output
        """
        tensor = self.prepare(frame)
        outputs = self.infer(tensor)
        return self.postprocess(outputs, frame.width, frame.height)
