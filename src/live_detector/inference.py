"""
ONNX Runtime inference wrapper for Live Object Detection.
"""

import logging
import numpy as np
import onnxruntime as ort
from collections import OrderedDict
from typing import Dict, List, Optional
from .config import ModelConfig, load_model_config
from .errors import ConfigLoadError, InferenceError

logger = logging.getLogger(__name__)

DEFAULT_PROVIDERS = ["CPUExecutionProvider"]


class InferenceEngine:
    """
    Explicit handle on a loaded model and its config.

    Constructed once by the caller and passed to the pipeline; there is no
    reload or unload.
    """

    def __init__(self, session, config: ModelConfig):
        self.session = session
        self.config = config
        self.input_name = session.get_inputs()[0].name
        self.output_names = [o.name for o in session.get_outputs()]

    @classmethod
    def load(cls, model_path: str, config_path: str,
             providers: Optional[List[str]] = None) -> "InferenceEngine":
        """
        Load the model and its config.

        Raises:
            ConfigLoadError: If either resource cannot be loaded
        """
        config = load_model_config(config_path)

        logger.info(f"Loading model: {model_path}")
        try:
            session = ort.InferenceSession(
                model_path, providers=providers or DEFAULT_PROVIDERS
            )
        except Exception as e:
            raise ConfigLoadError(f"Failed to load model {model_path}: {e}") from e

        engine = cls(session, config)
        logger.info(
            f"Model loaded - Provider: {session.get_providers()[0]}, "
            f"Input: {engine.input_name}, Outputs: {engine.output_names}"
        )
        logger.info(
            f"Classes: {config.class_names}, input size {config.input_size}, "
            f"conf > {config.confidence_threshold}, iou > {config.iou_threshold}"
        )
        return engine

    def run(self, tensor: np.ndarray) -> Dict[str, np.ndarray]:
        """
        Run inference on one preprocessed tensor.

        Returns:
            Output name to array, in the model's declared output order

        Raises:
            InferenceError: If the runtime call fails
        """
        try:
            outputs = self.session.run(self.output_names, {self.input_name: tensor})
        except Exception as e:
            raise InferenceError(f"Inference failed: {e}") from e

        return OrderedDict(zip(self.output_names, outputs))

    def first_output(self, outputs: Dict[str, np.ndarray]) -> np.ndarray:
        """The first declared output, the only one the decoder consumes."""
        try:
            return outputs[self.output_names[0]]
        except (KeyError, IndexError) as e:
            raise InferenceError(f"Missing model output: {e}") from e
