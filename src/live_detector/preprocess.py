"""
Frame to model-input tensor conversion.
"""

import cv2
import numpy as np
from .capture import Frame
from .errors import InvalidFrameError


def preprocess(frame: Frame, input_size: int) -> np.ndarray:
    """
    Stretch a frame to input_size x input_size and normalize it.

    The resize is a full-frame stretch: aspect ratio is not preserved and no
    letterbox padding is added, so boxes are scaled back per axis.

    Args:
        frame: Source frame (BGR, RGB or RGBA uint8)
        input_size: Model input size S

    Returns:
        float32 tensor of shape (1, 3, S, S), planar RGB in [0, 1]

    Raises:
        InvalidFrameError: If the frame is empty or has an unsupported layout
    """
    pixels = frame.pixels if frame is not None else None
    if not isinstance(pixels, np.ndarray) or pixels.ndim != 3:
        raise InvalidFrameError("Frame has no readable pixel buffer")

    h, w, channels = pixels.shape
    if w == 0 or h == 0:
        raise InvalidFrameError(f"Frame has zero dimension: {w}x{h}")
    if channels not in (3, 4):
        raise InvalidFrameError(f"Unsupported channel count: {channels}")

    rgb = pixels[:, :, :3]
    if frame.color_order.startswith("bgr"):
        rgb = rgb[:, :, ::-1]

    resized = cv2.resize(
        np.ascontiguousarray(rgb), (input_size, input_size), interpolation=cv2.INTER_LINEAR
    )

    tensor = resized.astype(np.float32) / 255.0
    return tensor.transpose(2, 0, 1)[np.newaxis, ...]
