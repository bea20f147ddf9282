"""
Exception types raised by the detection pipeline.
"""


class DetectorError(Exception):
    """Base class for all detection pipeline errors."""


class ConfigLoadError(DetectorError, RuntimeError):
    """Model or application configuration could not be loaded. Fatal."""


class InvalidFrameError(DetectorError, ValueError):
    """Frame has zero dimensions or an unreadable pixel buffer."""


class InferenceError(DetectorError, RuntimeError):
    """Inference engine failed or returned a malformed output."""
