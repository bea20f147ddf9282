"""
Live Object Detection

Real-time object detection on camera feeds and still images using a
YOLOv8-style ONNX model. Frames are scheduled through a lossy single-flight
pipeline and annotated video is streamed via HTTP MJPEG.
"""

__version__ = "1.1.0"
__author__ = "FleeKey"
__license__ = "MIT"
