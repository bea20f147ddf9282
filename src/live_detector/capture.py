"""
Frame sources: live video capture using OpenCV and static images.
"""

import cv2
import time
import logging
import threading
import numpy as np
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union
from .config import VideoConfig
from .errors import InvalidFrameError


logger = logging.getLogger(__name__)

VIDEO_FILE_EXTENSIONS = ('.mp4', '.avi', '.mkv', '.mov', '.webm')


class SourceKind(str, Enum):
    LIVE = "live"
    STATIC = "static"


@dataclass
class Frame:
    """
    A single frame handed to the detection pipeline.

    Attributes:
        pixels: Interleaved uint8 pixel buffer, HxWx3 or HxWx4.
        kind: Whether the frame came from a live or a static source.
        color_order: Channel order of ``pixels``: "bgr"/"bgra" (OpenCV), "rgb" or "rgba".
        timestamp: Capture time (time.time()).
    """
    pixels: np.ndarray
    kind: SourceKind = SourceKind.STATIC
    color_order: str = "bgr"
    timestamp: float = field(default_factory=time.time)

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1]) if self.pixels.ndim >= 2 else 0

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0]) if self.pixels.ndim >= 2 else 0


class FrameSource(ABC):
    """
    Abstraction over a live or static visual input.

    Lifecycle:
        1. open()
        2. has_new_frame() / read() repeatedly
        3. release()
    """

    kind: SourceKind

    @property
    @abstractmethod
    def width(self) -> int:
        """Current frame width in pixels (0 if unknown)."""

    @property
    @abstractmethod
    def height(self) -> int:
        """Current frame height in pixels (0 if unknown)."""

    @abstractmethod
    def has_new_frame(self) -> bool:
        """True if a fully buffered frame is ready that has not been read yet."""

    @abstractmethod
    def read(self) -> Optional[Frame]:
        """Return the ready frame and mark it consumed, or None."""

    def open(self) -> bool:
        return True

    def release(self):
        pass

    def __enter__(self) -> "FrameSource":
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()


class LiveSource(FrameSource):
    """
    Video capture with a background reader thread.

    The reader keeps only the latest decoded frame; frames that arrive before
    the previous one was consumed overwrite it.
    """

    kind = SourceKind.LIVE

    def __init__(self, config: VideoConfig):
        """
        Initialize video capture.

        Args:
            config: Video configuration
        """
        self.config = config
        self.cap: Optional[cv2.VideoCapture] = None
        self.is_opened = False
        self.frame_count = 0
        self._width = 0
        self._height = 0
        self._latest: Optional[np.ndarray] = None
        self._latest_time = 0.0
        self._fresh = False
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._reader: Optional[threading.Thread] = None

    @property
    def width(self) -> int:
        return self._width

    @property
    def height(self) -> int:
        return self._height

    def _create_capture(self) -> cv2.VideoCapture:
        device = self.config.device

        if device.isdigit():
            return cv2.VideoCapture(int(device))

        # Detect if source is a video file, a stream URL or a camera device
        if device.endswith(VIDEO_FILE_EXTENSIONS) or "://" in device:
            logger.info(f"Detected video file or stream: {device}")
            return cv2.VideoCapture(device)

        # Use V4L2 backend for camera devices
        return cv2.VideoCapture(device, cv2.CAP_V4L2)

    def open(self) -> bool:
        """
        Open video capture device and start the reader thread.

        Returns:
            True if successful, False otherwise
        """
        try:
            logger.info(f"Opening video device: {self.config.device}")
            self.cap = self._create_capture()

            if not self.cap.isOpened():
                logger.error(f"Failed to open {self.config.device}")
                return False

            # Set capture properties
            self.cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.config.width)
            self.cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.config.height)
            self.cap.set(cv2.CAP_PROP_FPS, self.config.fps)

            # Verify actual settings
            self._width = int(self.cap.get(cv2.CAP_PROP_FRAME_WIDTH))
            self._height = int(self.cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
            actual_fps = int(self.cap.get(cv2.CAP_PROP_FPS))

            logger.info(
                f"Camera opened: {self._width}x{self._height} @ {actual_fps} FPS"
            )

            self.is_opened = True
            self._stop_event.clear()
            self._reader = threading.Thread(target=self._read_loop, daemon=True)
            self._reader.start()
            return True

        except cv2.error as e:
            logger.error(f"Error opening camera: {e}")
            self.is_opened = False
            return False

    def _read_loop(self):
        while not self._stop_event.is_set():
            if not self.grab():
                break

    def grab(self) -> bool:
        """
        Read one frame from the device into the latest-frame slot.

        Returns:
            False once the device stops delivering frames
        """
        if self.cap is None:
            return False

        try:
            ret, frame = self.cap.read()
        except cv2.error as e:
            logger.error(f"Error reading frame: {e}")
            ret, frame = False, None

        if not ret or frame is None:
            logger.warning("Failed to read frame from camera")
            self.is_opened = False
            return False

        with self._lock:
            self._latest = frame
            self._latest_time = time.time()
            self._fresh = True
            self._height, self._width = frame.shape[:2]
        self.frame_count += 1
        return True

    def has_new_frame(self) -> bool:
        with self._lock:
            return self._fresh

    def read(self) -> Optional[Frame]:
        with self._lock:
            if self._latest is None:
                return None
            self._fresh = False
            return Frame(
                pixels=self._latest,
                kind=self.kind,
                color_order="bgr",
                timestamp=self._latest_time,
            )

    def release(self):
        """Release video capture resources."""
        self._stop_event.set()
        if self._reader is not None and self._reader is not threading.current_thread():
            self._reader.join(timeout=1.0)
        self._reader = None
        if self.cap is not None:
            logger.info("Releasing video capture")
            self.cap.release()
            self.cap = None
        self.is_opened = False

    def reconnect(self, retry_interval: float = 5.0) -> bool:
        """
        Try to reconnect to camera.

        Args:
            retry_interval: Seconds to wait between retries

        Returns:
            True if reconnected successfully
        """
        logger.info(f"Attempting to reconnect to {self.config.device}...")
        self.release()
        time.sleep(retry_interval)
        return self.open()


class StaticSource(FrameSource):
    """A single still image. Reports ready exactly once."""

    kind = SourceKind.STATIC

    def __init__(self, image: Union[str, np.ndarray], color_order: str = "bgr"):
        if isinstance(image, str):
            pixels = cv2.imread(image, cv2.IMREAD_COLOR)
            if pixels is None:
                raise InvalidFrameError(f"Could not read image: {image}")
            color_order = "bgr"
        else:
            pixels = np.asarray(image)
        self._frame = Frame(pixels=pixels, kind=self.kind, color_order=color_order)
        self._consumed = False

    @property
    def width(self) -> int:
        return self._frame.width

    @property
    def height(self) -> int:
        return self._frame.height

    def has_new_frame(self) -> bool:
        return not self._consumed

    def read(self) -> Optional[Frame]:
        if self._consumed:
            return None
        self._consumed = True
        return self._frame
