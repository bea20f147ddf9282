"""
Flask-based MJPEG streaming server with web UI.
"""

import cv2
import time
import logging
import threading
import numpy as np
from pathlib import Path
from typing import Dict, List, Optional
from flask import Flask, Response, jsonify
from .capture import Frame
from .config import StreamConfig
from .postprocess import Detection
from .utils import count_by_class, draw_detections


logger = logging.getLogger(__name__)


class MJPEGStreamer:
    """
    MJPEG streaming server using Flask.

    Acts as the rendering callback of the frame scheduler: each completed
    cycle's frame is annotated and becomes the current stream frame.
    """

    def __init__(self, config: StreamConfig, class_names: List[str],
                 web_dir: str = "/opt/live-detector/web"):
        """
        Initialize MJPEG streamer.

        Args:
            config: Stream configuration
            class_names: Model class names, for per-class counts
            web_dir: Directory containing web UI files
        """
        self.config = config
        self.class_names = class_names
        self.web_dir = web_dir
        self.app = Flask(__name__)
        self.app.logger.setLevel(logging.WARNING)

        # Thread-safe frame buffer
        self.current_frame: Optional[np.ndarray] = None
        self.frame_lock = threading.Lock()

        # Statistics
        self.stats = {
            'fps': 0.0,
            'inference_time': 0.0,
            'num_detections': 0,
            'counts': {name: 0 for name in class_names},
            'dropped_frames': 0,
            'failed_cycles': 0,
            'total_frames': 0
        }
        self.stats_lock = threading.Lock()
        self.start_time = time.time()

        self._setup_routes()

        # Server thread
        self.server_thread: Optional[threading.Thread] = None
        self.is_running = False

    def _setup_routes(self):
        """Setup Flask routes."""

        @self.app.route('/')
        def index():
            """Serve web UI."""
            index_path = Path(self.web_dir) / 'index.html'
            try:
                if index_path.exists():
                    return index_path.read_text()
            except OSError as e:
                logger.error(f"Error serving index: {e}")
            return self._get_minimal_ui()

        @self.app.route('/stream')
        def stream():
            """MJPEG stream endpoint."""
            return Response(
                self._generate_frames(),
                mimetype='multipart/x-mixed-replace; boundary=frame'
            )

        @self.app.route('/health')
        def health():
            """Health check endpoint."""
            with self.stats_lock:
                return jsonify({
                    'status': 'running',
                    'uptime': int(time.time() - self.start_time),
                    'fps': round(self.stats['fps'], 2)
                })

        @self.app.route('/api/stats')
        def stats():
            """Statistics endpoint."""
            with self.stats_lock:
                return jsonify({
                    'fps': round(self.stats['fps'], 2),
                    'inference_time': round(self.stats['inference_time'], 3),
                    'num_detections': self.stats['num_detections'],
                    'counts': dict(self.stats['counts']),
                    'dropped_frames': self.stats['dropped_frames'],
                    'failed_cycles': self.stats['failed_cycles'],
                    'uptime': int(time.time() - self.start_time),
                    'total_frames': self.stats['total_frames']
                })

    def _get_minimal_ui(self) -> str:
        """Get minimal fallback UI."""
        return """
        <!DOCTYPE html>
        <html>
        <head><title>Live Object Detection</title></head>
        <body>
            <h1>Live Object Detection</h1>
            <img src="/stream" style="max-width: 100%;">
        </body>
        </html>
        """

    def encode_current_frame(self) -> Optional[bytes]:
        """JPEG bytes of the current frame, or None if there is none yet."""
        with self.frame_lock:
            if self.current_frame is None:
                return None
            ret, buffer = cv2.imencode(
                '.jpg',
                self.current_frame,
                [cv2.IMWRITE_JPEG_QUALITY, self.config.jpeg_quality]
            )
        return buffer.tobytes() if ret else None

    def _generate_frames(self):
        """
        Generator for MJPEG frames.

        Yields:
            MJPEG frame data
        """
        while True:
            frame_bytes = self.encode_current_frame()
            if frame_bytes is not None:
                yield (b'--frame\r\n'
                       b'Content-Type: image/jpeg\r\n\r\n' + frame_bytes + b'\r\n')

            # Small delay to prevent busy waiting
            time.sleep(0.01)

    def render(self, frame: Frame, detections: List[Detection]):
        """
        Annotate a completed cycle's frame and publish it.

        Args:
            frame: Frame the detections were computed on
            detections: Final detections in frame pixels
        """
        pixels = frame.pixels
        if frame.color_order == "rgb":
            pixels = cv2.cvtColor(pixels, cv2.COLOR_RGB2BGR)
        elif frame.color_order == "rgba":
            pixels = cv2.cvtColor(pixels, cv2.COLOR_RGBA2BGR)
        elif frame.color_order == "bgra":
            pixels = cv2.cvtColor(pixels, cv2.COLOR_BGRA2BGR)

        annotated = draw_detections(pixels, detections)
        with self.frame_lock:
            self.current_frame = annotated

        with self.stats_lock:
            self.stats['num_detections'] = len(detections)
            self.stats['counts'] = count_by_class(detections, self.class_names)
            self.stats['total_frames'] += 1

    def update_stats(self, fps: float, inference_time: float,
                     dropped_frames: int, failed_cycles: int):
        """
        Update scheduler statistics.

        Args:
            fps: Completed detection cycles per second
            inference_time: Last inference call duration in seconds
            dropped_frames: Frames skipped while a cycle was in flight
            failed_cycles: Cycles that produced no detections due to errors
        """
        with self.stats_lock:
            self.stats['fps'] = fps
            self.stats['inference_time'] = inference_time
            self.stats['dropped_frames'] = dropped_frames
            self.stats['failed_cycles'] = failed_cycles

    def get_counts(self) -> Dict[str, int]:
        with self.stats_lock:
            return dict(self.stats['counts'])

    def start(self):
        """Start the streaming server in a separate thread."""
        if self.is_running:
            logger.warning("Streamer already running")
            return

        logger.info(f"Starting MJPEG server on {self.config.host}:{self.config.port}")

        def run_server():
            self.app.run(
                host=self.config.host,
                port=self.config.port,
                threaded=True,
                debug=False,
                use_reloader=False
            )

        self.server_thread = threading.Thread(target=run_server, daemon=True)
        self.server_thread.start()
        self.is_running = True

        logger.info("MJPEG server started")

    def stop(self):
        """Stop the streaming server."""
        self.is_running = False
        logger.info("MJPEG server stopped")
