"""
Main entry point for Live Object Detection.
"""

import sys
import time
import signal
import logging
import argparse

import cv2

from . import __version__
from .config import Config, load_config, save_example_config
from .capture import LiveSource, StaticSource
from .detector import ObjectDetector
from .errors import ConfigLoadError, DetectorError
from .inference import InferenceEngine
from .scheduler import FrameScheduler
from .streamer import MJPEGStreamer
from .utils import count_by_class, draw_detections, format_label


# Global shutdown flag
shutdown_flag = False

STATS_LOG_INTERVAL = 30.0


def signal_handler(signum, frame):
    """Handle shutdown signals."""
    global shutdown_flag
    logger.info(f"Received signal {signum}, shutting down...")
    shutdown_flag = True


def setup_logging(level: str = "INFO"):
    """
    Setup logging configuration.

    Args:
        level: Logging level
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        level=numeric_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )


logger = logging.getLogger("live_detector")


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description='Live Object Detection Service')
    parser.add_argument(
        '-c', '--config',
        default='/etc/live-detector/config.yaml',
        help='Path to configuration file'
    )
    parser.add_argument(
        '-d', '--debug',
        action='store_true',
        help='Enable debug logging'
    )
    parser.add_argument(
        '--image',
        help='Detect on a single image instead of the live feed'
    )
    parser.add_argument(
        '-o', '--output',
        default='detections.jpg',
        help='Annotated image path for --image mode'
    )
    parser.add_argument(
        '--write-example-config',
        metavar='PATH',
        help='Write an example configuration file and exit'
    )
    return parser.parse_args(argv)


def main(argv=None) -> int:
    """Main application entry point."""
    args = parse_args(argv)

    if args.write_example_config:
        save_example_config(args.write_example_config)
        print(f"Example configuration written to {args.write_example_config}")
        return 0

    try:
        config = load_config(args.config)
    except ConfigLoadError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    log_level = "DEBUG" if args.debug else config.logging.level
    setup_logging(log_level)

    logger.info("=" * 70)
    logger.info(f"Live Object Detection v{__version__}")
    logger.info("=" * 70)

    try:
        engine = InferenceEngine.load(
            config.model.model_path, config.model.config_path, config.model.providers
        )
    except ConfigLoadError as e:
        logger.error(f"Cannot start without a model: {e}")
        return 1

    detector = ObjectDetector(engine)

    if args.image:
        return run_image(detector, args.image, args.output)
    return run_live(detector, config)


def run_image(detector: ObjectDetector, image_path: str, output_path: str) -> int:
    """
    Detect objects in one still image and write an annotated copy.

    Args:
        detector: Detector instance
        image_path: Input image
        output_path: Where to write the annotated image
    """
    try:
        source = StaticSource(image_path)
        frame = source.read()
        detections = detector.detect(frame)
    except DetectorError as e:
        logger.error(f"Detection error: {e}")
        return 1

    logger.info(f"Detections: {len(detections)} (inference {detector.last_inference_time * 1000:.0f} ms)")
    for det in detections:
        logger.info(f"  {format_label(det)} at x={det.x:.0f} y={det.y:.0f} w={det.w:.0f} h={det.h:.0f}")
    for name, count in count_by_class(detections, detector.config.class_names).items():
        logger.info(f"  {name}: {count}")

    annotated = draw_detections(frame.pixels, detections)
    if not cv2.imwrite(output_path, annotated):
        logger.error(f"Failed to write {output_path}")
        return 1
    logger.info(f"Annotated image written to {output_path}")
    return 0


def run_live(detector: ObjectDetector, config: Config) -> int:
    """Stream detections from the configured video source."""
    signal.signal(signal.SIGTERM, signal_handler)
    signal.signal(signal.SIGINT, signal_handler)

    video_capture = None
    scheduler = None
    streamer = None

    try:
        logger.info("Initializing video capture...")
        video_capture = LiveSource(config.video)

        logger.info("Initializing MJPEG streamer...")
        streamer = MJPEGStreamer(config.stream, detector.config.class_names)
        streamer.start()

        scheduler = FrameScheduler(
            video_capture,
            detector,
            streamer.render,
            cycle_timeout=config.scheduler.cycle_timeout,
        )

        logger.info(f"Stream available at http://<your-ip>:{config.stream.port}/")
        logger.info("Starting main processing loop...")

        if not video_capture.open():
            logger.error("Failed to open camera initially, will retry...")

        run_main_loop(video_capture, scheduler, streamer, config.scheduler.tick_interval)

    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        return 1

    finally:
        logger.info("Cleaning up...")

        if scheduler is not None:
            scheduler.close()

        if video_capture is not None:
            video_capture.release()

        if streamer is not None:
            streamer.stop()

        logger.info("Shutdown complete")

    return 0


def run_main_loop(video_capture: LiveSource, scheduler: FrameScheduler,
                  streamer: MJPEGStreamer, tick_interval: float):
    """
    Main processing loop: one scheduler tick per iteration.

    Args:
        video_capture: Video capture instance
        scheduler: Frame scheduler
        streamer: Streamer instance
        tick_interval: Seconds to sleep between ticks
    """
    last_stats_log_time = time.time()
    scheduler.start()

    while not shutdown_flag:
        if not video_capture.is_opened:
            logger.warning("Camera not available, attempting to reconnect...")
            scheduler.stop()
            if not video_capture.reconnect():
                continue
            scheduler.start()

        scheduler.tick()

        stats = scheduler.stats
        inference_time = scheduler.detector.last_inference_time
        streamer.update_stats(stats.fps, inference_time, stats.dropped_ticks, stats.failed_cycles)

        # Log statistics every 30 seconds
        if time.time() - last_stats_log_time >= STATS_LOG_INTERVAL:
            logger.info(
                f"Stats: FPS={stats.fps:.1f}, Inference={inference_time * 1000:.1f}ms, "
                f"Cycles={stats.cycles}, Detections={stats.last_detections}, "
                f"Counts={streamer.get_counts()}, Dropped={stats.dropped_ticks}, "
                f"Failed={stats.failed_cycles}"
            )
            last_stats_log_time = time.time()

        time.sleep(tick_interval)

    scheduler.stop()


if __name__ == '__main__':
    sys.exit(main())
