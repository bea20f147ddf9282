"""
Frame scheduler for streaming detection.

A single thread calls tick() periodically. Inference runs on a one-worker
executor and its completion is picked up by polling at the next tick, so all
scheduler state is only touched from the ticking thread.
"""

import time
import logging
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional
from .capture import Frame, FrameSource
from .detector import ObjectDetector
from .errors import InvalidFrameError
from .postprocess import Detection

logger = logging.getLogger(__name__)

RenderCallback = Callable[[Frame, List[Detection]], None]


class SchedulerState(str, Enum):
    IDLE = "idle"
    STREAMING = "streaming"


@dataclass
class SchedulerStats:
    """Counters since the scheduler was created."""
    cycles: int = 0
    failed_cycles: int = 0
    dropped_ticks: int = 0
    stale_results: int = 0
    fps: float = 0.0
    last_detections: int = 0


@dataclass
class _Cycle:
    generation: int
    future: Future
    frame: Frame
    started: float


class FrameScheduler:
    """
    Drives detection cycles over a frame source.

    At most one cycle is in flight. Ticks that find a cycle in flight, or an
    abandoned call still running on the worker, drop the ready frame rather
    than queueing it. stop() does not wait for the
    in-flight inference call; its result is discarded when it arrives.
    """

    def __init__(self, source: FrameSource, detector: ObjectDetector,
                 on_detections: RenderCallback,
                 cycle_timeout: Optional[float] = None,
                 executor: Optional[Executor] = None,
                 clock: Callable[[], float] = time.monotonic):
        self.source = source
        self.detector = detector
        self.on_detections = on_detections
        self.cycle_timeout = cycle_timeout
        self.stats = SchedulerStats()

        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="inference"
        )
        self._clock = clock
        self._state = SchedulerState.IDLE
        self._generation = 0
        self._in_flight: Optional[_Cycle] = None
        self._abandoned: List[_Cycle] = []
        self._last_cycle_end = clock()

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def in_flight(self) -> bool:
        return self._in_flight is not None

    def start(self):
        """Idle -> Streaming."""
        if self._state is SchedulerState.STREAMING:
            logger.warning("Scheduler already streaming")
            return

        self._generation += 1
        self._state = SchedulerState.STREAMING
        self._last_cycle_end = self._clock()
        logger.info("Scheduler started")

    def stop(self):
        """Streaming -> Idle. Returns without waiting for in-flight inference."""
        if self._state is SchedulerState.IDLE:
            return

        self._state = SchedulerState.IDLE
        self._generation += 1
        if self._in_flight is not None:
            logger.info("Stopped with inference in flight, result will be discarded")
            self._abandon(self._in_flight)
            self._in_flight = None
        logger.info("Scheduler stopped")

    def tick(self) -> bool:
        """
        Run one scheduling step.

        Returns:
            True if a new detection cycle was dispatched
        """
        self._reap_abandoned()

        if self._state is not SchedulerState.STREAMING:
            return False

        if self._in_flight is not None:
            self._poll_in_flight()

        if not self.source.has_new_frame():
            return False

        # an abandoned call still occupies the worker
        if self._in_flight is not None or self._abandoned:
            self.stats.dropped_ticks += 1
            return False

        frame = self.source.read()
        if frame is None:
            return False

        try:
            tensor = self.detector.prepare(frame)
        except InvalidFrameError as e:
            logger.warning(f"Skipping invalid frame: {e}")
            self._complete(frame, [], failed=True)
            return False

        future = self._executor.submit(self.detector.infer, tensor)
        self._in_flight = _Cycle(self._generation, future, frame, self._clock())
        return True

    def _poll_in_flight(self):
        cycle = self._in_flight

        if cycle.future.done():
            self._in_flight = None
            self._finish(cycle)
            return

        if self.cycle_timeout is not None and self._clock() - cycle.started > self.cycle_timeout:
            logger.error(f"Inference exceeded {self.cycle_timeout:.2f}s, abandoning cycle")
            self._in_flight = None
            self._generation += 1
            self._abandon(cycle)
            self._complete(cycle.frame, [], failed=True)

    def _abandon(self, cycle: _Cycle):
        # cancel() only succeeds if the worker has not picked the call up yet
        if not cycle.future.cancel():
            self._abandoned.append(cycle)

    def _reap_abandoned(self):
        if not self._abandoned:
            return
        pending = []
        for cycle in self._abandoned:
            if cycle.future.done():
                self._finish(cycle)
            else:
                pending.append(cycle)
        self._abandoned = pending

    def _finish(self, cycle: _Cycle):
        if cycle.generation != self._generation or self._state is not SchedulerState.STREAMING:
            self.stats.stale_results += 1
            logger.debug("Discarding stale inference result")
            return

        try:
            outputs = cycle.future.result()
            detections = self.detector.postprocess(
                outputs, cycle.frame.width, cycle.frame.height
            )
        except Exception as e:
            logger.error(f"Detection error: {e}")
            self._complete(cycle.frame, [], failed=True)
            return

        self._complete(cycle.frame, detections)

    def _complete(self, frame: Frame, detections: List[Detection], failed: bool = False):
        now = self._clock()
        elapsed_ms = (now - self._last_cycle_end) * 1000.0
        if elapsed_ms > 0:
            self.stats.fps = 1000.0 / elapsed_ms
        self._last_cycle_end = now

        self.stats.cycles += 1
        if failed:
            self.stats.failed_cycles += 1
        self.stats.last_detections = len(detections)

        try:
            self.on_detections(frame, detections)
        except Exception as e:
            logger.warning(f"Render callback error: {e}")

    def close(self):
        """Stop and release the executor without waiting for inference."""
        self.stop()
        if self._owns_executor:
            self._executor.shutdown(wait=False)
