# src/posecanvas/core/loop.py
import time
from typing import Any, Callable, List, Optional

import numpy as np

from ..backends.base import Pose
from ..capture.source import Source
from ..errors import EstimationTransientError
from ..utils.logger import get_logger
from .registry import ModelDescriptor
from .scheduler import FrameScheduler

log = get_logger(__name__)

STOPPED = "STOPPED"
RUNNING = "RUNNING"


def perf_ms() -> float:
    return time.perf_counter() * 1000.0


def compute_fps(prev_ms: float, now_ms: float) -> Optional[float]:
    # Instantaneous rate from one frame interval, one decimal
    dt = now_ms - prev_ms
    if dt <= 0:
        return None
    return round(1000.0 / dt, 1)


class DetectionLoop:
    """
    Cooperative per-frame detection: frame -> estimate -> fps -> render -> reschedule.

    Every cycle is tagged with the run it belongs to; a stop (or a restart)
    bumps the run id, and the cancelled handle guarantees that no cycle of a
    previous run survives. Results computed against a descriptor that is no
    longer active (``is_current`` returns False) are dropped unrendered.
    """

    def __init__(self, scheduler: FrameScheduler,
                 on_render: Callable[[List[Pose], np.ndarray], None],
                 on_fps: Callable[[Optional[float]], None],
                 on_clear: Callable[[], None],
                 is_current: Optional[Callable[[ModelDescriptor], bool]] = None,
                 clock: Callable[[], float] = perf_ms):
        self.scheduler = scheduler
        self.on_render = on_render
        self.on_fps = on_fps
        self.on_clear = on_clear
        self.is_current = is_current or (lambda _d: True)
        self.clock = clock

        self.state = STOPPED
        self._handle: Any = None
        self._run_id = 0
        self._source: Optional[Source] = None
        self._descriptor: Optional[ModelDescriptor] = None
        self._max_poses = 1
        self._last_ms: Optional[float] = None
        self.cycles = 0           # completed (rendered) cycles of the current run
        self.estimate_calls = 0   # estimate() invocations of the current run

    @property
    def running(self) -> bool:
        return self.state == RUNNING

    @property
    def descriptor(self) -> Optional[ModelDescriptor]:
        return self._descriptor

    def start(self, source: Source, descriptor: ModelDescriptor, max_poses: int) -> bool:
        if self.state == RUNNING:
            log.debug("start() ignored: loop already running")
            return False
        self._run_id += 1
        self._source = source
        self._descriptor = descriptor
        self._max_poses = int(max_poses)
        self._last_ms = self.clock()
        self.cycles = 0
        self.estimate_calls = 0
        self.state = RUNNING
        log.info("Detection loop started (%s, maxPoses=%d)", descriptor.model_id, self._max_poses)
        self._schedule_next(self._run_id)
        return True

    def stop(self, clear_overlay: bool = True) -> bool:
        if self.state != RUNNING:
            return False  # already stopped: nothing to cancel or clear
        if self._handle is not None:
            self.scheduler.cancel(self._handle)
            self._handle = None
        self._run_id += 1  # invalidates a cycle that is mid-flight
        self.state = STOPPED
        self._source = None
        self._descriptor = None
        log.info("Detection loop stopped after %d cycles", self.cycles)
        if clear_overlay:
            self.on_clear()
            self.on_fps(None)
        return True

    def _schedule_next(self, run_id: int) -> None:
        self._handle = self.scheduler.schedule(lambda: self._cycle(run_id))

    def _cycle(self, run_id: int) -> None:
        if run_id != self._run_id or self.state != RUNNING:
            return  # stale callback from a stopped / restarted run
        self._handle = None
        source, descriptor = self._source, self._descriptor

        frame = source.frame()
        if frame is None or source.width == 0 or source.height == 0:
            # Device has not produced real pixels yet
            self._schedule_next(run_id)
            return

        self.estimate_calls += 1
        try:
            poses = descriptor.estimate(frame, max_poses=self._max_poses, flip_horizontal=False)
        except Exception as e:
            err = EstimationTransientError(str(e))
            log.warning("Pose estimation skipped: %s", err)
            poses = []

        # Apply only if this run and model are still the current ones
        if run_id != self._run_id or self.state != RUNNING or not self.is_current(descriptor):
            log.debug("Discarding result from superseded run/model")
            return

        now = self.clock()
        fps = compute_fps(self._last_ms, now) if self._last_ms is not None else None
        self._last_ms = now
        try:
            if fps is not None:
                self.on_fps(fps)
            self.on_render(poses, frame)
            self.cycles += 1
        finally:
            # A failing render must not leave a RUNNING loop with nothing scheduled
            if run_id == self._run_id and self.state == RUNNING:
                self._schedule_next(run_id)
