# tests/conftest.py
from typing import Any, Callable, Dict, List, Optional

import cv2
import numpy as np
import pytest

from posecanvas.backends.base import COCO_KEYPOINTS, Keypoint, Pose, PoseBackend
from posecanvas.capture.source import Source, SourceProvider
from posecanvas.config import MODEL_LIGHTNING, MODEL_POSENET, MODEL_THUNDER
from posecanvas.core.controller import AppController, ControllerListener
from posecanvas.core.registry import ModelRegistry
from posecanvas.core.scheduler import FrameScheduler
from posecanvas.render.renderer import Canvas, Renderer


class ManualScheduler(FrameScheduler):
    """Collects callbacks; tests fire them explicitly with tick()."""

    def __init__(self):
        self._next = 0
        self.pending: Dict[int, Callable[[], None]] = {}
        self.cancelled: List[int] = []

    def schedule(self, callback):
        self._next += 1
        self.pending[self._next] = callback
        return self._next

    def cancel(self, handle):
        if self.pending.pop(handle, None) is not None:
            self.cancelled.append(handle)

    def tick(self, n: int = 1) -> None:
        # Run whatever is pending, n frames in a row
        for _ in range(n):
            due = list(self.pending.items())
            self.pending.clear()
            for _h, cb in due:
                cb()


class StepClock:
    def __init__(self, step_ms: float = 33.33, start: float = 0.0):
        self.now = start
        self.step = step_ms

    def __call__(self) -> float:
        t = self.now
        self.now += self.step
        return t


class FakeSource(Source):
    kind = "live"

    def __init__(self, width: int = 64, height: int = 48):
        self.w, self.h = width, height

    @property
    def width(self):
        return self.w

    @property
    def height(self):
        return self.h

    def frame(self):
        if self.w == 0 or self.h == 0:
            return None
        return np.zeros((self.h, self.w, 3), dtype=np.uint8)


def make_pose(scores: List[float], width: int = 64, height: int = 48) -> Pose:
    kps = []
    for i, s in enumerate(scores):
        kps.append(Keypoint(COCO_KEYPOINTS[i % len(COCO_KEYPOINTS)],
                            float(3 + (i * 7) % (width - 6)), float(3 + (i * 5) % (height - 6)), s))
    return Pose(keypoints=kps, score=float(np.mean(scores)) if scores else 0.0)


class FakeBackend(PoseBackend):
    def __init__(self, label: str = "fake", poses: Optional[List[Pose]] = None, fail: bool = False):
        self.label = label
        self.poses = poses if poses is not None else [make_pose([0.9] * 17)]
        self.fail = fail
        self.calls: List[Dict[str, Any]] = []
        self.closed = False
        self.on_estimate: Optional[Callable[[], None]] = None

    def name(self):
        return self.label

    def estimate(self, frame_bgr, max_poses=1, flip_horizontal=False):
        self.calls.append({"shape": frame_bgr.shape, "max_poses": max_poses, "flip": flip_horizontal})
        if self.on_estimate is not None:
            self.on_estimate()
        if self.fail:
            raise RuntimeError("roi width cannot be 0")
        return list(self.poses)

    def close(self):
        self.closed = True


class BackendFactories:
    """Per-id factories that remember every backend they built."""

    def __init__(self):
        self.built: Dict[str, List[FakeBackend]] = {}
        self.fail_ids = set()

    def factory(self, model_id):
        def build(spec):
            if model_id in self.fail_ids:
                raise FileNotFoundError(f"Model file not found: {spec.model_path}")
            b = FakeBackend(label=model_id)
            self.built.setdefault(model_id, []).append(b)
            return b
        return build

    def as_dict(self):
        return {m: self.factory(m) for m in (MODEL_LIGHTNING, MODEL_THUNDER, MODEL_POSENET)}


class FakeCapture:
    """cv2.VideoCapture stand-in: size reported after `ready_after` polls, frames after `blank_reads` reads."""

    def __init__(self, opened=True, width=64, height=48, ready_after=0, blank_reads=0):
        self.opened = opened
        self.w, self.h = width, height
        self.ready_after = ready_after
        self.blank_reads = blank_reads
        self.polls = 0
        self.reads = 0
        self.released = 0

    def isOpened(self):
        return self.opened

    def get(self, prop):
        if prop == cv2.CAP_PROP_FRAME_WIDTH:
            self.polls += 1
            return self.w if self.polls > self.ready_after else 0
        if prop == cv2.CAP_PROP_FRAME_HEIGHT:
            return self.h if self.polls > self.ready_after else 0
        return 0

    def read(self):
        self.reads += 1
        if self.reads <= self.blank_reads:
            return False, None
        return True, np.full((self.h, self.w, 3), 40, dtype=np.uint8)

    def release(self):
        self.released += 1
        self.opened = False


class RecordingCanvas(Canvas):
    def __init__(self):
        super().__init__()
        self.circles = []
        self.lines = []
        self.clears = 0

    def clear(self):
        super().clear()
        self.clears += 1
        self.circles, self.lines = [], []

    def fill_circle(self, x, y, radius, color):
        super().fill_circle(x, y, radius, color)
        self.circles.append((x, y, radius, color))

    def stroke_line(self, x1, y1, x2, y2, thickness, color):
        super().stroke_line(x1, y1, x2, y2, thickness, color)
        self.lines.append(((x1, y1), (x2, y2), thickness, color))


class SpyRenderer(Renderer):
    def __init__(self):
        super().__init__(RecordingCanvas())
        self.draws = []

    def draw(self, poses, source, confidence_threshold, spec):
        self.draws.append({"poses": list(poses), "threshold": confidence_threshold, "model": spec.model_id})
        super().draw(poses, source, confidence_threshold, spec)


class RecordingListener(ControllerListener):
    def __init__(self):
        self.states, self.frames, self.fps, self.errors, self.loading = [], [], [], [], []

    def on_state(self, state):
        self.states.append(state)

    def on_frame(self, image_bgr):
        self.frames.append(image_bgr)

    def on_fps(self, text):
        self.fps.append(text)

    def on_loading(self, loading):
        self.loading.append(loading)

    def on_error(self, title, message):
        self.errors.append((title, message))


def png_bytes(width=80, height=60) -> bytes:
    img = np.zeros((height, width, 3), dtype=np.uint8)
    img[:, : width // 2] = (0, 128, 255)
    ok, buf = cv2.imencode(".png", img)
    assert ok
    return buf.tobytes()


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def factories():
    return BackendFactories()


class CaptureFactory:
    """Hands out a fresh FakeCapture per open, like reopening a real device."""

    def __init__(self, **kwargs):
        self.kwargs = kwargs
        self.opened: List[FakeCapture] = []

    def __call__(self, *args):
        cap = FakeCapture(**self.kwargs)
        self.opened.append(cap)
        return cap


@pytest.fixture
def cameras():
    return CaptureFactory()


@pytest.fixture
def app(scheduler, factories, cameras):
    provider = SourceProvider(capture_factory=cameras, open_timeout_s=0.5,
                              sleep=lambda s: None)
    listener = RecordingListener()
    ctrl = AppController(scheduler, listener=listener, provider=provider,
                         registry=ModelRegistry(factories.as_dict()), renderer=SpyRenderer())
    return ctrl
