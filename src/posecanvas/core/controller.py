# src/posecanvas/core/controller.py
from typing import List, Optional

import numpy as np

from ..backends.base import Pose
from ..capture.source import ImageSource, Source, SourceProvider
from ..config import Configuration, RunState, clamp_threshold, get_model_spec
from ..errors import DecodeError, DeviceUnavailable, EstimationTransientError, ModelLoadError
from ..render.renderer import Renderer
from ..utils.cancel import CancelToken
from ..utils.logger import get_logger
from .loop import DetectionLoop
from .registry import ModelDescriptor, ModelRegistry
from .scheduler import FrameScheduler

log = get_logger(__name__)

FPS_IDLE_TEXT = "FPS: --"


class ControllerListener:
    """UI hooks; every method is optional. The Qt window overrides what it shows."""

    def on_state(self, state: RunState) -> None:
        pass

    def on_frame(self, image_bgr: Optional[np.ndarray]) -> None:
        # Composited frame to display, or None to blank the view
        pass

    def on_fps(self, text: str) -> None:
        pass

    def on_loading(self, loading: bool) -> None:
        pass

    def on_error(self, title: str, message: str) -> None:
        pass


class AppController:
    """
    Owns Configuration and RunState and turns user actions into transitions:

      Idle <-> LiveRunning      start_live() / stop() / toggle()
      *    ->  ImageDisplayed   select_image()  (single-shot detection)

    Each transition takes a fresh CancelToken and cancels the previous one, so
    an acquisition or model load that finishes after a later transition is
    discarded instead of applied.
    """

    def __init__(self, scheduler: FrameScheduler, listener: Optional[ControllerListener] = None,
                 provider: Optional[SourceProvider] = None, registry: Optional[ModelRegistry] = None,
                 renderer: Optional[Renderer] = None, config: Optional[Configuration] = None):
        self.listener = listener or ControllerListener()
        self.provider = provider or SourceProvider()
        self.registry = registry or ModelRegistry()
        self.renderer = renderer or Renderer()
        self.config = config or Configuration()
        self.state = RunState.IDLE
        self.loading = False

        self.loop = DetectionLoop(
            scheduler,
            on_render=self._render_live,
            on_fps=self._emit_fps,
            on_clear=self._clear_overlay,
            is_current=self.registry.is_active,
        )
        self._token = CancelToken()
        self._live_source: Optional[Source] = None
        self._image_source: Optional[ImageSource] = None
        self._image_poses: List[Pose] = []
        self._image_descriptor: Optional[ModelDescriptor] = None

    # ---------- helpers ----------
    def _new_token(self) -> CancelToken:
        self._token.cancel()
        self._token = CancelToken()
        return self._token

    def _set_state(self, state: RunState) -> None:
        if state is not self.state:
            log.info("Run state %s -> %s", self.state.value, state.value)
            self.state = state
            self.listener.on_state(state)

    def _set_loading(self, loading: bool) -> None:
        self.loading = loading
        self.listener.on_loading(loading)

    def _fail(self, title: str, err: Exception) -> None:
        log.error("%s: %s", title, err)
        self.listener.on_error(title, str(err))

    def _emit_fps(self, fps: Optional[float]) -> None:
        self.listener.on_fps(FPS_IDLE_TEXT if fps is None else f"FPS: {fps:.1f}")

    def _clear_overlay(self) -> None:
        self.renderer.clear()
        self.listener.on_frame(None)

    def _obtain_model(self, token: CancelToken) -> Optional[ModelDescriptor]:
        # Cached when the configured id is already active
        self._set_loading(True)
        try:
            descriptor = self.registry.load(self.config.model_id)
        except ModelLoadError as e:
            self._fail("Model load failed", e)
            return None
        finally:
            self._set_loading(False)
        if token.cancelled or not self.registry.is_active(descriptor):
            log.info("Model load superseded; result discarded")
            return None
        return descriptor

    def _render(self, poses: List[Pose], source: Source, frame: np.ndarray,
                descriptor: ModelDescriptor) -> None:
        self.renderer.draw(poses, source, self.config.confidence_threshold, descriptor.spec)
        self.listener.on_frame(self.renderer.composite(frame))

    def _render_live(self, poses: List[Pose], frame: np.ndarray) -> None:
        descriptor = self.loop.descriptor
        if self.state is not RunState.LIVE_RUNNING or descriptor is None or self._live_source is None:
            return
        self._render(poses, self._live_source, frame, descriptor)

    # ---------- user actions ----------
    def toggle(self) -> bool:
        if self.state is RunState.LIVE_RUNNING:
            return self.stop()
        return self.start_live()

    def start_live(self) -> bool:
        if self.state is RunState.LIVE_RUNNING:
            return False
        token = self._new_token()
        if self.state is RunState.IMAGE_DISPLAYED:
            self._forget_image()
            self._clear_overlay()
            self._set_state(RunState.IDLE)

        try:
            source = self.provider.acquire_live(token)
        except DeviceUnavailable as e:
            self._fail("Camera access failed", e)
            return False
        if source is None or token.cancelled:
            return False

        descriptor = self._obtain_model(token)
        if descriptor is None or token.cancelled:
            if self.provider.live is source:
                self.provider.release()
            return False

        self._live_source = source
        self._set_state(RunState.LIVE_RUNNING)
        self.loop.start(source, descriptor, descriptor.spec.live_max_poses)
        return True

    def stop(self) -> bool:
        """Stop live detection; a no-op unless live detection is running."""
        if self.state is not RunState.LIVE_RUNNING:
            return False
        self._new_token()
        self.loop.stop(clear_overlay=True)  # live overlay and FPS readout are wiped
        self.provider.release()
        self._live_source = None
        self._set_state(RunState.IDLE)
        return True

    def change_model(self, model_id: str) -> bool:
        get_model_spec(model_id)  # ValueError for unknown ids
        if model_id == self.config.model_id:
            return False
        log.info("Model change %s -> %s", self.config.model_id, model_id)
        self.config.model_id = model_id
        if self.state is RunState.LIVE_RUNNING:
            self.stop()
            self.registry.unload()
            return self.start_live()
        self.registry.unload()  # next start / image loads the new model lazily
        return True

    def set_confidence(self, value: float) -> float:
        self.config.confidence_threshold = clamp_threshold(value)
        if (self.state is RunState.IMAGE_DISPLAYED and self._image_source is not None
                and self._image_descriptor is not None):
            # Redraw the existing detections; the image is never re-estimated
            self._render(self._image_poses, self._image_source, self._image_source.frame(),
                         self._image_descriptor)
        return self.config.confidence_threshold

    def select_image(self, data: bytes, name: str = "") -> bool:
        self.stop()
        token = self._new_token()
        try:
            source = self.provider.load_image(data, name=name)
        except DecodeError as e:
            self._fail("Image error", e)
            return False
        return self._detect_image(source, token)

    def select_image_file(self, path: str) -> bool:
        self.stop()
        token = self._new_token()
        try:
            source = self.provider.load_image_file(path)
        except DecodeError as e:
            self._fail("Image error", e)
            return False
        return self._detect_image(source, token)

    def _forget_image(self) -> None:
        self._image_source = None
        self._image_poses = []
        self._image_descriptor = None

    def _detect_image(self, source: ImageSource, token: CancelToken) -> bool:
        self._forget_image()
        self._image_source = source
        self._set_state(RunState.IMAGE_DISPLAYED)

        descriptor = self._obtain_model(token)
        if descriptor is None:
            self.listener.on_frame(source.frame())  # show the picture without overlay
            return False

        frame = source.frame()
        max_poses = descriptor.spec.image_max_poses
        try:
            poses = descriptor.estimate(frame, max_poses=max_poses, flip_horizontal=False)
        except Exception as e:
            log.warning("Pose estimation skipped: %s", EstimationTransientError(str(e)))
            poses = []

        if token.cancelled or not self.registry.is_active(descriptor) or self._image_source is not source:
            log.info("Image result superseded; not rendered")
            return False

        self._image_poses = list(poses)
        self._image_descriptor = descriptor
        self._render(self._image_poses, source, frame, descriptor)
        log.info("Image detection: %d pose(s) with %s (maxPoses=%d)",
                 len(poses), descriptor.model_id, max_poses)
        return True

    def shutdown(self) -> None:
        self.stop()
        self._new_token()
        self.provider.release()
        self.registry.unload()
