# src/posecanvas/core/registry.py
from typing import Callable, Dict, List, Optional

import numpy as np

from ..backends.base import Pose, PoseBackend
from ..config import (
    MODEL_LIGHTNING, MODEL_POSENET, MODEL_THUNDER, ModelSpec, get_model_spec, model_file,
)
from ..errors import ModelLoadError
from ..utils.logger import get_logger

log = get_logger(__name__)

BackendFactory = Callable[[ModelSpec], PoseBackend]


def _movenet_factory(variant: str) -> BackendFactory:
    def build(spec: ModelSpec) -> PoseBackend:
        from ..backends.movenet_backend import MoveNetBackend
        return MoveNetBackend(model_file(spec), variant=variant)
    return build


def _posenet_factory(spec: ModelSpec) -> PoseBackend:
    from ..backends.posenet_backend import PoseNetBackend
    return PoseNetBackend(model_file(spec))


DEFAULT_FACTORIES: Dict[str, BackendFactory] = {
    MODEL_LIGHTNING: _movenet_factory("lightning"),
    MODEL_THUNDER: _movenet_factory("thunder"),
    MODEL_POSENET: _posenet_factory,
}


class ModelDescriptor:
    """A loaded model: its static spec plus the live backend that runs it."""

    def __init__(self, spec: ModelSpec, backend: PoseBackend):
        self.spec = spec
        self.backend = backend
        self.closed = False

    @property
    def model_id(self) -> str:
        return self.spec.model_id

    @property
    def skeleton_edges(self):
        return self.spec.skeleton_edges

    def estimate(self, frame_bgr: np.ndarray, max_poses: int = 1,
                 flip_horizontal: bool = False) -> List[Pose]:
        return self.backend.estimate(frame_bgr, max_poses=max_poses, flip_horizontal=flip_horizontal)

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self.backend.close()

    def __repr__(self) -> str:
        return f"ModelDescriptor({self.model_id!r}, backend={self.backend.name()!r})"


class ModelRegistry:
    """Holds at most one active model; loading another id replaces it."""

    def __init__(self, factories: Optional[Dict[str, BackendFactory]] = None):
        self._factories = dict(DEFAULT_FACTORIES if factories is None else factories)
        self._active: Optional[ModelDescriptor] = None
        self.load_count = 0  # successful backend constructions

    @property
    def active(self) -> Optional[ModelDescriptor]:
        return self._active

    def is_active(self, descriptor: Optional[ModelDescriptor]) -> bool:
        return descriptor is not None and descriptor is self._active

    def load(self, model_id: str) -> ModelDescriptor:
        """
        Return the descriptor for ``model_id``, constructing it if needed.

        Repeated calls for the id that is already active return the cached
        descriptor. A different id closes the previous descriptor first. Any
        failure raises ModelLoadError and leaves no model active.
        """
        if self._active is not None and self._active.model_id == model_id:
            return self._active
        try:
            spec = get_model_spec(model_id)
            factory = self._factories[model_id]
        except (ValueError, KeyError) as e:
            raise ModelLoadError(model_id, f"unknown model ({e})") from e

        self.unload()
        log.info("Loading pose model %s …", model_id)
        try:
            backend = factory(spec)
        except Exception as e:  # missing file, runtime or interpreter error
            log.error("Model load failed for %s: %s", model_id, e)
            raise ModelLoadError(model_id, str(e)) from e
        self._active = ModelDescriptor(spec, backend)
        self.load_count += 1
        log.info("Pose model loaded: %s (%s)", model_id, backend.name())
        return self._active

    def unload(self) -> None:
        if self._active is not None:
            log.info("Unloading pose model %s", self._active.model_id)
            self._active.close()
            self._active = None
