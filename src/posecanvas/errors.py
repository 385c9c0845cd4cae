# src/posecanvas/errors.py
"""Error taxonomy shared by capture, model loading and the detection loop."""


class PoseCanvasError(Exception):
    """Base class for every error the app surfaces or logs."""


class DeviceUnavailable(PoseCanvasError):
    """No usable camera: the device cannot be opened or never delivers a frame size."""


class ModelLoadError(PoseCanvasError):
    """A pose model could not be constructed (missing file, runtime or interpreter failure)."""

    def __init__(self, model_id: str, reason: str):
        super().__init__(f"Failed to load pose model '{model_id}': {reason}")
        self.model_id = model_id
        self.reason = reason


class DecodeError(PoseCanvasError):
    """The selected file is not a decodable image."""


class EstimationTransientError(PoseCanvasError):
    """One inference call failed; the frame is treated as having no poses."""
