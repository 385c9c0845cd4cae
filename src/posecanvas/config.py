# src/posecanvas/config.py
# ---------------------------------------------------------------
# Global configuration for PoseCanvas: camera setup, model files,
# the per-model table (topology, pose counts, palette) and the
# user-adjustable Configuration shared by the loop and renderer.
# ---------------------------------------------------------------

import os
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Tuple

import cv2

from .backends.base import Edge, MOVENET_EDGES, POSENET_EDGES
from .utils.resources import resource_path

# ------------------ UI Configuration ------------------

WINDOW_TITLE = "PoseCanvas – Real-Time Pose Estimation"

# ------------------ Camera ------------------

CAM_INDEX = int(os.environ.get("POSECANVAS_CAM_INDEX", "0"))  # default device = front/user-facing webcam
CAM_API = cv2.CAP_DSHOW if os.name == "nt" else cv2.CAP_ANY  # DirectShow avoids slow opens on Windows
CAMERA_OPEN_TIMEOUT_S = 5.0  # how long to wait for the first non-zero frame size

# File picker filter ("image/*" in OpenCV-decodable terms)
IMAGE_FILE_FILTER = "Images (*.png *.jpg *.jpeg *.bmp *.webp *.tif *.tiff)"

# ------------------ Model Files ------------------

MODELS_DIR = os.environ.get("POSECANVAS_MODELS_DIR", "models")

MOVENET_LIGHTNING_PATH = os.path.join(MODELS_DIR, "movenet_singlepose_lightning.tflite")
MOVENET_THUNDER_PATH   = os.path.join(MODELS_DIR, "movenet_singlepose_thunder.tflite")
POSENET_PATH           = os.path.join(MODELS_DIR, "posenet_mobilenet_v1_100_257x257_multi_kpt_stripped.tflite")

# ------------------ Model Ids ------------------

MODEL_LIGHTNING = "movenet_lightning"
MODEL_THUNDER = "movenet_thunder"
MODEL_POSENET = "posenet"

FAMILY_MOVENET = "MoveNet"
FAMILY_POSENET = "PoseNet"

# ------------------ Rendering ------------------

KEYPOINT_RADIUS = 4
EDGE_THICKNESS = 3

Color = Tuple[int, int, int]  # BGR


def hex_to_bgr(value: str) -> Color:
    # "#RRGGBB" -> (B, G, R) for OpenCV
    v = value.lstrip("#")
    r, g, b = int(v[0:2], 16), int(v[2:4], 16), int(v[4:6], 16)
    return (b, g, r)


MOVENET_KEYPOINT_COLOR = hex_to_bgr("#00FFFF")
MOVENET_EDGE_COLOR = hex_to_bgr("#FF00FF")
POSENET_KEYPOINT_COLOR = hex_to_bgr("#FFCC00")
POSENET_EDGE_COLOR = hex_to_bgr("#FF8800")


@dataclass(frozen=True)
class ModelSpec:
    model_id: str
    label: str                      # text shown in the model selector
    family: str                     # FAMILY_MOVENET | FAMILY_POSENET
    model_path: str
    input_size: int                 # square model input (pixels)
    live_max_poses: int
    image_max_poses: int
    skeleton_edges: Tuple[Edge, ...]
    keypoint_color: Color
    edge_color: Color

    @property
    def legacy(self) -> bool:
        # Single switch for every PoseNet-specific branch (pose counts, edges, palette)
        return self.family == FAMILY_POSENET


MODEL_SPECS: Dict[str, ModelSpec] = {
    MODEL_LIGHTNING: ModelSpec(
        MODEL_LIGHTNING, "MoveNet Lightning (Fast)", FAMILY_MOVENET,
        MOVENET_LIGHTNING_PATH, 192, 1, 1, tuple(MOVENET_EDGES),
        MOVENET_KEYPOINT_COLOR, MOVENET_EDGE_COLOR,
    ),
    MODEL_THUNDER: ModelSpec(
        MODEL_THUNDER, "MoveNet Thunder (Accurate)", FAMILY_MOVENET,
        MOVENET_THUNDER_PATH, 256, 1, 1, tuple(MOVENET_EDGES),
        MOVENET_KEYPOINT_COLOR, MOVENET_EDGE_COLOR,
    ),
    MODEL_POSENET: ModelSpec(
        MODEL_POSENET, "PoseNet (Legacy)", FAMILY_POSENET,
        POSENET_PATH, 257, 5, 12, tuple(POSENET_EDGES),
        POSENET_KEYPOINT_COLOR, POSENET_EDGE_COLOR,
    ),
}

MODEL_IDS: List[str] = list(MODEL_SPECS.keys())  # selector order


def get_model_spec(model_id: str) -> ModelSpec:
    try:
        return MODEL_SPECS[model_id]
    except KeyError:
        raise ValueError(f"Unknown model id: {model_id!r} (expected one of {MODEL_IDS})") from None


def model_file(spec: ModelSpec) -> str:
    # Resolve the .tflite path for source checkouts and frozen bundles
    return resource_path(spec.model_path)


# ------------------ User Configuration ------------------

DEFAULT_MODEL_ID = MODEL_LIGHTNING
DEFAULT_CONF_THRESHOLD = 0.2


def clamp_threshold(value: float) -> float:
    return float(min(1.0, max(0.0, float(value))))


class RunState(Enum):
    IDLE = "idle"
    LIVE_RUNNING = "live"
    IMAGE_DISPLAYED = "image"


@dataclass
class Configuration:
    """Process-wide user settings, mutated only by the controller."""

    model_id: str = DEFAULT_MODEL_ID
    confidence_threshold: float = DEFAULT_CONF_THRESHOLD

    @property
    def spec(self) -> ModelSpec:
        return get_model_spec(self.model_id)
