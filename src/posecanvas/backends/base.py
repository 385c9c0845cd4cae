# src/posecanvas/backends/base.py
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import numpy as np

# COCO keypoint ordering (17 landmarks) shared by MoveNet and PoseNet outputs
COCO_KEYPOINTS = [
    "nose", "left_eye", "right_eye", "left_ear", "right_ear",
    "left_shoulder", "right_shoulder", "left_elbow", "right_elbow",
    "left_wrist", "right_wrist", "left_hip", "right_hip",
    "left_knee", "right_knee", "left_ankle", "right_ankle"
]

Edge = Tuple[int, int]  # (keypoint index, keypoint index)

# MoveNet skeleton: face + torso + limbs (16 edges)
MOVENET_EDGES: List[Edge] = [
    (0, 1), (0, 2), (1, 3), (2, 4), (5, 6), (5, 7), (5, 11), (6, 8),
    (6, 12), (7, 9), (8, 10), (11, 12), (11, 13), (12, 14), (13, 15), (14, 16),
]

# PoseNet skeleton: limbs and torso only, no face edges (12 edges)
POSENET_EDGES: List[Edge] = [
    (11, 5), (7, 5), (7, 9), (11, 13), (13, 15),
    (12, 6), (8, 6), (8, 10), (12, 14), (14, 16),
    (5, 6), (11, 12),
]


@dataclass(frozen=True)
class Keypoint:
    """One named joint in source-pixel coordinates."""

    name: str
    x: float
    y: float
    score: float  # confidence [0..1]


@dataclass
class Pose:
    """One detected body: keypoints in model order plus an optional instance score."""

    keypoints: List[Keypoint] = field(default_factory=list)
    score: Optional[float] = None

    def __len__(self) -> int:
        return len(self.keypoints)

    def __getitem__(self, idx: int) -> Keypoint:
        return self.keypoints[idx]


class PoseBackend:
    """Interface for pose-estimation backends (MoveNet, PoseNet)."""

    def name(self) -> str:
        # Human-readable backend name (e.g., "MoveNet-lightning")
        raise NotImplementedError

    def estimate(self, frame_bgr: np.ndarray, max_poses: int = 1,
                 flip_horizontal: bool = False) -> List[Pose]:
        """
        Run inference on one BGR frame.

        Returns:
            Up to ``max_poses`` poses with keypoints in the frame's pixel space.
        """
        raise NotImplementedError

    def close(self) -> None:
        # Optional cleanup (interpreter release)
        pass


def flip_keypoint(kp: Keypoint, width: int) -> Keypoint:
    # Mirror horizontally inside a frame of the given width
    return Keypoint(kp.name, float(width - 1) - kp.x, kp.y, kp.score)
