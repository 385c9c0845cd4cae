# src/posecanvas/render/renderer.py
import math
from typing import Sequence, Tuple

import cv2
import numpy as np

from ..backends.base import Pose
from ..config import EDGE_THICKNESS, KEYPOINT_RADIUS, ModelSpec
from ..capture.source import Source

Color = Tuple[int, int, int]


def _finite(kp) -> bool:
    # NaN / inf coordinates cannot be rasterized
    return math.isfinite(kp.x) and math.isfinite(kp.y)


class Canvas:
    """Transparent BGRA overlay; all drawing goes through these four calls."""

    def __init__(self, width: int = 0, height: int = 0):
        self.pixels = np.zeros((height, width, 4), dtype=np.uint8)

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    def resize(self, width: int, height: int) -> None:
        # Reallocating also wipes the previous frame
        if (width, height) != (self.width, self.height):
            self.pixels = np.zeros((height, width, 4), dtype=np.uint8)

    def clear(self) -> None:
        self.pixels[:] = 0

    def fill_circle(self, x: float, y: float, radius: int, color: Color) -> None:
        cv2.circle(self.pixels, (int(round(x)), int(round(y))), radius, (*color, 255), -1, cv2.LINE_AA)

    def stroke_line(self, x1: float, y1: float, x2: float, y2: float, thickness: int, color: Color) -> None:
        cv2.line(self.pixels, (int(round(x1)), int(round(y1))), (int(round(x2)), int(round(y2))),
                 (*color, 255), thickness, cv2.LINE_AA)


class Renderer:
    """Draws keypoints and skeleton edges above a confidence threshold onto a Canvas."""

    def __init__(self, canvas: Canvas = None):
        self.canvas = canvas if canvas is not None else Canvas()

    def draw(self, poses: Sequence[Pose], source: Source, confidence_threshold: float,
             spec: ModelSpec) -> None:
        c = self.canvas
        c.resize(source.width, source.height)  # intrinsic pixels, not display size
        c.clear()
        t = float(confidence_threshold)
        for pose in poses:
            kps = pose.keypoints
            visible = [kp.score > t and _finite(kp) for kp in kps]  # strictly above; equal is skipped
            for kp, ok in zip(kps, visible):
                if ok:
                    c.fill_circle(kp.x, kp.y, KEYPOINT_RADIUS, spec.keypoint_color)
            for i, j in spec.skeleton_edges:
                if i >= len(kps) or j >= len(kps):
                    continue
                if visible[i] and visible[j]:
                    a, b = kps[i], kps[j]
                    c.stroke_line(a.x, a.y, b.x, b.y, EDGE_THICKNESS, spec.edge_color)

    def clear(self) -> None:
        self.canvas.clear()

    def composite(self, frame_bgr: np.ndarray) -> np.ndarray:
        """Alpha-blend the overlay over a copy of ``frame_bgr`` (sizes must match)."""
        out = frame_bgr.copy()
        px = self.canvas.pixels
        if px.shape[:2] != out.shape[:2]:
            return out  # overlay belongs to another source geometry
        alpha = px[:, :, 3:4].astype(np.float32) / 255.0
        out[:] = (px[:, :, :3] * alpha + out * (1.0 - alpha)).astype(np.uint8)
        return out
