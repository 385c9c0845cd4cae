# src/posecanvas/backends/posenet_backend.py
from typing import Dict, List

import cv2
import numpy as np

from .base import COCO_KEYPOINTS, Keypoint, Pose, PoseBackend, flip_keypoint
from .posenet_decode import (
    DEFAULT_NMS_RADIUS, DEFAULT_SCORE_THRESHOLD, DecodedPose,
    decode_multiple_poses, decode_single_pose, sigmoid,
)
from .tflite_utils import input_quantization, load_interpreter, quantize_input
from ..utils.logger import get_logger

log = get_logger(__name__)


class PoseNetBackend(PoseBackend):
    """
    Legacy MobileNetV1 PoseNet (multi-pose) on a TFLite interpreter.

    Unlike MoveNet it returns raw heatmap logits plus offset and displacement
    fields; poses are recovered by ``posenet_decode``. Input pixels are scaled
    to [-1, 1] for float models.
    """

    def __init__(self, model_path: str, interpreter=None,
                 score_threshold: float = DEFAULT_SCORE_THRESHOLD,
                 nms_radius: float = DEFAULT_NMS_RADIUS):
        self.model_path = model_path
        self.score_threshold = float(score_threshold)
        self.nms_radius = float(nms_radius)

        self.interpreter = interpreter if interpreter is not None else load_interpreter(model_path)
        self.input_details = self.interpreter.get_input_details()
        self.output_details = self.interpreter.get_output_details()

        in0 = self.input_details[0]
        self.in_h = int(in0["shape"][1])
        self.in_w = int(in0["shape"][2])
        self.input_dtype = in0["dtype"]
        self.input_quant = input_quantization(in0)
        self._outputs = self._map_outputs(self.output_details)
        log.info("Loaded %s (input %dx%d)", self.name(), self.in_w, self.in_h)

    def name(self) -> str:
        return "PoseNet-MobileNetV1"

    @staticmethod
    def _map_outputs(details: List[dict]) -> Dict[str, int]:
        # Identify tensors by channel count: 17 heatmaps, 34 offsets, 32 + 32 displacements (fwd first)
        k = len(COCO_KEYPOINTS)
        mapping: Dict[str, int] = {}
        displacements = []
        for d in details:
            channels = int(d["shape"][-1])
            if channels == k:
                mapping["heatmaps"] = d["index"]
            elif channels == 2 * k:
                mapping["offsets"] = d["index"]
            else:
                displacements.append(d["index"])
        if "heatmaps" not in mapping or "offsets" not in mapping or len(displacements) != 2:
            raise ValueError(f"Unexpected PoseNet outputs: {[tuple(d['shape']) for d in details]}")
        mapping["displacements_fwd"], mapping["displacements_bwd"] = displacements
        return mapping

    def _preprocess(self, frame_bgr: np.ndarray) -> np.ndarray:
        img = cv2.cvtColor(frame_bgr, cv2.COLOR_BGR2RGB)
        img = cv2.resize(img, (self.in_w, self.in_h), interpolation=cv2.INTER_LINEAR)
        if self.input_dtype == np.float32:
            return np.expand_dims((img.astype(np.float32) - 127.5) / 127.5, axis=0)
        return quantize_input(img, self.input_dtype, self.input_quant)

    def _tensor(self, key: str) -> np.ndarray:
        return np.asarray(self.interpreter.get_tensor(self._outputs[key]), dtype=np.float32)[0]

    def output_stride(self, grid_h: int) -> int:
        # 257 input with a 9-cell grid -> 32; with 17 cells -> 16
        return int(round((self.in_h - 1) / max(grid_h - 1, 1)))

    def estimate(self, frame_bgr: np.ndarray, max_poses: int = 5,
                 flip_horizontal: bool = False) -> List[Pose]:
        if max_poses < 1:
            return []
        h, w = frame_bgr.shape[:2]
        self.interpreter.set_tensor(self.input_details[0]["index"], self._preprocess(frame_bgr))
        self.interpreter.invoke()

        scores = sigmoid(self._tensor("heatmaps"))  # logits -> [0..1]
        offsets = self._tensor("offsets")
        stride = self.output_stride(scores.shape[0])
        if max_poses == 1:
            decoded = [decode_single_pose(scores, offsets, stride)]
        else:
            decoded = decode_multiple_poses(
                scores, offsets, self._tensor("displacements_fwd"), self._tensor("displacements_bwd"),
                stride, max_poses, self.score_threshold, self.nms_radius,
            )

        return [self._to_pose(d, w, h, flip_horizontal) for d in decoded]

    def _to_pose(self, d: DecodedPose, w: int, h: int, flip_horizontal: bool) -> Pose:
        sx, sy = w / float(self.in_w), h / float(self.in_h)  # model-input -> source pixels
        kps = []
        for i, name in enumerate(COCO_KEYPOINTS):
            y, x = d.positions[i]
            kp = Keypoint(
                name=name,
                x=float(np.clip(x * sx, 0, w - 1)),
                y=float(np.clip(y * sy, 0, h - 1)),
                score=float(np.clip(d.keypoint_scores[i], 0, 1)),
            )
            kps.append(flip_keypoint(kp, w) if flip_horizontal else kp)
        return Pose(keypoints=kps, score=float(d.score))

    def close(self) -> None:
        self.interpreter = None
