# src/posecanvas/backends/movenet_backend.py
from typing import List

import cv2
import numpy as np

from .base import COCO_KEYPOINTS, Keypoint, Pose, PoseBackend, flip_keypoint
from .tflite_utils import input_quantization, load_interpreter, quantize_input
from ..utils.logger import get_logger

log = get_logger(__name__)


class MoveNetBackend(PoseBackend):
    """Single-pose MoveNet (lightning / thunder) running on a TFLite interpreter."""

    def __init__(self, model_path: str, variant: str = "lightning", interpreter=None):
        self.model_path = model_path
        self.variant = variant

        # Tests inject a fake interpreter; the app loads the real model file
        self.interpreter = interpreter if interpreter is not None else load_interpreter(model_path)
        self.input_details = self.interpreter.get_input_details()
        self.output_details = self.interpreter.get_output_details()

        # Extract input tensor details
        in0 = self.input_details[0]
        self.in_h = int(in0["shape"][1])  # model input height
        self.in_w = int(in0["shape"][2])  # model input width
        self.input_dtype = in0["dtype"]   # uint8, int8, int32 or float32
        self.input_quant = input_quantization(in0)

        # Output tensor index (MoveNet: [1,1,17,3])
        self.out_idx = self.output_details[0]["index"]
        log.info("Loaded %s (input %dx%d, dtype=%s)", self.name(), self.in_w, self.in_h,
                 getattr(self.input_dtype, "__name__", self.input_dtype))

    def name(self) -> str:
        return f"MoveNet-{self.variant}"

    def _preprocess(self, frame_bgr: np.ndarray) -> np.ndarray:
        # Convert input image to RGB and resize for model
        img = cv2.cvtColor(frame_bgr, cv2.COLOR_BGR2RGB)
        img = cv2.resize(img, (self.in_w, self.in_h), interpolation=cv2.INTER_LINEAR)
        return quantize_input(img, self.input_dtype, self.input_quant)

    def _raw_keypoints(self, out: np.ndarray) -> np.ndarray:
        # MoveNet outputs are [1,1,17,3] (y, x, score); some converters drop an axis
        if out.ndim == 4:
            return out[0, 0]
        if out.ndim == 3:
            return out[0]
        raise ValueError(f"Unexpected MoveNet output shape: {out.shape}")

    def estimate(self, frame_bgr: np.ndarray, max_poses: int = 1,
                 flip_horizontal: bool = False) -> List[Pose]:
        if max_poses < 1:
            return []
        h, w = frame_bgr.shape[:2]
        inp = self._preprocess(frame_bgr)
        self.interpreter.set_tensor(self.input_details[0]["index"], inp)
        self.interpreter.invoke()
        out = self._raw_keypoints(np.asarray(self.interpreter.get_tensor(self.out_idx)))

        kps: List[Keypoint] = []
        for i, (y, x, c) in enumerate(out[:len(COCO_KEYPOINTS)]):
            # Normalized [0..1] model coords -> source pixels
            kp = Keypoint(
                name=COCO_KEYPOINTS[i],
                x=float(np.clip(x, 0, 1)) * w,
                y=float(np.clip(y, 0, 1)) * h,
                score=float(np.clip(c, 0, 1)),
            )
            kps.append(flip_keypoint(kp, w) if flip_horizontal else kp)

        score = float(np.mean([k.score for k in kps])) if kps else 0.0
        return [Pose(keypoints=kps, score=score)]  # single-pose model: at most one

    def close(self) -> None:
        # Drop interpreter reference so its tensors can be freed
        self.interpreter = None
