# src/posecanvas/backends/tflite_utils.py
import os
from typing import Any, Tuple

import numpy as np


def load_interpreter(model_path: str, num_threads: int = 4):
    """Create and allocate a TFLite interpreter for ``model_path``.

    The runtime is imported here rather than at module import so the rest of
    the app (and its tests) work on machines without TFLite installed.
    """
    if not os.path.exists(model_path):
        raise FileNotFoundError(f"Model file not found: {model_path}")
    try:
        # Prefer lightweight TFLite runtime if available
        from tflite_runtime.interpreter import Interpreter
    except ImportError:
        # Fall back to TensorFlow's bundled interpreter
        from tensorflow.lite.python.interpreter import Interpreter
    interp = Interpreter(model_path=model_path, num_threads=num_threads)
    interp.allocate_tensors()
    return interp


def input_quantization(detail: dict) -> Tuple[float, int]:
    # (scale, zero_point); some TF builds only fill 'quantization_parameters'
    q = detail.get("quantization", (0.0, 0)) or (0.0, 0)
    if (not q or tuple(q) == (0.0, 0)) and "quantization_parameters" in detail:
        qp = detail["quantization_parameters"]
        scales = qp.get("scales", [])
        zps = qp.get("zero_points", [])
        q = (float(scales[0]) if len(scales) else 0.0, int(zps[0]) if len(zps) else 0)
    return float(q[0]), int(q[1])


def quantize_input(img: np.ndarray, dtype: Any, quant: Tuple[float, int]) -> np.ndarray:
    """Cast an HxWx3 uint8/float image to the model's input dtype and add the batch axis."""
    if dtype == np.uint8:
        out = img.astype(np.uint8)  # quantized uint8 takes raw 0..255
    elif dtype == np.int32:
        out = img.astype(np.int32)  # some MoveNet exports take int32 pixels
    elif dtype == np.int8:
        scale, zero_point = quant if quant and quant[0] else (1.0, 0)
        q = np.round(img.astype(np.float32) / max(scale, 1e-9) + float(zero_point))
        out = np.clip(q, -128, 127).astype(np.int8)
    else:
        out = img.astype(np.float32)
    return np.expand_dims(out, axis=0)  # shape -> [1,H,W,3]
