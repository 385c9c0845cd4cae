# scripts/detect_image.py
"""
Single-shot pose detection on one image, without the UI.

  python scripts/detect_image.py --image person.jpg --model posenet --out out/person.png --json out/person.json
"""
import argparse
import json
import os
import sys
from typing import Any, Dict, List

import cv2
from PIL import Image
from PIL.PngImagePlugin import PngInfo

HERE = os.path.dirname(os.path.abspath(__file__))
SRC_DIR = os.path.join(os.path.dirname(HERE), "src")
if SRC_DIR not in sys.path:
    sys.path.insert(0, SRC_DIR)

from posecanvas.backends.base import Pose
from posecanvas.capture.source import SourceProvider
from posecanvas.config import DEFAULT_CONF_THRESHOLD, MODEL_IDS, clamp_threshold
from posecanvas.core.registry import ModelRegistry
from posecanvas.errors import DecodeError, EstimationTransientError, ModelLoadError
from posecanvas.render.renderer import Renderer


def poses_to_json(poses: List[Pose]) -> List[Dict[str, Any]]:
    return [
        {
            "score": p.score,
            "keypoints": [{"name": k.name, "x": k.x, "y": k.y, "score": k.score} for k in p.keypoints],
        }
        for p in poses
    ]


def write_json(out_path: str, image_path: str, model_id: str, width: int, height: int,
               threshold: float, poses: List[Pose]) -> None:
    data = {
        "image": image_path,
        "model": model_id,
        "width": width,
        "height": height,
        "confidence_threshold": threshold,
        "poses": poses_to_json(poses),
        "schema": {"keypoints": "x,y in source pixels; score in [0..1]"},
    }
    os.makedirs(os.path.dirname(os.path.abspath(out_path)), exist_ok=True)
    with open(out_path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)


def save_png(out_path: str, image_bgr, model_id: str, n_poses: int) -> None:
    os.makedirs(os.path.dirname(os.path.abspath(out_path)), exist_ok=True)
    meta = PngInfo()
    meta.add_text("posecanvas:model", model_id)
    meta.add_text("posecanvas:poses", str(n_poses))
    Image.fromarray(cv2.cvtColor(image_bgr, cv2.COLOR_BGR2RGB)).save(out_path, pnginfo=meta)


def main(argv=None) -> int:
    ap = argparse.ArgumentParser(description="Detect poses on one image and save an annotated copy.")
    ap.add_argument("--image", required=True, help="Input image path")
    ap.add_argument("--model", default=MODEL_IDS[0], choices=MODEL_IDS, help="Pose model id")
    ap.add_argument("--out", required=True, help="Annotated PNG output path")
    ap.add_argument("--json", default=None, help="Optional keypoints JSON path")
    ap.add_argument("--conf", type=float, default=DEFAULT_CONF_THRESHOLD, help="Confidence threshold (0..1)")
    args = ap.parse_args(argv)

    threshold = clamp_threshold(args.conf)
    try:
        source = SourceProvider().load_image_file(args.image)
    except DecodeError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 2

    registry = ModelRegistry()
    try:
        descriptor = registry.load(args.model)
    except ModelLoadError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 3

    try:
        spec = descriptor.spec
        try:
            poses = descriptor.estimate(source.frame(), max_poses=spec.image_max_poses, flip_horizontal=False)
        except Exception as e:  # interpreter / decoder failure on this image
            print(f"ERROR: {EstimationTransientError(str(e))}", file=sys.stderr)
            return 4
        print(f"[Detect] {args.model}: {len(poses)} pose(s) on {source.width}x{source.height}")

        renderer = Renderer()
        renderer.draw(poses, source, threshold, spec)
        save_png(args.out, renderer.composite(source.frame()), args.model, len(poses))
        print(f"[OUT] PNG -> {args.out}")

        if args.json:
            write_json(args.json, args.image, args.model, source.width, source.height, threshold, poses)
            print(f"[OUT] JSON -> {args.json}")
    finally:
        registry.unload()

    print("[Done]")
    return 0


if __name__ == "__main__":
    sys.exit(main())
