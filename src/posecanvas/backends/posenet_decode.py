# src/posecanvas/backends/posenet_decode.py
"""
PoseNet output decoding (pure numpy).

The MobileNetV1 PoseNet model emits four tensors on a coarse grid
(H x W cells, one cell per ``output_stride`` input pixels):

  heatmaps            [H, W, K]    per-keypoint logits
  offsets             [H, W, 2K]   y offsets in channels [0..K), x in [K..2K)
  displacements_fwd   [H, W, 2E]   parent -> child vectors along POSE_CHAIN
  displacements_bwd   [H, W, 2E]   child -> parent vectors along POSE_CHAIN

Multi-pose decoding picks local maxima of the heatmaps as root candidates
(strongest first), skips roots that fall within ``nms_radius`` of the same
keypoint of an already accepted pose, and grows each root into a full pose by
following the displacement fields along the kinematic tree.

All positions returned here are in model-input pixels as (y, x).
"""
import heapq
from dataclasses import dataclass
from typing import List, Tuple

import numpy as np

NUM_KEYPOINTS = 17

# (parent, child) keypoint indices in COCO order; displacement channel e = edge index
POSE_CHAIN: List[Tuple[int, int]] = [
    (0, 1), (1, 3), (0, 2), (2, 4), (0, 5), (5, 7), (7, 9), (5, 11),
    (11, 13), (13, 15), (0, 6), (6, 8), (8, 10), (6, 12), (12, 14), (14, 16),
]

DEFAULT_SCORE_THRESHOLD = 0.5
DEFAULT_NMS_RADIUS = 20
LOCAL_MAXIMUM_RADIUS = 1
OFFSET_REFINE_STEPS = 2


@dataclass
class DecodedPose:
    score: float
    keypoint_scores: np.ndarray  # [K]
    positions: np.ndarray        # [K, 2] as (y, x) in input pixels


def sigmoid(x: np.ndarray) -> np.ndarray:
    return 1.0 / (1.0 + np.exp(-x))


def _local_maxima(scores: np.ndarray, radius: int) -> np.ndarray:
    # True where a cell is >= every neighbour within `radius` (same keypoint channel)
    h, w, _ = scores.shape
    padded = np.pad(scores, ((radius, radius), (radius, radius), (0, 0)),
                    mode="constant", constant_values=-np.inf)
    window_max = np.full_like(scores, -np.inf)
    for dy in range(2 * radius + 1):
        for dx in range(2 * radius + 1):
            window_max = np.maximum(window_max, padded[dy:dy + h, dx:dx + w, :])
    return scores >= window_max


def build_part_queue(scores: np.ndarray, score_threshold: float,
                     radius: int = LOCAL_MAXIMUM_RADIUS) -> List[Tuple[float, int, int, int]]:
    """Max-heap (as negated min-heap) of (score, y, x, k) root candidates."""
    mask = (scores >= score_threshold) & _local_maxima(scores, radius)
    ys, xs, ks = np.nonzero(mask)
    heap = [(-float(scores[y, x, k]), int(y), int(x), int(k)) for y, x, k in zip(ys, xs, ks)]
    heapq.heapify(heap)
    return heap


def _strided_index(point: np.ndarray, stride: int, h: int, w: int) -> Tuple[int, int]:
    y = int(np.clip(round(point[0] / stride), 0, h - 1))
    x = int(np.clip(round(point[1] / stride), 0, w - 1))
    return y, x


def _offset_point(offsets: np.ndarray, y: int, x: int, k: int) -> np.ndarray:
    n = offsets.shape[2] // 2
    return np.array([offsets[y, x, k], offsets[y, x, k + n]], dtype=np.float32)


def image_coords(offsets: np.ndarray, y: int, x: int, k: int, stride: int) -> np.ndarray:
    # Heatmap cell + sub-cell offset -> input pixel position (y, x)
    return np.array([y * stride, x * stride], dtype=np.float32) + _offset_point(offsets, y, x, k)


def _traverse(edge: int, source_pos: np.ndarray, target_k: int, scores: np.ndarray,
              offsets: np.ndarray, stride: int, displacements: np.ndarray) -> Tuple[float, np.ndarray]:
    h, w, _ = scores.shape
    n_edges = displacements.shape[2] // 2
    sy, sx = _strided_index(source_pos, stride, h, w)
    disp = np.array([displacements[sy, sx, edge], displacements[sy, sx, edge + n_edges]],
                    dtype=np.float32)
    target = source_pos + disp
    for _ in range(OFFSET_REFINE_STEPS):
        ty, tx = _strided_index(target, stride, h, w)
        target = np.array([ty * stride, tx * stride], dtype=np.float32) + _offset_point(offsets, ty, tx, target_k)
    ty, tx = _strided_index(target, stride, h, w)
    return float(scores[ty, tx, target_k]), target


def decode_pose(root_score: float, root_k: int, root_pos: np.ndarray, scores: np.ndarray,
                offsets: np.ndarray, stride: int, disp_fwd: np.ndarray,
                disp_bwd: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Grow one pose from its root keypoint; returns (keypoint_scores, positions)."""
    k_total = scores.shape[2]
    kp_scores = np.zeros(k_total, dtype=np.float32)
    positions = np.zeros((k_total, 2), dtype=np.float32)
    known = np.zeros(k_total, dtype=bool)
    kp_scores[root_k], positions[root_k], known[root_k] = root_score, root_pos, True

    # Backward pass: children towards parents (root may be anywhere in the tree)
    for edge in range(len(POSE_CHAIN) - 1, -1, -1):
        parent, child = POSE_CHAIN[edge]
        if known[child] and not known[parent]:
            kp_scores[parent], positions[parent] = _traverse(
                edge, positions[child], parent, scores, offsets, stride, disp_bwd)
            known[parent] = True

    # Forward pass: parents towards children
    for edge, (parent, child) in enumerate(POSE_CHAIN):
        if known[parent] and not known[child]:
            kp_scores[child], positions[child] = _traverse(
                edge, positions[parent], child, scores, offsets, stride, disp_fwd)
            known[child] = True
    return kp_scores, positions


def _within_nms(poses: List[DecodedPose], sq_radius: float, pos: np.ndarray, k: int) -> bool:
    for p in poses:
        d = p.positions[k] - pos
        if float(d[0] * d[0] + d[1] * d[1]) <= sq_radius:
            return True
    return False


def _instance_score(poses: List[DecodedPose], sq_radius: float,
                    kp_scores: np.ndarray, positions: np.ndarray) -> float:
    # Mean keypoint score, ignoring keypoints already claimed by an earlier pose
    total = 0.0
    for k in range(len(kp_scores)):
        if not _within_nms(poses, sq_radius, positions[k], k):
            total += float(kp_scores[k])
    return total / len(kp_scores)


def decode_multiple_poses(scores: np.ndarray, offsets: np.ndarray, disp_fwd: np.ndarray,
                          disp_bwd: np.ndarray, output_stride: int, max_poses: int,
                          score_threshold: float = DEFAULT_SCORE_THRESHOLD,
                          nms_radius: float = DEFAULT_NMS_RADIUS) -> List[DecodedPose]:
    """Decode up to ``max_poses`` poses; ``scores`` must already be sigmoid-activated."""
    poses: List[DecodedPose] = []
    sq_radius = float(nms_radius) ** 2
    queue = build_part_queue(scores, score_threshold)
    while len(poses) < max_poses and queue:
        neg_score, y, x, k = heapq.heappop(queue)
        root_pos = image_coords(offsets, y, x, k, output_stride)
        if _within_nms(poses, sq_radius, root_pos, k):
            continue  # this keypoint already belongs to an accepted pose
        kp_scores, positions = decode_pose(-neg_score, k, root_pos, scores, offsets,
                                           output_stride, disp_fwd, disp_bwd)
        score = _instance_score(poses, sq_radius, kp_scores, positions)
        poses.append(DecodedPose(score, kp_scores, positions))
    return poses


def decode_single_pose(scores: np.ndarray, offsets: np.ndarray, output_stride: int) -> DecodedPose:
    """Best cell per keypoint; used when only one pose is requested."""
    h, w, k_total = scores.shape
    flat = scores.reshape(h * w, k_total)
    best = np.argmax(flat, axis=0)
    kp_scores = flat[best, np.arange(k_total)].astype(np.float32)
    positions = np.zeros((k_total, 2), dtype=np.float32)
    for k in range(k_total):
        y, x = divmod(int(best[k]), w)
        positions[k] = image_coords(offsets, y, x, k, output_stride)
    return DecodedPose(float(np.mean(kp_scores)), kp_scores, positions)
