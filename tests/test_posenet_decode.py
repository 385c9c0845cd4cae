# tests/test_posenet_decode.py
import numpy as np
import pytest

from posecanvas.backends.posenet_decode import (
    POSE_CHAIN, build_part_queue, decode_multiple_poses, decode_single_pose, sigmoid,
)

GRID = 9
STRIDE = 32
K = 17
E = len(POSE_CHAIN)


def _fields(peaks=((4, 4),), low=0.01, high=0.9):
    scores = np.full((GRID, GRID, K), low, dtype=np.float32)
    for y, x in peaks:
        scores[y, x, :] = high
    offsets = np.zeros((GRID, GRID, 2 * K), dtype=np.float32)
    fwd = np.zeros((GRID, GRID, 2 * E), dtype=np.float32)
    bwd = np.zeros((GRID, GRID, 2 * E), dtype=np.float32)
    return scores, offsets, fwd, bwd


def test_single_cluster_decodes_one_pose():
    scores, offsets, fwd, bwd = _fields()
    poses = decode_multiple_poses(scores, offsets, fwd, bwd, STRIDE, max_poses=5)
    assert len(poses) == 1
    assert np.allclose(poses[0].positions, [[128.0, 128.0]] * K)
    assert poses[0].score == pytest.approx(0.9)


def test_separate_clusters_decode_separately():
    scores, offsets, fwd, bwd = _fields(peaks=((1, 1), (7, 7)))
    poses = decode_multiple_poses(scores, offsets, fwd, bwd, STRIDE, max_poses=12)
    assert len(poses) == 2
    roots = sorted(tuple(p.positions[0]) for p in poses)
    assert roots == [(32.0, 32.0), (224.0, 224.0)]


def test_max_poses_bounds_the_result():
    scores, offsets, fwd, bwd = _fields(peaks=((1, 1), (7, 7)))
    assert len(decode_multiple_poses(scores, offsets, fwd, bwd, STRIDE, max_poses=1)) == 1


def test_weak_heatmaps_yield_no_pose():
    scores, offsets, fwd, bwd = _fields(high=0.3)
    assert decode_multiple_poses(scores, offsets, fwd, bwd, STRIDE, max_poses=5) == []


def test_forward_displacement_places_child_keypoint():
    scores, offsets, fwd, bwd = _fields(peaks=())
    scores[4, 4, 0] = 0.9     # nose is the only root
    scores[3, 4, 1] = 0.7     # left_eye one cell up
    fwd[4, 4, 0] = -32.0      # edge 0 (nose -> left_eye), y component
    poses = decode_multiple_poses(scores, offsets, fwd, bwd, STRIDE, max_poses=5)

    nose_pose = max(poses, key=lambda p: p.keypoint_scores[0])
    assert tuple(nose_pose.positions[1]) == (96.0, 128.0)
    assert nose_pose.keypoint_scores[1] == pytest.approx(0.7)


def test_offsets_refine_root_position():
    scores, offsets, fwd, bwd = _fields()
    offsets[4, 4, 0] = 5.0      # nose y
    offsets[4, 4, K] = -3.0     # nose x
    pose = decode_multiple_poses(scores, offsets, fwd, bwd, STRIDE, max_poses=1)[0]
    assert tuple(pose.positions[0]) == (133.0, 125.0)


def test_single_pose_takes_best_cell_per_keypoint():
    scores, offsets, _, _ = _fields(peaks=())
    scores[2, 3, :] = 0.6
    scores[6, 5, 9] = 0.95  # left_wrist peaks elsewhere
    pose = decode_single_pose(scores, offsets, STRIDE)
    assert tuple(pose.positions[0]) == (64.0, 96.0)
    assert tuple(pose.positions[9]) == (192.0, 160.0)
    assert pose.keypoint_scores[9] == pytest.approx(0.95)


def test_part_queue_pops_strongest_local_maximum_first():
    scores = np.zeros((GRID, GRID, K), dtype=np.float32)
    scores[2, 2, 3] = 0.6
    scores[5, 6, 7] = 0.8
    scores[5, 7, 7] = 0.7  # neighbour of a stronger cell: not a local maximum
    queue = build_part_queue(scores, score_threshold=0.5)
    assert sorted(entry[1:] for entry in queue) == [(2, 2, 3), (5, 6, 7)]
    assert queue[0][1:] == (5, 6, 7)
    assert -queue[0][0] == pytest.approx(0.8)


def test_sigmoid_bounds():
    out = sigmoid(np.array([-50.0, 0.0, 50.0]))
    assert out[0] < 1e-6 and out[1] == pytest.approx(0.5) and out[2] > 1 - 1e-6
