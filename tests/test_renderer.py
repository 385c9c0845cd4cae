# tests/test_renderer.py
import numpy as np
import pytest

from posecanvas.backends.base import MOVENET_EDGES, POSENET_EDGES, Keypoint
from posecanvas.config import (
    MODEL_LIGHTNING, MODEL_POSENET, MOVENET_EDGE_COLOR, MOVENET_KEYPOINT_COLOR,
    POSENET_KEYPOINT_COLOR, get_model_spec,
)
from posecanvas.render.renderer import Renderer

from conftest import FakeSource, RecordingCanvas, make_pose

SCORES = [0.0, 0.05, 0.2, 0.21, 0.3, 0.45, 0.5, 0.51, 0.6, 0.7,
          0.75, 0.8, 0.9, 0.95, 0.99, 1.0, 0.33]


def _renderer():
    return Renderer(RecordingCanvas())


@pytest.mark.parametrize("threshold", [0.0, 0.2, 0.3, 0.5, 0.75, 0.99, 1.0])
def test_drawn_keypoints_are_exactly_those_strictly_above_threshold(threshold):
    r = _renderer()
    pose = make_pose(SCORES)
    r.draw([pose], FakeSource(64, 48), threshold, get_model_spec(MODEL_LIGHTNING))

    drawn = sorted(x for x, _y, _r, _c in r.canvas.circles)
    expected = sorted(kp.x for kp in pose.keypoints if kp.score > threshold)
    assert drawn == expected


def test_score_equal_to_threshold_is_never_drawn():
    r = _renderer()
    pose = make_pose([0.4] * 17)
    r.draw([pose], FakeSource(64, 48), 0.4, get_model_spec(MODEL_LIGHTNING))
    assert r.canvas.circles == []
    assert r.canvas.lines == []


def test_edges_need_both_endpoints_above_threshold():
    scores = [0.9] * 17
    scores[5] = 0.1  # left_shoulder
    r = _renderer()
    pose = make_pose(scores)
    r.draw([pose], FakeSource(64, 48), 0.5, get_model_spec(MODEL_LIGHTNING))

    expected = [(i, j) for i, j in MOVENET_EDGES if 5 not in (i, j)]
    assert len(r.canvas.lines) == len(expected)
    drawn_ends = {(a, b) for a, b, _t, _c in r.canvas.lines}
    for i, j in expected:
        ki, kj = pose[i], pose[j]
        assert ((ki.x, ki.y), (kj.x, kj.y)) in drawn_ends


def test_posenet_uses_its_own_edges_and_palette():
    r = _renderer()
    pose = make_pose([0.9] * 17)
    r.draw([pose], FakeSource(64, 48), 0.2, get_model_spec(MODEL_POSENET))
    assert len(r.canvas.lines) == len(POSENET_EDGES)
    assert {c for *_rest, c in r.canvas.circles} == {POSENET_KEYPOINT_COLOR}


def test_movenet_palette():
    r = _renderer()
    r.draw([make_pose([0.9] * 17)], FakeSource(64, 48), 0.2, get_model_spec(MODEL_LIGHTNING))
    assert {c for *_rest, c in r.canvas.circles} == {MOVENET_KEYPOINT_COLOR}
    assert {c for *_rest, c in r.canvas.lines} == {MOVENET_EDGE_COLOR}
    assert MOVENET_KEYPOINT_COLOR == (255, 255, 0)  # #00FFFF in BGR


def test_canvas_matches_source_intrinsic_size():
    r = _renderer()
    r.draw([], FakeSource(120, 90), 0.2, get_model_spec(MODEL_LIGHTNING))
    assert r.canvas.pixels.shape == (90, 120, 4)
    r.draw([], FakeSource(32, 24), 0.2, get_model_spec(MODEL_LIGHTNING))
    assert (r.canvas.width, r.canvas.height) == (32, 24)


def test_previous_frame_is_fully_cleared():
    r = Renderer()
    src = FakeSource(64, 48)
    spec = get_model_spec(MODEL_LIGHTNING)
    r.draw([make_pose([0.9] * 17)], src, 0.2, spec)
    assert r.canvas.pixels.any()
    r.draw([], src, 0.2, spec)
    assert not r.canvas.pixels.any()


def test_multiple_poses_are_all_drawn():
    r = _renderer()
    poses = [make_pose([0.9] * 17), make_pose([0.9] * 17)]
    r.draw(poses, FakeSource(64, 48), 0.2, get_model_spec(MODEL_POSENET))
    assert len(r.canvas.circles) == 34


def test_composite_paints_overlay_colors_over_frame():
    r = Renderer()
    src = FakeSource(64, 48)
    pose = make_pose([0.9] + [0.1] * 16)  # lone nose: no edge crosses it
    r.draw([pose], src, 0.2, get_model_spec(MODEL_LIGHTNING))
    out = r.composite(src.frame())
    kp = pose[0]
    assert tuple(out[int(kp.y), int(kp.x)]) == MOVENET_KEYPOINT_COLOR


def test_composite_ignores_overlay_of_other_geometry():
    r = Renderer()
    r.draw([make_pose([0.9] * 17)], FakeSource(64, 48), 0.2, get_model_spec(MODEL_LIGHTNING))
    frame = np.zeros((10, 10, 3), dtype=np.uint8)
    assert not r.composite(frame).any()


def test_non_finite_keypoints_are_skipped():
    pose = make_pose([0.9] * 17)
    pose.keypoints[0] = Keypoint(pose[0].name, float("nan"), 5.0, 0.9)       # nose
    pose.keypoints[9] = Keypoint(pose[9].name, 10.0, float("inf"), 0.9)      # left_wrist
    r = _renderer()
    r.draw([pose], FakeSource(64, 48), 0.2, get_model_spec(MODEL_LIGHTNING))

    assert len(r.canvas.circles) == 15
    expected = [(i, j) for i, j in MOVENET_EDGES if 0 not in (i, j) and 9 not in (i, j)]
    assert len(r.canvas.lines) == len(expected)
