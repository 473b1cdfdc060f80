"""Test keyframe → curve construction.

Tests for motionsketch.geometry.keyframes:
    - Spatial curves from positions and relative handles
    - Length-weighted progress (monotonic, 0 → 1, degenerate paths)
    - Timing curves in (time, progress) space
    - Segment splitting keeps the curve shape
    - Time normalization

Run:
    pytest tests/test_keyframes.py -v
"""

import numpy as np
import pytest

from motionsketch.geometry.bezier import bezier_point
from motionsketch.geometry.keyframes import (
    build_graph_curves,
    build_sketch_curves,
    compute_keyframe_progress,
    empty_curves,
    normalize_keyframe_times,
    split_keyframe_segment,
)
from motionsketch.geometry.model import Keyframe


def _line(n, spacing=10.0):
    return [Keyframe(time=i / (n - 1), position=(spacing * i, 0.0)) for i in range(n)]


# ============================================================================
# SPATIAL CURVES
# ============================================================================

def test_build_sketch_curves_shape():
    curves = build_sketch_curves(_line(4))
    assert curves.shape == (3, 4, 2)


def test_build_sketch_curves_without_handles_is_straight():
    curves = build_sketch_curves(_line(2))
    assert np.allclose(curves[0], [[0, 0], [0, 0], [10, 0], [10, 0]])


def test_build_sketch_curves_uses_relative_handles():
    kfs = [
        Keyframe(time=0.0, position=(0, 0), sketch_out=(2, 3)),
        Keyframe(time=1.0, position=(10, 0), sketch_in=(-1, 4)),
    ]
    curve = build_sketch_curves(kfs)[0]
    assert np.allclose(curve, [[0, 0], [2, 3], [9, 4], [10, 0]])


def test_build_sketch_curves_too_few_keyframes():
    assert build_sketch_curves(_line(2)[:1]).shape == (0, 4, 2)
    assert build_sketch_curves([]).shape == (0, 4, 2)
    assert empty_curves().shape == (0, 4, 2)


# ============================================================================
# PROGRESS
# ============================================================================

def test_progress_evenly_spaced():
    kfs = _line(3)
    progress = compute_keyframe_progress(kfs, build_sketch_curves(kfs))
    assert progress == pytest.approx([0.0, 0.5, 1.0])


def test_progress_weighted_by_length():
    kfs = [
        Keyframe(time=0.0, position=(0, 0)),
        Keyframe(time=0.5, position=(10, 0)),
        Keyframe(time=1.0, position=(40, 0)),
    ]
    progress = compute_keyframe_progress(kfs, build_sketch_curves(kfs))
    assert progress == pytest.approx([0.0, 0.25, 1.0])


def test_progress_non_decreasing_with_handles():
    rng = np.random.default_rng(7)
    kfs = [
        Keyframe(
            time=i / 5,
            position=rng.uniform(-50, 50, 2),
            sketch_in=rng.uniform(-10, 10, 2),
            sketch_out=rng.uniform(-10, 10, 2),
        )
        for i in range(6)
    ]
    progress = compute_keyframe_progress(kfs, build_sketch_curves(kfs))
    assert progress[0] == 0.0
    assert progress[-1] == pytest.approx(1.0)
    assert all(b >= a for a, b in zip(progress, progress[1:]))


def test_progress_degenerate_cases():
    assert compute_keyframe_progress([], empty_curves()) == []
    assert compute_keyframe_progress(_line(2)[:1], empty_curves()) == [0.0]

    stacked = [Keyframe(time=t, position=(5.0, 5.0)) for t in (0.0, 0.5, 1.0)]
    assert compute_keyframe_progress(stacked, build_sketch_curves(stacked)) == [0.0, 0.0, 0.0]


# ============================================================================
# TIMING CURVES
# ============================================================================

def test_build_graph_curves_anchors():
    kfs = _line(3)
    curves = build_graph_curves(kfs, [0.0, 0.5, 1.0])
    assert curves.shape == (2, 4, 2)
    assert np.allclose(curves[0][0], [0.0, 0.0])
    assert np.allclose(curves[0][3], [0.5, 0.5])
    assert np.allclose(curves[1][3], [1.0, 1.0])


def test_build_graph_curves_absent_handles_sit_on_anchors():
    curve = build_graph_curves(_line(2), [0.0, 1.0])[0]
    assert np.allclose(curve[1], curve[0])
    assert np.allclose(curve[2], curve[3])


def test_build_graph_curves_uses_graph_handles():
    kfs = [
        Keyframe(time=0.0, position=(0, 0), graph_out=(0.3, 0.0)),
        Keyframe(time=1.0, position=(10, 0), graph_in=(-0.3, 0.0)),
    ]
    curve = build_graph_curves(kfs, [0.0, 1.0])[0]
    assert np.allclose(curve, [[0.0, 0.0], [0.3, 0.0], [0.7, 1.0], [1.0, 1.0]])


def test_build_graph_curves_short_progress_repeats_last():
    curves = build_graph_curves(_line(3), [0.0, 0.4])
    assert np.allclose(curves[1][0], [0.5, 0.4])
    assert np.allclose(curves[1][3], [1.0, 0.4])


# ============================================================================
# SPLITTING
# ============================================================================

def test_split_keeps_shape():
    kfs = [
        Keyframe(time=0.0, position=(0, 0), sketch_out=(10, 20)),
        Keyframe(time=1.0, position=(40, 0), sketch_in=(-10, 20)),
    ]
    original = build_sketch_curves(kfs)[0]
    split = split_keyframe_segment(kfs, 0, 0.3)
    assert len(split) == 3

    left, right = build_sketch_curves(split)
    for s in (0.0, 0.5, 1.0):
        assert np.allclose(bezier_point(*left, s), bezier_point(*original, 0.3 * s))
        assert np.allclose(bezier_point(*right, s), bezier_point(*original, 0.3 + 0.7 * s))


def test_split_interpolates_time():
    kfs = [Keyframe(time=0.2, position=(0, 0)), Keyframe(time=0.6, position=(10, 0))]
    split = split_keyframe_segment(kfs, 0, 0.25)
    assert split[1].time == pytest.approx(0.3)
    curve = build_sketch_curves(kfs)[0]
    assert np.allclose(split[1].position, bezier_point(*curve, 0.25))


def test_split_straight_segment_keeps_collinear_handles():
    split = split_keyframe_segment(_line(2), 0, 0.5)
    # Straight join stays straight: outer handles vanish, inner ones lie on the line
    assert split[0].sketch_out is None
    assert split[2].sketch_in is None
    assert split[1].sketch_in is None or np.isclose(split[1].sketch_in[1], 0.0)
    assert split[1].sketch_out is None or np.isclose(split[1].sketch_out[1], 0.0)


def test_split_leaves_other_segments():
    kfs = _line(4)
    split = split_keyframe_segment(kfs, 1, 0.5)
    assert len(split) == 5
    assert split[0] is kfs[0]
    assert split[4] is kfs[3]
    assert kfs[1].sketch_out is None


@pytest.mark.parametrize("t", [0.0, 1.0, -0.5, float("nan")])
def test_split_rejects_boundary_t(t):
    with pytest.raises(ValueError, match=r"\(0, 1\)"):
        split_keyframe_segment(_line(3), 0, t)


def test_split_rejects_bad_index():
    with pytest.raises(ValueError, match="out of range"):
        split_keyframe_segment(_line(3), 2, 0.5)
    with pytest.raises(ValueError, match="out of range"):
        split_keyframe_segment(_line(3), -1, 0.5)


def test_split_rejects_single_keyframe():
    with pytest.raises(ValueError, match="At least 2"):
        split_keyframe_segment(_line(2)[:1], 0, 0.5)


# ============================================================================
# TIME NORMALIZATION
# ============================================================================

def test_normalize_keyframe_times():
    kfs = [
        Keyframe(time=-0.5, position=(0, 0)),
        Keyframe(time=0.7, position=(1, 0)),
        Keyframe(time=0.4, position=(2, 0)),
        Keyframe(time=3.0, position=(3, 0)),
    ]
    assert [k.time for k in normalize_keyframe_times(kfs)] == [0.0, 0.7, 0.7, 1.0]
