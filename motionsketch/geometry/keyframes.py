"""Keyframe → curve construction and progress mapping.

Provides:
    - Spatial curves: one cubic per adjacent keyframe pair in (x, y)
    - Progress: cumulative length-weighted position per keyframe in [0, 1]
    - Timing curves: one cubic per pair in (time, progress)
    - Segment splitting that inserts a keyframe without changing the shape
    - Time normalization (clamp to [0, 1], non-decreasing)

Curve sets are numpy arrays of shape (N, 4, 2); a path with K keyframes
yields K-1 segments. Progress is derived data: recompute it whenever the
effective spatial curves change.
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence

import numpy as np

from .bezier import curve_length, split_cubic_bezier
from .model import Keyframe, clamp_keyframe_times

logger = logging.getLogger(__name__)

# Squared magnitude at or below which a split handle is dropped
_HANDLE_EPS_SQ = 1e-6 * 1e-6


def empty_curves() -> np.ndarray:
    """Curve set with no segments, shape (0, 4, 2)."""
    return np.zeros((0, 4, 2), dtype=float)


def _handle(vec: Optional[np.ndarray]) -> np.ndarray:
    return np.zeros(2) if vec is None else vec


# ---------------------------------------------------------------------------
# Curve builders
# ---------------------------------------------------------------------------


def build_sketch_curves(keyframes: Sequence[Keyframe]) -> np.ndarray:
    """Build spatial Bézier segments from keyframes.

    Parameters
    ----------
    keyframes : Sequence[Keyframe]
        Ordered keyframes.

    Returns
    -------
    np.ndarray
        Shape (len(keyframes) - 1, 4, 2); empty for fewer than 2 keyframes.
        Segment i is ``[pos_i, pos_i + sketch_out_i, pos_i+1 + sketch_in_i+1,
        pos_i+1]``.
    """
    if len(keyframes) < 2:
        return empty_curves()

    curves = np.empty((len(keyframes) - 1, 4, 2), dtype=float)
    for i, (start, end) in enumerate(zip(keyframes[:-1], keyframes[1:])):
        curves[i, 0] = start.position
        curves[i, 1] = start.position + _handle(start.sketch_out)
        curves[i, 2] = end.position + _handle(end.sketch_in)
        curves[i, 3] = end.position
    return curves


def compute_keyframe_progress(keyframes: Sequence[Keyframe], curves) -> list[float]:
    """Cumulative, length-weighted progress per keyframe.

    Parameters
    ----------
    keyframes : Sequence[Keyframe]
        Keyframes the curves were built from.
    curves : array-like
        Spatial curves, shape (len(keyframes) - 1, 4, 2).

    Returns
    -------
    list[float]
        Non-decreasing values starting at 0.0 and ending at 1.0; all zeros
        when the total length is <= 1e-6. ``[]`` for no keyframes and
        ``[0.0]`` for one.

    Notes
    -----
    Lengths use the chord / control-net heuristic, good enough for weighting.
    """
    if len(keyframes) == 0:
        return []
    if len(keyframes) == 1:
        return [0.0]

    lengths = [curve_length(c) for c in curves]
    total = sum(lengths)
    if total <= 1e-6:
        return [0.0] * len(keyframes)

    progress = [0.0]
    cumulative = 0.0
    for length in lengths:
        cumulative += length
        progress.append(cumulative / total)
    return progress


def build_graph_curves(keyframes: Sequence[Keyframe], progress: Sequence[float]) -> np.ndarray:
    """Build timing Bézier segments in (time, progress) space.

    Parameters
    ----------
    keyframes : Sequence[Keyframe]
        Ordered keyframes; ``time`` is the x axis.
    progress : Sequence[float]
        Per-keyframe progress (y axis). Missing trailing entries repeat the
        previous value.

    Returns
    -------
    np.ndarray
        Shape (len(keyframes) - 1, 4, 2). An absent graph handle places the
        control point on its anchor.
    """
    if len(keyframes) < 2:
        return empty_curves()

    def value_at(index: int, fallback: float) -> float:
        return float(progress[index]) if index < len(progress) else fallback

    curves = np.empty((len(keyframes) - 1, 4, 2), dtype=float)
    for i, (start, end) in enumerate(zip(keyframes[:-1], keyframes[1:])):
        v0 = value_at(i, 0.0)
        v1 = value_at(i + 1, v0)
        p0 = np.array([start.time, v0])
        p3 = np.array([end.time, v1])
        curves[i] = (p0, p0 + _handle(start.graph_out), p3 + _handle(end.graph_in), p3)
    return curves


# ---------------------------------------------------------------------------
# Editing helpers
# ---------------------------------------------------------------------------


def _split_handle(vec: np.ndarray) -> Optional[np.ndarray]:
    if float(np.dot(vec, vec)) <= _HANDLE_EPS_SQ:
        return None
    return vec


def split_keyframe_segment(
    keyframes: Sequence[Keyframe],
    segment_index: int,
    t: float,
) -> list[Keyframe]:
    """Insert a keyframe inside a segment without changing the curve shape.

    Parameters
    ----------
    keyframes : Sequence[Keyframe]
        Ordered keyframes (not modified).
    segment_index : int
        Segment to split, 0 <= segment_index < len(keyframes) - 1.
    t : float
        Curve parameter, strictly inside (0, 1).

    Returns
    -------
    list[Keyframe]
        New list with one more keyframe. The segment's neighbours get the
        de Casteljau handles; the inserted keyframe's time is interpolated
        linearly between its neighbours. Zero-length handles become None.

    Raises
    ------
    ValueError
        If t is outside (0, 1) or not finite, fewer than 2 keyframes are
        given, or segment_index is out of range.
    """
    if not np.isfinite(t) or t <= 0.0 or t >= 1.0:
        raise ValueError(f"split parameter t must be within (0, 1), got {t}")
    if len(keyframes) < 2:
        raise ValueError(f"At least 2 keyframes are required to split a segment, got {len(keyframes)}")
    if segment_index < 0 or segment_index >= len(keyframes) - 1:
        raise ValueError(
            f"segment_index {segment_index} out of range [0, {len(keyframes) - 2}]"
        )

    start = keyframes[segment_index]
    end = keyframes[segment_index + 1]
    curve = build_sketch_curves([start, end])[0]
    left, right, point = split_cubic_bezier(curve, t)

    inserted = Keyframe(
        time=start.time + (end.time - start.time) * t,
        position=point,
        sketch_in=_split_handle(left[2] - left[3]),
        sketch_out=_split_handle(right[1] - right[0]),
    )

    result = list(keyframes)
    result[segment_index] = start.replace(sketch_out=_split_handle(left[1] - left[0]))
    result[segment_index + 1] = end.replace(sketch_in=_split_handle(right[2] - right[3]))
    result.insert(segment_index + 1, inserted)
    logger.debug(f"Split segment {segment_index} at t={t:.3f} -> {len(result)} keyframes")
    return result


def normalize_keyframe_times(keyframes: Sequence[Keyframe]) -> list[Keyframe]:
    """Clamp times to [0, 1] then clamp out-of-order values up to the predecessor."""
    return clamp_keyframe_times(keyframes)
