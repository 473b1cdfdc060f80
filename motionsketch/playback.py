"""Playback: where is each path's object at a given elapsed time.

A path plays from ``start_time`` for ``duration`` seconds. Normalized time
``t = (elapsed - start_time) / duration`` is mapped through the timing curve
(x = time, y = progress) to a progress value, which picks the spatial
segment and the local parameter on it:

    segment = find_segment_index(t, keyframes)
    u       = solve_bezier_x(graph[segment], t)          # bisection on x
    v       = graph[segment](u).y                        # progress
    local   = clamp((v - v0) / (v1 - v0), 0, 1)
    point   = sketch[segment](local)

Before ``start_time`` the object rests on the first anchor; at or after the
end it rests on the last anchor. Both use the effective (modified) curves.
"""

import logging
from typing import Optional, Sequence

import numpy as np

from .geometry.bezier import bezier_point
from .geometry.model import Keyframe, Path
from .modifiers.engine import CurveCache, EffectiveCurves, derive_effective_curves

logger = logging.getLogger(__name__)


def solve_bezier_x(curve, target_x: float, iterations: int = 10) -> float:
    """Find u with B(u).x ≈ target_x by bisection on [0, 1].

    Assumes x is non-decreasing along the curve (true for timing curves
    whose handles stay inside their segment).
    """
    low, high, u = 0.0, 1.0, 0.0
    for _ in range(iterations):
        u = (low + high) / 2.0
        if bezier_point(*curve, u)[0] < target_x:
            low = u
        else:
            high = u
    return u


def find_segment_index(time: float, keyframes: Sequence[Keyframe]) -> int:
    """Binary search for the segment whose time span contains ``time``.

    Returns an index clamped to ``[0, len(keyframes) - 2]``.
    """
    low, high = 0, max(0, len(keyframes) - 2)
    while low <= high:
        mid = (low + high) // 2
        if time < keyframes[mid].time:
            high = mid - 1
        elif time > keyframes[mid + 1].time:
            low = mid + 1
        else:
            return mid
    return max(0, min(len(keyframes) - 2, low))


def evaluate_position(
    time: float,
    keyframes: Sequence[Keyframe],
    spatial_curves: np.ndarray,
    graph_curves: np.ndarray,
    progress: Sequence[float],
) -> np.ndarray:
    """Position at normalized time ``time`` in [0, 1].

    Parameters
    ----------
    time : float
        Normalized path time
    keyframes : Sequence[Keyframe]
        Path keyframes
    spatial_curves, graph_curves : np.ndarray
        Effective curves, shape (len(keyframes) - 1, 4, 2)
    progress : Sequence[float]
        Per-keyframe progress the graph curves were built on

    Returns
    -------
    np.ndarray
        Point of shape (2,); the origin when there are no keyframes
    """
    if len(keyframes) == 0:
        return np.zeros(2)
    if len(keyframes) == 1:
        return np.array(keyframes[0].position, dtype=float)

    if time <= keyframes[0].time:
        return _first_anchor(keyframes, spatial_curves)
    if time >= keyframes[-1].time:
        return _last_anchor(keyframes, spatial_curves)

    segment = find_segment_index(time, keyframes)
    if segment >= len(graph_curves) or segment >= len(spatial_curves):
        return np.array(keyframes[segment].position, dtype=float)

    graph = graph_curves[segment]
    u = solve_bezier_x(graph, time)
    value = bezier_point(*graph, u)[1]

    v0 = float(progress[segment]) if segment < len(progress) else 0.0
    v1 = float(progress[segment + 1]) if segment + 1 < len(progress) else v0
    span = v1 - v0
    local = (value - v0) / span if abs(span) > 1e-6 else 0.0
    local = min(1.0, max(0.0, local))
    return bezier_point(*spatial_curves[segment], local)


def _first_anchor(keyframes: Sequence[Keyframe], spatial_curves: np.ndarray) -> np.ndarray:
    if len(spatial_curves):
        return np.array(spatial_curves[0][0], dtype=float)
    return np.array(keyframes[0].position, dtype=float)


def _last_anchor(keyframes: Sequence[Keyframe], spatial_curves: np.ndarray) -> np.ndarray:
    if len(spatial_curves):
        return np.array(spatial_curves[-1][3], dtype=float)
    return np.array(keyframes[-1].position, dtype=float)


def evaluate_path_position(
    path: Path,
    elapsed: float,
    cache: Optional[CurveCache] = None,
) -> np.ndarray:
    """Position of a path's object ``elapsed`` seconds into the timeline.

    Parameters
    ----------
    path : Path
        Path to evaluate
    elapsed : float
        Seconds since the timeline start
    cache : CurveCache, optional
        Memo for the effective curves; derived fresh when omitted

    Returns
    -------
    np.ndarray
        Point of shape (2,)
    """
    derived: EffectiveCurves = cache.get(path) if cache is not None else derive_effective_curves(path)

    if elapsed < path.start_time:
        return _first_anchor(path.keyframes, derived.sketch)

    local_time = min(1.0, max(0.0, (elapsed - path.start_time) / path.duration))
    if local_time >= 1.0:
        return _last_anchor(path.keyframes, derived.sketch)

    return evaluate_position(local_time, path.keyframes, derived.sketch, derived.graph, derived.progress)


def timeline_duration(paths: Sequence[Path]) -> float:
    """End of the last path on the timeline, ``max(start_time + duration)``; 0 if empty."""
    return max((p.start_time + p.duration for p in paths), default=0.0)


def sample_path(path: Path, frame_rate: float, cache: Optional[CurveCache] = None) -> np.ndarray:
    """Positions at every frame from 0 to the path's end time.

    Returns
    -------
    np.ndarray
        Shape (frames, 2), frames = floor((start_time + duration) * frame_rate) + 1
    """
    if frame_rate <= 0:
        raise ValueError(f"frame_rate must be > 0, got {frame_rate}")
    frames = int(np.floor((path.start_time + path.duration) * frame_rate)) + 1
    return np.array([evaluate_path_position(path, i / frame_rate, cache) for i in range(frames)])
