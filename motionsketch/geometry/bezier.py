"""Cubic Bézier math kernel.

Provides:
    - Bernstein basis and iterative binomial coefficients
    - Cubic evaluation, first and second derivatives
    - One-step Newton refinement of a curve parameter toward a point
    - Generic de Casteljau splitting (any degree) and a cubic wrapper
    - Heuristic curve length (chord / control-net average)
    - Tangent helpers and normalized-value rounding for the exchange format

Used by:
    - Keyframe builder: progress weighting and segment splitting
    - Serialization: 3-decimal rounding of normalized values
    - Playback: evaluation of spatial and timing curves

Points are numpy float arrays of shape (2,). A curve is an array-like of four
points, shape (4, 2). Everything here is stateless; inputs are never mutated.
"""

import math
from typing import List, NamedTuple, Optional, Sequence

import numpy as np

# Below this magnitude a Newton denominator or a tangent is treated as zero
EPS = 1e-6


class SplitResult(NamedTuple):
    """Output of a de Casteljau split.

    left[-1] and right[0] are both equal to point.
    """
    left: List[np.ndarray]
    right: List[np.ndarray]
    point: np.ndarray


# ----------------------------------------------------------------------------
# Basis
# ----------------------------------------------------------------------------

def binomial(n: int, k: int) -> float:
    """Binomial coefficient C(n, k), computed iteratively in O(k).

    Parameters
    ----------
    n : int
        Degree, n >= 0
    k : int
        Index, 0 <= k <= n

    Returns
    -------
    float
        C(n, k); binomial(n, k) == binomial(n, n - k)
    """
    if k == 0 or k == n:
        return 1.0

    res = 1.0
    for i in range(1, k + 1):
        res *= n - i + 1
        res /= i
    return res


def bernstein(i: int, n: int, t: float) -> float:
    """Bernstein basis polynomial b_{i,n}(t) = C(n,i) t^i (1-t)^(n-i)."""
    return binomial(n, i) * t ** i * (1.0 - t) ** (n - i)


# ----------------------------------------------------------------------------
# Evaluation
# ----------------------------------------------------------------------------

def bezier_point(p0, p1, p2, p3, t: float) -> np.ndarray:
    """Evaluate cubic Bézier curve at parameter t.

    Parameters
    ----------
    p0, p1, p2, p3 : array-like
        Control points, shape (2,)
    t : float
        Curve parameter, nominally in [0, 1]

    Returns
    -------
    np.ndarray
        Point on curve, shape (2,)

    Notes
    -----
    Standard cubic Bézier formula:
    B(t) = (1-t)³·p0 + 3(1-t)²t·p1 + 3(1-t)t²·p2 + t³·p3
    """
    return (
        bernstein(0, 3, t) * np.asarray(p0, dtype=float)
        + bernstein(1, 3, t) * np.asarray(p1, dtype=float)
        + bernstein(2, 3, t) * np.asarray(p2, dtype=float)
        + bernstein(3, 3, t) * np.asarray(p3, dtype=float)
    )


def bezier_derivative(p0, p1, p2, p3, t: float) -> np.ndarray:
    """First derivative B'(t) = 3(1-t)²(p1-p0) + 6(1-t)t(p2-p1) + 3t²(p3-p2)."""
    p0, p1, p2, p3 = (np.asarray(p, dtype=float) for p in (p0, p1, p2, p3))
    u = 1.0 - t
    return 3.0 * u * u * (p1 - p0) + 6.0 * u * t * (p2 - p1) + 3.0 * t * t * (p3 - p2)


def bezier_second_derivative(p0, p1, p2, p3, t: float) -> np.ndarray:
    """Second derivative B''(t) = 6(1-t)(p2-2p1+p0) + 6t(p3-2p2+p1)."""
    p0, p1, p2, p3 = (np.asarray(p, dtype=float) for p in (p0, p1, p2, p3))
    return 6.0 * (1.0 - t) * (p2 - 2.0 * p1 + p0) + 6.0 * t * (p3 - 2.0 * p2 + p1)


def refine_parameter(control: Sequence, point, u: float) -> float:
    """Refine a curve parameter toward a target point with one Newton step.

    Minimizes the squared distance |Q(u) - point|².

    Parameters
    ----------
    control : Sequence
        Four control points
    point : array-like
        Target point, shape (2,)
    u : float
        Current parameter guess

    Returns
    -------
    float
        u - ((Q-pt)·Q') / (|Q'|² + (Q-pt)·Q''), or u unchanged when the
        denominator is below 1e-6 in magnitude or the update is not finite
    """
    q = bezier_point(*control, u)
    q1 = bezier_derivative(*control, u)
    q2 = bezier_second_derivative(*control, u)

    diff = q - np.asarray(point, dtype=float)
    numerator = float(np.dot(diff, q1))
    denominator = float(np.dot(q1, q1) + np.dot(diff, q2))

    if abs(denominator) < EPS:
        return u

    updated = u - numerator / denominator
    if not np.isfinite(updated):
        return u
    return float(updated)


# ----------------------------------------------------------------------------
# Splitting
# ----------------------------------------------------------------------------

def split_bezier(points: Sequence, t: float) -> SplitResult:
    """Split a Bézier control polygon of any degree at t (de Casteljau).

    Parameters
    ----------
    points : Sequence
        Control polygon, at least 2 points of shape (2,)
    t : float
        Split parameter in [0, 1]

    Returns
    -------
    SplitResult
        left, right control polygons (same length as input) and the split point

    Raises
    ------
    ValueError
        If t is not finite or outside [0, 1], or fewer than 2 points given

    Notes
    -----
    At t=0 the left polygon collapses onto points[0]; at t=1 the right
    polygon collapses onto points[-1].
    """
    if not np.isfinite(t) or t < 0.0 or t > 1.0:
        raise ValueError(f"split parameter t must be within [0, 1], got {t}")
    if len(points) < 2:
        raise ValueError(f"Bezier split requires at least 2 control points, got {len(points)}")

    left: List[np.ndarray] = []
    right: List[np.ndarray] = []
    current = [np.array(p, dtype=float) for p in points]

    while True:
        left.append(current[0].copy())
        right.append(current[-1].copy())
        if len(current) == 1:
            break
        current = [(1.0 - t) * a + t * b for a, b in zip(current[:-1], current[1:])]

    right.reverse()
    return SplitResult(left=left, right=right, point=left[-1].copy())


def split_cubic_bezier(curve: Sequence, t: float) -> SplitResult:
    """Split a cubic curve at t; requires exactly 4 control points."""
    if len(curve) != 4:
        raise ValueError(f"Cubic Bezier split requires exactly 4 control points, got {len(curve)}")
    return split_bezier(curve, t)


# ----------------------------------------------------------------------------
# Measures
# ----------------------------------------------------------------------------

def curve_length(curve: Sequence) -> float:
    """Heuristic arc length: average of chord and control-net length.

    The chord is a lower bound and the control net an upper bound on the true
    length. Used only for progress weighting.
    """
    c = np.asarray(curve, dtype=float)
    chord = np.linalg.norm(c[3] - c[0])
    net = np.linalg.norm(np.diff(c, axis=0), axis=1).sum()
    return float((chord + net) / 2.0)


def curves_bbox(curves) -> Optional[np.ndarray]:
    """Axis-aligned bounds of all control points.

    Returns
    -------
    np.ndarray or None
        [min_x, min_y, max_x, max_y], or None when there are no curves
    """
    pts = np.asarray(curves, dtype=float).reshape(-1, 2)
    if pts.size == 0:
        return None
    return np.concatenate([pts.min(axis=0), pts.max(axis=0)])


def unit_tangent(d0, d1) -> np.ndarray:
    """Unit vector pointing from d0 to d1 (zero vector if they coincide)."""
    tangent = np.asarray(d1, dtype=float) - np.asarray(d0, dtype=float)
    norm = np.linalg.norm(tangent)
    if norm == 0.0:
        return tangent
    return tangent / norm


def split_tangent(points: Sequence, split_index: int) -> Optional[np.ndarray]:
    """Unit tangent at an interior sample, pointing from next to previous.

    Returns None when the index is an endpoint, there are fewer than 3
    points, or the neighbours are closer than 1e-6.
    """
    n = len(points)
    if n < 3 or split_index <= 0 or split_index >= n - 1:
        return None

    prev = np.asarray(points[split_index - 1], dtype=float)
    nxt = np.asarray(points[split_index + 1], dtype=float)
    if np.linalg.norm(prev - nxt) < EPS:
        return None
    return unit_tangent(nxt, prev)


def round_normalized(value: float) -> float:
    """Round a normalized value to 3 decimals (exchange quantum 0.001)."""
    # Half-up rounding, so 0.0005 maps to 0.001
    return math.floor(float(value) * 1000.0 + 0.5) / 1000.0
