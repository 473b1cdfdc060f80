"""Selection scoping for partial-path suggestions.

A SelectionRange names an inclusive span of spatial curve segments. Scoping
is advisory: out-of-range indices are clamped and an empty span falls back
to the whole path, never an error.

Boundary blending: a suggestion covering only part of a path moves the
selection's first and last anchors; the same deltas are carried into the
adjoining out-of-range curves (previous curve p2/p3, next curve p0/p1) so
the visible path stays continuous at the selection edges.
"""

from __future__ import annotations

from typing import NamedTuple, Optional, Sequence

import numpy as np

from ..geometry.model import Keyframe, Path, SelectionRange


class Preview(NamedTuple):
    """Preview curves and the inclusive index window that changed."""

    curves: np.ndarray
    window: tuple[int, int]


# ---------------------------------------------------------------------------
# Index scoping
# ---------------------------------------------------------------------------


def clamp_selection(
    selection: Optional[SelectionRange], curve_count: int
) -> Optional[tuple[int, int]]:
    """Clamp a selection to ``[0, curve_count - 1]``.

    Returns
    -------
    tuple[int, int] | None
        Inclusive ``(start, end)``, or ``None`` when there is no selection,
        no curves, or the clamped span is empty.
    """
    if selection is None or curve_count <= 0:
        return None
    start = max(0, min(curve_count - 1, selection.start_curve_index))
    end = max(0, min(curve_count - 1, selection.end_curve_index))
    if start > end:
        return None
    return start, end


def slice_path(path: Path, selection: Optional[SelectionRange] = None) -> Path:
    """Copy of ``path`` restricted to the selected segments.

    Parameters
    ----------
    path : Path
        Source path (not modified).
    selection : SelectionRange | None
        Segments to keep.

    Returns
    -------
    Path
        Keyframes ``[start .. end + 1]`` (``end - start + 2`` keyframes) after
        clamping both indices to ``[0, len(keyframes) - 2]``; a full copy when
        there is no selection or ``start > end``.
    """
    span = clamp_selection(selection, path.curve_count)
    if span is None:
        return path.copy()
    start, end = span
    return path.copy(keyframes=path.keyframes[start:end + 2])


def get_selection_reference(
    path: Path,
    selection: Optional[SelectionRange],
    progress: Sequence[float],
) -> tuple[list[Keyframe], list[float]]:
    """Sliced keyframes and progress with identical bounds."""
    span = clamp_selection(selection, path.curve_count)
    if span is None:
        return list(path.keyframes), list(progress)
    start, end = span
    return list(path.keyframes[start:end + 2]), list(progress[start:end + 2])


# ---------------------------------------------------------------------------
# Boundary blending
# ---------------------------------------------------------------------------


def boundary_deltas(
    original: np.ndarray,
    suggested: np.ndarray,
    start: int,
    end: int,
) -> tuple[Optional[np.ndarray], Optional[np.ndarray]]:
    """Anchor deltas at the selection edges.

    Parameters
    ----------
    original : np.ndarray
        Full base curve set, shape (N, 4, 2).
    suggested : np.ndarray
        Suggested curves for the selection only (local indices).
    start, end : int
        Clamped inclusive selection.

    Returns
    -------
    tuple
        ``(start_delta, end_delta)``. ``start_delta`` is ``None`` when the
        selection begins at curve 0; ``end_delta`` is ``None`` when it ends at
        the last curve, or when ``suggested`` stops short of the selection end.
        Either is ``None`` when ``suggested`` is empty.
    """
    if len(suggested) == 0:
        return None, None

    start_delta = None
    if start > 0:
        start_delta = suggested[0][0] - original[start][0]

    end_delta = None
    # A short suggestion leaves the selection end in place
    if end < len(original) - 1 and len(suggested) > end - start:
        end_delta = suggested[end - start][3] - original[end][3]

    return start_delta, end_delta


def blend_boundaries(
    curves: np.ndarray,
    original: np.ndarray,
    suggested: np.ndarray,
    start: int,
    end: int,
    strength: float,
) -> np.ndarray:
    """Carry scaled edge deltas into the curves adjoining the selection.

    ``curves`` is modified in place and returned.
    """
    start_delta, end_delta = boundary_deltas(original, suggested, start, end)
    if start_delta is not None:
        curves[start - 1, 2:4] += start_delta * strength
    if end_delta is not None:
        curves[end + 1, 0:2] += end_delta * strength
    return curves


# ---------------------------------------------------------------------------
# Preview
# ---------------------------------------------------------------------------


def build_preview_curves(
    base: np.ndarray,
    effective: np.ndarray,
    suggested: np.ndarray,
    selection: Optional[SelectionRange],
    strength: float,
    *,
    blend: bool = True,
) -> Optional[Preview]:
    """Effective curves with a suggestion layered on at ``strength``.

    Parameters
    ----------
    base : np.ndarray
        Unmodified curves the suggestion was derived from, shape (N, 4, 2).
    effective : np.ndarray
        Curves with the existing modifiers applied, same shape.
    suggested : np.ndarray
        Suggested curves, indexed locally from the selection start.
    selection : SelectionRange | None
        Scope of the suggestion; ``None`` means the whole path.
    strength : float
        Multiplier for ``suggested - base``.
    blend : bool
        Apply boundary blending at the selection edges.

    Returns
    -------
    Preview | None
        Full preview curve set plus the ``(start - 1 .. end + 1)`` window
        worth redrawing; ``None`` when there is nothing to preview.
    """
    base = np.asarray(base, dtype=float)
    suggested = np.asarray(suggested, dtype=float)
    if len(base) == 0 or len(suggested) == 0:
        return None

    curves = np.array(effective, dtype=float, copy=True)
    span = clamp_selection(selection, len(base))
    start, end = span if span is not None else (0, len(base) - 1)

    # Only curves present in both the selection and the suggestion move
    count = min(end - start + 1, len(suggested))
    curves[start:start + count] += (suggested[:count] - base[start:start + count]) * strength

    if blend and span is not None:
        blend_boundaries(curves, base, suggested, start, end, strength)

    window = (max(0, start - 1), min(len(curves) - 1, end + 1))
    return Preview(curves=curves, window=window)
