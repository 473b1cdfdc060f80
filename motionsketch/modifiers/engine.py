"""Non-destructive modifier layers.

A modifier stores per-control-point deltas between a base curve set and an
accepted suggestion. Effective curves are always re-derived:

    base sketch  = build_sketch_curves(keyframes)
    eff. sketch  = apply_modifiers(base sketch, sketch_modifiers)
    base progress / eff. progress = compute_keyframe_progress(...)
    base graph   = build_graph_curves(keyframes, base progress)
    eff. graph   = apply_modifiers(build_graph_curves(keyframes, eff. progress),
                                   graph_modifiers)

Modifiers apply in list order and are cumulative. Removal is two-phase:
strength drops to 0 (an observable no-op state), then the layer is spliced
out. Path-level helpers bump ``Path.version`` after each phase so cached
derivations (CurveCache) are invalidated.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

import numpy as np

from ..geometry.keyframes import (
    build_graph_curves,
    build_sketch_curves,
    compute_keyframe_progress,
)
from ..geometry.model import CurveFamily, Modifier, Offset, OffsetSlots, Path, SelectionRange
from ..utils.ids import IdFactory, new_id
from .selection import boundary_deltas, clamp_selection

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------


def apply_modifiers(base_curves, modifiers: Sequence[Modifier]) -> np.ndarray:
    """Apply modifiers to a copy of ``base_curves``.

    Parameters
    ----------
    base_curves : array-like
        Curve set, shape (N, 4, 2). Never modified.
    modifiers : Sequence[Modifier]
        Applied in order; each non-null slot adds ``strength * offset``.

    Returns
    -------
    np.ndarray
        New curve set of the same shape.

    Notes
    -----
    A modifier whose slot count differs from N (e.g. the path was edited
    after acceptance) only touches the curves both share.
    """
    curves = np.array(base_curves, dtype=float, copy=True)
    for modifier in modifiers:
        if modifier.curve_count != len(curves):
            logger.debug(
                f"Modifier {modifier.id} has {modifier.curve_count} curve slots "
                f"for {len(curves)} curves; applying the overlap"
            )
        if modifier.strength == 0.0:
            continue
        for curve_index, slots in enumerate(modifier.offsets[:len(curves)]):
            for point_index, offset in enumerate(slots):
                if offset is not None:
                    curves[curve_index, point_index, 0] += modifier.strength * offset.dx
                    curves[curve_index, point_index, 1] += modifier.strength * offset.dy
    return curves


# ---------------------------------------------------------------------------
# Creation
# ---------------------------------------------------------------------------


def create_modifier_from_result(
    original,
    suggested,
    name: Optional[str] = None,
    *,
    fallback_name: str,
    selection: Optional[SelectionRange] = None,
    strength: float = 1.0,
    id_factory: IdFactory = new_id,
    blend: bool = True,
) -> Modifier:
    """Record the delta between base curves and an accepted suggestion.

    Parameters
    ----------
    original : array-like
        Full base curve set, shape (N, 4, 2).
    suggested : array-like
        Suggested curves. Indexed from 0 for the whole path, or from the
        selection start when ``selection`` is given.
    name : str | None
        Instruction text; blank or ``None`` falls back to ``fallback_name``.
    fallback_name : str
        Suggestion title.
    selection : SelectionRange | None
        Scope of the suggestion. Curves outside it get ``None`` slots.
    strength : float
        Initial strength, clamped to [0, 2].
    id_factory : IdFactory
        Source of the modifier id.
    blend : bool
        Write the edge anchor deltas into the adjoining curves (spatial
        curves only).

    Returns
    -------
    Modifier
        ``offsets`` has exactly N curve slots. Slots past the end of
        ``suggested`` are ``None``.
    """
    original = np.asarray(original, dtype=float)
    suggested = np.asarray(suggested, dtype=float)
    span = clamp_selection(selection, len(original))
    start, end = span if span is not None else (0, len(original) - 1)

    offsets: list[OffsetSlots] = []
    for curve_index, curve in enumerate(original):
        local = curve_index - start
        if curve_index < start or curve_index > end or local >= len(suggested):
            offsets.append([None, None, None, None])
            continue
        delta = suggested[local] - curve
        offsets.append([Offset(float(dx), float(dy)) for dx, dy in delta])

    if blend and span is not None:
        start_delta, end_delta = boundary_deltas(original, suggested, start, end)
        if start_delta is not None:
            edge = Offset(float(start_delta[0]), float(start_delta[1]))
            offsets[start - 1][2] = edge
            offsets[start - 1][3] = edge
        if end_delta is not None:
            edge = Offset(float(end_delta[0]), float(end_delta[1]))
            offsets[end + 1][0] = edge
            offsets[end + 1][1] = edge

    label = name.strip() if name and name.strip() else fallback_name
    return Modifier(id=id_factory(), name=label, offsets=offsets, strength=strength)


# ---------------------------------------------------------------------------
# Stack edits
# ---------------------------------------------------------------------------


def find_modifier(modifiers: Sequence[Modifier], modifier_id: str) -> Optional[Modifier]:
    return next((m for m in modifiers if m.id == modifier_id), None)


def set_modifier_strength(
    modifiers: Sequence[Modifier], modifier_id: str, strength: float
) -> Optional[Modifier]:
    """Clamp and set one modifier's strength; returns it, or None if absent."""
    modifier = find_modifier(modifiers, modifier_id)
    if modifier is not None:
        modifier.set_strength(strength)
    return modifier


def remove_modifier(
    modifiers: list[Modifier],
    modifier_id: str,
    on_change: Optional[Callable[[], object]] = None,
) -> Optional[Modifier]:
    """Two-phase removal: zero the strength, then splice out.

    Parameters
    ----------
    modifiers : list[Modifier]
        Stack edited in place.
    modifier_id : str
        Modifier to remove.
    on_change : callable, optional
        Invoked after each phase.

    Returns
    -------
    Modifier | None
        The removed modifier (strength 0), or None if the id is unknown.
    """
    modifier = find_modifier(modifiers, modifier_id)
    if modifier is None:
        return None

    modifier.set_strength(0.0)
    if on_change is not None:
        on_change()

    modifiers.remove(modifier)
    if on_change is not None:
        on_change()
    logger.debug(f"Removed modifier {modifier_id}")
    return modifier


def set_path_modifier_strength(
    path: Path, family: CurveFamily, modifier_id: str, strength: float
) -> Optional[Modifier]:
    """set_modifier_strength on a path's stack, bumping its version."""
    modifier = set_modifier_strength(path.modifiers(family), modifier_id, strength)
    if modifier is not None:
        path.touch()
    return modifier


def remove_path_modifier(path: Path, family: CurveFamily, modifier_id: str) -> Optional[Modifier]:
    """remove_modifier on a path's stack, bumping its version per phase."""
    return remove_modifier(path.modifiers(family), modifier_id, on_change=path.touch)


# ---------------------------------------------------------------------------
# Derived curves
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class EffectiveCurves:
    """Everything derived from a path at one version."""

    base_sketch: np.ndarray
    sketch: np.ndarray
    base_progress: list[float]
    progress: list[float]
    base_graph: np.ndarray
    graph: np.ndarray

    def base(self, family: CurveFamily) -> np.ndarray:
        return self.base_sketch if CurveFamily(family) is CurveFamily.SKETCH else self.base_graph

    def effective(self, family: CurveFamily) -> np.ndarray:
        return self.sketch if CurveFamily(family) is CurveFamily.SKETCH else self.graph


def derive_effective_curves(path: Path) -> EffectiveCurves:
    """Derive base and effective spatial/timing curves for a path."""
    base_sketch = build_sketch_curves(path.keyframes)
    sketch = apply_modifiers(base_sketch, path.sketch_modifiers)
    base_progress = compute_keyframe_progress(path.keyframes, base_sketch)
    progress = compute_keyframe_progress(path.keyframes, sketch)
    base_graph = build_graph_curves(path.keyframes, base_progress)
    graph = apply_modifiers(build_graph_curves(path.keyframes, progress), path.graph_modifiers)
    return EffectiveCurves(
        base_sketch=base_sketch,
        sketch=sketch,
        base_progress=base_progress,
        progress=progress,
        base_graph=base_graph,
        graph=graph,
    )


class CurveCache:
    """LRU memo of derive_effective_curves keyed by ``(path.id, path.version)``.

    Parameters
    ----------
    max_entries : int
        Entries kept before the least recently used one is evicted.
    """

    def __init__(self, max_entries: int = 64):
        if max_entries < 1:
            raise ValueError(f"max_entries must be >= 1, got {max_entries}")
        self.max_entries = max_entries
        self._entries: OrderedDict[tuple[str, int], EffectiveCurves] = OrderedDict()
        self.hits = 0
        self.misses = 0

    def get(self, path: Path) -> EffectiveCurves:
        key = (path.id, path.version)
        cached = self._entries.get(key)
        if cached is not None:
            self._entries.move_to_end(key)
            self.hits += 1
            return cached

        self.misses += 1
        derived = derive_effective_curves(path)
        self._entries[key] = derived
        if len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)
        return derived

    def invalidate(self, path_id: Optional[str] = None) -> None:
        """Drop entries for one path, or everything."""
        if path_id is None:
            self._entries.clear()
            return
        for key in [k for k in self._entries if k[0] == path_id]:
            del self._entries[key]

    def __len__(self) -> int:
        return len(self._entries)
