"""Modifier layers and selection scoping."""

from motionsketch.modifiers.engine import (
    CurveCache,
    EffectiveCurves,
    apply_modifiers,
    create_modifier_from_result,
    derive_effective_curves,
    find_modifier,
    remove_modifier,
    remove_path_modifier,
    set_modifier_strength,
    set_path_modifier_strength,
)
from motionsketch.modifiers.selection import (
    Preview,
    blend_boundaries,
    boundary_deltas,
    build_preview_curves,
    clamp_selection,
    get_selection_reference,
    slice_path,
)

__all__ = [
    "CurveCache",
    "EffectiveCurves",
    "apply_modifiers",
    "create_modifier_from_result",
    "derive_effective_curves",
    "find_modifier",
    "remove_modifier",
    "remove_path_modifier",
    "set_modifier_strength",
    "set_path_modifier_strength",
    "Preview",
    "blend_boundaries",
    "boundary_deltas",
    "build_preview_curves",
    "clamp_selection",
    "get_selection_reference",
    "slice_path",
]
