"""Path geometry: Bézier kernel, data model, keyframe curve builders.

Depends only on numpy and motionsketch.utils.
"""

from motionsketch.geometry.bezier import (
    SplitResult,
    bernstein,
    bezier_derivative,
    bezier_point,
    bezier_second_derivative,
    binomial,
    curve_length,
    curves_bbox,
    refine_parameter,
    round_normalized,
    split_bezier,
    split_cubic_bezier,
    split_tangent,
    unit_tangent,
)
from motionsketch.geometry.keyframes import (
    build_graph_curves,
    build_sketch_curves,
    compute_keyframe_progress,
    empty_curves,
    normalize_keyframe_times,
    split_keyframe_segment,
)
from motionsketch.geometry.model import (
    CurveFamily,
    Keyframe,
    Modifier,
    Offset,
    Path,
    SelectionRange,
    clamp_strength,
)

__all__ = [
    "SplitResult",
    "bernstein",
    "bezier_derivative",
    "bezier_point",
    "bezier_second_derivative",
    "binomial",
    "curve_length",
    "curves_bbox",
    "refine_parameter",
    "round_normalized",
    "split_bezier",
    "split_cubic_bezier",
    "split_tangent",
    "unit_tangent",
    "build_graph_curves",
    "build_sketch_curves",
    "compute_keyframe_progress",
    "empty_curves",
    "normalize_keyframe_times",
    "split_keyframe_segment",
    "CurveFamily",
    "Keyframe",
    "Modifier",
    "Offset",
    "Path",
    "SelectionRange",
    "clamp_strength",
]
