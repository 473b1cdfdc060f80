"""Scale-invariant path exchange format.

Converts between in-memory curves/keyframes and a compact JSON form used for
the suggestion service and project files:
    - Positions normalized to the path's bounding box, rounded to 3 decimals
    - Handles as polar (angle in degrees, dist as a fraction of the bbox
      diagonal), rounded to 3 decimals
    - Timing handles normalized by the per-segment (time, progress) diagonal

Two protocols share the models below:
    - Sketch protocol: deduplicated ``anchors`` referenced by ``segments``
      (startIndex/endIndex). Anchors with the same rounded (x, y) become one
      entry, so shared corners stay single-sourced.
    - Keyframe protocol: a ``keyframes`` array with x, y, time and optional
      sketchIn/sketchOut/graphIn/graphOut handles.

Encoding an absent handle yields dist 0; a handle absent from JSON decodes to
"no handle" (control point on the anchor). encode → decode → encode
reproduces every normalized value within ±0.0005.

Wire names are camelCase; models accept either the alias or the Python name
and dump with ``by_alias=True``.
"""

import logging
import math
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..geometry.bezier import curves_bbox, round_normalized
from ..geometry.keyframes import (
    build_graph_curves,
    build_sketch_curves,
    compute_keyframe_progress,
    empty_curves,
)
from ..geometry.model import Keyframe, Path

logger = logging.getLogger(__name__)

MIN_EXTENT = 1e-6


# ============================================================================
# WIRE MODELS
# ============================================================================

class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, allow_inf_nan=False)

    def to_wire(self) -> Dict[str, Any]:
        """JSON-ready dict with camelCase keys and absent fields omitted."""
        return self.model_dump(by_alias=True, exclude_none=True)


class BoundingBox(_WireModel):
    """Axis-aligned normalization frame."""
    x: float
    y: float
    width: float = Field(..., ge=MIN_EXTENT, description="Extent along x, >= 1e-6")
    height: float = Field(..., ge=MIN_EXTENT, description="Extent along y, >= 1e-6")

    @property
    def diagonal(self) -> float:
        return math.hypot(self.width, self.height)


class SerializedHandle(_WireModel):
    """Polar handle: angle in degrees, dist normalized by a diagonal."""
    angle: float
    dist: float = Field(..., ge=0.0)


class SerializedAnchor(_WireModel):
    """Sketch-protocol anchor with optional in/out handles."""
    x: float
    y: float
    in_: Optional[SerializedHandle] = Field(None, alias="in")
    out: Optional[SerializedHandle] = None


class SerializedSegment(_WireModel):
    """Sketch-protocol segment referencing two anchors by index."""
    start_index: int = Field(..., ge=0, alias="startIndex")
    end_index: int = Field(..., ge=0, alias="endIndex")


class SerializedKeyframe(_WireModel):
    """Keyframe-protocol entry."""
    x: float
    y: float
    time: Optional[float] = None
    sketch_in: Optional[SerializedHandle] = Field(None, alias="sketchIn")
    sketch_out: Optional[SerializedHandle] = Field(None, alias="sketchOut")
    graph_in: Optional[SerializedHandle] = Field(None, alias="graphIn")
    graph_out: Optional[SerializedHandle] = Field(None, alias="graphOut")


class SerializedPath(_WireModel):
    """Bounding box plus either anchors/segments or keyframes (>= 2 entries)."""
    bbox: BoundingBox
    anchors: Optional[List[SerializedAnchor]] = None
    segments: Optional[List[SerializedSegment]] = None
    keyframes: Optional[List[SerializedKeyframe]] = None

    @model_validator(mode='after')
    def validate_payload(self) -> 'SerializedPath':
        if self.keyframes is None and self.anchors is None:
            raise ValueError("SerializedPath requires either anchors or keyframes")
        if self.anchors is not None:
            if self.segments is None:
                raise ValueError("anchors require a segments list")
            if len(self.anchors) < 2:
                raise ValueError(f"SerializedPath requires >= 2 anchors, got {len(self.anchors)}")
        if self.keyframes is not None and len(self.keyframes) < 2:
            raise ValueError(f"SerializedPath requires >= 2 keyframes, got {len(self.keyframes)}")
        return self


# ============================================================================
# PRIMITIVES
# ============================================================================

def compute_bbox(curves) -> BoundingBox:
    """Bounding box of all control points, extents floored at 1e-6.

    Returns the unit box (0, 0, 1, 1) for an empty curve set.
    """
    bounds = curves_bbox(curves)
    if bounds is None or not np.all(np.isfinite(bounds)):
        return BoundingBox(x=0.0, y=0.0, width=1.0, height=1.0)
    min_x, min_y, max_x, max_y = (float(v) for v in bounds)
    return BoundingBox(
        x=min_x,
        y=min_y,
        width=max(MIN_EXTENT, max_x - min_x),
        height=max(MIN_EXTENT, max_y - min_y),
    )


def encode_point(point, bbox: BoundingBox) -> Tuple[float, float]:
    """Absolute point → rounded normalized (x, y)."""
    return (
        round_normalized((point[0] - bbox.x) / bbox.width),
        round_normalized((point[1] - bbox.y) / bbox.height),
    )


def decode_point(x: float, y: float, bbox: BoundingBox) -> np.ndarray:
    """Normalized (x, y) → absolute point."""
    return np.array([bbox.x + x * bbox.width, bbox.y + y * bbox.height], dtype=float)


def encode_handle(vec: Optional[np.ndarray], diagonal: float) -> SerializedHandle:
    """Relative handle vector → polar handle (None encodes as dist 0)."""
    dx, dy = (0.0, 0.0) if vec is None else (float(vec[0]), float(vec[1]))
    return SerializedHandle(
        angle=round_normalized(math.degrees(math.atan2(dy, dx))),
        dist=round_normalized(math.hypot(dx, dy) / diagonal),
    )


def decode_handle(handle: SerializedHandle, diagonal: float) -> np.ndarray:
    """Polar handle → relative vector ``(cos, sin) * dist * diagonal``."""
    angle = math.radians(handle.angle)
    dist = handle.dist * diagonal
    return np.array([math.cos(angle) * dist, math.sin(angle) * dist], dtype=float)


def _ensure_model(serialized) -> SerializedPath:
    if isinstance(serialized, SerializedPath):
        return serialized
    return SerializedPath.model_validate(serialized)


# ============================================================================
# SKETCH PROTOCOL (anchors + segments)
# ============================================================================

def serialize_curves(curves, bbox: Optional[BoundingBox] = None) -> SerializedPath:
    """Encode a curve set as deduplicated anchors plus segments.

    Parameters
    ----------
    curves : array-like
        Curve set, shape (N, 4, 2), N >= 1
    bbox : BoundingBox, optional
        Normalization frame; defaults to compute_bbox(curves)

    Returns
    -------
    SerializedPath
        anchors/segments payload

    Raises
    ------
    ValueError
        If curves is empty (a SerializedPath needs >= 2 anchors)
    """
    curves = np.asarray(curves, dtype=float)
    if len(curves) == 0:
        raise ValueError("Cannot serialize an empty curve set")
    if bbox is None:
        bbox = compute_bbox(curves)
    diagonal = bbox.diagonal

    anchors: List[SerializedAnchor] = []
    index_by_key: Dict[Tuple[float, float], int] = {}
    segments: List[SerializedSegment] = []

    def anchor_index(point) -> int:
        key = encode_point(point, bbox)
        index = index_by_key.get(key)
        if index is None:
            anchors.append(SerializedAnchor(x=key[0], y=key[1]))
            index = len(anchors) - 1
            index_by_key[key] = index
        return index

    for p0, p1, p2, p3 in curves:
        start = anchor_index(p0)
        end = anchor_index(p3)
        anchors[start].out = encode_handle(p1 - p0, diagonal)
        anchors[end].in_ = encode_handle(p2 - p3, diagonal)
        segments.append(SerializedSegment(start_index=start, end_index=end))

    if len(anchors) < 2:
        # Closed single-segment loop: keep the end anchor distinct
        anchors.append(anchors[0].model_copy())
        segments[-1] = SerializedSegment(start_index=segments[-1].start_index, end_index=1)

    return SerializedPath(bbox=bbox, anchors=anchors, segments=segments)


def serialize_paths(paths: Sequence[Path], bbox: Optional[BoundingBox] = None) -> List[SerializedPath]:
    """Encode each path's base spatial curves with the sketch protocol."""
    return [serialize_curves(build_sketch_curves(path.keyframes), bbox) for path in paths]


def deserialize_curves(serialized) -> np.ndarray:
    """Decode a sketch-protocol path into absolute curves.

    Segments that reference a missing anchor are skipped. Returns an empty
    (0, 4, 2) array when the payload has no anchors.
    """
    serialized = _ensure_model(serialized)
    if serialized.anchors is None or serialized.segments is None:
        return empty_curves()

    bbox = serialized.bbox
    diagonal = bbox.diagonal
    anchors = serialized.anchors

    curves = []
    for segment in serialized.segments:
        if segment.start_index >= len(anchors) or segment.end_index >= len(anchors):
            logger.debug(
                f"Skipping segment {segment.start_index}->{segment.end_index}: "
                f"only {len(anchors)} anchors"
            )
            continue
        start_anchor = anchors[segment.start_index]
        end_anchor = anchors[segment.end_index]
        start = decode_point(start_anchor.x, start_anchor.y, bbox)
        end = decode_point(end_anchor.x, end_anchor.y, bbox)
        p1 = start + decode_handle(start_anchor.out, diagonal) if start_anchor.out else start.copy()
        p2 = end + decode_handle(end_anchor.in_, diagonal) if end_anchor.in_ else end.copy()
        curves.append((start, p1, p2, end))

    if not curves:
        return empty_curves()
    return np.array(curves, dtype=float)


# ============================================================================
# KEYFRAME PROTOCOL
# ============================================================================

def _segment_frame(t0: float, t1: float, v0: float, v1: float) -> Optional[float]:
    """Diagonal of a timing segment, or None when it is degenerate."""
    dt, dv = t1 - t0, v1 - v0
    if abs(dt) < MIN_EXTENT or abs(dv) < MIN_EXTENT:
        return None
    return math.hypot(dt, dv)


def _progress_at(progress: Sequence[float], index: int, fallback: float) -> float:
    return float(progress[index]) if index < len(progress) else fallback


def serialize_keyframes(
    keyframes: Sequence[Keyframe],
    bbox: BoundingBox,
    progress: Sequence[float],
) -> List[SerializedKeyframe]:
    """Encode keyframes; graph handles are omitted on degenerate segments."""
    diagonal = bbox.diagonal
    serialized = []
    for kf in keyframes:
        x, y = encode_point(kf.position, bbox)
        serialized.append(SerializedKeyframe(
            x=x,
            y=y,
            time=round_normalized(kf.time),
            sketch_in=encode_handle(kf.sketch_in, diagonal),
            sketch_out=encode_handle(kf.sketch_out, diagonal),
        ))

    for i in range(len(keyframes) - 1):
        v0 = _progress_at(progress, i, 0.0)
        v1 = _progress_at(progress, i + 1, v0)
        frame = _segment_frame(keyframes[i].time, keyframes[i + 1].time, v0, v1)
        if frame is None:
            continue
        serialized[i].graph_out = encode_handle(keyframes[i].graph_out, frame)
        serialized[i + 1].graph_in = encode_handle(keyframes[i + 1].graph_in, frame)

    return serialized


def serialize_keyframe_paths(paths: Sequence[Path]) -> List[SerializedPath]:
    """Encode each path with the keyframe protocol.

    The bbox and progress come from the base (unmodified) spatial curves.
    """
    result = []
    for path in paths:
        curves = build_sketch_curves(path.keyframes)
        bbox = compute_bbox(curves)
        progress = compute_keyframe_progress(path.keyframes, curves)
        result.append(SerializedPath(
            bbox=bbox,
            keyframes=serialize_keyframes(path.keyframes, bbox, progress),
        ))
    return result


def deserialize_path_keyframes(
    serialized,
    reference_keyframes: Sequence[Keyframe],
    reference_progress: Sequence[float],
) -> List[Keyframe]:
    """Decode keyframe-protocol entries against reference keyframes.

    Parameters
    ----------
    serialized : SerializedPath or dict
        Keyframe-protocol payload
    reference_keyframes : Sequence[Keyframe]
        Keyframes the payload was derived from; times are taken from here
    reference_progress : Sequence[float]
        Progress of the reference keyframes; frames the timing handles

    Returns
    -------
    List[Keyframe]
        min(len(payload), len(reference)) keyframes; empty if either is empty
    """
    serialized = _ensure_model(serialized)
    if not serialized.keyframes:
        return []

    bbox = serialized.bbox
    diagonal = bbox.diagonal
    count = min(len(serialized.keyframes), len(reference_keyframes))
    entries = serialized.keyframes[:count]

    graph_in: List[Optional[np.ndarray]] = [None] * count
    graph_out: List[Optional[np.ndarray]] = [None] * count
    for i in range(count - 1):
        v0 = _progress_at(reference_progress, i, 0.0)
        v1 = _progress_at(reference_progress, i + 1, v0)
        frame = math.hypot(reference_keyframes[i + 1].time - reference_keyframes[i].time, v1 - v0)
        if frame <= MIN_EXTENT:
            continue
        if entries[i].graph_out is not None:
            graph_out[i] = decode_handle(entries[i].graph_out, frame)
        if entries[i + 1].graph_in is not None:
            graph_in[i + 1] = decode_handle(entries[i + 1].graph_in, frame)

    keyframes = []
    for i, entry in enumerate(entries):
        keyframes.append(Keyframe(
            time=reference_keyframes[i].time,
            position=decode_point(entry.x, entry.y, bbox),
            sketch_in=decode_handle(entry.sketch_in, diagonal) if entry.sketch_in else None,
            sketch_out=decode_handle(entry.sketch_out, diagonal) if entry.sketch_out else None,
            graph_in=graph_in[i],
            graph_out=graph_out[i],
        ))
    return keyframes


def deserialize_graph_curves(
    serialized,
    reference_keyframes: Sequence[Keyframe],
    reference_progress: Sequence[float],
) -> np.ndarray:
    """Timing curves of a keyframe-protocol payload, on the reference progress."""
    keyframes = deserialize_path_keyframes(serialized, reference_keyframes, reference_progress)
    if len(keyframes) < 2:
        return empty_curves()
    return build_graph_curves(keyframes, list(reference_progress)[:len(keyframes)])
