"""Project file load/save.

Project JSON layout (camelCase on the wire)::

    {
      "settings": {"playbackDuration": 5.0, "playbackFrameRate": 60},
      "paths": [
        {"id": "...", "startTime": 0.0, "duration": 1.0,
         "bbox": {...}, "keyframes": [SerializedKeyframe, ...],
         "sketchModifiers": [Modifier, ...], "graphModifiers": [Modifier, ...]}
      ]
    }

Loading is all-or-nothing for structure: a non-object root, a non-array
``paths``, or a path with fewer than 2 well-formed keyframes or a degenerate
bbox rejects the whole file with ProjectFormatError. Malformed modifiers are
dropped one by one with a warning.

Normalization on load:
    - missing keyframe time → i / (n - 1); times clamped to [0, 1] and made
      non-decreasing
    - missing id → id_factory()
    - non-positive or non-finite duration → 1; negative start → 0
"""

import logging
import math
from pathlib import Path as FilePath
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..geometry.keyframes import build_sketch_curves, compute_keyframe_progress
from ..geometry.model import Keyframe, Modifier, Path
from ..utils import fs
from ..utils.ids import IdFactory, new_id
from .curves import (
    SerializedPath,
    decode_handle,
    decode_point,
    serialize_keyframe_paths,
)

logger = logging.getLogger(__name__)


class ProjectFormatError(ValueError):
    """Project data is structurally invalid; nothing was loaded."""


class ProjectSettings(BaseModel):
    """Playback settings stored with a project."""
    model_config = ConfigDict(populate_by_name=True)

    playback_duration: float = Field(5.0, gt=0.0, alias="playbackDuration", description="Seconds")
    playback_frame_rate: float = Field(60.0, gt=0.0, alias="playbackFrameRate", description="Frames per second")


# ============================================================================
# SERIALIZE
# ============================================================================

def serialize_project(paths: Sequence[Path], settings: Optional[ProjectSettings] = None) -> Dict[str, Any]:
    """Build the JSON-ready project dict.

    Parameters
    ----------
    paths : Sequence[Path]
        Paths in canvas order
    settings : ProjectSettings, optional
        Defaults to ProjectSettings()

    Returns
    -------
    Dict[str, Any]
        Project document (see module docstring)
    """
    settings = settings or ProjectSettings()
    serialized_paths = []
    for path, serialized in zip(paths, serialize_keyframe_paths(paths)):
        entry = serialized.to_wire()
        entry.update({
            "id": path.id,
            "startTime": path.start_time,
            "duration": path.duration,
            "sketchModifiers": [m.to_dict() for m in path.sketch_modifiers],
            "graphModifiers": [m.to_dict() for m in path.graph_modifiers],
        })
        serialized_paths.append(entry)

    return {
        "settings": settings.model_dump(by_alias=True),
        "paths": serialized_paths,
    }


# ============================================================================
# DESERIALIZE
# ============================================================================

def _is_finite_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def _parse_settings(raw: Any) -> ProjectSettings:
    defaults = ProjectSettings()
    if not isinstance(raw, dict):
        return defaults
    duration = raw.get("playbackDuration")
    frame_rate = raw.get("playbackFrameRate")
    return ProjectSettings(
        playback_duration=duration if _is_finite_number(duration) and duration > 0 else defaults.playback_duration,
        playback_frame_rate=frame_rate if _is_finite_number(frame_rate) and frame_rate > 0 else defaults.playback_frame_rate,
    )


def _parse_modifiers(raw: Any, curve_count: int, path_id: str, field: str) -> List[Modifier]:
    if not isinstance(raw, list):
        return []
    modifiers = []
    for index, item in enumerate(raw):
        try:
            modifiers.append(Modifier.from_dict(item, curve_count))
        except ValueError as e:
            logger.warning(f"Dropping {field}[{index}] of path {path_id}: {e}")
    return modifiers


def _decode_keyframes(serialized: SerializedPath) -> List[Keyframe]:
    """Keyframes of one project path, with sketch then graph handles decoded."""
    entries = serialized.keyframes
    bbox = serialized.bbox
    diagonal = bbox.diagonal
    n = len(entries)

    times = []
    for i, entry in enumerate(entries):
        raw_time = entry.time if entry.time is not None and math.isfinite(entry.time) else i / max(1, n - 1)
        times.append(min(1.0, max(0.0, raw_time)))
    for i in range(1, n):
        times[i] = max(times[i], times[i - 1])

    positions = [decode_point(e.x, e.y, bbox) for e in entries]
    sketch_out = [None] * n
    sketch_in = [None] * n
    for i in range(n - 1):
        if entries[i].sketch_out is not None:
            sketch_out[i] = decode_handle(entries[i].sketch_out, diagonal)
        if entries[i + 1].sketch_in is not None:
            sketch_in[i + 1] = decode_handle(entries[i + 1].sketch_in, diagonal)

    keyframes = [
        Keyframe(time=times[i], position=positions[i], sketch_in=sketch_in[i], sketch_out=sketch_out[i])
        for i in range(n)
    ]

    # Timing handles are framed by progress along the decoded spatial curve
    progress = compute_keyframe_progress(keyframes, build_sketch_curves(keyframes))
    graph_out = [None] * n
    graph_in = [None] * n
    for i in range(n - 1):
        frame = math.hypot(times[i + 1] - times[i], progress[i + 1] - progress[i])
        if frame <= 1e-6:
            continue
        if entries[i].graph_out is not None:
            graph_out[i] = decode_handle(entries[i].graph_out, frame)
        if entries[i + 1].graph_in is not None:
            graph_in[i + 1] = decode_handle(entries[i + 1].graph_in, frame)

    return [kf.replace(graph_in=graph_in[i], graph_out=graph_out[i]) for i, kf in enumerate(keyframes)]


def _parse_path(raw: Any, index: int, id_factory: IdFactory) -> Path:
    if not isinstance(raw, dict):
        raise ProjectFormatError(f"Invalid project format: paths[{index}] must be an object")
    if not isinstance(raw.get("keyframes"), list):
        raise ProjectFormatError(f"Invalid project format: paths[{index}].keyframes must be an array")
    try:
        serialized = SerializedPath.model_validate({"bbox": raw.get("bbox"), "keyframes": raw["keyframes"]})
    except ValidationError as e:
        raise ProjectFormatError(f"Invalid project format: paths[{index}] is malformed: {e}") from e

    keyframes = _decode_keyframes(serialized)
    raw_id = raw.get("id")
    path_id = raw_id if isinstance(raw_id, str) and raw_id.strip() else id_factory()
    start_time = raw.get("startTime")
    duration = raw.get("duration")

    curve_count = len(keyframes) - 1
    return Path(
        id=path_id,
        keyframes=keyframes,
        start_time=float(start_time) if _is_finite_number(start_time) and start_time >= 0 else 0.0,
        duration=float(duration) if _is_finite_number(duration) and duration > 0 else 1.0,
        sketch_modifiers=_parse_modifiers(raw.get("sketchModifiers"), curve_count, path_id, "sketchModifiers"),
        graph_modifiers=_parse_modifiers(raw.get("graphModifiers"), curve_count, path_id, "graphModifiers"),
    )


def deserialize_project(data: Any, id_factory: IdFactory = new_id) -> Tuple[List[Path], ProjectSettings]:
    """Parse a project document.

    Parameters
    ----------
    data : Any
        Decoded JSON
    id_factory : IdFactory
        Supplies ids for paths stored without one

    Returns
    -------
    Tuple[List[Path], ProjectSettings]
        Paths in file order and playback settings (defaults where missing)

    Raises
    ------
    ProjectFormatError
        If the root is not an object, paths is not an array, or any path
        fails keyframe/bbox validation
    """
    if not isinstance(data, dict):
        raise ProjectFormatError("Invalid project format: root object is required")
    if not isinstance(data.get("paths"), list):
        raise ProjectFormatError("Invalid project format: paths must be an array")

    settings = _parse_settings(data.get("settings"))
    paths = [_parse_path(raw, i, id_factory) for i, raw in enumerate(data["paths"])]
    return paths, settings


# ============================================================================
# FILES
# ============================================================================

def save_project(
    file: Union[str, FilePath],
    paths: Sequence[Path],
    settings: Optional[ProjectSettings] = None,
) -> FilePath:
    """Write a project atomically; returns the written path."""
    file = FilePath(file)
    fs.atomic_json_dump(serialize_project(paths, settings), file)
    logger.info(f"Saved project with {len(paths)} path(s) to {file}")
    return file


def load_project(
    file: Union[str, FilePath],
    id_factory: IdFactory = new_id,
) -> Tuple[List[Path], ProjectSettings]:
    """Read and validate a project file.

    Raises
    ------
    FileNotFoundError
        If file doesn't exist
    ValueError
        If the JSON cannot be parsed or the project is malformed
        (ProjectFormatError)
    """
    data = fs.load_json(file)
    paths, settings = deserialize_project(data, id_factory)
    logger.info(f"Loaded project with {len(paths)} path(s) from {file}")
    return paths, settings
