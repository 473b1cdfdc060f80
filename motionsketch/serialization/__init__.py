"""Exchange format codecs and project files."""

from motionsketch.serialization.curves import (
    BoundingBox,
    SerializedAnchor,
    SerializedHandle,
    SerializedKeyframe,
    SerializedPath,
    SerializedSegment,
    compute_bbox,
    decode_handle,
    decode_point,
    deserialize_curves,
    deserialize_graph_curves,
    deserialize_path_keyframes,
    encode_handle,
    encode_point,
    serialize_curves,
    serialize_keyframe_paths,
    serialize_keyframes,
    serialize_paths,
)
from motionsketch.serialization.project import (
    ProjectFormatError,
    ProjectSettings,
    deserialize_project,
    load_project,
    save_project,
    serialize_project,
)

__all__ = [
    "BoundingBox",
    "SerializedAnchor",
    "SerializedHandle",
    "SerializedKeyframe",
    "SerializedPath",
    "SerializedSegment",
    "compute_bbox",
    "decode_handle",
    "decode_point",
    "deserialize_curves",
    "deserialize_graph_curves",
    "deserialize_path_keyframes",
    "encode_handle",
    "encode_point",
    "serialize_curves",
    "serialize_keyframe_paths",
    "serialize_keyframes",
    "serialize_paths",
    "ProjectFormatError",
    "ProjectSettings",
    "deserialize_project",
    "load_project",
    "save_project",
    "serialize_project",
]
