"""Test project file load/save.

Tests for motionsketch.serialization.project:
    - save → load keeps paths, timing, modifiers and settings
    - Normalization of missing/invalid fields on load
    - Malformed modifiers dropped, malformed structure rejected

Run:
    pytest tests/test_project.py -v
"""

import json

import numpy as np
import pytest

from motionsketch.geometry.model import Keyframe, Modifier, Offset, Path
from motionsketch.serialization.project import (
    ProjectFormatError,
    ProjectSettings,
    deserialize_project,
    load_project,
    save_project,
    serialize_project,
)
from motionsketch.utils.ids import sequential_ids


def _project_path(path_id="path-1"):
    keyframes = [
        Keyframe(time=0.0, position=(0, 0), sketch_out=(10, 10), graph_out=(0.2, 0.0)),
        Keyframe(time=0.5, position=(50, 20), sketch_in=(-10, 0), sketch_out=(10, 0)),
        Keyframe(time=1.0, position=(100, 0), sketch_in=(-10, 10), graph_in=(-0.2, 0.0)),
    ]
    modifier = Modifier(
        id="mod-1",
        name="more bounce",
        offsets=[[Offset(0, 0), Offset(0, 5), Offset(0, 5), Offset(0, 0)], [None] * 4],
        strength=0.5,
    )
    return Path(
        id=path_id,
        keyframes=keyframes,
        start_time=0.5,
        duration=2.0,
        sketch_modifiers=[modifier],
    )


def _raw_path(**overrides):
    raw = {
        "id": "raw",
        "bbox": {"x": 0, "y": 0, "width": 100, "height": 50},
        "keyframes": [{"x": 0, "y": 0, "time": 0}, {"x": 1, "y": 1, "time": 1}],
    }
    raw.update(overrides)
    return raw


# ============================================================================
# ROUNDTRIP
# ============================================================================

def test_save_load_roundtrip(tmp_path):
    original = _project_path()
    settings = ProjectSettings(playback_duration=8.0, playback_frame_rate=30)
    file = save_project(tmp_path / "projects" / "demo.json", [original], settings)
    assert file.exists()

    paths, loaded_settings = load_project(file)
    assert loaded_settings.playback_duration == 8.0
    assert loaded_settings.playback_frame_rate == 30

    [path] = paths
    assert path.id == "path-1"
    assert path.start_time == 0.5
    assert path.duration == 2.0
    assert [k.time for k in path.keyframes] == pytest.approx([0.0, 0.5, 1.0])

    tol = 1e-3 * np.hypot(100, 30)
    for got, want in zip(path.keyframes, original.keyframes):
        assert np.allclose(got.position, want.position, atol=tol)
    assert np.allclose(path.keyframes[0].sketch_out, [10, 10], atol=tol)
    assert np.allclose(path.keyframes[0].graph_out, [0.2, 0.0], atol=5e-3)
    # An absent handle is written as dist 0 and reads back as a zero vector
    assert np.allclose(path.keyframes[1].graph_in, [0.0, 0.0])

    [modifier] = path.sketch_modifiers
    assert modifier.id == "mod-1"
    assert modifier.name == "more bounce"
    assert modifier.strength == 0.5
    assert modifier.offsets[0][1] == Offset(0.0, 5.0)
    assert modifier.offsets[1] == [None] * 4
    assert path.graph_modifiers == []


def test_serialize_project_layout():
    doc = serialize_project([_project_path()])
    assert doc["settings"] == {"playbackDuration": 5.0, "playbackFrameRate": 60.0}
    entry = doc["paths"][0]
    assert {"id", "bbox", "keyframes", "startTime", "duration", "sketchModifiers", "graphModifiers"} <= set(entry)
    # Fully JSON-compatible
    json.dumps(doc, allow_nan=False)


# ============================================================================
# NORMALIZATION
# ============================================================================

def test_missing_fields_get_defaults():
    raw = _raw_path(keyframes=[{"x": 0, "y": 0}, {"x": 0.5, "y": 0}, {"x": 1, "y": 0}])
    del raw["id"]
    paths, settings = deserialize_project({"paths": [raw]}, id_factory=sequential_ids("path"))

    [path] = paths
    assert path.id == "path-00001"
    assert [k.time for k in path.keyframes] == pytest.approx([0.0, 0.5, 1.0])
    assert path.start_time == 0.0
    assert path.duration == 1.0
    assert settings == ProjectSettings()


def test_times_clamped_and_monotonic():
    raw = _raw_path(keyframes=[
        {"x": 0, "y": 0, "time": -1},
        {"x": 0.5, "y": 0, "time": 0.8},
        {"x": 0.7, "y": 0, "time": 0.3},
        {"x": 1, "y": 0, "time": 4},
    ])
    [path], _ = deserialize_project({"paths": [raw]})
    assert [k.time for k in path.keyframes] == [0.0, 0.8, 0.8, 1.0]


def test_invalid_timing_and_settings_fall_back():
    raw = _raw_path(startTime=-3, duration=0)
    [path], settings = deserialize_project({
        "settings": {"playbackDuration": -1, "playbackFrameRate": "fast"},
        "paths": [raw],
    })
    assert path.start_time == 0.0
    assert path.duration == 1.0
    assert settings.playback_duration == 5.0
    assert settings.playback_frame_rate == 60.0


def test_malformed_modifiers_dropped(caplog):
    good = {"id": "ok", "name": "fine", "strength": 1, "offsets": [[None] * 4]}
    wrong_count = {"id": "bad", "name": "x", "strength": 1, "offsets": [[None] * 4, [None] * 4]}
    raw = _raw_path(sketchModifiers=[good, wrong_count, "nope"], graphModifiers={"not": "a list"})

    with caplog.at_level("WARNING"):
        [path], _ = deserialize_project({"paths": [raw]})

    assert [m.id for m in path.sketch_modifiers] == ["ok"]
    assert path.graph_modifiers == []
    assert "Dropping sketchModifiers[1]" in caplog.text
    assert "Dropping sketchModifiers[2]" in caplog.text


# ============================================================================
# REJECTION
# ============================================================================

@pytest.mark.parametrize(
    "data",
    [
        [],
        {"paths": {}},
        {"paths": ["not an object"]},
        {"paths": [{"bbox": {"x": 0, "y": 0, "width": 1, "height": 1}}]},
        {"paths": [_raw_path(keyframes=[{"x": 0, "y": 0}])]},
        {"paths": [_raw_path(bbox={"x": 0, "y": 0, "width": 0, "height": 1})]},
        {"paths": [_raw_path(bbox=None)]},
        {"paths": [_raw_path(keyframes=[{"x": 0}, {"x": 1, "y": 1}])]},
    ],
)
def test_structural_errors_reject_project(data):
    with pytest.raises(ProjectFormatError, match="Invalid project format"):
        deserialize_project(data)


def test_one_bad_path_rejects_all():
    data = {"paths": [_raw_path(), _raw_path(keyframes=[])]}
    with pytest.raises(ProjectFormatError, match=r"paths\[1\]"):
        deserialize_project(data)


def test_load_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_project(tmp_path / "missing.json")


def test_load_invalid_json(tmp_path):
    file = tmp_path / "broken.json"
    file.write_text("{not json")
    with pytest.raises(ValueError, match="Failed to parse"):
        load_project(file)
