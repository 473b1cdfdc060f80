#!/usr/bin/env python3
"""Test suite for the utils layer.

Covers:
- Atomic JSON writes, JSON/YAML load error paths (fs)
- Editor config validation and the shipped editor_v1.yaml (validators)
- Logging idempotency, JSON records and scoped context (logging_config)
- Deterministic and random id factories (ids)

Run with: pytest tests/test_utils.py -v
"""

import json
from pathlib import Path

import pytest
import yaml

from motionsketch.utils import fs, ids, logging_config, validators


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture(scope="module")
def project_root():
    """Project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def restore_logging():
    """Leave the root logger without file handlers after a test."""
    yield
    logging_config.setup_logging(log_level="WARNING", to_stderr=False, capture_warnings=False)
    logging_config.pop_context()


# ============================================================================
# FS TESTS
# ============================================================================

def test_ensure_dir(tmp_path):
    target = fs.ensure_dir(tmp_path / "a" / "b")
    assert target.is_dir()
    assert fs.ensure_dir(target) == target


def test_atomic_json_roundtrip(tmp_path):
    path = tmp_path / "nested" / "doc.json"
    fs.atomic_json_dump({"paths": [{"id": "p", "duration": 1.5}]}, path)
    assert fs.load_json(path) == {"paths": [{"id": "p", "duration": 1.5}]}
    assert not path.with_suffix(".json.tmp").exists()


def test_atomic_json_rejects_nan(tmp_path):
    path = tmp_path / "nan.json"
    with pytest.raises(ValueError, match="not JSON-serializable"):
        fs.atomic_json_dump({"x": float("nan")}, path)
    assert not path.exists()


def test_atomic_write_overwrites(tmp_path):
    path = tmp_path / "data.bin"
    fs.atomic_write_bytes(path, b"first")
    fs.atomic_write_bytes(path, b"second")
    assert path.read_bytes() == b"second"


def test_load_json_errors(tmp_path):
    with pytest.raises(FileNotFoundError):
        fs.load_json(tmp_path / "missing.json")

    bad = tmp_path / "bad.json"
    bad.write_text("{")
    with pytest.raises(ValueError, match="Failed to parse"):
        fs.load_json(bad)


def test_load_yaml_preserves_order(tmp_path):
    path = tmp_path / "cfg.yaml"
    path.write_text("schema: editor.v1\ndisplay:\n  popup_offset_px: 12.0\nstrength:\n  max: 1.5\n")
    loaded = fs.load_yaml(path)
    assert loaded == {"schema": "editor.v1", "display": {"popup_offset_px": 12.0}, "strength": {"max": 1.5}}
    assert list(loaded) == ["schema", "display", "strength"]


def test_load_yaml_missing(tmp_path):
    with pytest.raises(FileNotFoundError):
        fs.load_yaml(tmp_path / "missing.yaml")


# ============================================================================
# VALIDATOR TESTS
# ============================================================================

def test_load_shipped_editor_config(project_root):
    cfg = validators.load_editor_config(project_root / "configs/editor_v1.yaml")
    assert cfg.schema_version == "editor.v1"
    assert cfg.suggestion.max_history == 20
    assert cfg.display.popup_offset_px == 20.0
    assert (cfg.strength.min, cfg.strength.max, cfg.strength.default) == (0.0, 2.0, 1.0)
    assert cfg.logging.quiet_libs == ["asyncio"]
    assert cfg.logging.model_dump(by_alias=True)["json"] is False


def test_default_editor_config():
    cfg = validators.default_editor_config()
    assert cfg.suggestion.sketch_prompt
    assert cfg.suggestion.graph_prompt
    assert cfg.logging.log_level == "INFO"


def test_editor_config_wrong_schema(tmp_path):
    path = tmp_path / "cfg.yaml"
    path.write_text(yaml.safe_dump({"schema": "editor.v2"}))
    with pytest.raises(ValueError, match="editor.v1"):
        validators.load_editor_config(path)


def test_editor_config_strength_above_modifier_clamp(tmp_path):
    path = tmp_path / "cfg.yaml"
    path.write_text(yaml.safe_dump({"schema": "editor.v1", "strength": {"max": 5.0}}))
    with pytest.raises(ValueError, match="validation failed"):
        validators.load_editor_config(path)


def test_editor_config_ignores_retired_keys(tmp_path):
    path = tmp_path / "cfg.yaml"
    path.write_text(yaml.safe_dump({
        "schema": "editor.v1",
        "suggestion": {"provider": "OpenAI", "max_history": 5},
        "display": {"line_weight": 2.0},
    }))
    cfg = validators.load_editor_config(path)
    assert cfg.suggestion.max_history == 5
    assert not hasattr(cfg.suggestion, "provider")
    assert not hasattr(cfg.display, "line_weight")


def test_editor_config_strength_range(tmp_path):
    path = tmp_path / "cfg.yaml"
    path.write_text(yaml.safe_dump({"schema": "editor.v1", "strength": {"min": 0.0, "max": 1.0, "default": 1.5}}))
    with pytest.raises(ValueError, match="out of bounds"):
        validators.load_editor_config(path)


def test_editor_config_not_a_mapping(tmp_path):
    path = tmp_path / "cfg.yaml"
    path.write_text("- just\n- a list\n")
    with pytest.raises(ValueError, match="must be a mapping"):
        validators.load_editor_config(path)


def test_editor_config_missing(tmp_path):
    with pytest.raises(FileNotFoundError):
        validators.load_editor_config(tmp_path / "nope.yaml")


def test_logging_settings_normalizes_level():
    settings = validators.LoggingSettings(log_level="debug")
    assert settings.log_level == "DEBUG"
    with pytest.raises(ValueError):
        validators.LoggingSettings(log_level="chatty")


# ============================================================================
# LOGGING TESTS
# ============================================================================

def test_logging_idempotency(tmp_path, restore_logging):
    """Repeated setup does not duplicate file records."""
    log_path = tmp_path / "editor.log"

    for _ in range(2):
        logging_config.setup_logging(
            log_level="INFO",
            log_file=str(log_path),
            json=True,
            to_stderr=False,
            context={"app": "test"},
        )
    logger = logging_config.get_logger("utils_test")
    logger.info("hello")

    lines = log_path.read_text().strip().splitlines()
    assert len(lines) == 1

    rec = json.loads(lines[0])
    assert rec["msg"] == "hello"
    assert rec["lvl"] == "INFO"
    assert rec.get("app") == "test"


def test_log_context_is_scoped(tmp_path, restore_logging):
    log_path = tmp_path / "ctx.log"
    logging_config.setup_logging(log_level="INFO", log_file=str(log_path), json=True, to_stderr=False)
    logger = logging_config.get_logger("ctx_test")

    with logging_config.log_context(path_id="p-1", family="sketch"):
        assert logging_config.get_context()["path_id"] == "p-1"
        logger.info("inside")
    logger.info("outside")

    inside, outside = [json.loads(line) for line in log_path.read_text().strip().splitlines()]
    assert inside["path_id"] == "p-1"
    assert inside["family"] == "sketch"
    assert "path_id" not in outside


def test_push_and_pop_context():
    logging_config.pop_context()
    logging_config.push_context(app="inspect", path_id="p-2")
    logging_config.pop_context(["path_id"])
    assert logging_config.get_context() == {"app": "inspect"}
    logging_config.pop_context()
    assert logging_config.get_context() == {}


def test_human_format_includes_context():
    import logging

    formatter = logging_config.ContextFormatter("human", use_color=False)
    record = logging.LogRecord("x", logging.INFO, __file__, 1, "Accepted", None, None)
    with logging_config.log_context(path_id="p-3"):
        line = formatter.format(record)
    assert "| INFO     |" in line
    assert "path_id=p-3 |" in line
    assert line.endswith("Accepted")


def test_setup_logging_rejects_unknown_level():
    with pytest.raises(ValueError, match="Unknown log level"):
        logging_config.setup_logging(log_level="LOUD")


# ============================================================================
# ID TESTS
# ============================================================================

def test_sequential_ids():
    make_id = ids.sequential_ids("mod")
    assert [make_id(), make_id()] == ["mod-00001", "mod-00002"]
    assert ids.sequential_ids(start=7)() == "id-00007"


def test_new_id_unique():
    generated = {ids.new_id() for _ in range(100)}
    assert len(generated) == 100
    assert all(len(i) == 36 for i in generated)
