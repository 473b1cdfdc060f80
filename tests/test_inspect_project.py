"""Test the inspect_project command-line script.

Tests for scripts/inspect_project.py:
    - Summary printed for a saved project
    - --sample writes per-frame positions
    - Log records reach the configured file before main() returns
    - Unreadable projects exit with status 1

Run:
    pytest tests/test_inspect_project.py -v
"""

import importlib.util
import json
import sys
from pathlib import Path

import pytest
import yaml

from motionsketch.geometry.model import Keyframe, Path as MotionPath
from motionsketch.serialization.project import save_project
from motionsketch.utils import logging_config

SCRIPT = Path(__file__).parent.parent / "scripts" / "inspect_project.py"


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture(scope="module")
def inspect_script():
    """The script loaded as a module (scripts/ is not a package)."""
    module_spec = importlib.util.spec_from_file_location("inspect_project", SCRIPT)
    module = importlib.util.module_from_spec(module_spec)
    module_spec.loader.exec_module(module)
    return module


@pytest.fixture
def project_file(tmp_path):
    path = MotionPath(
        id="walk",
        keyframes=[Keyframe(time=0.0, position=(0, 0)), Keyframe(time=1.0, position=(100, 0))],
    )
    return save_project(tmp_path / "demo.json", [path])


@pytest.fixture
def run_main(inspect_script, monkeypatch):
    """Call main() with the given argv, restoring global logging state."""
    monkeypatch.setattr(sys, "excepthook", sys.excepthook)

    def _run(*argv):
        monkeypatch.setattr(sys, "argv", ["inspect_project.py", *map(str, argv)])
        return inspect_script.main()

    yield _run
    logging_config.setup_logging(log_level="WARNING", to_stderr=False, capture_warnings=False)
    logging_config.pop_context()


# ============================================================================
# TESTS
# ============================================================================

def test_prints_summary(run_main, project_file, capsys):
    assert run_main(project_file, "--log-level", "ERROR") == 0
    out = capsys.readouterr().out
    assert "walk" in out


def test_sample_and_log_file(run_main, project_file, tmp_path):
    log_path = tmp_path / "logs" / "inspect.log"
    config = tmp_path / "editor.yaml"
    config.write_text(yaml.safe_dump({
        "schema": "editor.v1",
        "logging": {"log_level": "INFO", "log_file": str(log_path), "json": True, "color": False},
    }))
    out = tmp_path / "out" / "positions.json"

    assert run_main(project_file, "--config", config, "--sample", out, "--frame-rate", 10) == 0

    data = json.loads(out.read_text())
    assert data["frameRate"] == 10
    assert len(data["positions"]["walk"]) == 11
    assert data["positions"]["walk"][-1] == pytest.approx([100.0, 0.0])

    records = [json.loads(line) for line in log_path.read_text().strip().splitlines()]
    assert any(r["msg"].startswith("Wrote 11 samples") for r in records)
    assert all(r.get("app") == "inspect" for r in records)


def test_missing_project_exits_with_error(run_main, tmp_path):
    assert run_main(tmp_path / "missing.json", "--log-level", "ERROR") == 1
