"""Atomic filesystem operations for project files and configs.

Provides:
    - Atomic writes: tmp file → fsync → rename (prevents partial reads)
    - JSON load/save for project files (camelCase wire format)
    - YAML load for editor configs
    - Directory creation with exist_ok semantics

Critical for project persistence:
    - An interrupted save never leaves a truncated project file behind
    - Autosave and explicit save can target the same path safely

All paths use pathlib.Path for cross-platform compatibility.

Usage:
    from motionsketch.utils import fs
    fs.atomic_json_dump(project_dict, "projects/demo.json")
    data = fs.load_json("projects/demo.json")
    cfg = fs.load_yaml("configs/editor_v1.yaml")

Note: Module named `fs.py` rather than `io.py` to avoid shadowing stdlib `io`.
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, Union

import yaml


def ensure_dir(p: Union[str, Path]) -> Path:
    """Create directory if it doesn't exist, return Path object.

    Parameters
    ----------
    p : Union[str, Path]
        Directory path

    Returns
    -------
    Path
        Path object (guaranteed to exist)
    """
    p = Path(p)
    p.mkdir(parents=True, exist_ok=True)
    return p


def atomic_write_bytes(
    path: Union[str, Path],
    data: bytes,
    tmp_suffix: str = ".tmp"
) -> None:
    """Write bytes to file atomically (tmp → fsync → rename).

    Parameters
    ----------
    path : Union[str, Path]
        Target file path
    data : bytes
        Data to write
    tmp_suffix : str
        Temporary file suffix, default ".tmp"

    Raises
    ------
    RuntimeError
        If the write or rename fails (tmp file is removed)

    Notes
    -----
    The tmp file lives in the target directory so the rename stays on one
    filesystem.
    """
    path = Path(path)
    ensure_dir(path.parent)

    tmp_path = path.with_suffix(path.suffix + tmp_suffix)

    try:
        with open(tmp_path, 'wb') as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())

        # Overwrites existing file on POSIX
        tmp_path.replace(path)
    except Exception as e:
        if tmp_path.exists():
            tmp_path.unlink()
        raise RuntimeError(f"Failed to write {path} atomically: {e}") from e


def atomic_json_dump(obj: Any, path: Union[str, Path], indent: int = 2) -> None:
    """Save object as JSON atomically.

    Parameters
    ----------
    obj : Any
        JSON-compatible object (dict, list, primitives)
    path : Union[str, Path]
        Target JSON file path
    indent : int
        Indentation, default 2

    Raises
    ------
    ValueError
        If obj contains NaN/Infinity or non-serializable values
    """
    try:
        text = json.dumps(obj, indent=indent, ensure_ascii=False, allow_nan=False)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Object is not JSON-serializable for {path}: {e}") from e

    atomic_write_bytes(path, text.encode('utf-8'))


def load_json(path: Union[str, Path]) -> Any:
    """Load JSON file.

    Parameters
    ----------
    path : Union[str, Path]
        JSON file path

    Returns
    -------
    Any
        Parsed JSON content

    Raises
    ------
    FileNotFoundError
        If file doesn't exist
    ValueError
        If JSON parsing fails
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"JSON file not found: {path}")

    try:
        with open(path, 'r', encoding='utf-8') as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        raise ValueError(f"Failed to parse JSON file {path}: {e}") from e


def load_yaml(path: Union[str, Path]) -> Dict[str, Any]:
    """Load YAML file safely.

    Parameters
    ----------
    path : Union[str, Path]
        YAML file path

    Returns
    -------
    Dict[str, Any]
        Parsed YAML content

    Raises
    ------
    FileNotFoundError
        If file doesn't exist
    yaml.YAMLError
        If YAML parsing fails
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"YAML file not found: {path}")

    try:
        with open(path, 'r', encoding='utf-8') as f:
            return yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise yaml.YAMLError(f"Failed to parse YAML file {path}: {e}") from e
