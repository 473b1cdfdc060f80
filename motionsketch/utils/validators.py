"""YAML schema validation and config loading.

Provides centralized validation for editor configuration files using pydantic:
    - Editor schema (editor.v1.yaml): suggestion base prompts, popup
      placement, strength limits and logging block

All entrypoints must use these validators to load configs for fail-fast error
detection with actionable messages (offending keys, expected ranges).

Units:
    - Display sizes: screen pixels
    - Strength: dimensionless multiplier of a modifier's recorded delta

Usage:
    from motionsketch.utils import validators

    editor_cfg = validators.load_editor_config("configs/editor_v1.yaml")
    setup_logging(**editor_cfg.logging.model_dump(by_alias=True))
"""

from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# ============================================================================
# EDITOR SCHEMA V1
# ============================================================================

class SuggestionSettings(BaseModel):
    """Base prompts and instruction history for suggestion requests."""
    sketch_prompt: str = Field(
        "Propose alternative shapes for the path. Keep the same segment topology "
        "and return normalized anchors with polar handles.",
        description="Base prompt for spatial (sketch) suggestions",
    )
    graph_prompt: str = Field(
        "Propose alternative timing for the path. Keep the same keyframe count "
        "and return normalized keyframes with polar graph handles.",
        description="Base prompt for temporal (graph) suggestions",
    )
    max_history: int = Field(20, ge=1, le=200, description="Instruction history kept per session")


class DisplaySettings(BaseModel):
    """Screen-space placement of the suggestion popup."""
    popup_offset_px: float = Field(20.0, ge=0.0, le=200.0, description="Suggestion popup offset from end anchor")


class StrengthSettings(BaseModel):
    """Modifier strength slider range (within the [0, 2] modifier clamp)."""
    min: float = Field(0.0, ge=0.0, description="Lowest strength (disables the layer)")
    max: float = Field(2.0, gt=0.0, le=2.0, description="Highest strength")
    default: float = Field(1.0, ge=0.0, description="Strength of hover previews and newly accepted modifiers")

    @model_validator(mode='after')
    def validate_range(self) -> 'StrengthSettings':
        if self.max <= self.min:
            raise ValueError(f"strength max ({self.max}) must be > min ({self.min})")
        if not (self.min <= self.default <= self.max):
            raise ValueError(
                f"strength default {self.default} out of bounds [{self.min}, {self.max}]"
            )
        return self


class LoggingSettings(BaseModel):
    """Arguments forwarded to logging_config.setup_logging() (dump with by_alias=True)."""
    model_config = ConfigDict(populate_by_name=True)

    log_level: str = Field("INFO", description="Root log level")
    log_file: Optional[str] = Field(None, description="Log file path; None disables file logging")
    json_format: bool = Field(False, alias="json", description="JSON lines in the log file")
    color: bool = Field(True, description="ANSI colors on the console")
    rotate: Optional[Dict[str, Any]] = Field(None, description="Rotation config for the file handler")
    quiet_libs: List[str] = Field(default_factory=list, description="Loggers forced to WARNING")

    @field_validator('log_level')
    @classmethod
    def validate_level(cls, v: str) -> str:
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in allowed:
            raise ValueError(f"log_level must be one of {sorted(allowed)}, got '{v}'")
        return v.upper()


class EditorConfigV1(BaseModel):
    """Editor schema v1 (complete config file)."""
    model_config = ConfigDict(populate_by_name=True)

    schema_version: str = Field("editor.v1", alias="schema", description="Schema version")
    suggestion: SuggestionSettings = Field(default_factory=SuggestionSettings)
    display: DisplaySettings = Field(default_factory=DisplaySettings)
    strength: StrengthSettings = Field(default_factory=StrengthSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @field_validator('schema_version')
    @classmethod
    def validate_schema(cls, v: str) -> str:
        if v != "editor.v1":
            raise ValueError(f"Expected schema 'editor.v1', got '{v}'")
        return v


# ============================================================================
# PUBLIC API
# ============================================================================

def default_editor_config() -> EditorConfigV1:
    """Return the built-in editor config (used when no file is given)."""
    return EditorConfigV1()


def load_editor_config(path: Union[str, Path]) -> EditorConfigV1:
    """Load and validate editor config from YAML.

    Parameters
    ----------
    path : Union[str, Path]
        Path to editor.v1.yaml file

    Returns
    -------
    EditorConfigV1
        Validated editor configuration

    Raises
    ------
    FileNotFoundError
        If path doesn't exist
    ValueError
        If validation fails (with actionable error message)
    """
    from . import fs

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Editor config not found: {path}")

    data = fs.load_yaml(path) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Editor config at {path} must be a mapping, got {type(data).__name__}")
    try:
        return EditorConfigV1(**data)
    except Exception as e:
        raise ValueError(f"Editor config validation failed at {path}: {e}") from e
