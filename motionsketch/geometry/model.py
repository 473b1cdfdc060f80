"""Path data model: keyframes, modifiers, selections.

A *Path* is one animated stroke: an ordered list of immutable keyframes plus
two stacks of modifiers (spatial and timing). Paths are owned by one editing
session and mutated only through their methods, each of which bumps
``Path.version`` so derived state (progress, effective curves) can be cached
per ``(path.id, path.version)``.

Handles are stored as relative offsets from the keyframe position. ``None``
means "use the anchor itself", i.e. a straight join.

Modifier offsets are indexed ``offsets[curve][point]`` with exactly four
slots per curve; a ``None`` slot leaves that control point untouched.
"""

from __future__ import annotations

import dataclasses
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Optional, Sequence

import numpy as np

STRENGTH_MIN = 0.0
STRENGTH_MAX = 2.0

# ---------------------------------------------------------------------------
# Type aliases
# ---------------------------------------------------------------------------

OffsetSlots = list[Optional["Offset"]]
"""Four per-control-point offsets of one curve segment."""


def as_point(value: Any) -> np.ndarray:
    """Coerce an (x, y) pair to a read-only float64 array of shape (2,)."""
    arr = np.array(value, dtype=float).reshape(2)
    arr.setflags(write=False)
    return arr


def _as_handle(value: Any) -> Optional[np.ndarray]:
    return None if value is None else as_point(value)


class CurveFamily(str, Enum):
    """Which curve of a path an operation targets."""

    SKETCH = "sketch"
    """Spatial curve in (x, y)."""

    GRAPH = "graph"
    """Timing curve in (time, progress)."""


# ---------------------------------------------------------------------------
# Keyframe
# ---------------------------------------------------------------------------


@dataclass(frozen=True, eq=False)
class Keyframe:
    """A timed anchor point with optional spatial and timing handles.

    Parameters
    ----------
    time : float
        Normalized time in [0, 1] within the path's playback window.
    position : array-like
        Anchor (x, y).
    sketch_in, sketch_out : array-like | None
        Spatial handles relative to ``position``.
    graph_in, graph_out : array-like | None
        Timing handles relative to the anchor in (time, progress) space.
    """

    time: float
    position: np.ndarray
    sketch_in: Optional[np.ndarray] = None
    sketch_out: Optional[np.ndarray] = None
    graph_in: Optional[np.ndarray] = None
    graph_out: Optional[np.ndarray] = None

    def __post_init__(self) -> None:
        if not math.isfinite(self.time):
            raise ValueError(f"Keyframe time must be finite, got {self.time}")
        object.__setattr__(self, "time", float(self.time))
        object.__setattr__(self, "position", as_point(self.position))
        for name in ("sketch_in", "sketch_out", "graph_in", "graph_out"):
            object.__setattr__(self, name, _as_handle(getattr(self, name)))

    def replace(self, **changes: Any) -> Keyframe:
        """Return a copy with the given fields replaced."""
        return dataclasses.replace(self, **changes)


def enforce_monotonic_times(keyframes: Sequence[Keyframe]) -> list[Keyframe]:
    """Clamp each out-of-order time up to its predecessor's time."""
    result: list[Keyframe] = []
    previous = -math.inf
    for kf in keyframes:
        if kf.time < previous:
            kf = kf.replace(time=previous)
        previous = kf.time
        result.append(kf)
    return result


def clamp_keyframe_times(keyframes: Sequence[Keyframe]) -> list[Keyframe]:
    """Clamp times to [0, 1] then clamp out-of-order values up to the predecessor."""
    clamped = [
        kf if 0.0 <= kf.time <= 1.0 else kf.replace(time=min(1.0, max(0.0, kf.time)))
        for kf in keyframes
    ]
    return enforce_monotonic_times(clamped)


# ---------------------------------------------------------------------------
# Modifiers
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Offset:
    """Per-control-point delta."""

    dx: float
    dy: float

    def as_array(self) -> np.ndarray:
        return np.array([self.dx, self.dy], dtype=float)


def clamp_strength(strength: float) -> float:
    """Clamp a strength to [0, 2]; non-finite values are rejected.

    Raises
    ------
    ValueError
        If strength is NaN or infinite.
    """
    strength = float(strength)
    if not math.isfinite(strength):
        raise ValueError(f"strength must be finite, got {strength}")
    return max(STRENGTH_MIN, min(STRENGTH_MAX, strength))


@dataclass(eq=False)
class Modifier:
    """A named, strength-scaled diff layer over a curve set.

    Parameters
    ----------
    id : str
        Unique id.
    name : str
        Display name (the instruction that produced it).
    offsets : list[list[Offset | None]]
        One 4-slot list per target curve.
    strength : float
        Multiplier in [0, 2]; clamped on assignment through ``set_strength``.
    """

    id: str
    name: str
    offsets: list[OffsetSlots]
    strength: float = 1.0

    def __post_init__(self) -> None:
        self.strength = clamp_strength(self.strength)
        for index, slots in enumerate(self.offsets):
            if len(slots) != 4:
                raise ValueError(
                    f"Modifier {self.id!r} curve {index} has {len(slots)} slots, expected 4"
                )

    @property
    def curve_count(self) -> int:
        return len(self.offsets)

    def set_strength(self, strength: float) -> float:
        """Clamp and assign strength; returns the stored value."""
        self.strength = clamp_strength(strength)
        return self.strength

    def to_dict(self) -> dict[str, Any]:
        """JSON form: ``{id, name, strength, offsets: [[{dx, dy} | null] * 4, ...]}``."""
        return {
            "id": self.id,
            "name": self.name,
            "strength": self.strength,
            "offsets": [
                [None if o is None else {"dx": o.dx, "dy": o.dy} for o in slots]
                for slots in self.offsets
            ],
        }

    @classmethod
    def from_dict(cls, data: Any, curve_count: Optional[int] = None) -> Modifier:
        """Parse the JSON form.

        Parameters
        ----------
        data : Any
            Decoded JSON value.
        curve_count : int | None
            Expected number of curve slots; ``None`` skips the check.

        Raises
        ------
        ValueError
            If any field is missing, mistyped, non-finite, or the slot count
            does not match ``curve_count``.
        """
        if not isinstance(data, dict):
            raise ValueError(f"modifier must be an object, got {type(data).__name__}")

        modifier_id = data.get("id")
        name = data.get("name")
        strength = data.get("strength")
        raw_offsets = data.get("offsets")
        if not isinstance(modifier_id, str) or not modifier_id:
            raise ValueError("modifier id must be a non-empty string")
        if not isinstance(name, str):
            raise ValueError(f"modifier {modifier_id!r} name must be a string")
        if isinstance(strength, bool) or not isinstance(strength, (int, float)):
            raise ValueError(f"modifier {modifier_id!r} strength must be a number")
        if not isinstance(raw_offsets, list):
            raise ValueError(f"modifier {modifier_id!r} offsets must be a list")
        if curve_count is not None and len(raw_offsets) != curve_count:
            raise ValueError(
                f"modifier {modifier_id!r} has {len(raw_offsets)} curve slots, "
                f"expected {curve_count}"
            )

        offsets: list[OffsetSlots] = []
        for slots in raw_offsets:
            if not isinstance(slots, list) or len(slots) != 4:
                raise ValueError(f"modifier {modifier_id!r} curve slots must be lists of 4")
            offsets.append([_parse_offset(modifier_id, raw) for raw in slots])

        return cls(id=modifier_id, name=name, offsets=offsets, strength=float(strength))


def _parse_offset(modifier_id: str, raw: Any) -> Optional[Offset]:
    if raw is None:
        return None
    if not isinstance(raw, dict):
        raise ValueError(f"modifier {modifier_id!r} offset must be an object or null")
    dx, dy = raw.get("dx"), raw.get("dy")
    for value in (dx, dy):
        if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
            raise ValueError(f"modifier {modifier_id!r} offset has non-finite dx/dy: {raw!r}")
    return Offset(float(dx), float(dy))


# ---------------------------------------------------------------------------
# Selection
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class SelectionRange:
    """Inclusive span of spatial curve-segment indices."""

    start_curve_index: int
    end_curve_index: int


# ---------------------------------------------------------------------------
# Path
# ---------------------------------------------------------------------------


@dataclass(eq=False)
class Path:
    """One animated stroke, owned by a single editing session.

    Parameters
    ----------
    id : str
        Unique id.
    keyframes : list[Keyframe]
        At least 2 keyframes; times are clamped to [0, 1] and out-of-order
        times clamped up to the predecessor on construction.
    start_time : float
        Playback offset in seconds, >= 0.
    duration : float
        Playback length in seconds, > 0.
    sketch_modifiers, graph_modifiers : list[Modifier]
        Modifier stacks applied in list order.
    version : int
        Incremented by every mutation made through Path methods.
    """

    id: str
    keyframes: list[Keyframe]
    start_time: float = 0.0
    duration: float = 1.0
    sketch_modifiers: list[Modifier] = field(default_factory=list)
    graph_modifiers: list[Modifier] = field(default_factory=list)
    version: int = 0

    def __post_init__(self) -> None:
        _check_keyframes(self.keyframes)
        if not math.isfinite(self.duration) or self.duration <= 0:
            raise ValueError(f"duration must be > 0, got {self.duration}")
        if not math.isfinite(self.start_time) or self.start_time < 0:
            raise ValueError(f"start_time must be >= 0, got {self.start_time}")
        self.keyframes = clamp_keyframe_times(self.keyframes)

    @property
    def curve_count(self) -> int:
        """Number of segments (keyframes - 1)."""
        return len(self.keyframes) - 1

    def touch(self) -> int:
        """Bump the version after an in-place change; returns the new version."""
        self.version += 1
        return self.version

    def modifiers(self, family: CurveFamily) -> list[Modifier]:
        """Modifier stack for a curve family (the live list)."""
        if CurveFamily(family) is CurveFamily.SKETCH:
            return self.sketch_modifiers
        return self.graph_modifiers

    def set_keyframes(self, keyframes: Iterable[Keyframe]) -> None:
        """Replace all keyframes (times clamped to [0, 1] and made monotonic)."""
        keyframes = list(keyframes)
        _check_keyframes(keyframes)
        self.keyframes = clamp_keyframe_times(keyframes)
        self.touch()

    def update_keyframe(self, index: int, **changes: Any) -> Keyframe:
        """Replace fields of one keyframe; returns the stored keyframe."""
        keyframes = list(self.keyframes)
        keyframes[index] = keyframes[index].replace(**changes)
        self.set_keyframes(keyframes)
        return self.keyframes[index]

    def set_timing(self, start_time: Optional[float] = None, duration: Optional[float] = None) -> None:
        """Update the playback window."""
        if duration is not None:
            if not math.isfinite(duration) or duration <= 0:
                raise ValueError(f"duration must be > 0, got {duration}")
            self.duration = float(duration)
        if start_time is not None:
            if not math.isfinite(start_time) or start_time < 0:
                raise ValueError(f"start_time must be >= 0, got {start_time}")
            self.start_time = float(start_time)
        self.touch()

    def add_modifier(self, family: CurveFamily, modifier: Modifier) -> None:
        """Append a modifier to the family's stack."""
        self.modifiers(family).append(modifier)
        self.touch()

    def copy(self, keyframes: Optional[Sequence[Keyframe]] = None) -> Path:
        """Independent copy; keyframes optionally replaced.

        Keyframes are immutable and shared. Modifier objects are shallow
        copied so strength changes on the copy do not leak back.
        """
        return Path(
            id=self.id,
            keyframes=list(self.keyframes if keyframes is None else keyframes),
            start_time=self.start_time,
            duration=self.duration,
            sketch_modifiers=[dataclasses.replace(m) for m in self.sketch_modifiers],
            graph_modifiers=[dataclasses.replace(m) for m in self.graph_modifiers],
            version=self.version,
        )


def _check_keyframes(keyframes: Sequence[Keyframe]) -> None:
    if len(keyframes) < 2:
        raise ValueError(f"Path requires >= 2 keyframes, got {len(keyframes)}")
