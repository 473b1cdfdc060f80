"""motionsketch: path geometry and modifier engine for a motion sketch editor.

A user draws a stroke, the editor fits it into keyframes, and two cubic-Bezier
curve families are derived from those keyframes:
    - sketch (spatial) curves in canvas x/y
    - graph (temporal) curves in time x progress space

Suggested edits from a text-generation service are stored as non-destructive,
strength-scaled modifier layers on top of the base curves.

Architecture layers (strict one-way dependency):
    scripts/ → motionsketch/suggestion → motionsketch/{modifiers,serialization,playback}
             → motionsketch/geometry → motionsketch/utils

Key invariants:
    - Paths hold ≥2 keyframes with non-decreasing time in [0, 1]
    - Curve sets are float64 arrays of shape (N, 4, 2)
    - Modifier offsets have one 4-slot entry per target curve (None = untouched)
    - Exchange format is normalized to the path bbox (scale-invariant)
"""

__version__ = "0.4.0"
