"""Suggestion session: request, preview and accept suggested curves.

One engine serves both curve families. A ``FamilyStrategy`` picked from
``STRATEGIES`` by ``CurveFamily`` decides how the target path is serialized,
which base prompt is used, how a suggestion decodes back into curves, and
whether boundary blending applies. Everything else (state machine, hover
preview at a strength, modifier creation) is shared.

States::

    idle --open--> input --submit--> generating --ok--> idle (suggestions listed)
                                              \\--fail--> error
    any --select ok--> input        any --close--> idle

Only one request runs at a time: ``submit`` while generating is rejected
and logged, leaving the in-flight request untouched.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

import numpy as np
from pydantic import ValidationError

from ..geometry.keyframes import build_sketch_curves
from ..geometry.model import CurveFamily, Modifier, Path, SelectionRange, clamp_strength
from ..modifiers.engine import CurveCache, EffectiveCurves, create_modifier_from_result
from ..modifiers.selection import Preview, build_preview_curves, get_selection_reference, slice_path
from ..serialization.curves import (
    SerializedPath,
    compute_bbox,
    deserialize_curves,
    deserialize_graph_curves,
    serialize_keyframes,
    serialize_paths,
)
from ..utils.ids import IdFactory, new_id
from ..utils.logging_config import log_context
from ..utils.validators import EditorConfigV1
from .service import (
    SuggestionItem,
    SuggestionProvider,
    SuggestionServiceError,
    fetch_suggestions,
)

logger = logging.getLogger(__name__)


class SuggestionStatus(str, Enum):
    IDLE = "idle"
    INPUT = "input"
    GENERATING = "generating"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class Suggestion:
    """A listed suggestion; ``path`` is framed by the request's bbox.

    ``selection`` and ``instruction`` are frozen from the request that
    produced it, so later selection changes or prompts do not retarget it.
    """

    id: str
    title: str
    path: SerializedPath
    selection: Optional[SelectionRange] = None
    instruction: Optional[str] = None


@dataclass(frozen=True, slots=True)
class ViewportRect:
    """Screen rectangle of the canvas hosting the path."""

    left: float
    top: float
    width: float = 0.0
    height: float = 0.0


@dataclass(frozen=True, slots=True)
class PopupPosition:
    left: float
    top: float


@dataclass(frozen=True)
class SuggestionUIState:
    """Snapshot pushed to ``on_state_change`` listeners."""

    status: SuggestionStatus
    prompt_count: int
    is_visible: bool
    suggestions: tuple[Suggestion, ...] = field(default_factory=tuple)
    position: Optional[PopupPosition] = None


# ---------------------------------------------------------------------------
# Curve-family strategies
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FamilyStrategy:
    """Family-specific pieces of the suggestion flow.

    Parameters
    ----------
    family : CurveFamily
        Target curve family.
    base_prompt : Callable[[EditorConfigV1], str]
        Picks the base prompt from config.
    serialize : Callable[[Path, SelectionRange | None, EffectiveCurves], SerializedPath]
        Encodes the selected part of the target path for the request.
    payload : Callable[[SuggestionItem, SerializedPath], SerializedPath]
        Builds a suggestion's path from a response item and the request.
    decode : Callable[[SerializedPath, Path, SelectionRange | None, EffectiveCurves], np.ndarray]
        Suggested curves, indexed from the selection start.
    blend : bool
        Apply boundary blending in preview and on accept.
    """

    family: CurveFamily
    base_prompt: Callable[[EditorConfigV1], str]
    serialize: Callable[[Path, Optional[SelectionRange], EffectiveCurves], SerializedPath]
    payload: Callable[[SuggestionItem, SerializedPath], SerializedPath]
    decode: Callable[[SerializedPath, Path, Optional[SelectionRange], EffectiveCurves], np.ndarray]
    blend: bool


def _sketch_payload(item: SuggestionItem, request: SerializedPath) -> SerializedPath:
    return SerializedPath(
        bbox=request.bbox,
        anchors=item.anchors,
        segments=item.segments if item.segments is not None else request.segments,
    )


def _graph_payload(item: SuggestionItem, request: SerializedPath) -> SerializedPath:
    return SerializedPath(bbox=request.bbox, keyframes=item.keyframes)


def _serialize_graph(
    path: Path,
    selection: Optional[SelectionRange],
    derived: EffectiveCurves,
) -> SerializedPath:
    # Timing handles are framed by the full-path progress, matching _decode_graph
    keyframes, progress = get_selection_reference(path, selection, derived.base_progress)
    bbox = compute_bbox(build_sketch_curves(keyframes))
    return SerializedPath(bbox=bbox, keyframes=serialize_keyframes(keyframes, bbox, progress))


def _decode_graph(
    payload: SerializedPath,
    path: Path,
    selection: Optional[SelectionRange],
    derived: EffectiveCurves,
) -> np.ndarray:
    keyframes, progress = get_selection_reference(path, selection, derived.base_progress)
    return deserialize_graph_curves(payload, keyframes, progress)


STRATEGIES: dict[CurveFamily, FamilyStrategy] = {
    CurveFamily.SKETCH: FamilyStrategy(
        family=CurveFamily.SKETCH,
        base_prompt=lambda cfg: cfg.suggestion.sketch_prompt,
        serialize=lambda path, selection, derived: serialize_paths([slice_path(path, selection)])[0],
        payload=_sketch_payload,
        decode=lambda payload, path, selection, derived: deserialize_curves(payload),
        blend=True,
    ),
    CurveFamily.GRAPH: FamilyStrategy(
        family=CurveFamily.GRAPH,
        base_prompt=lambda cfg: cfg.suggestion.graph_prompt,
        serialize=_serialize_graph,
        payload=_graph_payload,
        decode=_decode_graph,
        blend=False,
    ),
}


# ---------------------------------------------------------------------------
# Popup placement
# ---------------------------------------------------------------------------


def compute_popup_position(
    path: Optional[Path],
    selection: Optional[SelectionRange],
    viewport: Optional[ViewportRect],
    offset: float = 20.0,
    cache: Optional[CurveCache] = None,
) -> Optional[PopupPosition]:
    """Place the suggestion popup next to the selection's end anchor.

    Parameters
    ----------
    path : Path | None
        Target path; ``None`` yields ``None``.
    selection : SelectionRange | None
        Anchor at the end of this span; the whole path when ``None``.
    viewport : ViewportRect | None
        Canvas rectangle in screen space; treated as origin when ``None``.
    offset : float
        Pixels right of and above the anchor.
    cache : CurveCache, optional
        Memo for effective curves.

    Returns
    -------
    PopupPosition | None
        ``left = viewport.left + x + offset``, ``top = viewport.top + y - offset``
    """
    if path is None:
        return None
    curves = (cache or CurveCache(max_entries=1)).get(path).sketch
    if len(curves) == 0:
        return None

    end_index = len(curves) - 1
    if selection is not None:
        end_index = max(0, min(end_index, selection.end_curve_index))
    x, y = curves[end_index][3]

    origin_left = viewport.left if viewport is not None else 0.0
    origin_top = viewport.top if viewport is not None else 0.0
    return PopupPosition(left=origin_left + float(x) + offset, top=origin_top + float(y) - offset)


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


class SuggestionEngine:
    """Suggestion session for one curve family.

    Parameters
    ----------
    config : EditorConfigV1
        Prompts, history limit, popup offset.
    family : CurveFamily
        Which curve of the target path suggestions edit.
    provider : SuggestionProvider
        Text-generation backend.
    id_factory : IdFactory
        Source of suggestion and modifier ids.
    on_state_change : callable, optional
        Receives a SuggestionUIState after every transition.
    viewport : ViewportRect, optional
        Canvas rectangle used for popup placement.
    """

    def __init__(
        self,
        config: EditorConfigV1,
        family: CurveFamily,
        provider: SuggestionProvider,
        id_factory: IdFactory = new_id,
        on_state_change: Optional[Callable[[SuggestionUIState], None]] = None,
        viewport: Optional[ViewportRect] = None,
    ):
        self.config = config
        self.family = CurveFamily(family)
        self.strategy = STRATEGIES[self.family]
        self.provider = provider
        self.id_factory = id_factory
        self.on_state_change = on_state_change
        self.viewport = viewport

        self.status = SuggestionStatus.IDLE
        self.suggestions: list[Suggestion] = []
        self.prompts: list[str] = []
        self.target_path: Optional[Path] = None
        self.selection: Optional[SelectionRange] = None
        self.hovered_id: Optional[str] = None
        self.hovered_strength = config.strength.default
        self.cache = CurveCache()

    # -- session -----------------------------------------------------------

    def update_config(self, config: EditorConfigV1) -> None:
        self.config = config

    def open(self, target_path: Optional[Path] = None) -> None:
        """Start a session on ``target_path`` and wait for input."""
        self._clear_suggestions()
        self.prompts = []
        self.target_path = target_path
        self._set_status(SuggestionStatus.INPUT)

    def close(self) -> None:
        """End the session and forget the target and history."""
        self._clear_suggestions()
        self.prompts = []
        self.target_path = None
        self._set_status(SuggestionStatus.IDLE)

    def update_selection(self, selection: Optional[SelectionRange]) -> None:
        self.selection = selection
        self._notify()

    # -- request -----------------------------------------------------------

    async def submit(
        self,
        path: Path,
        prompt: Optional[str] = None,
        selection: Optional[SelectionRange] = None,
    ) -> bool:
        """Request suggestions for ``path`` (optionally scoped).

        Returns
        -------
        bool
            True when suggestions were listed; False when rejected because a
            request is in flight, or when the request failed (status error).
        """
        if self.status is SuggestionStatus.GENERATING:
            logger.warning(
                f"Ignoring {self.family.value} suggestion request for path {path.id}: "
                f"a request is already in flight"
            )
            return False

        self.target_path = path
        self.selection = selection
        request = self.strategy.serialize(path, selection, self.cache.get(path))

        instruction = (prompt or "").strip()
        if instruction:
            self.prompts.append(instruction)
            self.prompts = self.prompts[-self.config.suggestion.max_history:]

        self._clear_suggestions()
        self._set_status(SuggestionStatus.GENERATING)

        with log_context(path_id=path.id, family=self.family.value):
            try:
                items = await fetch_suggestions(
                    self.provider,
                    [request],
                    self.strategy.base_prompt(self.config),
                    list(self.prompts),
                    self.family,
                )
            except SuggestionServiceError as e:
                logger.error(f"Suggestion request failed: {e}")
                self._set_status(SuggestionStatus.ERROR)
                return False

            self.suggestions = self._build_suggestions(items, request, selection, instruction or None)

        self._set_status(SuggestionStatus.IDLE)
        return True

    def _build_suggestions(
        self,
        items: list[SuggestionItem],
        request: SerializedPath,
        selection: Optional[SelectionRange],
        instruction: Optional[str],
    ) -> list[Suggestion]:
        suggestions = []
        for item in items:
            try:
                payload = self.strategy.payload(item, request)
            except ValidationError as e:
                logger.warning(f"Dropping suggestion {item.title!r}: {e}")
                continue
            suggestions.append(Suggestion(
                id=self.id_factory(),
                title=item.title,
                path=payload,
                selection=selection,
                instruction=instruction,
            ))
        return suggestions

    # -- preview -----------------------------------------------------------

    def set_hover(self, suggestion_id: Optional[str], strength: Optional[float] = None) -> None:
        """Mark the suggestion under the pointer and its preview strength.

        ``strength`` defaults to the configured default and is clamped to the
        configured slider range.
        """
        self.hovered_id = suggestion_id
        self.hovered_strength = self._strength(strength)

    def _strength(self, strength: Optional[float]) -> float:
        limits = self.config.strength
        if strength is None:
            strength = limits.default
        return clamp_strength(min(limits.max, max(limits.min, strength)))

    def find(self, suggestion_id: Optional[str]) -> Optional[Suggestion]:
        return next((s for s in self.suggestions if s.id == suggestion_id), None)

    def preview(self) -> Optional[Preview]:
        """Effective curves with the hovered suggestion layered on.

        Returns None while generating, with nothing hovered, or without a
        target path.
        """
        if self.status is SuggestionStatus.GENERATING or self.target_path is None:
            return None
        suggestion = self.find(self.hovered_id)
        if suggestion is None:
            return None

        derived = self.cache.get(self.target_path)
        suggested = self.strategy.decode(suggestion.path, self.target_path, suggestion.selection, derived)
        return build_preview_curves(
            derived.base(self.family),
            derived.effective(self.family),
            suggested,
            suggestion.selection,
            self.hovered_strength,
            blend=self.strategy.blend,
        )

    # -- accept ------------------------------------------------------------

    def select(self, suggestion_id: str, strength: Optional[float] = None) -> Optional[Modifier]:
        """Accept a suggestion as a new modifier on the target path.

        The modifier is scoped to the selection the suggestion was requested
        for and named after that request's instruction. ``strength`` defaults
        to the configured default.

        Returns
        -------
        Modifier | None
            The appended modifier; None for an unknown id, or when there is no
            target path or the suggestion decodes to nothing (status error).
        """
        suggestion = self.find(suggestion_id)
        if suggestion is None:
            return None

        path = self.target_path
        if path is None:
            logger.warning(f"Cannot accept suggestion {suggestion_id}: no target path")
            self._set_status(SuggestionStatus.ERROR)
            return None

        derived = self.cache.get(path)
        suggested = self.strategy.decode(suggestion.path, path, suggestion.selection, derived)
        if len(suggested) == 0:
            logger.warning(f"Cannot accept suggestion {suggestion_id}: payload decodes to no curves")
            self._set_status(SuggestionStatus.ERROR)
            return None

        modifier = create_modifier_from_result(
            derived.base(self.family),
            suggested,
            suggestion.instruction,
            fallback_name=suggestion.title,
            selection=suggestion.selection,
            strength=self._strength(strength),
            id_factory=self.id_factory,
            blend=self.strategy.blend,
        )
        path.add_modifier(self.family, modifier)

        with log_context(path_id=path.id, family=self.family.value):
            logger.info(f"Accepted suggestion {suggestion.title!r} as modifier {modifier.id}")

        self._clear_suggestions()
        self._set_status(SuggestionStatus.INPUT)
        return modifier

    # -- ui ----------------------------------------------------------------

    def ui_state(self, viewport: Optional[ViewportRect] = None) -> SuggestionUIState:
        """Snapshot of what the suggestion popup should show."""
        visible = (
            self.status in (SuggestionStatus.GENERATING, SuggestionStatus.INPUT)
            or len(self.suggestions) > 0
        )
        position = compute_popup_position(
            self.target_path,
            self.selection,
            viewport or self.viewport,
            offset=self.config.display.popup_offset_px,
            cache=self.cache,
        )
        return SuggestionUIState(
            status=self.status,
            prompt_count=len(self.prompts),
            is_visible=visible,
            suggestions=tuple(self.suggestions),
            position=position,
        )

    def _clear_suggestions(self) -> None:
        self.suggestions = []
        self.hovered_id = None

    def _set_status(self, status: SuggestionStatus) -> None:
        self.status = status
        self._notify()

    def _notify(self) -> None:
        if self.on_state_change is not None:
            self.on_state_change(self.ui_state())
