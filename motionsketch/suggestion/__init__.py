"""Suggestion sessions against an external text-generation service."""

from motionsketch.suggestion.engine import (
    STRATEGIES,
    FamilyStrategy,
    PopupPosition,
    Suggestion,
    SuggestionEngine,
    SuggestionStatus,
    SuggestionUIState,
    ViewportRect,
    compute_popup_position,
)
from motionsketch.suggestion.service import (
    SuggestionItem,
    SuggestionProvider,
    SuggestionResponse,
    SuggestionServiceError,
    build_prompt,
    fetch_suggestions,
    response_schema,
)

__all__ = [
    "STRATEGIES",
    "FamilyStrategy",
    "PopupPosition",
    "Suggestion",
    "SuggestionEngine",
    "SuggestionStatus",
    "SuggestionUIState",
    "ViewportRect",
    "compute_popup_position",
    "SuggestionItem",
    "SuggestionProvider",
    "SuggestionResponse",
    "SuggestionServiceError",
    "build_prompt",
    "fetch_suggestions",
    "response_schema",
]
