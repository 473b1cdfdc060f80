"""Suggestion service contract, prompt building and response validation.

The text-generation client itself lives outside this package. Anything with
an async ``generate(prompt, schema) -> dict`` method can serve suggestions:

    class OpenAIProvider:
        async def generate(self, prompt, schema):
            ...  # call the API with structured output, return parsed JSON

The response must match ``SuggestionResponse``:

    {"suggestions": [{"title": "...", "anchors": [...]}, ...]}      # sketch
    {"suggestions": [{"title": "...", "keyframes": [...]}, ...]}    # graph
"""

import json
import logging
from typing import Any, Dict, List, Optional, Protocol, Sequence

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..geometry.model import CurveFamily
from ..serialization.curves import (
    SerializedAnchor,
    SerializedKeyframe,
    SerializedPath,
    SerializedSegment,
)

logger = logging.getLogger(__name__)


class SuggestionServiceError(RuntimeError):
    """The provider failed or returned an unusable response."""


class SuggestionProvider(Protocol):
    """Structured-output text generation backend."""

    async def generate(self, prompt: str, schema: Dict[str, Any]) -> Dict[str, Any]:
        ...


# ============================================================================
# RESPONSE SCHEMA
# ============================================================================

class SuggestionItem(BaseModel):
    """One proposed alternative for the serialized path."""
    model_config = ConfigDict(populate_by_name=True, allow_inf_nan=False)

    title: str = Field(..., min_length=1, description="Short label shown in the list")
    anchors: Optional[List[SerializedAnchor]] = Field(None, description="Sketch payload")
    segments: Optional[List[SerializedSegment]] = Field(
        None, description="Sketch topology; defaults to the request's segments"
    )
    keyframes: Optional[List[SerializedKeyframe]] = Field(None, description="Graph payload")

    def has_payload(self, family: CurveFamily) -> bool:
        entries = self.anchors if CurveFamily(family) is CurveFamily.SKETCH else self.keyframes
        return entries is not None and len(entries) >= 2


class SuggestionResponse(BaseModel):
    """Top-level structured output."""
    suggestions: List[SuggestionItem] = Field(default_factory=list)


def response_schema() -> Dict[str, Any]:
    """JSON schema handed to the provider (camelCase field names)."""
    return SuggestionResponse.model_json_schema(by_alias=True)


# ============================================================================
# PROMPT
# ============================================================================

def build_prompt(
    serialized_paths: Sequence[SerializedPath],
    base_prompt: str,
    history: Sequence[str],
) -> str:
    """Assemble the provider prompt.

    Layout: base prompt, then the instruction history (the last entry is
    labeled as the current instruction), then the serialized paths as JSON
    in a fenced block.
    """
    parts = [base_prompt]

    if history:
        parts.extend(["", "## Instruction history"])
        for i, instruction in enumerate(history):
            label = "Current instruction" if i == len(history) - 1 else f"Instruction {i + 1}"
            parts.append(f"- **{label}**: {instruction}")
        parts.extend([
            "",
            "Revise the paths according to the history above, giving priority "
            "to the current instruction.",
        ])

    payload = [p.to_wire() for p in serialized_paths]
    parts.extend(["", "```json", json.dumps(payload, separators=(",", ":")), "```"])
    return "\n".join(parts)


# ============================================================================
# FETCH
# ============================================================================

async def fetch_suggestions(
    provider: SuggestionProvider,
    serialized_paths: Sequence[SerializedPath],
    base_prompt: str,
    history: Sequence[str],
    family: CurveFamily,
) -> List[SuggestionItem]:
    """Request suggestions and validate the response.

    Parameters
    ----------
    provider : SuggestionProvider
        Generation backend
    serialized_paths : Sequence[SerializedPath]
        Paths to revise (already sliced to the selection)
    base_prompt : str
        Family-specific instructions
    history : Sequence[str]
        Instruction history, oldest first
    family : CurveFamily
        Decides which payload each item must carry

    Returns
    -------
    List[SuggestionItem]
        Items carrying a usable payload; others are dropped with a warning

    Raises
    ------
    SuggestionServiceError
        If the provider raises or the response fails validation
    """
    prompt = build_prompt(serialized_paths, base_prompt, history)
    logger.debug(f"Requesting {CurveFamily(family).value} suggestions ({len(prompt)} chars)")

    try:
        raw = await provider.generate(prompt, response_schema())
    except Exception as e:
        raise SuggestionServiceError(f"Suggestion provider failed: {e}") from e

    try:
        response = SuggestionResponse.model_validate(raw)
    except ValidationError as e:
        raise SuggestionServiceError(f"Suggestion response validation failed: {e}") from e

    items = []
    for index, item in enumerate(response.suggestions):
        if item.has_payload(family):
            items.append(item)
        else:
            logger.warning(f"Dropping suggestion {index} ({item.title!r}): no {CurveFamily(family).value} payload")

    logger.info(f"Received {len(items)} suggestion(s)")
    return items
