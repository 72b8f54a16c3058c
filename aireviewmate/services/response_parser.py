"""
Model Response Parser

Gemini is asked for bare JSON but regularly wraps it in markdown fences or
prose. This module isolates the JSON object from raw model text and turns
it into a well-formed ReviewResult.

Design Decisions:
- Extraction is an ordered list of independent strategies; the first
  candidate that parses to a JSON object wins
- Every function here is pure, so re-parsing the same text is idempotent
- Items that do not fit their shape are dropped, never passed through
"""

import json
import math
import re
from typing import Any, Callable, Dict, List, Optional, Sequence, Type

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from aireviewmate.errors import MalformedResponseError, UpstreamError
from aireviewmate.logging_config import get_logger
from aireviewmate.models import (
    DEFAULT_VERDICT,
    CodeChange,
    Finding,
    ReviewResult,
    Suggestion,
)

logger = get_logger(__name__)

ExtractionStrategy = Callable[[str], Optional[str]]

_FENCED_BLOCK = re.compile(r"```(?:json)?\s*(\{[\s\S]*\})\s*```")
_OUTERMOST_OBJECT = re.compile(r"\{[\s\S]*\}")
_LEADING_NOISE = re.compile(r"^[^{]*")
_TRAILING_NOISE = re.compile(r"[^}]*$")


def fenced_block(text: str) -> Optional[str]:
    """Take the object inside a ```json fence, if there is one."""
    match = _FENCED_BLOCK.search(text)
    return match.group(1) if match else None


def trimmed_braces(text: str) -> Optional[str]:
    """Strip everything before the first '{' and after the last '}'."""
    trimmed = _TRAILING_NOISE.sub("", _LEADING_NOISE.sub("", text, count=1), count=1)
    return trimmed if trimmed.startswith("{") else None


def outermost_object(text: str) -> Optional[str]:
    """Match the widest {...} span anywhere in the text."""
    match = _OUTERMOST_OBJECT.search(text)
    return match.group(0) if match else None


EXTRACTION_STRATEGIES: Sequence[ExtractionStrategy] = (
    fenced_block,
    trimmed_braces,
    outermost_object,
)


def extract_json_object(
    text: str,
    strategies: Sequence[ExtractionStrategy] = EXTRACTION_STRATEGIES
) -> Dict[str, Any]:
    """
    Isolate and parse the JSON object contained in raw model output.

    Args:
        text: Raw text returned by the model
        strategies: Extraction strategies, tried in order

    Returns:
        The parsed JSON object

    Raises:
        MalformedResponseError: If no strategy yields a JSON object
    """
    cleaned = (text or "").strip()
    last_error = "No JSON object found in response"

    for strategy in strategies:
        candidate = strategy(cleaned)
        if candidate is None:
            continue
        try:
            parsed = json.loads(candidate)
        except ValueError as e:
            # JSONDecodeError, or an integer literal past the conversion limit
            last_error = f"{strategy.__name__}: {e}"
            continue
        if isinstance(parsed, dict):
            return parsed
        last_error = f"{strategy.__name__}: expected a JSON object, got {type(parsed).__name__}"

    raise MalformedResponseError(
        "Failed to parse AI response. Please ensure your code is valid and try again.",
        detail=last_error
    )


def fallback_result() -> ReviewResult:
    """
    Result synthesized when the model output cannot be parsed.

    It is only ever logged; callers receive MalformedResponseError instead.
    """
    return ReviewResult(
        errors=[],
        warnings=[Finding(
            line=1,
            message="Failed to parse AI response. Please check the code and try again."
        )],
        suggestions=[],
        verdict="The Reaper encountered an issue analyzing your code.",
        curse_level=50,
    )


def _coerce_items(
    field: str,
    value: Any,
    model: Type[BaseModel]
) -> List[Any]:
    if not isinstance(value, list):
        if value is not None:
            logger.warning("Discarding non-list review field", field=field,
                           value_type=type(value).__name__)
        return []

    items = []
    for raw in value:
        try:
            items.append(model.model_validate(raw))
        except PydanticValidationError as e:
            logger.warning("Skipping invalid review item", field=field,
                           error=str(e).splitlines()[0])
    return items


def _is_number(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    return isinstance(value, float) and math.isfinite(value)


def derive_curse_level(errors: int, warnings: int) -> int:
    return min(100, errors * 30 + warnings * 10)


def clamp_curse_level(value: float) -> int:
    """Round half up and clamp into 0..100."""
    if isinstance(value, int):
        # Arbitrarily large ints overflow float arithmetic
        return max(0, min(100, value))
    return max(0, min(100, int(math.floor(value + 0.5))))


def normalize_review_payload(data: Dict[str, Any]) -> ReviewResult:
    """
    Backfill and clamp a parsed model payload into a ReviewResult.

    Non-list collections become empty, a missing curseLevel is derived
    from the error and warning counts, and a missing verdict gets the
    standard placeholder.
    """
    errors = _coerce_items("errors", data.get("errors"), Finding)
    warnings = _coerce_items("warnings", data.get("warnings"), Finding)
    suggestions = _coerce_items("suggestions", data.get("suggestions"), Suggestion)
    changes = _coerce_items("changes", data.get("changes"), CodeChange)

    updated_code = data.get("updatedCode")
    if not isinstance(updated_code, str) or not updated_code:
        updated_code = None

    curse_level = data.get("curseLevel")
    if not _is_number(curse_level):
        curse_level = derive_curse_level(len(errors), len(warnings))

    verdict = data.get("verdict")
    if not isinstance(verdict, str) or not verdict.strip():
        verdict = DEFAULT_VERDICT

    return ReviewResult(
        errors=errors,
        warnings=warnings,
        suggestions=suggestions,
        verdict=verdict,
        curse_level=clamp_curse_level(curse_level),
        updated_code=updated_code,
        changes=changes,
    )


def ensure_review_result(result: Any) -> ReviewResult:
    """
    Re-normalize whatever the review engine handed back.

    Raises:
        UpstreamError: If the result is neither a ReviewResult nor a dict
    """
    if isinstance(result, ReviewResult):
        return result
    if isinstance(result, dict):
        return normalize_review_payload(result)

    logger.error("Invalid result type from review engine",
                 result_type=type(result).__name__)
    raise UpstreamError("Invalid response structure from AI service")
