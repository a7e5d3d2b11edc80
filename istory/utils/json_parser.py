import json
import re
from typing import Any

from istory.core.exceptions import AnalysisError, AnalysisErrorKind
from istory.utils.logging import get_logger

LOGGER = get_logger(__name__)

_JSON_FENCE = re.compile(r"```json\s*", re.IGNORECASE)
_ANY_FENCE = re.compile(r"```\s*")


def strip_code_fences(text: str) -> str:
    """Remove Markdown code fences anywhere in the text and trim it."""
    cleaned = _JSON_FENCE.sub("", text)
    cleaned = _ANY_FENCE.sub("", cleaned)
    return cleaned.strip()


def _invalid(reason: str, error: Exception = None) -> AnalysisError:
    return AnalysisError(
        f"AI returned invalid JSON format ({reason})",
        kind=AnalysisErrorKind.INVALID_RESPONSE,
        reason=reason,
        original_error=error,
    )


def _is_unterminated(text: str) -> bool:
    """True when the text opens an object or array it never closes."""
    if not text or text[0] not in "{[":
        return False

    depth = 0
    in_string = False
    escaped = False
    for char in text:
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
        elif char == '"':
            in_string = True
        elif char in "{[":
            depth += 1
        elif char in "}]":
            depth -= 1
    return in_string or depth > 0


def parse_llm_json(text: Any) -> Any:
    """Parse the JSON document in an LLM reply.

    Handles:
    - Markdown code fences (```json ... ```)
    - Leading/trailing whitespace
    - Trailing data after the first complete JSON value

    The parsed value is returned as-is; shape checking is left to the
    sanitizer.

    Args:
        text: Raw model output

    Returns:
        The decoded JSON value

    Raises:
        AnalysisError: INVALID_RESPONSE with reason ``empty``, ``truncated``
            or ``not_json``
    """
    if not isinstance(text, str) or not text.strip():
        raise _invalid("empty")

    cleaned = strip_code_fences(text)
    if not cleaned:
        raise _invalid("empty")

    try:
        return json.loads(cleaned)
    except json.JSONDecodeError as e:
        if "Extra data" in e.msg:
            value, end = json.JSONDecoder().raw_decode(cleaned)
            LOGGER.warning(
                "Ignoring trailing data after JSON value",
                extra={"parsed_chars": end, "total_chars": len(cleaned)},
            )
            return value

        if _is_unterminated(cleaned):
            LOGGER.warning(f"Truncated JSON from model: {e}")
            raise _invalid("truncated", e) from e

        LOGGER.warning(f"Model reply is not JSON: {e}")
        raise _invalid("not_json", e) from e
