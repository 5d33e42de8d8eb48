import json
import re
from typing import Any, Dict, List, Union, Optional

from bodymetrics.utils.logging import get_logger

LOGGER = get_logger(__name__)

_FENCE_OPEN = re.compile(r"^```(?:json|JSON)?\s*\n?")
_FENCE_CLOSE = re.compile(r"\n?```\s*$")


def strip_code_fences(text: str) -> str:
    """Remove a surrounding markdown code block (```json ... ```) if present."""
    cleaned = (text or "").strip()
    if cleaned.startswith("```"):
        cleaned = _FENCE_OPEN.sub("", cleaned)
        cleaned = _FENCE_CLOSE.sub("", cleaned)
    return cleaned.strip()


def parse_json_safely(text: str) -> Union[Dict[str, Any], List[Any], None]:
    """Parse JSON from model output, handling common LLM formatting issues.

    Handles:
    - Markdown code blocks (```json ... ```)
    - Leading/trailing whitespace
    - Prose before or after a single JSON object/array

    Args:
        text: The text containing JSON

    Returns:
        Parsed JSON object or None if parsing fails
    """
    if not text:
        return None

    cleaned_text = strip_code_fences(text)
    if not cleaned_text:
        return None

    try:
        return json.loads(cleaned_text)
    except json.JSONDecodeError as e:
        LOGGER.debug(f"Initial JSON parse failed: {e}, scanning for embedded JSON")

    # Decode the first complete object or array starting at the first bracket
    decoder = json.JSONDecoder()
    starts = [idx for idx in (cleaned_text.find("{"), cleaned_text.find("[")) if idx != -1]
    for start in sorted(starts):
        try:
            obj, _ = decoder.raw_decode(cleaned_text, start)
            LOGGER.debug(f"Recovered embedded JSON starting at position {start}")
            return obj
        except json.JSONDecodeError:
            continue

    LOGGER.warning(
        "Failed to parse JSON from model output",
        extra={"text_preview": cleaned_text[:200]}
    )
    return None
