import json
import re
from typing import Any, Dict, List, Optional, Union

from tender_ai.utils.logging import get_logger

LOGGER = get_logger(__name__)

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)
_OPENER_RE = re.compile(r"[\[{]")


def _strip_fences(text: str) -> str:
    return _FENCE_RE.sub("", text.strip()).strip()


def parse_json_safely(text: str) -> Union[Dict[str, Any], List[Any], None]:
    """Parse JSON from model output, handling common formatting issues.

    Handles:
    - Markdown code blocks (```json ... ```)
    - Prose before or after the JSON value
    - Trailing garbage after a complete value

    Args:
        text: The text containing JSON

    Returns:
        Parsed JSON value or None if nothing parseable was found
    """
    if not text:
        return None

    cleaned_text = _strip_fences(text)

    try:
        return json.loads(cleaned_text)
    except json.JSONDecodeError as e:
        LOGGER.warning(f"Initial JSON parse failed: {e}, attempting repairs...")

    # Decode the first complete value starting at the earliest bracket
    decoder = json.JSONDecoder()
    for match in _OPENER_RE.finditer(cleaned_text):
        try:
            value, _ = decoder.raw_decode(cleaned_text, match.start())
            return value
        except json.JSONDecodeError:
            continue

    LOGGER.error("Failed to parse JSON from model output", extra={"preview": cleaned_text[:200]})
    return None


def parse_json_list(text: str, wrapper_keys: tuple[str, ...] = ()) -> Optional[List[Any]]:
    """Parse a JSON array, also accepting an object that wraps the array.

    Models asked for an array sometimes answer `{"sections": [...]}`; any
    key in `wrapper_keys`, or the only list-valued key, is unwrapped.

    Returns:
        The list, or None when the output is not a list or a wrapped list
    """
    parsed = parse_json_safely(text)
    if isinstance(parsed, list):
        return parsed
    if isinstance(parsed, dict):
        for key in wrapper_keys:
            if isinstance(parsed.get(key), list):
                return parsed[key]
        list_values = [v for v in parsed.values() if isinstance(v, list)]
        if len(list_values) == 1:
            return list_values[0]
    return None


def parse_json_object(text: str) -> Optional[Dict[str, Any]]:
    """Parse a JSON object, returning None for any other shape."""
    parsed = parse_json_safely(text)
    return parsed if isinstance(parsed, dict) else None
