import json
import re
from typing import Any, Dict, List, Union

from show_import.utils.logging import get_logger

LOGGER = get_logger(__name__)

_OBJECT_PATTERN = re.compile(r"(\{[^{}]*(?:\{[^{}]*\}[^{}]*)*\})", re.DOTALL)


def parse_json_safely(text: str) -> Union[Dict[str, Any], List[Any], None]:
    """Parse JSON from model output, handling common formatting issues.

    Handles:
    - Markdown code fences (```json ... ```)
    - Leading/trailing prose around a single object
    - Trailing garbage after a complete object

    Args:
        text: The text containing JSON

    Returns:
        Parsed JSON value or None if parsing fails
    """
    if not text:
        return None

    cleaned = text.strip()
    if cleaned.startswith("```json"):
        cleaned = cleaned[7:]
    elif cleaned.startswith("```"):
        cleaned = cleaned[3:]
    if cleaned.endswith("```"):
        cleaned = cleaned[:-3]
    cleaned = cleaned.strip()

    try:
        return json.loads(cleaned)
    except json.JSONDecodeError as e:
        LOGGER.warning(f"Initial JSON parse failed: {e}, attempting repairs...")

        # "Extra data": a complete value followed by junk
        if e.pos > 0:
            try:
                return json.loads(cleaned[: e.pos].strip())
            except json.JSONDecodeError:
                pass

        match = _OBJECT_PATTERN.search(cleaned)
        if match:
            try:
                return json.loads(match.group(1))
            except json.JSONDecodeError:
                pass

        LOGGER.error(f"Failed to parse JSON: {e}")
        return None
