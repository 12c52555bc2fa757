"""Extract a JSON document from free-form model output.

Handles fenced code blocks (```json ... ```), prose before or after the
JSON, and surrounding whitespace.
"""

from __future__ import annotations

import json
import re
from typing import Any

from notecard_service.indexing.errors import ExtractionValidationError

_CODE_BLOCK_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)```")


def clean_json(raw_output: str) -> str:
    if not raw_output or not isinstance(raw_output, str):
        raise ExtractionValidationError("Invalid input: expected non-empty string")

    cleaned = raw_output.strip()

    m = _CODE_BLOCK_RE.search(cleaned)
    if m:
        cleaned = m.group(1).strip()

    first_brace = cleaned.find("{")
    first_bracket = cleaned.find("[")

    # Whichever opener comes first decides object vs array
    if first_brace != -1 and (first_bracket == -1 or first_brace < first_bracket):
        start, end = first_brace, cleaned.rfind("}")
    elif first_bracket != -1:
        start, end = first_bracket, cleaned.rfind("]")
    else:
        start, end = -1, -1

    if start != -1 and end > start:
        cleaned = cleaned[start : end + 1]

    cleaned = cleaned.strip()
    if not cleaned.startswith(("{", "[")) or not cleaned.endswith(("}", "]")):
        raise ExtractionValidationError("No valid JSON object or array found in output")
    return cleaned


def clean_and_parse_json(raw_output: str) -> Any:
    cleaned = clean_json(raw_output)
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise ExtractionValidationError(f"Failed to parse cleaned JSON: {e}") from e


def is_valid_json(raw_output: str) -> bool:
    try:
        clean_and_parse_json(raw_output)
    except ExtractionValidationError:
        return False
    return True
