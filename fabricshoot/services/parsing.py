"""
Model Output Parsing
Pulls the first JSON object out of free-form model text.
"""

import json
from typing import Any, Dict, Optional


def find_first_json_object(text: str) -> Optional[str]:
    """Return the first balanced {...} substring, honouring JSON string quoting."""
    if not text:
        return None

    start = text.find("{")
    if start == -1:
        return None

    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue

        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[start:index + 1]
    return None


def extract_json_object(text: str) -> Optional[Dict[str, Any]]:
    """Decode the first JSON object in `text`; None when absent or malformed."""
    candidate = find_first_json_object(text)
    if candidate is None:
        return None
    try:
        parsed = json.loads(candidate)
    except json.JSONDecodeError:
        return None
    return parsed if isinstance(parsed, dict) else None
