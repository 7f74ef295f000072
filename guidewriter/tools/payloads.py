"""Helpers for pulling structured payloads out of free-text generations."""
from __future__ import annotations

import json
import re
from typing import Any

_FENCE_RE = re.compile(r"```[a-zA-Z0-9_-]*[ \t]*\n?(.*?)```", re.DOTALL)


def strip_code_fence(raw_text: str) -> str:
    """Return the body of the first fenced block, or the text itself when unfenced."""
    text = raw_text.strip()
    match = _FENCE_RE.search(text)
    if match:
        return match.group(1).strip()
    if text.startswith("```"):
        # Unterminated fence (truncated generation)
        text = text.split("\n", 1)[1] if "\n" in text else ""
    return text.strip()


def extract_json_object(raw_text: str) -> dict[str, Any]:
    text = strip_code_fence(raw_text)
    start = text.find("{")
    end = text.rfind("}")
    if start < 0 or end <= start:
        raise json.JSONDecodeError("object not found", text, 0)
    parsed = json.loads(text[start : end + 1])
    if not isinstance(parsed, dict):
        raise json.JSONDecodeError("not an object", text, 0)
    return parsed


def extract_json_value(raw_text: str) -> Any:
    """Parse a JSON object or array, whichever the payload starts with."""
    text = strip_code_fence(raw_text)
    starts = [idx for idx in (text.find("{"), text.find("[")) if idx >= 0]
    if not starts:
        raise json.JSONDecodeError("no JSON value found", text, 0)
    start = min(starts)
    closer = "}" if text[start] == "{" else "]"
    end = text.rfind(closer)
    if end <= start:
        raise json.JSONDecodeError("unterminated JSON value", text, start)
    return json.loads(text[start : end + 1])
