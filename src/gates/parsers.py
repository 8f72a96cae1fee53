"""Syntactic recovery of a JSON document from free-text collaborator replies.

Shape checks live in ``src.gates.extractor``; nothing here looks at keys.
"""

from __future__ import annotations

import json
import re
from typing import Any

from src.errors import ItemParseError

_OPENING_FENCE = re.compile(r"^```[\w-]*[ \t]*\r?\n?")
_CLOSING_FENCE = re.compile(r"\r?\n?\s*```\s*$")


def strip_code_fences(text: str) -> str:
    if not text.startswith("```"):
        return text
    text = _OPENING_FENCE.sub("", text, count=1)
    text = _CLOSING_FENCE.sub("", text, count=1)
    return text.strip()


def snippet(text: str, limit: int = 200) -> str:
    flat = text.strip().replace("\n", " ")
    return (flat[:limit] + "...") if len(flat) > limit else flat


def json_candidate(raw_text: str) -> str:
    text = strip_code_fences(raw_text.strip())
    if text.startswith("{") and text.endswith("}"):
        return text
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        return text
    return text[start : end + 1]


def recover_json(raw_text: str) -> Any:
    candidate = json_candidate(raw_text)
    try:
        return json.loads(candidate)
    except json.JSONDecodeError as exc:
        excerpt = snippet(candidate)
        raise ItemParseError(f"No JSON object found in response. Snippet: {excerpt}", excerpt) from exc
