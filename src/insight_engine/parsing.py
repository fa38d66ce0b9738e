"""Cleanup and JSON parsing of model replies."""

from __future__ import annotations

import json
import re
from typing import Any

from .llm.types import MalformedOutputError

_FENCE_OPEN = re.compile(r"^\s*```(?:json)?[ \t]*\n?", re.IGNORECASE)
_FENCE_CLOSE = re.compile(r"\n?[ \t]*```\s*$")


def strip_code_fences(text: str) -> str:
    """Removes a leading ```/```json fence and a trailing ``` fence, then trims."""
    cleaned = _FENCE_OPEN.sub("", text or "", count=1)
    cleaned = _FENCE_CLOSE.sub("", cleaned, count=1)
    return cleaned.strip()


def parse_json_payload(text: str) -> Any:
    cleaned = strip_code_fences(text)
    if not cleaned:
        raise MalformedOutputError("AI returned empty response")
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise MalformedOutputError(f"AI response is not valid JSON: {exc.msg} at pos {exc.pos}") from exc
