"""JSON helpers for tolerant parsing of model output and stored values."""

from __future__ import annotations

import json
import re
from typing import TypeVar

# Greedy: from the first "{" to the last "}" across lines.
_OBJECT_RE = re.compile(r"\{[\s\S]*\}")

T = TypeVar("T")


def safe_json_loads(raw: str | bytes | None, default: T) -> dict | list | T:
    """Parse JSON, returning *default* on any decode error."""
    if raw is None:
        return default
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, TypeError, ValueError):
        return default


def extract_json_object(text: str) -> str | None:
    """Return the outermost ``{...}`` span of *text*, or ``None``."""
    match = _OBJECT_RE.search(text)
    return match.group(0) if match else None
