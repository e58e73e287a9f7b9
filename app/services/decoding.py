"""Decoding of JSON payloads embedded in free-form model text."""

from __future__ import annotations

import json
import re
from typing import Any

from app.services.errors import ModelOutputError

_OBJECT_BLOCK = re.compile(r"\{[\s\S]*\}")
_ARRAY_BLOCK = re.compile(r"\[[\s\S]*\]")


def _strip_code_fences(raw_text: str) -> str:
    candidate = raw_text.strip()
    if candidate.startswith("```"):
        candidate = "\n".join(
            line for line in candidate.splitlines() if not line.strip().startswith("```")
        ).strip()
    return candidate


def _decode(raw_text: str | None, pattern: re.Pattern[str], expected: type, label: str) -> Any:
    if not raw_text or not raw_text.strip():
        raise ModelOutputError(f"Model returned no text; expected a JSON {label}.")
    candidate = _strip_code_fences(raw_text)
    try:
        parsed = json.loads(candidate)
    except ValueError:
        match = pattern.search(candidate)
        if not match:
            raise ModelOutputError(f"Model response did not contain a JSON {label}.") from None
        try:
            parsed = json.loads(match.group(0))
        except ValueError as exc:
            raise ModelOutputError(f"Model response contained a malformed JSON {label}.") from exc
    if not isinstance(parsed, expected):
        raise ModelOutputError(f"Model response was JSON but not a {label}.")
    return parsed


def decode_json_object(raw_text: str | None) -> dict[str, Any]:
    """Parse model text as a JSON object.

    Tries the whole (fence-stripped) text first, then the greedy first
    ``{...}`` block. Raises ModelOutputError when neither parses to an object.
    """
    return _decode(raw_text, _OBJECT_BLOCK, dict, "object")


def decode_json_array(raw_text: str | None) -> list[Any]:
    """Array counterpart of decode_json_object."""
    return _decode(raw_text, _ARRAY_BLOCK, list, "array")
