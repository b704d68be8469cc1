"""Strict parsing of structured LLM output.

Generators are asked for JSON but routinely wrap it in markdown fences or
surround it with prose. `parse_json_object` strips fences, falls back to the
first balanced `{...}` block, and returns a tagged result instead of raising:

    ParseOk(data)             data is always a dict
    ParseError(raw, reason)   raw is the untouched model output

`effect_from_changes` is the only path from generated data into an
ActionEffect; it whitelists stat keys and drops everything else.
"""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass
from typing import Any, Union

from demon_lord.models import ActionEffect

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ParseOk:
    data: dict[str, Any]


@dataclass(frozen=True)
class ParseError:
    raw: str
    reason: str


ParseResult = Union[ParseOk, ParseError]

# Generated payloads use bare stat names; map them onto effect fields.
_STAT_FIELDS: dict[str, str] = {
    "health": "health_delta",
    "strength": "strength_delta",
    "knowledge": "knowledge_delta",
    "reputation": "reputation_delta",
    "wealth": "wealth_delta",
}


def _strip_fences(text: str) -> str:
    cleaned = text.strip()
    if cleaned.startswith("```"):
        lines = cleaned.split("\n")
        lines = [l for l in lines[1:] if not l.strip().startswith("```")]
        cleaned = "\n".join(lines)
    return cleaned.strip()


def _first_object(text: str) -> str | None:
    """Return the first balanced {...} block in text, ignoring braces in strings."""
    start = text.find("{")
    if start < 0:
        return None
    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return text[start:i + 1]
    return None


def parse_json_object(text: str) -> ParseResult:
    """Parse a JSON object out of raw model output."""
    if not isinstance(text, str) or not text.strip():
        return ParseError(raw=text if isinstance(text, str) else "", reason="empty output")

    cleaned = _strip_fences(text)
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError:
        block = _first_object(cleaned)
        if block is None:
            return ParseError(raw=text, reason="no JSON object found")
        try:
            data = json.loads(block)
        except json.JSONDecodeError as e:
            logger.warning("Generator output is not valid JSON: %s", e)
            return ParseError(raw=text, reason=f"invalid JSON: {e}")

    if not isinstance(data, dict):
        return ParseError(raw=text, reason=f"expected a JSON object, got {type(data).__name__}")
    return ParseOk(data=data)


def as_int(value: Any) -> int | None:
    """Coerce a generated number to int; bools, NaN and infinities are rejected."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return None
    return int(value)


def effect_from_changes(changes: Any) -> ActionEffect | None:
    """Build an ActionEffect from a generated `stateChanges` mapping.

    Only known stat names with integer values are kept; `flags` must map
    strings to booleans. Returns None when nothing usable is present. The
    returned model has only the provided fields marked as set, so it can be
    merged over a base effect with `exclude_unset`.
    """
    if not isinstance(changes, dict):
        return None

    fields: dict[str, Any] = {}
    for key, value in changes.items():
        field = _STAT_FIELDS.get(key)
        if field is None:
            if key != "flags":
                logger.debug("Ignoring unknown stat %r in generated effect", key)
            continue
        number = as_int(value)
        if number is None:
            continue
        fields[field] = number

    flags = changes.get("flags")
    if isinstance(flags, dict):
        clean = {str(k): v for k, v in flags.items() if isinstance(v, bool)}
        if clean:
            fields["flags"] = clean

    if not fields:
        return None
    return ActionEffect(**fields)
