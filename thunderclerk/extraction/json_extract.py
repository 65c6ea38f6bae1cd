"""Recover a JSON payload from free-form model output.

Local models wrap JSON in markdown fences, prepend chatter ("Here is the
JSON:"), or stop generating halfway through an object. The helpers here find
the first balanced object (or array) in the text and, for the array
extraction stage only, try to salvage a truncated tail.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from thunderclerk.errors import InvalidJson, NoJsonFound, UnclosedJson

logger = logging.getLogger(__name__)

_OPEN_FENCE_RE = re.compile(r"^```(?:json)?\s*", re.IGNORECASE | re.MULTILINE)
_CLOSE_FENCE_RE = re.compile(r"\s*```\s*$", re.MULTILINE)

# Closing suffixes tried, in order, against a truncated tail. They cover an
# unterminated string, an array inside an object, objects inside an array
# inside an object, and a bare top-level array.
REPAIR_CLOSERS: tuple[str, ...] = (
    "}",
    "]}",
    '"}',
    '"}]',
    '"}]}',
    '"]}',
    "}]}",
    "]}]}",
    '"}]]}',
    "]",
    '"]',
    "}]",
)

# How many trailing characters the repair pass may cut away.
REPAIR_MAX_TRIM = 300


def strip_code_fence(text: str) -> str:
    """Remove a leading ```` ``` ````/```` ```json ```` fence and the trailing fence."""
    stripped = _OPEN_FENCE_RE.sub("", text, count=1)
    stripped = _CLOSE_FENCE_RE.sub("", stripped, count=1)
    return stripped.strip()


def _find_start(text: str, openers: str, pos: int = 0) -> int:
    positions = [p for p in (text.find(ch, pos) for ch in openers) if p != -1]
    return min(positions) if positions else -1


def _balanced_span(text: str, start: int, openers: str, closers: str) -> str:
    """Return ``text[start:end+1]`` where *end* closes the opener at *start*.

    Brackets inside string literals do not count.
    """
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
        elif ch in openers:
            depth += 1
        elif ch in closers:
            depth -= 1
            if depth == 0:
                return text[start : i + 1]
    raise UnclosedJson()


def extract_json(text: str) -> str:
    """Extract the first complete JSON object from *text*.

    Raises:
        NoJsonFound: There is no ``{`` in the text.
        UnclosedJson: The object is never closed (truncated generation).
    """
    cleaned = strip_code_fence(text or "")
    start = cleaned.find("{")
    if start == -1:
        raise NoJsonFound()
    return _balanced_span(cleaned, start, "{", "}")


def extract_json_or_array(text: str) -> str:
    """Like :func:`extract_json`, but a top-level array is accepted too.

    Whichever of ``{`` or ``[`` appears first starts the span.
    """
    cleaned = strip_code_fence(text or "")
    start = _find_start(cleaned, "{[")
    if start == -1:
        raise NoJsonFound("No JSON object or array found in model output")
    try:
        return _balanced_span(cleaned, start, "{[", "}]")
    except UnclosedJson:
        raise UnclosedJson("Unclosed JSON object or array in model output") from None


def parse_model_json(text: str, allow_array: bool = False) -> Any:
    """Extract and decode the JSON payload of a model response.

    Raises:
        NoJsonFound, UnclosedJson: No balanced payload.
        InvalidJson: The balanced span is not valid JSON.
    """
    span = extract_json_or_array(text) if allow_array else extract_json(text)
    try:
        return json.loads(span)
    except json.JSONDecodeError as exc:
        raise InvalidJson(str(exc)) from exc


def repair_truncated_json(text: str, max_trim: int = REPAIR_MAX_TRIM) -> Any | None:
    """Best-effort salvage of a truncated JSON payload.

    Starting from the first ``{`` or ``[``, tries progressively shorter
    prefixes of the text, each combined with every suffix in
    :data:`REPAIR_CLOSERS`, and returns the first value that decodes.

    Returns:
        The decoded value, or None when no candidate parses. Never raises.
    """
    cleaned = strip_code_fence(text or "")
    start = _find_start(cleaned, "{[")
    if start == -1:
        return None

    tail = cleaned[start:]
    lowest = max(0, len(tail) - max_trim)
    for end in range(len(tail), lowest, -1):
        prefix = tail[:end]
        for suffix in REPAIR_CLOSERS:
            try:
                return json.loads(prefix + suffix)
            except json.JSONDecodeError:
                continue
    return None


def _scan_values(cleaned: str) -> tuple[list[Any], str | None]:
    """Decode every balanced ``{...}``/``[...]`` span in *cleaned*, left to right.

    Returns the decoded values and, when a span is never closed, the tail of
    the text starting at that span (None otherwise). Spans that balance but
    do not decode are skipped.
    """
    values: list[Any] = []
    pos = 0
    while True:
        start = _find_start(cleaned, "{[", pos)
        if start == -1:
            return values, None
        try:
            span = _balanced_span(cleaned, start, "{[", "}]")
        except UnclosedJson:
            return values, cleaned[start:]
        try:
            values.append(json.loads(span))
        except json.JSONDecodeError:
            pass
        pos = start + len(span)


def _dict_items(value: Any) -> list[dict[str, Any]]:
    return [item for item in value if isinstance(item, dict)] if isinstance(value, list) else []


def _items_from(value: Any, key: str) -> list[dict[str, Any]]:
    if isinstance(value, list):
        return _dict_items(value)
    if not isinstance(value, dict):
        return []
    if key in value:
        inner = value[key]
        return [inner] if isinstance(inner, dict) else _dict_items(inner)
    for inner in value.values():
        # e.g. {"items": [...]} under an unexpected key
        if isinstance(inner, list) and inner and all(isinstance(i, dict) for i in inner):
            return inner
    # A single record; its own lists (attendees, ...) are fields, not items.
    return [value] if value else []


def parse_array_payload(text: str, key: str) -> list[dict[str, Any]]:
    """Decode the item list of an array-extraction response.

    The model may answer with ``{"<key>": [...]}``, a bare ``[...]``, or a
    single record object, possibly after prose that itself contains
    brackets. The first decoded span that yields records wins. When the
    payload is truncated the repair pass is tried; when that fails too the
    result is an empty list. Only dict items are kept.
    """
    cleaned = strip_code_fence(text or "")
    values, tail = _scan_values(cleaned)
    for value in values:
        items = _items_from(value, key)
        if items:
            return items
    if tail is None and values:
        return []

    logger.warning("Array payload for %r unreadable; attempting repair", key)
    repaired = repair_truncated_json(tail if tail is not None else cleaned)
    if repaired is None:
        logger.warning("Repair failed for %r payload; returning no items", key)
        return []
    return _items_from(repaired, key)
