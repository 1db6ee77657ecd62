"""JSON-path-like value extraction.

Supported segments, separated by ``.``:

- ``name``: key lookup in an object
- ``1``: index into a list (only when the current value is a list)
- ``name[1]``: key lookup followed by a list index

A leading ``$`` or ``$.`` is ignored, so ``$.data.items[1].name`` and
``data.items.1.name`` address the same value.
"""

from __future__ import annotations

from typing import Any

from courier.models import JsonValue

# Returned alongside found=False
_MISSING: Any = None


def _parse_index(text: str, length: int) -> int | None:
    """Parse a non-negative in-range list index, or return None."""
    if not (text.isascii() and text.isdigit()):
        return None
    index = int(text)
    if index >= length:
        return None
    return index


def _split_bracket(segment: str) -> tuple[str, str] | None:
    """Split ``name[index]`` into (name, index), or None for plain segments."""
    open_at = segment.find("[")
    if open_at < 0:
        return None
    close_at = segment.find("]", open_at)
    if close_at < 0:
        return None
    return segment[:open_at], segment[open_at + 1 : close_at]


def normalize_path(path: str) -> str:
    """Strip the optional ``$`` / ``$.`` root marker."""
    if path.startswith("$."):
        return path[2:]
    if path.startswith("$"):
        return path[1:]
    return path


def extract_value(path: str, payload: JsonValue) -> tuple[JsonValue, bool]:
    """Walk ``payload`` along ``path``.

    Args:
        path: Dot/bracket path expression.
        payload: Decoded JSON document.

    Returns:
        ``(value, found)``. A key that is present with a null value is
        reported as ``(None, True)``; a missing one as ``(None, False)``.
    """
    path = normalize_path(path)
    if path == "":
        return payload, True

    current: JsonValue = payload
    for segment in path.split("."):
        bracket = _split_bracket(segment)
        if bracket is not None:
            name, index_text = bracket
            if name:
                if not isinstance(current, dict) or name not in current:
                    return _MISSING, False
                current = current[name]
            if not isinstance(current, list):
                return _MISSING, False
            index = _parse_index(index_text, len(current))
            if index is None:
                return _MISSING, False
            current = current[index]
            continue

        if isinstance(current, list):
            index = _parse_index(segment, len(current))
            if index is None:
                return _MISSING, False
            current = current[index]
            continue

        if not isinstance(current, dict) or segment not in current:
            return _MISSING, False
        current = current[segment]

    return current, True
