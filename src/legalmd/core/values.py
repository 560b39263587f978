"""Closed value model for metadata: kinds, normalization, truthiness, and path lookup"""

import json
import re
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Union


class ValueKind(str, Enum):
    null = "null"
    boolean = "boolean"
    number = "number"
    string = "string"
    sequence = "sequence"
    mapping = "mapping"


class _Missing:
    """Sentinel for a path that does not resolve (distinct from an explicit null)."""

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING = _Missing()

Segment = Union[str, int]

_PATH_TOKEN_RE = re.compile(r'\[(\d+)\]|\[(["\'])(.*?)\2\]|([^.\[\]]+)')


def kind_of(value: Any) -> ValueKind:
    """Classify a metadata value; anything outside the closed set is a TypeError."""
    if value is None or value is MISSING:
        return ValueKind.null
    if isinstance(value, bool):
        return ValueKind.boolean
    if isinstance(value, (int, float, Decimal)):
        return ValueKind.number
    if isinstance(value, (str, date)):
        return ValueKind.string
    if isinstance(value, (list, tuple)):
        return ValueKind.sequence
    if isinstance(value, dict):
        return ValueKind.mapping
    raise TypeError(f"Unsupported metadata value type: {type(value).__name__}")


def normalize(value: Any) -> Any:
    """Coerce YAML-native values into the closed set (dates become ISO strings)."""
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(k): normalize(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [normalize(v) for v in value]
    if isinstance(value, Decimal):
        return float(value)
    kind_of(value)
    return value


def is_truthy(value: Any) -> bool:
    """Non-empty, non-false, non-null, non-zero-length-sequence values are true."""
    kind = kind_of(value)
    if kind is ValueKind.null:
        return False
    if kind is ValueKind.boolean:
        return value
    if kind is ValueKind.number:
        return value != 0
    if kind is ValueKind.string:
        return isinstance(value, date) or value != ""
    return len(value) > 0


def is_empty(value: Any) -> bool:
    """True for missing/null values, blank strings, and empty collections."""
    if value is MISSING or value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, (list, tuple, dict)):
        return len(value) == 0
    return False


def split_path(path: str) -> list[Segment]:
    """Split 'a.b[0].c' or 'a.0.c' or 'a["x-y"]' into lookup segments."""
    segments: list[Segment] = []
    for index, quote, quoted, name in _PATH_TOKEN_RE.findall(path.strip()):
        if index:
            segments.append(int(index))
        elif quote:
            segments.append(quoted)
        else:
            segments.append(int(name) if name.isdigit() else name)
    return segments


def lookup(data: Any, path: Union[str, list[Segment]]) -> Any:
    """Resolve a path against nested mappings/sequences; MISSING if any step fails."""
    segments = split_path(path) if isinstance(path, str) else path
    current = data
    for segment in segments:
        if isinstance(current, dict):
            if isinstance(segment, int) and segment not in current:
                segment = str(segment)
            if segment not in current:
                return MISSING
            current = current[segment]
        elif isinstance(current, (list, tuple)):
            if not isinstance(segment, int):
                if segment == "length":
                    return len(current)
                return MISSING
            if segment >= len(current):
                return MISSING
            current = current[segment]
        else:
            return MISSING
    return current


def to_text(value: Any) -> str:
    """Render a value the way it appears in resolved document text."""
    if value is None or value is MISSING:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return ", ".join(to_text(v) for v in value)
    if isinstance(value, dict):
        return json.dumps(value, ensure_ascii=False, default=str)
    return str(value)
