"""JSON Pointers (RFC 6901) applied to schemas.

A JSON Pointer is a path that refers to one JSON value within another. The
empty path refers to the root; otherwise it is a sequence of slash-prefixed
segments such as ``/points/1/x``, selecting successive object properties or
array items.
"""

from __future__ import annotations

import json
import re
from collections.abc import Mapping
from typing import Any

from .schema import FIELDS_BY_JSON_NAME, FieldKind, Schema
from .util import SchemaError

_LIST_KINDS = frozenset({FieldKind.SCHEMA_LIST, FieldKind.STRING_LIST, FieldKind.ARRAY})
_MAP_KINDS = frozenset(
    {FieldKind.SCHEMA_MAP, FieldKind.STRING_LIST_MAP, FieldKind.BOOLEAN_MAP}
)
_INTEGER = re.compile(r"[+-]?[0-9]+")


def escape_segment(s: str) -> str:
    """Escape ``~`` and ``/`` so that ``s`` can be a pointer segment."""
    return s.replace("~", "~0").replace("/", "~1")


def unescape_segment(s: str) -> str:
    """Undo :func:`escape_segment`."""
    return s.replace("~1", "/").replace("~0", "~")


def parse_json_pointer(ptr: str) -> list[str]:
    """Split a JSON Pointer into its unescaped segments.

    Segments stay strings: whether one is an index depends on what it is
    applied to. Consecutive slashes yield empty segments.
    """
    if ptr == "":
        return []
    if not ptr.startswith("/"):
        raise SchemaError(f"JSON Pointer {json.dumps(ptr)} does not begin with '/'")
    return [unescape_segment(seg) for seg in ptr[1:].split("/")]


def _schema_field(schema: Schema, name: str) -> Any:
    if name == "type":
        # The "type" keyword is held either in type or in types.
        if schema.type:
            return schema.type
        return schema.types if schema.types is not None else []
    spec = FIELDS_BY_JSON_NAME.get(name)
    if spec is None:
        raise SchemaError(f"no schema field {json.dumps(name)}")
    value = getattr(schema, spec.attr)
    if value is None:
        if spec.kind in _LIST_KINDS:
            return []
        if spec.kind in _MAP_KINDS:
            return {}
    return value


def _index(items: Any, seg: str) -> Any:
    if seg == "-":
        raise SchemaError("the JSON Pointer array segment '-' is not supported")
    if len(seg) > 1 and seg[0] == "0":
        raise SchemaError(f"segment {json.dumps(seg)} has leading zeroes")
    if not _INTEGER.fullmatch(seg):
        raise SchemaError(f"invalid int: {json.dumps(seg)}")
    n = int(seg)
    if not 0 <= n < len(items):
        raise SchemaError(f"index {n} is out of bounds for array of length {len(items)}")
    return items[n]


def _walk(schema: Schema, ptr: str) -> Schema:
    current: Any = schema
    for seg in parse_json_pointer(ptr):
        if current is None:
            raise SchemaError("navigated to nil reference")
        if isinstance(current, Schema):
            current = _schema_field(current, seg)
        elif isinstance(current, (list, tuple)):
            current = _index(current, seg)
        elif isinstance(current, Mapping):
            if seg not in current:
                raise SchemaError(f"no key {json.dumps(seg)} in map")
            current = current[seg]
        else:
            raise SchemaError(
                f"value {current!r} ({type(current).__name__}) is not a schema, slice or map"
            )
    if isinstance(current, Schema):
        return current
    raise SchemaError(f"does not refer to a schema, but to a {type(current).__name__}")


def dereference_json_pointer(schema: Schema, ptr: str) -> Schema:
    """Return the subschema of ``schema`` that ``ptr`` refers to.

    Raises SchemaError if the pointer is malformed or does not lead to a schema.
    """
    try:
        return _walk(schema, ptr)
    except SchemaError as exc:
        raise SchemaError(f"JSON Pointer {json.dumps(ptr)}: {exc}") from exc