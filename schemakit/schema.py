"""The in-memory form of a JSON Schema (draft 2020-12) document."""

from __future__ import annotations

import enum
import json
import math
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field, fields
from typing import Any, Optional

from .util import SchemaError, json_number

_INT32_MIN, _INT32_MAX = -(2**31), 2**31 - 1
_INT64_MIN, _INT64_MAX = -(2**63), 2**63 - 1


class _Unset:
    """Marker for a keyword that is absent, where null is a legal value."""

    _instance: Optional["_Unset"] = None

    def __new__(cls) -> "_Unset":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False

    def __copy__(self) -> "_Unset":
        return self

    def __deepcopy__(self, memo: dict) -> "_Unset":
        return self

    def __reduce__(self) -> str:
        return "UNSET"


UNSET: Any = _Unset()


class FieldKind(enum.Enum):
    """How a schema keyword's value is represented."""

    STRING = "string"
    BOOLEAN = "boolean"
    NUMBER = "number"
    INTEGER = "integer"
    SCHEMA = "schema"
    SCHEMA_LIST = "schema_list"
    SCHEMA_MAP = "schema_map"
    STRING_LIST = "string_list"
    STRING_LIST_MAP = "string_list_map"
    BOOLEAN_MAP = "boolean_map"
    ARRAY = "array"
    VALUE = "value"


@dataclass(frozen=True)
class SchemaField:
    """A schema keyword: its attribute name, JSON name and value kind."""

    attr: str
    json_name: str
    kind: FieldKind


_K = FieldKind

# In declaration order, which is also the order of keys when encoding.
SCHEMA_FIELDS: tuple[SchemaField, ...] = tuple(
    SchemaField(attr, name, kind)
    for attr, name, kind in (
        ("id", "$id", _K.STRING),
        ("schema", "$schema", _K.STRING),
        ("ref", "$ref", _K.STRING),
        ("comment", "$comment", _K.STRING),
        ("defs", "$defs", _K.SCHEMA_MAP),
        ("definitions", "definitions", _K.SCHEMA_MAP),
        ("anchor", "$anchor", _K.STRING),
        ("dynamic_anchor", "$dynamicAnchor", _K.STRING),
        ("dynamic_ref", "$dynamicRef", _K.STRING),
        ("vocabulary", "$vocabulary", _K.BOOLEAN_MAP),
        ("title", "title", _K.STRING),
        ("description", "description", _K.STRING),
        ("default", "default", _K.VALUE),
        ("deprecated", "deprecated", _K.BOOLEAN),
        ("read_only", "readOnly", _K.BOOLEAN),
        ("write_only", "writeOnly", _K.BOOLEAN),
        ("examples", "examples", _K.ARRAY),
        ("enum", "enum", _K.ARRAY),
        ("const", "const", _K.VALUE),
        ("multiple_of", "multipleOf", _K.NUMBER),
        ("minimum", "minimum", _K.NUMBER),
        ("maximum", "maximum", _K.NUMBER),
        ("exclusive_minimum", "exclusiveMinimum", _K.NUMBER),
        ("exclusive_maximum", "exclusiveMaximum", _K.NUMBER),
        ("min_length", "minLength", _K.INTEGER),
        ("max_length", "maxLength", _K.INTEGER),
        ("pattern", "pattern", _K.STRING),
        ("prefix_items", "prefixItems", _K.SCHEMA_LIST),
        ("items", "items", _K.SCHEMA),
        ("min_items", "minItems", _K.INTEGER),
        ("max_items", "maxItems", _K.INTEGER),
        ("additional_items", "additionalItems", _K.SCHEMA),
        ("unique_items", "uniqueItems", _K.BOOLEAN),
        ("contains", "contains", _K.SCHEMA),
        ("min_contains", "minContains", _K.INTEGER),
        ("max_contains", "maxContains", _K.INTEGER),
        ("unevaluated_items", "unevaluatedItems", _K.SCHEMA),
        ("min_properties", "minProperties", _K.INTEGER),
        ("max_properties", "maxProperties", _K.INTEGER),
        ("required", "required", _K.STRING_LIST),
        ("dependent_required", "dependentRequired", _K.STRING_LIST_MAP),
        ("properties", "properties", _K.SCHEMA_MAP),
        ("pattern_properties", "patternProperties", _K.SCHEMA_MAP),
        ("additional_properties", "additionalProperties", _K.SCHEMA),
        ("property_names", "propertyNames", _K.SCHEMA),
        ("unevaluated_properties", "unevaluatedProperties", _K.SCHEMA),
        ("all_of", "allOf", _K.SCHEMA_LIST),
        ("any_of", "anyOf", _K.SCHEMA_LIST),
        ("one_of", "oneOf", _K.SCHEMA_LIST),
        ("not_", "not", _K.SCHEMA),
        ("if_", "if", _K.SCHEMA),
        ("then", "then", _K.SCHEMA),
        ("else_", "else", _K.SCHEMA),
        ("dependent_schemas", "dependentSchemas", _K.SCHEMA_MAP),
        ("content_encoding", "contentEncoding", _K.STRING),
        ("content_media_type", "contentMediaType", _K.STRING),
        ("content_schema", "contentSchema", _K.SCHEMA),
        ("format", "format", _K.STRING),
    )
)

FIELDS_BY_JSON_NAME: dict[str, SchemaField] = {f.json_name: f for f in SCHEMA_FIELDS}

# Fields holding subschemas, sorted by JSON name: the order of traversal.
SUBSCHEMA_FIELDS: tuple[SchemaField, ...] = tuple(
    sorted(
        (
            f
            for f in SCHEMA_FIELDS
            if f.kind in (_K.SCHEMA, _K.SCHEMA_LIST, _K.SCHEMA_MAP)
        ),
        key=lambda f: f.json_name,
    )
)

_KNOWN_KEYS = frozenset(FIELDS_BY_JSON_NAME) | {"type"}


@dataclass(eq=False, repr=False)
class Schema:
    """A JSON schema object.

    Absent keywords are ``None`` (or ``""``/``False`` for strings and booleans);
    ``const`` and ``default`` use ``UNSET`` because null is a legal value.
    ``type`` holds a single type name and ``types`` several; never both.
    Unknown keywords are kept in ``extra``.
    """

    id: str = ""
    schema: str = ""
    ref: str = ""
    comment: str = ""
    defs: Optional[dict[str, Schema]] = None
    definitions: Optional[dict[str, Schema]] = None
    anchor: str = ""
    dynamic_anchor: str = ""
    dynamic_ref: str = ""
    vocabulary: Optional[dict[str, bool]] = None

    title: str = ""
    description: str = ""
    default: Any = UNSET
    deprecated: bool = False
    read_only: bool = False
    write_only: bool = False
    examples: Optional[list[Any]] = None

    type: str = ""
    types: Optional[list[str]] = None
    enum: Optional[list[Any]] = None
    const: Any = UNSET
    multiple_of: Optional[float] = None
    minimum: Optional[float] = None
    maximum: Optional[float] = None
    exclusive_minimum: Optional[float] = None
    exclusive_maximum: Optional[float] = None
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    pattern: str = ""

    prefix_items: Optional[list[Schema]] = None
    items: Optional[Schema] = None
    min_items: Optional[int] = None
    max_items: Optional[int] = None
    additional_items: Optional[Schema] = None
    unique_items: bool = False
    contains: Optional[Schema] = None
    min_contains: Optional[int] = None
    max_contains: Optional[int] = None
    unevaluated_items: Optional[Schema] = None

    min_properties: Optional[int] = None
    max_properties: Optional[int] = None
    required: Optional[list[str]] = None
    dependent_required: Optional[dict[str, list[str]]] = None
    properties: Optional[dict[str, Schema]] = None
    pattern_properties: Optional[dict[str, Schema]] = None
    additional_properties: Optional[Schema] = None
    property_names: Optional[Schema] = None
    unevaluated_properties: Optional[Schema] = None

    all_of: Optional[list[Schema]] = None
    any_of: Optional[list[Schema]] = None
    one_of: Optional[list[Schema]] = None
    not_: Optional[Schema] = None

    if_: Optional[Schema] = None
    then: Optional[Schema] = None
    else_: Optional[Schema] = None
    dependent_schemas: Optional[dict[str, Schema]] = None

    content_encoding: str = ""
    content_media_type: str = ""
    content_schema: Optional[Schema] = None

    format: str = ""

    extra: Optional[dict[str, Any]] = None

    # Computed during resolution.
    _base: Optional[Schema] = field(default=None, init=False)
    _uri: Optional[str] = field(default=None, init=False)
    _path: str = field(default="", init=False)
    _resolved_ref: Optional[Schema] = field(default=None, init=False)
    _resolved_dynamic_ref: Optional[Schema] = field(default=None, init=False)
    _dynamic_ref_anchor: str = field(default="", init=False)
    _anchors: Optional[dict[str, Any]] = field(default=None, init=False)
    _pattern: Any = field(default=None, init=False)
    _pattern_properties: Optional[dict[Any, Schema]] = field(default=None, init=False)
    _is_required: Optional[set[str]] = field(default=None, init=False)

    @property
    def resolved_ref(self) -> Optional[Schema]:
        """The schema this schema's $ref refers to, once resolved."""
        return self._resolved_ref

    def basic_checks(self) -> None:
        """Raise SchemaError if mutually exclusive keywords are both set."""
        if self.type and self.types is not None:
            raise SchemaError("both type and types are set; at most one should be")
        if self.defs is not None and self.definitions is not None:
            raise SchemaError("both defs and definitions are set; at most one should be")

    def children(self) -> Iterator[Schema]:
        """Yield the immediate subschemas, ordered by keyword name and map key."""
        for spec in SUBSCHEMA_FIELDS:
            value = getattr(self, spec.attr)
            if value is None:
                continue
            if spec.kind is FieldKind.SCHEMA:
                yield value
            elif spec.kind is FieldKind.SCHEMA_LIST:
                yield from (child for child in value if child is not None)
            else:
                yield from (value[k] for k in sorted(value) if value[k] is not None)

    def all(self) -> Iterator[Schema]:
        """Yield this schema and every schema beneath it, in preorder."""
        stack = [self]
        while stack:
            schema = stack.pop()
            yield schema
            stack.extend(reversed(list(schema.children())))

    def to_dict(self) -> dict[str, Any]:
        """Return the schema as a JSON-compatible dict."""
        self.basic_checks()
        extra = self.extra or {}
        for key in extra:
            if key in _KNOWN_KEYS:
                raise SchemaError(f"map key {json.dumps(key)} duplicates struct field")
        out: dict[str, Any] = {}
        if self.type:
            out["type"] = self.type
        elif self.types is not None:
            out["type"] = list(self.types)
        for spec in SCHEMA_FIELDS:
            value = getattr(self, spec.attr)
            if not _is_absent(spec.kind, value):
                out[spec.json_name] = _encode(spec.kind, value)
        for key in sorted(extra):
            out[key] = _plain(extra[key])
        return out

    def to_json(self) -> str:
        """Return the schema as compact JSON text."""
        try:
            return json.dumps(
                _compact_numbers(self.to_dict()),
                separators=(",", ":"),
                ensure_ascii=False,
                allow_nan=False,
            )
        except (TypeError, ValueError) as exc:
            raise SchemaError(f"cannot encode schema: {exc}") from exc

    @classmethod
    def from_dict(cls, data: Any) -> Schema:
        """Build a schema from a decoded JSON value.

        ``True`` is the empty schema and ``False`` the schema that rejects everything.
        """
        if isinstance(data, bool):
            return cls() if data else false_schema()
        if not isinstance(data, Mapping):
            raise SchemaError(f"cannot unmarshal {_json_kind(data)} into a schema")
        values: dict[str, Any] = {}
        for spec in SCHEMA_FIELDS:
            if spec.json_name in data:
                values[spec.attr] = _decode(spec, data[spec.json_name])
        if "type" in data:
            raw_type = data["type"]
            if isinstance(raw_type, str):
                values["type"] = raw_type
            elif isinstance(raw_type, list) and all(isinstance(t, str) for t in raw_type):
                values["types"] = list(raw_type)
            else:
                raise SchemaError(f'invalid value for "type": {_describe(raw_type)}')
        extra = {k: v for k, v in data.items() if k not in _KNOWN_KEYS}
        if extra:
            values["extra"] = extra
        return cls(**values)

    @classmethod
    def from_json(cls, text: str | bytes) -> Schema:
        """Parse JSON text into a schema."""
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise SchemaError(f"invalid JSON: {exc}") from exc
        return cls.from_dict(data)

    def __str__(self) -> str:
        if self._uri:
            return self._uri
        anchor = self.anchor or self.dynamic_anchor
        if anchor and self._base is not None and self._base._uri is not None:
            return f'"{self._base._uri}", anchor {anchor}'
        if self._path:
            return self._path
        return "<anonymous schema>"

    def __repr__(self) -> str:
        parts = []
        for f in fields(self):
            if f.name.startswith("_"):
                continue
            value = getattr(self, f.name)
            if value is f.default or value == f.default:
                continue
            parts.append(f"{f.name}={value!r}")
        return f"Schema({', '.join(parts)})"


def false_schema() -> Schema:
    """Return a new schema that rejects every value."""
    return Schema(not_=Schema())


def _json_kind(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (list, tuple)):
        return "array"
    if json_number(value) is not None:
        return "number"
    return type(value).__name__


def _describe(value: Any) -> str:
    try:
        return json.dumps(value)
    except (TypeError, ValueError):
        return repr(value)


def _to_float(name: str, value: Any) -> float:
    if isinstance(value, bool) or json_number(value) is None:
        raise SchemaError(f"{name}: not a number")
    return float(value)


def _to_int(name: str, value: Any) -> int:
    number = None if isinstance(value, bool) else json_number(value)
    if number is None:
        raise SchemaError(f"{name}: not a number")
    if number.denominator != 1:
        raise SchemaError(f"{name}: not an integer value")
    result = int(number)
    if not _INT64_MIN <= result <= _INT64_MAX:
        raise SchemaError(f"{name}: cannot be unmarshaled into an int")
    if not _INT32_MIN <= result <= _INT32_MAX:
        raise SchemaError(f"{name}: integer is out of range")
    return result


def _expect(name: str, value: Any, kind: type, what: str) -> Any:
    if not isinstance(value, kind) or (kind is not bool and isinstance(value, bool)):
        raise SchemaError(f"{name}: cannot unmarshal {_json_kind(value)} into {what}")
    return value


def _string_list(name: str, value: Any) -> list[str]:
    _expect(name, value, list, "an array of strings")
    return [_expect(name, item, str, "a string") for item in value]


def _sub(value: Any) -> Optional[Schema]:
    return None if value is None else Schema.from_dict(value)


def _decode(spec: SchemaField, raw: Any) -> Any:
    name, kind = spec.json_name, spec.kind
    if kind is FieldKind.VALUE:
        return raw
    if raw is None:
        return {FieldKind.STRING: "", FieldKind.BOOLEAN: False}.get(kind)
    if kind is FieldKind.STRING:
        return _expect(name, raw, str, "a string")
    if kind is FieldKind.BOOLEAN:
        return _expect(name, raw, bool, "a boolean")
    if kind is FieldKind.NUMBER:
        return _to_float(name, raw)
    if kind is FieldKind.INTEGER:
        return _to_int(name, raw)
    if kind is FieldKind.SCHEMA:
        return Schema.from_dict(raw)
    if kind is FieldKind.SCHEMA_LIST:
        return [_sub(item) for item in _expect(name, raw, list, "an array")]
    if kind is FieldKind.SCHEMA_MAP:
        return {k: _sub(v) for k, v in _expect(name, raw, Mapping, "an object").items()}
    if kind is FieldKind.STRING_LIST:
        return _string_list(name, raw)
    if kind is FieldKind.STRING_LIST_MAP:
        return {
            k: None if v is None else _string_list(name, v)
            for k, v in _expect(name, raw, Mapping, "an object").items()
        }
    if kind is FieldKind.BOOLEAN_MAP:
        return {
            k: False if v is None else _expect(name, v, bool, "a boolean")
            for k, v in _expect(name, raw, Mapping, "an object").items()
        }
    return list(_expect(name, raw, list, "an array"))


def _is_absent(kind: FieldKind, value: Any) -> bool:
    if kind is FieldKind.VALUE:
        return value is UNSET
    if kind in (FieldKind.NUMBER, FieldKind.INTEGER, FieldKind.SCHEMA):
        return value is None
    return not value


def _plain(value: Any) -> Any:
    if isinstance(value, Schema):
        return value.to_dict()
    if isinstance(value, Mapping):
        return {k: _plain(value[k]) for k in sorted(value)}
    if isinstance(value, (list, tuple)):
        return [_plain(item) for item in value]
    return value


def _encode(kind: FieldKind, value: Any) -> Any:
    if kind is FieldKind.SCHEMA:
        return value.to_dict()
    if kind is FieldKind.SCHEMA_LIST:
        return [None if c is None else c.to_dict() for c in value]
    if kind is FieldKind.SCHEMA_MAP:
        return {k: None if value[k] is None else value[k].to_dict() for k in sorted(value)}
    return _plain(value)


def _compact_numbers(value: Any) -> Any:
    """Write integral floats without a fractional part."""
    if isinstance(value, float):
        if math.isfinite(value) and value.is_integer() and abs(value) < 1e21:
            return int(value)
        return value
    if isinstance(value, dict):
        return {k: _compact_numbers(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_compact_numbers(item) for item in value]
    return value