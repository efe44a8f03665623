"""Access to the properties of object instances: mappings and dataclasses.

A mapping's properties are its items. A dataclass instance's properties are
its public fields, named as the ``"json"`` field metadata says (see
:mod:`schemakit.infer`). A dataclass field holding its zero value may stand
for a missing optional property, so the functions here treat it generously.
"""

from __future__ import annotations

import copy
import dataclasses
from collections.abc import Iterator, Mapping, MutableMapping
from decimal import Decimal
from fractions import Fraction
from functools import lru_cache
from typing import Any, Optional

from .schema import UNSET, Schema
from .util import SchemaError


@dataclasses.dataclass(frozen=True)
class _StructProperty:
    attr: str
    optional: bool


def _is_struct(value: Any) -> bool:
    return dataclasses.is_dataclass(value) and not isinstance(value, type)


@lru_cache(maxsize=None)
def _struct_properties(tp: type) -> dict[str, _StructProperty]:
    props: dict[str, _StructProperty] = {}
    for f in dataclasses.fields(tp):
        if f.name.startswith("_"):
            continue
        tag = f.metadata.get("json")
        if tag is None:
            props[f.name] = _StructProperty(f.name, False)
            continue
        if tag == "-":
            continue
        name, _, opts = tag.partition(",")
        options = set(opts.split(",")) if opts else set()
        optional = bool(options & {"omitempty", "omitzero"})
        props[name or f.name] = _StructProperty(f.name, optional)
    return props


def _is_zero(value: Any) -> bool:
    if value is None or value is False:
        return True
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float, Decimal, Fraction, complex)):
        return value == 0
    if isinstance(value, (str, bytes)):
        return len(value) == 0
    if _is_struct(value):
        return all(_is_zero(getattr(value, f.name)) for f in dataclasses.fields(value))
    return False


def _not_object(instance: Any) -> TypeError:
    return TypeError(f"bad value {instance!r} of type {type(instance).__name__}")


def get_property(instance: Any, name: str) -> Any:
    """Return the property ``name`` of an object instance, or ``UNSET`` if absent.

    Raises TypeError if the instance is neither a mapping nor a dataclass.
    """
    if isinstance(instance, Mapping):
        return instance.get(name, UNSET) if name in instance else UNSET
    if _is_struct(instance):
        prop = _struct_properties(type(instance)).get(name)
        if prop is None:
            return UNSET
        return getattr(instance, prop.attr)
    raise _not_object(instance)


def iter_properties(instance: Any) -> Iterator[tuple[str, Any]]:
    """Yield the (name, value) pairs of an object instance's properties.

    Dataclass fields that are optional and hold their zero value are skipped.
    Raises TypeError if the instance is neither a mapping nor a dataclass.
    """
    if isinstance(instance, Mapping):
        yield from instance.items()
        return
    if _is_struct(instance):
        for name, prop in _struct_properties(type(instance)).items():
            value = getattr(instance, prop.attr)
            if prop.optional and _is_zero(value):
                continue
            yield name, value
        return
    raise _not_object(instance)


def num_properties_bounds(
    instance: Any, is_required: Optional[set[str]] = None
) -> tuple[int, int]:
    """Return lower and upper bounds on the number of an instance's properties.

    For a mapping both bounds are its size. For a dataclass the upper bound is
    the number of properties and the lower bound counts those that are non-zero
    or required. Raises TypeError for other values.
    """
    if isinstance(instance, Mapping):
        return len(instance), len(instance)
    if _is_struct(instance):
        required = is_required or set()
        props = _struct_properties(type(instance))
        low = sum(
            1
            for name, prop in props.items()
            if not _is_zero(getattr(instance, prop.attr)) or name in required
        )
        return low, len(props)
    raise _not_object(instance)


def _required_set(schema: Schema) -> set[str]:
    if schema._is_required is not None:
        return schema._is_required
    return set(schema.required or ())


def apply_defaults(instance: Any, schema: Schema) -> None:
    """Fill in defaults of the schema's optional properties, in place.

    A mapping gains each missing property that has a default; a dataclass has
    each property field that holds its zero value set to the default. Required
    properties are left alone, as are instances that are not objects.
    Raises SchemaError if the instance cannot be updated.
    """
    try:
        _apply_defaults(instance, schema)
    except SchemaError as exc:
        raise SchemaError(
            f"applyDefaults: schema {schema}, instance {instance!r}: {exc}"
        ) from exc


def _apply_defaults(instance: Any, schema: Schema) -> None:
    is_mapping = isinstance(instance, Mapping)
    if not (is_mapping or _is_struct(instance)):
        return
    if is_mapping:
        bad = next((k for k in instance if not isinstance(k, str)), None)
        if bad is not None:
            raise SchemaError(f"map key type {type(bad).__name__} is not a string")
        if not isinstance(instance, MutableMapping):
            raise SchemaError(f"cannot modify {type(instance).__name__}")
    required = _required_set(schema)
    for prop, subschema in (schema.properties or {}).items():
        if prop in required or subschema is None or subschema.default is UNSET:
            continue
        value = get_property(instance, prop)
        if is_mapping:
            if value is UNSET:
                instance[prop] = copy.deepcopy(subschema.default)
        elif value is not UNSET and _is_zero(value):
            attr = _struct_properties(type(instance))[prop].attr
            try:
                setattr(instance, attr, copy.deepcopy(subschema.default))
            except dataclasses.FrozenInstanceError as exc:
                raise SchemaError(f"cannot set field {attr}: {exc}") from exc