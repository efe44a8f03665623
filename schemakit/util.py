"""Helpers for JSON values: equality, typing and hashing by JSON Schema rules.

A JSON value is represented by ``None``, ``bool``, numbers (``int``, ``float``,
``decimal.Decimal``, ``fractions.Fraction``), ``str``, lists or tuples (arrays),
mappings with string keys, or dataclass instances (objects whose public fields
are their properties).
"""

from __future__ import annotations

import dataclasses
import math
from collections.abc import Mapping
from decimal import Decimal
from fractions import Fraction
from typing import Any, Optional

# Decimals with exponents larger than this are not converted to exact
# rationals; doing so would cost unbounded time and memory.
_MAX_DECIMAL_EXPONENT = 10_000


class SchemaError(Exception):
    """Raised for malformed schemas and failed schema operations."""


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float, Decimal, Fraction)) and not isinstance(
        value, bool
    )


def _is_array(value: Any) -> bool:
    return isinstance(value, (list, tuple))


def _is_struct(value: Any) -> bool:
    return dataclasses.is_dataclass(value) and not isinstance(value, type)


def _public_fields(obj: Any) -> list[tuple[str, Any]]:
    return [
        (f.name, getattr(obj, f.name))
        for f in dataclasses.fields(obj)
        if not f.name.startswith("_")
    ]


def json_number(value: Any) -> Optional[Fraction]:
    """Return the exact rational value of a JSON number, or None if it is not one.

    Booleans are not numbers. Non-finite floats and decimals, and decimals whose
    exponent is too large to convert, yield None.
    """
    if not _is_number(value):
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return None
    if isinstance(value, Decimal):
        if not value.is_finite():
            return None
        exponent = value.as_tuple().exponent
        if isinstance(exponent, int) and abs(exponent) > _MAX_DECIMAL_EXPONENT:
            return None
    return Fraction(value)


def json_type(value: Any) -> Optional[str]:
    """Return the JSON Schema type name of a value, or None if it is not JSON.

    Numbers with no fractional part are reported as "integer".
    """
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int):
        return "integer"
    if isinstance(value, float):
        return "integer" if value.is_integer() else "number"
    if isinstance(value, Decimal):
        if value.is_finite() and value == value.to_integral_value():
            return "integer"
        return "number"
    if isinstance(value, Fraction):
        return "integer" if value.denominator == 1 else "number"
    if isinstance(value, str):
        return "string"
    if _is_array(value):
        return "array"
    if isinstance(value, Mapping) or _is_struct(value):
        return "object"
    return None


def equal(x: Any, y: Any) -> bool:
    """Report whether two JSON values are equal under JSON Schema rules.

    Numbers compare by mathematical value, so ``1`` equals ``1.0``.
    Raises TypeError for values that are not JSON.
    """
    x_num, y_num = _is_number(x), _is_number(y)
    if x_num and y_num:
        rx, ry = json_number(x), json_number(y)
        if rx is None or ry is None:
            return x == y
        return rx == ry
    if x_num or y_num:
        return False
    if x is None or y is None:
        return x is None and y is None
    if isinstance(x, bool) or isinstance(y, bool):
        return isinstance(x, bool) and isinstance(y, bool) and x == y
    if isinstance(x, str) or isinstance(y, str):
        return isinstance(x, str) and isinstance(y, str) and x == y
    if _is_array(x) or _is_array(y):
        if not (_is_array(x) and _is_array(y)) or len(x) != len(y):
            return False
        return all(equal(a, b) for a, b in zip(x, y))
    if isinstance(x, Mapping) or isinstance(y, Mapping):
        if not (isinstance(x, Mapping) and isinstance(y, Mapping)):
            return False
        if len(x) != len(y):
            return False
        return all(key in y and equal(val, y[key]) for key, val in x.items())
    if _is_struct(x) or _is_struct(y):
        if type(x) is not type(y):
            return False
        return all(
            equal(a, b)
            for (_, a), (_, b) in zip(_public_fields(x), _public_fields(y))
        )
    raise TypeError(f"unsupported type: {type(x).__name__}")


def _hash_key(value: Any) -> tuple:
    number = json_number(value)
    if number is not None:
        return ("number", number)
    if value is None:
        return ("null",)
    if isinstance(value, bool):
        return ("bool", value)
    if isinstance(value, str):
        return ("string", value)
    if isinstance(value, complex):
        return ("complex", value.real, value.imag)
    if isinstance(value, (float, Decimal)):
        # Non-finite or unconvertible numbers.
        return ("special", str(value))
    if _is_array(value):
        return ("array", tuple(_hash_key(item) for item in value))
    if isinstance(value, Mapping):
        if not all(isinstance(key, str) for key in value):
            raise TypeError("map with non-string key")
        return (
            "object",
            tuple((key, _hash_key(value[key])) for key in sorted(value)),
        )
    if _is_struct(value):
        return ("struct", tuple(_hash_key(v) for _, v in _public_fields(value)))
    raise TypeError(f"unsupported type: {type(value).__name__}")


def hash_value(value: Any) -> int:
    """Return a hash of a JSON value; values that are ``equal`` hash the same.

    Raises TypeError for mappings with non-string keys and for non-JSON values.
    """
    return hash(_hash_key(value))