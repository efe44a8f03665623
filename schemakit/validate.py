"""Validate JSON values against schemas (draft 2020-12).

Instances are plain Python JSON values: ``None``, booleans, numbers, strings,
lists or tuples, mappings with string keys, or dataclass instances standing
for objects (see :mod:`schemakit.instance`).
"""

from __future__ import annotations

import json
import math
import re
from collections.abc import Mapping
from fractions import Fraction
from typing import Any, Optional

from .annotations import Annotations
from .instance import (
    _is_struct,
    _is_zero,
    get_property,
    iter_properties,
    num_properties_bounds,
)
from .schema import UNSET, Schema
from .util import SchemaError, equal, hash_value, json_number, json_type

DRAFT_2020_12 = "https://json-schema.org/draft/2020-12/schema"


class ValidationError(SchemaError):
    """Raised when an instance does not satisfy a schema."""


def _q(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False)


def _qlist(values: list[str]) -> str:
    return "[" + " ".join(_q(v) for v in values) + "]"


def _names(schemas: list[Schema]) -> str:
    return "[" + ", ".join(str(s) for s in schemas) + "]"


def _check_version(schema: Schema) -> None:
    if schema.schema and schema.schema != DRAFT_2020_12:
        raise SchemaError(
            f"cannot validate version {schema.schema}, only {DRAFT_2020_12}"
        )


def _required(schema: Schema) -> set[str]:
    if schema._is_required is not None:
        return schema._is_required
    return set(schema.required or ())


def _compiled_pattern(schema: Schema) -> Any:
    if schema._pattern is None:
        try:
            schema._pattern = re.compile(schema.pattern)
        except re.error as exc:
            raise SchemaError(f"{schema}: pattern: {exc}") from exc
    return schema._pattern


def _compiled_pattern_properties(schema: Schema) -> dict[Any, Schema]:
    if schema._pattern_properties is None:
        compiled: dict[Any, Schema] = {}
        for source, sub in (schema.pattern_properties or {}).items():
            try:
                compiled[re.compile(source)] = sub
            except re.error as exc:
                raise SchemaError(
                    f"{schema}: patternProperties[{_q(source)}]: {exc}"
                ) from exc
        schema._pattern_properties = compiled
    return schema._pattern_properties


class _Validator:
    """State of one validation run: the stack of dynamic scopes."""

    def __init__(self) -> None:
        self._stack: list[Schema] = []

    def validate(
        self, instance: Any, schema: Optional[Schema], caller: Optional[Annotations]
    ) -> None:
        if schema is None:
            raise SchemaError("nil schema")
        self._stack.append(schema)
        try:
            self._apply(instance, schema, caller)
        except ValidationError as exc:
            raise ValidationError(f"validating {schema}: {exc}") from exc
        finally:
            self._stack.pop()

    def valid(
        self, instance: Any, schema: Schema, anns: Optional[Annotations]
    ) -> bool:
        try:
            self.validate(instance, schema, anns)
        except ValidationError:
            return False
        return True

    def _apply(
        self, instance: Any, schema: Schema, caller: Optional[Annotations]
    ) -> None:
        self._check_type(instance, schema)
        self._check_enum_const(instance, schema)
        self._check_number(instance, schema)
        self._check_string(instance, schema)

        anns = Annotations()
        self._apply_refs(instance, schema, anns)
        self._apply_logic(instance, schema, anns)
        if isinstance(instance, (list, tuple)):
            self._apply_array(instance, schema, anns)
        if isinstance(instance, Mapping) or _is_struct(instance):
            self._apply_object(instance, schema, anns)

        if caller is not None:
            caller.merge(anns)

    def _check_type(self, instance: Any, schema: Schema) -> None:
        if not schema.type and schema.types is None:
            return
        got = json_type(instance)
        if got is None:
            raise ValidationError(
                f"type: {instance!r} of type {type(instance).__name__} "
                "is not a valid JSON value"
            )
        if schema.type:
            if not (got == schema.type or (got == "integer" and schema.type == "number")):
                raise ValidationError(
                    f"type: {instance!r} has type {_q(got)}, want {_q(schema.type)}"
                )
        else:
            types = schema.types or []
            if not (got in types or (got == "integer" and "number" in types)):
                raise ValidationError(
                    f"type: {instance!r} has type {_q(got)}, "
                    f"want one of {_q(', '.join(types))}"
                )

    def _check_enum_const(self, instance: Any, schema: Schema) -> None:
        if schema.enum is not None and not any(equal(e, instance) for e in schema.enum):
            raise ValidationError(
                f"enum: {instance!r} does not equal any of: {schema.enum!r}"
            )
        if schema.const is not UNSET and not equal(schema.const, instance):
            raise ValidationError(
                f"const: {instance!r} does not equal {schema.const!r}"
            )

    def _check_number(self, instance: Any, schema: Schema) -> None:
        bounds = (
            schema.multiple_of,
            schema.minimum,
            schema.maximum,
            schema.exclusive_minimum,
            schema.exclusive_maximum,
        )
        if all(b is None for b in bounds):
            return
        n = json_number(instance)
        if n is None:
            return
        if schema.multiple_of is not None:
            if not self._is_multiple(n, schema.multiple_of):
                raise ValidationError(
                    f"multipleOf: {n} is not a multiple of {schema.multiple_of:f}"
                )
        if schema.minimum is not None and n < Fraction(schema.minimum):
            raise ValidationError(f"minimum: {n} is less than {schema.minimum:f}")
        if schema.maximum is not None and n > Fraction(schema.maximum):
            raise ValidationError(f"maximum: {n} is greater than {schema.maximum:f}")
        if schema.exclusive_minimum is not None and n <= Fraction(schema.exclusive_minimum):
            raise ValidationError(
                f"exclusiveMinimum: {n} is less than or equal to "
                f"{schema.exclusive_minimum:f}"
            )
        if schema.exclusive_maximum is not None and n >= Fraction(schema.exclusive_maximum):
            raise ValidationError(
                f"exclusiveMaximum: {n} is greater than or equal to "
                f"{schema.exclusive_maximum:f}"
            )

    @staticmethod
    def _is_multiple(n: Fraction, divisor: float) -> bool:
        # Floating-point arithmetic, as the official test suite expects.
        if divisor == 0:
            return False
        try:
            value = float(n)
        except OverflowError:
            value = math.inf if n > 0 else -math.inf
        quotient = value / divisor
        if not math.isfinite(quotient):
            return False
        return math.modf(quotient)[0] == 0

    def _check_string(self, instance: Any, schema: Schema) -> None:
        if not isinstance(instance, str):
            return
        length = len(instance)
        if schema.min_length is not None and length < schema.min_length:
            raise ValidationError(
                f"minLength: {_q(instance)} contains {length} Unicode code points, "
                f"fewer than {schema.min_length}"
            )
        if schema.max_length is not None and length > schema.max_length:
            raise ValidationError(
                f"maxLength: {_q(instance)} contains {length} Unicode code points, "
                f"more than {schema.max_length}"
            )
        if schema.pattern and not _compiled_pattern(schema).search(instance):
            raise ValidationError(
                f"pattern: {_q(instance)} does not match regular expression "
                f"{_q(schema.pattern)}"
            )

    def _apply_refs(self, instance: Any, schema: Schema, anns: Annotations) -> None:
        if schema.ref:
            if schema._resolved_ref is None:
                raise SchemaError(f"{schema}: $ref {_q(schema.ref)} is not resolved")
            self.validate(instance, schema._resolved_ref, anns)
        if schema.dynamic_ref:
            target = schema._resolved_dynamic_ref
            if target is None:
                anchor = schema._dynamic_ref_anchor
                if not anchor:
                    raise SchemaError(
                        f"{schema}: $dynamicRef {_q(schema.dynamic_ref)} is not resolved"
                    )
                target = self._dynamic_target(anchor)
            self.validate(instance, target, anns)

    def _dynamic_target(self, anchor: str) -> Schema:
        # The outermost scope with a matching dynamic anchor wins. Anchors are
        # scoped to a schema's base, so look there rather than at the schema.
        for scope in self._stack:
            base = scope._base
            info = (base._anchors or {}).get(anchor) if base is not None else None
            if info is not None:
                target, dynamic = info
                if dynamic:
                    return target
        raise ValidationError(f"missing dynamic anchor {_q(anchor)}")

    def _apply_logic(self, instance: Any, schema: Schema, anns: Annotations) -> None:
        # These come before the array and object keywords: what they evaluate
        # is not subject to unevaluatedItems or unevaluatedProperties.
        for sub in schema.all_of or ():
            self.validate(instance, sub, anns)
        if schema.any_of is not None:
            # Visit every subschema to collect all annotations.
            results = [self.valid(instance, sub, anns) for sub in schema.any_of]
            if not any(results):
                raise ValidationError(
                    f"anyOf: did not validate against any of {_names(schema.any_of)}"
                )
        if schema.one_of is not None:
            matched: Optional[Schema] = None
            for sub in schema.one_of:
                if self.valid(instance, sub, anns):
                    if matched is not None:
                        raise ValidationError(
                            f"oneOf: validated against both {matched} and {sub}"
                        )
                    matched = sub
            if matched is None:
                raise ValidationError(
                    f"oneOf: did not validate against any of {_names(schema.one_of)}"
                )
        if schema.not_ is not None and self.valid(instance, schema.not_, None):
            raise ValidationError(f"not: validated against {schema.not_}")
        if schema.if_ is not None:
            branch = schema.then if self.valid(instance, schema.if_, anns) else schema.else_
            if branch is not None:
                self.validate(instance, branch, anns)

    def _apply_array(self, items: Any, schema: Schema, anns: Annotations) -> None:
        count = len(items)
        prefix = schema.prefix_items or []
        for item, sub in zip(items, prefix):
            self.validate(item, sub, None)
        anns.note_end_index(min(len(prefix), count))

        if schema.items is not None:
            for item in items[len(prefix):]:
                self.validate(item, schema.items, None)
            anns.all_items = True

        matches = 0
        if schema.contains is not None:
            for i, item in enumerate(items):
                if self.valid(item, schema.contains, None):
                    matches += 1
                    anns.note_index(i)
            if matches == 0 and (schema.min_contains is None or schema.min_contains > 0):
                raise ValidationError(
                    f"contains: {items!r} does not have an item matching {schema.contains}"
                )
            if schema.min_contains is not None and matches < schema.min_contains:
                raise ValidationError(
                    f"minContains: contains validated {matches} items, "
                    f"less than {schema.min_contains}"
                )
            if schema.max_contains is not None and matches > schema.max_contains:
                raise ValidationError(
                    f"maxContains: contains validated {matches} items, "
                    f"greater than {schema.max_contains}"
                )

        if schema.min_items is not None and count < schema.min_items:
            raise ValidationError(
                f"minItems: array length {count} is less than {schema.min_items}"
            )
        if schema.max_items is not None and count > schema.max_items:
            raise ValidationError(
                f"maxItems: array length {count} is greater than {schema.max_items}"
            )
        if schema.unique_items and count > 1:
            buckets: dict[int, list[int]] = {}
            for i, item in enumerate(items):
                h = hash_value(item)
                for j in buckets.get(h, ()):
                    if equal(item, items[j]):
                        raise ValidationError(
                            f"uniqueItems: array items {i} and {j} are equal"
                        )
                buckets.setdefault(h, []).append(i)

        if schema.unevaluated_items is not None and not anns.all_items:
            start = anns.end_index
            for i, item in enumerate(items[start:], start=start):
                if i not in anns.evaluated_indexes:
                    self.validate(item, schema.unevaluated_items, None)
            anns.all_items = True

    def _apply_object(self, instance: Any, schema: Schema, anns: Annotations) -> None:
        is_struct = _is_struct(instance)
        if not is_struct:
            bad = next((k for k in instance if not isinstance(k, str)), None)
            if bad is not None:
                raise ValidationError(
                    f"map key type {type(bad).__name__} is not a string"
                )
        required = _required(schema)

        # Properties evaluated by this schema alone, for additionalProperties.
        evaluated: set[str] = set()
        for prop, sub in (schema.properties or {}).items():
            value = get_property(instance, prop)
            if value is UNSET:
                continue
            # A zero field of an optional property counts as missing.
            if is_struct and _is_zero(value) and prop not in required:
                continue
            self.validate(value, sub, None)
            evaluated.add(prop)
        if schema.pattern_properties:
            compiled = _compiled_pattern_properties(schema)
            for prop, value in iter_properties(instance):
                for regex, sub in compiled.items():
                    if regex.search(prop):
                        self.validate(value, sub, None)
                        evaluated.add(prop)
        if schema.additional_properties is not None:
            for prop, value in iter_properties(instance):
                if prop not in evaluated:
                    self.validate(value, schema.additional_properties, None)
                    evaluated.add(prop)
        anns.note_properties(evaluated)

        if schema.property_names is not None:
            for prop, _ in iter_properties(instance):
                self.validate(prop, schema.property_names, None)

        if schema.min_properties is not None or schema.max_properties is not None:
            low, high = num_properties_bounds(instance, required)
            if schema.min_properties is not None and high < schema.min_properties:
                raise ValidationError(
                    f"minProperties: object has {high} properties, "
                    f"less than {schema.min_properties}"
                )
            if schema.max_properties is not None and low > schema.max_properties:
                raise ValidationError(
                    f"maxProperties: object has {low} properties, "
                    f"greater than {schema.max_properties}"
                )

        def missing(props: list[str]) -> list[str]:
            return [p for p in props if get_property(instance, p) is UNSET]

        if schema.required is not None:
            absent = missing(schema.required)
            if absent:
                raise ValidationError(f"required: missing properties: {_qlist(absent)}")
        for prop, needed in (schema.dependent_required or {}).items():
            if get_property(instance, prop) is not UNSET:
                absent = missing(needed or [])
                if absent:
                    raise ValidationError(
                        f"dependentRequired[{_q(prop)}]: missing properties {_qlist(absent)}"
                    )
        for prop, sub in (schema.dependent_schemas or {}).items():
            if get_property(instance, prop) is not UNSET:
                self.validate(instance, sub, anns)

        if schema.unevaluated_properties is not None and not anns.all_properties:
            for prop, value in iter_properties(instance):
                if prop not in anns.evaluated_properties:
                    self.validate(value, schema.unevaluated_properties, None)
            anns.all_properties = True


def validate(instance: Any, schema: Schema) -> None:
    """Validate a JSON value against a schema.

    References are followed only if the schema has been resolved. Raises
    ValidationError if the instance is invalid, and SchemaError if the schema
    cannot be used (another draft, or an unresolved reference).
    """
    _check_version(schema)
    _Validator().validate(instance, schema, None)


def validate_defaults(root: Schema) -> None:
    """Validate every ``default`` in the tree against the schema holding it.

    Raises ValidationError for a default that does not validate, and
    SchemaError for schemas with $dynamicRef, which are not supported here.
    """
    _check_version(root)
    validator = _Validator()
    for schema in root.all():
        if schema.dynamic_ref:
            raise SchemaError(
                f"jsonschema: {schema}: validateDefaults does not support dynamic refs"
            )
        if schema.default is not UNSET:
            validator.validate(schema.default, schema, None)