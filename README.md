# schemakit

An implementation of JSON Schema, draft 2020-12, using only the Python
standard library. It can:

- represent a schema as a Python object (`Schema`) and convert it to and
  from JSON, keeping unknown keywords;
- resolve `$id`, `$anchor`, `$ref` and `$dynamicRef`, including remote
  references through a loader you supply (`resolve`);
- validate JSON values (dicts, lists, tuples, strings, numbers, booleans,
  `None`) and dataclass instances against a schema;
- fill in property defaults on an instance (`Resolved.apply_defaults`);
- follow RFC 6901 JSON Pointers into a schema.

## Installing

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Reading and writing schemas

```python
from schemakit.schema import Schema

schema = Schema.from_json('{"type": "object", "properties": {"n": {"type": "integer"}}}')
print(schema.to_json())
```

`Schema.from_dict` and `Schema.to_dict` do the same with decoded JSON
values. The booleans `true` and `false` are valid schemas: `true` becomes
the empty schema and `false` becomes `{"not": {}}` (also available as
`false_schema()`). Keywords the model does not know are kept in
`Schema.extra` and written back out. Integer keywords such as `minLength`
must hold whole numbers within the 32-bit range; malformed input raises
`SchemaError` (from `schemakit.util`).

Python attribute names follow the keywords in snake case; the keywords
that are Python reserved words get a trailing underscore (`not_`, `if_`,
`else_`). A single `type` is held in `type`, several in `types`.
`Schema.children()` yields the immediate subschemas and `Schema.all()`
every schema in the tree, in preorder.

## Validating

Resolve a schema before validating with it. Resolution checks that the
schema forms a tree, compiles its regular expressions and resolves every
reference.

```python
from schemakit.resolve import resolve, ResolveOptions
from schemakit.schema import Schema
from schemakit.validate import ValidationError

schema = Schema.from_dict({
    "type": "object",
    "properties": {"name": {"type": "string", "minLength": 1}},
    "required": ["name"],
})
resolved = resolve(schema, ResolveOptions())

resolved.validate({"name": "Al"})          # returns None

try:
    resolved.validate({"name": ""})
except ValidationError as err:
    print(err)                             # names the failing keyword and schema
```

`ResolveOptions` has three fields:

- `base_uri`: the URI the root schema is resolved against;
- `loader`: called with the URI string of any schema a reference names
  that is not under the root, and must return a `Schema`; without one,
  such references raise `SchemaError`;
- `validate_defaults`: when true, every `default` value is validated
  against the schema that holds it.

A schema can be resolved only once. `Resolved.schema` gives back the
resolved schema. `schemakit.validate.validate(instance, schema)` can also
be called directly on a schema without references.

For dataclass instances, public fields are the properties. A field's
`"json"` metadata may rename it (`field(metadata={"json": "name"})`), drop
it (`"-"`), or mark it optional (`"name,omitempty"`); an optional field
holding its zero value is treated as absent.

## Applying defaults

```python
from schemakit.resolve import resolve, ResolveOptions
from schemakit.schema import Schema

schema = Schema.from_dict({"properties": {"level": {"default": 1}}})
resolved = resolve(schema, ResolveOptions(validate_defaults=True))
data = {}
resolved.apply_defaults(data)
assert data == {"level": 1}
```

Defaults are applied only to properties that are not required: missing
keys are added to mappings, and dataclass fields holding their zero value
are set.

## Other pieces

- `schemakit.json_pointer`: `parse_json_pointer`, `escape_segment`,
  `unescape_segment`, and `dereference_json_pointer`, which returns the
  subschema a pointer refers to.
- `schemakit.util`: `equal` compares JSON values with mathematical number
  equality (`1 == 1.0`); `json_type` names the JSON type of a value;
  `json_number` returns a number's exact `Fraction`; `hash_value` hashes
  values consistently with `equal`.
- `schemakit.annotations`: `Annotations` records which items and
  properties were evaluated, for `unevaluatedItems` and
  `unevaluatedProperties`.
- `schemakit.process`: `CommandPipe(args, timeout=5.0)` runs a command
  and talks to it over its standard input and output. `close()` closes
  its input, waits, then terminates and finally kills it if it does not
  exit within the timeout; it returns the exit status and raises
  `CalledProcessError` for a non-zero one. It can be used as a context
  manager.

## Limits

- Only draft 2020-12 is validated; a schema whose `$schema` names another
  draft is rejected, and `$vocabulary` is accepted only alongside the
  2020-12 `$schema`.
- The `format` keyword is kept but not checked.
- Patterns use Python's `re` module, not ECMA-262 regular expressions.
- The package does not build schemas from Python types, and it has no
  command-line tool.