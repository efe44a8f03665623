import re
from dataclasses import dataclass, field
from typing import Optional
from urllib.parse import urlsplit

import pytest

from schemakit.resolve import (
    Resolved,
    ResolveOptions,
    check_structure,
    resolve,
    resolve_uris,
)
from schemakit.schema import Schema, false_schema
from schemakit.util import SchemaError
from schemakit.validate import ValidationError


def test_structure_dag_is_rejected():
    inner = Schema(type="number")
    dag = Schema(items=inner, contains=inner)
    with pytest.raises(SchemaError, match="do not form a tree"):
        check_structure(dag)


def test_structure_cycle_is_rejected():
    tree = Schema(type="number")
    tree.items = tree
    with pytest.raises(SchemaError, match="do not form a tree"):
        check_structure(tree)


def test_structure_nil_in_list():
    with pytest.raises(SchemaError, match="is nil"):
        check_structure(Schema(prefix_items=[None]))


def test_structure_nil_in_map():
    with pytest.raises(SchemaError, match="is nil"):
        check_structure(Schema(properties={"a": None}))


@pytest.mark.parametrize(
    "schema",
    [Schema(pattern="]["), Schema(pattern_properties={"*": Schema()})],
)
def test_check_local_bad_regexp(schema):
    with pytest.raises(SchemaError) as info:
        resolve(schema)
    assert re.search("regexp", str(info.value))


def test_vocabulary_rejected_without_draft():
    with pytest.raises(SchemaError, match=re.escape("$vocabulary")):
        resolve(Schema(vocabulary={"a": True}))


def test_paths_and_order():
    root = Schema(
        type="string",
        prefix_items=[Schema(type="int"), Schema(items=Schema(type="null"))],
        contains=Schema(properties={"~1": Schema(type="boolean"), "p": Schema()}),
    )
    check_structure(root)
    want = [
        (root, "root"),
        (root.contains, "/contains"),
        (root.contains.properties["p"], "/contains/properties/p"),
        (root.contains.properties["~1"], "/contains/properties/~01"),
        (root.prefix_items[0], "/prefixItems/0"),
        (root.prefix_items[1], "/prefixItems/1"),
        (root.prefix_items[1].items, "/prefixItems/1/items"),
    ]
    got = list(root.all())
    assert len(got) == len(want)
    for schema, (expected, path) in zip(got, want):
        assert schema is expected
        assert str(schema) == path


@pytest.mark.parametrize("base_uri", ["", "http://a.com"])
def test_resolve_uris(base_uri):
    root = Schema(
        id="http://b.com",
        items=Schema(id="/foo.json"),
        contains=Schema(
            id="/bar.json",
            anchor="a",
            dynamic_anchor="da",
            items=Schema(anchor="b", items=Schema(id="?items", anchor="c")),
        ),
    )
    got = resolve_uris(root, base_uri)

    want = {
        base_uri: root,
        "http://b.com/foo.json": root.items,
        "http://b.com/bar.json": root.contains,
        "http://b.com/bar.json?items": root.contains.items.items,
    }
    if base_uri != root.id:
        want[root.id] = root
    assert sorted(got) == sorted(want)
    for key, schema in want.items():
        assert got[key] is schema

    contains = root.contains
    deepest = contains.items.items
    want_anchors = {
        id(contains): {
            "a": (contains, False),
            "da": (contains, True),
            "b": (contains.items, False),
        },
        id(deepest): {"c": (deepest, False)},
    }
    for schema in root.all():
        expected = want_anchors.get(id(schema))
        if expected is None:
            assert schema._anchors is None
        else:
            assert schema._anchors == expected


def test_ref_cycle():
    schemas = {
        "root": Schema(ref="a"),
        "a": Schema(ref="b"),
        "b": Schema(ref="a"),
    }

    def loader(uri):
        name = urlsplit(uri).path[1:]
        if name not in schemas:
            raise LookupError("not found")
        return schemas[name]

    rs = resolve(schemas["root"], ResolveOptions(loader=loader))
    assert rs.schema.resolved_ref is schemas["a"]
    assert schemas["a"].resolved_ref is schemas["b"]
    assert schemas["b"].resolved_ref is schemas["a"]


def test_remote_schema_loaded_once():
    calls = []

    def loader(uri):
        calls.append(uri)
        return Schema(type="integer")

    root = Schema(
        all_of=[
            Schema(ref="http://example.com/s.json"),
            Schema(ref="http://example.com/s.json"),
        ]
    )
    rs = resolve(root, ResolveOptions(loader=loader))
    assert calls == ["http://example.com/s.json"]
    rs.validate(3)
    with pytest.raises(ValidationError):
        rs.validate("x")


def test_remote_ref_without_loader():
    with pytest.raises(SchemaError, match="no loader"):
        resolve(Schema(ref="http://example.com/other.json"))


def test_local_pointer_ref():
    root = Schema(defs={"s": Schema(type="string")}, ref="#/$defs/s")
    rs = resolve(root)
    assert root.resolved_ref is root.defs["s"]
    rs.validate("ok")
    with pytest.raises(ValidationError):
        rs.validate(1)


def test_anchor_ref():
    root = Schema(defs={"x": Schema(anchor="pos", minimum=0)}, ref="#pos")
    rs = resolve(root)
    assert root.resolved_ref is root.defs["x"]
    rs.validate(3)
    with pytest.raises(ValidationError, match="minimum"):
        rs.validate(-1)


def test_missing_anchor():
    with pytest.raises(SchemaError, match="no anchor"):
        resolve(Schema(ref="#missing"))


def test_dynamic_ref():
    root = Schema(
        id="http://example.com/root",
        dynamic_anchor="node",
        type="object",
        properties={"child": Schema(dynamic_ref="#node")},
    )
    rs = resolve(root)
    rs.validate({"child": {"child": {}}})
    with pytest.raises(ValidationError):
        rs.validate({"child": {"child": 1}})


def test_already_resolved():
    schema = Schema(type="string")
    resolve(schema)
    with pytest.raises(SchemaError, match="already resolved"):
        resolve(schema)


def test_id_with_fragment():
    with pytest.raises(SchemaError, match="must not have a fragment"):
        resolve(Schema(id="http://example.com/a#frag"))


def test_relative_id_without_base():
    with pytest.raises(SchemaError, match="does not resolve to an absolute URI"):
        resolve(Schema(id="foo.json"))


def test_base_uri_with_fragment():
    with pytest.raises(SchemaError, match="must not have a fragment"):
        resolve(Schema(), ResolveOptions(base_uri="http://example.com/a#x"))


def test_resolved_schema_is_root():
    schema = Schema(type="string")
    rs = resolve(schema)
    assert isinstance(rs, Resolved)
    assert rs.schema is schema


def test_other_draft_cannot_validate():
    rs = resolve(Schema(schema="http://example.com/other"))
    with pytest.raises(SchemaError, match="cannot validate version"):
        rs.validate(1)


def test_validate_errors_mention_path():
    schema = Schema(prefix_items=[Schema(contains=Schema(type="integer"))])
    rs = resolve(schema)
    with pytest.raises(ValidationError) as info:
        rs.validate([["1"]])
    assert "prefixItems/0" in str(info.value)


def test_validate_defaults_success():
    schema = Schema(
        properties={
            "a": Schema(type="integer", default=1),
            "b": Schema(type="string", default="s"),
        },
        default={"a": 1, "b": "two"},
    )
    rs = resolve(schema, ResolveOptions(validate_defaults=True))
    assert rs.schema is schema


def test_validate_defaults_failure():
    schema = Schema(
        properties={
            "a": Schema(type="integer", default=3),
            "b": Schema(type="string", default="s"),
        },
        default={"a": 1, "b": 2},
    )
    with pytest.raises(SchemaError, match=re.escape('has type "integer", want "string"')):
        resolve(schema, ResolveOptions(validate_defaults=True))


@dataclass
class _Defaults:
    A: int = 0
    B: int = 0
    C: int = 0


def _defaults_schema():
    schema = Schema(
        properties={
            "A": Schema(default=1),
            "B": Schema(default=2),
            "C": Schema(default=3),
        },
        required=["C"],
    )
    return resolve(schema, ResolveOptions(validate_defaults=True))


def test_apply_defaults_map():
    rs = _defaults_schema()
    instance = {"B": 0}
    rs.apply_defaults(instance)
    assert instance == {"A": 1, "B": 0}


def test_apply_defaults_struct():
    rs = _defaults_schema()
    instance = _Defaults(B=1)
    rs.apply_defaults(instance)
    assert instance == _Defaults(A=1, B=1, C=0)


@dataclass
class _StructInstance:
    I: int
    B: bool = field(default=False, metadata={"json": "b"})
    P: Optional[int] = None
    _u: int = 0


_STRUCT_CASES = [
    (lambda: Schema(min_properties=4), False),
    (lambda: Schema(min_properties=3), True),
    (lambda: Schema(max_properties=1), False),
    (lambda: Schema(max_properties=2), True),
    (lambda: Schema(required=["i"]), False),
    (lambda: Schema(required=["B"]), False),
    (lambda: Schema(property_names=Schema(min_length=2)), False),
    (lambda: Schema(properties={"b": Schema(type="boolean")}), True),
    (lambda: Schema(properties={"b": Schema(type="number")}), False),
    (lambda: Schema(required=["I"]), True),
    (lambda: Schema(required=["I", "P"]), True),
    (
        lambda: Schema(required=["I", "P"], properties={"P": Schema(type="number")}),
        False,
    ),
    (lambda: Schema(required=["I"], properties={"P": Schema(type="number")}), True),
    (lambda: Schema(required=["I"], additional_properties=false_schema()), False),
    (lambda: Schema(dependent_required={"b": ["u"]}), False),
    (lambda: Schema(dependent_schemas={"b": false_schema()}), False),
    (lambda: Schema(unevaluated_properties=false_schema()), False),
]


@pytest.mark.parametrize("make_schema, valid", _STRUCT_CASES)
def test_struct_instance(make_schema, valid):
    instance = _StructInstance(I=1, B=True, P=None)
    rs = resolve(make_schema())
    if valid:
        rs.validate(instance)
        assert instance == _StructInstance(I=1, B=True, P=None)
    else:
        with pytest.raises(ValidationError):
            rs.validate(instance)