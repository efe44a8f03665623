import copy

import pytest

from schemakit.schema import UNSET, Schema, false_schema
from schemakit.util import SchemaError


@pytest.mark.parametrize(
    "schema",
    [
        Schema(type="null"),
        Schema(types=["null", "number"]),
        Schema(type="string", min_length=20),
        Schema(minimum=20.0),
        Schema(items=Schema(type="integer")),
        Schema(const=0),
        Schema(const=None),
        Schema(const=[]),
        Schema(const={}),
        Schema(default=1),
        Schema(default=None),
        Schema(extra={"test": "value"}),
    ],
)
def test_python_round_trip(schema):
    got = Schema.from_json(schema.to_json())
    assert got.to_dict() == schema.to_dict()
    assert got.const == schema.const
    assert got.default == schema.default


def test_round_trip_keeps_null_const_and_default():
    got = Schema.from_json(Schema(const=None, default=None).to_json())
    assert got.const is None
    assert got.default is None
    assert Schema.from_json("{}").const is UNSET


@pytest.mark.parametrize(
    "text, want",
    [
        ("true", "{}"),
        ("false", '{"not":{}}'),
        ('{"type":"", "enum":null}', "{}"),
        ('{"minimum":1}', '{"minimum":1}'),
        ('{"minimum":1.0}', '{"minimum":1}'),
        ('{"minLength":1.0}', '{"minLength":1}'),
        ('{"$vocabulary":{"b":true, "a":false}}', '{"$vocabulary":{"a":false,"b":true}}'),
        ('{"unk":0}', '{"unk":0}'),
        (
            '{"comment":"test","type":"example","unk":0}',
            '{"type":"example","comment":"test","unk":0}',
        ),
        ('{"extra":0}', '{"extra":0}'),
        ('{"Extra":0}', '{"Extra":0}'),
    ],
)
def test_json_round_trip(text, want):
    assert Schema.from_json(text).to_json() == want


@pytest.mark.parametrize(
    "text, want",
    [
        ("1", "cannot unmarshal number"),
        ('{"type":1}', 'invalid value for "type"'),
        ('{"type":null}', 'invalid value for "type"'),
        ('{"minLength":1.5}', "not an integer value"),
        ('{"maxLength":1.5}', "not an integer value"),
        ('{"minItems":1.5}', "not an integer value"),
        ('{"maxItems":1.5}', "not an integer value"),
        ('{"minProperties":1.5}', "not an integer value"),
        ('{"maxProperties":1.5}', "not an integer value"),
        ('{"minContains":1.5}', "not an integer value"),
        ('{"maxContains":1.5}', "not an integer value"),
        ('{"maxContains":2147483648}', "out of range"),
        ('{"minLength":9e99}', "cannot be unmarshaled"),
        ('{"minLength":"1.5"}', "not a number"),
        ('{"minimum":true}', "not a number"),
        ('{"title":3}', "title"),
    ],
)
def test_unmarshal_errors(text, want):
    with pytest.raises(SchemaError, match=want):
        Schema.from_json(text)


def test_invalid_json_text():
    with pytest.raises(SchemaError, match="invalid JSON"):
        Schema.from_json("{")


def test_decoded_field_types():
    s = Schema.from_json('{"minLength":1.0,"minimum":1,"items":null,"required":["a"]}')
    assert s.min_length == 1 and isinstance(s.min_length, int)
    assert s.minimum == 1.0 and isinstance(s.minimum, float)
    assert s.items is None
    assert s.required == ["a"]


def test_type_list_becomes_types():
    s = Schema.from_json('{"type":["null","string"]}')
    assert s.types == ["null", "string"]
    assert s.type == ""


def test_boolean_schemas():
    assert Schema.from_dict(True).to_dict() == {}
    assert Schema.from_dict(False).to_dict() == {"not": {}}


def test_false_schema_is_fresh():
    a, b = false_schema(), false_schema()
    assert a.to_dict() == {"not": {}}
    assert a is not b and a.not_ is not b.not_


def test_extra_duplicating_field_is_rejected():
    with pytest.raises(SchemaError, match="duplicate"):
        Schema(title="x", extra={"title": "y"}).to_json()
    with pytest.raises(SchemaError, match="duplicate"):
        Schema(extra={"type": "string"}).to_dict()


def test_basic_checks():
    with pytest.raises(SchemaError, match="type"):
        Schema(type="string", types=["null"]).basic_checks()
    with pytest.raises(SchemaError, match="defs"):
        Schema(defs={}, definitions={}).basic_checks()
    with pytest.raises(SchemaError):
        Schema(type="string", types=["null"]).to_json()


def test_map_keys_sorted():
    s = Schema(properties={"b": Schema(), "a": Schema(type="string")})
    assert list(s.to_dict()["properties"]) == ["a", "b"]
    assert s.to_json() == '{"properties":{"a":{"type":"string"},"b":{}}}'


def test_all_visits_in_sorted_preorder():
    root = Schema(
        type="string",
        prefix_items=[Schema(type="int"), Schema(items=Schema(type="null"))],
        contains=Schema(properties={"~1": Schema(type="boolean"), "p": Schema()}),
    )
    want = [
        root,
        root.contains,
        root.contains.properties["p"],
        root.contains.properties["~1"],
        root.prefix_items[0],
        root.prefix_items[1],
        root.prefix_items[1].items,
    ]
    assert [id(s) for s in root.all()] == [id(s) for s in want]


def test_children_are_immediate_only():
    inner = Schema(type="null")
    middle = Schema(items=inner)
    root = Schema(not_=middle, all_of=[Schema(), None])
    children = list(root.children())
    assert len(children) == 2
    assert children[0] is root.all_of[0]
    assert children[1] is middle
    assert all(c is not inner for c in children)


def test_str_of_anonymous_schema():
    assert str(Schema()) == "<anonymous schema>"


def test_unset_survives_copying():
    s = copy.deepcopy(Schema(type="string"))
    assert s.const is UNSET
    assert s.default is UNSET
    assert s.type == "string"


def test_large_float_keeps_exponent():
    assert Schema(maximum=1e21).to_json() == '{"maximum":1e+21}'


def test_nan_cannot_be_encoded():
    with pytest.raises(SchemaError, match="cannot encode"):
        Schema(minimum=float("nan")).to_json()