"""Tests for type signature decoding."""

import pytest

from tfpluginschema.exceptions import TypeDecodeError
from tfpluginschema.schema.types import (
    BOOL,
    DYNAMIC,
    NUMBER,
    STRING,
    CollectionKind,
    CollectionType,
    ObjectType,
    TupleType,
    decode_type,
    encode_type,
    list_of,
    map_of,
    object_of,
    set_of,
)


class TestStrictDecoding:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            pytest.param(b'"string"', STRING, id="string"),
            pytest.param(b'"number"', NUMBER, id="number"),
            pytest.param(b'"bool"', BOOL, id="bool"),
            pytest.param(b'"dynamic"', DYNAMIC, id="dynamic"),
            pytest.param(b'["list", "string"]', list_of(STRING), id="list"),
            pytest.param(b'["set", "number"]', set_of(NUMBER), id="set"),
            pytest.param(b'["map", "bool"]', map_of(BOOL), id="map"),
        ],
    )
    def test_simple_types(self, raw, expected):
        assert decode_type(raw) == expected

    def test_nested_collections(self):
        decoded = decode_type(b'["list", ["map", ["set", "string"]]]')

        assert decoded == list_of(map_of(set_of(STRING)))
        assert str(decoded) == "list(map(set(string)))"

    def test_object_with_nested_attributes(self):
        decoded = decode_type(b'["object", {"name": "string", "ports": ["list", "number"]}]')

        assert isinstance(decoded, ObjectType)
        assert decoded.attributes == {"name": STRING, "ports": list_of(NUMBER)}
        assert decoded.optional == frozenset()

    def test_object_optional_attributes(self):
        decoded = decode_type(b'["object", {"a": "string", "b": "number"}, ["b"]]')

        assert decoded.optional == frozenset({"b"})

    def test_optional_attribute_must_exist(self):
        with pytest.raises(TypeDecodeError):
            decode_type(b'["object", {"a": "string"}, ["missing"]]')

    def test_tuple(self):
        decoded = decode_type(b'["tuple", ["string", ["list", "bool"]]]')

        assert decoded == TupleType((STRING, list_of(BOOL)))

    def test_list_of_objects(self):
        decoded = decode_type(b'["list", ["object", {"id": "string"}]]')

        assert isinstance(decoded, CollectionType)
        assert decoded.kind is CollectionKind.LIST
        assert decoded.element == object_of({"id": STRING})


class TestLooseDecoding:
    def test_loose_collection(self):
        assert decode_type(b'{"list": "string"}') == list_of(STRING)
        assert decode_type(b'{"set": "bool"}') == set_of(BOOL)
        assert decode_type(b'{"map": "number"}') == map_of(NUMBER)

    def test_loose_object(self):
        assert decode_type(b'{"object": {"a": "number", "b": "string"}}') == object_of(
            {"a": NUMBER, "b": STRING}
        )

    def test_loose_form_only_takes_primitive_leaves(self):
        with pytest.raises(TypeDecodeError):
            decode_type(b'{"list": ["list", "string"]}')

    def test_loose_form_has_no_dynamic(self):
        with pytest.raises(TypeDecodeError):
            decode_type(b'{"list": "dynamic"}')


class TestDecodeErrors:
    @pytest.mark.parametrize(
        "raw",
        [
            pytest.param(b"", id="empty"),
            pytest.param(b"not json", id="not-json"),
            pytest.param(b'"text"', id="unknown-primitive"),
            pytest.param(b'["list"]', id="list-without-element"),
            pytest.param(b'["list", "string", "number"]', id="list-extra-element"),
            pytest.param(b'["frozenset", "string"]', id="unknown-kind"),
            pytest.param(b"[]", id="empty-array"),
            pytest.param(b"42", id="number-literal"),
            pytest.param(b'{"list": "string", "map": "string"}', id="loose-two-keys"),
        ],
    )
    def test_rejects(self, raw):
        with pytest.raises(TypeDecodeError):
            decode_type(raw)


def test_deep_nesting_is_a_decode_error():
    depth = 5000
    raw = (b'["list",' * depth) + b'"string"' + (b"]" * depth)

    with pytest.raises(TypeDecodeError, match="nested too deeply"):
        decode_type(raw)


@pytest.mark.parametrize(
    "semantic_type",
    [
        pytest.param(list_of(STRING), id="list"),
        pytest.param(set_of(NUMBER), id="set"),
        pytest.param(map_of(BOOL), id="map"),
        pytest.param(object_of({"ports": list_of(NUMBER), "names": list_of(STRING)}), id="object-of-lists"),
    ],
)
def test_round_trip(semantic_type):
    assert decode_type(encode_type(semantic_type)) == semantic_type


def test_types_containing_objects_are_hashable():
    t = list_of(object_of({"a": STRING, "b": map_of(NUMBER)}, frozenset({"b"})))
    same = decode_type(encode_type(t))

    assert hash(t) == hash(same)
    assert len({t, same}) == 1


def test_encode_produces_strict_form():
    t = object_of({"name": STRING, "tags": map_of(STRING)}, frozenset({"tags"}))

    assert decode_type(encode_type(t)) == t
    assert encode_type(list_of(STRING)) == b'["list","string"]'


def test_loose_input_reencodes_strictly():
    decoded = decode_type(b'{"map": "number"}')

    assert encode_type(decoded) == b'["map","number"]'
