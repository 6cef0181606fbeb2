"""Property-based tests for type signature encoding and decoding."""

from hypothesis import given, settings, strategies as st

from tfpluginschema.schema.types import (
    BOOL,
    DYNAMIC,
    NUMBER,
    STRING,
    TupleType,
    decode_type,
    encode_type,
    list_of,
    map_of,
    object_of,
    set_of,
)

primitives = st.sampled_from([STRING, NUMBER, BOOL, DYNAMIC])
attribute_names = st.text(alphabet="abcdefghijklmnopqrstuvwxyz_", min_size=1, max_size=8)


@st.composite
def object_types(draw, children):
    """Strategy for object types with an optional-attribute subset."""
    attributes = draw(st.dictionaries(attribute_names, children, min_size=1, max_size=3))
    optional = draw(st.sets(st.sampled_from(sorted(attributes))))
    return object_of(attributes, frozenset(optional))


def _extend(children):
    return st.one_of(
        st.builds(list_of, children),
        st.builds(set_of, children),
        st.builds(map_of, children),
        object_types(children),
        st.lists(children, max_size=3).map(lambda ts: TupleType(tuple(ts))),
    )


semantic_types = st.recursive(primitives, _extend, max_leaves=12)

# One level of list, set or map over a primitive.
flat_collections = st.one_of(
    st.builds(list_of, primitives),
    st.builds(set_of, primitives),
    st.builds(map_of, primitives),
)


class TestRoundTrip:
    @given(primitives)
    def test_primitives(self, t):
        assert decode_type(encode_type(t)) == t

    @given(flat_collections)
    def test_flat_collections(self, t):
        assert decode_type(encode_type(t)) == t

    @given(st.dictionaries(attribute_names, st.builds(list_of, primitives), min_size=1, max_size=4))
    def test_objects_of_lists(self, attributes):
        t = object_of(attributes)

        assert decode_type(encode_type(t)) == t

    @given(semantic_types)
    @settings(max_examples=200)
    def test_arbitrary_nesting(self, t):
        decoded = decode_type(encode_type(t))

        assert decoded == t
        assert hash(decoded) == hash(t)
        assert str(decoded) == str(t)
