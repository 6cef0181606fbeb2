"""Property-based tests for version resolution.

Invariants checked over generated ascending version lists and constraint
expressions:

- with no constraint the resolver returns the greatest version;
- the resolved version satisfies the constraint and no greater version does;
- input that is not ascending is always rejected;
- an empty version list always fails.
"""

import pytest
from hypothesis import given, settings, strategies as st

from tfpluginschema.exceptions import NoMatchingVersionError, UnsortedVersionsError
from tfpluginschema.versions import Constraints, latest_version_match, parse_version, resolve_version

releases = st.tuples(
    st.integers(min_value=0, max_value=5),
    st.integers(min_value=0, max_value=5),
    st.integers(min_value=0, max_value=5),
)


@st.composite
def version_lists(draw, min_size=1, max_size=12):
    """Strategy for ascending, duplicate-free lists of release versions."""
    triples = draw(st.lists(releases, min_size=min_size, max_size=max_size, unique=True))
    return [parse_version(".".join(str(n) for n in t)) for t in sorted(triples)]


@st.composite
def constraint_terms(draw):
    op = draw(st.sampled_from(["", "=", "!=", ">", "<", ">=", "<=", "~>"]))
    major, minor, patch = draw(releases)
    if op == "~>" and draw(st.booleans()):
        return f"~>{major}.{minor}"
    return f"{op}{major}.{minor}.{patch}"


constraint_expressions = st.lists(constraint_terms(), min_size=1, max_size=3).map(",".join)


class TestResolutionProperties:
    @given(version_lists())
    def test_no_constraint_selects_greatest(self, versions):
        assert latest_version_match(versions) == max(versions)
        assert resolve_version(versions, "") == max(versions)

    @given(version_lists(), constraint_expressions)
    @settings(max_examples=200)
    def test_result_is_last_match(self, versions, expression):
        constraints = Constraints.parse(expression)
        matching = [v for v in versions if constraints.check(v)]

        if not matching:
            with pytest.raises(NoMatchingVersionError):
                latest_version_match(versions, constraints)
            return

        result = latest_version_match(versions, constraints)
        assert constraints.check(result)
        assert not any(constraints.check(v) for v in versions if v > result)
        assert result == matching[-1]

    @given(version_lists(min_size=2), st.one_of(st.none(), constraint_expressions))
    def test_unsorted_input_is_rejected(self, versions, expression):
        constraints = None if expression is None else Constraints.parse(expression)

        with pytest.raises(UnsortedVersionsError):
            latest_version_match(list(reversed(versions)), constraints)

    @given(st.one_of(st.none(), constraint_expressions))
    def test_empty_input_fails(self, expression):
        constraints = None if expression is None else Constraints.parse(expression)

        with pytest.raises(NoMatchingVersionError):
            latest_version_match([], constraints)
