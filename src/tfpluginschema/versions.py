"""Provider version parsing, constraints and resolution.

Versions and constraints follow the HashiCorp conventions used by provider
registries rather than PEP 440:

- a version is ``[v]MAJOR[.MINOR[.PATCH...]][-PRERELEASE][+METADATA]``, with
  missing release segments treated as zero and metadata ignored for ordering;
- a constraint is a comma-separated list of ``OP VERSION`` terms where ``OP``
  is one of ``=``, ``!=``, ``>``, ``<``, ``>=``, ``<=`` or ``~>`` (no operator
  means ``=``);
- a pre-release version only satisfies terms that themselves name a
  pre-release of the same release segments.

Examples:
    >>> versions = [parse_version(v) for v in ("0.9.0", "1.0.0", "1.5.0", "2.0.0")]
    >>> str(latest_version_match(versions, Constraints.parse(">=1.0.0,<2.0.0")))
    '1.5.0'
    >>> str(resolve_version(versions, "~>0.9"))
    '0.9.0'
"""

from __future__ import annotations

import functools
import logging
import re
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, Optional, Sequence, Tuple

from tfpluginschema.exceptions import (
    ConstraintParseError,
    InvalidVersionError,
    NoMatchingVersionError,
    UnsortedVersionsError,
)

logger = logging.getLogger(__name__)

_VERSION_PATTERN = (
    r"v?(?P<release>[0-9]+(?:\.[0-9]+)*)"
    r"(?:-(?P<pre>[0-9A-Za-z\-~]+(?:\.[0-9A-Za-z\-~]+)*)"
    r"|(?P<bare_pre>[A-Za-z\-~][0-9A-Za-z\-~]*(?:\.[0-9A-Za-z\-~]+)*))?"
    r"(?:\+(?P<meta>[0-9A-Za-z\-~]+(?:\.[0-9A-Za-z\-~]+)*))?"
)
_VERSION_RE = re.compile(rf"^{_VERSION_PATTERN}$")
_CONSTRAINT_RE = re.compile(rf"^\s*(?P<op>~>|>=|<=|!=|=|>|<)?\s*(?P<version>{_VERSION_PATTERN})\s*$")

_MIN_SEGMENTS = 3


@functools.total_ordering
class ProviderVersion:
    """A parsed provider version that remembers how the registry spelled it."""

    __slots__ = ("original", "segments", "specified", "prerelease", "metadata")

    def __init__(
        self,
        original: str,
        segments: Tuple[int, ...],
        specified: int,
        prerelease: str = "",
        metadata: str = "",
    ) -> None:
        self.original = original
        self.segments = segments
        self.specified = specified
        self.prerelease = prerelease
        self.metadata = metadata

    @property
    def is_prerelease(self) -> bool:
        return bool(self.prerelease)

    def compare(self, other: ProviderVersion) -> int:
        """Return -1, 0 or 1 as ``self`` sorts before, with or after ``other``."""

        width = max(len(self.segments), len(other.segments))
        mine = self.segments + (0,) * (width - len(self.segments))
        theirs = other.segments + (0,) * (width - len(other.segments))
        if mine != theirs:
            return -1 if mine < theirs else 1
        return _compare_prereleases(self.prerelease, other.prerelease)

    def same_release(self, other: ProviderVersion) -> bool:
        width = max(len(self.segments), len(other.segments))
        return (
            self.segments + (0,) * (width - len(self.segments))
            == other.segments + (0,) * (width - len(other.segments))
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ProviderVersion):
            return NotImplemented
        return self.compare(other) == 0

    def __lt__(self, other: ProviderVersion) -> bool:
        if not isinstance(other, ProviderVersion):
            return NotImplemented
        return self.compare(other) < 0

    def __hash__(self) -> int:
        segments = list(self.segments)
        while segments and segments[-1] == 0:
            segments.pop()
        return hash((tuple(segments), self.prerelease))

    def __str__(self) -> str:
        return self.original

    def __repr__(self) -> str:
        return f"ProviderVersion({self.original!r})"


def _compare_prereleases(left: str, right: str) -> int:
    if left == right:
        return 0
    # A release sorts after any of its pre-releases.
    if not left:
        return 1
    if not right:
        return -1

    left_parts, right_parts = left.split("."), right.split(".")
    for a, b in zip(left_parts, right_parts):
        if a == b:
            continue
        a_numeric, b_numeric = a.isdigit(), b.isdigit()
        if a_numeric and b_numeric:
            return -1 if int(a) < int(b) else 1
        if a_numeric != b_numeric:
            return -1 if a_numeric else 1
        return -1 if a < b else 1
    if len(left_parts) == len(right_parts):
        return 0
    return -1 if len(left_parts) < len(right_parts) else 1


def parse_version(value: str) -> ProviderVersion:
    """Parse ``value``, stripping a leading ``v`` from the remembered spelling.

    Raises:
        InvalidVersionError: If ``value`` is not a version.
    """
    text = value.strip()
    match = _VERSION_RE.match(text)
    if match is None:
        raise InvalidVersionError(f"malformed version: {value!r}", context={"version": value})

    release = [int(part) for part in match.group("release").split(".")]
    specified = len(release)
    release.extend([0] * (_MIN_SEGMENTS - specified))
    return ProviderVersion(
        original=text[1:] if text.startswith("v") else text,
        segments=tuple(release),
        specified=specified,
        prerelease=match.group("pre") or match.group("bare_pre") or "",
        metadata=match.group("meta") or "",
    )


def is_exact_version(value: str) -> bool:
    """Return True if ``value`` names a single version rather than a constraint."""

    try:
        parse_version(value)
    except InvalidVersionError:
        return False
    return True


def _prerelease_check(version: ProviderVersion, bound: ProviderVersion) -> bool:
    if version.is_prerelease and bound.is_prerelease:
        return version.same_release(bound)
    if version.is_prerelease:
        return False
    return True


def _pessimistic(version: ProviderVersion, bound: ProviderVersion) -> bool:
    if not _prerelease_check(version, bound):
        return False
    if bound.is_prerelease and not version.is_prerelease:
        return False
    if version < bound:
        return False
    width = len(bound.segments)
    if width > len(version.segments):
        return False
    for i in range(bound.specified - 1):
        if version.segments[i] != bound.segments[i]:
            return False
    return bound.segments[width - 1] <= version.segments[width - 1]


_OPERATORS: Dict[str, Callable[[ProviderVersion, ProviderVersion], bool]] = {
    "=": lambda v, c: v == c,
    "!=": lambda v, c: v != c,
    ">": lambda v, c: _prerelease_check(v, c) and v > c,
    "<": lambda v, c: _prerelease_check(v, c) and v < c,
    ">=": lambda v, c: _prerelease_check(v, c) and v >= c,
    "<=": lambda v, c: _prerelease_check(v, c) and v <= c,
    "~>": _pessimistic,
}


@dataclass(frozen=True)
class Constraint:
    """A single ``OP VERSION`` term."""

    operator: str
    version: ProviderVersion

    def check(self, version: ProviderVersion) -> bool:
        return _OPERATORS[self.operator](version, self.version)

    def __str__(self) -> str:
        return f"{self.operator} {self.version}"


@dataclass(frozen=True)
class Constraints:
    """A conjunction of constraint terms."""

    terms: Tuple[Constraint, ...] = ()

    @classmethod
    def parse(cls, expression: str) -> Constraints:
        """Parse a comma-separated constraint expression.

        Raises:
            ConstraintParseError: If the expression is empty or any term is malformed.
        """
        terms = []
        for raw in expression.split(","):
            match = _CONSTRAINT_RE.match(raw)
            if match is None:
                raise ConstraintParseError(
                    f"malformed constraint: {raw.strip()!r}",
                    context={"expression": expression},
                )
            terms.append(Constraint(match.group("op") or "=", parse_version(match.group("version"))))
        return cls(tuple(terms))

    def check(self, version: ProviderVersion) -> bool:
        return all(term.check(version) for term in self.terms)

    def __len__(self) -> int:
        return len(self.terms)

    def __str__(self) -> str:
        return ", ".join(str(term) for term in self.terms)


def is_sorted(versions: Sequence[ProviderVersion]) -> bool:
    return all(a <= b for a, b in zip(versions, versions[1:]))


def sort_versions(versions: Iterable[ProviderVersion]) -> list:
    return sorted(versions)


def latest_version_match(
    versions: Sequence[ProviderVersion],
    constraints: Optional[Constraints] = None,
) -> ProviderVersion:
    """Return the greatest version in ``versions`` satisfying ``constraints``.

    Args:
        versions: Candidate versions in ascending order.
        constraints: Terms to satisfy; ``None`` or empty selects the last version.

    Raises:
        NoMatchingVersionError: If ``versions`` is empty or nothing matches.
        UnsortedVersionsError: If ``versions`` is not ascending. The input is
            never re-sorted.
    """
    if not versions:
        raise NoMatchingVersionError("no versions provided")
    if not is_sorted(versions):
        raise UnsortedVersionsError("versions are not sorted")
    if not constraints:
        return versions[-1]

    last_good = None
    for version in versions:
        if constraints.check(version):
            last_good = version

    if last_good is None:
        raise NoMatchingVersionError(
            f"no version matches constraints {constraints}",
            context={"constraints": str(constraints)},
        )
    return last_good


def resolve_version(versions: Sequence[ProviderVersion], expression: str) -> ProviderVersion:
    """Resolve a constraint expression against ``versions``.

    An empty or malformed expression is treated as no constraint at all, so
    the latest version is returned.
    """
    constraints = None
    if expression.strip():
        try:
            constraints = Constraints.parse(expression)
        except ConstraintParseError as exc:
            logger.warning("Ignoring version constraint %r, resolving to latest: %s", expression, exc)
    return latest_version_match(versions, constraints)


__all__ = [
    "ProviderVersion",
    "Constraint",
    "Constraints",
    "parse_version",
    "is_exact_version",
    "is_sorted",
    "sort_versions",
    "latest_version_match",
    "resolve_version",
]
