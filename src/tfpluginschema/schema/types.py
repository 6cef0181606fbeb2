"""Semantic value types and their compact JSON type signatures.

Providers describe attribute, parameter and return types as opaque bytes that
hold a JSON type signature. The modern (strict) encoding is:

    "string" | "number" | "bool" | "dynamic"
    ["list", T] | ["set", T] | ["map", T]
    ["object", {"name": T, ...}] | ["object", {...}, ["optional", ...]]
    ["tuple", [T, ...]]

and nests arbitrarily. Some older providers sent a looser form such as
``{"list": "string"}`` or ``{"object": {"a": "number"}}``; ``decode_type``
accepts that as a fallback, with primitive leaves only.

Examples:
    >>> decode_type(b'["list", "string"]')
    CollectionType(kind=<CollectionKind.LIST: 'list'>, element=PrimitiveType(name='string'))
    >>> str(decode_type(b'{"map": "number"}'))
    'map(number)'
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, FrozenSet, Mapping, Tuple

from tfpluginschema.exceptions import TypeDecodeError


class SemanticType(ABC):
    """Base class of the semantic type union."""

    @abstractmethod
    def to_json(self) -> Any:
        """Return the strict JSON-compatible encoding of this type."""


@dataclass(frozen=True)
class PrimitiveType(SemanticType):
    name: str

    def to_json(self) -> Any:
        return self.name

    def __str__(self) -> str:
        return self.name


STRING = PrimitiveType("string")
NUMBER = PrimitiveType("number")
BOOL = PrimitiveType("bool")
DYNAMIC = PrimitiveType("dynamic")

# The loose historical encoding only ever carried these three.
_PRIMITIVES = {t.name: t for t in (STRING, NUMBER, BOOL)}
_STRICT_PRIMITIVES = {**_PRIMITIVES, DYNAMIC.name: DYNAMIC}


class CollectionKind(StrEnum):
    LIST = "list"
    SET = "set"
    MAP = "map"


_COLLECTION_KINDS = frozenset(kind.value for kind in CollectionKind)


@dataclass(frozen=True)
class CollectionType(SemanticType):
    """A list, set or map whose elements all share one type."""

    kind: CollectionKind
    element: SemanticType

    def to_json(self) -> Any:
        return [self.kind.value, self.element.to_json()]

    def __str__(self) -> str:
        return f"{self.kind.value}({self.element})"


@dataclass(frozen=True)
class ObjectType(SemanticType):
    """An object with named attributes.

    Attributes:
        attributes: Attribute name to type.
        optional: Names of attributes that may be omitted.
    """

    attributes: Mapping[str, SemanticType]
    optional: FrozenSet[str] = field(default_factory=frozenset)

    def to_json(self) -> Any:
        encoded = ["object", {name: t.to_json() for name, t in self.attributes.items()}]
        if self.optional:
            encoded.append(sorted(self.optional))
        return encoded

    def __hash__(self) -> int:
        return hash((tuple(sorted(self.attributes.items())), self.optional))

    def __str__(self) -> str:
        inner = ", ".join(f"{name}={t}" for name, t in sorted(self.attributes.items()))
        return f"object({{{inner}}})"


@dataclass(frozen=True)
class TupleType(SemanticType):
    elements: Tuple[SemanticType, ...]

    def to_json(self) -> Any:
        return ["tuple", [t.to_json() for t in self.elements]]

    def __str__(self) -> str:
        return f"tuple([{', '.join(str(t) for t in self.elements)}])"


def list_of(element: SemanticType) -> CollectionType:
    return CollectionType(CollectionKind.LIST, element)


def set_of(element: SemanticType) -> CollectionType:
    return CollectionType(CollectionKind.SET, element)


def map_of(element: SemanticType) -> CollectionType:
    return CollectionType(CollectionKind.MAP, element)


def object_of(attributes: Mapping[str, SemanticType], optional: FrozenSet[str] = frozenset()) -> ObjectType:
    return ObjectType(dict(attributes), frozenset(optional))


def encode_type(semantic_type: SemanticType) -> bytes:
    """Encode ``semantic_type`` in the strict type-signature form."""

    return json.dumps(semantic_type.to_json(), separators=(",", ":")).encode("utf-8")


def decode_type(raw: bytes) -> SemanticType:
    """Decode a JSON type signature.

    Args:
        raw: Bytes sent by the provider.

    Returns:
        SemanticType: The decoded type.

    Raises:
        TypeDecodeError: If ``raw`` is empty, not JSON, or describes neither a
            strict nor a loose type signature.
    """
    if not raw:
        raise TypeDecodeError("empty type bytes")

    try:
        payload = json.loads(raw)
    except RecursionError:
        raise TypeDecodeError("type signature is nested too deeply") from None
    except (ValueError, UnicodeDecodeError) as exc:
        raise TypeDecodeError(f"type signature is not valid JSON: {exc}") from exc

    try:
        return _decode_strict(payload)
    except RecursionError:
        raise TypeDecodeError("type signature is nested too deeply") from None
    except TypeDecodeError as strict_error:
        try:
            return _decode_loose(payload)
        except TypeDecodeError:
            raise strict_error from None


def _decode_strict(payload: Any) -> SemanticType:
    if isinstance(payload, str):
        try:
            return _STRICT_PRIMITIVES[payload]
        except KeyError:
            raise TypeDecodeError(f"unsupported primitive type: {payload}") from None

    if not isinstance(payload, list) or not payload or not isinstance(payload[0], str):
        raise TypeDecodeError("invalid complex type description")

    kind, args = payload[0], payload[1:]
    if kind in _COLLECTION_KINDS:
        if len(args) != 1:
            raise TypeDecodeError(f"{kind} type must have exactly one element type")
        return CollectionType(CollectionKind(kind), _decode_strict(args[0]))

    if kind == "object":
        if len(args) not in (1, 2) or not isinstance(args[0], dict):
            raise TypeDecodeError("object type must have an attribute map")
        attributes = {name: _decode_strict(t) for name, t in args[0].items()}
        optional: FrozenSet[str] = frozenset()
        if len(args) == 2:
            if not isinstance(args[1], list) or not all(isinstance(n, str) for n in args[1]):
                raise TypeDecodeError("object optional attributes must be a list of names")
            optional = frozenset(args[1])
            unknown = optional - attributes.keys()
            if unknown:
                raise TypeDecodeError(f"optional attributes not in object: {sorted(unknown)}")
        return ObjectType(attributes, optional)

    if kind == "tuple":
        if len(args) != 1 or not isinstance(args[0], list):
            raise TypeDecodeError("tuple type must have a list of element types")
        return TupleType(tuple(_decode_strict(t) for t in args[0]))

    raise TypeDecodeError(f"unsupported type kind: {kind}")


def _decode_loose(payload: Any) -> SemanticType:
    if isinstance(payload, str):
        return _primitive(payload)

    if isinstance(payload, dict) and len(payload) == 1:
        (kind, inner), = payload.items()
        if kind in _COLLECTION_KINDS and isinstance(inner, str):
            return CollectionType(CollectionKind(kind), _primitive(inner))
        if kind == "object" and isinstance(inner, dict):
            attributes = {}
            for name, leaf in inner.items():
                if not isinstance(leaf, str):
                    raise TypeDecodeError(f"invalid object attribute type for {name}")
                attributes[name] = _primitive(leaf)
            return ObjectType(attributes)

    raise TypeDecodeError("invalid complex type description")


def _primitive(name: str) -> PrimitiveType:
    try:
        return _PRIMITIVES[name]
    except KeyError:
        raise TypeDecodeError(f"unsupported primitive type: {name}") from None


__all__ = [
    "SemanticType",
    "PrimitiveType",
    "CollectionKind",
    "CollectionType",
    "ObjectType",
    "TupleType",
    "STRING",
    "NUMBER",
    "BOOL",
    "DYNAMIC",
    "list_of",
    "set_of",
    "map_of",
    "object_of",
    "encode_type",
    "decode_type",
]
