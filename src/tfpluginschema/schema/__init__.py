"""Canonical provider schema model and the type signature codec."""

from tfpluginschema.schema.models import (
    Attribute,
    Block,
    CanonicalSchema,
    DescriptionKind,
    FunctionParameter,
    FunctionSignature,
    NestedBlockType,
    NestedObjectType,
    NestingMode,
)
from tfpluginschema.schema.types import SemanticType, decode_type, encode_type

__all__ = [
    "Attribute",
    "Block",
    "CanonicalSchema",
    "DescriptionKind",
    "FunctionParameter",
    "FunctionSignature",
    "NestedBlockType",
    "NestedObjectType",
    "NestingMode",
    "SemanticType",
    "decode_type",
    "encode_type",
]
