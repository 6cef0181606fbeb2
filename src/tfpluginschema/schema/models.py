"""Canonical, generation-independent provider schema models.

Both wire generations are translated into these models, so callers never need
to know which protocol a provider spoke. Serialised output follows the
terraform-json layout (``provider``, ``block_types``, ``nesting_mode``, ...)
with types written in their compact JSON signature form.

Absent categories and empty maps are ``None`` rather than ``{}``, mirroring
what the provider actually sent.
"""

from __future__ import annotations

import json
from enum import StrEnum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer

from tfpluginschema.schema.types import SemanticType


class DescriptionKind(StrEnum):
    PLAIN = "plain"
    MARKDOWN = "markdown"


class NestingMode(StrEnum):
    SINGLE = "single"
    GROUP = "group"
    LIST = "list"
    SET = "set"
    MAP = "map"


class _SchemaModel(BaseModel):
    model_config = ConfigDict(
        arbitrary_types_allowed=True,
        populate_by_name=True,
        use_enum_values=False,
    )


class Attribute(_SchemaModel):
    """A single attribute of a block or nested object.

    At most one of ``type`` and ``nested_type`` is set for a well-formed
    provider; both are ``None`` when the type signature could not be decoded.
    """

    type: Optional[SemanticType] = None
    nested_type: Optional[NestedObjectType] = None
    description: str = ""
    description_kind: DescriptionKind = DescriptionKind.PLAIN
    deprecated: bool = False
    required: bool = False
    optional: bool = False
    computed: bool = False
    sensitive: bool = False
    write_only: bool = False

    @field_serializer("type")
    def _serialize_type(self, value: Optional[SemanticType]) -> Any:
        return None if value is None else value.to_json()


class NestedObjectType(_SchemaModel):
    """Nested attribute type (protocol generation B only)."""

    nesting_mode: NestingMode = NestingMode.SINGLE
    attributes: Optional[Dict[str, Attribute]] = None


class NestedBlockType(_SchemaModel):
    nesting_mode: NestingMode = NestingMode.SINGLE
    block: Optional[Block] = None
    min_items: int = 0
    max_items: int = 0


class Block(_SchemaModel):
    """A configuration block: attributes plus nested block types.

    Attributes:
        version: Schema version for top-level blocks, wire block version otherwise.
        attributes: Attribute name to attribute, ``None`` when there are none.
        nested_blocks: Block type name to nested block, ``None`` when there are none.
    """

    version: int = 0
    description: str = ""
    description_kind: DescriptionKind = DescriptionKind.PLAIN
    deprecated: bool = False
    attributes: Optional[Dict[str, Attribute]] = None
    nested_blocks: Optional[Dict[str, NestedBlockType]] = Field(default=None, alias="block_types")


class FunctionParameter(_SchemaModel):
    name: str = ""
    description: str = ""
    is_nullable: bool = False
    type: Optional[SemanticType] = None

    @field_serializer("type")
    def _serialize_type(self, value: Optional[SemanticType]) -> Any:
        return None if value is None else value.to_json()


class FunctionSignature(_SchemaModel):
    summary: str = ""
    description: str = ""
    deprecation_message: str = ""
    parameters: Optional[List[FunctionParameter]] = None
    variadic_parameter: Optional[FunctionParameter] = None
    return_type: Optional[SemanticType] = None

    @field_serializer("return_type")
    def _serialize_return_type(self, value: Optional[SemanticType]) -> Any:
        return None if value is None else value.to_json()


class CanonicalSchema(_SchemaModel):
    """The complete schema of one provider.

    Examples:
        >>> schema = CanonicalSchema()
        >>> schema.resource_schemas is None
        True
    """

    config_schema: Optional[Block] = Field(default=None, alias="provider")
    resource_schemas: Optional[Dict[str, Block]] = None
    data_source_schemas: Optional[Dict[str, Block]] = None
    ephemeral_resource_schemas: Optional[Dict[str, Block]] = None
    functions: Optional[Dict[str, FunctionSignature]] = None

    def to_dict(self) -> Dict[str, Any]:
        """Return the terraform-json style mapping, omitting unset values."""

        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def to_json(self, indent: Optional[int] = None) -> str:
        return json.dumps(self.to_dict(), indent=indent, sort_keys=True)


Attribute.model_rebuild()
NestedObjectType.model_rebuild()
NestedBlockType.model_rebuild()
Block.model_rebuild()


__all__ = [
    "DescriptionKind",
    "NestingMode",
    "Attribute",
    "NestedObjectType",
    "NestedBlockType",
    "Block",
    "FunctionParameter",
    "FunctionSignature",
    "CanonicalSchema",
]
