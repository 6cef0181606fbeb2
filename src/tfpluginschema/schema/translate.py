"""Translate wire schema responses into the canonical model.

Both generations share one tree walk. The differences between them are
confined to a ``WireAccessor``: how enum values map to nesting modes and
description kinds, and whether an attribute can carry a nested object type.

Translation is lenient in three places only:

- unknown or unset nesting modes become ``single``;
- anything other than ``MARKDOWN`` is a plain description;
- an undecodable type signature leaves the type unset and the walk continues.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from tfpluginschema.exceptions import TypeDecodeError
from tfpluginschema.plugin.wire import Generation, enum_name
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
from tfpluginschema.schema.types import SemanticType, decode_type

logger = logging.getLogger(__name__)

_NESTING_MODES = {
    "SINGLE": NestingMode.SINGLE,
    "GROUP": NestingMode.GROUP,
    "LIST": NestingMode.LIST,
    "SET": NestingMode.SET,
    "MAP": NestingMode.MAP,
}


class WireAccessor:
    """Reads generation-specific details off wire messages."""

    generation: Generation

    def nesting_mode(self, message: Any) -> NestingMode:
        return _NESTING_MODES.get(enum_name(message, "nesting") or "", NestingMode.SINGLE)

    def description_kind(self, message: Any) -> DescriptionKind:
        if enum_name(message, "description_kind") == "MARKDOWN":
            return DescriptionKind.MARKDOWN
        return DescriptionKind.PLAIN

    def nested_object(self, attribute: Any) -> Optional[Any]:
        return None


class GenerationAAccessor(WireAccessor):
    generation = Generation.A


class GenerationBAccessor(WireAccessor):
    generation = Generation.B

    def nested_object(self, attribute: Any) -> Optional[Any]:
        if attribute.HasField("nested_type"):
            return attribute.nested_type
        return None


_ACCESSORS: Dict[Generation, WireAccessor] = {
    Generation.A: GenerationAAccessor(),
    Generation.B: GenerationBAccessor(),
}


def accessor_for(generation: Generation) -> WireAccessor:
    return _ACCESSORS[Generation(generation)]


def translate(generation: Generation, response: Any) -> CanonicalSchema:
    """Convert a ``GetProviderSchema.Response`` of ``generation``.

    Args:
        generation: Wire generation the response was received over.
        response: The decoded response message.

    Returns:
        CanonicalSchema: The generation-independent schema. Categories the
        provider did not send are ``None``.
    """
    return _Translator(accessor_for(generation)).response(response)


class _Translator:
    def __init__(self, accessor: WireAccessor) -> None:
        self._accessor = accessor

    def response(self, response: Any) -> CanonicalSchema:
        self._log_diagnostics(response.diagnostics)

        config_schema = None
        if response.HasField("provider"):
            config_schema = self.schema(response.provider)

        return CanonicalSchema(
            config_schema=config_schema,
            resource_schemas=self._schema_map(response.resource_schemas),
            data_source_schemas=self._schema_map(response.data_source_schemas),
            ephemeral_resource_schemas=self._schema_map(response.ephemeral_resource_schemas),
            functions=self._function_map(response.functions),
        )

    def _schema_map(self, schemas: Any) -> Optional[Dict[str, Block]]:
        if not schemas:
            return None
        return {name: self.schema(schema) for name, schema in schemas.items()}

    def _function_map(self, functions: Any) -> Optional[Dict[str, FunctionSignature]]:
        if not functions:
            return None
        return {name: self.function(fn) for name, fn in functions.items()}

    def schema(self, schema: Any) -> Block:
        # The wire Schema wraps a Block; its version belongs on the top-level block.
        if not schema.HasField("block"):
            return Block(version=schema.version)
        return self.block(schema.block).model_copy(update={"version": schema.version})

    def block(self, block: Any) -> Block:
        attributes = None
        if block.attributes:
            attributes = {attr.name: self.attribute(attr) for attr in block.attributes}

        nested_blocks = None
        if block.block_types:
            nested_blocks = {nb.type_name: self.nested_block(nb) for nb in block.block_types}

        return Block(
            version=block.version,
            description=block.description,
            description_kind=self._accessor.description_kind(block),
            deprecated=block.deprecated,
            attributes=attributes,
            nested_blocks=nested_blocks,
        )

    def nested_block(self, nested: Any) -> NestedBlockType:
        return NestedBlockType(
            nesting_mode=self._accessor.nesting_mode(nested),
            block=self.block(nested.block) if nested.HasField("block") else None,
            min_items=nested.min_items,
            max_items=nested.max_items,
        )

    def attribute(self, attribute: Any) -> Attribute:
        nested = self._accessor.nested_object(attribute)
        return Attribute(
            type=_decode(attribute.type, f"attribute {attribute.name}"),
            nested_type=self.nested_object(nested) if nested is not None else None,
            description=attribute.description,
            description_kind=self._accessor.description_kind(attribute),
            deprecated=attribute.deprecated,
            required=attribute.required,
            optional=attribute.optional,
            computed=attribute.computed,
            sensitive=attribute.sensitive,
            write_only=attribute.write_only,
        )

    def nested_object(self, obj: Any) -> NestedObjectType:
        attributes = None
        if obj.attributes:
            attributes = {attr.name: self.attribute(attr) for attr in obj.attributes}
        return NestedObjectType(
            nesting_mode=self._accessor.nesting_mode(obj),
            attributes=attributes,
        )

    def function(self, fn: Any) -> FunctionSignature:
        parameters: Optional[List[FunctionParameter]] = None
        if fn.parameters:
            parameters = [self.parameter(p) for p in fn.parameters]

        variadic = None
        if fn.HasField("variadic_parameter"):
            variadic = self.parameter(fn.variadic_parameter)

        return_type = None
        if fn.HasField("return"):
            return_type = _decode(getattr(fn, "return").type, "function return")

        return FunctionSignature(
            summary=fn.summary,
            description=fn.description,
            deprecation_message=fn.deprecation_message,
            parameters=parameters,
            variadic_parameter=variadic,
            return_type=return_type,
        )

    def parameter(self, parameter: Any) -> FunctionParameter:
        return FunctionParameter(
            name=parameter.name,
            description=parameter.description,
            is_nullable=parameter.allow_null_value,
            type=_decode(parameter.type, f"parameter {parameter.name}"),
        )

    def _log_diagnostics(self, diagnostics: Any) -> None:
        for diagnostic in diagnostics:
            level = logging.WARNING if enum_name(diagnostic, "severity") == "ERROR" else logging.INFO
            logger.log(
                level,
                "Provider diagnostic (generation %s): %s %s",
                self._accessor.generation.name,
                diagnostic.summary,
                diagnostic.detail,
            )


def _decode(raw: bytes, where: str) -> Optional[SemanticType]:
    if not raw:
        return None
    try:
        return decode_type(raw)
    except TypeDecodeError as exc:
        logger.debug("Leaving type of %s unset: %s", where, exc)
        return None


__all__ = [
    "WireAccessor",
    "GenerationAAccessor",
    "GenerationBAccessor",
    "accessor_for",
    "translate",
]
