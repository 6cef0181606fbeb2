"""Wire message classes for both plugin protocol generations.

The provider RPC surface we need is tiny (a single schema call), so instead of
shipping generated ``_pb2`` modules the message descriptors are assembled at
import time from ``descriptor_pb2`` and turned into concrete classes through a
private ``DescriptorPool``. Field numbers match the published ``tfplugin5`` and
``tfplugin6`` definitions, so the classes are wire compatible with real
providers; only the fields read by the translator are declared; anything else
the provider sends is kept as unknown fields and ignored.

Generation A (protocol 5) has no nested object attributes; generation B
(protocol 6) adds ``Schema.Object`` and ``Schema.Attribute.nested_type``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from functools import lru_cache
from typing import Optional

from google.protobuf import descriptor_pb2, descriptor_pool, message_factory

_FDP = descriptor_pb2.FieldDescriptorProto

_OPTIONAL = _FDP.LABEL_OPTIONAL
_REPEATED = _FDP.LABEL_REPEATED

_STRING = _FDP.TYPE_STRING
_BYTES = _FDP.TYPE_BYTES
_BOOL = _FDP.TYPE_BOOL
_INT64 = _FDP.TYPE_INT64
_ENUM = _FDP.TYPE_ENUM
_MESSAGE = _FDP.TYPE_MESSAGE


class Generation(IntEnum):
    """Plugin protocol generation, valued by its protocol version number."""

    A = 5
    B = 6

    @property
    def package(self) -> str:
        return f"tfplugin{self.value}"

    @property
    def schema_method(self) -> str:
        """Full gRPC method path of the schema RPC."""

        if self is Generation.B:
            return "/tfplugin6.Provider/GetProviderSchema"
        return "/tfplugin5.Provider/GetSchema"


@dataclass(frozen=True)
class WireMessages:
    """Message classes of one generation."""

    generation: Generation
    Request: type
    Response: type
    Schema: type
    Block: type
    Attribute: type
    NestedBlock: type
    Object: Optional[type]
    Function: type
    Parameter: type
    Return: type
    Diagnostic: type


def _add_field(
    msg: descriptor_pb2.DescriptorProto,
    *,
    name: str,
    number: int,
    field_type: int,
    label: int = _OPTIONAL,
    type_name: str = "",
) -> None:
    field = msg.field.add()
    field.name = name
    field.number = number
    field.label = label
    field.type = field_type
    if type_name:
        field.type_name = type_name


def _add_enum(parent, name: str, values) -> None:
    enum = parent.enum_type.add()
    enum.name = name
    for number, value_name in enumerate(values):
        value = enum.value.add()
        value.name = value_name
        value.number = number


def _add_map_field(
    msg: descriptor_pb2.DescriptorProto,
    *,
    name: str,
    number: int,
    value_type_name: str,
    scope: str,
) -> None:
    entry_name = "".join(part.capitalize() for part in name.split("_")) + "Entry"
    entry = msg.nested_type.add()
    entry.name = entry_name
    entry.options.map_entry = True
    _add_field(entry, name="key", number=1, field_type=_STRING)
    _add_field(entry, name="value", number=2, field_type=_MESSAGE, type_name=value_type_name)
    _add_field(
        msg,
        name=name,
        number=number,
        field_type=_MESSAGE,
        label=_REPEATED,
        type_name=f"{scope}.{entry_name}",
    )


def _file_descriptor(generation: Generation) -> descriptor_pb2.FileDescriptorProto:
    pkg = generation.package
    p = f".{pkg}"
    nested_objects = generation is Generation.B

    fdp = descriptor_pb2.FileDescriptorProto()
    fdp.name = f"{pkg}_schema.proto"
    fdp.package = pkg
    fdp.syntax = "proto3"

    _add_enum(fdp, "StringKind", ["PLAIN", "MARKDOWN"])

    diagnostic = fdp.message_type.add()
    diagnostic.name = "Diagnostic"
    _add_enum(diagnostic, "Severity", ["INVALID", "ERROR", "WARNING"])
    _add_field(diagnostic, name="severity", number=1, field_type=_ENUM, type_name=f"{p}.Diagnostic.Severity")
    _add_field(diagnostic, name="summary", number=2, field_type=_STRING)
    _add_field(diagnostic, name="detail", number=3, field_type=_STRING)

    schema = fdp.message_type.add()
    schema.name = "Schema"
    _add_field(schema, name="version", number=1, field_type=_INT64)
    _add_field(schema, name="block", number=2, field_type=_MESSAGE, type_name=f"{p}.Schema.Block")

    block = schema.nested_type.add()
    block.name = "Block"
    _add_field(block, name="version", number=1, field_type=_INT64)
    _add_field(block, name="attributes", number=2, field_type=_MESSAGE, label=_REPEATED, type_name=f"{p}.Schema.Attribute")
    _add_field(block, name="block_types", number=3, field_type=_MESSAGE, label=_REPEATED, type_name=f"{p}.Schema.NestedBlock")
    _add_field(block, name="description", number=4, field_type=_STRING)
    _add_field(block, name="description_kind", number=5, field_type=_ENUM, type_name=f"{p}.StringKind")
    _add_field(block, name="deprecated", number=6, field_type=_BOOL)

    attribute = schema.nested_type.add()
    attribute.name = "Attribute"
    _add_field(attribute, name="name", number=1, field_type=_STRING)
    _add_field(attribute, name="type", number=2, field_type=_BYTES)
    _add_field(attribute, name="description", number=3, field_type=_STRING)
    _add_field(attribute, name="required", number=4, field_type=_BOOL)
    _add_field(attribute, name="optional", number=5, field_type=_BOOL)
    _add_field(attribute, name="computed", number=6, field_type=_BOOL)
    _add_field(attribute, name="sensitive", number=7, field_type=_BOOL)
    _add_field(attribute, name="description_kind", number=8, field_type=_ENUM, type_name=f"{p}.StringKind")
    _add_field(attribute, name="deprecated", number=9, field_type=_BOOL)
    if nested_objects:
        _add_field(attribute, name="nested_type", number=10, field_type=_MESSAGE, type_name=f"{p}.Schema.Object")
    _add_field(attribute, name="write_only", number=11, field_type=_BOOL)

    nested_block = schema.nested_type.add()
    nested_block.name = "NestedBlock"
    _add_enum(nested_block, "NestingMode", ["INVALID", "SINGLE", "LIST", "SET", "MAP", "GROUP"])
    _add_field(nested_block, name="type_name", number=1, field_type=_STRING)
    _add_field(nested_block, name="block", number=2, field_type=_MESSAGE, type_name=f"{p}.Schema.Block")
    _add_field(nested_block, name="nesting", number=3, field_type=_ENUM, type_name=f"{p}.Schema.NestedBlock.NestingMode")
    _add_field(nested_block, name="min_items", number=4, field_type=_INT64)
    _add_field(nested_block, name="max_items", number=5, field_type=_INT64)

    if nested_objects:
        obj = schema.nested_type.add()
        obj.name = "Object"
        _add_enum(obj, "NestingMode", ["INVALID", "SINGLE", "LIST", "SET", "MAP"])
        _add_field(obj, name="attributes", number=1, field_type=_MESSAGE, label=_REPEATED, type_name=f"{p}.Schema.Attribute")
        _add_field(obj, name="nesting", number=3, field_type=_ENUM, type_name=f"{p}.Schema.Object.NestingMode")
        _add_field(obj, name="min_items", number=4, field_type=_INT64)
        _add_field(obj, name="max_items", number=5, field_type=_INT64)

    function = fdp.message_type.add()
    function.name = "Function"
    _add_field(function, name="parameters", number=1, field_type=_MESSAGE, label=_REPEATED, type_name=f"{p}.Function.Parameter")
    _add_field(function, name="variadic_parameter", number=2, field_type=_MESSAGE, type_name=f"{p}.Function.Parameter")
    _add_field(function, name="return", number=3, field_type=_MESSAGE, type_name=f"{p}.Function.Return")
    _add_field(function, name="summary", number=4, field_type=_STRING)
    _add_field(function, name="description", number=5, field_type=_STRING)
    _add_field(function, name="description_kind", number=6, field_type=_ENUM, type_name=f"{p}.StringKind")
    _add_field(function, name="deprecation_message", number=7, field_type=_STRING)

    parameter = function.nested_type.add()
    parameter.name = "Parameter"
    _add_field(parameter, name="name", number=1, field_type=_STRING)
    _add_field(parameter, name="type", number=2, field_type=_BYTES)
    _add_field(parameter, name="allow_null_value", number=3, field_type=_BOOL)
    _add_field(parameter, name="allow_unknown_values", number=4, field_type=_BOOL)
    _add_field(parameter, name="description", number=5, field_type=_STRING)
    _add_field(parameter, name="description_kind", number=6, field_type=_ENUM, type_name=f"{p}.StringKind")

    ret = function.nested_type.add()
    ret.name = "Return"
    _add_field(ret, name="type", number=1, field_type=_BYTES)

    get_schema = fdp.message_type.add()
    get_schema.name = "GetProviderSchema"
    request = get_schema.nested_type.add()
    request.name = "Request"

    response = get_schema.nested_type.add()
    response.name = "Response"
    scope = f"{p}.GetProviderSchema.Response"
    _add_field(response, name="provider", number=1, field_type=_MESSAGE, type_name=f"{p}.Schema")
    _add_map_field(response, name="resource_schemas", number=2, value_type_name=f"{p}.Schema", scope=scope)
    _add_map_field(response, name="data_source_schemas", number=3, value_type_name=f"{p}.Schema", scope=scope)
    _add_field(response, name="diagnostics", number=4, field_type=_MESSAGE, label=_REPEATED, type_name=f"{p}.Diagnostic")
    _add_field(response, name="provider_meta", number=5, field_type=_MESSAGE, type_name=f"{p}.Schema")
    _add_map_field(response, name="functions", number=7, value_type_name=f"{p}.Function", scope=scope)
    _add_map_field(response, name="ephemeral_resource_schemas", number=8, value_type_name=f"{p}.Schema", scope=scope)

    return fdp


@lru_cache(maxsize=1)
def _pool() -> descriptor_pool.DescriptorPool:
    pool = descriptor_pool.DescriptorPool()
    for generation in Generation:
        pool.Add(_file_descriptor(generation))
    return pool


def _message_class(full_name: str) -> type:
    pool = _pool()
    desc = pool.FindMessageTypeByName(full_name)
    if hasattr(message_factory, "GetMessageClass"):
        return message_factory.GetMessageClass(desc)
    return message_factory.MessageFactory(pool).GetPrototype(desc)


@lru_cache(maxsize=None)
def messages_for(generation: Generation) -> WireMessages:
    """Return the message classes of ``generation``."""

    pkg = generation.package
    return WireMessages(
        generation=generation,
        Request=_message_class(f"{pkg}.GetProviderSchema.Request"),
        Response=_message_class(f"{pkg}.GetProviderSchema.Response"),
        Schema=_message_class(f"{pkg}.Schema"),
        Block=_message_class(f"{pkg}.Schema.Block"),
        Attribute=_message_class(f"{pkg}.Schema.Attribute"),
        NestedBlock=_message_class(f"{pkg}.Schema.NestedBlock"),
        Object=_message_class(f"{pkg}.Schema.Object") if generation is Generation.B else None,
        Function=_message_class(f"{pkg}.Function"),
        Parameter=_message_class(f"{pkg}.Function.Parameter"),
        Return=_message_class(f"{pkg}.Function.Return"),
        Diagnostic=_message_class(f"{pkg}.Diagnostic"),
    )


def enum_name(message, field_name: str) -> Optional[str]:
    """Return the symbolic name of an enum field's value, ``None`` if unknown."""

    field = message.DESCRIPTOR.fields_by_name[field_name]
    value = field.enum_type.values_by_number.get(getattr(message, field_name))
    return None if value is None else value.name


__all__ = ["Generation", "WireMessages", "messages_for", "enum_name"]
