"""Exception hierarchy for tfpluginschema.

Every error raised by the library derives from ``TFPluginSchemaError`` so
callers can catch a single base type. Errors carry an optional ``context``
mapping with the identifiers that were in play when the failure happened
(namespace, version, executable path, ...), which keeps messages short while
still giving log handlers something structured to work with.

Examples:
    >>> from tfpluginschema.exceptions import SchemaNotFoundError
    >>> try:
    ...     server.resource_schema(request, "azapi_resource")
    ... except SchemaNotFoundError:
    ...     handle_missing_resource()
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, Sequence, Tuple


class TFPluginSchemaError(Exception):
    """Base class for all custom exceptions in tfpluginschema."""

    def __init__(self, message: str = "", *, context: Optional[Mapping[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = dict(context or {})


class ConfigError(TFPluginSchemaError):
    """Raised when configuration cannot be loaded or validated."""


# Registry errors


class NotFoundError(TFPluginSchemaError):
    """Base class for lookups that completed but found nothing."""


class ProviderNotFoundError(NotFoundError):
    """Raised when the registry has no such provider or provider version."""


class SchemaNotFoundError(NotFoundError):
    """Raised when a named schema is absent from a fetched provider schema.

    Attributes:
        kind: Schema category that was searched, e.g. ``"resource"``.
        name: Name that was looked up.
    """

    def __init__(self, *, kind: str, name: str) -> None:
        super().__init__(
            f"{kind} schema not found: {name}",
            context={"kind": kind, "name": name},
        )
        self.kind = kind
        self.name = name


class RegistryAPIError(TFPluginSchemaError):
    """Raised when the registry answers with an error status or a malformed body."""


class ExecutableNotFoundError(TFPluginSchemaError):
    """Raised when an extracted archive does not contain the provider executable.

    Attributes:
        prefix: File name prefix that was searched for.
        search_dir: Directory that was searched.
    """

    def __init__(self, *, prefix: str, search_dir: str) -> None:
        super().__init__(
            f"provider file with prefix '{prefix}' not found in extracted directory ({search_dir})",
            context={"prefix": prefix, "search_dir": search_dir},
        )
        self.prefix = prefix
        self.search_dir = search_dir


# Version errors


class VersionError(TFPluginSchemaError):
    """Base class for version parsing and resolution failures."""


class InvalidVersionError(VersionError):
    """Raised when a version string cannot be parsed."""


class ConstraintParseError(VersionError):
    """Raised when a version constraint expression cannot be parsed."""


class UnsortedVersionsError(VersionError):
    """Raised when the resolver is given versions that are not in ascending order."""


class NoMatchingVersionError(VersionError):
    """Raised when no version satisfies the constraints, or none exist at all."""


# Plugin errors


class PluginError(TFPluginSchemaError):
    """Base class for failures talking to a provider plugin."""


class TransportError(PluginError):
    """Raised when the plugin subprocess or its RPC channel cannot be established."""


class RPCError(PluginError):
    """Raised when an RPC on an established connection fails."""


class ClientStateError(PluginError):
    """Raised when a protocol client is used in a state that does not allow the call."""


class SchemaFetchError(PluginError):
    """Raised when neither wire generation produced a provider schema.

    Attributes:
        failures: ``(generation label, exception)`` pairs in attempt order.
    """

    def __init__(self, failures: Sequence[Tuple[str, BaseException]]) -> None:
        detail = "; ".join(f"generation {label}: {exc}" for label, exc in failures)
        super().__init__(
            f"failed to get provider schema for any protocol generation ({detail})",
            context={"generations": [label for label, _ in failures]},
        )
        self.failures = list(failures)


# Schema decoding errors


class TypeDecodeError(TFPluginSchemaError):
    """Raised when a type signature cannot be decoded."""


__all__ = [
    "TFPluginSchemaError",
    "ConfigError",
    "NotFoundError",
    "ProviderNotFoundError",
    "SchemaNotFoundError",
    "RegistryAPIError",
    "ExecutableNotFoundError",
    "VersionError",
    "InvalidVersionError",
    "ConstraintParseError",
    "UnsortedVersionsError",
    "NoMatchingVersionError",
    "PluginError",
    "TransportError",
    "RPCError",
    "ClientStateError",
    "SchemaFetchError",
    "TypeDecodeError",
]
