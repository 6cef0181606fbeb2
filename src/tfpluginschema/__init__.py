"""tfpluginschema: fetch provider plugin schemas over the plugin RPC protocol.

Downloads provider binaries from a registry, launches them, negotiates one of
the two plugin protocol generations and returns a canonical schema model.

Examples:
    >>> from tfpluginschema import ProviderRequest, SchemaServer
    >>> with SchemaServer() as server:
    ...     names = server.list_resources(ProviderRequest("Azure", "azapi", ">=2.0.0"))
"""

from tfpluginschema.exceptions import (
    NotFoundError,
    ProviderNotFoundError,
    SchemaFetchError,
    SchemaNotFoundError,
    TFPluginSchemaError,
)
from tfpluginschema.plugin.client import UniversalProviderClient
from tfpluginschema.registry.request import ProviderRequest, VersionsRequest
from tfpluginschema.schema.models import CanonicalSchema
from tfpluginschema.server import SchemaServer

__version__ = "0.1.0"

__all__ = [
    "CanonicalSchema",
    "NotFoundError",
    "ProviderNotFoundError",
    "ProviderRequest",
    "SchemaFetchError",
    "SchemaNotFoundError",
    "SchemaServer",
    "TFPluginSchemaError",
    "UniversalProviderClient",
    "VersionsRequest",
    "__version__",
]
