"""Provider registry access: requests, HTTP client and archive handling."""

from tfpluginschema.registry.api import DEFAULT_REGISTRY, DownloadInfo, RegistryClient
from tfpluginschema.registry.archive import extract_archive, locate_executable
from tfpluginschema.registry.request import ProviderRequest, VersionsRequest

__all__ = [
    "DEFAULT_REGISTRY",
    "DownloadInfo",
    "ProviderRequest",
    "RegistryClient",
    "VersionsRequest",
    "extract_archive",
    "locate_executable",
]
