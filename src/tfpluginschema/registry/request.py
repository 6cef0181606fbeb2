"""Provider request keys.

Requests are frozen and hashable so they can key the server caches directly.
Field comparison is case sensitive.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Optional


@dataclass(frozen=True)
class VersionsRequest:
    """Key of the available-versions cache.

    Attributes:
        namespace: Provider namespace, e.g. ``"Azure"``.
        name: Provider type name, e.g. ``"azapi"``.
        registry: Registry base URL, ``None`` for the configured default.
    """

    namespace: str
    name: str
    registry: Optional[str] = None

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"


@dataclass(frozen=True)
class ProviderRequest:
    """Identifies one provider, optionally pinned or constrained to versions.

    Attributes:
        namespace: Provider namespace, e.g. ``"Azure"``.
        name: Provider type name, e.g. ``"azapi"``.
        version: Exact version (``"2.5.0"``), constraint expression
            (``">=1.0.0,<2.0.0"``, ``"~>2.1"``) or empty for the latest.
        registry: Registry base URL, ``None`` for the configured default.
    """

    namespace: str
    name: str
    version: str = ""
    registry: Optional[str] = None

    @classmethod
    def parse(cls, address: str, version: str = "", registry: Optional[str] = None) -> ProviderRequest:
        """Build a request from a ``NAMESPACE/NAME`` address."""

        namespace, sep, name = address.partition("/")
        if not sep or not namespace or not name or "/" in name:
            raise ValueError(f"provider address must look like NAMESPACE/NAME, got {address!r}")
        return cls(namespace=namespace, name=name, version=version, registry=registry)

    def with_version(self, version: str) -> ProviderRequest:
        return replace(self, version=version)

    def versions_request(self) -> VersionsRequest:
        return VersionsRequest(namespace=self.namespace, name=self.name, registry=self.registry)

    def __str__(self) -> str:
        if self.version:
            return f"{self.namespace}/{self.name}@{self.version}"
        return f"{self.namespace}/{self.name}"


__all__ = ["ProviderRequest", "VersionsRequest"]
