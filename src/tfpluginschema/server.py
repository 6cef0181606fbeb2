"""Schema server: download, cache and serve provider schemas.

``SchemaServer`` keeps three process-local caches, all guarded by one shared
reader/writer lock:

- downloads: resolved request to extracted provider executable;
- schemas: resolved request to canonical schema;
- versions: provider to its ascending published versions.

Each cache offers ``get_or_create``, which checks under the shared lock and
then re-checks under the exclusive lock before running the factory, so a key
is materialised at most once however many threads ask for it. Factories run
while the exclusive lock is held and therefore only use ``peek_locked``.

Examples:
    >>> with SchemaServer() as server:
    ...     request = ProviderRequest("Azure", "azapi", "~>2.0")
    ...     block = server.resource_schema(request, "azapi_resource")
"""

from __future__ import annotations

import logging
import shutil
import tempfile
from pathlib import Path
from typing import Any, Callable, Dict, Generic, Hashable, List, Optional, TypeVar, Union

from tfpluginschema._internal.concurrency import ReadWriteLock
from tfpluginschema.exceptions import SchemaNotFoundError
from tfpluginschema.plugin.client import UniversalProviderClient
from tfpluginschema.plugin.launcher import Launcher, PluginLauncher
from tfpluginschema.registry.api import RegistryClient
from tfpluginschema.registry.archive import PROVIDER_FILE_PREFIX, extract_archive, locate_executable
from tfpluginschema.registry.request import ProviderRequest, VersionsRequest
from tfpluginschema.schema.models import Block, CanonicalSchema, FunctionSignature
from tfpluginschema.versions import ProviderVersion, is_exact_version, parse_version, resolve_version

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

ClientFactory = Callable[[str], UniversalProviderClient]


class _KeyedCache(Generic[K, V]):
    """A dictionary guarded by a lock it shares with sibling caches."""

    def __init__(self, name: str, lock: ReadWriteLock) -> None:
        self.name = name
        self._lock = lock
        self._entries: Dict[K, V] = {}

    def peek(self, key: K) -> Optional[V]:
        with self._lock.read():
            return self._entries.get(key)

    def peek_locked(self, key: K) -> Optional[V]:
        """Read without locking. Caller must hold the exclusive lock."""
        return self._entries.get(key)

    def store_locked(self, key: K, value: V) -> None:
        """Write without locking. Caller must hold the exclusive lock."""
        self._entries[key] = value

    def clear_locked(self) -> None:
        self._entries.clear()

    def get_or_create(self, key: K, factory: Callable[[], V]) -> V:
        with self._lock.read():
            if key in self._entries:
                logger.debug("%s cache hit for %s", self.name, key)
                return self._entries[key]

        with self._lock.write():
            if key in self._entries:
                logger.debug("%s cache hit for %s after waiting", self.name, key)
                return self._entries[key]
            value = factory()
            self._entries[key] = value
            return value

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._entries)


class SchemaServer:
    """Resolves, downloads and queries provider plugins, caching every step.

    Args:
        registry: Registry client; a default one is created (and owned) when omitted.
        launcher: Plugin launcher passed to schema clients.
        client_factory: Builds a schema client for an executable path. Defaults
            to ``UniversalProviderClient`` with ``launcher`` and ``rpc_timeout``.
        temp_root: Parent directory of the download directory, system default if ``None``.
        executable_prefix: File name prefix of provider executables in archives.
        rpc_timeout: Schema RPC deadline in seconds.
    """

    def __init__(
        self,
        *,
        registry: Optional[RegistryClient] = None,
        launcher: Optional[Launcher] = None,
        client_factory: Optional[ClientFactory] = None,
        temp_root: Optional[str] = None,
        rpc_timeout: Optional[float] = None,
        executable_prefix: str = PROVIDER_FILE_PREFIX,
    ) -> None:
        self._owns_registry = registry is None
        self._registry = registry or RegistryClient()
        self._launcher = launcher or PluginLauncher()
        self._rpc_timeout = rpc_timeout
        self._client_factory = client_factory or self._default_client
        self._temp_root = temp_root
        self._executable_prefix = executable_prefix
        self._temp_dir: Optional[Path] = None

        self._lock = ReadWriteLock()
        self._downloads: _KeyedCache[ProviderRequest, Path] = _KeyedCache("download", self._lock)
        self._schemas: _KeyedCache[ProviderRequest, CanonicalSchema] = _KeyedCache("schema", self._lock)
        self._versions: _KeyedCache[VersionsRequest, List[ProviderVersion]] = _KeyedCache("versions", self._lock)

    @classmethod
    def from_settings(cls, settings: Any, **kwargs: Any) -> SchemaServer:
        """Build a server from a loaded ``Settings`` object."""

        registry = RegistryClient(
            settings.registry.base_url,
            timeout=settings.registry.timeout,
            download_retries=settings.registry.download_retries,
        )
        launcher = PluginLauncher(
            start_timeout=settings.plugin.start_timeout,
            connect_timeout=settings.plugin.connect_timeout,
            min_port=settings.plugin.min_port,
            max_port=settings.plugin.max_port,
        )
        server = cls(
            registry=registry,
            launcher=launcher,
            temp_root=settings.cache.temp_root,
            rpc_timeout=settings.plugin.rpc_timeout,
            executable_prefix=settings.plugin.executable_prefix,
            **kwargs,
        )
        server._owns_registry = True
        return server

    def _default_client(self, executable: str) -> UniversalProviderClient:
        return UniversalProviderClient(executable, launcher=self._launcher, rpc_timeout=self._rpc_timeout)

    @property
    def temp_dir(self) -> Optional[Path]:
        return self._temp_dir

    # Version resolution

    def available_versions(self, request: Union[ProviderRequest, VersionsRequest]) -> List[ProviderVersion]:
        """Return the provider's published versions, ascending."""

        if isinstance(request, ProviderRequest):
            request = request.versions_request()
        return self._versions.get_or_create(request, lambda: self._registry.list_versions(request))

    def resolve(self, request: ProviderRequest) -> ProviderRequest:
        """Return ``request`` pinned to one exact version.

        Exact versions are used as given (minus a leading ``v``). Anything else
        is resolved against the registry's version list; an empty or malformed
        constraint resolves to the latest version.
        """
        if is_exact_version(request.version):
            return request.with_version(parse_version(request.version).original)

        version = resolve_version(self.available_versions(request), request.version)
        logger.info("Resolved %s to version %s", request, version)
        return request.with_version(str(version))

    # Downloads

    def get(self, request: ProviderRequest) -> Path:
        """Ensure the provider is downloaded and return its executable path."""

        resolved = self.resolve(request)
        return self._downloads.get_or_create(resolved, lambda: self._download_locked(resolved))

    def _ensure_temp_dir_locked(self) -> Path:
        if self._temp_dir is None:
            self._temp_dir = Path(tempfile.mkdtemp(prefix="tfpluginschema-", dir=self._temp_root))
            logger.debug("Created download directory %s", self._temp_dir)
        return self._temp_dir

    def _download_locked(self, resolved: ProviderRequest) -> Path:
        info = self._registry.download_info(resolved)
        temp_dir = self._ensure_temp_dir_locked()

        archive = self._registry.download(info.download_url, temp_dir, info.filename)
        extract_dir = extract_archive(archive, temp_dir / archive.stem)
        executable = locate_executable(extract_dir, resolved.name, self._executable_prefix)
        logger.info("Provider %s extracted to %s", resolved, executable)
        return executable

    # Schemas

    def schema(self, request: ProviderRequest) -> CanonicalSchema:
        """Return the full canonical schema of the provider."""

        resolved = self.resolve(request)
        return self._schemas.get_or_create(resolved, lambda: self._fetch_schema_locked(resolved))

    def _fetch_schema_locked(self, resolved: ProviderRequest) -> CanonicalSchema:
        executable = self._downloads.peek_locked(resolved)
        if executable is None:
            executable = self._download_locked(resolved)
            self._downloads.store_locked(resolved, executable)

        client = self._client_factory(str(executable))
        try:
            return client.schema()
        finally:
            client.close()

    def provider_schema(self, request: ProviderRequest) -> Optional[Block]:
        logger.info("Getting provider schema for %s", request)
        return self.schema(request).config_schema

    def resource_schema(self, request: ProviderRequest, name: str) -> Block:
        logger.info("Getting resource schema %s for %s", name, request)
        return _lookup(self.schema(request).resource_schemas, "resource", name)

    def data_source_schema(self, request: ProviderRequest, name: str) -> Block:
        logger.info("Getting data source schema %s for %s", name, request)
        return _lookup(self.schema(request).data_source_schemas, "data source", name)

    def ephemeral_resource_schema(self, request: ProviderRequest, name: str) -> Block:
        logger.info("Getting ephemeral resource schema %s for %s", name, request)
        return _lookup(self.schema(request).ephemeral_resource_schemas, "ephemeral resource", name)

    def function_schema(self, request: ProviderRequest, name: str) -> FunctionSignature:
        logger.info("Getting function schema %s for %s", name, request)
        return _lookup(self.schema(request).functions, "function", name)

    def list_resources(self, request: ProviderRequest) -> List[str]:
        return sorted(self.schema(request).resource_schemas or ())

    def list_data_sources(self, request: ProviderRequest) -> List[str]:
        return sorted(self.schema(request).data_source_schemas or ())

    def list_ephemeral_resources(self, request: ProviderRequest) -> List[str]:
        return sorted(self.schema(request).ephemeral_resource_schemas or ())

    def list_functions(self, request: ProviderRequest) -> List[str]:
        return sorted(self.schema(request).functions or ())

    # Teardown

    def cleanup(self) -> None:
        """Remove the download directory. Cached schemas stay valid."""

        with self._lock.write():
            if self._temp_dir is None:
                return
            logger.info("Cleaning up temporary directory %s", self._temp_dir)
            shutil.rmtree(self._temp_dir, ignore_errors=True)
            self._temp_dir = None
            self._downloads.clear_locked()

    def close(self) -> None:
        self.cleanup()
        if self._owns_registry:
            self._registry.close()

    def __enter__(self) -> SchemaServer:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


def _lookup(entries: Optional[Dict[str, V]], kind: str, name: str) -> V:
    if not entries or name not in entries:
        raise SchemaNotFoundError(kind=kind, name=name)
    return entries[name]


__all__ = ["SchemaServer"]
