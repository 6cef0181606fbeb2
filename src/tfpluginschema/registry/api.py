"""HTTP client for the provider registry protocol.

Two JSON endpoints are used, relative to the registry base URL:

    GET {base}/{namespace}/{name}/versions
    GET {base}/{namespace}/{name}/{version}/download/{os}/{arch}

plus a plain download of the archive the second one points at.
"""

from __future__ import annotations

import logging
import platform
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Optional, Tuple
from urllib.parse import urlsplit

import httpx
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from tfpluginschema.exceptions import InvalidVersionError, ProviderNotFoundError, RegistryAPIError
from tfpluginschema.registry.request import ProviderRequest, VersionsRequest
from tfpluginschema.versions import ProviderVersion, parse_version, sort_versions

logger = logging.getLogger(__name__)

DEFAULT_REGISTRY = "https://registry.opentofu.org/v1/providers"

_GO_OS = {"linux": "linux", "darwin": "darwin", "windows": "windows", "freebsd": "freebsd", "openbsd": "openbsd"}
_GO_ARCH = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "aarch64": "arm64",
    "arm64": "arm64",
    "i386": "386",
    "i686": "386",
    "x86": "386",
    "armv7l": "arm",
    "armv6l": "arm",
    "arm": "arm",
}


def host_platform() -> Tuple[str, str]:
    """Return the ``(os, arch)`` pair of this host in registry (Go) spelling."""

    system = platform.system().lower()
    machine = platform.machine().lower()
    return _GO_OS.get(system, system), _GO_ARCH.get(machine, machine)


@dataclass(frozen=True)
class DownloadInfo:
    """Download metadata for one provider build."""

    download_url: str
    filename: str
    os: str = ""
    arch: str = ""
    protocols: Tuple[str, ...] = field(default_factory=tuple)


class RegistryClient:
    """Synchronous registry client.

    Args:
        base_url: Default registry base URL for requests that do not name one.
        timeout: Request timeout in seconds.
        download_retries: Attempts for an archive download that fails in transport.
        retry_backoff: Multiplier of the exponential wait between download attempts.
        http_client: Preconfigured ``httpx.Client``; one is created when omitted.
        platform_pair: ``(os, arch)`` to download builds for, defaults to this host.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_REGISTRY,
        *,
        timeout: float = 30.0,
        download_retries: int = 3,
        retry_backoff: float = 0.5,
        http_client: Optional[httpx.Client] = None,
        platform_pair: Optional[Tuple[str, str]] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._download_retries = max(1, download_retries)
        self._retry_backoff = retry_backoff
        self._owns_client = http_client is None
        self._http = http_client or httpx.Client(timeout=timeout, follow_redirects=True)
        self._platform = platform_pair or host_platform()

    def _base(self, registry: Optional[str]) -> str:
        return (registry or self.base_url).rstrip("/")

    def versions_url(self, request: VersionsRequest) -> str:
        return f"{self._base(request.registry)}/{request.namespace}/{request.name}/versions"

    def download_info_url(self, request: ProviderRequest) -> str:
        os_name, arch = self._platform
        return (
            f"{self._base(request.registry)}/{request.namespace}/{request.name}"
            f"/{request.version}/download/{os_name}/{arch}"
        )

    def list_versions(self, request: VersionsRequest) -> List[ProviderVersion]:
        """Return every published version of the provider, ascending.

        Raises:
            ProviderNotFoundError: On HTTP 404.
            RegistryAPIError: On other failures or a malformed body.
        """
        url = self.versions_url(request)
        payload = self._get_json(url, context={"provider": str(request)})

        entries = payload.get("versions") if isinstance(payload, dict) else None
        if not isinstance(entries, list):
            raise RegistryAPIError(f"malformed versions response from {url}", context={"url": url})

        versions = []
        for entry in entries:
            raw = entry.get("version") if isinstance(entry, dict) else None
            if not isinstance(raw, str):
                raise RegistryAPIError(f"malformed version entry from {url}: {entry!r}", context={"url": url})
            try:
                versions.append(parse_version(raw))
            except InvalidVersionError as exc:
                raise RegistryAPIError(f"failed to parse version {raw!r}: {exc}", context={"url": url}) from exc

        logger.debug("Registry lists %d versions for %s", len(versions), request)
        return sort_versions(versions)

    def download_info(self, request: ProviderRequest) -> DownloadInfo:
        """Return download metadata for an exact provider version.

        Raises:
            ProviderNotFoundError: On HTTP 404.
            RegistryAPIError: On other failures, a malformed body or an empty download URL.
        """
        url = self.download_info_url(request)
        payload = self._get_json(url, context={"provider": str(request)})
        if not isinstance(payload, dict):
            raise RegistryAPIError(f"malformed download response from {url}", context={"url": url})

        download_url = payload.get("download_url") or ""
        if not download_url:
            raise RegistryAPIError(
                f"download URL is empty for request: {url}",
                context={"url": url, "provider": str(request)},
            )

        info = DownloadInfo(
            download_url=download_url,
            filename=payload.get("filename") or "",
            os=payload.get("os") or "",
            arch=payload.get("arch") or "",
            protocols=tuple(payload.get("protocols") or ()),
        )
        logger.info(
            "Registry download for %s: %s (%s/%s)",
            request,
            info.filename or info.download_url,
            info.os,
            info.arch,
        )
        return info

    def download(self, url: str, dest_dir: Path, filename: str = "") -> Path:
        """Stream ``url`` into ``dest_dir`` and return the written file.

        Transport failures are retried; an unsuccessful status is not.

        Raises:
            RegistryAPIError: If the download fails.
        """
        name = Path(filename).name or Path(urlsplit(url).path).name or "provider.zip"
        target = Path(dest_dir) / name

        retrying = Retrying(
            stop=stop_after_attempt(self._download_retries),
            wait=wait_exponential(multiplier=self._retry_backoff, max=10),
            retry=retry_if_exception_type(httpx.TransportError),
            reraise=True,
        )
        try:
            for attempt in retrying:
                with attempt:
                    self._download_once(url, target)
        except httpx.TransportError as exc:
            raise RegistryAPIError(f"failed to download plugin: {exc}", context={"url": url}) from exc

        logger.debug("Downloaded %s to %s", url, target)
        return target

    def _download_once(self, url: str, target: Path) -> None:
        with self._http.stream("GET", url) as response:
            if response.status_code != httpx.codes.OK:
                raise RegistryAPIError(
                    f"failed to download plugin: {url} => {response.status_code}",
                    context={"url": url, "status": response.status_code},
                )
            with open(target, "wb") as fh:
                for chunk in response.iter_bytes():
                    fh.write(chunk)

    def _get_json(self, url: str, *, context: dict) -> Any:
        logger.debug("GET %s", url)
        try:
            response = self._http.get(url)
        except httpx.HTTPError as exc:
            raise RegistryAPIError(f"registry request failed: {url}: {exc}", context={"url": url, **context}) from exc

        if response.status_code == httpx.codes.NOT_FOUND:
            raise ProviderNotFoundError(f"plugin not found: {url}", context={"url": url, **context})
        if response.status_code != httpx.codes.OK:
            raise RegistryAPIError(
                f"plugin API error: {url} => {response.status_code}",
                context={"url": url, "status": response.status_code, **context},
            )
        try:
            return response.json()
        except ValueError as exc:
            raise RegistryAPIError(f"failed to decode registry response from {url}: {exc}", context={"url": url}) from exc

    def close(self) -> None:
        if self._owns_client:
            self._http.close()

    def __enter__(self) -> RegistryClient:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


__all__ = ["DEFAULT_REGISTRY", "DownloadInfo", "RegistryClient", "host_platform"]
