"""In-memory provider registry served through ``httpx.MockTransport``."""

from __future__ import annotations

import io
import threading
import zipfile
from typing import Dict, List, Optional, Sequence, Tuple

import httpx

BASE_URL = "https://registry.test/v1/providers"
DOWNLOAD_HOST = "https://downloads.test"
PLATFORM = ("linux", "amd64")


def make_zip(files: Dict[str, Tuple[bytes, int]], directories: Sequence[str] = ()) -> bytes:
    """Build a zip archive; ``files`` maps names to ``(content, mode)``."""

    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        for name in directories:
            info = zipfile.ZipInfo(name.rstrip("/") + "/")
            info.external_attr = (0o40755 << 16) | 0x10
            zf.writestr(info, b"")
        for name, (content, mode) in files.items():
            info = zipfile.ZipInfo(name)
            zf.writestr(info, content)
            # writestr fills in 0o600 for a zero mode; the central directory is written from info on close.
            info.external_attr = mode << 16
    return buf.getvalue()


class FakeRegistry:
    """Serves versions, download metadata and archives for one provider."""

    def __init__(
        self,
        namespace: str,
        name: str,
        versions: Sequence[str],
        *,
        archive: Optional[bytes] = None,
    ) -> None:
        self.namespace = namespace
        self.name = name
        self.versions = list(versions)
        self.archive = archive
        self.lock = threading.Lock()
        self.requests: List[str] = []
        self.version_calls = 0
        self.download_info_calls = 0
        self.archive_calls = 0

    def handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        with self.lock:
            self.requests.append(url)

        prefix = f"{BASE_URL}/{self.namespace}/{self.name}/"
        if url == prefix + "versions":
            with self.lock:
                self.version_calls += 1
            return httpx.Response(200, json={"versions": [{"version": v} for v in self.versions]})

        if url.startswith(prefix) and "/download/" in url:
            version = url[len(prefix):].split("/", 1)[0]
            with self.lock:
                self.download_info_calls += 1
            if version not in self.versions:
                return httpx.Response(404, json={"errors": ["Not Found"]})
            filename = f"terraform-provider-{self.name}_{version}_{PLATFORM[0]}_{PLATFORM[1]}.zip"
            return httpx.Response(
                200,
                json={
                    "download_url": f"{DOWNLOAD_HOST}/{filename}",
                    "filename": filename,
                    "os": PLATFORM[0],
                    "arch": PLATFORM[1],
                    "protocols": ["5.0", "6.0"],
                },
            )

        if url.startswith(DOWNLOAD_HOST) and self.archive is not None:
            with self.lock:
                self.archive_calls += 1
            return httpx.Response(200, content=self.archive)

        return httpx.Response(404)

    def client(self) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(self.handler))
