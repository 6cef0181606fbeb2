"""Provider archive extraction and executable lookup."""

from __future__ import annotations

import logging
import os
import stat
import zipfile
from pathlib import Path

from tfpluginschema.exceptions import ExecutableNotFoundError, RegistryAPIError

logger = logging.getLogger(__name__)

PROVIDER_FILE_PREFIX = "terraform-provider-"

_DEFAULT_FILE_MODE = 0o644
_DIR_MODE = 0o755


def extract_archive(archive: Path, destination: Path) -> Path:
    """Extract a zip archive, keeping the file permissions it records.

    Entries without recorded permissions are written ``0644``. Entries that
    would land outside ``destination`` are rejected.

    Raises:
        RegistryAPIError: If the archive is unreadable or contains unsafe paths.
    """
    destination = Path(destination)
    destination.mkdir(mode=_DIR_MODE, parents=True, exist_ok=True)
    root = destination.resolve()

    try:
        with zipfile.ZipFile(archive) as zf:
            for info in zf.infolist():
                target = (destination / info.filename).resolve()
                if target != root and root not in target.parents:
                    raise RegistryAPIError(
                        f"archive entry escapes extraction directory: {info.filename}",
                        context={"archive": str(archive)},
                    )

                if info.is_dir():
                    target.mkdir(mode=_DIR_MODE, parents=True, exist_ok=True)
                    continue

                target.parent.mkdir(mode=_DIR_MODE, parents=True, exist_ok=True)
                mode = stat.S_IMODE(info.external_attr >> 16) or _DEFAULT_FILE_MODE
                with zf.open(info) as src, open(target, "wb") as dst:
                    while True:
                        chunk = src.read(1 << 20)
                        if not chunk:
                            break
                        dst.write(chunk)
                os.chmod(target, mode)
    except zipfile.BadZipFile as exc:
        raise RegistryAPIError(f"failed to unzip plugin file {archive}: {exc}", context={"archive": str(archive)}) from exc

    return destination


def locate_executable(directory: Path, provider_name: str, prefix: str = PROVIDER_FILE_PREFIX) -> Path:
    """Return the first top-level file named ``{prefix}{provider_name}*``.

    Subdirectories are never searched.

    Raises:
        ExecutableNotFoundError: If no such file exists.
    """
    wanted = f"{prefix}{provider_name}"
    with os.scandir(directory) as it:
        entries = sorted(it, key=lambda entry: entry.name)

    for entry in entries:
        if entry.is_dir():
            continue
        logger.debug("Checking extracted file %s", entry.name)
        if entry.name.startswith(wanted):
            logger.info("Found provider file %s", entry.name)
            return Path(entry.path)

    raise ExecutableNotFoundError(prefix=wanted, search_dir=str(directory))


__all__ = ["PROVIDER_FILE_PREFIX", "extract_archive", "locate_executable"]
