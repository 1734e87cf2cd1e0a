from __future__ import annotations

import io
import logging
import os
import zipfile
import zlib
from dataclasses import dataclass
from typing import Callable, List, Optional

from .errors import DecryptionFailed, UnsafeEntryPath
from .pathutil import norm_path


log = logging.getLogger(__name__)


@dataclass
class ContainerEntry:
    name: str
    is_dir: bool
    size: int


def open_container(data: bytes) -> zipfile.ZipFile:
    """Open decrypted container bytes.

    Without an integrity tag a wrong key can still pass the padding check,
    so an unreadable container is reported like any other decryption failure.
    """
    try:
        zf = zipfile.ZipFile(io.BytesIO(data))
        bad = zf.testzip()
    except (zipfile.BadZipFile, zipfile.LargeZipFile, zlib.error, EOFError, ValueError, NotImplementedError) as exc:
        raise DecryptionFailed(f"Decrypted payload is not a valid container: {exc}") from exc
    if bad is not None:
        zf.close()
        raise DecryptionFailed(f"Container entry failed its checksum: {bad}")
    return zf


def list_entries(zf: zipfile.ZipFile) -> List[ContainerEntry]:
    return [ContainerEntry(info.filename, info.is_dir(), info.file_size) for info in zf.infolist()]


def _target_path(destination: str, name: str) -> str:
    try:
        rel = norm_path(name)
    except ValueError as exc:
        raise UnsafeEntryPath(f"Refusing to extract {name!r}: {exc}") from exc
    if not rel or os.path.isabs(rel) or (len(rel) > 1 and rel[1] == ":"):
        raise UnsafeEntryPath(f"Refusing to extract {name!r}")
    return os.path.join(destination, *rel.split("/"))


def unpack_container(
    zf: zipfile.ZipFile,
    destination: str,
    *,
    written: Optional[List[str]] = None,
    on_entry: Optional[Callable[[ContainerEntry], None]] = None,
) -> List[str]:
    """Write every entry of ``zf`` under ``destination``.

    Directory markers become directories; files overwrite whatever is
    already there. The first failure stops the run and entries already
    written stay on disk.

    Names are appended to ``written`` as each entry lands, so a caller
    passing its own list can see how far a failed run got.

    Returns:
        Entry names written, in container order.
    """
    if written is None:
        written = []
    for info in zf.infolist():
        dst = _target_path(destination, info.filename)
        entry = ContainerEntry(info.filename, info.is_dir(), info.file_size)
        if on_entry is not None:
            on_entry(entry)
        if entry.is_dir:
            os.makedirs(dst, exist_ok=True)
        else:
            os.makedirs(os.path.dirname(dst) or ".", exist_ok=True)
            with open(dst, "wb") as fh:
                fh.write(zf.read(info))
        log.debug("unpacked %s -> %s", info.filename, dst)
        written.append(info.filename)
    return written
