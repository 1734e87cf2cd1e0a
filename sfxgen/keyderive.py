from __future__ import annotations

import datetime
import hashlib
import time

from .constants import KDF_DELIMITER, KDF_SUFFIX, TICKS_AT_UNIX_EPOCH


def derive_key(secret: str, artifact_name: str, payload_size: int, timestamp: int) -> bytes:
    """Derive the 32-byte archive key from bundle metadata.

    A single SHA-256 over the delimited fields and the format suffix. The
    extractor recomputes it from the metadata it carries, so the function
    must stay pure and byte-for-byte stable. An empty ``secret`` is a valid
    input and still yields a full key.
    """
    material = KDF_DELIMITER.join(
        (secret, artifact_name, str(int(payload_size)), str(int(timestamp)), KDF_SUFFIX)
    )
    return hashlib.sha256(material.encode("utf-8")).digest()


def now_ticks() -> int:
    # 100 ns ticks since 0001-01-01 UTC
    return time.time_ns() // 100 + TICKS_AT_UNIX_EPOCH


def ticks_to_datetime(ticks: int) -> datetime.datetime:
    return datetime.datetime(1, 1, 1, tzinfo=datetime.timezone.utc) + datetime.timedelta(microseconds=ticks // 10)
