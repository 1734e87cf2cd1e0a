from __future__ import annotations

import logging
import os
import struct
import zipfile
from dataclasses import dataclass

from . import tlv
from .challenge import Challenge
from .constants import BUNDLE_MAGIC, BUNDLE_RESOURCE, VERSION_MAJOR, VERSION_MINOR
from .errors import MalformedBundle


log = logging.getLogger(__name__)

# magic[8], ver_major u16, ver_minor u16, metadata_len u32 (little endian)
_BUNDLE_HDR = struct.Struct("<8sHHI")


@dataclass(frozen=True)
class BundleMetadata:
    artifact_name: str
    payload_size: int
    timestamp: int
    challenge: Challenge = Challenge(0)


@dataclass(frozen=True)
class Bundle:
    metadata: BundleMetadata
    blob: bytes
    version_major: int = VERSION_MAJOR
    version_minor: int = VERSION_MINOR


def assemble(blob: bytes, metadata: BundleMetadata) -> bytes:
    """Prefix the encrypted blob with a header and its plaintext metadata."""
    meta = tlv.dumps_metadata(
        {
            "artifact_name": metadata.artifact_name,
            "payload_size": metadata.payload_size,
            "timestamp": metadata.timestamp,
            "challenge_scheme": metadata.challenge.scheme,
            "challenge": metadata.challenge.text,
        }
    )
    hdr = _BUNDLE_HDR.pack(BUNDLE_MAGIC, VERSION_MAJOR, VERSION_MINOR, len(meta))
    return hdr + meta + blob


def parse_bundle(data: bytes) -> Bundle:
    if len(data) < _BUNDLE_HDR.size:
        raise MalformedBundle("Bundle too short")
    magic, vmaj, vmin, meta_len = _BUNDLE_HDR.unpack_from(data, 0)
    if magic != BUNDLE_MAGIC:
        raise MalformedBundle("Bad bundle magic")
    if vmaj != VERSION_MAJOR:
        raise MalformedBundle(f"Unsupported bundle version {vmaj}.{vmin}")
    start = _BUNDLE_HDR.size
    if start + meta_len > len(data):
        raise MalformedBundle("Bundle metadata truncated")
    try:
        meta = tlv.loads_metadata(data[start : start + meta_len])
    except (ValueError, UnicodeError) as exc:
        raise MalformedBundle(f"Bad bundle metadata: {exc}") from exc
    metadata = BundleMetadata(
        artifact_name=meta["artifact_name"],
        payload_size=meta["payload_size"],
        timestamp=meta["timestamp"],
        challenge=Challenge(meta["challenge_scheme"], meta["challenge"]),
    )
    return Bundle(metadata=metadata, blob=data[start + meta_len :], version_major=vmaj, version_minor=vmin)


def read_bundle(path: str) -> Bundle:
    """Load a bundle from a raw bundle file, a built artifact, or an unpacked artifact directory."""
    if os.path.isdir(path):
        with open(os.path.join(path, BUNDLE_RESOURCE), "rb") as fh:
            data = fh.read()
    else:
        with open(path, "rb") as fh:
            data = fh.read()
        if not data.startswith(BUNDLE_MAGIC) and zipfile.is_zipfile(path):
            with zipfile.ZipFile(path) as zf:
                try:
                    data = zf.read(BUNDLE_RESOURCE)
                except KeyError as exc:
                    raise MalformedBundle(f"No {BUNDLE_RESOURCE} resource in {path}") from exc
    log.debug("loaded bundle from %s (%d bytes)", path, len(data))
    return parse_bundle(data)
