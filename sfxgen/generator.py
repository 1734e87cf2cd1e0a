from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from . import cipher
from .builder import build_artifact, write_bundle_file
from .bundle import BundleMetadata, assemble
from .challenge import make_challenge
from .errors import NoDestination, SelectionEmpty
from .keyderive import derive_key, now_ticks
from .packer import Selection, pack_selections


log = logging.getLogger(__name__)


@dataclass
class SealResult:
    path: str
    metadata: BundleMetadata
    entries: int
    container_size: int
    blob_size: int


def seal(
    selections: Iterable[Selection],
    output_dir: Optional[str],
    *,
    passphrase: str = "",
    challenge_scheme: str = "plain",
    max_bytes: Optional[int] = None,
    timestamp: Optional[int] = None,
    bundle_only: bool = False,
) -> SealResult:
    """Pack, encrypt and build one artifact.

    Args:
        selections: Files and directories in the order they should appear.
        output_dir: Directory for the artifact; created when missing.
        passphrase: Optional secret; empty means no passphrase.
        challenge_scheme: "plain" (reversible) or "argon2id" (hashed).
        max_bytes: Capacity ceiling override; defaults to 80% of free memory.
        timestamp: Tick count to bind into the key; defaults to now.
        bundle_only: Write the raw bundle instead of a runnable artifact.

    Raises:
        SelectionEmpty, NoDestination, SizeExceeded, OSError. Nothing is
        written to ``output_dir`` when any of these is raised.
    """
    selections = list(selections)
    if not selections:
        raise SelectionEmpty("No files or directories selected")
    if not output_dir:
        raise NoDestination("No output directory selected")
    challenge = make_challenge(passphrase, challenge_scheme)

    packed = pack_selections(selections, max_bytes=max_bytes)
    ts = now_ticks() if timestamp is None else int(timestamp)
    key = derive_key(passphrase, packed.artifact_name, packed.total_size, ts)
    blob = cipher.encrypt(packed.data, key)
    metadata = BundleMetadata(
        artifact_name=packed.artifact_name,
        payload_size=packed.total_size,
        timestamp=ts,
        challenge=challenge,
    )
    bundle_bytes = assemble(blob, metadata)
    log.debug("sealed %s: %d entries, blob %d bytes", packed.artifact_name, len(packed.names), len(blob))

    if bundle_only:
        path = write_bundle_file(bundle_bytes, output_dir, packed.artifact_name)
    else:
        path = build_artifact(bundle_bytes, output_dir, packed.artifact_name)
    return SealResult(
        path=path,
        metadata=metadata,
        entries=len(packed.names),
        container_size=len(packed.data),
        blob_size=len(blob),
    )
