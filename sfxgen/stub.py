from __future__ import annotations

"""Entry point executed from inside a built artifact.

Also used by ``sfxgen unseal`` so both share the same console flow.
"""

import argparse
import logging
import os
import sys
import time
from typing import List, Optional

from . import prompts
from .bundle import Bundle, read_bundle
from .container import ContainerEntry
from .errors import InvalidKey, MalformedBlob, NoDestination, SfxError
from .extractor import Extractor, ExtractionRun, State


log = logging.getLogger("sfxgen")


def attach_debug_log(path: str) -> None:
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setFormatter(logging.Formatter("%(asctime)s - %(message)s", datefmt="%Y-%m-%d %H:%M:%S"))
    log.addHandler(handler)
    log.setLevel(logging.DEBUG)


def describe_failure(run: ExtractionRun) -> str:
    exc = run.error
    if isinstance(exc, InvalidKey):
        return "Incorrect passphrase; nothing was decrypted."
    if isinstance(exc, NoDestination):
        return "No destination directory selected; nothing extracted."
    if isinstance(exc, MalformedBlob):
        return f"Embedded payload is damaged: {exc}"
    return str(exc)


def run_extraction(
    bundle: Bundle,
    *,
    password: Optional[str] = None,
    outdir: Optional[str] = None,
    quiet: bool = False,
) -> int:
    """Extract ``bundle`` with console prompts for anything not supplied.

    Returns a process exit status: 0 on success, 2 on any failure.
    """
    meta = bundle.metadata
    total = [0]

    def _on_entry(entry: ContainerEntry) -> None:
        total[0] += 1
        if quiet:
            return
        if entry.is_dir:
            print(f"   creating: {entry.name}")
        else:
            print(f" extracting: {entry.name} ({entry.size} bytes)")

    extractor = Extractor(
        bundle,
        ask_passphrase=(lambda _m: password) if password is not None else prompts.ask_passphrase,
        choose_destination=(lambda _m: outdir) if outdir is not None else prompts.ask_destination,
        on_entry=_on_entry,
    )
    t0 = time.time()
    run = extractor.run()
    if run.state == State.DONE:
        dt = max(0.000001, time.time() - t0)
        mib = meta.payload_size / (1024.0 * 1024.0)
        print(f"Done: extracted {len(run.written)} entries ({mib:.2f} MiB) to {run.destination} in {dt:.1f}s")
        return 0
    print(f"Error: {describe_failure(run)}", file=sys.stderr)
    if run.failed_in == State.UNPACKING and run.written:
        print(
            f"Note: {len(run.written)} of {total[0]} entries were written before the failure; "
            f"some files may already be on disk in {run.destination}",
            file=sys.stderr,
        )
    return 2


def main(artifact_path: str, argv: Optional[List[str]] = None) -> int:
    ap = argparse.ArgumentParser(
        prog=os.path.basename(artifact_path),
        description="Self-extracting encrypted archive",
    )
    ap.add_argument("--outdir", help="Destination directory (prompted when omitted)")
    ap.add_argument("--password", help="Passphrase (prompted when required and omitted)")
    ap.add_argument("--debug-log", help="Append a debug trace to this file")
    ap.add_argument("--quiet", help="limit outputs to summaries only", action="store_true")
    args = ap.parse_args(argv)

    if args.debug_log:
        attach_debug_log(args.debug_log)
    log.debug("extractor started from %s", artifact_path)
    try:
        bundle = read_bundle(artifact_path)
    except (SfxError, OSError) as exc:
        print(f"Error: cannot read embedded payload: {exc}", file=sys.stderr)
        return 2
    if not args.quiet:
        print("=== Self-Extractor ===")
        print(f"Will extract: {bundle.metadata.artifact_name}")
    return run_extraction(bundle, password=args.password, outdir=args.outdir, quiet=args.quiet)


if __name__ == "__main__":
    sys.exit(main(sys.argv[0]))
