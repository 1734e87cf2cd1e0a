from __future__ import annotations

import argparse
import logging
import sys
import time
from typing import List, Optional

from sfxgen import cipher, prompts
from sfxgen.bundle import read_bundle
from sfxgen.capacity import max_bytes as _max_bytes
from sfxgen.container import list_entries, open_container
from sfxgen.constants import CHALLENGE_ARGON2ID, CHALLENGE_PLAIN
from sfxgen.errors import (
    InvalidKey,
    MalformedBundle,
    SfxError,
    SizeExceeded,
)
from sfxgen.generator import seal
from sfxgen.keyderive import derive_key, ticks_to_datetime
from sfxgen.packer import Selection
from sfxgen.stub import attach_debug_log, run_extraction


_SCHEME_NAMES = {0: "none", CHALLENGE_PLAIN: "plain (recoverable)", CHALLENGE_ARGON2ID: "argon2id"}


def cmd_seal(
    output: Optional[str],
    inputs: List[str],
    *,
    password: Optional[str] = None,
    ask_password: bool = True,
    hash_challenge: bool = False,
    max_bytes: Optional[int] = None,
    bundle_only: bool = False,
    quiet: bool = False,
) -> bool:
    """Seal files and directories into a self-extracting artifact.

    Args:
        output: Output directory; prompted for when None.
        inputs: File or directory paths; prompted for when empty.
        password: Passphrase. When None and ``ask_password`` is set, it is
            prompted for; empty input means no passphrase.
        hash_challenge: Store an Argon2id hash instead of the recoverable
            passphrase challenge.
        max_bytes: Size ceiling override (default: 80% of available memory).
        bundle_only: Write the raw bundle instead of a .pyz artifact.

    Returns:
        True when an artifact was written, False when the run was cancelled.
    """
    ceiling = _max_bytes() if max_bytes is None else max_bytes
    if not quiet:
        print(f" Size limit: {ceiling / (1024.0 * 1024.0):.0f} MiB")

    paths = list(inputs) or prompts.ask_selections()
    if not paths:
        print("No files selected; nothing to do.")
        return False
    selections = [Selection.from_path(p) for p in paths]

    if not output:
        output = prompts.ask_output_dir()
    if not output:
        print("No output directory selected; nothing to do.")
        return False

    if password is None:
        password = prompts.ask_new_passphrase() if ask_password else ""

    t0 = time.time()
    res = seal(
        selections,
        output,
        passphrase=password,
        challenge_scheme="argon2id" if hash_challenge else "plain",
        max_bytes=ceiling,
        bundle_only=bundle_only,
    )
    dt = max(0.000001, time.time() - t0)
    mib = res.metadata.payload_size / (1024.0 * 1024.0)
    print(
        f"Done: {res.entries} entries, {mib:.2f} MiB in {dt:.1f}s; "
        f"passphrase={_SCHEME_NAMES[res.metadata.challenge.scheme]}"
    )
    print(f"Artifact written to: {res.path}")
    return True


def cmd_unseal(archive: str, *, outdir: Optional[str] = None, password: Optional[str] = None, quiet: bool = False) -> int:
    """Extract an artifact or raw bundle; prompts for what is missing."""
    bundle = read_bundle(archive)
    return run_extraction(bundle, password=password, outdir=outdir, quiet=quiet)


def cmd_list(archive: str, *, password: Optional[str] = None) -> bool:
    """Decrypt in memory and list container entries."""
    bundle = read_bundle(archive)
    meta = bundle.metadata
    secret = ""
    if meta.challenge.required:
        if password is None:
            password = prompts.ask_passphrase(meta)
        if password is None or not meta.challenge.matches(password):
            raise InvalidKey("Incorrect passphrase")
        secret = password
    key = derive_key(secret, meta.artifact_name, meta.payload_size, meta.timestamp)
    with open_container(cipher.decrypt(bundle.blob, key)) as zf:
        for e in list_entries(zf):
            if e.is_dir:
                print(f"dir\t{e.name}")
            else:
                print(f"file\t{e.size}\t{e.name}")
    return True


def cmd_info(archive: str) -> bool:
    """Show bundle metadata without decrypting."""
    bundle = read_bundle(archive)
    meta = bundle.metadata
    print(f"Artifact: {archive}")
    print(f"  Version: {bundle.version_major}.{bundle.version_minor}")
    print(f"  Name: {meta.artifact_name}")
    print(f"  Payload size: {meta.payload_size}")
    try:
        created = f"{ticks_to_datetime(meta.timestamp).isoformat()} ({meta.timestamp} ticks)"
    except OverflowError:
        created = f"{meta.timestamp} ticks (out of range)"
    print(f"  Created: {created}")
    print(f"  Passphrase: {_SCHEME_NAMES.get(meta.challenge.scheme, str(meta.challenge.scheme))}")
    print(f"  Encrypted size: {len(bundle.blob)}")
    return True


def main(argv: List[str] | None = None):
    ap = argparse.ArgumentParser(
        prog="sfxgen",
        description="Build encrypted self-extracting archives",
        epilog=(
            "Payloads are AES-256-CBC encrypted without an integrity tag: a wrong "
            "passphrase and a damaged artifact are reported the same way."
        ),
    )
    ap.add_argument("--debug-log", help="Append a debug trace to this file")
    sub = ap.add_subparsers(dest="cmd", required=True)

    ap_seal = sub.add_parser("seal", help="Build a self-extracting artifact")
    ap_seal.add_argument("inputs", nargs="*", help="Input files/directories (prompted when omitted)")
    ap_seal.add_argument("--outdir", help="Output directory (prompted when omitted)")
    ap_seal.add_argument("--password", help="Passphrase (prompted when omitted; empty for none)")
    ap_seal.add_argument("--no-password", action="store_true", help="Do not prompt for a passphrase")
    ap_seal.add_argument(
        "--hash-challenge",
        action="store_true",
        help="Store an Argon2id hash of the passphrase instead of a recoverable copy",
    )
    ap_seal.add_argument("--max-bytes", type=int, help="Size limit in bytes (default: 80%% of available memory)")
    ap_seal.add_argument("--bundle-only", action="store_true", help="Write the raw .sfxb bundle instead of a .pyz")
    ap_seal.add_argument("--quiet", help="limit outputs to summaries only", action="store_true")

    ap_unseal = sub.add_parser("unseal", help="Extract an artifact or bundle")
    ap_unseal.add_argument("archive", help="Artifact (.pyz) or bundle (.sfxb) path")
    ap_unseal.add_argument("--outdir", help="Destination directory (prompted when omitted)")
    ap_unseal.add_argument("--password", help="Passphrase")
    ap_unseal.add_argument("--quiet", help="limit outputs to summaries only", action="store_true")

    ap_list = sub.add_parser("list", help="List artifact contents")
    ap_list.add_argument("archive", help="Artifact or bundle path")
    ap_list.add_argument("--password", help="Passphrase")

    ap_info = sub.add_parser("info", help="Show artifact metadata")
    ap_info.add_argument("archive", help="Artifact or bundle path")

    args = ap.parse_args(argv)
    if args.debug_log:
        attach_debug_log(args.debug_log)
    logging.getLogger("sfxgen").debug("sfxgen %s", args.cmd)
    try:
        if args.cmd == "seal":
            ok = cmd_seal(
                args.outdir,
                args.inputs,
                password=args.password,
                ask_password=not args.no_password,
                hash_challenge=args.hash_challenge,
                max_bytes=args.max_bytes,
                bundle_only=args.bundle_only,
                quiet=args.quiet,
            )
            sys.exit(0 if ok else 1)
        elif args.cmd == "unseal":
            sys.exit(cmd_unseal(args.archive, outdir=args.outdir, password=args.password, quiet=args.quiet))
        elif args.cmd == "list":
            cmd_list(args.archive, password=args.password)
        elif args.cmd == "info":
            cmd_info(args.archive)
        else:
            raise RuntimeError("Unknown command")
    except SizeExceeded as e:
        print(f"Error: {e}. Select fewer or smaller files.", file=sys.stderr)
        sys.exit(2)
    except InvalidKey:
        print("Error: Incorrect passphrase.", file=sys.stderr)
        sys.exit(2)
    except MalformedBundle as e:
        print(f"Error: not a valid sfxgen artifact: {e}", file=sys.stderr)
        sys.exit(2)
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)
    except (SfxError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
