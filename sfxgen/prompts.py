from __future__ import annotations

import getpass as _getpass
from typing import List, Optional

from .bundle import BundleMetadata


def _read_line(prompt: str) -> Optional[str]:
    try:
        value = input(prompt)
    except EOFError:
        return None
    value = value.strip()
    return value or None


def ask_selections() -> List[str]:
    """Read file/directory paths, one per line, until an empty line."""
    print("Enter files or directories to pack, one per line (empty line to finish):")
    paths: List[str] = []
    while True:
        line = _read_line(f"  [{len(paths) + 1}] ")
        if line is None:
            return paths
        paths.append(line.strip('"'))


def ask_output_dir() -> Optional[str]:
    line = _read_line("Output directory: ")
    return line.strip('"') if line else None


def ask_new_passphrase() -> str:
    """Ask for an optional passphrase; no input means none."""
    try:
        first = _getpass.getpass("Passphrase (leave empty for none): ")
        if not first:
            return ""
        second = _getpass.getpass("Repeat passphrase: ")
    except EOFError:
        return ""
    if first != second:
        raise ValueError("Passphrases do not match")
    return first


def ask_passphrase(meta: BundleMetadata) -> Optional[str]:
    try:
        return _getpass.getpass(f"Passphrase for {meta.artifact_name}: ")
    except EOFError:
        return None


def ask_destination(meta: BundleMetadata) -> Optional[str]:
    line = _read_line(f"Extract {meta.artifact_name} to directory: ")
    return line.strip('"') if line else None
