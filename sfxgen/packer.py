from __future__ import annotations

import io
import logging
import os
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional

from .capacity import check_fits
from .constants import CONTAINER_DATE_TIME, KIND_DIR, KIND_FILE
from .errors import SelectionEmpty, SymlinkLoop
from .pathutil import NameAllocator, norm_path


log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Selection:
    path: str
    kind: int  # 0=file, 1=dir

    @classmethod
    def from_path(cls, path: str) -> "Selection":
        p = Path(os.path.abspath(os.path.expanduser(path)))
        if p.is_dir():
            return cls(str(p), KIND_DIR)
        if p.is_file():
            return cls(str(p), KIND_FILE)
        raise FileNotFoundError(f"No such file or directory: {path}")


@dataclass
class PlannedEntry:
    name: str
    kind: int
    source: Optional[str] = None
    size: int = 0


@dataclass
class PackPlan:
    entries: List[PlannedEntry] = field(default_factory=list)
    top_names: List[str] = field(default_factory=list)
    total_size: int = 0

    @property
    def artifact_name(self) -> str:
        return self.top_names[0] if self.top_names else ""


@dataclass
class PackedContainer:
    data: bytes
    total_size: int
    artifact_name: str
    names: List[str]


def _walk_dir(root: str, top: str, plan: PackPlan, names: NameAllocator) -> None:
    """Expand a directory selection, following symlinked directories.

    Every entry name goes through ``names`` so nested names stay unique
    ignoring case; a renamed directory carries its new name to its children.
    """
    arcs = {root: top}
    # real paths of each directory and its ancestors, for loop detection
    chains = {root: frozenset([os.path.realpath(root)])}
    for dirpath, dirnames, filenames in os.walk(root, onerror=_raise, followlinks=True):
        dirnames.sort()
        parent = arcs[dirpath]
        for d in dirnames:
            sub = os.path.join(dirpath, d)
            real = os.path.realpath(sub)
            if real in chains[dirpath]:
                raise SymlinkLoop(f"Symlink {sub} points back into {real}")
            chains[sub] = chains[dirpath] | {real}
            arc = names.allocate(norm_path(f"{parent}/{d}"), is_dir=True)
            arcs[sub] = arc
            plan.entries.append(PlannedEntry(arc + "/", KIND_DIR))
        for fn in sorted(filenames):
            full = os.path.join(dirpath, fn)
            size = os.path.getsize(full)
            arc = names.allocate(norm_path(f"{parent}/{fn}"))
            plan.entries.append(PlannedEntry(arc, KIND_FILE, full, size))
            plan.total_size += size


def _raise(exc: OSError) -> None:
    raise exc


def plan_selections(selections: Iterable[Selection]) -> PackPlan:
    """Lay out container entries for ``selections`` without reading file data."""
    plan = PackPlan()
    names = NameAllocator()
    for sel in selections:
        base = os.path.basename(os.path.normpath(sel.path))
        if sel.kind == KIND_DIR:
            if not os.path.isdir(sel.path):
                raise NotADirectoryError(f"Not a directory: {sel.path}")
            top = names.allocate(base, is_dir=True)
            plan.top_names.append(top)
            plan.entries.append(PlannedEntry(top + "/", KIND_DIR))
            _walk_dir(sel.path, top, plan, names)
        else:
            size = os.path.getsize(sel.path)
            top = names.allocate(base)
            plan.top_names.append(top)
            plan.entries.append(PlannedEntry(top, KIND_FILE, sel.path, size))
            plan.total_size += size
    return plan


def write_container(plan: PackPlan) -> bytes:
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for ent in plan.entries:
            info = zipfile.ZipInfo(ent.name, date_time=CONTAINER_DATE_TIME)
            if ent.kind == KIND_DIR:
                info.external_attr = (0o40755 << 16) | 0x10
                zf.writestr(info, b"")
                continue
            info.compress_type = zipfile.ZIP_DEFLATED
            info.external_attr = 0o644 << 16
            with open(ent.source, "rb") as fh:
                zf.writestr(info, fh.read())
            log.debug("packed %s (%d bytes)", ent.name, ent.size)
    return buf.getvalue()


def pack_selections(selections: Iterable[Selection], *, max_bytes: Optional[int] = None) -> PackedContainer:
    """Pack files and directories into one in-memory ZIP container.

    Selections keep their input order and each contributes one top-level
    entry. Repeated top-level names are made unique (see NameAllocator).
    The capacity gate runs on the planned size before any file is read.
    I/O errors propagate; no partial container is returned.

    Raises:
        SelectionEmpty: if ``selections`` is empty.
        SizeExceeded: if the uncompressed total is over the ceiling.
    """
    selections = list(selections)
    if not selections:
        raise SelectionEmpty("No files or directories selected")
    plan = plan_selections(selections)
    check_fits(plan.total_size, max_bytes)
    data = write_container(plan)
    log.debug("container: %d entries, %d bytes uncompressed, %d bytes packed", len(plan.entries), plan.total_size, len(data))
    return PackedContainer(
        data=data,
        total_size=plan.total_size,
        artifact_name=plan.artifact_name,
        names=[e.name for e in plan.entries],
    )
