from __future__ import annotations

import os
from typing import Iterable, Set


def norm_path(p: str) -> str:
    """Normalize archive paths to a canonical forward-slash form.

    Rules:
    - Convert backslashes to slashes
    - Strip leading/trailing slashes
    - Remove empty and '.' segments
    - Reject '..' segments
    """
    p = p.replace("\\", "/").strip("/")
    parts = [q for q in p.split("/") if q not in ("", ".")]
    for q in parts:
        if q == "..":
            raise ValueError("Path may not contain '..'")
    return "/".join(parts)


class NameAllocator:
    """Hands out unique container entry names, case-insensitively.

    A repeated name gets `` (n)`` inserted before its extension, with n
    starting at 2. Directory names are suffixed as a whole.
    """

    def __init__(self, taken: Iterable[str] = ()):
        self._taken: Set[str] = {t.casefold() for t in taken}

    def allocate(self, name: str, *, is_dir: bool = False) -> str:
        if name.casefold() not in self._taken:
            self._taken.add(name.casefold())
            return name
        if is_dir:
            root, ext = name, ""
        else:
            root, ext = os.path.splitext(name)
        n = 2
        while True:
            candidate = f"{root} ({n}){ext}"
            if candidate.casefold() not in self._taken:
                self._taken.add(candidate.casefold())
                return candidate
            n += 1
