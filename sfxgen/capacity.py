from __future__ import annotations

import logging
from typing import Optional

import psutil

from .constants import FALLBACK_MAX_BYTES, MEMORY_FRACTION
from .errors import SizeExceeded


log = logging.getLogger(__name__)


def max_bytes() -> int:
    """Largest selection, in bytes, that generation will accept.

    80% of the memory currently available, or a fixed 1 GiB when the
    platform does not report it.
    """
    try:
        available = psutil.virtual_memory().available
    except (OSError, RuntimeError, AttributeError) as exc:
        log.debug("available memory unknown (%s); using fallback ceiling", exc)
        return FALLBACK_MAX_BYTES
    return int(available * MEMORY_FRACTION)


def check_fits(total_bytes: int, ceiling: Optional[int] = None) -> None:
    """Raise SizeExceeded when ``total_bytes`` is over the ceiling."""
    limit = max_bytes() if ceiling is None else int(ceiling)
    if total_bytes > limit:
        raise SizeExceeded(total_bytes, limit)
    log.debug("capacity ok: %d of %d bytes", total_bytes, limit)
