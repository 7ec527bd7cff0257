"""Storage path resolution for blob downloads."""

from __future__ import annotations

import os
from pathlib import Path

from fileshare.errors import InvalidPath


def resolve(requested_name: str, storage_root: str | os.PathLike) -> Path:
    """Resolve *requested_name* under *storage_root* and return the absolute path.

    Raises ``InvalidPath`` if the canonical result is not strictly inside the
    canonical root, which covers ``../`` segments, absolute names and
    symlinks pointing out of the sandbox.
    """
    if not requested_name or not requested_name.strip():
        raise InvalidPath("Invalid file name: empty")
    if "\x00" in requested_name:
        raise InvalidPath("Invalid file name: embedded null byte")

    # lexical check first, so a name climbing out is rejected even when the
    # root is "/" and the canonical path would clamp back inside
    lexical = os.path.normpath(requested_name)
    if os.path.isabs(lexical) or lexical == os.pardir or lexical.startswith(os.pardir + os.sep):
        raise InvalidPath(f"Invalid file name: {requested_name}")

    root = Path(storage_root).resolve()
    resolved = (root / requested_name).resolve()

    # compared per component, so /data/store2 is not inside /data/store
    if resolved == root or root not in resolved.parents:
        raise InvalidPath(f"Invalid file name: {requested_name}")
    return resolved
