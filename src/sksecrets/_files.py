"""Atomic file replacement with an explicit mode.

Store files, key files, backups and ``get --output`` targets all hold
secret material, so they are written through here rather than opened
in place.
"""

from __future__ import annotations

import contextlib
import os
import tempfile
from pathlib import Path


def write_atomic(path: Path, data: bytes, mode: int = 0o600) -> None:
    """Replace ``path`` with ``data`` through a sibling temporary file.

    The temporary file gets ``mode`` before anything is written to it,
    so the result has exactly that mode whether or not ``path`` already
    existed, and regardless of the umask.

    Raises:
        OSError: If the file cannot be created, written or moved into place.
    """
    fd, tmp_name = tempfile.mkstemp(
        dir=path.parent, prefix=f".{path.name}.", suffix=".tmp"
    )
    try:
        with os.fdopen(fd, "wb") as f:
            os.fchmod(f.fileno(), mode)
            f.write(data)
        os.replace(tmp_name, path)
    except BaseException:
        with contextlib.suppress(FileNotFoundError):
            os.unlink(tmp_name)
        raise
