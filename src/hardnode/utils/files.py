"""Atomic file writes for host configuration."""

import os
import tempfile
from pathlib import Path


def atomic_write(
    path: Path,
    content: str,
    mode: int,
    uid: int | None = None,
    gid: int | None = None,
) -> None:
    """Replace path with content in a single rename.

    The temporary file is created in the target directory so the rename
    never crosses a filesystem. Mode and ownership are applied before the
    rename, so the target never exists with looser permissions.

    Args:
        path: File to write
        content: Full new file content
        mode: Permission bits for the new file
        uid: Owner to chown to (None leaves the owner unchanged)
        gid: Group to chown to (None leaves the group unchanged)
    """
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.")
    try:
        with os.fdopen(fd, "w") as f:
            f.write(content)
        os.chmod(tmp_name, mode)
        if uid is not None or gid is not None:
            os.chown(tmp_name, -1 if uid is None else uid, -1 if gid is None else gid)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
