"""authorized_keys management.

Keys are only ever appended. A key counts as present when a line of the
file equals it exactly (surrounding whitespace ignored), so a key is never
duplicated across re-runs and a changed key is added next to the old one
rather than replacing it. Pruning superseded keys is a manual job.
"""

import os
from pathlib import Path

from hardnode.errors import ExternalToolFailure
from hardnode.utils.files import atomic_write

SSH_DIR_MODE = 0o700
AUTHORIZED_KEYS_MODE = 0o600

# Key type prefixes accepted in authorized_keys
PUBLIC_KEY_PREFIXES = ("ssh-", "ecdsa-", "sk-")


def is_public_key(key: str) -> bool:
    """Check that a string looks like a single OpenSSH public key line."""
    parts = key.strip().split()
    if len(parts) < 2 or "\n" in key.strip():
        return False
    return parts[0].startswith(PUBLIC_KEY_PREFIXES)


def read_keys(path: Path) -> list[str]:
    """Read the key lines of an authorized_keys file, skipping blanks and comments."""
    if not path.exists():
        return []
    return [
        line.strip()
        for line in path.read_text().splitlines()
        if line.strip() and not line.strip().startswith("#")
    ]


def has_key(content: str, key: str) -> bool:
    """Check whether key appears as a whole line of content."""
    wanted = key.strip()
    return any(line.strip() == wanted for line in content.splitlines())


def _chown(path: Path, uid: int | None, gid: int | None) -> None:
    if uid is not None or gid is not None:
        os.chown(path, -1 if uid is None else uid, -1 if gid is None else gid)


def ensure_authorized_key(
    ssh_dir: Path,
    key: str,
    uid: int | None = None,
    gid: int | None = None,
) -> bool:
    """Ensure key is present exactly once in ssh_dir/authorized_keys.

    The directory and file permissions (and ownership, when uid/gid are
    given) are re-asserted on every call, whether or not the key was added.

    Args:
        ssh_dir: The account's ~/.ssh directory
        key: Public key line to install
        uid: Account uid to own the directory and file
        gid: Account gid to own the directory and file

    Returns:
        True if the key was appended, False if it was already present.

    Raises:
        ExternalToolFailure: If ~/.ssh or authorized_keys is a symlink.
    """
    key = key.strip()
    # chmod/chown below run as root and would follow a link anywhere
    if ssh_dir.is_symlink():
        raise ExternalToolFailure(f"Refusing to manage {ssh_dir}: it is a symlink")
    ssh_dir.mkdir(mode=SSH_DIR_MODE, exist_ok=True)
    ssh_dir.chmod(SSH_DIR_MODE)
    _chown(ssh_dir, uid, gid)

    auth_keys = ssh_dir / "authorized_keys"
    if auth_keys.is_symlink():
        raise ExternalToolFailure(f"Refusing to manage {auth_keys}: it is a symlink")
    existing = auth_keys.read_text() if auth_keys.exists() else ""

    if has_key(existing, key):
        auth_keys.chmod(AUTHORIZED_KEYS_MODE)
        _chown(auth_keys, uid, gid)
        return False

    if existing and not existing.endswith("\n"):
        existing += "\n"
    atomic_write(auth_keys, existing + key + "\n", AUTHORIZED_KEYS_MODE, uid=uid, gid=gid)
    return True
