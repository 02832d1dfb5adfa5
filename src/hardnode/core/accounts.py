"""Linux account management."""

import re
from dataclasses import dataclass, field
from pathlib import Path

from hardnode.errors import ExternalToolFailure
from hardnode.utils.process import require_success, run

# Group that grants sudo on Ubuntu
PRIVILEGED_GROUP = "sudo"

# adduser's default NAME_REGEX on Debian/Ubuntu
VALID_USERNAME_PATTERN = re.compile(r"^[a-z][-a-z0-9_]*\$?$")

# getent exit status for "key not found in database"
GETENT_NOT_FOUND = 2


@dataclass
class HostAccount:
    """A Linux account on the host."""

    name: str
    uid: int
    gid: int
    home: Path
    groups: list[str] = field(default_factory=list)

    @property
    def ssh_dir(self) -> Path:
        return self.home / ".ssh"

    @property
    def authorized_keys(self) -> Path:
        return self.ssh_dir / "authorized_keys"


def validate_username(name: str) -> bool:
    """Validate a username against adduser's default rules.

    Args:
        name: Username to validate

    Returns:
        True if valid, False otherwise.
    """
    if not name or len(name) > 32:
        return False
    return bool(VALID_USERNAME_PATTERN.match(name))


def parse_passwd_entry(line: str) -> tuple[int, int, Path]:
    """Extract uid, gid and home from a passwd(5) line."""
    fields = line.strip().split(":")
    if len(fields) < 7:
        raise ValueError(f"Malformed passwd entry: {line!r}")
    return int(fields[2]), int(fields[3]), Path(fields[5])


def get_groups(name: str) -> list[str]:
    """Get the group names an account belongs to."""
    result = run(["id", "-nG", name])
    require_success(result, f"Could not read groups for {name}")
    return result.stdout.split()


def get_account(name: str) -> HostAccount | None:
    """Look up an account.

    Returns:
        The account, or None if it does not exist.

    Raises:
        ExternalToolFailure: If the account database could not be queried.
    """
    result = run(["getent", "passwd", name])
    if result.returncode == GETENT_NOT_FOUND:
        return None
    require_success(result, f"getent passwd {name} failed")

    try:
        uid, gid, home = parse_passwd_entry(result.stdout.splitlines()[0])
    except (ValueError, IndexError) as e:
        raise ExternalToolFailure(f"Could not determine home dir for {name}: {e}") from None
    return HostAccount(name=name, uid=uid, gid=gid, home=home, groups=get_groups(name))


def create_account(name: str) -> None:
    """Create a standard account with a home directory and no password."""
    result = run(["adduser", "--disabled-password", "--gecos", "", name])
    require_success(result, f"Failed to create user {name}")


def add_to_group(name: str, group: str) -> None:
    """Append a supplementary group to an account."""
    result = run(["usermod", "-aG", group, name])
    require_success(result, f"Failed to add {name} to group {group}")
