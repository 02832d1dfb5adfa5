"""Host identity detection and the supported-platform check."""

import os
import socket
from dataclasses import dataclass
from pathlib import Path

from hardnode.errors import PreflightMismatch

OS_RELEASE_PATH = Path("/etc/os-release")

# The one platform every later stage is written against
SUPPORTED_ID = "ubuntu"
SUPPORTED_VERSION_ID = "24.04"


@dataclass(frozen=True)
class OsRelease:
    """Identity fields from os-release."""

    id: str
    version_id: str
    pretty_name: str = ""

    @property
    def label(self) -> str:
        return self.pretty_name or f"{self.id or 'unknown'} {self.version_id or 'unknown'}"


def parse_os_release(content: str) -> dict[str, str]:
    """Parse os-release KEY=value lines into a dict.

    Comments, blank lines and lines without '=' are ignored. Values are
    unquoted.
    """
    data: dict[str, str] = {}
    for line in content.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        data[key.strip()] = value.strip().strip('"').strip("'")
    return data


def read_os_release(path: Path = OS_RELEASE_PATH) -> OsRelease | None:
    """Read host identity from os-release, or None if the file is missing."""
    if not path.exists():
        return None
    data = parse_os_release(path.read_text())
    return OsRelease(
        id=data.get("ID", "").lower(),
        version_id=data.get("VERSION_ID", ""),
        pretty_name=data.get("PRETTY_NAME", ""),
    )


def check_supported(release: OsRelease | None) -> OsRelease:
    """Raise PreflightMismatch unless release is the supported target.

    Returns:
        The release, for reporting.
    """
    if release is None:
        raise PreflightMismatch(f"Cannot detect OS version ({OS_RELEASE_PATH} missing)")
    if release.id != SUPPORTED_ID:
        raise PreflightMismatch(
            f"Expected {SUPPORTED_ID}, detected: {release.id or 'unknown'}"
        )
    if release.version_id != SUPPORTED_VERSION_ID:
        raise PreflightMismatch(
            f"Expected {SUPPORTED_ID} {SUPPORTED_VERSION_ID}, detected: {release.version_id or 'unknown'}"
        )
    return release


def is_root() -> bool:
    """Check if running with an effective uid of 0."""
    return os.geteuid() == 0


def get_hostname() -> str:
    """Get the current hostname."""
    return socket.gethostname()
