"""SSH daemon authentication policy: drop-in fragment, reload and verification.

sshd keeps the first value it reads for most directives, and the stock
Ubuntu sshd_config includes sshd_config.d/*.conf at the top in lexical
order. The fragment is therefore named with a 00- prefix so it wins over
cloud-init's 50-cloud-init.conf and anything in the base file.

The files are not the source of truth. After a reload, `sshd -T` is asked
for the merged configuration and that is what gets checked.
"""

import shutil
from datetime import datetime
from enum import Enum
from pathlib import Path

from hardnode.errors import ExternalToolFailure
from hardnode.utils.files import atomic_write
from hardnode.utils.process import command_exists, require_success, run

DROPIN_PATH = Path("/etc/ssh/sshd_config.d/00-hardnode-auth.conf")
DROPIN_MODE = 0o644

BACKUP_TIMESTAMP_FORMAT = "%Y%m%d-%H%M%S"

# systemd unit names, newest first
SSH_UNITS = ["ssh", "sshd"]

# Directives shown after every verification
REPORTED_KEYS = [
    "authenticationmethods",
    "passwordauthentication",
    "kbdinteractiveauthentication",
    "pubkeyauthentication",
]


class SshPolicy(Enum):
    """Desired SSH authentication posture."""

    PUBLIC_KEY_ONLY = "publickey-only"
    ALLOW_PASSWORD = "allow-password"


FRAGMENTS = {
    SshPolicy.PUBLIC_KEY_ONLY: """\
# Managed by hardnode - public key authentication only.
# Previous versions are kept next to this file as *.bak.<timestamp>.

AuthenticationMethods publickey
PasswordAuthentication no
KbdInteractiveAuthentication no
ChallengeResponseAuthentication no
PubkeyAuthentication yes
""",
    SshPolicy.ALLOW_PASSWORD: """\
# Managed by hardnode - password authentication intentionally allowed.
# Previous versions are kept next to this file as *.bak.<timestamp>.

PasswordAuthentication yes
KbdInteractiveAuthentication no
ChallengeResponseAuthentication no
PubkeyAuthentication yes
""",
}

# Effective values required for the key-only posture
REQUIRED_KEY_ONLY = {
    "passwordauthentication": "no",
    "kbdinteractiveauthentication": "no",
    "authenticationmethods": "publickey",
}


def render_fragment(policy: SshPolicy) -> str:
    """Return the drop-in content for a policy."""
    return FRAGMENTS[policy]


def backup_path(path: Path, now: datetime) -> Path:
    """Pick an unused timestamped backup name for path.

    Two backups in the same second get a numeric suffix instead of
    overwriting each other.
    """
    base = f"{path.name}.bak.{now.strftime(BACKUP_TIMESTAMP_FORMAT)}"
    candidate = path.with_name(base)
    counter = 1
    while candidate.exists():
        candidate = path.with_name(f"{base}.{counter}")
        counter += 1
    return candidate


def list_backups(path: Path) -> list[Path]:
    """List existing backups of path, oldest name first."""
    return sorted(path.parent.glob(f"{path.name}.bak.*"))


def write_fragment(path: Path, policy: SshPolicy, now: datetime | None = None) -> Path | None:
    """Write the policy fragment, copying any existing one aside first.

    Backups accumulate; nothing here ever deletes one.

    Args:
        path: Drop-in file to write
        policy: Policy variant to write
        now: Timestamp for the backup name (defaults to the current time)

    Returns:
        The backup path if a previous fragment existed, else None.
    """
    backup = None
    if path.exists():
        backup = backup_path(path, now or datetime.now())
        shutil.copy2(path, backup)

    path.parent.mkdir(parents=True, exist_ok=True)
    atomic_write(path, render_fragment(policy), DROPIN_MODE)
    return backup


def is_installed() -> bool:
    """Check if the sshd binary is available."""
    return command_exists("sshd")


def check_config() -> None:
    """Syntax-check the merged configuration with `sshd -t`."""
    result = run(["sshd", "-t"])
    require_success(result, "sshd -t rejected the configuration")


def reload() -> str:
    """Reload (never restart) the SSH daemon.

    Returns:
        The unit name that was reloaded.
    """
    result = None
    for unit in SSH_UNITS:
        result = run(["systemctl", "reload", unit])
        if result.success:
            return unit
    require_success(result, "Failed to reload the SSH daemon")
    return SSH_UNITS[-1]


def parse_effective_config(output: str) -> dict[str, str]:
    """Parse `sshd -T` output into a lower-cased directive dict.

    sshd -T prints one directive per line. Repeated directives (e.g.
    hostkey) keep their first value.
    """
    config: dict[str, str] = {}
    for line in output.splitlines():
        parts = line.strip().split(maxsplit=1)
        if not parts:
            continue
        key = parts[0].lower()
        value = parts[1].strip() if len(parts) > 1 else ""
        config.setdefault(key, value)
    return config


def effective_config() -> dict[str, str]:
    """Query the daemon's live merged configuration."""
    result = run(["sshd", "-T"])
    if not result.success or not result.stdout.strip():
        raise ExternalToolFailure(
            "Failed to read effective sshd config with sshd -T",
            cmd=result.cmd,
            returncode=result.returncode,
            stderr=result.stderr,
        )
    return parse_effective_config(result.stdout)


def unmet_conditions(config: dict[str, str]) -> list[str]:
    """List the key-only requirements the effective config does not meet.

    Returns:
        Human-readable descriptions, empty when all conditions hold.
    """
    unmet = []
    for key, expected in REQUIRED_KEY_ONLY.items():
        actual = config.get(key)
        if actual != expected:
            unmet.append(f"expected: {key} {expected} (got: {key} {actual or '<unset>'})")
    return unmet
