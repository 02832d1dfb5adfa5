"""Provisioning configuration: defaults file, command-line overrides, environment."""

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from hardnode.core.accounts import validate_username
from hardnode.core.keys import is_public_key
from hardnode.core.sshd import SshPolicy
from hardnode.errors import InvalidInput

AUTH_KEY_ENV = "TS_AUTHKEY"
LOGIN_SERVER_ENV = "HARDNODE_LOGIN_SERVER"


def get_config_dir() -> Path:
    """Get hardnode config directory."""
    return Path.home() / ".config" / "hardnode"


def get_default_config_file() -> Path:
    """Get the default YAML defaults file path."""
    return get_config_dir() / "config.yaml"


@dataclass(frozen=True)
class ProvisioningConfig:
    """Everything a provisioning run needs, resolved once before any stage runs."""

    user: str
    pubkey_file: Path
    public_key: str
    create_user: bool = True
    add_privileged_group: bool = True
    allow_password_auth: bool = False
    install_overlay_network: bool = True
    auto_join_network: bool = True
    update_packages: bool = True
    install_base_tools: bool = True
    login_server: str | None = None
    # Tailscale auth key; sensitive, kept out of repr
    auth_key: str | None = field(default=None, repr=False)

    @property
    def ssh_policy(self) -> SshPolicy:
        if self.allow_password_auth:
            return SshPolicy.ALLOW_PASSWORD
        return SshPolicy.PUBLIC_KEY_ONLY

    @property
    def can_auto_join(self) -> bool:
        """Whether the network stage will run `tailscale up` itself."""
        return self.install_overlay_network and self.auto_join_network and bool(self.auth_key)


# Keys accepted in the YAML defaults file
FILE_KEYS = {f.name for f in fields(ProvisioningConfig)} - {"public_key", "auth_key"}
BOOL_KEYS = {f.name for f in fields(ProvisioningConfig) if f.type in (bool, "bool")}
STR_KEYS = {"user", "pubkey_file", "login_server"}


def load_defaults_file(path: Path) -> dict[str, Any]:
    """Load option defaults from a YAML file.

    Args:
        path: YAML file with a mapping of ProvisioningConfig field names

    Returns:
        The mapping, empty if the file is empty.

    Raises:
        InvalidInput: If the file is unreadable, malformed or has unknown keys.
    """
    try:
        data = yaml.safe_load(path.read_text()) or {}
    except OSError as e:
        raise InvalidInput(f"Cannot read config file {path}: {e}") from None
    except yaml.YAMLError as e:
        raise InvalidInput(f"Malformed config file {path}: {e}") from None

    if not isinstance(data, dict):
        raise InvalidInput(f"Config file {path} must contain a mapping")
    unknown = sorted(set(data) - FILE_KEYS)
    if unknown:
        raise InvalidInput(f"Unknown keys in {path}: {', '.join(unknown)}")
    for key in BOOL_KEYS & set(data):
        if not isinstance(data[key], bool):
            raise InvalidInput(f"{key} in {path} must be true or false")
    for key in STR_KEYS & set(data):
        if data[key] is not None and not isinstance(data[key], str):
            raise InvalidInput(f"{key} in {path} must be a string")
    return data


def read_public_key(path: Path) -> str:
    """Read and validate the single public key in path."""
    if not path.is_file():
        raise InvalidInput(f"Public key file not found: {path}")
    try:
        content = path.read_text()
    except (OSError, UnicodeDecodeError) as e:
        raise InvalidInput(f"Cannot read public key file {path}: {e}") from None

    lines = [line.strip() for line in content.splitlines() if line.strip()]
    if not lines:
        raise InvalidInput(f"Public key file is empty: {path}")
    if len(lines) > 1:
        raise InvalidInput(f"Expected exactly one public key in {path}, found {len(lines)} lines")
    if not is_public_key(lines[0]):
        raise InvalidInput(
            f"Invalid public key format in {path} (should start with ssh-ed25519, ssh-rsa, ecdsa-sha2, ...)"
        )
    return lines[0]


def load_config(
    options: dict[str, Any],
    config_file: Path | None = None,
    environ: dict[str, str] | None = None,
) -> ProvisioningConfig:
    """Resolve the provisioning configuration.

    Precedence, lowest first: dataclass defaults, the YAML defaults file,
    command-line options. Options whose value is None were not given on the
    command line and do not override the file.

    Args:
        options: Command-line values keyed by field name (plus pubkey_file)
        config_file: Explicit defaults file; the default location is used if it exists
        environ: Environment to read TS_AUTHKEY and HARDNODE_LOGIN_SERVER from

    Raises:
        InvalidInput: If user or key is missing, invalid or unreadable.
    """
    environ = os.environ if environ is None else environ

    values: dict[str, Any] = {}
    if config_file is not None:
        values.update(load_defaults_file(config_file))
    elif get_default_config_file().exists():
        values.update(load_defaults_file(get_default_config_file()))

    values.update({k: v for k, v in options.items() if v is not None})

    user = values.pop("user", None)
    if not user:
        raise InvalidInput("Missing --user (use --help)")
    if not validate_username(user):
        raise InvalidInput(f"Invalid username {user!r}")

    pubkey_file = values.pop("pubkey_file", None)
    if not pubkey_file:
        raise InvalidInput("Missing --pubkey-file (use --help)")
    pubkey_file = Path(pubkey_file).expanduser()

    if not values.get("login_server"):
        values["login_server"] = environ.get(LOGIN_SERVER_ENV) or None

    return ProvisioningConfig(
        user=user,
        pubkey_file=pubkey_file,
        public_key=read_public_key(pubkey_file),
        auth_key=environ.get(AUTH_KEY_ENV) or None,
        **values,
    )
