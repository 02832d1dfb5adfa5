"""Shared fixtures: an in-memory host and ready-made configs."""

from pathlib import Path

import pytest

from hardnode.core import keys, sshd
from hardnode.core.accounts import HostAccount
from hardnode.core.config import ProvisioningConfig
from hardnode.core.environment import OsRelease
from hardnode.errors import ExternalToolFailure

ALICE_KEY = "ssh-ed25519 AAAAC3NzaC1lZDI1NTE5AAAAIOMqqnkVzrm0SdG6UOoqKLsabgH5C9okWi0dh2l9GKJl alice@laptop"
BOB_KEY = "ssh-ed25519 AAAAC3NzaC1lZDI1NTE5AAAAIBq9S2uBvXzN5nYkHkPZp1cM3eTqZ7V0yQy5q8d2sLk0 bob@desk"

# What sshd -T reports on a stock host before any drop-in is applied
STOCK_EFFECTIVE = {
    "authenticationmethods": "any",
    "passwordauthentication": "yes",
    "kbdinteractiveauthentication": "no",
    "pubkeyauthentication": "yes",
}


class FakeHost:
    """Stand-in for LinuxHost.

    Accounts, packages and Tailscale state live in memory. authorized_keys
    and the sshd drop-in are written for real under root via the keys and
    sshd modules. Every mutating call is recorded in `calls`.
    """

    def __init__(self, root: Path, os_id: str = "ubuntu", version_id: str = "24.04", as_root: bool = True):
        self.root = root
        self.release = OsRelease(id=os_id, version_id=version_id, pretty_name=f"{os_id} {version_id}")
        self.as_root = as_root
        self.dropin_path = root / "etc" / "ssh" / "sshd_config.d" / "00-hardnode-auth.conf"
        self.accounts: dict[str, HostAccount] = {}
        self.installed_packages: set[str] = set()
        self.network_present = False
        self.joined = False
        self.join_args: tuple | None = None
        self.sshd_present = True
        self.reloaded = False
        # Directives forced by some other config layer, winning over the drop-in
        self.forced_effective: dict[str, str] = {}
        # Method names that should fail with ExternalToolFailure
        self.fail_on: set[str] = set()
        self.calls: list[tuple] = []

    def _call(self, name: str, *args) -> None:
        self.calls.append((name, *args))
        if name in self.fail_on:
            raise ExternalToolFailure(f"{name} failed", cmd=[name], returncode=1, stderr="boom")

    def add_existing_account(self, name: str, groups: list[str] | None = None) -> HostAccount:
        home = self.root / "home" / name
        home.mkdir(parents=True, exist_ok=True)
        account = HostAccount(name=name, uid=1000 + len(self.accounts), gid=1000, home=home, groups=groups or [name])
        self.accounts[name] = account
        return account

    # --- identity ---

    def os_release(self):
        return self.release

    def is_root(self):
        return self.as_root

    # --- packages ---

    def update_package_index(self):
        self._call("update_package_index")

    def upgrade_packages(self):
        self._call("upgrade_packages")

    def install_packages(self, names):
        self._call("install_packages", tuple(names))
        self.installed_packages.update(names)

    # --- accounts and keys ---

    def get_account(self, name):
        return self.accounts.get(name)

    def create_account(self, name):
        self._call("create_account", name)
        self.add_existing_account(name)

    def add_to_group(self, name, group):
        self._call("add_to_group", name, group)
        if group not in self.accounts[name].groups:
            self.accounts[name].groups.append(group)

    def ensure_authorized_key(self, account, key):
        self._call("ensure_authorized_key", account.name)
        return keys.ensure_authorized_key(account.ssh_dir, key)

    # --- overlay network ---

    def network_installed(self):
        return self.network_present

    def network_connected(self):
        return self.joined

    def install_network(self):
        self._call("install_network")
        self.network_present = True

    def control_server_healthy(self, url):
        return True

    def join_network(self, auth_key, login_server=None):
        self._call("join_network")
        self.join_args = (auth_key, login_server)
        self.joined = True

    def network_ip(self):
        return "100.101.102.103" if self.joined else None

    # --- sshd ---

    def sshd_installed(self):
        return self.sshd_present

    def write_ssh_policy(self, policy):
        self._call("write_ssh_policy", policy)
        return sshd.write_fragment(self.dropin_path, policy)

    def check_sshd_config(self):
        self._call("check_sshd_config")

    def reload_sshd(self):
        self._call("reload_sshd")
        self.reloaded = True
        return "ssh"

    def effective_sshd_config(self):
        self._call("effective_sshd_config")
        effective = dict(STOCK_EFFECTIVE)
        if self.reloaded and self.dropin_path.exists():
            fragment = sshd.parse_effective_config(
                "\n".join(
                    line for line in self.dropin_path.read_text().splitlines() if not line.startswith("#")
                )
            )
            effective.update(fragment)
        effective.update(self.forced_effective)
        return effective


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path: Path, monkeypatch):
    """Keep the real ~/.config and TS_AUTHKEY out of every test."""
    monkeypatch.setattr("hardnode.core.config.get_config_dir", lambda: tmp_path / "no-config")
    monkeypatch.delenv("TS_AUTHKEY", raising=False)
    monkeypatch.delenv("HARDNODE_LOGIN_SERVER", raising=False)


@pytest.fixture
def host(tmp_path: Path) -> FakeHost:
    return FakeHost(tmp_path / "host")


@pytest.fixture
def pubkey_file(tmp_path: Path) -> Path:
    path = tmp_path / "id_ed25519.pub"
    path.write_text(ALICE_KEY + "\n")
    return path


@pytest.fixture
def make_config(pubkey_file: Path):
    """Build a ProvisioningConfig for alice, overriding any field."""

    def _make(**overrides) -> ProvisioningConfig:
        values = {"user": "alice", "pubkey_file": pubkey_file, "public_key": ALICE_KEY}
        values.update(overrides)
        return ProvisioningConfig(**values)

    return _make
