"""The host capabilities the provisioning stages act through.

Stages never shell out or touch files directly; they call a LinuxHost.
Tests pass an in-memory stand-in with the same methods.
"""

from pathlib import Path

from hardnode.core import accounts, environment, keys, packages, sshd, tailscale
from hardnode.core.accounts import HostAccount
from hardnode.core.environment import OsRelease
from hardnode.core.sshd import SshPolicy


class LinuxHost:
    """The local Ubuntu machine."""

    def __init__(
        self,
        dropin_path: Path = sshd.DROPIN_PATH,
        os_release_path: Path = environment.OS_RELEASE_PATH,
    ):
        self.dropin_path = dropin_path
        self.os_release_path = os_release_path

    # --- identity ---

    def os_release(self) -> OsRelease | None:
        return environment.read_os_release(self.os_release_path)

    def is_root(self) -> bool:
        return environment.is_root()

    # --- packages ---

    def update_package_index(self) -> None:
        packages.update_index()

    def upgrade_packages(self) -> None:
        packages.upgrade()

    def install_packages(self, names: list[str]) -> None:
        packages.install(names)

    # --- accounts and keys ---

    def get_account(self, name: str) -> HostAccount | None:
        return accounts.get_account(name)

    def create_account(self, name: str) -> None:
        accounts.create_account(name)

    def add_to_group(self, name: str, group: str) -> None:
        accounts.add_to_group(name, group)

    def ensure_authorized_key(self, account: HostAccount, key: str) -> bool:
        return keys.ensure_authorized_key(account.ssh_dir, key, uid=account.uid, gid=account.gid)

    # --- overlay network ---

    def network_installed(self) -> bool:
        return tailscale.is_installed()

    def network_connected(self) -> bool:
        return tailscale.is_connected()

    def install_network(self) -> None:
        tailscale.install()

    def control_server_healthy(self, url: str) -> bool:
        return tailscale.get_health(url)

    def join_network(self, auth_key: str, login_server: str | None = None) -> None:
        tailscale.up(auth_key, login_server)

    def network_ip(self) -> str | None:
        return tailscale.get_ip()

    # --- sshd ---

    def sshd_installed(self) -> bool:
        return sshd.is_installed()

    def write_ssh_policy(self, policy: SshPolicy) -> Path | None:
        return sshd.write_fragment(self.dropin_path, policy)

    def check_sshd_config(self) -> None:
        sshd.check_config()

    def reload_sshd(self) -> str:
        return sshd.reload()

    def effective_sshd_config(self) -> dict[str, str]:
        return sshd.effective_config()
