"""UFW port lockdown."""

import ipaddress
from dataclasses import dataclass, field

from hardnode.core import packages
from hardnode.errors import InvalidInput
from hardnode.utils.process import command_exists, require_success, run

# Address block Tailscale numbers its nodes from
TAILSCALE_CGNAT_RANGE = "100.64.0.0/10"


@dataclass(frozen=True)
class FirewallPolicy:
    """Allow one port only from the given address ranges; deny all other inbound."""

    port: int = 22
    proto: str = "tcp"
    sources: tuple[str, ...] = field(default=(TAILSCALE_CGNAT_RANGE,))

    def __post_init__(self):
        if not 1 <= self.port <= 65535:
            raise InvalidInput(f"Invalid port {self.port}: must be between 1 and 65535")
        if self.proto not in ("tcp", "udp"):
            raise InvalidInput(f"Invalid protocol {self.proto!r}: must be tcp or udp")
        if not self.sources:
            raise InvalidInput("At least one allowed source range is required")
        for source in self.sources:
            try:
                ipaddress.ip_network(source, strict=False)
            except ValueError as e:
                raise InvalidInput(f"Invalid source range {source!r}: {e}") from None

    def commands(self) -> list[list[str]]:
        """The ufw invocations that apply this policy, in order."""
        cmds = [
            ["ufw", "--force", "reset"],
            ["ufw", "default", "deny", "incoming"],
            ["ufw", "default", "allow", "outgoing"],
        ]
        for source in self.sources:
            cmds.append(
                ["ufw", "allow", "from", source, "to", "any", "port", str(self.port), "proto", self.proto]
            )
        cmds.append(["ufw", "--force", "enable"])
        return cmds


def apply(policy: FirewallPolicy) -> None:
    """Reset ufw and apply policy. Installs ufw first if it is missing."""
    if not command_exists("ufw"):
        packages.update_index()
        packages.install(["ufw"])
    for cmd in policy.commands():
        require_success(run(cmd), f"{' '.join(cmd[:3])} failed")


def status() -> str:
    """Return `ufw status verbose` output."""
    result = require_success(run(["ufw", "status", "verbose"]), "ufw status failed")
    return result.stdout
