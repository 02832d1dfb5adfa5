"""Firewall commands (UFW)."""

import typer

from hardnode.core import firewall
from hardnode.core.firewall import TAILSCALE_CGNAT_RANGE, FirewallPolicy
from hardnode.errors import ProvisionError
from hardnode.utils.output import console, error, info, ok, section, warn

app = typer.Typer(
    name="firewall",
    help="Restrict inbound access with UFW",
    no_args_is_help=True,
)


@app.command(name="lock-ssh")
def lock_ssh(
    port: int = typer.Option(22, "--port", "-p", help="Port to restrict"),
    allow_from: list[str] = typer.Option(
        None,
        "--allow-from",
        "-a",
        help=f"Address range allowed to connect; repeatable (default: {TAILSCALE_CGNAT_RANGE})",
    ),
    yes: bool = typer.Option(False, "--yes", "-y", help="Don't ask for confirmation"),
) -> None:
    """Allow a port only from given ranges and deny all other inbound traffic.

    This command:
    - Installs ufw if missing
    - Resets ufw (existing rules are dropped)
    - Denies incoming, allows outgoing by default
    - Allows the port only from each --allow-from range
    - Enables ufw

    By default SSH becomes reachable only over the tailnet. Confirm you can
    reach this host over Tailscale before running it, or add your LAN as a
    safety net with --allow-from 192.168.1.0/24.
    """
    section("Firewall Lockdown")

    try:
        policy = FirewallPolicy(port=port, sources=tuple(allow_from or (TAILSCALE_CGNAT_RANGE,)))
    except ProvisionError as e:
        error(str(e))
        raise typer.Exit(e.exit_code) from None

    for source in policy.sources:
        info(f"Allow {policy.proto}/{policy.port} from {source}")
    warn("All other inbound traffic will be denied and existing ufw rules reset")
    if not yes and not typer.confirm("Continue?"):
        raise typer.Exit(1)

    try:
        firewall.apply(policy)
        ok("Firewall enabled")
        console.print(firewall.status(), markup=False)
    except ProvisionError as e:
        error(str(e))
        raise typer.Exit(e.exit_code) from None


@app.command(name="status")
def show_status() -> None:
    """Show `ufw status verbose`."""
    try:
        console.print(firewall.status(), markup=False)
    except ProvisionError as e:
        error(str(e))
        raise typer.Exit(e.exit_code) from None
