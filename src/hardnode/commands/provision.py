"""Provision command: run the full node bootstrap pipeline on this host."""

from pathlib import Path

import typer

from hardnode.core.config import load_config
from hardnode.core.host import LinuxHost
from hardnode.errors import InvalidInput
from hardnode.pipeline import report, run_pipeline
from hardnode.utils.output import error, info, secret_state, section


def provision(
    user: str | None = typer.Option(None, "--user", "-u", help="Target Linux user to configure (e.g., mike-1)"),
    pubkey_file: Path | None = typer.Option(
        None, "--pubkey-file", "-k", help="Path to an SSH public key to add to authorized_keys"
    ),
    create_user: bool | None = typer.Option(
        None, "--create-user/--no-create-user", help="Create the user if missing (default: create)"
    ),
    sudo: bool | None = typer.Option(None, "--sudo/--no-sudo", help="Add the user to the sudo group (default: sudo)"),
    allow_password_ssh: bool | None = typer.Option(
        None,
        "--allow-password-ssh/--key-only-ssh",
        help="Do NOT enforce key-only SSH (not recommended) (default: key-only)",
    ),
    tailscale: bool | None = typer.Option(None, "--tailscale/--no-tailscale", help="Install Tailscale (default: install)"),
    tailscale_up: str | None = typer.Option(
        None,
        "--tailscale-up",
        help="'auto' joins with TS_AUTHKEY when set, 'manual' always leaves `tailscale up` to you",
    ),
    login_server: str | None = typer.Option(
        None, "--login-server", help="Custom control server URL (e.g., a Headscale instance)"
    ),
    update: bool | None = typer.Option(None, "--update/--no-update", help="Run apt update/upgrade (default: update)"),
    tools: bool | None = typer.Option(None, "--tools/--no-tools", help="Install baseline tools (default: install)"),
    config_file: Path | None = typer.Option(
        None, "--config", "-c", help="YAML file with option defaults (default: ~/.config/hardnode/config.yaml)"
    ),
) -> None:
    """Bootstrap this Ubuntu 24.04 host as a hardened mesh node.

    Stages, in order (the run stops at the first failure):
    - Preflight: Ubuntu 24.04, running as root
    - Packages: apt update/upgrade, baseline and security tools
    - Account: create the user (no password), optional sudo membership
    - Keys: add the public key to authorized_keys (never duplicated)
    - Network: install Tailscale, join if TS_AUTHKEY is set
    - Harden: write the sshd_config.d drop-in, reload (not restart) sshd
    - Verify: check `sshd -T` really enforces key-only auth

    Idempotent: safe to run multiple times. Keep an SSH session open while
    testing the result from a second one.

    Examples:
        sudo hardnode provision --user mike-1 --pubkey-file ./id_ed25519.pub
        sudo TS_AUTHKEY="tskey-auth-..." hardnode provision -u mike-2 -k ./id_ed25519.pub
    """
    if tailscale_up is not None and tailscale_up not in ("auto", "manual"):
        error("--tailscale-up must be 'auto' or 'manual'")
        raise typer.Exit(InvalidInput.exit_code)

    # None means "not given": the defaults file (or built-in default) applies
    options = {
        "user": user,
        "pubkey_file": pubkey_file,
        "create_user": create_user,
        "add_privileged_group": sudo,
        "allow_password_auth": allow_password_ssh,
        "install_overlay_network": tailscale,
        "auto_join_network": None if tailscale_up is None else tailscale_up == "auto",
        "login_server": login_server,
        "update_packages": update,
        "install_base_tools": tools,
    }

    try:
        config = load_config(options, config_file=config_file)
    except InvalidInput as e:
        error(str(e))
        raise typer.Exit(e.exit_code) from None

    section("Node Bootstrap")
    info(f"User: {config.user}")
    info(f"Public key: {config.pubkey_file}")
    info(f"SSH policy: {config.ssh_policy.value}")
    info(f"Tailscale auth key: {secret_state(config.auth_key)}")

    run = run_pipeline(config, LinuxHost())
    report(config, run)
    if not run.success:
        raise typer.Exit(run.exit_code)
