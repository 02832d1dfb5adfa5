"""Tailscale client management."""

import json
import tempfile
from pathlib import Path

import httpx

from hardnode.errors import ExternalToolFailure
from hardnode.utils.process import command_exists, require_success, run

INSTALL_SCRIPT_URL = "https://tailscale.com/install.sh"
INSTALL_TIMEOUT = 600


def is_installed() -> bool:
    """Check if Tailscale is installed."""
    return command_exists("tailscale")


def get_status() -> dict | None:
    """Get Tailscale status as dict."""
    if not is_installed():
        return None
    result = run(["tailscale", "status", "--json"])
    if not result.success:
        return None
    try:
        return json.loads(result.stdout)
    except json.JSONDecodeError:
        return None


def is_connected() -> bool:
    """Check if Tailscale is connected."""
    status = get_status()
    return bool(status) and status.get("BackendState") == "Running"


def get_ip() -> str | None:
    """Get Tailscale IP address."""
    result = run(["tailscale", "ip", "-4"])
    if result.success and result.stdout.strip():
        return result.stdout.strip().split("\n")[0]
    return None


def get_health(server_url: str) -> bool:
    """Check a self-hosted control server's health endpoint."""
    try:
        resp = httpx.get(f"{server_url.rstrip('/')}/health", timeout=5)
        return resp.status_code == 200
    except httpx.RequestError:
        return False


def download_installer(url: str = INSTALL_SCRIPT_URL) -> str:
    """Fetch the vendor install script."""
    try:
        resp = httpx.get(url, timeout=30, follow_redirects=True)
        resp.raise_for_status()
    except httpx.HTTPError as e:
        raise ExternalToolFailure(f"Failed to download Tailscale installer from {url}: {e}") from None
    return resp.text


def install() -> None:
    """Install Tailscale with the vendor script and enable its daemon."""
    script = download_installer()
    with tempfile.TemporaryDirectory(prefix="hardnode-") as tmp:
        script_path = Path(tmp) / "install.sh"
        script_path.write_text(script)
        result = run(["sh", str(script_path)], timeout=INSTALL_TIMEOUT)
    require_success(result, "Tailscale installer failed")

    result = run(["systemctl", "enable", "--now", "tailscaled"])
    require_success(result, "Failed to enable tailscaled")


def up(auth_key: str, login_server: str | None = None) -> None:
    """Join the tailnet with an auth key.

    The key only ever appears masked in error messages.
    """
    cmd = ["tailscale", "up", f"--auth-key={auth_key}"]
    if login_server:
        cmd.append(f"--login-server={login_server}")
    result = run(cmd, timeout=120)
    require_success(result, "tailscale up failed", redact=auth_key)
