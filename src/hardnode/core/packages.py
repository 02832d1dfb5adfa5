"""APT package management."""

from hardnode.utils.process import NONINTERACTIVE_ENV, require_success, run

# Baseline and security tooling every node carries
BASE_PACKAGES = [
    "ca-certificates",
    "curl",
    "git",
    "openssh-server",
    "ufw",
    "fail2ban",
    "jq",
]

APT_TIMEOUT = 1800


def update_index() -> None:
    """Refresh the package index."""
    result = run(["apt-get", "update", "-y"], env=NONINTERACTIVE_ENV, timeout=APT_TIMEOUT)
    require_success(result, "apt-get update failed")


def upgrade() -> None:
    """Upgrade installed packages non-interactively."""
    result = run(["apt-get", "upgrade", "-y"], env=NONINTERACTIVE_ENV, timeout=APT_TIMEOUT)
    require_success(result, "apt-get upgrade failed")


def install(packages: list[str]) -> None:
    """Install packages. Already-installed packages are a no-op for apt."""
    result = run(
        ["apt-get", "install", "-y", *packages],
        env=NONINTERACTIVE_ENV,
        timeout=APT_TIMEOUT,
    )
    require_success(result, f"apt-get install failed for: {' '.join(packages)}")


def is_installed(package: str) -> bool:
    """Check if a package is installed according to dpkg."""
    result = run(["dpkg-query", "-W", "-f", "${Status}", package])
    return result.success and "install ok installed" in result.stdout
