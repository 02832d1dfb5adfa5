"""Single-host node bootstrap: baseline packages, key-only SSH, Tailscale."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("hardnode")
except PackageNotFoundError:
    __version__ = "0.0.0.dev"
