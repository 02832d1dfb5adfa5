"""Subprocess execution helpers."""

import os
import shutil
import subprocess
from dataclasses import dataclass

from hardnode.errors import ExternalToolFailure

# Non-interactive environment for apt and friends
NONINTERACTIVE_ENV = {"DEBIAN_FRONTEND": "noninteractive"}


@dataclass
class CommandResult:
    """Result of a command execution."""

    cmd: list[str]
    returncode: int
    stdout: str
    stderr: str

    @property
    def success(self) -> bool:
        """Check if command succeeded."""
        return self.returncode == 0


def run(
    cmd: list[str],
    *,
    capture: bool = True,
    timeout: int | None = None,
    env: dict[str, str] | None = None,
) -> CommandResult:
    """Run a command and return the result.

    Never raises for a missing binary or a timeout; both come back as a
    failed CommandResult with returncode -1.
    """
    # Merge provided env with current environment
    run_env = None
    if env:
        run_env = os.environ.copy()
        run_env.update(env)

    try:
        result = subprocess.run(
            cmd,
            capture_output=capture,
            text=True,
            timeout=timeout,
            env=run_env,
        )
        return CommandResult(
            cmd=cmd,
            returncode=result.returncode,
            stdout=result.stdout if capture else "",
            stderr=result.stderr if capture else "",
        )
    except subprocess.TimeoutExpired:
        return CommandResult(cmd=cmd, returncode=-1, stdout="", stderr="Command timed out")
    except FileNotFoundError:
        return CommandResult(cmd=cmd, returncode=-1, stdout="", stderr=f"Command not found: {cmd[0]}")


def require_success(result: CommandResult, what: str, *, redact: str | None = None) -> CommandResult:
    """Raise ExternalToolFailure unless the command succeeded.

    Args:
        result: Result returned by run()
        what: Short description used in the error message
        redact: Secret value to mask in the reported command line and stderr

    Returns:
        The same result, for chaining.
    """
    if result.success:
        return result
    cmd = list(result.cmd)
    stderr = result.stderr
    if redact:
        cmd = [part.replace(redact, "****") for part in cmd]
        stderr = stderr.replace(redact, "****")
    raise ExternalToolFailure(what, cmd=cmd, returncode=result.returncode, stderr=stderr)


def command_exists(cmd: str) -> bool:
    """Check if a command exists in PATH."""
    return shutil.which(cmd) is not None
