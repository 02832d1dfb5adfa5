"""Provisioning error taxonomy.

Every failure that halts a run is a ProvisionError. The subclass says what
kind of failure it was and carries the process exit code for it.
"""


class ProvisionError(Exception):
    """Base class for errors that halt the provisioning pipeline."""

    exit_code = 1


class InvalidInput(ProvisionError):
    """A required argument is missing, unreadable or malformed."""

    exit_code = 2


class PreflightMismatch(ProvisionError):
    """The host is not the supported target platform."""

    exit_code = 3


class MissingAccount(ProvisionError):
    """The target account does not exist and creation is disabled."""

    exit_code = 4


class ExternalToolFailure(ProvisionError):
    """An external command (apt, adduser, systemctl, tailscale, sshd) failed."""

    exit_code = 5

    def __init__(
        self,
        what: str,
        cmd: list[str] | None = None,
        returncode: int | None = None,
        stderr: str = "",
    ):
        self.what = what
        self.cmd = cmd or []
        self.returncode = returncode
        self.stderr = stderr.strip()
        message = what
        if self.cmd:
            message += f" (`{' '.join(self.cmd)}` exited {returncode})"
        if self.stderr:
            message += f": {self.stderr.splitlines()[-1]}"
        super().__init__(message)


class VerificationFailure(ProvisionError):
    """The daemon's effective configuration does not match the requested policy."""

    exit_code = 6

    def __init__(self, unmet: list[str]):
        self.unmet = list(unmet)
        super().__init__("Effective sshd config does not match policy: " + "; ".join(self.unmet))
