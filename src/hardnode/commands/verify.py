"""Verify command: check the live sshd config enforces key-only authentication."""

import typer

from hardnode.core import sshd
from hardnode.errors import ExternalToolFailure, VerificationFailure
from hardnode.utils.output import directive, error, ok, section, warn


def verify() -> None:
    """Check effective sshd authentication settings (`sshd -T`).

    Exits non-zero if password or keyboard-interactive authentication is
    still possible, or if AuthenticationMethods is not exactly publickey.
    Needs root, since sshd -T reads the host keys.
    """
    section("Effective SSH Authentication Settings")

    try:
        effective = sshd.effective_config()
    except ExternalToolFailure as e:
        error(str(e))
        raise typer.Exit(e.exit_code) from None

    for key in sshd.REPORTED_KEYS:
        directive(key, effective.get(key))

    unmet = sshd.unmet_conditions(effective)
    if unmet:
        for condition in unmet:
            error(condition)
        warn("If passwordauthentication is not 'no', STOP.")
        raise typer.Exit(VerificationFailure.exit_code)

    ok("Key-only authentication is in effect")
