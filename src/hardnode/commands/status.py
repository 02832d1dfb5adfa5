"""Status command: read-only node readiness report."""

import typer

from hardnode.core import accounts, environment, firewall, keys, packages, sshd, tailscale
from hardnode.errors import ProvisionError
from hardnode.utils.output import info, ok, section, warn
from hardnode.utils.process import command_exists, run


def status(
    user: str | None = typer.Option(None, "--user", "-u", help="Also report this user's authorized_keys"),
) -> None:
    """Show node readiness: platform, sshd, keys, firewall, Tailscale.

    Changes nothing on the host.
    """
    section("Environment")
    info(f"Hostname: {environment.get_hostname()}")
    release = environment.read_os_release()
    try:
        environment.check_supported(release)
        ok(f"Supported platform: {release.label}")
    except ProvisionError as e:
        warn(str(e))

    issues = 0

    section("Packages")
    missing = [name for name in packages.BASE_PACKAGES if not packages.is_installed(name)]
    if missing:
        warn(f"Baseline packages missing: {' '.join(missing)}")
        issues += 1
    else:
        ok("Baseline packages installed")

    section("SSH Server")
    if not sshd.is_installed():
        warn("openssh-server not installed")
        issues += 1
    else:
        ok("openssh-server installed")
        active = run(["systemctl", "is-active", "ssh"])
        if active.stdout.strip() == "active":
            ok("SSH server is running")
        else:
            warn("SSH server not running - check with: systemctl status ssh")
            issues += 1

        if sshd.DROPIN_PATH.exists():
            ok(f"Policy drop-in present: {sshd.DROPIN_PATH}")
            backups = sshd.list_backups(sshd.DROPIN_PATH)
            if backups:
                info(f"{len(backups)} backup(s) of the drop-in kept")
        else:
            warn(f"No policy drop-in at {sshd.DROPIN_PATH}")
            issues += 1

        try:
            effective = sshd.effective_config()
        except ProvisionError:
            info("Could not read effective config (sshd -T needs root)")
        else:
            unmet = sshd.unmet_conditions(effective)
            if unmet:
                for condition in unmet:
                    warn(condition)
                issues += 1
            else:
                ok("Key-only authentication in effect")

    if user:
        section(f"User: {user}")
        try:
            account = accounts.get_account(user)
        except ProvisionError as e:
            warn(str(e))
            account = None
            issues += 1
        if account is None:
            warn(f"User {user} does not exist")
            issues += 1
        else:
            ok(f"User exists (home {account.home})")
            if accounts.PRIVILEGED_GROUP in account.groups:
                info(f"Member of {accounts.PRIVILEGED_GROUP}")
            try:
                count = len(keys.read_keys(account.authorized_keys))
            except PermissionError:
                info(f"Cannot read {account.authorized_keys} (permission denied)")
            else:
                if count:
                    ok(f"authorized_keys has {count} key(s)")
                else:
                    warn("No authorized keys")
                    issues += 1

    section("Firewall")
    if not command_exists("ufw"):
        info("UFW not installed")
    else:
        try:
            ufw_status = firewall.status()
        except ProvisionError:
            info("Could not check UFW status")
        else:
            if "inactive" in ufw_status.lower():
                info("UFW firewall is inactive")
                info("Restrict SSH to the tailnet with: hardnode firewall lock-ssh")
            else:
                ok("UFW firewall is active")

    section("Tailscale")
    if not tailscale.is_installed():
        warn("Tailscale is not installed")
        issues += 1
    elif not tailscale.is_connected():
        warn("Tailscale is not connected - run: sudo tailscale up")
        issues += 1
    else:
        ok("Tailscale is connected")
        ip = tailscale.get_ip()
        if ip:
            info(f"IP: {ip}")

    section("Summary")
    if issues == 0:
        ok("Node looks ready")
    else:
        warn(f"{issues} issue(s) detected")
