"""The provisioning pipeline.

Stages run in a fixed order:

    preflight -> packages -> account -> keys -> network -> harden -> verify

Each stage is a function of (config, host) that returns a StageResult with
status success or skipped, or raises a ProvisionError. The first error ends
the run: nothing after the failed stage executes and nothing before it is
rolled back. A stage that finds its work already done reports success, so a
re-run with the same config is safe.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable

from hardnode.core import sshd
from hardnode.core.accounts import PRIVILEGED_GROUP
from hardnode.core.config import ProvisioningConfig
from hardnode.core.environment import check_supported
from hardnode.core.packages import BASE_PACKAGES
from hardnode.core.sshd import SshPolicy
from hardnode.errors import (
    ExternalToolFailure,
    MissingAccount,
    PreflightMismatch,
    ProvisionError,
    VerificationFailure,
)
from hardnode.utils.output import (
    checklist,
    create_table,
    directive,
    error,
    info,
    ok,
    print_table,
    section,
    stage_header,
    status_cell,
    warn,
)

MANUAL_JOIN = "sudo tailscale up"


class Stage(Enum):
    """Pipeline stages, in execution order."""

    PREFLIGHT = "preflight"
    PACKAGES = "packages"
    ACCOUNT = "account"
    KEYS = "keys"
    NETWORK = "network"
    HARDEN = "harden"
    VERIFY = "verify"


class StageStatus(Enum):
    SUCCESS = "success"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class StageResult:
    """Outcome of one stage."""

    stage: Stage
    status: StageStatus
    detail: str = ""
    # Follow-up the operator has to do by hand, shown in the checklist
    manual_action: str | None = None
    error: ProvisionError | None = None


@dataclass
class PipelineRun:
    """Outcome of a whole run."""

    results: list[StageResult] = field(default_factory=list)

    @property
    def failure(self) -> StageResult | None:
        """The failed stage, if any."""
        for result in self.results:
            if result.status == StageStatus.FAILED:
                return result
        return None

    @property
    def success(self) -> bool:
        return self.failure is None and len(self.results) == len(STAGES)

    @property
    def state(self) -> str:
        """Final state: 'done', 'failed(<stage>)', or the last stage reached."""
        failure = self.failure
        if failure:
            return f"failed({failure.stage.value})"
        if self.success:
            return "done"
        return self.results[-1].stage.value if self.results else "init"

    @property
    def exit_code(self) -> int:
        failure = self.failure
        if failure is None:
            return 0
        return failure.error.exit_code if failure.error else 1

    def result_for(self, stage: Stage) -> StageResult | None:
        for result in self.results:
            if result.stage == stage:
                return result
        return None


# --- stages ---


def preflight(config: ProvisioningConfig, host) -> StageResult:
    """Confirm the host is Ubuntu 24.04 and we are root. Touches nothing."""
    if not host.is_root():
        raise PreflightMismatch("Run as root: sudo hardnode provision ...")
    release = check_supported(host.os_release())
    ok(f"Detected {release.label}")
    return StageResult(Stage.PREFLIGHT, StageStatus.SUCCESS, release.label)


def install_packages(config: ProvisioningConfig, host) -> StageResult:
    """Refresh/upgrade packages and install the baseline tools."""
    done = []
    if config.update_packages:
        info("Updating packages (apt-get update && apt-get upgrade)...")
        host.update_package_index()
        host.upgrade_packages()
        ok("Packages updated")
        done.append("updated")
    else:
        warn("Skipping apt update/upgrade (--no-update)")

    if config.install_base_tools:
        info(f"Installing baseline tools: {' '.join(BASE_PACKAGES)}")
        host.install_packages(BASE_PACKAGES)
        ok("Baseline tools installed")
        done.append("baseline tools installed")
    else:
        warn("Skipping baseline tools install (--no-tools)")

    if not done:
        return StageResult(Stage.PACKAGES, StageStatus.SKIPPED, "update and tools disabled")
    return StageResult(Stage.PACKAGES, StageStatus.SUCCESS, ", ".join(done))


def ensure_account(config: ProvisioningConfig, host) -> StageResult:
    """Make sure the target user exists, optionally in the sudo group."""
    name = config.user
    account = host.get_account(name)
    if account is not None:
        ok(f"User exists: {name}")
        detail = "already exists"
    elif not config.create_user:
        raise MissingAccount(f"User '{name}' does not exist and --no-create-user was set")
    else:
        info(f"Creating user: {name}")
        host.create_account(name)
        account = host.get_account(name)
        if account is None:
            raise ExternalToolFailure(f"User {name} still missing after adduser")
        ok(f"Created user {name} (no password, home {account.home})")
        detail = "created"

    if not config.add_privileged_group:
        warn(f"Not adding {name} to {PRIVILEGED_GROUP} (--no-sudo)")
    elif PRIVILEGED_GROUP in account.groups:
        ok(f"{name} already in {PRIVILEGED_GROUP} group")
    else:
        info(f"Adding {name} to {PRIVILEGED_GROUP} group")
        host.add_to_group(name, PRIVILEGED_GROUP)
        ok(f"{name} added to {PRIVILEGED_GROUP}")
        detail += f", added to {PRIVILEGED_GROUP}"

    return StageResult(Stage.ACCOUNT, StageStatus.SUCCESS, detail)


def install_key(config: ProvisioningConfig, host) -> StageResult:
    """Append the public key to the user's authorized_keys if it is not there."""
    account = host.get_account(config.user)
    if account is None:
        raise MissingAccount(f"User '{config.user}' does not exist")

    info(f"Installing SSH public key for user: {config.user}")
    try:
        added = host.ensure_authorized_key(account, config.public_key)
    except OSError as e:
        raise ExternalToolFailure(f"Could not update {account.authorized_keys}: {e}") from None

    if added:
        ok("Key appended to authorized_keys")
        return StageResult(Stage.KEYS, StageStatus.SUCCESS, "key appended")
    ok("Key already present in authorized_keys")
    return StageResult(Stage.KEYS, StageStatus.SUCCESS, "key already present")


def join_network(config: ProvisioningConfig, host) -> StageResult:
    """Install Tailscale and join the tailnet when an auth key allows it."""
    if not config.install_overlay_network:
        warn("Skipping Tailscale install (--no-tailscale)")
        return StageResult(Stage.NETWORK, StageStatus.SKIPPED, "tailscale disabled")

    if host.network_installed():
        ok("Tailscale already installed")
    else:
        info("Installing Tailscale...")
        host.install_network()
        ok("Tailscale installed and tailscaled enabled")

    if host.network_connected():
        ok("Tailscale already connected")
        return StageResult(Stage.NETWORK, StageStatus.SUCCESS, "already joined")

    if not config.can_auto_join:
        if not config.auto_join_network:
            warn("tailscale up is set to manual. Skipping auto-join.")
        else:
            warn("TS_AUTHKEY not set, so skipping auto-join.")
        warn(f"Run: {MANUAL_JOIN}")
        return StageResult(Stage.NETWORK, StageStatus.SUCCESS, "join deferred", manual_action=MANUAL_JOIN)

    if config.login_server:
        if host.control_server_healthy(config.login_server):
            ok(f"Control server is reachable: {config.login_server}")
        else:
            warn("Control server health check failed - continuing anyway")

    info("Joining tailnet using TS_AUTHKEY")
    host.join_network(config.auth_key, config.login_server)
    ip = host.network_ip()
    ok(f"Joined tailnet{f' as {ip}' if ip else ''}")
    return StageResult(Stage.NETWORK, StageStatus.SUCCESS, "joined")


def harden_sshd(config: ProvisioningConfig, host) -> StageResult:
    """Write the auth policy drop-in and reload (not restart) sshd."""
    if not host.sshd_installed():
        raise ExternalToolFailure("sshd not found. Is openssh-server installed?")

    policy = config.ssh_policy
    if policy == SshPolicy.ALLOW_PASSWORD:
        warn("Password SSH allowed by flag (--allow-password-ssh). Not recommended.")

    try:
        backup = host.write_ssh_policy(policy)
    except OSError as e:
        raise ExternalToolFailure(f"Could not write {host.dropin_path}: {e}") from None
    if backup:
        ok(f"Backed up {host.dropin_path} -> {backup}")
    ok(f"Wrote {host.dropin_path} ({policy.value})")

    host.check_sshd_config()
    unit = host.reload_sshd()
    ok(f"Reloaded {unit}")
    return StageResult(Stage.HARDEN, StageStatus.SUCCESS, policy.value)


def verify_sshd(config: ProvisioningConfig, host) -> StageResult:
    """Check the live merged sshd config actually enforces key-only auth."""
    if config.ssh_policy == SshPolicy.ALLOW_PASSWORD:
        warn("Password authentication remains ENABLED; skipping key-only verification")
        return StageResult(Stage.VERIFY, StageStatus.SKIPPED, "password authentication allowed")

    effective = host.effective_sshd_config()
    for key in sshd.REPORTED_KEYS:
        directive(key, effective.get(key))

    unmet = sshd.unmet_conditions(effective)
    if unmet:
        raise VerificationFailure(unmet)
    ok("SSHD effective config checks passed")
    return StageResult(Stage.VERIFY, StageStatus.SUCCESS, "key-only enforced")


StageFn = Callable[[ProvisioningConfig, object], StageResult]

STAGES: list[tuple[Stage, StageFn]] = [
    (Stage.PREFLIGHT, preflight),
    (Stage.PACKAGES, install_packages),
    (Stage.ACCOUNT, ensure_account),
    (Stage.KEYS, install_key),
    (Stage.NETWORK, join_network),
    (Stage.HARDEN, harden_sshd),
    (Stage.VERIFY, verify_sshd),
]


def run_pipeline(config: ProvisioningConfig, host) -> PipelineRun:
    """Run every stage in order, stopping at the first failure."""
    run = PipelineRun()
    for index, (stage, fn) in enumerate(STAGES, 1):
        stage_header(index, len(STAGES), stage.value.capitalize())
        try:
            result = fn(config, host)
        except ProvisionError as e:
            run.results.append(StageResult(stage, StageStatus.FAILED, str(e), error=e))
            error(f"Stage {stage.value!r} failed - {type(e).__name__}: {e}")
            break
        run.results.append(result)
    return run


# --- reporting ---


def print_summary(run: PipelineRun) -> None:
    """Print a per-stage outcome table."""
    table = create_table("Provisioning", ["Stage", "Status", "Detail"])
    for result in run.results:
        table.add_row(result.stage.value, status_cell(result.status.value), result.detail)
    print_table(table)


def next_steps(config: ProvisioningConfig, run: PipelineRun) -> list[str]:
    """Manual verification steps shown after a successful run."""
    steps = [
        "Keep this SSH session open while testing a NEW session.",
        f"From another machine, test key auth:\n   ssh {config.user}@<hostname-or-tailscale-ip>",
        f"Confirm password auth fails (expected):\n   ssh -o PreferredAuthentications=password {config.user}@<host>",
        "Confirm effective server settings:\n"
        "   sudo sshd -T | grep -E 'authenticationmethods|passwordauthentication|kbdinteractiveauthentication'",
    ]
    if config.allow_password_auth:
        steps[2] = "Password authentication is still ENABLED (--allow-password-ssh)."
    for result in run.results:
        if result.manual_action:
            steps.append(f"Finish the {result.stage.value} stage by hand:\n   {result.manual_action}")
    return steps


def report(config: ProvisioningConfig, run: PipelineRun) -> None:
    """Print the summary and, only on success, the checklist."""
    section("Summary")
    print_summary(run)
    if run.failure:
        failure = run.failure
        error(f"Provisioning halted at stage '{failure.stage.value}': {failure.detail}")
        info("Stages before it were applied and left in place; fix the cause and re-run.")
        return
    checklist("Next steps / sanity checks", next_steps(config, run))
    if config.allow_password_auth:
        warn("Password authentication remains enabled on this host")
    ok("Bootstrap complete")
