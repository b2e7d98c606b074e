"""Enable supplemental package repositories and update the guest.

Every sub-step is best-effort: a failure is logged and the sequence moves on.
The return value says whether the sequence ran to completion, not whether
every repository was enabled.
"""

from collections.abc import Sequence

from distprov.core.config import GuestDefinition, RepositoryConfig
from distprov.core.context import ProvisionContext
from distprov.core.errors import ErrorKind, ProvisionError
from distprov.core.results import StageReport

EPEL_RELEASE_URL = "https://dl.fedoraproject.org/pub/epel/epel-release-latest-{major}.noarch.rpm"
UPDATE_TIMEOUT_SECONDS = 3600


def codeready_builder_repo(major: str, architecture: str) -> str:
    """Name of the build-tooling repository for a release.

    >>> codeready_builder_repo("9", "x86_64")
    'codeready-builder-for-rhel-9-x86_64-rpms'
    """
    return f"codeready-builder-for-rhel-{major}-{architecture}-rpms"


class _Steps:
    """Runs sub-steps for one guest and remembers which ones failed."""

    def __init__(self, ctx: ProvisionContext, guest_name: str) -> None:
        self._ctx = ctx
        self._guest_name = guest_name
        self.failed: list[str] = []

    def run(
        self, description: str, argv: Sequence[str], *, timeout: float | None = None
    ) -> bool:
        result = self._ctx.wsl.run_in_guest(self._guest_name, argv, timeout=timeout)
        if result.success:
            self._ctx.logger.info("%s: done", description)
            return True
        self._ctx.logger.warning("%s: failed: %s", description, result.output)
        self.failed.append(description)
        return False


def _epel_installed(ctx: ProvisionContext, guest_name: str) -> bool:
    result = ctx.wsl.run_in_guest(guest_name, ["rpm", "--query", "epel-release"], read_only=True)
    return result.success and result.stdout.startswith("epel-release")


def activate_repositories(
    ctx: ProvisionContext,
    guest: GuestDefinition,
    config: RepositoryConfig,
    report: StageReport | None = None,
) -> bool:
    """Clean caches, enable repositories and run a full system update.

    Failed sub-steps are appended to report.warnings.
    """
    report = report if report is not None else StageReport()
    steps = _Steps(ctx, guest.name)
    major = guest.major_version
    try:
        if config.clean_cache:
            steps.run("Clean package cache", ["dnf", "clean", "all"])

        if config.enable_codeready_builder:
            repo = codeready_builder_repo(major, config.architecture)
            steps.run(
                f"Enable {repo}",
                ["subscription-manager", "repos", "--enable", repo],
            )

        if config.install_epel:
            if _epel_installed(ctx, guest.name):
                ctx.logger.info("EPEL already installed")
            else:
                steps.run(
                    "Install EPEL",
                    ["dnf", "install", "--assumeyes", EPEL_RELEASE_URL.format(major=major)],
                )
            steps.run("Enable EPEL", ["dnf", "config-manager", "--set-enabled", "epel"])

        for repo in config.additional:
            steps.run(f"Enable {repo}", ["subscription-manager", "repos", "--enable", repo])

        if config.update_system:
            steps.run(
                "System update",
                ["dnf", "update", "--assumeyes"],
                timeout=UPDATE_TIMEOUT_SECONDS,
            )
    except RuntimeError as e:
        ctx.logger.error("Repository activation stopped: %s", e)
        report.warnings.extend(f"{step} failed" for step in steps.failed)
        report.error = ProvisionError(ErrorKind.UNEXPECTED, str(e))
        return False

    if steps.failed:
        message = f"{ErrorKind.REPOSITORY_ACTIVATION_PARTIAL}: failed: {', '.join(steps.failed)}"
        ctx.logger.warning(message)
        report.warnings.append(message)
    return True
