"""Provisioning context with dependency injection."""

import logging
from dataclasses import dataclass, replace

from distprov.core.config import ProvisioningConfig
from distprov.core.prompt import ClickCredentialPrompter, CredentialPrompter
from distprov.core.time.abc import Time
from distprov.core.time.real import RealTime
from distprov.ops.http import DryRunHttpClient, HttpClient, RealHttpClient
from distprov.ops.wsl import Wsl
from distprov.ops.wsl_dry_run import DryRunWsl
from distprov.ops.wsl_real import RealWsl

Logger = logging.Logger | logging.LoggerAdapter


class GuestLogAdapter(logging.LoggerAdapter):
    """Prefixes every message with the guest it concerns."""

    def process(self, msg, kwargs):
        return f"[{self.extra['guest']}] {msg}", kwargs


@dataclass(frozen=True)
class ProvisionContext:
    """Immutable context holding all dependencies for provisioning operations.

    Created at CLI entry point and threaded through every component call.
    Frozen to prevent accidental modification at runtime; per-guest variants
    are derived with for_guest().
    """

    wsl: Wsl
    http: HttpClient
    time: Time
    prompter: CredentialPrompter
    logger: Logger
    dry_run: bool

    def for_guest(self, guest_name: str) -> "ProvisionContext":
        """Derive a context whose log lines name the guest."""
        base = self.logger.logger if isinstance(self.logger, logging.LoggerAdapter) else self.logger
        return replace(self, logger=GuestLogAdapter(base, {"guest": guest_name}))

    @staticmethod
    def for_test(
        wsl: Wsl | None = None,
        http: HttpClient | None = None,
        time: Time | None = None,
        prompter: CredentialPrompter | None = None,
        logger: Logger | None = None,
        dry_run: bool = False,
    ) -> "ProvisionContext":
        """Create test context with optional pre-configured integration classes.

        Any integration left unspecified is an empty in-memory fake. When
        dry_run is set, wsl and http are wrapped exactly as create_context()
        wraps the real ones.
        """
        from tests.fakes.http import FakeHttpClient
        from tests.fakes.prompt import FakeCredentialPrompter
        from tests.fakes.time import FakeTime
        from tests.fakes.wsl import FakeWsl

        resolved_logger = logger if logger is not None else logging.getLogger("distprov.test")
        resolved_wsl = wsl if wsl is not None else FakeWsl()
        resolved_http = http if http is not None else FakeHttpClient()
        if dry_run:
            resolved_wsl = DryRunWsl(resolved_wsl, resolved_logger)
            resolved_http = DryRunHttpClient(resolved_http, resolved_logger)
        return ProvisionContext(
            wsl=resolved_wsl,
            http=resolved_http,
            time=time if time is not None else FakeTime(),
            prompter=prompter if prompter is not None else FakeCredentialPrompter(),
            logger=resolved_logger,
            dry_run=dry_run,
        )


def create_context(
    config: ProvisioningConfig, *, dry_run: bool, logger: Logger
) -> ProvisionContext:
    """Create production context with real implementations.

    Called once at CLI entry point. In preview mode the mutating integrations
    are wrapped so nothing on the host or in a guest changes.
    """
    wsl: Wsl = RealWsl(
        config.settings.wsl_executable, timeout=config.settings.command_timeout_seconds
    )
    http: HttpClient = RealHttpClient()
    if dry_run:
        wsl = DryRunWsl(wsl, logger)
        http = DryRunHttpClient(http, logger)
    return ProvisionContext(
        wsl=wsl,
        http=http,
        time=RealTime(),
        prompter=ClickCredentialPrompter(),
        logger=logger,
        dry_run=dry_run,
    )
