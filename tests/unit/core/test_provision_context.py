"""Tests for ProvisionContext construction and per-guest derivation."""

import logging
from pathlib import Path

import pytest

from distprov.core.context import GuestLogAdapter, ProvisionContext, create_context
from distprov.ops.http import DryRunHttpClient, RealHttpClient
from distprov.ops.wsl_dry_run import DryRunWsl
from distprov.ops.wsl_real import RealWsl
from tests.fakes.wsl import FakeWsl
from tests.test_utils.builders import make_config


def test_create_context_uses_real_integrations(tmp_path: Path) -> None:
    config = make_config(tmp_path)

    ctx = create_context(config, dry_run=False, logger=logging.getLogger("distprov.test"))

    assert isinstance(ctx.wsl, RealWsl)
    assert isinstance(ctx.http, RealHttpClient)
    assert ctx.dry_run is False


def test_create_context_wraps_mutating_integrations_in_preview(tmp_path: Path) -> None:
    config = make_config(tmp_path)

    ctx = create_context(config, dry_run=True, logger=logging.getLogger("distprov.test"))

    assert isinstance(ctx.wsl, DryRunWsl)
    assert isinstance(ctx.http, DryRunHttpClient)
    assert ctx.dry_run is True


def test_for_test_wraps_fakes_when_dry_run() -> None:
    wsl = FakeWsl()

    ctx = ProvisionContext.for_test(wsl=wsl, dry_run=True)

    assert isinstance(ctx.wsl, DryRunWsl)
    assert ctx.wsl.import_guest("RHEL9", Path("/wsl/RHEL9"), Path("rhel9.tar"), version=2).success
    assert wsl.lifecycle_calls == []


def test_for_guest_prefixes_log_lines(caplog: pytest.LogCaptureFixture) -> None:
    ctx = ProvisionContext.for_test()

    guest_ctx = ctx.for_guest("RHEL9")
    with caplog.at_level(logging.INFO, logger="distprov.test"):
        guest_ctx.logger.info("Importing")

    assert isinstance(guest_ctx.logger, GuestLogAdapter)
    assert "[RHEL9] Importing" in caplog.messages
    assert guest_ctx.wsl is ctx.wsl


def test_for_guest_does_not_stack_prefixes(caplog: pytest.LogCaptureFixture) -> None:
    ctx = ProvisionContext.for_test().for_guest("RHEL9").for_guest("RHEL8")

    with caplog.at_level(logging.INFO, logger="distprov.test"):
        ctx.logger.info("Importing")

    assert caplog.messages == ["[RHEL8] Importing"]


def test_context_is_frozen() -> None:
    ctx = ProvisionContext.for_test()

    with pytest.raises(AttributeError):
        ctx.dry_run = True  # type: ignore[misc]
