"""Tests for the registration coordinator.

Layer: core logic over FakeWsl and FakeCredentialPrompter. Covers
registration idempotence, forced re-registration, fallback activation (at
most once) and secret handling.
"""

import logging

import pytest

from distprov.core.config import RegistrationConfig
from distprov.core.context import ProvisionContext
from distprov.core.errors import ErrorKind
from distprov.core.prompt import Credentials
from distprov.core.registration import register, server_url
from distprov.core.results import RegistrationMethod
from tests.fakes.prompt import FakeCredentialPrompter
from tests.fakes.wsl import FakeWsl, failure, success
from tests.test_utils.builders import STATUS_CURRENT, registration_data

SM = "subscription-manager"
IDENTITY = success("system identity: 5f0c...\nname: rhel9\norg name: Example\n")


def _config(**overrides) -> RegistrationConfig:
    return RegistrationConfig.model_validate(registration_data(**overrides))


def _fallback(**overrides) -> dict:
    values = {"enabled": True, "username": "ops", "password": "cdn-pass"}
    values.update(overrides)
    return values


def _registers(wsl: FakeWsl) -> list[tuple[str, ...]]:
    return [argv for argv in wsl.commands_for("RHEL9") if argv[:2] == (SM, "register")]


def test_primary_registration() -> None:
    wsl = FakeWsl(guests=["RHEL9"], responses={(SM, "status"): STATUS_CURRENT})
    ctx = ProvisionContext.for_test(wsl=wsl)

    outcome = register(ctx, "RHEL9", _config())

    assert outcome.success
    assert outcome.method == RegistrationMethod.PRIMARY
    commands = wsl.commands_for("RHEL9")
    assert commands[0][0] == "curl"
    assert commands[0][-1] == "https://satellite.example.com/"
    assert (
        "rpm",
        "--upgrade",
        "--replacepkgs",
        "--verbose",
        "--hash",
        "https://satellite.example.com/pub/katello-ca-consumer-latest.noarch.rpm",
    ) in commands
    assert _registers(wsl) == [
        (SM, "register", "--org", "Example", "--activationkey", "rhel-dev")
    ]
    assert (SM, "attach", "--auto") in commands


def test_already_registered_is_a_no_op() -> None:
    """Registration idempotence: zero mutating commands on a registered guest."""
    wsl = FakeWsl(guests=["RHEL9"], responses={(SM, "identity"): IDENTITY})
    ctx = ProvisionContext.for_test(wsl=wsl)

    outcome = register(ctx, "RHEL9", _config())

    assert outcome.success
    assert outcome.already_registered
    assert wsl.mutating_calls == []


def test_forced_registration_unregisters_first() -> None:
    wsl = FakeWsl(
        guests=["RHEL9"],
        responses={
            (SM, "identity"): IDENTITY,
            (SM, "unregister"): failure("not registered"),
            (SM, "status"): STATUS_CURRENT,
        },
    )
    ctx = ProvisionContext.for_test(wsl=wsl)

    outcome = register(ctx, "RHEL9", _config(force_registration=True))

    assert outcome.success
    assert not outcome.already_registered
    commands = wsl.commands_for("RHEL9")
    assert commands.index((SM, "unregister")) < commands.index((SM, "clean"))
    assert commands.index((SM, "clean")) < commands.index(_registers(wsl)[0])


def test_primary_failure_without_fallback() -> None:
    wsl = FakeWsl(guests=["RHEL9"], responses={(SM, "register"): failure("invalid key")})
    ctx = ProvisionContext.for_test(wsl=wsl)

    outcome = register(ctx, "RHEL9", _config())

    assert not outcome.success
    assert outcome.error is not None
    assert outcome.error.kind == ErrorKind.REGISTRATION_FAILED
    assert "invalid key" in outcome.error.detail
    assert "rhel-dev" not in outcome.error.detail
    assert len(_registers(wsl)) == 1


def test_primary_failure_activates_fallback_exactly_once() -> None:
    wsl = FakeWsl(
        guests=["RHEL9"],
        responses={(SM, "register"): [failure("invalid key"), success()]},
    )
    ctx = ProvisionContext.for_test(wsl=wsl)

    outcome = register(ctx, "RHEL9", _config(fallback=_fallback()))

    assert outcome.success
    assert outcome.method == RegistrationMethod.FALLBACK
    registers = _registers(wsl)
    assert len(registers) == 2
    assert registers[1] == (
        SM,
        "register",
        "--username",
        "ops",
        "--password",
        "cdn-pass",
        "--auto-attach",
    )
    assert any(argv[:2] == (SM, "config") for argv in wsl.commands_for("RHEL9"))
    assert any("Primary registration failed" in w for w in outcome.warnings)


def test_fallback_failure_is_not_retried() -> None:
    wsl = FakeWsl(guests=["RHEL9"], responses={(SM, "register"): failure("denied")})
    ctx = ProvisionContext.for_test(wsl=wsl)

    outcome = register(ctx, "RHEL9", _config(fallback=_fallback()))

    assert not outcome.success
    assert outcome.method == RegistrationMethod.FALLBACK
    assert outcome.error is not None
    assert outcome.error.kind == ErrorKind.REGISTRATION_FAILED
    assert "cdn-pass" not in outcome.error.detail
    assert len(_registers(wsl)) == 2


def test_unreachable_server_goes_straight_to_fallback() -> None:
    wsl = FakeWsl(guests=["RHEL9"], responses={("curl",): failure("timed out", returncode=28)})
    ctx = ProvisionContext.for_test(wsl=wsl)

    outcome = register(ctx, "RHEL9", _config(fallback=_fallback()))

    assert outcome.success
    assert outcome.method == RegistrationMethod.FALLBACK
    assert len(_registers(wsl)) == 1
    assert not any(argv[0] == "rpm" for argv in wsl.commands_for("RHEL9"))


def test_unreachable_server_without_fallback() -> None:
    wsl = FakeWsl(guests=["RHEL9"], responses={("curl",): failure("timed out", returncode=28)})
    ctx = ProvisionContext.for_test(wsl=wsl)

    outcome = register(ctx, "RHEL9", _config())

    assert not outcome.success
    assert outcome.error is not None
    assert outcome.error.kind == ErrorKind.ENDPOINT_UNREACHABLE
    assert _registers(wsl) == []


def test_fallback_prompts_when_credentials_missing() -> None:
    prompter = FakeCredentialPrompter(Credentials("typed-user", "typed-pass"))
    wsl = FakeWsl(guests=["RHEL9"], responses={("curl",): failure("unreachable")})
    ctx = ProvisionContext.for_test(wsl=wsl, prompter=prompter)

    outcome = register(ctx, "RHEL9", _config(fallback={"enabled": True}))

    assert outcome.success
    assert prompter.prompted_for == ["RHEL9"]
    assert _registers(wsl)[0][3] == "typed-user"


def test_fallback_without_credentials() -> None:
    prompter = FakeCredentialPrompter(None)
    wsl = FakeWsl(guests=["RHEL9"], responses={("curl",): failure("unreachable")})
    ctx = ProvisionContext.for_test(wsl=wsl, prompter=prompter)

    outcome = register(ctx, "RHEL9", _config(fallback={"enabled": True}))

    assert not outcome.success
    assert outcome.error is not None
    assert outcome.error.kind == ErrorKind.CREDENTIALS_UNAVAILABLE
    assert _registers(wsl) == []


def test_no_prompt_when_prompting_disabled() -> None:
    prompter = FakeCredentialPrompter(Credentials("u", "p"))
    wsl = FakeWsl(guests=["RHEL9"], responses={("curl",): failure("unreachable")})
    ctx = ProvisionContext.for_test(wsl=wsl, prompter=prompter)

    outcome = register(
        ctx, "RHEL9", _config(fallback={"enabled": True, "prompt_for_credentials": False})
    )

    assert outcome.error is not None
    assert outcome.error.kind == ErrorKind.CREDENTIALS_UNAVAILABLE
    assert prompter.prompted_for == []


def test_unverified_status_fails() -> None:
    wsl = FakeWsl(
        guests=["RHEL9"],
        responses={(SM, "status"): success("Overall Status: Invalid\n")},
    )
    ctx = ProvisionContext.for_test(wsl=wsl)

    outcome = register(ctx, "RHEL9", _config())

    assert not outcome.success
    assert outcome.error is not None
    assert "not current" in outcome.error.detail


def test_simple_content_access_counts_as_current() -> None:
    wsl = FakeWsl(
        guests=["RHEL9"],
        responses={(SM, "status"): success("Content Access Mode is set to Simple Content Access.")},
    )
    ctx = ProvisionContext.for_test(wsl=wsl)

    assert register(ctx, "RHEL9", _config()).success


def test_auto_attach_failure_is_a_warning() -> None:
    wsl = FakeWsl(
        guests=["RHEL9"],
        responses={(SM, "attach"): failure("no pools"), (SM, "status"): STATUS_CURRENT},
    )
    ctx = ProvisionContext.for_test(wsl=wsl)

    outcome = register(ctx, "RHEL9", _config())

    assert outcome.success
    assert any("Auto-attach failed" in w for w in outcome.warnings)


def test_secrets_never_logged(caplog: pytest.LogCaptureFixture) -> None:
    wsl = FakeWsl(guests=["RHEL9"], responses={(SM, "register"): failure("denied")})
    logger = logging.getLogger("distprov.test.registration")
    ctx = ProvisionContext.for_test(wsl=wsl, logger=logger)

    with caplog.at_level(logging.DEBUG, logger=logger.name):
        register(ctx, "RHEL9", _config(fallback=_fallback()))

    assert "rhel-dev" not in caplog.text
    assert "cdn-pass" not in caplog.text


def test_dry_run_issues_no_mutations() -> None:
    wsl = FakeWsl(guests=["RHEL9"])
    ctx = ProvisionContext.for_test(wsl=wsl, dry_run=True)

    outcome = register(ctx, "RHEL9", _config())

    assert outcome.success
    assert wsl.mutating_calls == []


def test_server_url_normalization() -> None:
    assert server_url("satellite.example.com") == "https://satellite.example.com"
    assert server_url("http://sat.local/") == "http://sat.local"


def test_missing_primary_parameters_fail_without_running_register() -> None:
    """A config built without org/key reports a failure instead of crashing."""
    wsl = FakeWsl(guests=["RHEL9"])
    ctx = ProvisionContext.for_test(wsl=wsl)
    config = _config(enabled=False, organization=None, activation_key=None)

    outcome = register(ctx, "RHEL9", config)

    assert not outcome.success
    assert outcome.error is not None
    assert outcome.error.kind == ErrorKind.REGISTRATION_FAILED
    assert "organization and an activation key" in outcome.error.detail
    assert _registers(wsl) == []
