"""Register guests with the content-management server, falling back to direct registration.

Protocol:
1. Optionally probe the registration server from inside the guest.
   Unreachable -> fallback (if enabled) or EndpointUnreachable.
2. Already registered and not forced -> no-op success.
3. Forced -> best-effort unregister first.
4. Primary: CA consumer package + `subscription-manager register --org --activationkey`.
   Failure -> exactly one fallback attempt (if enabled).
5. Auto-attach entitlements (warning on failure).
6. Verify status; a register that reported success but left the guest
   unregistered is a failure.
7. Fallback: point rhsm at the vendor CDN and register with account credentials.
"""

import re

from distprov.core.config import RegistrationConfig
from distprov.core.context import ProvisionContext
from distprov.core.errors import ErrorKind, ProvisionError
from distprov.core.prompt import Credentials
from distprov.core.results import RegistrationMethod, RegistrationOutcome
from distprov.ops.subprocess import describe_failure

SUBSCRIPTION_MANAGER = "subscription-manager"
CA_CONSUMER_PATH = "/pub/katello-ca-consumer-latest.noarch.rpm"
CDN_CA_CERT = "/etc/rhsm/ca/redhat-uep.pem"

_CURRENT_STATUS = re.compile(r"Overall Status:\s*(Current|Disabled)", re.IGNORECASE)


def server_url(server: str) -> str:
    """Normalize a bare hostname to an https URL.

    >>> server_url("satellite.example.com")
    'https://satellite.example.com'
    >>> server_url("https://satellite.example.com/")
    'https://satellite.example.com'
    """
    if "://" not in server:
        server = f"https://{server}"
    return server.rstrip("/")


def is_endpoint_reachable(
    ctx: ProvisionContext, guest_name: str, server: str, timeout_seconds: int
) -> bool:
    """Probe the server over HTTPS from inside the guest."""
    result = ctx.wsl.run_in_guest(
        guest_name,
        [
            "curl",
            "--silent",
            "--insecure",
            "--output",
            "/dev/null",
            "--max-time",
            str(timeout_seconds),
            f"{server_url(server)}/",
        ],
        read_only=True,
    )
    return result.success


def is_registered(ctx: ProvisionContext, guest_name: str) -> bool:
    result = ctx.wsl.run_in_guest(guest_name, [SUBSCRIPTION_MANAGER, "identity"], read_only=True)
    return result.success and "identity" in result.stdout.lower()


def is_status_current(ctx: ProvisionContext, guest_name: str) -> bool:
    result = ctx.wsl.run_in_guest(guest_name, [SUBSCRIPTION_MANAGER, "status"], read_only=True)
    if _CURRENT_STATUS.search(result.stdout):
        return True
    return "simple content access" in result.stdout.lower()


def _unregister(ctx: ProvisionContext, guest_name: str) -> None:
    """Drop the current registration; failures are ignored."""
    ctx.logger.info("Forcing re-registration: unregistering first")
    for argv in ([SUBSCRIPTION_MANAGER, "unregister"], [SUBSCRIPTION_MANAGER, "clean"]):
        result = ctx.wsl.run_in_guest(guest_name, argv)
        if not result.success:
            ctx.logger.debug("'%s' failed (ignored): %s", " ".join(argv), result.output)


def _register_primary(
    ctx: ProvisionContext, guest_name: str, config: RegistrationConfig
) -> ProvisionError | None:
    if not config.organization or config.activation_key is None:
        return ProvisionError(
            ErrorKind.REGISTRATION_FAILED,
            "Registration needs both an organization and an activation key",
        )
    if config.install_ca_certificate and config.server:
        ca_url = server_url(config.server) + CA_CONSUMER_PATH
        result = ctx.wsl.run_in_guest(
            guest_name, ["rpm", "--upgrade", "--replacepkgs", "--verbose", "--hash", ca_url]
        )
        if not result.success:
            detail = describe_failure(result, f"install CA certificate from {ca_url}")
            return ProvisionError(ErrorKind.REGISTRATION_FAILED, detail)
        ctx.logger.info("Installed CA consumer package from %s", ca_url)

    result = ctx.wsl.run_in_guest(
        guest_name,
        [
            SUBSCRIPTION_MANAGER,
            "register",
            "--org",
            config.organization,
            "--activationkey",
            config.activation_key.get_secret_value(),
        ],
    )
    if not result.success:
        detail = describe_failure(result, f"register with organization '{config.organization}'")
        return ProvisionError(ErrorKind.REGISTRATION_FAILED, detail)
    return None


def _resolve_credentials(
    ctx: ProvisionContext, guest_name: str, config: RegistrationConfig
) -> Credentials | None:
    fallback = config.fallback
    if fallback.username and fallback.password is not None:
        return Credentials(fallback.username, fallback.password.get_secret_value())
    if not fallback.prompt_for_credentials:
        return None
    return ctx.prompter.prompt_credentials(guest_name)


def _register_fallback(
    ctx: ProvisionContext,
    guest_name: str,
    config: RegistrationConfig,
    warnings: list[str],
) -> RegistrationOutcome:
    ctx.logger.info("Attempting direct registration")
    credentials = _resolve_credentials(ctx, guest_name, config)
    if credentials is None:
        detail = "Direct registration needs credentials but none were configured or supplied"
        ctx.logger.error(detail)
        return RegistrationOutcome(
            success=False,
            method=RegistrationMethod.FALLBACK,
            warnings=tuple(warnings),
            error=ProvisionError(ErrorKind.CREDENTIALS_UNAVAILABLE, detail),
        )

    fallback = config.fallback
    result = ctx.wsl.run_in_guest(
        guest_name,
        [
            SUBSCRIPTION_MANAGER,
            "config",
            f"--server.hostname={fallback.server_hostname}",
            "--server.prefix=/subscription",
            "--server.port=443",
            f"--rhsm.baseurl={fallback.base_url}",
            f"--rhsm.repo_ca_cert={CDN_CA_CERT}",
        ],
    )
    if not result.success:
        message = f"Could not point rhsm at {fallback.server_hostname}: {result.output}"
        ctx.logger.warning(message)
        warnings.append(message)

    register = [
        SUBSCRIPTION_MANAGER,
        "register",
        "--username",
        credentials.username,
        "--password",
        credentials.password,
    ]
    if config.auto_attach:
        register.append("--auto-attach")
    result = ctx.wsl.run_in_guest(guest_name, register)
    if not result.success:
        detail = describe_failure(result, f"register directly as '{credentials.username}'")
        ctx.logger.error(detail)
        return RegistrationOutcome(
            success=False,
            method=RegistrationMethod.FALLBACK,
            warnings=tuple(warnings),
            error=ProvisionError(ErrorKind.REGISTRATION_FAILED, detail),
        )

    ctx.logger.info("Registered directly with %s", fallback.server_hostname)
    return RegistrationOutcome(
        success=True, method=RegistrationMethod.FALLBACK, warnings=tuple(warnings)
    )


def register(
    ctx: ProvisionContext, guest_name: str, config: RegistrationConfig
) -> RegistrationOutcome:
    """Run the registration protocol for one guest."""
    warnings: list[str] = []

    if config.test_connectivity and config.server:
        if not is_endpoint_reachable(
            ctx, guest_name, config.server, config.connectivity_timeout_seconds
        ):
            message = f"Registration server {config.server} is unreachable"
            ctx.logger.warning(message)
            if config.fallback.enabled:
                warnings.append(message)
                return _register_fallback(ctx, guest_name, config, warnings)
            return RegistrationOutcome(
                success=False, error=ProvisionError(ErrorKind.ENDPOINT_UNREACHABLE, message)
            )

    if is_registered(ctx, guest_name):
        if not config.force_registration:
            ctx.logger.info("Already registered")
            return RegistrationOutcome(
                success=True, method=RegistrationMethod.PRIMARY, already_registered=True
            )
        _unregister(ctx, guest_name)

    error = _register_primary(ctx, guest_name, config)
    if error is not None:
        ctx.logger.warning("Primary registration failed: %s", error.detail)
        if config.fallback.enabled:
            warnings.append(f"Primary registration failed: {error.detail}")
            return _register_fallback(ctx, guest_name, config, warnings)
        return RegistrationOutcome(
            success=False,
            method=RegistrationMethod.PRIMARY,
            warnings=tuple(warnings),
            error=error,
        )
    ctx.logger.info("Registered with organization '%s'", config.organization)

    if config.auto_attach:
        result = ctx.wsl.run_in_guest(guest_name, [SUBSCRIPTION_MANAGER, "attach", "--auto"])
        if not result.success:
            message = f"Auto-attach failed: {result.output}"
            ctx.logger.warning(message)
            warnings.append(message)

    if ctx.dry_run:
        ctx.logger.info("[preview] skipping registration status verification")
    elif not is_status_current(ctx, guest_name):
        detail = "Register reported success but subscription status is not current"
        ctx.logger.error(detail)
        return RegistrationOutcome(
            success=False,
            method=RegistrationMethod.PRIMARY,
            warnings=tuple(warnings),
            error=ProvisionError(ErrorKind.REGISTRATION_FAILED, detail),
        )

    return RegistrationOutcome(
        success=True, method=RegistrationMethod.PRIMARY, warnings=tuple(warnings)
    )
