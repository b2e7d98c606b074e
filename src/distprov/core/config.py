"""Provisioning configuration: typed models and loading.

The configuration document is read once at the CLI entry point, validated in
full, and handed to each component as the narrow model it needs.

Example config.toml:
  [settings]
  continue_on_error = true
  max_concurrent_distributions = 1

  [paths]
  download_dir = "C:/WSL/images"
  backup_dir = "C:/WSL/backups"

  [[distributions]]
  name = "RHEL9"
  version = "9.4"
  filename = "rhel-9.4-x86_64-wsl.tar.gz"
  url = "https://images.example.com/rhel-9.4-x86_64-wsl.tar.gz"
  install_path = "C:/WSL/RHEL9"

  [user]
  username = "developer"
  password = "changeme"

  [registration]
  server = "satellite.example.com"
  organization = "Example"
  activation_key = "rhel9-dev"
"""

import json
import os
import tomllib
from pathlib import Path
from typing import Any

import yaml
from pydantic import (
    AnyHttpUrl,
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    TypeAdapter,
    ValidationError,
    field_validator,
    model_validator,
)

from distprov.core.errors import ConfigurationError

USER_PASSWORD_ENV = "DISTPROV_USER_PASSWORD"
FALLBACK_USERNAME_ENV = "DISTPROV_FALLBACK_USERNAME"
FALLBACK_PASSWORD_ENV = "DISTPROV_FALLBACK_PASSWORD"


class _Model(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class Settings(_Model):
    """Global flags governing the whole run."""

    continue_on_error: bool = True
    max_concurrent_distributions: int = Field(default=1, ge=1)
    set_as_default: bool = False
    validate_after_setup: bool = True
    replace_existing: bool = True
    backup_before_replace: bool = True
    wsl_executable: str = "wsl.exe"
    wsl_version: int = Field(default=2, ge=1, le=2)
    command_timeout_seconds: float = Field(default=1800, gt=0)


class PathsConfig(_Model):
    download_dir: Path = Path("downloads")
    backup_dir: Path = Path("backups")
    log_dir: Path | None = None


class DownloadConfig(_Model):
    retry_attempts: int = Field(default=3, ge=1)
    retry_delay_seconds: float = Field(default=10, ge=0)
    timeout_seconds: float = Field(default=300, gt=0)
    verify_integrity: bool = True


_HTTP_URL = TypeAdapter(AnyHttpUrl)


class GuestDefinition(_Model):
    """Identity and placement of one provisionable guest."""

    name: str = Field(min_length=1, pattern=r"^[A-Za-z0-9._-]+$")
    version: str = Field(min_length=1)
    filename: str = Field(min_length=1)
    url: str = Field(min_length=1)
    install_path: Path
    enabled: bool = True
    sha256: str | None = Field(default=None, pattern=r"^[0-9a-fA-F]{64}$")
    size_bytes: int | None = Field(default=None, ge=0)

    @field_validator("url")
    @classmethod
    def _check_url(cls, value: str) -> str:
        try:
            _HTTP_URL.validate_python(value)
        except ValidationError as e:
            raise ValueError(f"not a valid http(s) URL: {value!r}") from e
        return value

    @property
    def major_version(self) -> str:
        return self.version.split(".", 1)[0]


class UserConfig(_Model):
    username: str = Field(min_length=1, pattern=r"^[a-z_][a-z0-9_-]*$")
    password: SecretStr | None = None
    shell: str = "/bin/bash"
    groups: list[str] = Field(default_factory=lambda: ["wheel"])
    force_password_change: bool = True
    grant_sudo: bool = True
    set_default: bool = True


class FallbackConfig(_Model):
    """Direct registration against the vendor CDN, used when the primary path fails."""

    enabled: bool = True
    prompt_for_credentials: bool = True
    username: str | None = None
    password: SecretStr | None = None
    server_hostname: str = "subscription.rhsm.redhat.com"
    base_url: str = "https://cdn.redhat.com"


class RegistrationConfig(_Model):
    enabled: bool = True
    server: str | None = None
    organization: str | None = None
    activation_key: SecretStr | None = None
    install_ca_certificate: bool = True
    test_connectivity: bool = True
    connectivity_timeout_seconds: int = Field(default=10, ge=1)
    force_registration: bool = False
    auto_attach: bool = True
    fallback: FallbackConfig = Field(default_factory=FallbackConfig)

    @model_validator(mode="after")
    def _require_primary_parameters(self) -> "RegistrationConfig":
        if self.enabled and (self.organization is None or self.activation_key is None):
            msg = "registration requires 'organization' and 'activation_key' when enabled"
            raise ValueError(msg)
        return self


class RepositoryConfig(_Model):
    enabled: bool = True
    clean_cache: bool = True
    enable_codeready_builder: bool = True
    install_epel: bool = True
    additional: list[str] = Field(default_factory=list)
    update_system: bool = True
    architecture: str = "x86_64"


class EnvironmentConfig(_Model):
    """Post-setup commands run as the primary user, best-effort."""

    commands: list[str] = Field(default_factory=list)


class ValidationConfig(_Model):
    commands: list[str] = Field(
        default_factory=lambda: [
            "cat /etc/os-release",
            "sudo -n true",
            "subscription-manager identity",
            "dnf repolist",
        ]
    )


class ProvisioningConfig(_Model):
    settings: Settings = Field(default_factory=Settings)
    paths: PathsConfig = Field(default_factory=PathsConfig)
    download: DownloadConfig = Field(default_factory=DownloadConfig)
    distributions: list[GuestDefinition] = Field(min_length=1)
    user: UserConfig | None = None
    registration: RegistrationConfig = Field(
        default_factory=lambda: RegistrationConfig(enabled=False)
    )
    repositories: RepositoryConfig = Field(default_factory=RepositoryConfig)
    environment: EnvironmentConfig = Field(default_factory=EnvironmentConfig)
    validation: ValidationConfig = Field(default_factory=ValidationConfig)

    @model_validator(mode="after")
    def _check_guest_uniqueness(self) -> "ProvisioningConfig":
        names = [guest.name.lower() for guest in self.distributions]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValueError(f"duplicate distribution names: {', '.join(duplicates)}")
        filenames = [guest.filename for guest in self.distributions]
        shared = sorted({name for name in filenames if filenames.count(name) > 1})
        if shared:
            raise ValueError(f"distributions share artifact filenames: {', '.join(shared)}")
        if self.user is not None and self.user.password is None:
            raise ValueError(f"user password missing (set it in the file or {USER_PASSWORD_ENV})")
        return self

    @property
    def enabled_distributions(self) -> list[GuestDefinition]:
        return [guest for guest in self.distributions if guest.enabled]

    def artifact_path(self, guest: GuestDefinition) -> Path:
        return self.paths.download_dir / guest.filename


def _read_document(path: Path) -> dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    suffix = path.suffix.lower()
    if suffix == ".toml":
        return tomllib.loads(text)
    if suffix in (".yaml", ".yml"):
        data = yaml.safe_load(text)
        return data if data is not None else {}
    if suffix == ".json":
        return json.loads(text)
    raise ConfigurationError(f"Unsupported configuration format '{suffix}': {path}")


def _apply_environment(data: dict[str, Any]) -> dict[str, Any]:
    """Fill secrets from environment variables when the document omits them."""
    password = os.environ.get(USER_PASSWORD_ENV)
    user = data.get("user")
    if password and isinstance(user, dict) and not user.get("password"):
        data = {**data, "user": {**user, "password": password}}

    registration = data.get("registration")
    if isinstance(registration, dict):
        fallback = dict(registration.get("fallback") or {})
        for key, env_name in (
            ("username", FALLBACK_USERNAME_ENV),
            ("password", FALLBACK_PASSWORD_ENV),
        ):
            value = os.environ.get(env_name)
            if value and not fallback.get(key):
                fallback[key] = value
        if fallback:
            data = {**data, "registration": {**registration, "fallback": fallback}}
    return data


def _format_validation_error(error: ValidationError) -> str:
    lines = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"]) or "<root>"
        lines.append(f"  {location}: {item['msg']}")
    return "\n".join(lines)


def parse_config(data: dict[str, Any], source: str = "<memory>") -> ProvisioningConfig:
    """Validate an already-parsed configuration mapping.

    Raises:
        ConfigurationError: If any field is missing or malformed
    """
    try:
        return ProvisioningConfig.model_validate(_apply_environment(data))
    except ValidationError as e:
        raise ConfigurationError(
            f"Invalid configuration in {source}:\n{_format_validation_error(e)}"
        ) from e


def load_config(path: Path) -> ProvisioningConfig:
    """Load and validate the configuration document at path.

    The format is chosen by suffix: .toml, .yaml/.yml or .json.

    Raises:
        ConfigurationError: If the file is missing, unparsable or invalid
    """
    if not path.exists():
        raise ConfigurationError(f"Configuration file not found: {path}")
    try:
        data = _read_document(path)
    except (tomllib.TOMLDecodeError, yaml.YAMLError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Cannot parse {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"Configuration root must be a mapping: {path}")
    return parse_config(data, str(path))
