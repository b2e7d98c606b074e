"""Error taxonomy shared by every provisioning stage."""

from dataclasses import dataclass
from enum import StrEnum


class ErrorKind(StrEnum):
    CONFIGURATION_INVALID = "ConfigurationInvalid"
    SOURCE_ARTIFACT_MISSING = "SourceArtifactMissing"
    DOWNLOAD_EXHAUSTED = "DownloadExhausted"
    INTEGRITY_MISMATCH = "IntegrityMismatch"
    BACKUP_FAILED = "GuestAlreadyExistsBackupFailed"
    UNREGISTER_FAILED = "GuestUnregisterFailed"
    IMPORT_FAILED = "ImportFailed"
    IMPORT_VERIFICATION_FAILED = "ImportVerificationFailed"
    ACCESS_DENIED = "AccessDenied"
    USER_CREATION_FAILED = "UserCreationFailed"
    PASSWORD_SET_FAILED = "PasswordSetFailed"
    ENDPOINT_UNREACHABLE = "EndpointUnreachable"
    REGISTRATION_FAILED = "RegistrationFailed"
    CREDENTIALS_UNAVAILABLE = "CredentialsUnavailable"
    REPOSITORY_ACTIVATION_PARTIAL = "RepositoryActivationPartial"
    VALIDATION_COMMAND_FAILED = "ValidationCommandFailed"
    UNEXPECTED = "UnexpectedError"


@dataclass(frozen=True)
class ProvisionError:
    """Error payload carried by a failed result.

    The detail is the originating message, preserved verbatim.
    """

    kind: ErrorKind
    detail: str

    def __str__(self) -> str:
        return f"{self.kind}: {self.detail}"


class ConfigurationError(Exception):
    """Raised when the configuration document cannot be loaded or is invalid."""

    kind = ErrorKind.CONFIGURATION_INVALID


ELEVATION_REQUIRED = (
    "Access denied by WSL. Run distprov from an elevated (Administrator) prompt."
)
