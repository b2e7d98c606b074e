"""Result records produced by each provisioning stage.

All records are created fresh per run, are immutable, and are never
persisted by the core.
"""

from dataclasses import dataclass, field
from enum import Enum, StrEnum
from pathlib import Path

from distprov.core.errors import ProvisionError


class Stage(StrEnum):
    DOWNLOAD = "download"
    IMPORT = "import"
    BOOTSTRAP = "bootstrap"
    REGISTER = "register"
    REPOSITORIES = "repositories"
    ENVIRONMENT = "environment"
    VALIDATE = "validate"


class GuestState(Enum):
    """Provisioning progress of one guest, in pipeline order."""

    PENDING = 0
    DOWNLOADED = 1
    IMPORTED = 2
    USER_READY = 3
    REGISTERED = 4
    REPOSITORIES_READY = 5
    VALIDATED = 6


class RegistrationMethod(StrEnum):
    PRIMARY = "primary"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class DownloadResult:
    success: bool
    path: Path
    size_bytes: int = 0
    already_existed: bool = False
    attempts: int = 0
    simulated: bool = False
    error: ProvisionError | None = None


@dataclass(frozen=True)
class BackupRecord:
    success: bool
    archive_path: Path | None
    error: ProvisionError | None = None


@dataclass(frozen=True)
class ImportResult:
    success: bool
    guest_name: str
    install_path: Path
    backup: BackupRecord | None = None
    already_existed: bool = False
    warnings: tuple[str, ...] = ()
    error: ProvisionError | None = None


@dataclass(frozen=True)
class RegistrationOutcome:
    success: bool
    method: RegistrationMethod | None = None
    already_registered: bool = False
    warnings: tuple[str, ...] = ()
    error: ProvisionError | None = None


@dataclass(frozen=True)
class CommandOutcome:
    """One command run inside a guest, as reported to the user."""

    command: str
    success: bool
    output: str


@dataclass(frozen=True)
class ValidationRun:
    outcomes: tuple[CommandOutcome, ...] = ()

    @property
    def total(self) -> int:
        return len(self.outcomes)

    @property
    def passed(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.success)

    @property
    def all_passed(self) -> bool:
        return self.passed == self.total


@dataclass(frozen=True)
class GuestResult:
    """Everything the orchestrator learned about one guest in this run."""

    name: str
    state: GuestState = GuestState.PENDING
    started: bool = False
    failed_stage: Stage | None = None
    error: ProvisionError | None = None
    download: DownloadResult | None = None
    import_result: ImportResult | None = None
    registration: RegistrationOutcome | None = None
    validation: ValidationRun | None = None
    warnings: tuple[str, ...] = ()
    duration_seconds: float = 0.0

    @property
    def failed(self) -> bool:
        return self.failed_stage is not None

    @property
    def status(self) -> str:
        if not self.started:
            return "SKIPPED"
        return "FAILED" if self.failed else "SUCCESS"


@dataclass(frozen=True)
class ProvisioningReport:
    results: tuple[GuestResult, ...] = field(default_factory=tuple)
    aborted: bool = False

    @property
    def succeeded(self) -> list[GuestResult]:
        return [r for r in self.results if r.status == "SUCCESS"]

    @property
    def failed(self) -> list[GuestResult]:
        return [r for r in self.results if r.status == "FAILED"]

    @property
    def skipped(self) -> list[GuestResult]:
        return [r for r in self.results if r.status == "SKIPPED"]

    @property
    def exit_code(self) -> int:
        return 1 if self.failed or self.aborted else 0


@dataclass
class StageReport:
    """Mutable tally a boolean-returning stage fills in for the orchestrator."""

    error: ProvisionError | None = None
    warnings: list[str] = field(default_factory=list)
