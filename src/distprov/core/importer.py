"""Materialize guests from artifacts, replacing any guest of the same name.

Per guest name the importer walks Absent -> (Backup) -> Unregistered -> Present.
At most one live guest exists under a name at any time: an existing guest is
exported (when backups are enabled) and removed before the new one is created.
The live-guest list is the authority; exit codes alone are never trusted.
"""

from dataclasses import dataclass
from pathlib import Path

from distprov.core.config import GuestDefinition
from distprov.core.context import ProvisionContext
from distprov.core.errors import ELEVATION_REQUIRED, ErrorKind, ProvisionError
from distprov.core.results import BackupRecord, ImportResult
from distprov.ops.subprocess import CommandResult, describe_failure
from distprov.ops.wsl import is_access_denied


@dataclass(frozen=True)
class ImportOptions:
    replace_existing: bool = True
    backup_before_replace: bool = True
    backup_dir: Path = Path("backups")
    set_as_default: bool = False
    wsl_version: int = 2


def _failure(
    guest: GuestDefinition, error: ProvisionError, backup: BackupRecord | None = None
) -> ImportResult:
    return ImportResult(
        success=False,
        guest_name=guest.name,
        install_path=guest.install_path,
        backup=backup,
        error=error,
    )


def _command_error(result: CommandResult, kind: ErrorKind, operation: str) -> ProvisionError:
    if is_access_denied(result):
        return ProvisionError(ErrorKind.ACCESS_DENIED, f"{ELEVATION_REQUIRED}\n{result.output}")
    return ProvisionError(kind, describe_failure(result, operation))


def backup_guest(ctx: ProvisionContext, name: str, backup_dir: Path) -> BackupRecord:
    """Export a live guest to a timestamped archive under backup_dir."""
    stamp = ctx.time.now().strftime("%Y%m%d-%H%M%S")
    archive = backup_dir / f"{name}-{stamp}.tar"
    if not ctx.dry_run:
        backup_dir.mkdir(parents=True, exist_ok=True)

    ctx.logger.info("Backing up existing distribution to %s", archive)
    result = ctx.wsl.export_guest(name, archive)
    if not result.success:
        error = _command_error(result, ErrorKind.BACKUP_FAILED, f"export distribution '{name}'")
        return BackupRecord(success=False, archive_path=archive, error=error)
    if not ctx.dry_run and not archive.exists():
        detail = f"Export of '{name}' reported success but {archive} does not exist"
        return BackupRecord(
            success=False,
            archive_path=archive,
            error=ProvisionError(ErrorKind.BACKUP_FAILED, detail),
        )
    return BackupRecord(success=True, archive_path=archive)


def import_guest(
    ctx: ProvisionContext,
    guest: GuestDefinition,
    source_artifact: Path,
    options: ImportOptions,
) -> ImportResult:
    """Create guest from source_artifact, backing up and replacing any existing one."""
    if not source_artifact.exists() and not ctx.dry_run:
        detail = f"Artifact not found: {source_artifact}"
        return _failure(guest, ProvisionError(ErrorKind.SOURCE_ARTIFACT_MISSING, detail))

    backup: BackupRecord | None = None
    if guest.name in ctx.wsl.list_guests():
        if not options.replace_existing:
            ctx.logger.info("Distribution already exists, keeping it")
            return ImportResult(
                success=True,
                guest_name=guest.name,
                install_path=guest.install_path,
                already_existed=True,
            )
        ctx.logger.info("Distribution already exists and will be replaced")
        if options.backup_before_replace:
            backup = backup_guest(ctx, guest.name, options.backup_dir)
            if not backup.success:
                assert backup.error is not None
                ctx.logger.error("Backup failed, leaving existing distribution untouched")
                return _failure(guest, backup.error, backup)

        result = ctx.wsl.unregister_guest(guest.name)
        if not result.success:
            operation = f"unregister distribution '{guest.name}'"
            return _failure(
                guest, _command_error(result, ErrorKind.UNREGISTER_FAILED, operation), backup
            )
        ctx.logger.info("Unregistered existing distribution")

    if not ctx.dry_run:
        guest.install_path.mkdir(parents=True, exist_ok=True)
    ctx.logger.info("Importing from %s into %s", source_artifact, guest.install_path)
    result = ctx.wsl.import_guest(
        guest.name, guest.install_path, source_artifact, version=options.wsl_version
    )
    if not result.success:
        return _failure(
            guest,
            _command_error(result, ErrorKind.IMPORT_FAILED, f"import distribution '{guest.name}'"),
            backup,
        )

    if guest.name not in ctx.wsl.list_guests():
        detail = f"Import of '{guest.name}' reported success but the distribution is not listed"
        return _failure(
            guest, ProvisionError(ErrorKind.IMPORT_VERIFICATION_FAILED, detail), backup
        )

    warnings: list[str] = []
    if options.set_as_default:
        result = ctx.wsl.set_default_guest(guest.name)
        if result.success:
            ctx.logger.info("Set as default distribution")
        else:
            message = f"Could not set '{guest.name}' as default: {result.output}"
            ctx.logger.warning(message)
            warnings.append(message)

    ctx.logger.info("Imported successfully")
    return ImportResult(
        success=True,
        guest_name=guest.name,
        install_path=guest.install_path,
        backup=backup,
        warnings=tuple(warnings),
    )
