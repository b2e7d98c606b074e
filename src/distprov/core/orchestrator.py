"""Drive every configured guest through the provisioning pipeline.

Per guest the stages run strictly in order:

    PENDING -> DOWNLOADED -> IMPORTED -> USER_READY -> REGISTERED
            -> REPOSITORIES_READY -> VALIDATED

A stage runs only when the previous one succeeded. A failed stage ends that
guest's pipeline (Failed(stage)) and the orchestrator moves on to the next
guest, unless continue_on_error is off, in which case no further guest is
started. Warnings from best-effort sub-steps never stop anything.

Guests are pulled from a queue by a bounded pool of workers. With a pool of one
(the default) the run is strictly sequential on the calling thread.
"""

import queue
import threading
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace

from distprov.core.bootstrap import configure_user
from distprov.core.config import GuestDefinition, ProvisioningConfig
from distprov.core.context import ProvisionContext
from distprov.core.downloader import fetch
from distprov.core.environment import run_setup_commands
from distprov.core.errors import ErrorKind, ProvisionError
from distprov.core.importer import ImportOptions, import_guest
from distprov.core.registration import register
from distprov.core.repositories import activate_repositories
from distprov.core.results import (
    GuestResult,
    GuestState,
    ProvisioningReport,
    Stage,
    StageReport,
    ValidationRun,
)
from distprov.core.retry import RetryPolicy
from distprov.core.validator import validate_guest


class _StageFailed(Exception):
    def __init__(self, stage: Stage, error: ProvisionError) -> None:
        super().__init__(f"{stage}: {error}")
        self.stage = stage
        self.error = error


def _require[T](stage: Stage, result: T, success: bool, error: ProvisionError | None) -> T:
    if not success:
        raise _StageFailed(
            stage, error or ProvisionError(ErrorKind.UNEXPECTED, f"{stage} failed")
        )
    return result


def _guarded[T](stage: Stage, step: Callable[[], T]) -> T:
    """Run a stage, turning executor failures into a Failed(stage)."""
    try:
        return step()
    except (RuntimeError, OSError) as e:
        raise _StageFailed(stage, ProvisionError(ErrorKind.UNEXPECTED, str(e))) from e


def _run_pipeline(
    ctx: ProvisionContext, config: ProvisioningConfig, guest: GuestDefinition, progress: list
) -> None:
    """Advance progress[0] (a GuestResult) stage by stage."""
    settings = config.settings
    login = config.user.username if config.user is not None else "root"

    def advance(state: GuestState, **changes) -> None:
        progress[0] = replace(progress[0], state=state, **changes)
        ctx.logger.debug("State -> %s", state.name)

    def warn(messages: Sequence[str]) -> None:
        if messages:
            progress[0] = replace(progress[0], warnings=progress[0].warnings + tuple(messages))

    retry_policy = RetryPolicy(config.download.retry_attempts, config.download.retry_delay_seconds)
    download = _guarded(
        Stage.DOWNLOAD,
        lambda: fetch(
            ctx,
            guest,
            config.artifact_path(guest),
            retry_policy,
            verify_integrity=config.download.verify_integrity,
            timeout=config.download.timeout_seconds,
        ),
    )
    progress[0] = replace(progress[0], download=download)
    _require(Stage.DOWNLOAD, download, download.success, download.error)
    advance(GuestState.DOWNLOADED)

    options = ImportOptions(
        replace_existing=settings.replace_existing,
        backup_before_replace=settings.backup_before_replace,
        backup_dir=config.paths.backup_dir,
        set_as_default=settings.set_as_default,
        wsl_version=settings.wsl_version,
    )
    imported = _guarded(Stage.IMPORT, lambda: import_guest(ctx, guest, download.path, options))
    progress[0] = replace(progress[0], import_result=imported)
    warn(imported.warnings)
    _require(Stage.IMPORT, imported, imported.success, imported.error)
    advance(GuestState.IMPORTED)

    if config.user is not None:
        user_config = config.user
        report = StageReport()
        ok = _guarded(Stage.BOOTSTRAP, lambda: configure_user(ctx, guest.name, user_config, report))
        warn(report.warnings)
        _require(Stage.BOOTSTRAP, ok, ok, report.error)
    else:
        ctx.logger.info("No user configured, skipping bootstrap")
    advance(GuestState.USER_READY)

    if config.registration.enabled:
        outcome = _guarded(Stage.REGISTER, lambda: register(ctx, guest.name, config.registration))
        progress[0] = replace(progress[0], registration=outcome)
        warn(outcome.warnings)
        _require(Stage.REGISTER, outcome, outcome.success, outcome.error)
    advance(GuestState.REGISTERED)

    if config.repositories.enabled:
        report = StageReport()
        ok = _guarded(
            Stage.REPOSITORIES,
            lambda: activate_repositories(ctx, guest, config.repositories, report),
        )
        warn(report.warnings)
        _require(Stage.REPOSITORIES, ok, ok, report.error)
    advance(GuestState.REPOSITORIES_READY)

    if config.environment.commands:
        outcomes = _guarded(
            Stage.ENVIRONMENT,
            lambda: run_setup_commands(ctx, guest.name, config.environment, user=login),
        )
        warn([f"Setup command failed: {o.command}" for o in outcomes if not o.success])

    validation: ValidationRun | None = None
    if settings.validate_after_setup and config.validation.commands:
        validation = validate_guest(ctx, guest.name, config.validation.commands, user=login)
        warn(
            [
                f"{ErrorKind.VALIDATION_COMMAND_FAILED}: {o.command}"
                for o in validation.outcomes
                if not o.success
            ]
        )
    advance(GuestState.VALIDATED, validation=validation)


def provision_guest(
    ctx: ProvisionContext, config: ProvisioningConfig, guest: GuestDefinition
) -> GuestResult:
    """Run the full pipeline for one guest and report where it ended."""
    gctx = ctx.for_guest(guest.name)
    started_at = ctx.time.monotonic()
    progress = [GuestResult(name=guest.name, started=True)]
    gctx.logger.info("Provisioning started%s", " (preview)" if ctx.dry_run else "")

    try:
        _run_pipeline(gctx, config, guest, progress)
    except _StageFailed as failure:
        gctx.logger.error("Stage '%s' failed: %s", failure.stage, failure.error)
        error = replace(
            failure.error, detail=f"{guest.name} / {failure.stage}: {failure.error.detail}"
        )
        progress[0] = replace(progress[0], failed_stage=failure.stage, error=error)
    else:
        gctx.logger.info("Provisioning finished")

    return replace(progress[0], duration_seconds=ctx.time.monotonic() - started_at)


def select_guests(
    config: ProvisioningConfig, names: Sequence[str] | None = None
) -> list[GuestDefinition]:
    """Pick enabled guests, optionally narrowed to names (case-insensitive).

    Raises:
        ValueError: If a requested name is not configured
    """
    if not names:
        return config.enabled_distributions
    by_name = {guest.name.lower(): guest for guest in config.distributions}
    unknown = [name for name in names if name.lower() not in by_name]
    if unknown:
        raise ValueError(f"Unknown distribution(s): {', '.join(unknown)}")
    return [by_name[name.lower()] for name in names]


def provision_all(
    ctx: ProvisionContext,
    config: ProvisioningConfig,
    guests: Sequence[GuestDefinition] | None = None,
) -> ProvisioningReport:
    """Provision guests with a bounded worker pool and collect their results.

    Results are reported in configuration order whatever order workers
    finished in. Guests never started (after an abort) are reported SKIPPED.
    """
    selected = list(guests) if guests is not None else config.enabled_distributions
    for guest in config.distributions:
        if not guest.enabled and guests is None:
            ctx.logger.info("Skipping disabled distribution '%s'", guest.name)

    pending: queue.Queue[tuple[int, GuestDefinition]] = queue.Queue()
    for index, guest in enumerate(selected):
        pending.put((index, guest))

    results: dict[int, GuestResult] = {}
    results_lock = threading.Lock()
    stop = threading.Event()

    def worker() -> None:
        while not stop.is_set():
            try:
                index, guest = pending.get_nowait()
            except queue.Empty:
                return
            result = provision_guest(ctx, config, guest)
            with results_lock:
                results[index] = result
            if result.failed and not config.settings.continue_on_error:
                ctx.logger.error(
                    "'%s' failed and continue_on_error is off; no further distributions will start",
                    guest.name,
                )
                stop.set()

    pool_size = min(config.settings.max_concurrent_distributions, len(selected))
    if pool_size <= 1:
        worker()
    else:
        with ThreadPoolExecutor(max_workers=pool_size, thread_name_prefix="guest") as executor:
            futures = [executor.submit(worker) for _ in range(pool_size)]
            for future in futures:
                future.result()

    ordered = tuple(
        results.get(index, GuestResult(name=guest.name)) for index, guest in enumerate(selected)
    )
    return ProvisioningReport(results=ordered, aborted=stop.is_set())


def validate_existing(
    ctx: ProvisionContext, config: ProvisioningConfig, guests: Sequence[GuestDefinition]
) -> dict[str, ValidationRun | None]:
    """Run the validation battery against guests that are already installed.

    Guests that are not live map to None.
    """
    live = set(ctx.wsl.list_guests())
    login = config.user.username if config.user is not None else "root"
    runs: dict[str, ValidationRun | None] = {}
    for guest in guests:
        if guest.name not in live:
            ctx.logger.warning("'%s' is not installed", guest.name)
            runs[guest.name] = None
            continue
        gctx = ctx.for_guest(guest.name)
        runs[guest.name] = validate_guest(gctx, guest.name, config.validation.commands, user=login)
    return runs
