"""Fetch guest artifacts into the local download store.

The download directory is a skip-if-exists store: an artifact already on disk
is never fetched again. When the guest definition carries an expected size or
checksum, existing and fresh files are verified against it and a mismatch is a
hard failure rather than a silent re-download.
"""

import hashlib
from pathlib import Path

from distprov.core.config import GuestDefinition
from distprov.core.context import ProvisionContext
from distprov.core.errors import ErrorKind, ProvisionError
from distprov.core.results import DownloadResult
from distprov.core.retry import RetryExhaustedError, RetryPolicy

HASH_CHUNK_SIZE = 1024 * 1024


def sha256_of(path: Path) -> str:
    digest = hashlib.sha256()
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(HASH_CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


def check_integrity(guest: GuestDefinition, path: Path) -> str | None:
    """Compare path against the guest's expected size and checksum.

    Returns:
        A description of the mismatch, or None if the file matches
    """
    size = path.stat().st_size
    if guest.size_bytes is not None and size != guest.size_bytes:
        return f"{path} is {size} bytes, expected {guest.size_bytes}"
    if guest.sha256 is not None:
        actual = sha256_of(path)
        if actual.lower() != guest.sha256.lower():
            return f"{path} has SHA-256 {actual}, expected {guest.sha256.lower()}"
    return None


def fetch(
    ctx: ProvisionContext,
    guest: GuestDefinition,
    destination: Path,
    retry_policy: RetryPolicy,
    *,
    verify_integrity: bool = True,
    timeout: float = 300,
) -> DownloadResult:
    """Make the guest's artifact available at destination."""
    if destination.exists():
        if verify_integrity:
            mismatch = check_integrity(guest, destination)
            if mismatch is not None:
                ctx.logger.error("Existing artifact failed integrity check: %s", mismatch)
                return DownloadResult(
                    success=False,
                    path=destination,
                    already_existed=True,
                    error=ProvisionError(ErrorKind.INTEGRITY_MISMATCH, mismatch),
                )
        size = destination.stat().st_size
        ctx.logger.info("Using existing artifact %s (%d bytes)", destination, size)
        return DownloadResult(success=True, path=destination, size_bytes=size, already_existed=True)

    if not ctx.dry_run:
        destination.parent.mkdir(parents=True, exist_ok=True)

    ctx.logger.info("Downloading %s -> %s", guest.url, destination)
    try:
        size, attempts = retry_policy.run(
            lambda: ctx.http.download(guest.url, destination, timeout=timeout),
            time=ctx.time,
            logger=ctx.logger,
            description=f"download {guest.filename}",
        )
    except RetryExhaustedError as e:
        ctx.logger.error("Download of %s gave up: %s", guest.filename, e.last_error)
        return DownloadResult(
            success=False,
            path=destination,
            attempts=e.attempts,
            error=ProvisionError(ErrorKind.DOWNLOAD_EXHAUSTED, str(e)),
        )

    if ctx.dry_run:
        return DownloadResult(success=True, path=destination, attempts=attempts, simulated=True)

    if verify_integrity:
        mismatch = check_integrity(guest, destination)
        if mismatch is not None:
            destination.unlink(missing_ok=True)
            ctx.logger.error("Downloaded artifact failed integrity check: %s", mismatch)
            return DownloadResult(
                success=False,
                path=destination,
                attempts=attempts,
                error=ProvisionError(ErrorKind.INTEGRITY_MISMATCH, mismatch),
            )

    ctx.logger.info("Downloaded %s (%d bytes, %d attempt(s))", destination.name, size, attempts)
    return DownloadResult(success=True, path=destination, size_bytes=size, attempts=attempts)
