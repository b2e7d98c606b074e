"""No-op WSL wrapper for preview mode.

This module provides a Wsl wrapper that prevents execution of mutating
operations while delegating read-only operations to the wrapped implementation.
"""

import logging
import threading
from collections.abc import Sequence
from pathlib import Path

from distprov.ops.subprocess import CommandResult, format_command
from distprov.ops.wsl import Wsl


class DryRunWsl(Wsl):
    """No-op wrapper that logs mutating operations instead of executing them.

    Read-only operations are delegated to the wrapped implementation. Guests
    that would have been imported or removed are tracked in memory so that
    post-mutation queries answer as if the preview had run.

    Usage:
        real_ops = RealWsl()
        noop_ops = DryRunWsl(real_ops, logger)

        # Logs "[preview] wsl --unregister RHEL9" instead of deleting
        noop_ops.unregister_guest("RHEL9")
    """

    def __init__(self, wrapped: Wsl, logger: logging.Logger | logging.LoggerAdapter) -> None:
        """Create a dry-run wrapper around a Wsl implementation.

        Args:
            wrapped: The Wsl implementation to wrap (usually RealWsl)
            logger: Log sink receiving the commands that would have run
        """
        self._wrapped = wrapped
        self._logger = logger
        self._imported: set[str] = set()
        self._removed: set[str] = set()
        self._lock = threading.Lock()

    def _preview(self, argv: Sequence[str]) -> CommandResult:
        self._logger.info("[preview] would run: %s", format_command(argv))
        return CommandResult.ok(argv)

    # Read-only operations: delegate to wrapped implementation

    def list_guests(self) -> list[str]:
        """List guests (read-only, delegates to wrapped), adjusted for the preview."""
        listed = self._wrapped.list_guests()
        with self._lock:
            live = [name for name in listed if name not in self._removed]
            return live + sorted(name for name in self._imported if name not in live)

    def status(self) -> CommandResult:
        """Query WSL status (read-only, delegates to wrapped)."""
        return self._wrapped.status()

    # Mutating operations: log instead of executing

    def import_guest(
        self, name: str, install_path: Path, artifact: Path, *, version: int
    ) -> CommandResult:
        with self._lock:
            self._imported.add(name)
            self._removed.discard(name)
        return self._preview(
            ["wsl", "--import", name, str(install_path), str(artifact), "--version", str(version)]
        )

    def export_guest(self, name: str, archive: Path) -> CommandResult:
        return self._preview(["wsl", "--export", name, str(archive)])

    def unregister_guest(self, name: str) -> CommandResult:
        with self._lock:
            self._removed.add(name)
            self._imported.discard(name)
        return self._preview(["wsl", "--unregister", name])

    def set_default_guest(self, name: str) -> CommandResult:
        return self._preview(["wsl", "--set-default", name])

    def set_default_user(self, name: str, username: str) -> CommandResult:
        return self._preview(["wsl", "--manage", name, "--set-default-user", username])

    def run_in_guest(
        self,
        name: str,
        argv: Sequence[str],
        *,
        user: str = "root",
        read_only: bool = False,
        input: str | None = None,
        timeout: float | None = None,
    ) -> CommandResult:
        if read_only:
            with self._lock:
                preview_only = name in self._imported or name in self._removed
            if preview_only:
                # The guest only exists in the preview; nothing to inspect
                return CommandResult.ok(argv)
            return self._wrapped.run_in_guest(
                name, argv, user=user, read_only=True, input=input, timeout=timeout
            )
        return self._preview(["wsl", "-d", name, "-u", user, "--exec", *argv])
