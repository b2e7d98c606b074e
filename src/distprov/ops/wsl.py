"""WSL guest-lifecycle operations interface.

This module defines the abstract interface for the guest-lifecycle command
surface, following the ops pattern with ABC-based dependency injection for
testability. Real implementations call wsl.exe through the command executor.
Fake implementations are pure in-memory for unit tests.
"""

from abc import ABC, abstractmethod
from collections.abc import Sequence
from pathlib import Path

from distprov.ops.subprocess import CommandResult


class Wsl(ABC):
    """Abstract interface for guest-lifecycle operations.

    Lifecycle mutations return CommandResult instead of raising so callers can
    distinguish access-denied and other exit conditions. Callers must never
    trust an exit code alone: re-query list_guests() after mutating.
    """

    @abstractmethod
    def list_guests(self) -> list[str]:
        """Return the names of all registered guests.

        Raises:
            RuntimeError: If the guest list cannot be queried
        """
        ...

    @abstractmethod
    def import_guest(
        self, name: str, install_path: Path, artifact: Path, *, version: int
    ) -> CommandResult:
        """Materialize a new guest from a root filesystem archive."""
        ...

    @abstractmethod
    def export_guest(self, name: str, archive: Path) -> CommandResult:
        """Export an existing guest to a tar archive."""
        ...

    @abstractmethod
    def unregister_guest(self, name: str) -> CommandResult:
        """Remove a guest and delete its virtual disk."""
        ...

    @abstractmethod
    def set_default_guest(self, name: str) -> CommandResult:
        """Make a guest the default for bare `wsl` invocations."""
        ...

    @abstractmethod
    def set_default_user(self, name: str, username: str) -> CommandResult:
        """Set the login used when the guest starts."""
        ...

    @abstractmethod
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
        """Execute a command inside a guest.

        Args:
            name: Guest to run in
            argv: Command and arguments
            user: Login to run as
            read_only: True when the command only inspects state. Dry-run
                wrappers execute read-only commands and skip all others.
            input: Text written to stdin (used for secrets)
            timeout: Seconds before the command is killed

        Raises:
            RuntimeError: If wsl.exe cannot be launched or the command timed out
        """
        ...

    @abstractmethod
    def status(self) -> CommandResult:
        """Report whether the WSL service is installed and answering."""
        ...


ACCESS_DENIED_MARKERS = ("e_accessdenied", "access is denied", "access denied")


def is_access_denied(result: CommandResult) -> bool:
    """Check whether a lifecycle command failed for lack of elevation.

    wsl.exe reports ERROR_ACCESS_DENIED as exit code 5 or through an
    E_ACCESSDENIED message with a generic exit code.
    """
    if result.success:
        return False
    if result.returncode == 5:
        return True
    lowered = result.output.lower()
    return any(marker in lowered for marker in ACCESS_DENIED_MARKERS)
