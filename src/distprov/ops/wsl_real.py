"""Real WSL operations using wsl.exe through the command executor.

All operations follow LBYL philosophy: check conditions before acting,
report exit conditions through CommandResult, let launch failures bubble
to error boundaries as RuntimeError.
"""

from collections.abc import Sequence
from pathlib import Path

from distprov.ops.subprocess import CommandResult, describe_failure, run_command
from distprov.ops.wsl import Wsl


NO_DISTRIBUTIONS_MARKER = "no installed distributions"
NO_DISTRIBUTIONS_EXIT_CODES = (-1, 0xFFFFFFFF)


def _is_empty_listing(result: CommandResult) -> bool:
    if NO_DISTRIBUTIONS_MARKER in result.output.lower():
        return True
    return result.returncode in NO_DISTRIBUTIONS_EXIT_CODES and not result.stdout.strip()


class RealWsl(Wsl):
    """Real WSL operations using wsl.exe via subprocess.

    Example:
        wsl = RealWsl()
        if "RHEL9" not in wsl.list_guests():
            wsl.import_guest("RHEL9", Path("C:/WSL/RHEL9"), artifact, version=2)
    """

    def __init__(self, executable: str = "wsl.exe", *, timeout: float | None = None) -> None:
        """Create a wsl.exe-backed implementation.

        Args:
            executable: wsl.exe name or absolute path
            timeout: Default seconds before any single command is killed
        """
        self._executable = executable
        self._timeout = timeout

    def _run(
        self,
        args: Sequence[str],
        operation_context: str,
        *,
        input: str | None = None,
        timeout: float | None = None,
    ) -> CommandResult:
        return run_command(
            [self._executable, *args],
            operation_context=operation_context,
            timeout=timeout if timeout is not None else self._timeout,
            input=input,
        )

    def list_guests(self) -> list[str]:
        """List registered guests with `wsl.exe --list --quiet`.

        wsl.exe exits with -1 (0xFFFFFFFF) when no guest is installed yet and
        prints a message on stdout instead of an empty list.
        """
        result = self._run(["--list", "--quiet"], "list WSL distributions")
        if not result.success:
            if _is_empty_listing(result):
                return []
            raise RuntimeError(describe_failure(result, "list WSL distributions"))
        return [line.strip() for line in result.stdout.splitlines() if line.strip()]

    def import_guest(
        self, name: str, install_path: Path, artifact: Path, *, version: int
    ) -> CommandResult:
        return self._run(
            ["--import", name, str(install_path), str(artifact), "--version", str(version)],
            f"import distribution '{name}'",
        )

    def export_guest(self, name: str, archive: Path) -> CommandResult:
        return self._run(["--export", name, str(archive)], f"export distribution '{name}'")

    def unregister_guest(self, name: str) -> CommandResult:
        return self._run(["--unregister", name], f"unregister distribution '{name}'")

    def set_default_guest(self, name: str) -> CommandResult:
        return self._run(["--set-default", name], f"set '{name}' as default distribution")

    def set_default_user(self, name: str, username: str) -> CommandResult:
        return self._run(
            ["--manage", name, "--set-default-user", username],
            f"set default user of '{name}' to '{username}'",
        )

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
        return self._run(
            ["--distribution", name, "--user", user, "--exec", *argv],
            f"run '{argv[0]}' in '{name}'",
            input=input,
            timeout=timeout,
        )

    def status(self) -> CommandResult:
        return self._run(["--status"], "query WSL status")
