"""Subprocess execution with uniform results and rich error context.

Every external command distprov issues goes through run_command(). Commands are
always passed as argument lists, never interpolated shell strings.
"""

import shlex
import subprocess
from collections.abc import Sequence
from dataclasses import dataclass

# Arguments whose following value must never reach a log line
SECRET_FLAGS = frozenset({"--password", "--activationkey"})
REDACTED = "********"


@dataclass(frozen=True)
class CommandResult:
    """Outcome of one external command."""

    args: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str

    @property
    def success(self) -> bool:
        return self.returncode == 0

    @property
    def output(self) -> str:
        """Combined stdout and stderr, stripped."""
        parts = [self.stdout.strip(), self.stderr.strip()]
        return "\n".join(part for part in parts if part)

    @staticmethod
    def ok(args: Sequence[str], stdout: str = "") -> "CommandResult":
        return CommandResult(args=tuple(args), returncode=0, stdout=stdout, stderr="")


def redact_command(argv: Sequence[str]) -> list[str]:
    """Mask values of secret-bearing flags.

    >>> redact_command(["subscription-manager", "register", "--password", "hunter2"])
    ['subscription-manager', 'register', '--password', '********']
    >>> redact_command(["tool", "--activationkey=abc"])
    ['tool', '--activationkey=********']
    """
    redacted: list[str] = []
    hide_next = False
    for arg in argv:
        if hide_next:
            redacted.append(REDACTED)
            hide_next = False
            continue
        flag, sep, _ = arg.partition("=")
        if sep and flag in SECRET_FLAGS:
            redacted.append(f"{flag}={REDACTED}")
            continue
        redacted.append(arg)
        if arg in SECRET_FLAGS:
            hide_next = True
    return redacted


def format_command(argv: Sequence[str]) -> str:
    """Render argv as a copy-pasteable, redacted command line."""
    return shlex.join(redact_command([str(arg) for arg in argv]))


def decode_output(data: bytes | None) -> str:
    """Decode process output.

    wsl.exe writes its own messages as UTF-16LE while commands running inside a
    guest write UTF-8, so NUL bytes select the codec.

    >>> decode_output("Ubuntu\\r\\n".encode("utf-16-le"))
    'Ubuntu\\n'
    >>> decode_output(b"plain\\n")
    'plain\\n'
    """
    if not data:
        return ""
    if b"\x00" in data:
        text = data.decode("utf-16-le", errors="replace")
    else:
        text = data.decode("utf-8", errors="replace")
    return text.replace("\ufeff", "").replace("\r\n", "\n")


def run_command(
    argv: Sequence[str],
    *,
    operation_context: str,
    timeout: float | None = None,
    input: str | None = None,
) -> CommandResult:
    """Execute a command and capture its exit status and output.

    A non-zero exit status is not an error here: it is reported through
    CommandResult so callers can decide what it means.

    Args:
        argv: Command and arguments to execute
        operation_context: Human-readable description of operation
        timeout: Seconds before the command is killed (None waits forever)
        input: Text written to the command's stdin

    Returns:
        CommandResult with exit status and decoded output

    Raises:
        RuntimeError: If the binary is missing or the command timed out
    """
    args = [str(arg) for arg in argv]
    try:
        completed = subprocess.run(
            args,
            capture_output=True,
            check=False,
            timeout=timeout,
            input=input.encode("utf-8") if input is not None else None,
        )
    except FileNotFoundError as e:
        error_msg = f"Command not found while trying to {operation_context}: {args[0]}"
        error_msg += f"\nFull command: {format_command(args)}"
        raise RuntimeError(error_msg) from e
    except subprocess.TimeoutExpired as e:
        error_msg = f"Timed out after {timeout}s while trying to {operation_context}"
        error_msg += f"\nCommand: {format_command(args)}"
        raise RuntimeError(error_msg) from e

    return CommandResult(
        args=tuple(args),
        returncode=completed.returncode,
        stdout=decode_output(completed.stdout),
        stderr=decode_output(completed.stderr),
    )


def describe_failure(result: CommandResult, operation_context: str) -> str:
    """Build the error message for a failed command, in the executor's format."""
    error_msg = f"Failed to {operation_context}"
    error_msg += f"\nCommand: {format_command(result.args)}"
    error_msg += f"\nExit code: {result.returncode}"
    stdout_stripped = result.stdout.strip()
    if stdout_stripped:
        error_msg += f"\nstdout: {stdout_stripped}"
    stderr_stripped = result.stderr.strip()
    if stderr_stripped:
        error_msg += f"\nstderr: {stderr_stripped}"
    return error_msg
