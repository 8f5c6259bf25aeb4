"""Blocking external command execution."""

from __future__ import annotations

import subprocess
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from dex_task.errors import DexTaskError

COMMAND_NOT_FOUND_EXIT_CODE = 127
COMMAND_NOT_EXECUTABLE_EXIT_CODE = 126


@dataclass(slots=True, frozen=True)
class CommandResult:
    """Exit status and captured streams of a finished command."""

    returncode: int
    stdout: str
    stderr: str


CommandRunner = Callable[[Sequence[str]], CommandResult]


class ConversionFailedError(DexTaskError):
    """Raised when the converter exits with a nonzero status."""

    def __init__(self, command: Sequence[str], exit_code: int, stderr: str) -> None:
        detail = stderr.strip() or "no error output"
        super().__init__(f"{command[0]} exited with status {exit_code}: {detail}")
        self.command = tuple(command)
        self.exit_code = exit_code
        self.stderr = stderr


def run_command(command: Sequence[str]) -> CommandResult:
    """Run ``command`` to completion and capture its output."""
    try:
        completed = subprocess.run(
            list(command),
            check=False,
            capture_output=True,
            text=True,
            errors="replace",
        )
    except FileNotFoundError as exc:
        return CommandResult(returncode=COMMAND_NOT_FOUND_EXIT_CODE, stdout="", stderr=str(exc))
    except PermissionError as exc:
        return CommandResult(
            returncode=COMMAND_NOT_EXECUTABLE_EXIT_CODE, stdout="", stderr=str(exc)
        )
    return CommandResult(
        returncode=completed.returncode,
        stdout=completed.stdout,
        stderr=completed.stderr,
    )


def run_checked(command: Sequence[str], runner: CommandRunner = run_command) -> CommandResult:
    """Run ``command`` and raise ConversionFailedError on a nonzero exit."""
    result = runner(command)
    if result.returncode != 0:
        raise ConversionFailedError(
            command=command,
            exit_code=result.returncode,
            stderr=result.stderr,
        )
    return result
