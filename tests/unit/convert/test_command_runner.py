from __future__ import annotations

import sys
from collections.abc import Sequence
from pathlib import Path

import pytest

from dex_task.convert import CommandResult, ConversionFailedError, run_checked, run_command


def test_successful_command_returns_captured_output() -> None:
    result = run_checked([sys.executable, "-c", "print('Processing classes')"])

    assert result.returncode == 0
    assert result.stdout.strip() == "Processing classes"


def test_nonzero_exit_surfaces_stderr_verbatim() -> None:
    command = [
        sys.executable,
        "-c",
        "import sys; sys.stderr.write('trouble processing Foo.class\\n'); sys.exit(2)",
    ]

    with pytest.raises(ConversionFailedError) as excinfo:
        run_checked(command)

    error = excinfo.value
    assert error.exit_code == 2
    assert error.stderr == "trouble processing Foo.class\n"
    assert "trouble processing Foo.class" in str(error)
    assert error.command == tuple(command)


def test_missing_executable_reports_not_found(tmp_path: Path) -> None:
    result = run_command([str(tmp_path / "no-such-dx"), "--dex"])

    assert result.returncode == 127
    assert result.stderr


def test_custom_runner_is_used() -> None:
    seen: list[list[str]] = []

    def runner(command: Sequence[str]) -> CommandResult:
        seen.append(list(command))
        return CommandResult(returncode=1, stdout="", stderr="")

    with pytest.raises(ConversionFailedError, match="no error output"):
        run_checked(["dx", "--dex"], runner=runner)
    assert seen == [["dx", "--dex"]]


def test_undecodable_stderr_bytes_are_replaced() -> None:
    command = [
        sys.executable,
        "-c",
        "import sys; sys.stderr.buffer.write(b'trouble \\xff\\xfe\\n'); sys.exit(1)",
    ]

    with pytest.raises(ConversionFailedError) as excinfo:
        run_checked(command)

    assert excinfo.value.exit_code == 1
    assert excinfo.value.stderr.startswith("trouble ")
