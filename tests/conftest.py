from __future__ import annotations

import os
from collections.abc import Callable, Sequence
from pathlib import Path

import pytest

from dex_task.convert import CommandResult


class FakeDx:
    """Stands in for dx: records commands and writes archives into --output."""

    def __init__(self, returncode: int = 0, stderr: str = "", archives: int = 1) -> None:
        self.returncode = returncode
        self.stderr = stderr
        self.archives = archives
        self.commands: list[list[str]] = []

    @property
    def calls(self) -> int:
        return len(self.commands)

    def __call__(self, command: Sequence[str]) -> CommandResult:
        self.commands.append(list(command))
        if self.returncode != 0:
            return CommandResult(returncode=self.returncode, stdout="", stderr=self.stderr)
        output = Path(command[command.index("--output") + 1])
        output.mkdir(parents=True, exist_ok=True)
        for index in range(1, self.archives + 1):
            name = "classes.dex" if index == 1 else f"classes{index}.dex"
            (output / name).write_bytes(b"dex\n035\x00")
        return CommandResult(returncode=0, stdout="", stderr="")


@pytest.fixture
def fake_dx() -> FakeDx:
    return FakeDx()


@pytest.fixture
def failing_dx() -> FakeDx:
    return FakeDx(returncode=1, stderr="UNEXPECTED TOP-LEVEL EXCEPTION:\nbad class file\n")


@pytest.fixture
def touch_later() -> Callable[[Path], None]:
    """Move a file mtime forward without changing its size."""

    def bump(path: Path) -> None:
        stat = path.stat()
        os.utime(path, ns=(stat.st_atime_ns, stat.st_mtime_ns + 5_000_000_000))

    return bump
