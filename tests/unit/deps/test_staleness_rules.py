from __future__ import annotations

from pathlib import Path

import pytest

from dex_task.deps import DependencySnapshot, evaluate_staleness, is_stale
from dex_task.inputs import InputDescriptor

ARGS = ("--dex", "--output", "/out", "/a.class")


@pytest.fixture
def output_file(tmp_path: Path) -> Path:
    path = tmp_path / "classes.dex"
    path.write_bytes(b"dex")
    return path


def _inputs(*entries: tuple[str, int, int]) -> list[InputDescriptor]:
    return [InputDescriptor(path=path, mtime_ns=mtime, size=size) for path, mtime, size in entries]


def _snapshot(
    inputs: list[InputDescriptor], outputs: list[Path], arguments: tuple[str, ...] | None = ARGS
) -> DependencySnapshot:
    return DependencySnapshot(
        inputs=tuple(inputs),
        output_paths=tuple(str(path) for path in outputs),
        generated_at="2026-02-08T00:00:00.000Z",
        arguments=arguments,
    )


def test_absent_snapshot_is_stale() -> None:
    verdict = evaluate_staleness(_inputs(("/a.class", 1, 1)), None)

    assert verdict.stale is True
    assert verdict.reason == "no_snapshot"


def test_missing_output_is_stale(tmp_path: Path, output_file: Path) -> None:
    current = _inputs(("/a.class", 1, 1))
    previous = _snapshot(current, [output_file, tmp_path / "classes2.dex"])

    verdict = evaluate_staleness(current, previous)

    assert verdict.stale is True
    assert verdict.reason == "output_missing"
    assert verdict.detail == str(tmp_path / "classes2.dex")


def test_added_input_is_stale(output_file: Path) -> None:
    previous = _snapshot(_inputs(("/a.class", 1, 1)), [output_file])
    current = _inputs(("/a.class", 1, 1), ("/b.class", 1, 1))

    verdict = evaluate_staleness(current, previous)

    assert verdict.reason == "input_set_changed"
    assert verdict.delta is not None and verdict.delta.added == ("/b.class",)


def test_removed_input_is_stale(output_file: Path) -> None:
    previous = _snapshot(_inputs(("/a.class", 1, 1), ("/b.class", 1, 1)), [output_file])

    verdict = evaluate_staleness(_inputs(("/a.class", 1, 1)), previous)

    assert verdict.reason == "input_set_changed"
    assert verdict.delta is not None and verdict.delta.removed == ("/b.class",)


@pytest.mark.parametrize("changed", [("/a.class", 2, 1), ("/a.class", 1, 2)])
def test_modified_timestamp_or_size_is_stale(
    output_file: Path, changed: tuple[str, int, int]
) -> None:
    previous = _snapshot(_inputs(("/a.class", 1, 1)), [output_file])

    verdict = evaluate_staleness(_inputs(changed), previous)

    assert verdict.stale is True
    assert verdict.reason == "input_modified"
    assert verdict.detail == "/a.class"


def test_changed_arguments_are_stale(output_file: Path) -> None:
    current = _inputs(("/a.class", 1, 1))
    previous = _snapshot(current, [output_file])

    verdict = evaluate_staleness(current, previous, arguments=("--dex", "--verbose", *ARGS[1:]))

    assert verdict.reason == "arguments_changed"


def test_unrecorded_arguments_are_stale(output_file: Path) -> None:
    current = _inputs(("/a.class", 1, 1))
    previous = _snapshot(current, [output_file], arguments=None)

    assert is_stale(current, previous, arguments=ARGS) is True
    assert is_stale(current, previous) is False


def test_unchanged_inputs_and_present_outputs_skip(output_file: Path) -> None:
    current = _inputs(("/a.class", 1, 1), ("/b.class", 3, 4))
    previous = _snapshot(list(reversed(current)), [output_file])

    verdict = evaluate_staleness(current, previous, arguments=ARGS)

    assert verdict.stale is False
    assert verdict.reason == "up_to_date"
    assert is_stale(current, previous, arguments=ARGS) is False
