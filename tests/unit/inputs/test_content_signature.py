from __future__ import annotations

from pathlib import Path

import pytest

from dex_task.inputs import (
    InputNotFoundError,
    InputDescriptor,
    describe_file,
    detect_input_delta,
    resolve_inputs,
    sha256_file,
)


def test_sha256_mode_records_content_hash(tmp_path: Path) -> None:
    target = tmp_path / "A.class"
    target.write_bytes(b"\xca\xfe\xba\xbe")

    (descriptor,) = resolve_inputs([target], signature="sha256")

    assert descriptor.content_hash == sha256_file(target)


def test_sha256_mode_reuses_hash_when_stat_is_unchanged(tmp_path: Path) -> None:
    target = tmp_path / "A.class"
    target.write_bytes(b"\xca\xfe\xba\xbe")
    stat = target.stat()
    previous = InputDescriptor(
        path=str(target), mtime_ns=stat.st_mtime_ns, size=stat.st_size, content_hash="reused"
    )

    descriptor = describe_file(str(target), signature="sha256", previous=previous)

    assert descriptor.content_hash == "reused"


def test_unknown_signature_mode_is_rejected(tmp_path: Path) -> None:
    with pytest.raises(ValueError, match="signature"):
        resolve_inputs([], signature="md5")


def test_stat_descriptors_compare_mtime_and_size() -> None:
    base = InputDescriptor(path="/a.class", mtime_ns=10, size=4)

    assert base.matches(InputDescriptor(path="/a.class", mtime_ns=10, size=4))
    assert not base.matches(InputDescriptor(path="/a.class", mtime_ns=11, size=4))
    assert not base.matches(InputDescriptor(path="/a.class", mtime_ns=10, size=5))
    assert not base.matches(InputDescriptor(path="/b.class", mtime_ns=10, size=4))


def test_hashed_descriptors_ignore_mtime_when_content_matches() -> None:
    before = InputDescriptor(path="/a.class", mtime_ns=10, size=4, content_hash="h1")

    assert before.matches(InputDescriptor(path="/a.class", mtime_ns=99, size=4, content_hash="h1"))
    assert not before.matches(
        InputDescriptor(path="/a.class", mtime_ns=10, size=4, content_hash="h2")
    )


def test_input_delta_classification() -> None:
    previous = [
        InputDescriptor(path="/a.class", mtime_ns=1, size=1),
        InputDescriptor(path="/b.class", mtime_ns=1, size=1),
        InputDescriptor(path="/c.class", mtime_ns=1, size=1),
    ]
    current = [
        InputDescriptor(path="/a.class", mtime_ns=1, size=1),
        InputDescriptor(path="/b.class", mtime_ns=2, size=1),
        InputDescriptor(path="/d.class", mtime_ns=1, size=1),
    ]

    delta = detect_input_delta(previous, current)

    assert delta.added == ("/d.class",)
    assert delta.updated == ("/b.class",)
    assert delta.unchanged == ("/a.class",)
    assert delta.removed == ("/c.class",)
    assert delta.changed is True


def test_unreadable_input_in_sha256_mode_raises(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    target = tmp_path / "A.class"
    target.write_bytes(b"\xca\xfe\xba\xbe")

    def deny(path: Path) -> str:
        raise PermissionError(13, "Permission denied", str(path))

    monkeypatch.setattr("dex_task.inputs.resolver.sha256_file", deny)

    with pytest.raises(InputNotFoundError, match="could not be read") as excinfo:
        resolve_inputs([target], signature="sha256")
    assert excinfo.value.path == str(target)
