"""Persistent dependency file storage."""

from __future__ import annotations

import contextlib
import json
import os
from dataclasses import dataclass
from pathlib import Path

from dex_task.deps.models import DependencySnapshot
from dex_task.errors import DexTaskError
from dex_task.inputs.models import InputDescriptor

DEPFILE_FORMAT = "dex-task-depfile"
DEPFILE_SCHEMA_VERSION = 1


@dataclass(slots=True, frozen=True)
class DependencyStoreCorruptError(DexTaskError):
    """Raised when a dependency file exists but cannot be trusted."""

    path: str
    reason: str

    def __str__(self) -> str:
        return f"{self.reason} ({self.path})"


@dataclass(slots=True, frozen=True)
class DependencyStoreWriteError(DexTaskError):
    """Raised when a dependency file could not be persisted."""

    path: str
    reason: str

    def __str__(self) -> str:
        return f"{self.reason} ({self.path})"


class DependencyStore:
    """Owns the on-disk dependency file for one task configuration."""

    def __init__(self, path: Path) -> None:
        self._path = Path(os.path.abspath(path))

    @property
    def path(self) -> Path:
        """Return on-disk dependency file path."""
        return self._path

    def load(self) -> DependencySnapshot | None:
        """Return the stored snapshot, or None when absent or unusable."""
        try:
            return self.read()
        except DependencyStoreCorruptError:
            return None

    def read(self) -> DependencySnapshot | None:
        """Return the stored snapshot, None when absent.

        Raises DependencyStoreCorruptError when the file exists but is
        unreadable, malformed or written with another schema version.
        """
        if not self._path.exists():
            return None
        try:
            with self._path.open("r", encoding="utf-8") as handle:
                payload = json.load(handle)
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise DependencyStoreCorruptError(
                path=str(self._path), reason=f"Dependency file is unreadable: {exc}"
            ) from exc
        return _snapshot_from_payload(payload, str(self._path))

    def save(self, snapshot: DependencySnapshot) -> None:
        """Atomically replace the dependency file with ``snapshot``."""
        tmp = self._path.with_name(self._path.name + ".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with tmp.open("w", encoding="utf-8") as handle:
                json.dump(_snapshot_to_payload(snapshot), handle, sort_keys=True, indent=1)
                handle.write("\n")
                handle.flush()
                os.fsync(handle.fileno())
            tmp.replace(self._path)
        except OSError as exc:
            with contextlib.suppress(OSError):
                tmp.unlink()
            raise DependencyStoreWriteError(
                path=str(self._path), reason=f"Dependency file could not be written: {exc}"
            ) from exc



def _snapshot_to_payload(snapshot: DependencySnapshot) -> dict[str, object]:
    inputs: list[dict[str, object]] = []
    for descriptor in snapshot.inputs:
        row: dict[str, object] = {
            "path": descriptor.path,
            "mtime_ns": descriptor.mtime_ns,
            "size": descriptor.size,
        }
        if descriptor.content_hash is not None:
            row["content_hash"] = descriptor.content_hash
        inputs.append(row)
    payload: dict[str, object] = {
        "format": DEPFILE_FORMAT,
        "schema_version": DEPFILE_SCHEMA_VERSION,
        "generated_at": snapshot.generated_at,
        "outputs": list(snapshot.output_paths),
        "inputs": inputs,
    }
    if snapshot.arguments is not None:
        payload["arguments"] = list(snapshot.arguments)
    return payload


def _snapshot_from_payload(payload: object, path: str) -> DependencySnapshot:
    if not isinstance(payload, dict):
        raise DependencyStoreCorruptError(path=path, reason="Dependency file is not an object.")
    if payload.get("format") != DEPFILE_FORMAT:
        raise DependencyStoreCorruptError(path=path, reason="Dependency file format is unknown.")
    schema = payload.get("schema_version")
    if not _is_integer(schema):
        raise DependencyStoreCorruptError(
            path=path, reason="Dependency file has no schema version."
        )
    if schema != DEPFILE_SCHEMA_VERSION:
        raise DependencyStoreCorruptError(
            path=path,
            reason=f"Dependency file schema {schema} is not supported "
            f"(expected {DEPFILE_SCHEMA_VERSION}).",
        )
    generated_at = payload.get("generated_at")
    if not isinstance(generated_at, str):
        raise DependencyStoreCorruptError(path=path, reason="Field 'generated_at' is missing.")
    outputs = _string_list(payload.get("outputs"), "outputs", path)
    arguments: tuple[str, ...] | None = None
    if "arguments" in payload:
        arguments = _string_list(payload["arguments"], "arguments", path)

    raw_inputs = payload.get("inputs")
    if not isinstance(raw_inputs, list):
        raise DependencyStoreCorruptError(path=path, reason="Field 'inputs' must be a list.")
    inputs: list[InputDescriptor] = []
    for obj in raw_inputs:
        if not isinstance(obj, dict):
            raise DependencyStoreCorruptError(path=path, reason="Input entry is not an object.")
        input_path = obj.get("path")
        mtime_ns = obj.get("mtime_ns")
        size = obj.get("size")
        content_hash = obj.get("content_hash")
        if not isinstance(input_path, str):
            raise DependencyStoreCorruptError(path=path, reason="Input entry has no path.")
        if not _is_integer(mtime_ns) or not _is_integer(size):
            raise DependencyStoreCorruptError(
                path=path, reason=f"Input entry '{input_path}' has invalid metadata."
            )
        if content_hash is not None and not isinstance(content_hash, str):
            raise DependencyStoreCorruptError(
                path=path, reason=f"Input entry '{input_path}' has an invalid content hash."
            )
        inputs.append(
            InputDescriptor(
                path=input_path,
                mtime_ns=mtime_ns,
                size=size,
                content_hash=content_hash,
            )
        )
    try:
        return DependencySnapshot(
            inputs=tuple(inputs),
            output_paths=outputs,
            generated_at=generated_at,
            arguments=arguments,
        )
    except ValueError as exc:
        raise DependencyStoreCorruptError(path=path, reason=str(exc)) from exc


def _is_integer(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _string_list(value: object, field: str, path: str) -> tuple[str, ...]:
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise DependencyStoreCorruptError(
            path=path, reason=f"Field '{field}' must be a list of strings."
        )
    return tuple(value)
