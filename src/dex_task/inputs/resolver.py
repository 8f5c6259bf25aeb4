"""Deterministic input resolution and change detection."""

from __future__ import annotations

import fnmatch
import hashlib
import os
from collections.abc import Callable, Iterable, Sequence
from pathlib import Path

from dex_task.errors import DexTaskError
from dex_task.inputs.models import (
    SIGNATURE_MODES,
    SIGNATURE_SHA256,
    InputDelta,
    InputDescriptor,
    TreeSpec,
)


class InputNotFoundError(DexTaskError):
    """Raised when a declared input cannot be found or read."""

    def __init__(self, path: str, reason: str = "Input path does not exist.") -> None:
        super().__init__(f"{reason} ({path})")
        self.path = path
        self.reason = reason


def resolve_inputs(
    paths: Sequence[str | Path],
    trees: Sequence[TreeSpec] = (),
    *,
    signature: str = "stat",
    previous: dict[str, InputDescriptor] | None = None,
) -> list[InputDescriptor]:
    """Resolve explicit paths then trees into an ordered, deduplicated list.

    Explicit paths are resolved before tree entries and the first descriptor
    seen for a path wins.
    """
    if signature not in SIGNATURE_MODES:
        raise ValueError(f"Unknown signature mode '{signature}'.")
    prior = previous or {}
    seen: set[str] = set()
    output: list[InputDescriptor] = []
    for raw in paths:
        path = _absolute(raw)
        if not os.path.exists(path):
            raise InputNotFoundError(path)
        if not os.path.isfile(path):
            raise InputNotFoundError(path, reason="Input path is not a regular file.")
        if path in seen:
            continue
        seen.add(path)
        output.append(describe_file(path, signature=signature, previous=prior.get(path)))
    for tree in trees:
        for path in expand_tree(tree):
            if path in seen:
                continue
            seen.add(path)
            output.append(describe_file(path, signature=signature, previous=prior.get(path)))
    return output


def expand_tree(tree: TreeSpec) -> list[str]:
    """Walk a tree and return matching file paths ordered by relative path."""
    root = _absolute(tree.root)
    if not os.path.isdir(root):
        raise InputNotFoundError(root, reason="Input tree root is not a directory.")
    extensions = _normalize_extensions(tree.extensions)
    output: list[str] = []
    stack: list[str] = [root]
    while stack:
        current = stack.pop()
        try:
            with os.scandir(current) as entries:
                ordered_entries = sorted(entries, key=lambda item: item.name)
        except OSError as exc:
            raise InputNotFoundError(
                current, reason=f"Input directory could not be listed: {exc}"
            ) from exc
        for entry in reversed(ordered_entries):
            if entry.is_dir(follow_symlinks=False):
                stack.append(entry.path)
                continue
            if not entry.is_file():
                continue
            relative = Path(entry.path).relative_to(root).as_posix()
            if _is_excluded(relative, tree.exclude_globs):
                continue
            if extensions and Path(entry.name).suffix.lower() not in extensions:
                continue
            output.append(entry.path)
    output.sort(key=_walk_order_key(root))
    return output


def describe_file(
    path: str,
    signature: str = "stat",
    previous: InputDescriptor | None = None,
) -> InputDescriptor:
    """Build a descriptor from current filesystem metadata."""
    try:
        stat = os.stat(path)
    except OSError as exc:
        raise InputNotFoundError(path, reason=f"Input could not be inspected: {exc}") from exc
    content_hash: str | None = None
    if signature == SIGNATURE_SHA256:
        if (
            previous is not None
            and previous.content_hash is not None
            and previous.size == stat.st_size
            and previous.mtime_ns == stat.st_mtime_ns
        ):
            content_hash = previous.content_hash
        else:
            try:
                content_hash = sha256_file(Path(path))
            except OSError as exc:
                raise InputNotFoundError(
                    path, reason=f"Input could not be read: {exc}"
                ) from exc
    return InputDescriptor(
        path=path,
        mtime_ns=stat.st_mtime_ns,
        size=stat.st_size,
        content_hash=content_hash,
    )


def detect_input_delta(
    previous: Iterable[InputDescriptor],
    current: Iterable[InputDescriptor],
) -> InputDelta:
    """Compute deterministic added/updated/unchanged/removed sets."""
    previous_map = descriptor_map(previous)
    current_map = descriptor_map(current)
    previous_paths = set(previous_map)
    current_paths = set(current_map)

    updated: list[str] = []
    unchanged: list[str] = []
    for path in sorted(previous_paths & current_paths):
        if previous_map[path].matches(current_map[path]):
            unchanged.append(path)
            continue
        updated.append(path)

    return InputDelta(
        added=tuple(sorted(current_paths - previous_paths)),
        updated=tuple(updated),
        unchanged=tuple(unchanged),
        removed=tuple(sorted(previous_paths - current_paths)),
    )


def descriptor_map(descriptors: Iterable[InputDescriptor]) -> dict[str, InputDescriptor]:
    """Map descriptors by absolute path."""
    return {descriptor.path: descriptor for descriptor in descriptors}


def sha256_file(path: Path) -> str:
    """Compute SHA-256 hash in deterministic chunked reads."""
    digest = hashlib.sha256()
    with path.open("rb") as handle:
        while True:
            chunk = handle.read(1024 * 128)
            if not chunk:
                break
            digest.update(chunk)
    return digest.hexdigest()


def _absolute(raw: str | Path) -> str:
    return os.path.abspath(os.fspath(raw))


def _normalize_extensions(extensions: tuple[str, ...]) -> set[str]:
    output: set[str] = set()
    for extension in extensions:
        cleaned = extension.strip().lower()
        if not cleaned:
            continue
        if not cleaned.startswith("."):
            cleaned = f".{cleaned}"
        output.add(cleaned)
    return output


def _is_excluded(relative_path: str, exclude_globs: tuple[str, ...]) -> bool:
    anchored = f"/{relative_path}"
    return any(
        fnmatch.fnmatch(relative_path, pattern) or fnmatch.fnmatch(anchored, pattern)
        for pattern in exclude_globs
    )


def _walk_order_key(root: str) -> Callable[[str], tuple[str, ...]]:
    def key(path: str) -> tuple[str, ...]:
        return Path(path).relative_to(root).parts

    return key
