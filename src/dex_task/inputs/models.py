"""Typed models for resolved build inputs."""

from __future__ import annotations

from dataclasses import dataclass

SIGNATURE_STAT = "stat"
SIGNATURE_SHA256 = "sha256"
SIGNATURE_MODES = (SIGNATURE_STAT, SIGNATURE_SHA256)


@dataclass(slots=True, frozen=True)
class InputDescriptor:
    """One input file as observed at resolution time.

    Identity is ``path``. ``content_hash`` is only populated when the
    resolver runs with the sha256 signature mode.
    """

    path: str
    mtime_ns: int
    size: int
    content_hash: str | None = None

    def matches(self, other: InputDescriptor) -> bool:
        """Return True when both descriptors describe the same file state."""
        if self.path != other.path or self.size != other.size:
            return False
        if self.content_hash is not None and other.content_hash is not None:
            return self.content_hash == other.content_hash
        return self.mtime_ns == other.mtime_ns


@dataclass(slots=True, frozen=True)
class TreeSpec:
    """Directory tree expanded recursively into input files."""

    root: str
    extensions: tuple[str, ...] = ()
    exclude_globs: tuple[str, ...] = ()


@dataclass(slots=True, frozen=True)
class InputDelta:
    """Deterministic change classification between two input sets."""

    added: tuple[str, ...]
    updated: tuple[str, ...]
    unchanged: tuple[str, ...]
    removed: tuple[str, ...]

    @property
    def changed(self) -> bool:
        return bool(self.added or self.updated or self.removed)
