"""Structured JSONL build event utilities."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from pathlib import Path

LEVEL_INFO = "info"
LEVEL_WARNING = "warning"
LEVEL_ERROR = "error"


@dataclass(slots=True, frozen=True)
class BuildEvent:
    """One observable step of a task run."""

    timestamp: str
    event: str
    level: str
    message: str
    metadata: dict[str, object] = field(default_factory=dict)


def utc_timestamp() -> str:
    """Return an ISO-8601 UTC timestamp."""
    return datetime.now(tz=UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def make_event(
    event: str,
    message: str,
    level: str = LEVEL_INFO,
    **metadata: object,
) -> BuildEvent:
    """Build a timestamped event with sorted metadata."""
    return BuildEvent(
        timestamp=utc_timestamp(),
        event=event,
        level=level,
        message=message,
        metadata={key: metadata[key] for key in sorted(metadata)},
    )


class JsonlEventLog:
    """Append-only JSONL sink for run events."""

    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        """Return on-disk JSONL path."""
        return self._path

    def append(self, event: BuildEvent) -> None:
        """Append one event as a JSON object per line."""
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with self._path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(asdict(event), sort_keys=True, default=str))
            handle.write("\n")
