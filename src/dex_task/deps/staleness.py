"""Rebuild decision from current inputs and the previous snapshot.

The comparison is metadata based (mtime and size, or size and SHA-256 when
descriptors carry a content hash). A file rewritten with identical size inside
the filesystem timestamp granularity is reported as unchanged in stat mode.
"""

from __future__ import annotations

import os
from collections.abc import Sequence
from dataclasses import dataclass

from dex_task.deps.models import DependencySnapshot
from dex_task.inputs.models import InputDelta, InputDescriptor
from dex_task.inputs.resolver import detect_input_delta

REASON_NO_SNAPSHOT = "no_snapshot"
REASON_OUTPUT_MISSING = "output_missing"
REASON_INPUT_SET_CHANGED = "input_set_changed"
REASON_INPUT_MODIFIED = "input_modified"
REASON_ARGUMENTS_CHANGED = "arguments_changed"
REASON_UP_TO_DATE = "up_to_date"


@dataclass(slots=True, frozen=True)
class StalenessVerdict:
    """Outcome of one staleness evaluation."""

    stale: bool
    reason: str
    detail: str = ""
    delta: InputDelta | None = None


def evaluate_staleness(
    current: Sequence[InputDescriptor],
    previous: DependencySnapshot | None,
    arguments: Sequence[str] | None = None,
) -> StalenessVerdict:
    """Decide whether the conversion must run again.

    ``arguments`` is compared against the recorded invocation only when given.
    """
    if previous is None:
        return StalenessVerdict(stale=True, reason=REASON_NO_SNAPSHOT)

    for output_path in previous.output_paths:
        if not os.path.exists(output_path):
            return StalenessVerdict(stale=True, reason=REASON_OUTPUT_MISSING, detail=output_path)

    delta = detect_input_delta(previous.inputs, current)
    if delta.added or delta.removed:
        first = (delta.added + delta.removed)[0]
        return StalenessVerdict(
            stale=True, reason=REASON_INPUT_SET_CHANGED, detail=first, delta=delta
        )
    if delta.updated:
        return StalenessVerdict(
            stale=True, reason=REASON_INPUT_MODIFIED, detail=delta.updated[0], delta=delta
        )

    if arguments is not None and previous.arguments != tuple(arguments):
        return StalenessVerdict(stale=True, reason=REASON_ARGUMENTS_CHANGED, delta=delta)

    return StalenessVerdict(stale=False, reason=REASON_UP_TO_DATE, delta=delta)


def is_stale(
    current: Sequence[InputDescriptor],
    previous: DependencySnapshot | None,
    arguments: Sequence[str] | None = None,
) -> bool:
    """Return True when outputs no longer reflect the current inputs."""
    return evaluate_staleness(current, previous, arguments=arguments).stale
